"""Pool accounting: cohort share totals and the deployable principal pool."""

from dataclasses import dataclass, replace
from typing import Mapping, Optional

from .errors import AccountingUnderflow


@dataclass(frozen=True)
class PoolState:
    """Cohort totals at a point in time.

    Pool Semantics:
    - shares_non_kyc: shares held by accounts not (yet) approved; backed 1:1
      by principal in custody
    - shares_kyc: shares held by the approved cohort
    - usdc_kyc_deployable: approved-cohort principal still in custody and not
      yet sent to the treasury

    Conservation Identity:
    shares_non_kyc + shares_kyc = total shares outstanding

    Custody Bound:
    usdc_kyc_deployable <= principal held
    """
    shares_non_kyc: int = 0
    shares_kyc: int = 0
    usdc_kyc_deployable: int = 0

    @property
    def total_shares(self) -> int:
        return self.shares_non_kyc + self.shares_kyc

    @property
    def committed_principal(self) -> int:
        """Principal that must stay in custody (non-KYC backing plus undeployed KYC)."""
        return self.shares_non_kyc + self.usdc_kyc_deployable

    def validate_conservation(self, total_supply: int) -> tuple[bool, Optional[str]]:
        """
        Validate that cohort totals account for every outstanding share.

        Returns:
            (is_valid, error_message)
        """
        if self.total_shares != total_supply:
            return False, (
                f"Share conservation violation: "
                f"non_kyc={self.shares_non_kyc} + kyc={self.shares_kyc} "
                f"= {self.total_shares} != supply={total_supply}"
            )
        return True, None

    def validate_non_negative(self) -> tuple[bool, Optional[str]]:
        """Validate all totals are non-negative."""
        buckets = [
            ('shares_non_kyc', self.shares_non_kyc),
            ('shares_kyc', self.shares_kyc),
            ('usdc_kyc_deployable', self.usdc_kyc_deployable),
        ]
        for name, value in buckets:
            if value < 0:
                return False, f"Negative total: {name}={value}"
        return True, None

    def validate_custody(self, principal_held: int) -> tuple[bool, Optional[str]]:
        """Validate the deployable pool is actually held."""
        if self.usdc_kyc_deployable > principal_held:
            return False, (
                f"Deployable pool {self.usdc_kyc_deployable} exceeds "
                f"principal held {principal_held}"
            )
        return True, None

    def to_dict(self) -> Mapping[str, int]:
        return {
            'shares_non_kyc': self.shares_non_kyc,
            'shares_kyc': self.shares_kyc,
            'usdc_kyc_deployable': self.usdc_kyc_deployable,
        }


class PoolAccounting:
    """Applies every change to the cohort totals.

    Subtractions are checked: a total that would go negative raises
    AccountingUnderflow and leaves the state untouched.
    """

    def __init__(self, initial_state: Optional[PoolState] = None):
        self.state = initial_state or PoolState()

    @property
    def shares_non_kyc(self) -> int:
        return self.state.shares_non_kyc

    @property
    def shares_kyc(self) -> int:
        return self.state.shares_kyc

    @property
    def usdc_kyc_deployable(self) -> int:
        return self.state.usdc_kyc_deployable

    def record_deposit(self, amount: int) -> PoolState:
        return self._apply(shares_non_kyc=self.state.shares_non_kyc + amount)

    def approve(self, balance: int) -> PoolState:
        """Move `balance` from the non-KYC cohort to the KYC cohort."""
        return self._apply(
            shares_non_kyc=_sub('shares_non_kyc', self.state.shares_non_kyc, balance),
            shares_kyc=self.state.shares_kyc + balance,
            usdc_kyc_deployable=self.state.usdc_kyc_deployable + balance,
        )

    def unapprove(self, balance: int) -> PoolState:
        """Move `balance` back to the non-KYC cohort.

        Fails closed if part of that principal has already been deployed.
        """
        return self._apply(
            shares_non_kyc=self.state.shares_non_kyc + balance,
            shares_kyc=_sub('shares_kyc', self.state.shares_kyc, balance),
            usdc_kyc_deployable=_sub('usdc_kyc_deployable', self.state.usdc_kyc_deployable, balance),
        )

    def record_deployment(self, amount: int) -> PoolState:
        return self._apply(
            usdc_kyc_deployable=_sub('usdc_kyc_deployable', self.state.usdc_kyc_deployable, amount)
        )

    def record_non_kyc_redemption(self, shares: int) -> PoolState:
        return self._apply(shares_non_kyc=_sub('shares_non_kyc', self.state.shares_non_kyc, shares))

    def record_kyc_redemption(self, shares: int, principal_paid: int = 0) -> PoolState:
        return self._apply(
            shares_kyc=_sub('shares_kyc', self.state.shares_kyc, shares),
            usdc_kyc_deployable=_sub(
                'usdc_kyc_deployable', self.state.usdc_kyc_deployable, principal_paid
            ),
        )

    def _apply(self, **changes: int) -> PoolState:
        self.state = replace(self.state, **changes)
        return self.state

    def snapshot(self) -> PoolState:
        return self.state

    def restore(self, snapshot: PoolState) -> None:
        self.state = snapshot


def _sub(field: str, available: int, amount: int) -> int:
    if amount > available:
        raise AccountingUnderflow(field, available, amount)
    return available - amount
