"""Pro-rata conversion for the approved cohort.

Payouts are always rounded down, so residual dust stays in the pool and
accrues to the remaining holders. Quotes must be computed from the current
totals at redemption time; each redemption shrinks both the pool and the
share denominator seen by the next one.
"""

from dataclasses import dataclass


def convert_to_assets(shares: int, total_shares: int, total_assets: int) -> int:
    """
    Pro-rata share of a pool.

    Formula: floor(shares * total_assets / total_shares)

    Args:
        shares: Shares being redeemed
        total_shares: Approved-cohort share total (denominator)
        total_assets: Pool being divided (settlement balance or deployable principal)

    Returns:
        Payout in pool units; 0 when there are no approved shares
    """
    if total_shares == 0:
        return 0
    return shares * total_assets // total_shares


@dataclass(frozen=True)
class RecoveryQuote:
    """Both legs of a terminal-recovery payout."""
    shares: int
    settlement: int
    principal: int

    @property
    def is_empty(self) -> bool:
        return self.settlement == 0 and self.principal == 0


def quote_recovery(
    shares: int,
    shares_kyc: int,
    settlement_balance: int,
    usdc_kyc_deployable: int,
) -> RecoveryQuote:
    """
    Quote a terminal-recovery redemption.

    Two independent pools share the same denominator: the settlement asset
    held in custody and the approved-cohort principal never deployed.
    """
    return RecoveryQuote(
        shares=shares,
        settlement=convert_to_assets(shares, shares_kyc, settlement_balance),
        principal=convert_to_assets(shares, shares_kyc, usdc_kyc_deployable),
    )


def quote_bridge(shares: int, shares_kyc: int, settlement_balance: int) -> int:
    """Settlement-asset payout for a bridge exit."""
    return convert_to_assets(shares, shares_kyc, settlement_balance)
