"""Sanity checks on live vault state."""

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..engine.errors import InvariantViolation
from ..engine.phase import Mode
from ..engine.vault import Vault, holders_by_cohort

logger = logging.getLogger(__name__)


@dataclass
class ValidationWarning:
    """A validation warning with severity and message."""
    severity: str  # "warning" or "error"
    category: str  # e.g., "conservation", "cohort", "custody"
    message: str
    details: Optional[str] = None


class InvariantChecker:
    """Run invariant checks against a vault between operations."""

    def __init__(self, vault: Vault):
        """Initialize with the vault to inspect."""
        self.vault = vault

    def check(self) -> List[ValidationWarning]:
        """
        Run every check.

        Returns:
            List of validation warnings (empty when the vault is consistent)
        """
        warnings = []
        warnings.extend(self.check_totals())
        warnings.extend(self.check_cohorts())
        warnings.extend(self.check_custody())
        warnings.extend(self.check_lifecycle())
        for w in warnings:
            if w.severity == "error":
                logger.error("%s: %s (%s)", w.category, w.message, w.details)
        return warnings

    def check_totals(self) -> List[ValidationWarning]:
        warnings = []
        state = self.vault.pool_state

        is_valid, error = state.validate_non_negative()
        if not is_valid:
            warnings.append(ValidationWarning(
                severity="error",
                category="bounds",
                message=error,
            ))

        is_valid, error = state.validate_conservation(self.vault.total_supply)
        if not is_valid:
            warnings.append(ValidationWarning(
                severity="error",
                category="conservation",
                message="Cohort totals do not match shares outstanding",
                details=error,
            ))
        return warnings

    def check_cohorts(self) -> List[ValidationWarning]:
        """Each cohort total must equal the sum of its members' balances."""
        warnings = []
        non_kyc, kyc = holders_by_cohort(self.vault)
        pairs = [
            ("non-KYC", sum(non_kyc.values()), self.vault.shares_non_kyc),
            ("KYC", sum(kyc.values()), self.vault.shares_kyc),
        ]
        for label, member_sum, total in pairs:
            if member_sum != total:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="cohort",
                    message=f"{label} balances sum to {member_sum:,} but cohort total is {total:,}",
                    details=f"Difference: {member_sum - total:+,} shares",
                ))
        return warnings

    def check_custody(self) -> List[ValidationWarning]:
        warnings = []
        state = self.vault.pool_state
        held = self.vault.principal_held()

        is_valid, error = state.validate_custody(held)
        if not is_valid:
            warnings.append(ValidationWarning(
                severity="error",
                category="custody",
                message=error,
            ))

        if held < state.committed_principal:
            warnings.append(ValidationWarning(
                severity="error",
                category="custody",
                message="Principal held does not cover non-KYC backing plus undeployed KYC principal",
                details=f"Held: {held:,}, committed: {state.committed_principal:,}",
            ))
        elif held > state.committed_principal:
            warnings.append(ValidationWarning(
                severity="warning",
                category="custody",
                message="Principal held exceeds commitments (sweepable surplus)",
                details=f"Surplus: {held - state.committed_principal:,}",
            ))
        return warnings

    def check_lifecycle(self) -> List[ValidationWarning]:
        warnings = []
        vault = self.vault

        if vault.mode == Mode.WITHDRAW and vault.shares_kyc > 0 and vault.settlement_held() == 0:
            warnings.append(ValidationWarning(
                severity="warning",
                category="settlement",
                message="WITHDRAW mode but no settlement asset has been returned",
                details=f"KYC shares outstanding: {vault.shares_kyc:,}",
            ))

        now = vault.clock.now()
        if vault.mode != Mode.RECOVERY and now >= vault.recovery_timestamp:
            warnings.append(ValidationWarning(
                severity="warning",
                category="recovery",
                message="Recovery timestamp has passed; anyone may force RECOVERY",
                details=f"Passed {now - vault.recovery_timestamp:,}s ago",
            ))
        return warnings


def validate_vault(vault: Vault, raise_on_error: bool = False) -> List[ValidationWarning]:
    """
    Check a vault's invariants.

    Args:
        vault: Vault to inspect
        raise_on_error: Raise InvariantViolation on any error-severity finding

    Returns:
        List of validation warnings
    """
    warnings = InvariantChecker(vault).check()
    if raise_on_error:
        errors = [w for w in warnings if w.severity == "error"]
        if errors:
            raise InvariantViolation("; ".join(f"{w.category}: {w.message}" for w in errors))
    return warnings
