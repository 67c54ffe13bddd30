"""Failure taxonomy for the vault engine.

Every rejected operation raises one of these. Each carries enough structured
detail for a caller to tell the cases apart without parsing the message.
A raised error always means the unit of work was rolled back.
"""

from typing import Any


class VaultError(Exception):
    """Base exception for all vault failures."""
    pass


class PhaseError(VaultError):
    """Operation invoked outside the phase (or window) it requires."""
    pass


class InvalidMode(PhaseError):
    """Current mode differs from the mode the operation requires."""

    def __init__(self, current: Any, expected: Any):
        self.current = current
        self.expected = expected
        super().__init__(f"invalid mode: current={_name(current)}, expected={_name(expected)}")


class DepositWindowClosed(PhaseError):
    """Deposit attempted outside the configured deposit window."""

    def __init__(self, now: int, start: int, end: int):
        self.now = now
        self.start = start
        self.end = end
        super().__init__(f"deposit window closed: now={now}, window=[{start}, {end}]")


class Unauthorized(VaultError):
    """Caller lacks the required role or collaborator identity."""

    def __init__(self, caller: str, role: Any):
        self.caller = caller
        self.role = role
        super().__init__(f"{caller} is not authorized as {_name(role)}")


class InvalidArgument(VaultError):
    """Zero amount, sentinel address, malformed batch or policy bounds."""

    def __init__(self, field: str, message: str, value: Any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")


class InsufficientBalance(VaultError):
    """Requested amount exceeds what is available."""

    def __init__(self, field: str, available: int, required: int):
        self.field = field
        self.available = available
        self.required = required
        super().__init__(f"insufficient {field}: have {available}, need {required}")


class AccountingUnderflow(InsufficientBalance):
    """A pool total would go negative.

    Raised instead of clamping; the pools are never partially adjusted.
    """

    def __init__(self, field: str, available: int, required: int):
        super().__init__(field, available, required)
        self.args = (f"accounting underflow on {field}: have {available}, subtract {required}",)


class NoOpRejected(VaultError):
    """Call would not change anything (flag already set, nothing to move)."""

    def __init__(self, account: str, message: str):
        self.account = account
        self.message = message
        super().__init__(f"{account}: {message}")


class RecoveryNotEligible(VaultError):
    """Forced recovery attempted before the recovery timestamp."""

    def __init__(self, now: int, recovery_timestamp: int):
        self.now = now
        self.recovery_timestamp = recovery_timestamp
        super().__init__(
            f"recovery not available until {recovery_timestamp} (now={now}, "
            f"{recovery_timestamp - now}s remaining)"
        )


class TransferForbidden(VaultError):
    """Share movement outside mint, burn and the bridge exit."""

    def __init__(self, sender: str, recipient: str, amount: int):
        self.sender = sender
        self.recipient = recipient
        self.amount = amount
        super().__init__(f"transfer of {amount} shares from {sender} to {recipient} is forbidden")


class RecoveryForbiddenAsset(VaultError):
    """Sweep attempted on the settlement asset."""

    def __init__(self, asset: str):
        self.asset = asset
        super().__init__(f"{asset} belongs to the approved cohort and cannot be swept")


class InvariantViolation(VaultError):
    """State inspection found a broken accounting invariant."""
    pass


class ReentrancyViolation(VaultError):
    """Mutating operation invoked while another one is in progress."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"re-entrant call to {operation} rejected")


def _name(value: Any) -> str:
    return getattr(value, "name", str(value))
