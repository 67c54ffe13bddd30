"""Vault engine: phases, cohorts, redemption and the collaborators it drives."""

from .access import AccessControl, Role
from .accounting import PoolAccounting, PoolState
from .assets import AssetLedger, TokenLedger
from .clock import SECONDS_PER_DAY, Clock, ManualClock, SystemClock
from .errors import (
    AccountingUnderflow,
    DepositWindowClosed,
    InsufficientBalance,
    InvalidArgument,
    InvalidMode,
    InvariantViolation,
    NoOpRejected,
    PhaseError,
    RecoveryForbiddenAsset,
    RecoveryNotEligible,
    ReentrancyViolation,
    TransferForbidden,
    Unauthorized,
    VaultError,
)
from .events import Event, EventLog
from .kyc import KycRegistry
from .phase import Mode, PhaseController
from .policies import DepositCap, DepositWindow
from .redemption import RecoveryQuote, convert_to_assets, quote_bridge, quote_recovery
from .shares import ZERO_ADDRESS, ShareLedger
from .vault import DEFAULT_RECOVERY_DELAY, MAX_BATCH_SIZE, Vault, VaultSnapshot

__all__ = [
    # Engine
    "Vault",
    "VaultSnapshot",
    "DEFAULT_RECOVERY_DELAY",
    "MAX_BATCH_SIZE",
    # Components
    "AccessControl",
    "Role",
    "PoolAccounting",
    "PoolState",
    "KycRegistry",
    "Mode",
    "PhaseController",
    "DepositCap",
    "DepositWindow",
    "ShareLedger",
    "ZERO_ADDRESS",
    "EventLog",
    "Event",
    # Collaborators
    "AssetLedger",
    "TokenLedger",
    "Clock",
    "ManualClock",
    "SystemClock",
    "SECONDS_PER_DAY",
    # Conversion
    "RecoveryQuote",
    "convert_to_assets",
    "quote_bridge",
    "quote_recovery",
    # Errors
    "VaultError",
    "PhaseError",
    "InvalidMode",
    "DepositWindowClosed",
    "Unauthorized",
    "InvalidArgument",
    "InsufficientBalance",
    "AccountingUnderflow",
    "NoOpRejected",
    "RecoveryNotEligible",
    "TransferForbidden",
    "RecoveryForbiddenAsset",
    "ReentrancyViolation",
    "InvariantViolation",
]
