"""KYC-gated dual-pool vault engine."""

from .config import VaultConfig, load_config
from .engine import Mode, Role, TokenLedger, Vault, VaultError
from .factory import Deployment, build_vault

__version__ = "1.0.0"

__all__ = [
    "Deployment",
    "Mode",
    "Role",
    "TokenLedger",
    "Vault",
    "VaultConfig",
    "VaultError",
    "build_vault",
    "load_config",
]
