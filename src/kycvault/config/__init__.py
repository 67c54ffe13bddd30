"""Configuration schema and loading."""

from .loader import config_from_dict, load_config
from .schema import VaultConfig

__all__ = ["VaultConfig", "config_from_dict", "load_config"]
