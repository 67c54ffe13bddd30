"""Load vault deployment configuration from YAML."""

from pathlib import Path
from typing import Any, Dict, Union

import yaml

from .schema import VaultConfig

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def load_config(yaml_path: Union[str, Path, None] = None) -> VaultConfig:
    """
    Load a vault deployment config.

    Args:
        yaml_path: Deployment YAML; the packaged kycvault defaults
            (roles, collaborators, deposit cap and window, stress settings)
            are used when omitted

    Returns:
        Validated VaultConfig

    Raises:
        pydantic.ValidationError: If roles, identities or bounds are invalid
    """
    path = DEFAULTS_PATH if yaml_path is None else Path(yaml_path)
    with open(path, 'r') as f:
        data = yaml.safe_load(f) or {}
    return config_from_dict(data)


def config_from_dict(data: Dict[str, Any]) -> VaultConfig:
    """Validate an already-parsed mapping (e.g. a scenario override) into a VaultConfig."""
    return VaultConfig.from_dict(data)
