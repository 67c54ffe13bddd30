"""Pydantic schema for configuration validation."""

import hashlib
import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..engine.shares import ZERO_ADDRESS


def _check_address(v: Optional[str]) -> Optional[str]:
    if v is not None and (not v or v == ZERO_ADDRESS):
        raise ValueError("address must be non-empty and not the zero address")
    return v


class AssetsConfig(BaseModel):
    """Asset symbols and precision."""
    principal_symbol: str = Field(default="USDC", min_length=1, description="Asset accepted at deposit")
    settlement_symbol: str = Field(default="USTB", min_length=1, description="Asset paid to the KYC cohort")
    share_symbol: str = Field(default="kvUSDC", min_length=1, description="Ownership unit symbol")
    decimals: int = Field(default=6, ge=0, le=36, description="Smallest-denomination exponent")

    @model_validator(mode='after')
    def validate_distinct(self):
        """Principal and settlement must be different assets."""
        if self.principal_symbol == self.settlement_symbol:
            raise ValueError(
                f"principal and settlement assets must differ, both are {self.principal_symbol!r}"
            )
        return self


class RolesConfig(BaseModel):
    """Initial role holders."""
    admins: List[str] = Field(min_length=1, description="Accounts holding the ADMIN role")
    treasury_operators: List[str] = Field(
        default_factory=list, description="Accounts allowed to deploy principal to the treasury"
    )

    @field_validator('admins', 'treasury_operators')
    @classmethod
    def validate_accounts(cls, v):
        """No zero or empty identities."""
        for account in v:
            _check_address(account)
        return v


class CollaboratorsConfig(BaseModel):
    """External identities."""
    vault_address: str = Field(default="kycvault", description="Custody identity of the vault")
    bridge: Optional[str] = Field(default=None, description="Bridge collaborator identity")
    treasury: Optional[str] = Field(default=None, description="Treasury collaborator identity")

    @field_validator('vault_address', 'bridge', 'treasury')
    @classmethod
    def validate_identity(cls, v):
        return _check_address(v)


class DepositConfig(BaseModel):
    """Deposit window and cap, relative to vault creation."""
    cap: int = Field(gt=0, description="Maximum principal committed by the non-KYC cohort")
    window_offset_seconds: int = Field(
        default=3600, gt=0, description="Seconds after creation when the window opens"
    )
    window_length_seconds: int = Field(
        default=14 * 86_400, gt=0, description="Seconds the window stays open"
    )


class PolicyConfig(BaseModel):
    """Engine limits."""
    max_batch_size: int = Field(default=100, ge=1, description="Accounts per reallocation batch")
    recovery_delay_days: float = Field(
        default=180.0, gt=0, description="Days after creation when anyone may force RECOVERY"
    )

    @property
    def recovery_delay_seconds(self) -> int:
        return int(self.recovery_delay_days * 86_400)


class SimulationConfig(BaseModel):
    """Stress-simulation parameters."""
    start_time: int = Field(default=1_700_000_000, ge=0, description="Clock reading at vault creation")
    random_seed: int = Field(default=42, description="Random seed for reproducibility")
    runs: int = Field(default=1, gt=0, description="Independent simulation runs")
    num_depositors: int = Field(default=25, gt=0, description="Depositor accounts")
    min_deposit: int = Field(default=1_000, gt=0, description="Smallest deposit")
    max_deposit: int = Field(default=250_000, gt=0, description="Largest deposit")
    approval_rate: float = Field(default=0.7, ge=0, le=1, description="Fraction of depositors approved")
    early_exit_rate: float = Field(
        default=0.1, ge=0, le=1, description="Fraction of depositors exiting 1:1 during DEPOSIT"
    )
    deploy_fraction: float = Field(
        default=0.9, ge=0, le=1, description="Fraction of deployable principal sent to the treasury"
    )
    settlement_per_principal: float = Field(
        default=1.05, ge=0, description="Settlement units returned per principal unit deployed"
    )
    bridge_exit_rate: float = Field(
        default=0.5, ge=0, le=1, description="Fraction of KYC holders exiting via the bridge"
    )

    @field_validator('max_deposit')
    @classmethod
    def validate_deposit_range(cls, v, info):
        """Ensure min <= max deposit."""
        if 'min_deposit' in info.data and v < info.data['min_deposit']:
            raise ValueError("max_deposit must be at least min_deposit")
        return v


class VaultConfig(BaseModel):
    """Complete configuration for a vault deployment."""
    assets: AssetsConfig = Field(default_factory=AssetsConfig)
    roles: RolesConfig
    collaborators: CollaboratorsConfig = Field(default_factory=CollaboratorsConfig)
    deposit: DepositConfig
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)

    @model_validator(mode='after')
    def validate_identities(self):
        """The vault cannot also be a collaborator."""
        vault = self.collaborators.vault_address
        others = [self.collaborators.bridge, self.collaborators.treasury, *self.roles.admins]
        if vault in others:
            raise ValueError(f"vault address {vault!r} cannot also be a collaborator or admin")
        return self

    def compute_hash(self) -> str:
        """Compute config hash for reproducibility."""
        config_dict = self.model_dump()
        config_str = json.dumps(config_dict, sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VaultConfig':
        """Create config from dictionary."""
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return self.model_dump()
