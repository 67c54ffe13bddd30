"""Wire a ready-to-use vault from configuration."""

import logging
from dataclasses import dataclass
from typing import Optional

from .config.schema import VaultConfig
from .engine.access import AccessControl
from .engine.assets import TokenLedger
from .engine.clock import Clock, ManualClock
from .engine.vault import Vault

logger = logging.getLogger(__name__)


@dataclass
class Deployment:
    """A vault together with its in-process collaborators."""
    config: VaultConfig
    vault: Vault
    principal: TokenLedger
    settlement: TokenLedger
    clock: Clock

    @property
    def admin(self) -> str:
        return self.config.roles.admins[0]


def build_vault(config: VaultConfig, clock: Optional[Clock] = None) -> Deployment:
    """
    Create assets, roles and the vault, then apply the configured policies.

    Args:
        config: Deployment configuration
        clock: Time source (defaults to a ManualClock at simulation.start_time)

    Returns:
        Deployment with the vault in DEPOSIT mode and its window scheduled
    """
    if clock is None:
        clock = ManualClock(config.simulation.start_time)

    principal = TokenLedger(config.assets.principal_symbol, config.assets.decimals)
    settlement = TokenLedger(config.assets.settlement_symbol, config.assets.decimals)
    access = AccessControl(
        admins=config.roles.admins,
        treasury_operators=config.roles.treasury_operators,
    )
    vault = Vault(
        principal=principal,
        settlement=settlement,
        access=access,
        clock=clock,
        address=config.collaborators.vault_address,
        recovery_delay=config.policy.recovery_delay_seconds,
        max_batch_size=config.policy.max_batch_size,
        share_symbol=config.assets.share_symbol,
    )

    admin = config.roles.admins[0]
    now = clock.now()
    start = now + config.deposit.window_offset_seconds
    vault.set_deposit_window(admin, start, start + config.deposit.window_length_seconds)
    vault.set_deposit_cap(admin, config.deposit.cap)
    if config.collaborators.bridge is not None:
        vault.set_bridge(admin, config.collaborators.bridge)
    if config.collaborators.treasury is not None:
        vault.set_treasury(admin, config.collaborators.treasury)

    logger.info(
        "vault %s deployed (config %s), recovery at %d",
        vault.address, config.compute_hash(), vault.recovery_timestamp,
    )
    return Deployment(config=config, vault=vault, principal=principal, settlement=settlement, clock=clock)
