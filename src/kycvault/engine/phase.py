"""Operational mode state machine.

    DEPOSIT -> KYC -> YIELD -> WITHDRAW
       \\        \\       \\        \\
        +--------+-------+--------+--> RECOVERY (terminal)

Forward steps are admin-driven; RECOVERY is reachable by anyone once the
recovery timestamp has passed. Transitions never move money.
"""

import logging
from enum import Enum
from typing import Dict, Optional

from .errors import InvalidArgument, InvalidMode, RecoveryNotEligible

logger = logging.getLogger(__name__)


class Mode(Enum):
    """Vault operating mode."""
    DEPOSIT = 0
    KYC = 1
    YIELD = 2
    WITHDRAW = 3
    RECOVERY = 4


# Forward transition target -> required predecessor
PREDECESSOR: Dict[Mode, Mode] = {
    Mode.KYC: Mode.DEPOSIT,
    Mode.YIELD: Mode.KYC,
    Mode.WITHDRAW: Mode.YIELD,
}


class PhaseController:
    """Holds the current mode and guards every change to it."""

    def __init__(self, recovery_timestamp: int, mode: Mode = Mode.DEPOSIT):
        self.recovery_timestamp = recovery_timestamp
        self.mode = mode

    def require(self, expected: Mode) -> None:
        if self.mode != expected:
            raise InvalidMode(self.mode, expected)

    def advance(self, target: Mode) -> Mode:
        """
        Step forward to `target`. Caller authorization is checked by the vault.

        Returns:
            The previous mode

        Raises:
            InvalidArgument: If `target` is not a forward step (e.g. RECOVERY)
            InvalidMode: If the current mode is not the predecessor of `target`
        """
        predecessor = PREDECESSOR.get(target)
        if predecessor is None:
            raise InvalidArgument("target", f"{target.name} is not reachable by advance", target)
        self.require(predecessor)
        previous = self.mode
        self.mode = target
        logger.info("mode %s -> %s", previous.name, target.name)
        return previous

    def force_recovery(self, now: int) -> Mode:
        """Permissionless jump to RECOVERY once `now >= recovery_timestamp`."""
        if self.mode == Mode.RECOVERY:
            raise InvalidMode(self.mode, None)
        if now < self.recovery_timestamp:
            raise RecoveryNotEligible(now, self.recovery_timestamp)
        previous = self.mode
        self.mode = Mode.RECOVERY
        logger.warning("recovery forced at %d (from %s)", now, previous.name)
        return previous

    def next_mode(self) -> Optional[Mode]:
        """The forward step available from the current mode, if any."""
        for target, predecessor in PREDECESSOR.items():
            if predecessor == self.mode:
                return target
        return None

    def snapshot(self) -> Mode:
        return self.mode

    def restore(self, snapshot: Mode) -> None:
        self.mode = snapshot
