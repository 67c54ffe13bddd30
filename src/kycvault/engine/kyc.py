"""KYC registry: one approval flag per account."""

import logging
from typing import Set

from .errors import InvalidArgument, NoOpRejected
from .shares import ZERO_ADDRESS

logger = logging.getLogger(__name__)


class KycRegistry:
    """Per-account approval flags.

    Writes that would not change the flag are rejected, so every successful
    call corresponds to a real move between cohorts.
    """

    def __init__(self):
        self._approved: Set[str] = set()

    def is_approved(self, account: str) -> bool:
        return account in self._approved

    def set_approved(self, account: str, approved: bool) -> None:
        if account == ZERO_ADDRESS:
            raise InvalidArgument("account", "zero address cannot be KYC'd", account)
        if self.is_approved(account) == approved:
            state = "approved" if approved else "not approved"
            raise NoOpRejected(account, f"already {state}")
        if approved:
            self._approved.add(account)
        else:
            self._approved.discard(account)
        logger.debug("kyc %s -> %s", account, approved)

    def approved_accounts(self) -> Set[str]:
        return set(self._approved)

    def snapshot(self) -> Set[str]:
        return set(self._approved)

    def restore(self, snapshot: Set[str]) -> None:
        self._approved = set(snapshot)
