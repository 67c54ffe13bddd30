"""Role-based authorization lookup."""

from enum import Enum
from typing import Dict, Iterable, Set

from .errors import InvalidArgument, Unauthorized
from .shares import ZERO_ADDRESS


class Role(Enum):
    """Capabilities checked by vault operations."""
    ADMIN = "admin"
    TREASURY = "treasury"


class AccessControl:
    """Capability table keyed by caller identity."""

    def __init__(self, admins: Iterable[str] = (), treasury_operators: Iterable[str] = ()):
        self._members: Dict[Role, Set[str]] = {role: set() for role in Role}
        for account in admins:
            self._add(Role.ADMIN, account)
        for account in treasury_operators:
            self._add(Role.TREASURY, account)

    def has_role(self, role: Role, account: str) -> bool:
        return account in self._members[role]

    def require(self, role: Role, account: str) -> None:
        if not self.has_role(role, account):
            raise Unauthorized(account, role)

    def members(self, role: Role) -> Set[str]:
        return set(self._members[role])

    def grant(self, role: Role, account: str) -> bool:
        """Returns False if the account already held the role."""
        if self.has_role(role, account):
            return False
        self._add(role, account)
        return True

    def revoke(self, role: Role, account: str) -> bool:
        if not self.has_role(role, account):
            return False
        self._members[role].discard(account)
        return True

    def _add(self, role: Role, account: str) -> None:
        if account == ZERO_ADDRESS:
            raise InvalidArgument("account", "zero address cannot hold a role", account)
        self._members[role].add(account)

    def snapshot(self) -> Dict[Role, Set[str]]:
        return {role: set(m) for role, m in self._members.items()}

    def restore(self, snapshot: Dict[Role, Set[str]]) -> None:
        self._members = {role: set(m) for role, m in snapshot.items()}
