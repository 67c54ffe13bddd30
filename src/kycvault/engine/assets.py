"""Asset collaborators: the principal asset, the settlement asset and any stray token.

The vault only ever moves assets through `AssetLedger`. `TokenLedger` is the
in-process implementation used by scenarios, the stress simulator and tests.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

from .errors import InsufficientBalance, InvalidArgument

logger = logging.getLogger(__name__)

TransferCallback = Callable[[str, str, int], None]


class AssetLedger(ABC):
    """Interface the engine requires from an asset."""

    symbol: str

    @abstractmethod
    def balance_of(self, account: str) -> int:
        """Current balance; never cached by callers."""

    @abstractmethod
    def transfer_into(self, owner: str, custodian: str, amount: int) -> None:
        """Pull `amount` from `owner` into `custodian`."""

    @abstractmethod
    def transfer_out(self, custodian: str, to: str, amount: int) -> None:
        """Push `amount` from `custodian` to `to`."""

    @abstractmethod
    def snapshot(self) -> object:
        """Opaque state token for rolling back a failed unit of work."""

    @abstractmethod
    def restore(self, snapshot: object) -> None:
        ...


class TokenLedger(AssetLedger):
    """Balance-table token.

    `on_transfer` is invoked after every movement with (sender, recipient,
    amount); it models recipient hooks of real tokens and is how re-entrant
    callers are exercised.
    """

    def __init__(self, symbol: str, decimals: int = 6, on_transfer: Optional[TransferCallback] = None):
        self.symbol = symbol
        self.decimals = decimals
        self.on_transfer = on_transfer
        self._balances: Dict[str, int] = {}

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    @property
    def total_supply(self) -> int:
        return sum(self._balances.values())

    def mint(self, account: str, amount: int) -> None:
        """Credit `account` out of thin air (faucet for tests and simulations)."""
        if amount < 0:
            raise InvalidArgument("amount", "must be non-negative", amount)
        self._balances[account] = self.balance_of(account) + amount

    def transfer_into(self, owner: str, custodian: str, amount: int) -> None:
        self._move(owner, custodian, amount)

    def transfer_out(self, custodian: str, to: str, amount: int) -> None:
        self._move(custodian, to, amount)

    def transfer(self, sender: str, to: str, amount: int) -> None:
        self._move(sender, to, amount)

    def _move(self, sender: str, to: str, amount: int) -> None:
        if amount <= 0:
            raise InvalidArgument("amount", "transfer amount must be positive", amount)
        available = self.balance_of(sender)
        if available < amount:
            raise InsufficientBalance(f"{self.symbol} balance of {sender}", available, amount)
        self._balances[sender] = available - amount
        self._balances[to] = self.balance_of(to) + amount
        logger.debug("%s transfer %s -> %s: %d", self.symbol, sender, to, amount)
        if self.on_transfer is not None:
            self.on_transfer(sender, to, amount)

    def snapshot(self) -> Dict[str, int]:
        return dict(self._balances)

    def restore(self, snapshot: Dict[str, int]) -> None:
        self._balances = dict(snapshot)

    def __repr__(self) -> str:
        return f"TokenLedger({self.symbol!r}, supply={self.total_supply})"
