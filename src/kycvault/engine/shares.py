"""Ownership-unit (share) ledger.

Only the primitives the vault needs: mint, burn, balance, allowance and a
transfer path guarded by a veto hook. The hook is called for every movement
that is not a mint or a burn.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

from .errors import InsufficientBalance, InvalidArgument

ZERO_ADDRESS = "0x" + "00" * 20

TransferHook = Callable[[str, str, int], None]


@dataclass
class ShareLedger:
    """Balance and allowance tables for vault shares."""
    symbol: str = "kvSHARE"
    transfer_hook: Optional[TransferHook] = None
    _balances: Dict[str, int] = field(default_factory=dict)
    _allowances: Dict[Tuple[str, str], int] = field(default_factory=dict)
    _total_supply: int = 0

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def holders(self) -> Dict[str, int]:
        """Accounts with a non-zero balance."""
        return {a: b for a, b in self._balances.items() if b > 0}

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def mint(self, to: str, amount: int) -> None:
        if to == ZERO_ADDRESS:
            raise InvalidArgument("receiver", "cannot mint to the zero address", to)
        self._balances[to] = self.balance_of(to) + amount
        self._total_supply += amount

    def burn(self, owner: str, amount: int) -> None:
        balance = self.balance_of(owner)
        if balance < amount:
            raise InsufficientBalance(f"shares of {owner}", balance, amount)
        self._balances[owner] = balance - amount
        self._total_supply -= amount

    def approve(self, owner: str, spender: str, amount: int) -> None:
        if owner == ZERO_ADDRESS or spender == ZERO_ADDRESS:
            raise InvalidArgument("spender", "zero address cannot hold or grant allowances", spender)
        if amount < 0:
            raise InvalidArgument("amount", "allowance must be non-negative", amount)
        self._allowances[(owner, spender)] = amount

    def spend_allowance(self, owner: str, spender: str, amount: int) -> None:
        """Consume allowance unless `spender` is the owner."""
        if owner == spender:
            return
        current = self.allowance(owner, spender)
        if current < amount:
            raise InsufficientBalance(f"allowance of {spender} over {owner}", current, amount)
        self._allowances[(owner, spender)] = current - amount

    def transfer(self, sender: str, to: str, amount: int) -> None:
        if self.transfer_hook is not None:
            self.transfer_hook(sender, to, amount)
        balance = self.balance_of(sender)
        if balance < amount:
            raise InsufficientBalance(f"shares of {sender}", balance, amount)
        self._balances[sender] = balance - amount
        self._balances[to] = self.balance_of(to) + amount

    def snapshot(self) -> tuple:
        return dict(self._balances), dict(self._allowances), self._total_supply

    def restore(self, snapshot: tuple) -> None:
        balances, allowances, total = snapshot
        self._balances = dict(balances)
        self._allowances = dict(allowances)
        self._total_supply = total
