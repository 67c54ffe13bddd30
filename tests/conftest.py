"""Shared fixtures: a vault wired to in-memory assets and a manual clock."""

import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from kycvault.engine import (  # noqa: E402
    AccessControl,
    ManualClock,
    Mode,
    TokenLedger,
    Vault,
)
from kycvault.validation import validate_vault  # noqa: E402

T0 = 1_000_000
ADMIN = "0xadmin"
OPERATOR = "0xoperator"
BRIDGE = "0xbridge"
TREASURY = "0xtreasury"
VAULT = "0xvault"
WINDOW_START = T0 + 10
WINDOW_END = T0 + 1_000
CAP = 1_000_000


class Harness:
    """Vault plus shortcuts for walking it through its phases."""

    def __init__(self):
        self.clock = ManualClock(T0)
        self.principal = TokenLedger("USDC")
        self.settlement = TokenLedger("USTB")
        self.access = AccessControl(admins=[ADMIN], treasury_operators=[OPERATOR])
        self.vault = Vault(
            principal=self.principal,
            settlement=self.settlement,
            access=self.access,
            clock=self.clock,
            address=VAULT,
        )
        self.vault.set_deposit_window(ADMIN, WINDOW_START, WINDOW_END)
        self.vault.set_deposit_cap(ADMIN, CAP)
        self.vault.set_bridge(ADMIN, BRIDGE)
        self.vault.set_treasury(ADMIN, TREASURY)

    def open_window(self):
        self.clock.set(max(self.clock.now(), WINDOW_START))

    def deposit(self, account: str, amount: int) -> int:
        self.open_window()
        self.principal.mint(account, amount)
        return self.vault.deposit(account, amount, account)

    def to_kyc(self, approved=()):
        self.vault.advance_mode(ADMIN, Mode.KYC)
        if approved:
            self.vault.set_kyc_batch(ADMIN, list(approved), True)

    def to_yield(self):
        self.vault.advance_mode(ADMIN, Mode.YIELD)

    def to_withdraw(self):
        self.vault.advance_mode(ADMIN, Mode.WITHDRAW)

    def settle(self, amount: int):
        """Treasury returns settlement asset into custody."""
        self.settlement.mint(VAULT, amount)

    def to_recovery(self):
        self.clock.set(max(self.clock.now(), self.vault.recovery_timestamp))
        self.vault.force_recovery("0xanyone")

    def check(self):
        validate_vault(self.vault, raise_on_error=True)


@pytest.fixture
def harness():
    return Harness()


@pytest.fixture
def vault(harness):
    return harness.vault
