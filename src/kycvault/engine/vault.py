"""The vault engine.

Accepts the principal asset from depositors, keeps approved (KYC) and
non-approved holders in separate cohorts, deploys only approved principal
to the treasury and pays the approved cohort out of the settlement asset.
Non-approved holders can always exit 1:1.

All collaborators are injected; every mutating operation takes the caller
identity explicitly and runs as a single all-or-nothing unit of work.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .access import AccessControl, Role
from .accounting import PoolAccounting, PoolState
from .assets import AssetLedger
from .clock import SECONDS_PER_DAY, Clock
from .errors import (
    DepositWindowClosed,
    InsufficientBalance,
    InvalidArgument,
    NoOpRejected,
    RecoveryForbiddenAsset,
    TransferForbidden,
    Unauthorized,
)
from .events import (
    BridgeUpdated,
    CohortReallocated,
    DepositCapUpdated,
    Deposited,
    DepositWindowUpdated,
    EventLog,
    KycStatusChanged,
    ModeChanged,
    Redeemed,
    RoleChanged,
    Swept,
    Transferred,
    TreasuryDeployed,
    TreasuryUpdated,
)
from .guard import UnitOfWork, mutating
from .kyc import KycRegistry
from .phase import Mode, PhaseController
from .policies import DepositCap, DepositWindow
from .redemption import RecoveryQuote, quote_bridge, quote_recovery
from .shares import ZERO_ADDRESS, ShareLedger

logger = logging.getLogger(__name__)

DEFAULT_RECOVERY_DELAY = 180 * SECONDS_PER_DAY
MAX_BATCH_SIZE = 100

BRIDGE = "bridge"
KYC_COHORT = "kyc cohort"
NON_KYC_COHORT = "non-kyc cohort"


@dataclass(frozen=True)
class VaultSnapshot:
    """Observable vault totals at one instant."""
    timestamp: int
    mode: Mode
    shares_non_kyc: int
    shares_kyc: int
    usdc_kyc_deployable: int
    total_supply: int
    principal_held: int
    settlement_held: int
    approved_accounts: int

    def to_dict(self) -> dict:
        return {
            't': self.timestamp,
            'mode': self.mode.name,
            'shares_non_kyc': self.shares_non_kyc,
            'shares_kyc': self.shares_kyc,
            'usdc_kyc_deployable': self.usdc_kyc_deployable,
            'total_supply': self.total_supply,
            'principal_held': self.principal_held,
            'settlement_held': self.settlement_held,
            'approved_accounts': self.approved_accounts,
        }


class _Collaborators:
    """Configured bridge and treasury identities."""

    def __init__(self):
        self.bridge: Optional[str] = None
        self.treasury: Optional[str] = None

    def snapshot(self) -> tuple:
        return self.bridge, self.treasury

    def restore(self, snapshot: tuple) -> None:
        self.bridge, self.treasury = snapshot


class Vault:
    """Phase-gated dual-pool vault."""

    def __init__(
        self,
        principal: AssetLedger,
        settlement: AssetLedger,
        access: AccessControl,
        clock: Clock,
        address: str = "kycvault",
        recovery_delay: int = DEFAULT_RECOVERY_DELAY,
        max_batch_size: int = MAX_BATCH_SIZE,
        share_symbol: str = "kvSHARE",
    ):
        """
        Initialize the vault.

        Args:
            principal: Asset accepted at deposit
            settlement: Asset paid to the approved cohort at exit
            access: Role table
            clock: Time source, read at call time
            address: Custody identity of the vault on both asset ledgers
            recovery_delay: Seconds after creation when anyone may force RECOVERY
            max_batch_size: Upper bound on accounts per reallocation batch
            share_symbol: Symbol of the ownership unit
        """
        if principal is settlement:
            raise InvalidArgument("settlement", "settlement asset must differ from principal asset")
        self.principal = principal
        self.settlement = settlement
        self.access = access
        self.clock = clock
        self.address = address
        self.max_batch_size = max_batch_size
        self.created_at = clock.now()

        self.phase = PhaseController(recovery_timestamp=self.created_at + recovery_delay)
        self.pool = PoolAccounting()
        self.kyc = KycRegistry()
        self.shares = ShareLedger(symbol=share_symbol, transfer_hook=self._check_transfer)
        self.window = DepositWindow()
        self.cap = DepositCap()
        self.events = EventLog()
        self._collaborators = _Collaborators()
        self._uow = UnitOfWork()

    def _participants(self) -> list:
        return [
            self.phase, self.pool, self.kyc, self.shares, self.window, self.cap,
            self.access, self.events, self._collaborators, self.principal, self.settlement,
        ]

    # ------------------------------------------------------------------
    # Read surface
    # ------------------------------------------------------------------

    @property
    def mode(self) -> Mode:
        return self.phase.mode

    @property
    def recovery_timestamp(self) -> int:
        return self.phase.recovery_timestamp

    @property
    def shares_non_kyc(self) -> int:
        return self.pool.shares_non_kyc

    @property
    def shares_kyc(self) -> int:
        return self.pool.shares_kyc

    @property
    def usdc_kyc_deployable(self) -> int:
        return self.pool.usdc_kyc_deployable

    @property
    def pool_state(self) -> PoolState:
        return self.pool.state

    @property
    def bridge(self) -> Optional[str]:
        return self._collaborators.bridge

    @property
    def treasury(self) -> Optional[str]:
        return self._collaborators.treasury

    @property
    def deposit_cap(self) -> int:
        return self.cap.cap

    @property
    def deposit_window(self) -> tuple:
        return self.window.start, self.window.end

    @property
    def total_supply(self) -> int:
        return self.shares.total_supply

    def balance_of(self, account: str) -> int:
        return self.shares.balance_of(account)

    def allowance(self, owner: str, spender: str) -> int:
        return self.shares.allowance(owner, spender)

    def is_approved(self, account: str) -> bool:
        return self.kyc.is_approved(account)

    def in_kyc_cohort(self, account: str) -> bool:
        """Approved accounts plus the bridge, which only ever holds approved units."""
        return self.kyc.is_approved(account) or (
            self.bridge is not None and account == self.bridge
        )

    def is_deposit_open(self) -> bool:
        return self.mode == Mode.DEPOSIT and self.window.is_open(self.clock.now())

    def max_deposit(self) -> int:
        """Remaining deposit room right now (0 if deposits are not accepted)."""
        if not self.is_deposit_open():
            return 0
        return self.cap.allowed(self.pool.shares_non_kyc)

    def principal_held(self) -> int:
        return self.principal.balance_of(self.address)

    def settlement_held(self) -> int:
        return self.settlement.balance_of(self.address)

    def preview_recovery(self, shares: int) -> RecoveryQuote:
        """Payout legs a terminal-recovery exit of `shares` would receive now."""
        return quote_recovery(
            shares,
            self.pool.shares_kyc,
            self.settlement_held(),
            self.pool.usdc_kyc_deployable,
        )

    def preview_for_caller(self, caller: str, shares: int) -> int:
        """
        Bridge-facing quote: settlement asset for `shares` of the caller's own holding.

        Applies the bridge exit's eligibility checks without moving anything.
        """
        self.phase.require(Mode.WITHDRAW)
        self._require_bridge(caller)
        self._require_cohort(caller, kyc=True)
        _require_positive("shares", shares)
        balance = self.shares.balance_of(caller)
        if shares > balance:
            raise InsufficientBalance(f"shares of {caller}", balance, shares)
        payout = quote_bridge(shares, self.pool.shares_kyc, self.settlement_held())
        if payout == 0:
            raise InvalidArgument("shares", "settlement payout rounds to zero", shares)
        return payout

    def snapshot_state(self) -> VaultSnapshot:
        return VaultSnapshot(
            timestamp=self.clock.now(),
            mode=self.mode,
            shares_non_kyc=self.pool.shares_non_kyc,
            shares_kyc=self.pool.shares_kyc,
            usdc_kyc_deployable=self.pool.usdc_kyc_deployable,
            total_supply=self.shares.total_supply,
            principal_held=self.principal_held(),
            settlement_held=self.settlement_held(),
            approved_accounts=len(self.kyc.approved_accounts()),
        )

    # ------------------------------------------------------------------
    # Phase control
    # ------------------------------------------------------------------

    @mutating
    def advance_mode(self, caller: str, target: Mode) -> Mode:
        """Admin-driven forward step. Returns the previous mode."""
        self.access.require(Role.ADMIN, caller)
        previous = self.phase.advance(target)
        self.events.emit(ModeChanged(self.clock.now(), previous, target))
        return previous

    @mutating
    def force_recovery(self, caller: str) -> Mode:
        """Permissionless terminal transition once the recovery timestamp has passed."""
        now = self.clock.now()
        previous = self.phase.force_recovery(now)
        logger.warning("recovery forced by %s", caller)
        self.events.emit(ModeChanged(now, previous, Mode.RECOVERY))
        return previous

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    @mutating
    def set_deposit_window(self, caller: str, start: int, end: int) -> None:
        self.access.require(Role.ADMIN, caller)
        now = self.clock.now()
        self.window.update(start, end, now)
        logger.info("deposit window set to [%d, %d]", start, end)
        self.events.emit(DepositWindowUpdated(now, start, end))

    @mutating
    def set_deposit_cap(self, caller: str, cap: int) -> None:
        self.access.require(Role.ADMIN, caller)
        self.cap.update(cap, self.pool.shares_non_kyc)
        logger.info("deposit cap set to %d", cap)
        self.events.emit(DepositCapUpdated(self.clock.now(), cap))

    @mutating
    def set_bridge(self, caller: str, bridge: str) -> None:
        self.access.require(Role.ADMIN, caller)
        _require_address("bridge", bridge)
        previous = self._collaborators.bridge
        if previous == bridge:
            raise NoOpRejected(bridge, "already the bridge")
        # The bridge is classified into the KYC cohort, so it may not carry units across a change
        for account in (previous, bridge):
            if account is not None and self.shares.balance_of(account) > 0:
                raise InvalidArgument(
                    "bridge", f"{account} holds shares; bridge cannot change", account
                )
        self._collaborators.bridge = bridge
        logger.info("bridge %s -> %s", previous, bridge)
        self.events.emit(BridgeUpdated(self.clock.now(), previous, bridge))

    @mutating
    def set_treasury(self, caller: str, treasury: str) -> None:
        self.access.require(Role.ADMIN, caller)
        _require_address("treasury", treasury)
        previous = self._collaborators.treasury
        if previous == treasury:
            raise NoOpRejected(treasury, "already the treasury")
        self._collaborators.treasury = treasury
        logger.info("treasury %s -> %s", previous, treasury)
        self.events.emit(TreasuryUpdated(self.clock.now(), previous, treasury))

    @mutating
    def grant_role(self, caller: str, role: Role, account: str) -> None:
        self.access.require(Role.ADMIN, caller)
        if not self.access.grant(role, account):
            raise NoOpRejected(account, f"already holds {role.name}")
        self.events.emit(RoleChanged(self.clock.now(), role, account, True))

    @mutating
    def revoke_role(self, caller: str, role: Role, account: str) -> None:
        self.access.require(Role.ADMIN, caller)
        if not self.access.revoke(role, account):
            raise NoOpRejected(account, f"does not hold {role.name}")
        self.events.emit(RoleChanged(self.clock.now(), role, account, False))

    # ------------------------------------------------------------------
    # Deposit
    # ------------------------------------------------------------------

    @mutating
    def deposit(self, caller: str, amount: int, receiver: str) -> int:
        """
        Deposit principal and mint shares 1:1 to `receiver`.

        Returns:
            Shares minted
        """
        self.phase.require(Mode.DEPOSIT)
        now = self.clock.now()
        if not self.window.is_open(now):
            raise DepositWindowClosed(now, self.window.start, self.window.end)
        _require_positive("amount", amount)
        _require_address("receiver", receiver)
        if self.bridge is not None and receiver == self.bridge:
            # The bridge is classified into the KYC cohort and may only hold approved units
            raise InvalidArgument("receiver", "bridge cannot receive non-kyc shares", receiver)
        allowed = self.cap.allowed(self.pool.shares_non_kyc)
        if amount > allowed:
            raise InvalidArgument("amount", f"exceeds max deposit {allowed}", amount)

        self.principal.transfer_into(caller, self.address, amount)
        self.pool.record_deposit(amount)
        self.shares.mint(receiver, amount)
        logger.info("deposit %d from %s for %s", amount, caller, receiver)
        self.events.emit(Deposited(now, caller, receiver, amount))
        return amount

    # ------------------------------------------------------------------
    # Cohort reallocation
    # ------------------------------------------------------------------

    @mutating
    def set_kyc_batch(self, caller: str, accounts: Sequence[str], approved: bool) -> int:
        """
        Move each account's full balance into (or out of) the KYC cohort.

        The batch is all-or-nothing: any failing account aborts every change.

        Returns:
            Total shares moved between cohorts
        """
        self.access.require(Role.ADMIN, caller)
        self.phase.require(Mode.KYC)
        accounts = list(accounts)
        if not accounts:
            raise InvalidArgument("accounts", "batch is empty", accounts)
        if len(accounts) > self.max_batch_size:
            raise InvalidArgument(
                "accounts", f"batch of {len(accounts)} exceeds limit {self.max_batch_size}",
                len(accounts),
            )

        now = self.clock.now()
        moved = 0
        for account in accounts:
            _require_address("account", account)
            balance = self.shares.balance_of(account)
            if balance == 0:
                raise NoOpRejected(account, "no shares to reallocate")
            self.kyc.set_approved(account, approved)
            if approved:
                self.pool.approve(balance)
            else:
                self.pool.unapprove(balance)
            moved += balance
            self.events.emit(KycStatusChanged(now, account, approved))

        logger.info(
            "%s %d accounts (%d shares)", "approved" if approved else "unapproved",
            len(accounts), moved,
        )
        self.events.emit(CohortReallocated(now, tuple(accounts), approved, moved))
        return moved

    # ------------------------------------------------------------------
    # Treasury
    # ------------------------------------------------------------------

    @mutating
    def deploy_to_treasury(self, caller: str, amount: int) -> None:
        """Send approved-cohort principal to the treasury."""
        self.access.require(Role.TREASURY, caller)
        self.phase.require(Mode.YIELD)
        treasury = self._collaborators.treasury
        if treasury is None:
            raise InvalidArgument("treasury", "treasury is not configured")
        _require_positive("amount", amount)
        deployable = self.pool.usdc_kyc_deployable
        if amount > deployable:
            raise InsufficientBalance("deployable principal", deployable, amount)
        held = self.principal_held()
        if amount > held:
            raise InsufficientBalance("principal held", held, amount)

        self.pool.record_deployment(amount)
        self.principal.transfer_out(self.address, treasury, amount)
        logger.info("deployed %d to treasury %s", amount, treasury)
        self.events.emit(TreasuryDeployed(self.clock.now(), treasury, amount))

    # ------------------------------------------------------------------
    # Redemption
    # ------------------------------------------------------------------

    @mutating
    def redeem_non_kyc(self, caller: str, shares: int, receiver: str, owner: str) -> int:
        """
        1:1 principal exit for the non-KYC cohort, open in every mode.

        Returns:
            Principal paid
        """
        self._require_cohort(owner, kyc=False)
        self._prepare_redeem(caller, shares, receiver, owner)

        self.pool.record_non_kyc_redemption(shares)
        self.shares.burn(owner, shares)
        self.principal.transfer_out(self.address, receiver, shares)
        logger.info("non-kyc redeem %d shares of %s to %s", shares, owner, receiver)
        self.events.emit(Redeemed(
            self.clock.now(), "non_kyc", caller, owner, receiver, shares, principal_paid=shares,
        ))
        return shares

    @mutating
    def redeem_recovery(self, caller: str, shares: int, receiver: str, owner: str) -> RecoveryQuote:
        """
        Terminal-recovery exit for the KYC cohort.

        Pays a pro-rata slice of the settlement balance and of the undeployed
        principal, each rounded down.
        """
        self.phase.require(Mode.RECOVERY)
        self._require_cohort(owner, kyc=True)
        self._prepare_redeem(caller, shares, receiver, owner)

        quote = self.preview_recovery(shares)
        self.pool.record_kyc_redemption(shares, quote.principal)
        self.shares.burn(owner, shares)
        if quote.settlement > 0:
            self.settlement.transfer_out(self.address, receiver, quote.settlement)
        if quote.principal > 0:
            self.principal.transfer_out(self.address, receiver, quote.principal)
        if quote.is_empty:
            logger.warning("recovery redeem of %d shares by %s paid nothing", shares, owner)
        else:
            logger.info(
                "recovery redeem %d shares of %s: settlement=%d principal=%d",
                shares, owner, quote.settlement, quote.principal,
            )
        self.events.emit(Redeemed(
            self.clock.now(), "recovery", caller, owner, receiver, shares,
            principal_paid=quote.principal, settlement_paid=quote.settlement,
        ))
        return quote

    @mutating
    def redeem_bridge(self, caller: str, shares: int, receiver: str, owner: str) -> int:
        """
        Bridge-mediated settlement exit for the KYC cohort during WITHDRAW.

        Returns:
            Settlement asset paid
        """
        self.phase.require(Mode.WITHDRAW)
        self._require_bridge(caller)
        self._require_cohort(owner, kyc=True)
        self._prepare_redeem(caller, shares, receiver, owner)

        payout = quote_bridge(shares, self.pool.shares_kyc, self.settlement_held())
        if payout == 0:
            raise InvalidArgument("shares", "settlement payout rounds to zero", shares)
        self.pool.record_kyc_redemption(shares)
        self.shares.burn(owner, shares)
        self.settlement.transfer_out(self.address, receiver, payout)
        logger.info("bridge redeem %d shares of %s: settlement=%d", shares, owner, payout)
        self.events.emit(Redeemed(
            self.clock.now(), "bridge", caller, owner, receiver, shares, settlement_paid=payout,
        ))
        return payout

    # ------------------------------------------------------------------
    # Share transfers
    # ------------------------------------------------------------------

    @mutating
    def approve(self, caller: str, spender: str, amount: int) -> None:
        self.shares.approve(caller, spender, amount)

    @mutating
    def transfer(self, caller: str, to: str, amount: int) -> None:
        self._transfer(caller, to, amount)

    @mutating
    def transfer_from(self, caller: str, owner: str, to: str, amount: int) -> None:
        self.shares.spend_allowance(owner, caller, amount)
        self._transfer(owner, to, amount)

    def _transfer(self, sender: str, to: str, amount: int) -> None:
        _require_positive("amount", amount)
        self.shares.transfer(sender, to, amount)
        logger.info("transfer %d shares %s -> %s", amount, sender, to)
        self.events.emit(Transferred(self.clock.now(), sender, to, amount))

    def _check_transfer(self, sender: str, to: str, amount: int) -> None:
        """Veto hook: units move only from an approved holder to the bridge during WITHDRAW."""
        allowed = (
            sender != ZERO_ADDRESS
            and to != ZERO_ADDRESS
            and self.mode == Mode.WITHDRAW
            and self.kyc.is_approved(sender)
            and self.bridge is not None
            and to == self.bridge
        )
        if not allowed:
            raise TransferForbidden(sender, to, amount)

    # ------------------------------------------------------------------
    # Stray assets
    # ------------------------------------------------------------------

    def sweepable(self, asset: AssetLedger) -> int:
        """Amount of `asset` not owed to either cohort."""
        if asset is self.settlement:
            return 0
        held = asset.balance_of(self.address)
        if asset is self.principal:
            return max(held - self.pool.state.committed_principal, 0)
        return held

    @mutating
    def sweep(self, caller: str, asset: AssetLedger, to: str) -> int:
        """Send stray holdings of `asset` to `to`. Returns the amount swept."""
        self.access.require(Role.ADMIN, caller)
        if asset is self.settlement:
            raise RecoveryForbiddenAsset(asset.symbol)
        _require_address("to", to)
        amount = self.sweepable(asset)
        if amount == 0:
            raise InvalidArgument("asset", f"no sweepable {asset.symbol}", asset.symbol)
        asset.transfer_out(self.address, to, amount)
        logger.info("swept %d %s to %s", amount, asset.symbol, to)
        self.events.emit(Swept(self.clock.now(), asset.symbol, to, amount))
        return amount

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _require_bridge(self, caller: str) -> None:
        if self.bridge is None or caller != self.bridge:
            raise Unauthorized(caller, BRIDGE)

    def _require_cohort(self, owner: str, kyc: bool) -> None:
        if self.in_kyc_cohort(owner) != kyc:
            raise Unauthorized(owner, KYC_COHORT if kyc else NON_KYC_COHORT)

    def _prepare_redeem(self, caller: str, shares: int, receiver: str, owner: str) -> None:
        _require_positive("shares", shares)
        _require_address("receiver", receiver)
        _require_address("owner", owner)
        balance = self.shares.balance_of(owner)
        if shares > balance:
            raise InsufficientBalance(f"shares of {owner}", balance, shares)
        self.shares.spend_allowance(owner, caller, shares)


def _require_positive(field: str, amount: int) -> None:
    if amount <= 0:
        raise InvalidArgument(field, "must be positive", amount)


def _require_address(field: str, account: Optional[str]) -> None:
    if not account or account == ZERO_ADDRESS:
        raise InvalidArgument(field, "zero address", account)


def holders_by_cohort(vault: Vault) -> tuple:
    """(non-KYC holders, KYC holders) as account -> balance maps."""
    non_kyc, kyc = {}, {}
    for account, balance in vault.shares.holders().items():
        (kyc if vault.in_kyc_cohort(account) else non_kyc)[account] = balance
    return non_kyc, kyc
