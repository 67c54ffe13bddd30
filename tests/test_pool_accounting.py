"""Tests for cohort accounting: KYC registry, reallocation batches, deposits and deployment."""

import pytest

from conftest import ADMIN, CAP, OPERATOR, T0, TREASURY, VAULT, Harness
from kycvault.engine import (
    ZERO_ADDRESS,
    AccountingUnderflow,
    DepositWindowClosed,
    InsufficientBalance,
    InvalidArgument,
    InvalidMode,
    KycRegistry,
    Mode,
    NoOpRejected,
    PhaseError,
    PoolAccounting,
    PoolState,
    Unauthorized,
)
from kycvault.engine.events import CohortReallocated, KycStatusChanged


class TestKycRegistry:
    """Approval flags and no-op rejection."""

    def test_default_not_approved(self):
        assert KycRegistry().is_approved("0xalice") is False

    def test_set_and_clear(self):
        registry = KycRegistry()
        registry.set_approved("0xalice", True)
        assert registry.is_approved("0xalice")
        registry.set_approved("0xalice", False)
        assert not registry.is_approved("0xalice")

    def test_idempotent_write_rejected(self):
        """Setting a flag to its current value is an error, not a silent success."""
        registry = KycRegistry()
        with pytest.raises(NoOpRejected):
            registry.set_approved("0xalice", False)
        registry.set_approved("0xalice", True)
        with pytest.raises(NoOpRejected):
            registry.set_approved("0xalice", True)

    def test_zero_address_rejected(self):
        with pytest.raises(InvalidArgument):
            KycRegistry().set_approved(ZERO_ADDRESS, True)


class TestPoolAccounting:
    """Arithmetic on cohort totals."""

    def test_approve_moves_balance(self):
        pool = PoolAccounting(PoolState(shares_non_kyc=1_500))
        state = pool.approve(1_000)
        assert state == PoolState(shares_non_kyc=500, shares_kyc=1_000, usdc_kyc_deployable=1_000)

    def test_unapprove_reverses(self):
        pool = PoolAccounting(PoolState(shares_non_kyc=500, shares_kyc=1_000, usdc_kyc_deployable=1_000))
        assert pool.unapprove(1_000) == PoolState(shares_non_kyc=1_500)

    def test_unapprove_after_deployment_fails_closed(self):
        """Un-approval cannot pull back principal that has left custody."""
        pool = PoolAccounting(PoolState(shares_kyc=1_000, usdc_kyc_deployable=1_000))
        pool.record_deployment(600)
        before = pool.state
        with pytest.raises(AccountingUnderflow) as exc_info:
            pool.unapprove(1_000)
        assert exc_info.value.field == 'usdc_kyc_deployable'
        assert exc_info.value.available == 400
        assert pool.state == before

    def test_conservation_validation(self):
        state = PoolState(shares_non_kyc=300, shares_kyc=700)
        assert state.validate_conservation(1_000) == (True, None)
        is_valid, error = state.validate_conservation(999)
        assert is_valid is False
        assert "conservation" in error

    def test_custody_validation(self):
        state = PoolState(usdc_kyc_deployable=100)
        assert state.validate_custody(100)[0] is True
        assert state.validate_custody(99)[0] is False

    def test_committed_principal(self):
        assert PoolState(shares_non_kyc=30, shares_kyc=70, usdc_kyc_deployable=20).committed_principal == 50


class TestDeposit:
    """Deposit path: window, cap, 1:1 mint."""

    def test_window_scenario(self, harness):
        """Window (T+10, T+20): early fails, over-cap fails, within-cap mints 1:1."""
        vault = harness.vault
        vault.set_deposit_window(ADMIN, T0 + 10, T0 + 20)
        harness.principal.mint("0xalice", CAP * 2)

        harness.clock.set(T0 + 5)
        with pytest.raises(DepositWindowClosed) as exc_info:
            vault.deposit("0xalice", 100, "0xalice")
        assert isinstance(exc_info.value, PhaseError)

        harness.clock.set(T0 + 15)
        with pytest.raises(InvalidArgument) as exc_info:
            vault.deposit("0xalice", CAP + 1, "0xalice")
        assert exc_info.value.field == "amount"

        assert vault.deposit("0xalice", 400, "0xbob") == 400
        assert vault.balance_of("0xbob") == 400
        assert vault.shares_non_kyc == 400
        assert harness.principal.balance_of(VAULT) == 400
        assert harness.principal.balance_of("0xalice") == CAP * 2 - 400
        harness.check()

    def test_window_closes_after_end(self, harness):
        harness.deposit("0xalice", 10)
        harness.clock.set(harness.vault.deposit_window[1] + 1)
        harness.principal.mint("0xalice", 10)
        with pytest.raises(DepositWindowClosed):
            harness.vault.deposit("0xalice", 10, "0xalice")

    def test_cap_counts_existing_commitments(self, harness):
        harness.deposit("0xalice", CAP - 100)
        assert harness.vault.max_deposit() == 100
        harness.principal.mint("0xbob", 101)
        with pytest.raises(InvalidArgument):
            harness.vault.deposit("0xbob", 101, "0xbob")
        harness.vault.deposit("0xbob", 100, "0xbob")
        assert harness.vault.max_deposit() == 0

    def test_zero_amount_and_zero_receiver(self, harness):
        harness.open_window()
        harness.principal.mint("0xalice", 10)
        with pytest.raises(InvalidArgument):
            harness.vault.deposit("0xalice", 0, "0xalice")
        with pytest.raises(InvalidArgument):
            harness.vault.deposit("0xalice", 10, ZERO_ADDRESS)

    def test_deposit_only_in_deposit_mode(self, harness):
        harness.deposit("0xalice", 10)
        harness.to_kyc()
        harness.principal.mint("0xalice", 10)
        with pytest.raises(InvalidMode):
            harness.vault.deposit("0xalice", 10, "0xalice")
        assert harness.vault.max_deposit() == 0

    def test_failed_pull_leaves_no_trace(self, harness):
        """Depositor without funds: nothing minted, totals unchanged."""
        harness.open_window()
        with pytest.raises(InsufficientBalance):
            harness.vault.deposit("0xbroke", 50, "0xbroke")
        assert harness.vault.total_supply == 0
        assert harness.vault.shares_non_kyc == 0


class TestDepositPolicies:
    """Admin configuration of window and cap."""

    def test_window_must_be_in_future(self, harness):
        with pytest.raises(InvalidArgument):
            harness.vault.set_deposit_window(ADMIN, T0, T0 + 10)
        with pytest.raises(InvalidArgument):
            harness.vault.set_deposit_window(ADMIN, T0 + 20, T0 + 20)

    def test_after_start_only_end_moves(self, harness):
        harness.open_window()
        start, end = harness.vault.deposit_window
        with pytest.raises(InvalidArgument):
            harness.vault.set_deposit_window(ADMIN, start + 5, end)
        harness.vault.set_deposit_window(ADMIN, start, end + 500)
        assert harness.vault.deposit_window == (start, end + 500)

    def test_after_start_end_not_in_past(self, harness):
        harness.clock.set(T0 + 500)
        start, _ = harness.vault.deposit_window
        with pytest.raises(InvalidArgument):
            harness.vault.set_deposit_window(ADMIN, start, T0 + 400)

    def test_cap_bounds(self, harness):
        harness.deposit("0xalice", 1_000)
        with pytest.raises(InvalidArgument):
            harness.vault.set_deposit_cap(ADMIN, 0)
        with pytest.raises(InvalidArgument):
            harness.vault.set_deposit_cap(ADMIN, 999)
        harness.vault.set_deposit_cap(ADMIN, 1_000)
        assert harness.vault.deposit_cap == 1_000

    def test_policies_require_admin(self, harness):
        with pytest.raises(Unauthorized):
            harness.vault.set_deposit_cap("0xmallory", 5)
        with pytest.raises(Unauthorized):
            harness.vault.set_deposit_window("0xmallory", T0 + 50, T0 + 60)


class TestReallocation:
    """KYC-driven cohort moves."""

    def test_approve_account_with_1000(self, harness):
        """Approving a 1000-share account moves 1000 across every total; repeating fails."""
        harness.deposit("0xalice", 1_000)
        harness.deposit("0xbob", 250)
        harness.to_kyc()
        vault = harness.vault

        assert vault.set_kyc_batch(ADMIN, ["0xalice"], True) == 1_000
        assert vault.shares_non_kyc == 250
        assert vault.shares_kyc == 1_000
        assert vault.usdc_kyc_deployable == 1_000
        harness.check()

        with pytest.raises(NoOpRejected):
            vault.set_kyc_batch(ADMIN, ["0xalice"], True)
        assert vault.shares_kyc == 1_000

    def test_unapprove_restores(self, harness):
        harness.deposit("0xalice", 1_000)
        harness.to_kyc(["0xalice"])
        harness.vault.set_kyc_batch(ADMIN, ["0xalice"], False)
        assert harness.vault.shares_non_kyc == 1_000
        assert harness.vault.shares_kyc == 0
        assert harness.vault.usdc_kyc_deployable == 0
        assert not harness.vault.is_approved("0xalice")
        harness.check()

    def test_batch_is_atomic(self, harness):
        """A failing element undoes the elements before it."""
        harness.deposit("0xalice", 100)
        harness.deposit("0xbob", 200)
        harness.to_kyc()
        events_before = len(harness.vault.events)

        with pytest.raises(NoOpRejected):
            harness.vault.set_kyc_batch(ADMIN, ["0xalice", "0xbob", "0xcarol"], True)

        assert not harness.vault.is_approved("0xalice")
        assert not harness.vault.is_approved("0xbob")
        assert harness.vault.shares_kyc == 0
        assert harness.vault.shares_non_kyc == 300
        assert len(harness.vault.events) == events_before

    def test_duplicate_in_batch_rejected(self, harness):
        harness.deposit("0xalice", 100)
        harness.to_kyc()
        with pytest.raises(NoOpRejected):
            harness.vault.set_kyc_batch(ADMIN, ["0xalice", "0xalice"], True)
        assert harness.vault.shares_kyc == 0

    def test_empty_and_oversized_batches(self, harness):
        harness.to_kyc()
        with pytest.raises(InvalidArgument):
            harness.vault.set_kyc_batch(ADMIN, [], True)
        with pytest.raises(InvalidArgument):
            harness.vault.set_kyc_batch(ADMIN, [f"0x{i}" for i in range(101)], True)

    def test_batch_of_100_accepted(self, harness):
        accounts = [f"0xholder{i}" for i in range(100)]
        for account in accounts:
            harness.deposit(account, 7)
        harness.to_kyc()
        assert harness.vault.set_kyc_batch(ADMIN, accounts, True) == 700
        assert len(harness.vault.events.of_type(KycStatusChanged)) == 100
        assert harness.vault.events.of_type(CohortReallocated)[-1].shares_moved == 700
        harness.check()

    def test_zero_address_in_batch(self, harness):
        harness.deposit("0xalice", 100)
        harness.to_kyc()
        with pytest.raises(InvalidArgument):
            harness.vault.set_kyc_batch(ADMIN, ["0xalice", ZERO_ADDRESS], True)
        assert harness.vault.shares_kyc == 0

    def test_only_in_kyc_mode_and_by_admin(self, harness):
        harness.deposit("0xalice", 100)
        with pytest.raises(InvalidMode):
            harness.vault.set_kyc_batch(ADMIN, ["0xalice"], True)
        harness.to_kyc()
        with pytest.raises(Unauthorized):
            harness.vault.set_kyc_batch("0xmallory", ["0xalice"], True)


class TestTreasuryDeployment:
    """Sending approved principal to the treasury."""

    def _setup(self) -> Harness:
        h = Harness()
        h.deposit("0xalice", 1_000)
        h.deposit("0xbob", 500)
        h.to_kyc(["0xalice"])
        h.to_yield()
        return h

    def test_deploy(self):
        h = self._setup()
        h.vault.deploy_to_treasury(OPERATOR, 600)
        assert h.vault.usdc_kyc_deployable == 400
        assert h.principal.balance_of(TREASURY) == 600
        assert h.vault.principal_held() == 900
        h.check()

    def test_cannot_touch_non_kyc_principal(self):
        """Deployable pool caps deployment even though more principal is held."""
        h = self._setup()
        with pytest.raises(InsufficientBalance) as exc_info:
            h.vault.deploy_to_treasury(OPERATOR, 1_001)
        assert exc_info.value.available == 1_000
        assert h.vault.principal_held() == 1_500

    def test_requires_treasury_role_and_yield_mode(self):
        h = self._setup()
        with pytest.raises(Unauthorized):
            h.vault.deploy_to_treasury(ADMIN, 10)
        h.to_withdraw()
        with pytest.raises(InvalidMode):
            h.vault.deploy_to_treasury(OPERATOR, 10)

    def test_requires_configured_treasury(self):
        h = Harness()
        h.vault._collaborators.treasury = None
        h.deposit("0xalice", 100)
        h.to_kyc(["0xalice"])
        h.to_yield()
        with pytest.raises(InvalidArgument):
            h.vault.deploy_to_treasury(OPERATOR, 10)

    def test_zero_amount(self):
        h = self._setup()
        with pytest.raises(InvalidArgument):
            h.vault.deploy_to_treasury(OPERATOR, 0)

    def test_checks_actual_custody(self):
        """A deployable figure larger than real custody is refused."""
        h = self._setup()
        h.principal.restore({VAULT: 300})
        with pytest.raises(InsufficientBalance) as exc_info:
            h.vault.deploy_to_treasury(OPERATOR, 500)
        assert exc_info.value.field == "principal held"

    def test_unapprove_not_possible_after_yield(self):
        h = self._setup()
        with pytest.raises(InvalidMode):
            h.vault.set_kyc_batch(ADMIN, ["0xalice"], False)
        assert h.vault.mode == Mode.YIELD
