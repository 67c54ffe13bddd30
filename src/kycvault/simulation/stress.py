"""Randomized lifecycle simulation for conservation checking.

Each run drives a population of depositors through every phase (deposits,
early 1:1 exits, KYC approval with occasional reversals, treasury deployment,
settlement return, bridge exits, forced recovery and terminal exits) and
checks the vault's invariants after every operation.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from ..config.schema import VaultConfig
from ..engine.access import Role
from ..engine.errors import VaultError
from ..engine.phase import Mode
from ..engine.vault import VaultSnapshot
from ..factory import Deployment, build_vault
from ..validation.sanity_checks import InvariantChecker

logger = logging.getLogger(__name__)

SIM_BRIDGE = "0xsim-bridge"
SIM_TREASURY = "0xsim-treasury"
SIM_OPERATOR = "0xsim-treasury-operator"


@dataclass
class Ledger:
    """Running totals of value that crossed the vault boundary."""
    principal_in: int = 0
    principal_out: int = 0
    principal_deployed: int = 0
    settlement_in: int = 0
    settlement_out: int = 0


@dataclass
class StressResult:
    """Outcome of one randomized lifecycle."""
    seed: int
    snapshots: List[VaultSnapshot]
    ledger: Ledger
    operations: int
    rejected: int
    invariant_errors: List[str] = field(default_factory=list)
    final_principal_held: int = 0
    final_settlement_held: int = 0

    @property
    def principal_conserved(self) -> bool:
        """Principal in == principal out + deployed + still held."""
        return self.ledger.principal_in == (
            self.ledger.principal_out + self.ledger.principal_deployed + self.final_principal_held
        )

    @property
    def settlement_conserved(self) -> bool:
        return self.ledger.settlement_in == self.ledger.settlement_out + self.final_settlement_held

    @property
    def passed(self) -> bool:
        return not self.invariant_errors and self.principal_conserved and self.settlement_conserved

    def summary(self) -> Dict[str, Any]:
        return {
            'seed': self.seed,
            'operations': self.operations,
            'rejected': self.rejected,
            'principal_in': self.ledger.principal_in,
            'principal_out': self.ledger.principal_out,
            'principal_deployed': self.ledger.principal_deployed,
            'settlement_in': self.ledger.settlement_in,
            'settlement_out': self.ledger.settlement_out,
            'principal_dust': self.final_principal_held,
            'settlement_dust': self.final_settlement_held,
            'invariant_errors': len(self.invariant_errors),
            'passed': self.passed,
        }


class StressSimulator:
    """Run randomized lifecycles against fresh vaults."""

    def __init__(self, config: VaultConfig):
        """
        Initialize stress simulator.

        Args:
            config: Base configuration; the `simulation` section drives behaviour
        """
        self.config = config

    def run(self, runs: int = None, random_seed: int = None) -> List[StressResult]:
        """
        Run independent lifecycles.

        Args:
            runs: Number of runs (defaults to config value)
            random_seed: Base seed (defaults to config value); run i uses seed + i

        Returns:
            List of stress results
        """
        if runs is None:
            runs = self.config.simulation.runs
        if random_seed is None:
            random_seed = self.config.simulation.random_seed

        results = []
        for run_idx in range(runs):
            result = _Lifecycle(self.config, random_seed + run_idx).run()
            if not result.passed:
                logger.error("stress run %d failed: %s", run_idx, result.summary())
            results.append(result)
        return results


class _Lifecycle:
    """One seeded pass through every phase."""

    def __init__(self, config: VaultConfig, seed: int):
        self.sim = config.simulation
        self.seed = seed
        self.rng = np.random.default_rng(seed)
        self.deployment: Deployment = build_vault(config)
        self.vault = self.deployment.vault
        self.checker = InvariantChecker(self.vault)
        self.ledger = Ledger()
        self.snapshots: List[VaultSnapshot] = [self.vault.snapshot_state()]
        self.invariant_errors: List[str] = []
        self.operations = 0
        self.rejected = 0
        self.depositors = [f"0xdepositor{i:03d}" for i in range(self.sim.num_depositors)]
        self._ensure_collaborators()

    def run(self) -> StressResult:
        self._deposit_phase()
        self._kyc_phase()
        self._yield_phase()
        self._withdraw_phase()
        self._recovery_phase()
        return StressResult(
            seed=self.seed,
            snapshots=self.snapshots,
            ledger=self.ledger,
            operations=self.operations,
            rejected=self.rejected,
            invariant_errors=self.invariant_errors,
            final_principal_held=self.vault.principal_held(),
            final_settlement_held=self.vault.settlement_held(),
        )

    # -- phases ---------------------------------------------------------

    def _deposit_phase(self) -> None:
        window_start, _ = self.vault.deposit_window
        self.deployment.clock.set(window_start)
        for account in self.depositors:
            amount = int(self.rng.integers(self.sim.min_deposit, self.sim.max_deposit + 1))
            amount = min(amount, self.vault.max_deposit())
            if amount <= 0:
                break
            self.deployment.principal.mint(account, amount)
            if self._call(self.vault.deposit, account, amount, account) is not None:
                self.ledger.principal_in += amount

        for account in self._pick(self._holders(), self.sim.early_exit_rate):
            shares = self._fraction_of(self.vault.balance_of(account))
            if self._call(self.vault.redeem_non_kyc, account, shares, account, account) is not None:
                self.ledger.principal_out += shares

    def _kyc_phase(self) -> None:
        admin = self.deployment.admin
        self._call(self.vault.advance_mode, admin, Mode.KYC)
        approved = self._pick(self._holders(), self.sim.approval_rate)
        batch_size = self.vault.max_batch_size
        for start in range(0, len(approved), batch_size):
            self._call(self.vault.set_kyc_batch, admin, approved[start:start + batch_size], True)

        # Re-submitting a batch must be rejected as a no-op
        if approved:
            self._call(self.vault.set_kyc_batch, admin, approved[:1], True)

        # Occasionally reverse an approval
        if len(approved) > 1 and self.rng.random() < 0.5:
            self._call(self.vault.set_kyc_batch, admin, [approved[-1]], False)

    def _yield_phase(self) -> None:
        self._call(self.vault.advance_mode, self.deployment.admin, Mode.YIELD)
        amount = int(self.vault.usdc_kyc_deployable * self.sim.deploy_fraction)
        if amount > 0 and self._call(self.vault.deploy_to_treasury, SIM_OPERATOR, amount) is not None:
            self.ledger.principal_deployed += amount
            returned = int(amount * self.sim.settlement_per_principal)
            if returned > 0:
                self.deployment.settlement.mint(self.vault.address, returned)
                self.ledger.settlement_in += returned

    def _withdraw_phase(self) -> None:
        self._call(self.vault.advance_mode, self.deployment.admin, Mode.WITHDRAW)
        bridge = self.vault.bridge
        kyc_holders = [a for a in self._holders() if self.vault.is_approved(a)]
        for i, account in enumerate(self._pick(kyc_holders, self.sim.bridge_exit_rate)):
            shares = self._fraction_of(self.vault.balance_of(account))
            if i % 2 == 0:
                # Holder grants the bridge an allowance and the bridge redeems on their behalf
                self._call(self.vault.approve, account, bridge, shares)
                paid = self._call(self.vault.redeem_bridge, bridge, shares, account, account)
            else:
                # Holder moves units to the bridge, which redeems its own holding
                if self._call(self.vault.transfer, account, bridge, shares) is None:
                    continue
                paid = self._call(self.vault.redeem_bridge, bridge, shares, account, bridge)
            if paid:
                self.ledger.settlement_out += paid

        non_kyc = [a for a in self._holders() if not self.vault.in_kyc_cohort(a)]
        for account in non_kyc:
            shares = self.vault.balance_of(account)
            if self._call(self.vault.redeem_non_kyc, account, shares, account, account) is not None:
                self.ledger.principal_out += shares

    def _recovery_phase(self) -> None:
        self.deployment.clock.set(max(self.deployment.clock.now(), self.vault.recovery_timestamp))
        anyone = self.depositors[int(self.rng.integers(len(self.depositors)))]
        self._call(self.vault.force_recovery, anyone)
        for account in self._holders():
            shares = self.vault.balance_of(account)
            quote = self._call(self.vault.redeem_recovery, account, shares, account, account)
            if quote is not None:
                self.ledger.settlement_out += quote.settlement
                self.ledger.principal_out += quote.principal

    # -- helpers --------------------------------------------------------

    def _ensure_collaborators(self) -> None:
        admin = self.deployment.admin
        if self.vault.bridge is None:
            self.vault.set_bridge(admin, SIM_BRIDGE)
        if self.vault.treasury is None:
            self.vault.set_treasury(admin, SIM_TREASURY)
        if not self.vault.access.has_role(Role.TREASURY, SIM_OPERATOR):
            self.vault.grant_role(admin, Role.TREASURY, SIM_OPERATOR)

    def _call(self, operation, *args) -> Optional[Any]:
        """Run one operation; returns None (and counts it) when it is rejected."""
        self.operations += 1
        try:
            result = operation(*args)
            if result is None:
                result = True
        except VaultError as exc:
            self.rejected += 1
            logger.debug("rejected %s: %s", operation.__name__, exc)
            result = None
        self._check(operation.__name__)
        return result

    def _check(self, label: str) -> None:
        self.snapshots.append(self.vault.snapshot_state())
        for w in self.checker.check():
            if w.severity == "error":
                self.invariant_errors.append(f"after {label}: {w.category}: {w.message}")

    def _holders(self) -> List[str]:
        return [a for a in self.depositors if self.vault.balance_of(a) > 0]

    def _pick(self, accounts: List[str], rate: float) -> List[str]:
        mask = self.rng.random(len(accounts)) < rate
        return [a for a, chosen in zip(accounts, mask) if chosen]

    def _fraction_of(self, balance: int) -> int:
        """Random whole share count in [1, balance]."""
        if balance <= 1:
            return balance
        return int(self.rng.integers(1, balance + 1))
