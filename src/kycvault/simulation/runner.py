"""Scenario runner - replay a scripted sequence of vault operations.

A scenario is a list of steps. Each step names a vault operation (or one of
the off-system helpers below), the caller, its arguments, an optional clock
advance applied first, and optionally the error it is expected to raise.

Off-system helpers:
- fund: mint principal asset to an account (depositor wallets)
- settle: mint settlement asset into vault custody (treasury returning yield)
- airdrop: mint a stray token into vault custody
- wait: only advance the clock
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field

from ..config.schema import VaultConfig
from ..engine import errors
from ..engine.access import Role
from ..engine.assets import TokenLedger
from ..engine.errors import VaultError
from ..engine.events import Event
from ..engine.phase import Mode
from ..engine.vault import VaultSnapshot
from ..factory import Deployment, build_vault
from ..validation.sanity_checks import InvariantChecker

logger = logging.getLogger(__name__)

HELPER_OPS = {"fund", "settle", "airdrop", "wait"}

VAULT_OPS = {
    "advance_mode",
    "force_recovery",
    "set_deposit_window",
    "set_deposit_cap",
    "set_bridge",
    "set_treasury",
    "grant_role",
    "revoke_role",
    "deposit",
    "set_kyc_batch",
    "deploy_to_treasury",
    "redeem_non_kyc",
    "redeem_recovery",
    "redeem_bridge",
    "approve",
    "transfer",
    "transfer_from",
    "sweep",
}


class ScenarioStep(BaseModel):
    """One scripted operation."""
    op: str
    caller: Optional[str] = Field(default=None, description="Defaults to the first admin")
    args: Dict[str, Any] = Field(default_factory=dict)
    advance: int = Field(default=0, ge=0, description="Seconds to advance the clock first")
    expect_error: Optional[str] = Field(default=None, description="Expected error class name")


class Scenario(BaseModel):
    """Named list of steps."""
    name: str = "scenario"
    description: str = ""
    steps: List[ScenarioStep]


@dataclass
class StepOutcome:
    """What happened when a step ran."""
    index: int
    op: str
    ok: bool
    expected: bool
    result: Any = None
    error_type: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ScenarioResult:
    """Complete scenario result."""
    scenario: Scenario
    config: VaultConfig
    snapshots: List[VaultSnapshot]
    outcomes: List[StepOutcome]
    events: List[Event]
    invariant_errors: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        """Every step behaved as scripted and no invariant broke."""
        return all(o.expected for o in self.outcomes) and not self.invariant_errors

    @property
    def unexpected(self) -> List[StepOutcome]:
        return [o for o in self.outcomes if not o.expected]


def load_scenario(path: Union[str, Path]) -> Scenario:
    """Load a scenario from YAML."""
    with open(path, 'r') as f:
        data = yaml.safe_load(f)
    if isinstance(data, list):
        data = {"name": Path(path).stem, "steps": data}
    return Scenario(**data)


class ScenarioRunner:
    """Replays scenarios against a freshly built vault."""

    def __init__(self, config: VaultConfig):
        """
        Initialize scenario runner.

        Args:
            config: Deployment configuration (the clock starts at simulation.start_time)
        """
        self.config = config

    def run(self, scenario: Scenario) -> ScenarioResult:
        """
        Build a vault and run every step, snapshotting state after each one.

        Returns:
            ScenarioResult with one snapshot for the initial state plus one per step
        """
        deployment = build_vault(self.config)
        checker = InvariantChecker(deployment.vault)
        strays: Dict[str, TokenLedger] = {}

        snapshots = [deployment.vault.snapshot_state()]
        outcomes: List[StepOutcome] = []
        invariant_errors: List[str] = []

        for index, step in enumerate(scenario.steps):
            if step.advance:
                deployment.clock.advance(step.advance)
            outcome = self._run_step(index, step, deployment, strays)
            outcomes.append(outcome)
            if not outcome.expected:
                logger.warning("step %d (%s) did not behave as scripted: %s", index, step.op, outcome.error)

            snapshots.append(deployment.vault.snapshot_state())
            for w in checker.check():
                if w.severity == "error":
                    invariant_errors.append(f"step {index} ({step.op}): {w.category}: {w.message}")

        return ScenarioResult(
            scenario=scenario,
            config=self.config,
            snapshots=snapshots,
            outcomes=outcomes,
            events=list(deployment.vault.events),
            invariant_errors=invariant_errors,
        )

    def _run_step(
        self,
        index: int,
        step: ScenarioStep,
        deployment: Deployment,
        strays: Dict[str, TokenLedger],
    ) -> StepOutcome:
        try:
            result = self._dispatch(step, deployment, strays)
        except VaultError as exc:
            error_type = type(exc).__name__
            expected = step.expect_error is not None and _is_expected(exc, step.expect_error)
            return StepOutcome(index, step.op, ok=False, expected=expected,
                               error_type=error_type, error=str(exc))

        if step.expect_error is not None:
            return StepOutcome(index, step.op, ok=True, expected=False, result=result,
                               error=f"expected {step.expect_error} but the step succeeded")
        return StepOutcome(index, step.op, ok=True, expected=True, result=result)

    def _dispatch(self, step: ScenarioStep, deployment: Deployment, strays: Dict[str, TokenLedger]) -> Any:
        vault = deployment.vault
        args = dict(step.args)
        caller = step.caller or deployment.admin

        if step.op == "wait":
            return deployment.clock.now()
        if step.op == "fund":
            deployment.principal.mint(args.get("account", caller), int(args["amount"]))
            return None
        if step.op == "settle":
            deployment.settlement.mint(vault.address, int(args["amount"]))
            return None
        if step.op == "airdrop":
            symbol = args["symbol"]
            token = strays.setdefault(symbol, TokenLedger(symbol))
            token.mint(vault.address, int(args["amount"]))
            return None
        if step.op not in VAULT_OPS:
            raise ValueError(f"unknown scenario op {step.op!r}")

        if "target" in args:
            args["target"] = Mode[str(args["target"]).upper()]
        if "role" in args:
            args["role"] = Role[str(args["role"]).upper()]
        if "asset" in args:
            args["asset"] = self._resolve_asset(args["asset"], deployment, strays)

        return getattr(vault, step.op)(caller, **args)

    @staticmethod
    def _resolve_asset(name: str, deployment: Deployment, strays: Dict[str, TokenLedger]) -> TokenLedger:
        if name in ("principal", deployment.principal.symbol):
            return deployment.principal
        if name in ("settlement", deployment.settlement.symbol):
            return deployment.settlement
        if name in strays:
            return strays[name]
        raise ValueError(f"unknown asset {name!r}")


def _is_expected(exc: VaultError, expected: str) -> bool:
    """Match by class name, accepting base classes (e.g. PhaseError)."""
    expected_cls = getattr(errors, expected, None)
    if isinstance(expected_cls, type):
        return isinstance(exc, expected_cls)
    return type(exc).__name__ == expected
