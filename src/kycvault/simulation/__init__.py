"""Scenario replay and randomized stress simulation."""

from .runner import Scenario, ScenarioResult, ScenarioRunner, ScenarioStep, StepOutcome, load_scenario
from .stress import StressResult, StressSimulator

__all__ = [
    "Scenario",
    "ScenarioResult",
    "ScenarioRunner",
    "ScenarioStep",
    "StepOutcome",
    "load_scenario",
    "StressResult",
    "StressSimulator",
]
