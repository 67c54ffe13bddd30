"""Command line entry point.

    kycvault run SCENARIO.yaml [--config CFG] [--csv OUT] [--json OUT] [--chart OUT]
    kycvault stress [--config CFG] [--runs N] [--seed N]
"""

import argparse
import logging
import sys
from typing import List, Optional

import pandas as pd

from .config.loader import load_config
from .reporting.charts import create_cohort_chart, save_chart
from .reporting.export import export_csv, export_json
from .simulation.runner import ScenarioRunner, load_scenario
from .simulation.stress import StressSimulator

logger = logging.getLogger("kycvault")


def _cmd_run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    scenario = load_scenario(args.scenario)
    result = ScenarioRunner(config).run(scenario)

    for outcome in result.outcomes:
        status = "ok" if outcome.ok else f"{outcome.error_type}"
        flag = "" if outcome.expected else "  <-- unexpected"
        print(f"[{outcome.index:3d}] {outcome.op:<20} {status}{flag}")
    for error in result.invariant_errors:
        print(f"INVARIANT: {error}")

    final = result.snapshots[-1]
    print(
        f"final mode={final.mode.name} non_kyc={final.shares_non_kyc:,} "
        f"kyc={final.shares_kyc:,} deployable={final.usdc_kyc_deployable:,}"
    )

    if args.csv:
        export_csv(result, args.csv)
    if args.json:
        export_json(result, args.json)
    if args.chart:
        save_chart(create_cohort_chart(result.snapshots, title=scenario.name), args.chart)

    print("PASSED" if result.passed else "FAILED")
    return 0 if result.passed else 1


def _cmd_stress(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    results = StressSimulator(config).run(runs=args.runs, random_seed=args.seed)
    df = pd.DataFrame([r.summary() for r in results])
    print(df.to_string(index=False))
    if args.csv:
        df.to_csv(args.csv, index=False)
    return 0 if all(r.passed for r in results) else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kycvault", description="KYC-gated dual-pool vault engine")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log engine activity")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Replay a scripted scenario")
    run.add_argument("scenario", help="Scenario YAML file")
    run.add_argument("--config", default=None, help="Config YAML (defaults to packaged defaults)")
    run.add_argument("--csv", default=None, help="Write per-step state CSV")
    run.add_argument("--json", default=None, help="Write full JSON report")
    run.add_argument("--chart", default=None, help="Write cohort chart HTML")
    run.set_defaults(func=_cmd_run)

    stress = sub.add_parser("stress", help="Run randomized lifecycles and check conservation")
    stress.add_argument("--config", default=None, help="Config YAML (defaults to packaged defaults)")
    stress.add_argument("--runs", type=int, default=None, help="Number of runs")
    stress.add_argument("--seed", type=int, default=None, help="Base random seed")
    stress.add_argument("--csv", default=None, help="Write run summaries CSV")
    stress.set_defaults(func=_cmd_stress)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
