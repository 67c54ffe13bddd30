"""Export functionality for CSV and JSON."""

import json
from typing import Any, Dict, List, Sequence

import pandas as pd

from ..engine.events import Event
from ..engine.vault import VaultSnapshot
from ..simulation.runner import ScenarioResult


def snapshots_to_frame(snapshots: Sequence[VaultSnapshot]) -> pd.DataFrame:
    """One row per snapshot, with the step index as `step`."""
    data = []
    for step, snapshot in enumerate(snapshots):
        row = snapshot.to_dict()
        row['step'] = step
        data.append(row)
    df = pd.DataFrame(data)
    if not df.empty:
        df = df.set_index('step')
    return df


def events_to_records(events: Sequence[Event]) -> List[Dict[str, Any]]:
    records = []
    for event in events:
        record = event.to_dict()
        # Batches are stored as tuples; JSON wants lists
        if isinstance(record.get('accounts'), tuple):
            record['accounts'] = list(record['accounts'])
        records.append(record)
    return records


def export_csv(result: ScenarioResult, filepath: str):
    """Export per-step vault state to CSV, joined with each step's outcome."""
    df = snapshots_to_frame(result.snapshots)
    outcomes = pd.DataFrame([
        {
            'step': o.index + 1,  # snapshot 0 is the initial state
            'op': o.op,
            'ok': o.ok,
            'expected': o.expected,
            'error_type': o.error_type,
        }
        for o in result.outcomes
    ])
    if not outcomes.empty:
        df = df.join(outcomes.set_index('step'))
    df.to_csv(filepath)


def export_json(result: ScenarioResult, filepath: str):
    """Export scenario results to JSON."""
    export_data = {
        'scenario': result.scenario.name,
        'config': result.config.to_dict(),
        'config_hash': result.config.compute_hash(),
        'passed': result.passed,
        'snapshots': [s.to_dict() for s in result.snapshots],
        'outcomes': [
            {
                'index': o.index,
                'op': o.op,
                'ok': o.ok,
                'expected': o.expected,
                'error_type': o.error_type,
                'error': o.error,
            }
            for o in result.outcomes
        ],
        'events': events_to_records(result.events),
        'invariant_errors': result.invariant_errors,
    }

    with open(filepath, 'w') as f:
        json.dump(export_data, f, indent=2)
