"""CSV/JSON export and charts."""

from .charts import create_cohort_chart, save_chart
from .export import events_to_records, export_csv, export_json, snapshots_to_frame

__all__ = [
    "create_cohort_chart",
    "save_chart",
    "events_to_records",
    "export_csv",
    "export_json",
    "snapshots_to_frame",
]
