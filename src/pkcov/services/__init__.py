"""Services for growth-chart import and table export."""

from .data_import import GrowthChart, load_growth_chart
from .tables import (
    trajectory_frame,
    exposure_frame,
    effect_summary_frame,
    failure_frame,
    write_csv,
    write_tables,
)

__all__ = [
    "GrowthChart",
    "load_growth_chart",
    "trajectory_frame",
    "exposure_frame",
    "effect_summary_frame",
    "failure_frame",
    "write_csv",
    "write_tables",
]
