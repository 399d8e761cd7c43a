"""Pipeline execution engine."""

from .context import RunContext
from .pipeline import Pipeline, PipelineResult

__all__ = [
    "RunContext",
    "Pipeline",
    "PipelineResult",
]
