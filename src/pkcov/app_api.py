"""Main API facade for the pkcov package.

The CLI and scripts go through these functions; they wire configuration,
growth-chart data, the pipeline and the output tables together.
"""

from __future__ import annotations
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import pandas as pd
import structlog
from pydantic import ValidationError

from .config import AppConfig, default_config, load_config, validate_config
from .contracts.errors import ConfigError
from .contracts.types import CovariateParams, Subject
from .engine import Pipeline, PipelineResult, RunContext
from .services.data_import import load_growth_chart
from .services.tables import (
    effect_summary_frame,
    exposure_frame,
    failure_frame,
    trajectory_frame,
    write_tables,
)

logger = structlog.get_logger()

GrowthChartSource = Union[str, Path, pd.DataFrame, Sequence[CovariateParams]]


def get_default_config() -> AppConfig:
    """Get the reference scenario configuration."""
    return default_config()


def load_config_from_file(path: Union[str, Path]) -> AppConfig:
    """Load and validate configuration from file.

    Raises:
        ConfigError: If configuration cannot be loaded or is invalid
    """
    config = load_config(path)
    validate_config(config)
    return config


def validate_configuration(config: AppConfig) -> None:
    """Validate configuration for common issues.

    Raises:
        InvalidConfigurationError: If configuration has errors
    """
    validate_config(config)


def apply_config_overrides(
    config: AppConfig,
    overrides: Mapping[str, Mapping[str, Any]],
) -> AppConfig:
    """Return a re-validated copy with per-section field overrides.

    Example:
        apply_config_overrides(cfg, {"sampling": {"seed": 1}, "run": {"threads": 4}})

    Raises:
        ConfigError: If a section is unknown or an override is invalid
    """
    data = config.model_dump()
    for section, fields in overrides.items():
        if not isinstance(data.get(section), dict):
            raise ConfigError(f"Unknown configuration section: {section}")
        data[section].update(fields)
    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration override: {e}") from e


def resolve_growth_chart(
    config: AppConfig,
    source: Optional[GrowthChartSource] = None,
) -> tuple:
    """Load growth-chart cells from ``source`` or ``config.sampling.growth_chart``."""
    if source is None:
        source = config.sampling.growth_chart
    if source is None:
        raise ConfigError("No growth chart given; set sampling.growth_chart or pass a source")
    if isinstance(source, (str, Path, pd.DataFrame)):
        return load_growth_chart(source)
    return tuple(source)


def make_context(config: AppConfig, run_id: Optional[str] = None) -> RunContext:
    if run_id is None:
        run_id = config.run.run_id or f"run_{uuid.uuid4().hex[:8]}"
    return RunContext(
        run_id=run_id,
        seed=config.sampling.seed,
        threads=config.run.threads,
        artifact_dir=Path(config.run.artifact_dir),
    )


def sample_population(
    config: AppConfig,
    growth_chart: Optional[GrowthChartSource] = None,
) -> List[Subject]:
    """Sample the virtual population only, without simulating it."""
    grid = resolve_growth_chart(config, growth_chart)
    context = make_context(config, run_id="sample")
    return Pipeline(config).sample(grid, context)


def run_analysis(
    config: AppConfig,
    growth_chart: Optional[GrowthChartSource] = None,
    run_id: Optional[str] = None,
    cancel_event: Optional[threading.Event] = None,
) -> PipelineResult:
    """Run the full covariate-effect analysis.

    Args:
        config: Validated configuration.
        growth_chart: CSV path, DataFrame or cells; defaults to the
            configured growth-chart path.
        run_id: Run identifier (generated if not provided).
        cancel_event: Set to stop submitting further subjects.

    Returns:
        Pipeline result with every intermediate table.
    """
    validate_config(config)
    grid = resolve_growth_chart(config, growth_chart)
    context = make_context(config, run_id)

    logger.info("Starting analysis", run_id=context.run_id, n_cells=len(grid))
    result = Pipeline(config).run(grid, context, cancel_event=cancel_event)
    logger.info(
        "Analysis completed",
        run_id=context.run_id,
        n_summaries=len(result.summaries),
        n_failed=result.batch.n_failed,
    )
    return result


def convert_results_to_dataframes(result: PipelineResult) -> Dict[str, pd.DataFrame]:
    """Convert pipeline results to output tables.

    Returns:
        Frames "trajectories", "exposures", "standardized_exposures",
        "effect_summary" and "failures", plus "bsv_exposures" when a BSV
        run was made.
    """
    batch = result.batch
    frames = {
        "trajectories": trajectory_frame(batch.subjects, batch.trajectories),
        "exposures": exposure_frame(result.exposures),
        "standardized_exposures": exposure_frame(result.standardized),
        "effect_summary": effect_summary_frame(result.summaries),
        "failures": failure_frame(batch.failures),
    }
    if result.bsv_batch is not None:
        frames["bsv_exposures"] = exposure_frame(result.bsv_standardized)
    return frames


def save_results(
    result: PipelineResult,
    directory: Optional[Union[str, Path]] = None,
    names: Optional[Sequence[str]] = None,
) -> Dict[str, Path]:
    """Write output tables as CSV files.

    ``directory`` defaults to ``<artifact_dir>/<run_id>`` of the run.
    """
    if directory is None:
        directory = result.metadata["run_dir"]
    frames = convert_results_to_dataframes(result)
    paths = write_tables(frames, Path(directory), names)
    logger.info("Results saved", directory=str(directory), tables=sorted(paths))
    return paths
