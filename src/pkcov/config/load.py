"""Configuration loading utilities."""

from __future__ import annotations
import json
import os
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError

from ..contracts.errors import ConfigError
from . import constants as c
from .model import (
    AppConfig,
    AnalysisConfig,
    DoseConfig,
    PKParamsConfig,
    SamplingConfig,
    TimeGridConfig,
    VariabilityConfig,
)


def default_config() -> AppConfig:
    """Create the reference scenario configuration."""
    return AppConfig(
        pk=PKParamsConfig(
            ka=c.REFERENCE_KA_PER_H,
            cl=c.REFERENCE_CL_L_PER_H,
            v=c.REFERENCE_V_L,
            clwt=c.REFERENCE_CL_WT_EXPONENT,
            vwt=c.REFERENCE_V_WT_EXPONENT,
            wt_ref=c.REFERENCE_WEIGHT_KG,
        ),
        dose=DoseConfig(
            time_h=c.REFERENCE_DOSE_TIME_H,
            amount=c.REFERENCE_DOSE_AMOUNT,
            compartment="Gut",
        ),
        grid=TimeGridConfig(
            start_h=c.REFERENCE_GRID_START_H,
            end_h=c.REFERENCE_GRID_END_H,
            step_h=c.REFERENCE_GRID_STEP_H,
        ),
        variability=VariabilityConfig(
            omega=[list(row) for row in c.REFERENCE_OMEGA],
            zeroed=True,
        ),
        sampling=SamplingConfig(
            seed=c.REFERENCE_SEED,
            n_per_cell=c.REFERENCE_N_PER_CELL,
        ),
        analysis=AnalysisConfig(
            n_strata=c.REFERENCE_N_STRATA,
            ci_probs=c.REFERENCE_CI_PROBS,
        ),
    )


ENV_PREFIX = "PKCOV_"
CONFIG_PATH_VAR = "PKCOV_CONFIG"


def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    """Load configuration from a TOML file, then apply environment overrides.

    Without ``path`` the first existing candidate is used: ``$PKCOV_CONFIG``,
    ``./pkcov.toml``, ``~/.pkcov/config.toml``. With none of them the
    reference scenario is returned.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    if path is None:
        path = _find_config_file()
    if path is None:
        return _apply_env_overrides(default_config())

    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        return _apply_env_overrides(AppConfig.from_toml_file(path))
    except Exception as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e


def _find_config_file() -> Optional[Path]:
    explicit = os.environ.get(CONFIG_PATH_VAR)
    if explicit:
        return Path(explicit)
    for candidate in (Path("pkcov.toml"), Path.home() / ".pkcov" / "config.toml"):
        if candidate.exists():
            return candidate
    return None


def _apply_env_overrides(config: AppConfig) -> AppConfig:
    """Merge ``PKCOV_<SECTION>_<KEY>`` variables into the configuration.

    ``PKCOV_RUN_THREADS=4`` sets ``run.threads``; values are parsed as JSON
    when possible, so ``PKCOV_VARIABILITY_OMEGA=[[0.1,0],[0,0.1]]`` works.
    Variables naming an unknown section are ignored.
    """
    data = config.model_dump()
    changed = False
    for name, raw in sorted(os.environ.items()):
        if not name.startswith(ENV_PREFIX) or name == CONFIG_PATH_VAR:
            continue
        section, _, key = name[len(ENV_PREFIX):].lower().partition("_")
        if not key or not isinstance(data.get(section), dict):
            continue
        data[section][key] = _parse_env_value(raw)
        changed = True
    if not changed:
        return config
    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid environment override: {e}") from e


def _parse_env_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw
