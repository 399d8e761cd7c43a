"""Configuration validation utilities."""

from typing import List

import numpy as np
import structlog

from ..contracts.errors import InvalidConfigurationError
from .model import AppConfig

logger = structlog.get_logger()


def validate_config(config: AppConfig) -> None:
    """Validate configuration for common issues and conflicts.

    Args:
        config: Configuration to validate

    Raises:
        InvalidConfigurationError: If configuration is invalid
    """
    errors: List[str] = []
    warnings: List[str] = []

    _validate_time_grid(config, errors)
    _validate_dose(config, errors)
    _validate_variability(config, warnings)
    _validate_integrator(config, warnings)
    _validate_resource_constraints(config, warnings)

    for warning in warnings:
        logger.warning(warning)

    if errors:
        raise InvalidConfigurationError(
            f"Configuration validation failed: {'; '.join(errors)}",
            {"errors": errors},
        )


def _validate_time_grid(config: AppConfig, errors: List[str]) -> None:
    try:
        times = config.grid.times()
    except InvalidConfigurationError as e:
        errors.append(e.message)
        return
    if times.size < 2:
        errors.append("Output grid must contain at least two time points for AUC")


def _validate_dose(config: AppConfig, errors: List[str]) -> None:
    if config.dose.time_h >= config.grid.end_h:
        errors.append(
            f"Dose time {config.dose.time_h} h is not before the end of the output grid ({config.grid.end_h} h)"
        )


def _validate_variability(config: AppConfig, warnings: List[str]) -> None:
    omega = config.variability.covariance()
    if config.analysis.include_bsv and np.allclose(omega, 0.0):
        warnings.append("include_bsv with an all-zero omega produces a degenerate BSV interval")
    if not config.variability.zeroed and not np.allclose(omega, 0.0):
        warnings.append(
            "Covariate strata are summarized from a run with random effects; "
            "covariate effects will be mixed with between-subject variability"
        )


def _validate_integrator(config: AppConfig, warnings: List[str]) -> None:
    if config.run.integrator == "rk4" and config.run.rk4_max_step > 0.1:
        warnings.append(
            f"rk4_max_step={config.run.rk4_max_step} h may be too coarse for 1e-6 agreement with the closed form"
        )
    if config.run.integrator == "ode" and config.solver.rtol > 1e-6:
        warnings.append(f"solver rtol={config.solver.rtol} may be too loose for accurate results")


def _validate_resource_constraints(config: AppConfig, warnings: List[str]) -> None:
    if config.run.threads > 16:
        warnings.append(f"threads={config.run.threads} may cause performance issues")
