"""Error definitions for the pkcov package."""

from __future__ import annotations
from typing import Dict, Optional


class PKCovError(Exception):
    """Base exception for all pkcov package errors."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigError(PKCovError):
    """Configuration-related errors."""
    pass


class InvalidConfigurationError(ConfigError):
    """Invalid inputs: non-positive weight, non-increasing time grid, malformed dose."""
    pass


class ModelError(PKCovError):
    """Model execution errors."""
    pass


class DistributionSamplingError(ModelError):
    """Undefined BCCG power or invalid M/S/L parameters."""
    pass


class InsufficientDataError(ModelError):
    """Trajectory too short for the requested metric."""
    pass


class EmptyStratumError(ModelError):
    """No subjects matched a stratum."""
    pass


class DegenerateReferenceError(ModelError):
    """Reference median is zero so fold-changes are undefined."""
    pass


class SolverError(PKCovError):
    """ODE solver errors."""
    pass
