"""Core contracts: errors and typed records."""

from .errors import (
    PKCovError,
    ConfigError,
    InvalidConfigurationError,
    ModelError,
    DistributionSamplingError,
    InsufficientDataError,
    EmptyStratumError,
    DegenerateReferenceError,
    SolverError,
)
from .types import (
    Sex,
    Compartment,
    MetricName,
    CovariateName,
    CovariateParams,
    CovariateSnapshot,
    Subject,
    DoseEvent,
    Trajectory,
    ExposureRecord,
    Stratum,
    EffectSummary,
    SubjectFailure,
    BatchResult,
)

__all__ = [
    "PKCovError",
    "ConfigError",
    "InvalidConfigurationError",
    "ModelError",
    "DistributionSamplingError",
    "InsufficientDataError",
    "EmptyStratumError",
    "DegenerateReferenceError",
    "SolverError",
    "Sex",
    "Compartment",
    "MetricName",
    "CovariateName",
    "CovariateParams",
    "CovariateSnapshot",
    "Subject",
    "DoseEvent",
    "Trajectory",
    "ExposureRecord",
    "Stratum",
    "EffectSummary",
    "SubjectFailure",
    "BatchResult",
]
