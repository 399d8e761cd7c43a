"""pkcov: covariate effects on pharmacokinetic exposure.

Samples a virtual population from growth-chart BCCG parameters, simulates a
one-compartment oral PK model for every subject, and summarizes
standardized exposure (Cmax, AUC) by covariate strata.
"""

__version__ = "0.1.0"

from .contracts import (
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

__all__ = [
    "__version__",
    "PKCovError",
    "ConfigError",
    "InvalidConfigurationError",
    "ModelError",
    "DistributionSamplingError",
    "InsufficientDataError",
    "EmptyStratumError",
    "DegenerateReferenceError",
    "SolverError",
]
