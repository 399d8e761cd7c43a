"""PK model implementations."""

from .pk import (
    PopulationParameters,
    IndividualParameters,
    OneCompartmentOralModel,
    make_time_grid,
    sample_eta,
    rk4_step,
)

__all__ = [
    "PopulationParameters",
    "IndividualParameters",
    "OneCompartmentOralModel",
    "make_time_grid",
    "sample_eta",
    "rk4_step",
]
