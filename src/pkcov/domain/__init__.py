"""Domain logic for virtual population covariates."""

from .covariates import CovariateSampler, bccg_quantile, select_grid

__all__ = [
    "CovariateSampler",
    "bccg_quantile",
    "select_grid",
]
