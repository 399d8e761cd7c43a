"""Covariate sampling from growth-chart BCCG (LMS) parameters.

Weights for a given age/sex cell are generated through the Box-Cox Cole-Green
quantile transform of a standard-normal deviate z:

    L != 0:  W = M * (1 + L*S*z) ** (1/L)
    L == 0:  W = M * exp(S*z)

Deviates are drawn from an explicitly passed ``numpy.random.Generator``; the
sampler never touches numpy's global random state.
"""

from __future__ import annotations
from typing import Iterable, List, Literal, Optional, Sequence, Tuple
import math

import numpy as np
import structlog

from ..contracts.errors import DistributionSamplingError, InvalidConfigurationError
from ..contracts.types import CovariateParams, Sex, Subject

logger = structlog.get_logger()

InvalidPolicy = Literal["raise", "resample"]


def _check_params(m: float, s: float, l: float) -> None:
    if not all(math.isfinite(x) for x in (m, s, l)):
        raise DistributionSamplingError("BCCG parameters must be finite", {"M": m, "S": s, "L": l})
    if m <= 0:
        raise DistributionSamplingError(f"BCCG location M must be > 0, got {m}", {"M": m})
    if s < 0:
        raise DistributionSamplingError(f"BCCG scale S must be >= 0, got {s}", {"S": s})


def bccg_quantile(z: float, m: float, s: float, l: float) -> float:
    """Map a standard-normal deviate to the BCCG distribution with (M, S, L).

    Raises:
        DistributionSamplingError: If ``1 + L*S*z <= 0`` (power undefined),
            the parameters are invalid, or the sample overflows or
            underflows to a non-positive weight.
    """
    _check_params(m, s, l)
    details = {"M": m, "S": s, "L": l, "z": z}
    base = 1.0 + l * s * z
    if l != 0 and base <= 0:
        raise DistributionSamplingError("BCCG power undefined: 1 + L*S*z <= 0", details)
    try:
        value = m * math.exp(s * z) if l == 0 else m * base ** (1.0 / l)
    except OverflowError as exc:
        raise DistributionSamplingError("BCCG sample overflows", details) from exc
    if not math.isfinite(value) or value <= 0:
        raise DistributionSamplingError(f"BCCG sample is not a positive finite weight: {value}", details)
    return value


class CovariateSampler:
    """Generate weight samples and virtual subjects from growth-chart cells.

    Args:
        rng: Generator consumed sequentially, in grid order.
        on_invalid: ``"raise"`` to fail on an undefined BCCG power, or
            ``"resample"`` to redraw the deviate.
        max_resample: Redraw limit per sample under the ``resample`` policy.
    """

    def __init__(
        self,
        rng: np.random.Generator,
        on_invalid: InvalidPolicy = "raise",
        max_resample: int = 100,
    ) -> None:
        if on_invalid not in ("raise", "resample"):
            raise InvalidConfigurationError(f"Unknown invalid-sample policy: {on_invalid}")
        if max_resample < 1:
            raise InvalidConfigurationError("max_resample must be at least 1")
        self.rng = rng
        self.on_invalid = on_invalid
        self.max_resample = max_resample

    def sample_weights(self, params: CovariateParams, n: int) -> np.ndarray:
        """Draw ``n`` independent weights for one age/sex cell."""
        if n < 0:
            raise InvalidConfigurationError(f"Sample count must be >= 0, got {n}")
        _check_params(params.m, params.s, params.l)

        weights = np.empty(n, dtype=float)
        for i in range(n):
            weights[i] = self._draw_one(params)
        return weights

    def _draw_one(self, params: CovariateParams) -> float:
        attempts = 0
        while True:
            z = float(self.rng.standard_normal())
            try:
                return bccg_quantile(z, params.m, params.s, params.l)
            except DistributionSamplingError as exc:
                attempts += 1
                if self.on_invalid == "raise":
                    raise
                if attempts >= self.max_resample:
                    raise DistributionSamplingError(
                        f"No valid BCCG sample after {attempts} draws",
                        {**exc.details, "age_months": params.age_months, "sex": params.sex.value},
                    ) from exc

    def sample_population(
        self,
        grid: Sequence[CovariateParams],
        n_per_cell: int,
        start_id: int = 1,
    ) -> List[Subject]:
        """Produce ``n_per_cell`` subjects for every grid cell, in grid order."""
        if n_per_cell < 1:
            raise InvalidConfigurationError(f"n_per_cell must be >= 1, got {n_per_cell}")

        subjects: List[Subject] = []
        next_id = start_id
        for cell in grid:
            for weight in self.sample_weights(cell, n_per_cell):
                subjects.append(
                    Subject(
                        id=next_id,
                        weight_kg=float(weight),
                        age_years=cell.age_months / 12.0,
                        sex=cell.sex,
                    )
                )
                next_id += 1

        logger.debug("Sampled population", n_cells=len(grid), n_subjects=len(subjects))
        return subjects


def select_grid(
    grid: Iterable[CovariateParams],
    age_min_months: Optional[float] = None,
    age_max_months: Optional[float] = None,
    sexes: Optional[Sequence[Sex]] = None,
) -> Tuple[CovariateParams, ...]:
    """Filter growth-chart cells by age range (inclusive) and sex."""
    selected = []
    for cell in grid:
        if age_min_months is not None and cell.age_months < age_min_months:
            continue
        if age_max_months is not None and cell.age_months > age_max_months:
            continue
        if sexes is not None and cell.sex not in sexes:
            continue
        selected.append(cell)
    return tuple(selected)
