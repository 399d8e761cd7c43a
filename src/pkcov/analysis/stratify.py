"""Covariate stratification: equal-count quantile bins and categorical groups.

Cut points for k bins are the sample quantiles at probabilities i/k
(i = 1..k-1) under the shared linear-interpolation rule.  Bins are half-open
``[lower, upper)`` except the last, which is closed, so every value falls in
exactly one bin.  With distinct values, bin sizes differ by at most one.
"""

from __future__ import annotations
from bisect import bisect_right
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import numpy as np

from ..contracts.errors import InvalidConfigurationError
from ..contracts.types import CovariateName, Sex, Stratum
from .quantiles import quantiles

LabelFn = Callable[[int, int, float, float, bool], str]

_ORDINAL_NOUNS = {
    2: "half",
    3: "tertile",
    4: "quartile",
    5: "quintile",
    6: "sextile",
    7: "septile",
    8: "octile",
    10: "decile",
}

_COVARIATE_ACCESSORS: Dict[CovariateName, Callable] = {
    CovariateName.WEIGHT: lambda s: s.weight_kg,
    CovariateName.AGE: lambda s: s.age_years,
}


def ordinal(n: int) -> str:
    """1 -> '1st', 2 -> '2nd', 11 -> '11th', 23 -> '23rd'."""
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def default_label(covariate: CovariateName) -> LabelFn:
    """Labels such as "1st quartile of Weight [10.2, 14.5)"."""

    def _label(rank: int, k: int, lower: float, upper: float, closed_upper: bool) -> str:
        kind = _ORDINAL_NOUNS.get(k, "quantile group")
        bracket = "]" if closed_upper else ")"
        return f"{ordinal(rank)} {kind} of {covariate.value} [{lower:.4g}, {upper:.4g}{bracket}"

    return _label


def covariate_value(subject, covariate: CovariateName) -> float:
    try:
        accessor = _COVARIATE_ACCESSORS[covariate]
    except KeyError as exc:
        raise InvalidConfigurationError(f"{covariate.value} is not a continuous covariate") from exc
    return float(accessor(subject))


def _bin_predicate(covariate: CovariateName, cuts: List[float], index: int, n_bins: int):
    accessor = _COVARIATE_ACCESSORS[covariate]

    def _contains(subject) -> bool:
        return _bin_index(cuts, float(accessor(subject)), n_bins) == index

    return _contains


def _bin_index(cuts: List[float], x: float, n_bins: int) -> int:
    return min(bisect_right(cuts, x), n_bins - 1)


def equal_count_cut(
    values: Iterable[float],
    k: int,
    label_fn: Optional[LabelFn] = None,
    covariate: CovariateName = CovariateName.WEIGHT,
) -> List[Stratum]:
    """Partition a continuous covariate into ``k`` equal-count bins.

    Args:
        values: Observed covariate values defining the cut points.
        k: Number of bins.
        label_fn: ``(rank, k, lower, upper, closed_upper) -> label``.
        covariate: Covariate the bins apply to (Weight or Age).

    Returns:
        Strata ordered by rank (1-based).
    """
    if covariate not in _COVARIATE_ACCESSORS:
        raise InvalidConfigurationError(f"{covariate.value} is not a continuous covariate")
    if k < 1:
        raise InvalidConfigurationError(f"Number of bins must be >= 1, got {k}")
    arr = np.asarray(list(values), dtype=float)
    if arr.size == 0:
        raise InvalidConfigurationError("Cannot stratify an empty set of values")
    if not np.all(np.isfinite(arr)):
        raise InvalidConfigurationError("Cannot stratify non-finite values")

    label_fn = label_fn or default_label(covariate)
    inner = quantiles(arr, [i / k for i in range(1, k)]) if k > 1 else np.array([])
    cuts = [float(x) for x in inner]
    edges = [float(arr.min()), *cuts, float(arr.max())]

    strata: List[Stratum] = []
    for i in range(k):
        lower, upper = edges[i], edges[i + 1]
        closed = i == k - 1
        strata.append(
            Stratum(
                covariate=covariate,
                label=label_fn(i + 1, k, lower, upper, closed),
                predicate=_bin_predicate(covariate, cuts, i, k),
                rank=i + 1,
                lower=lower,
                upper=upper,
                closed_upper=closed,
            )
        )
    return strata


def assign_bins(values: Iterable[float], strata: Sequence[Stratum]) -> List[int]:
    """Return the 0-based bin index of each value under ``equal_count_cut`` strata."""
    cuts = [s.lower for s in strata[1:]]
    n_bins = len(strata)
    return [_bin_index(cuts, float(x), n_bins) for x in values]


def categorical_strata(covariate: CovariateName = CovariateName.SEX) -> List[Stratum]:
    """One stratum per level of a categorical covariate."""
    if covariate is not CovariateName.SEX:
        raise InvalidConfigurationError(f"{covariate.value} is not a categorical covariate")
    return [
        Stratum(
            covariate=covariate,
            label=level.value,
            predicate=lambda subject, level=level: subject.sex is level,
            rank=rank,
        )
        for rank, level in enumerate(Sex, start=1)
    ]


def build_strata(
    subjects: Sequence,
    covariates: Sequence[CovariateName],
    k: int,
    label_fn: Optional[LabelFn] = None,
) -> Dict[CovariateName, List[Stratum]]:
    """Strata for each requested covariate over the given subjects."""
    result: Dict[CovariateName, List[Stratum]] = {}
    for covariate in covariates:
        if covariate is CovariateName.SEX:
            result[covariate] = categorical_strata(covariate)
        else:
            values = [covariate_value(s, covariate) for s in subjects]
            result[covariate] = equal_count_cut(values, k, label_fn=label_fn, covariate=covariate)
    return result
