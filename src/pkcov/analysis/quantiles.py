"""Single quantile definition shared by stratification and summaries.

Sample quantiles use linear interpolation between order statistics
(Hyndman & Fan type 7, numpy ``method="linear"``): for sorted values
x[0..n-1] and probability p, h = (n-1)*p and
Q(p) = x[floor(h)] + (h - floor(h)) * (x[floor(h)+1] - x[floor(h)]).
The median is Q(0.5), i.e. the mean of the two middle order statistics for
even n.
"""

from __future__ import annotations
from typing import Iterable, Sequence, Union

import numpy as np

from ..contracts.errors import InsufficientDataError, InvalidConfigurationError

QUANTILE_METHOD = "linear"


def _as_array(values: Union[Iterable[float], np.ndarray]) -> np.ndarray:
    arr = np.asarray(values if isinstance(values, np.ndarray) else list(values), dtype=float)
    if arr.ndim != 1:
        raise InvalidConfigurationError("Quantiles require a 1-D sequence of values")
    if arr.size == 0:
        raise InsufficientDataError("Quantiles of an empty sequence are undefined")
    if not np.all(np.isfinite(arr)):
        raise InvalidConfigurationError("Quantiles require finite values")
    return arr


def quantiles(values: Union[Iterable[float], np.ndarray], probs: Sequence[float]) -> np.ndarray:
    """Return Q(p) for every p in ``probs``."""
    arr = _as_array(values)
    p = np.asarray(probs, dtype=float)
    if np.any(p < 0) or np.any(p > 1):
        raise InvalidConfigurationError(f"Quantile probabilities must lie in [0, 1], got {list(probs)}")
    return np.quantile(arr, p, method=QUANTILE_METHOD)


def quantile(values: Union[Iterable[float], np.ndarray], prob: float) -> float:
    return float(quantiles(values, [prob])[0])


def median(values: Union[Iterable[float], np.ndarray]) -> float:
    return quantile(values, 0.5)
