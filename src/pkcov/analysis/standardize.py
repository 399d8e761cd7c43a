"""Standardization of exposures to group medians (fold-change ratios)."""

from __future__ import annotations
from dataclasses import replace
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence, Tuple, Union

from ..contracts.errors import DegenerateReferenceError, InvalidConfigurationError
from ..contracts.types import CovariateName, CovariateSnapshot, ExposureRecord, MetricName
from .quantiles import median

GroupKey = Callable[[CovariateSnapshot], Hashable]


def _resolve_group_key(group_by: Union[None, CovariateName, GroupKey]) -> GroupKey:
    if group_by is None:
        return lambda covariates: None
    if callable(group_by):
        return group_by
    if group_by is CovariateName.SEX:
        return lambda covariates: covariates.sex
    raise InvalidConfigurationError(
        f"Cannot group by continuous or pseudo covariate {group_by.value}; stratify it first"
    )


def group_medians(
    records: Sequence[ExposureRecord],
    group_by: Union[None, CovariateName, GroupKey] = None,
) -> Dict[Tuple[MetricName, Any], float]:
    """Median value per (metric, group)."""
    key = _resolve_group_key(group_by)
    groups: Dict[Tuple[MetricName, Any], List[float]] = {}
    for record in records:
        groups.setdefault((record.metric, key(record.covariates)), []).append(record.value)
    return {group: median(values) for group, values in groups.items()}


def standardize(
    records: Sequence[ExposureRecord],
    group_by: Union[None, CovariateName, GroupKey] = None,
    reference: Optional[Dict[Tuple[MetricName, Any], float]] = None,
) -> List[ExposureRecord]:
    """Re-express each value as value / median of its (metric, group).

    Args:
        records: Exposure records, any order.
        group_by: None for one group per metric, ``CovariateName.SEX``, or a
            callable mapping a covariate snapshot to a group key.
        reference: Precomputed medians; computed from ``records`` when omitted.

    Returns:
        Standardized records in input order.

    Raises:
        DegenerateReferenceError: If a reference median is zero or missing.
    """
    key = _resolve_group_key(group_by)
    medians = reference if reference is not None else group_medians(records, key)

    standardized: List[ExposureRecord] = []
    for record in records:
        group = (record.metric, key(record.covariates))
        ref = medians.get(group)
        if ref is None or ref <= 0:
            raise DegenerateReferenceError(
                f"Reference median for {record.metric.value} is {ref}; fold-change undefined",
                {"metric": record.metric.value, "group": str(group[1])},
            )
        standardized.append(replace(record, value=record.value / ref))
    return standardized
