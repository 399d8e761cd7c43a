"""Per-stratum effect summaries of standardized exposure."""

from __future__ import annotations
from typing import Iterable, List, Mapping, Sequence, Tuple

from ..contracts.errors import EmptyStratumError, InvalidConfigurationError
from ..contracts.types import CovariateName, EffectSummary, ExposureRecord, MetricName, Stratum
from .quantiles import quantiles

BSV_LABEL = "BSV"


def validate_probs(probs: Sequence[float]) -> Tuple[float, float]:
    """Check an interval as (lower, upper) with 0 <= lower < 0.5 < upper <= 1."""
    if len(probs) != 2:
        raise InvalidConfigurationError(f"Interval needs two probabilities, got {list(probs)}")
    lower, upper = float(probs[0]), float(probs[1])
    if not (0.0 <= lower < 0.5 < upper <= 1.0):
        raise InvalidConfigurationError(
            f"Interval probabilities must satisfy 0 <= lower < 0.5 < upper <= 1, got ({lower}, {upper})"
        )
    return lower, upper


def _ordered_metrics(records: Sequence[ExposureRecord]) -> List[MetricName]:
    present = {r.metric for r in records}
    return [m for m in MetricName if m in present]


def summarize_values(
    values: Sequence[float],
    metric: MetricName,
    covariate: CovariateName,
    label: str,
    probs: Tuple[float, float],
) -> EffectSummary:
    """Median and percentile interval of one group of values."""
    if len(values) == 0:
        raise EmptyStratumError(
            f"No subjects in stratum '{label}' for {metric.value}",
            {"metric": metric.value, "covariate": covariate.value, "stratum": label},
        )
    lo, med, hi = quantiles(values, [probs[0], 0.5, probs[1]])
    return EffectSummary(
        metric=metric,
        covariate=covariate,
        stratum_label=label,
        median=float(med),
        lower=float(lo),
        upper=float(hi),
    )


def summarize(
    records: Sequence[ExposureRecord],
    strata: Sequence[Stratum],
    probs: Sequence[float] = (0.05, 0.95),
) -> List[EffectSummary]:
    """One summary per (metric, stratum).

    Metrics follow ``MetricName`` order and strata keep the given order.
    Stratum predicates are applied to each record's covariate snapshot.

    Raises:
        EmptyStratumError: If no record of a metric falls in a stratum.
    """
    interval = validate_probs(probs)
    records = list(records)
    summaries: List[EffectSummary] = []
    for metric in _ordered_metrics(records):
        metric_records = [r for r in records if r.metric is metric]
        for stratum in strata:
            values = [r.value for r in metric_records if stratum.contains(r.covariates)]
            summaries.append(summarize_values(values, metric, stratum.covariate, stratum.label, interval))
    return summaries


def summarize_bsv(
    records: Sequence[ExposureRecord],
    probs: Sequence[float] = (0.05, 0.95),
) -> List[EffectSummary]:
    """Reference rows for between-subject variability, one per metric.

    ``records`` come from a run with random effects enabled; every record is
    in the single "BSV" pseudo-stratum.
    """
    interval = validate_probs(probs)
    records = list(records)
    if not records:
        raise EmptyStratumError("No records for the BSV reference interval", {"stratum": BSV_LABEL})
    return [
        summarize_values(
            [r.value for r in records if r.metric is metric],
            metric,
            CovariateName.BSV,
            BSV_LABEL,
            interval,
        )
        for metric in _ordered_metrics(records)
    ]


def summarize_all(
    records: Sequence[ExposureRecord],
    strata_by_covariate: Mapping[CovariateName, Sequence[Stratum]],
    probs: Sequence[float] = (0.05, 0.95),
    bsv_records: Iterable[ExposureRecord] = (),
) -> List[EffectSummary]:
    """Summaries for every covariate in mapping order, then the BSV rows."""
    summaries: List[EffectSummary] = []
    for strata in strata_by_covariate.values():
        summaries.extend(summarize(records, strata, probs))
    bsv_records = list(bsv_records)
    if bsv_records:
        summaries.extend(summarize_bsv(bsv_records, probs))
    return summaries
