"""Exposure metrics (Cmax, AUC) from simulated trajectories."""

from __future__ import annotations
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from ..contracts.errors import InsufficientDataError, ModelError
from ..contracts.types import ExposureRecord, MetricName, Subject, Trajectory


def cmax(trajectory: Trajectory) -> float:
    """Maximum observed concentration."""
    if len(trajectory) == 0:
        raise InsufficientDataError("Cmax requires at least one sample", {"subject_id": trajectory.subject_id})
    return float(trajectory.concentrations[int(np.argmax(trajectory.concentrations))])


def tmax(trajectory: Trajectory) -> float:
    """Time of Cmax; the first occurrence wins on ties."""
    if len(trajectory) == 0:
        raise InsufficientDataError("Tmax requires at least one sample", {"subject_id": trajectory.subject_id})
    return float(trajectory.times_h[int(np.argmax(trajectory.concentrations))])


def auc_trapezoid(trajectory: Trajectory) -> float:
    """Linear trapezoidal AUC over the sampled points."""
    if len(trajectory) < 2:
        raise InsufficientDataError(
            f"AUC requires at least 2 samples, got {len(trajectory)}",
            {"subject_id": trajectory.subject_id},
        )
    t = trajectory.times_h
    c = trajectory.concentrations
    return float(np.sum(np.diff(t) * (c[:-1] + c[1:]) / 2.0))


_METRICS = {
    MetricName.CMAX: cmax,
    MetricName.AUC: auc_trapezoid,
}


def compute_metric(trajectory: Trajectory, metric: MetricName) -> float:
    return _METRICS[metric](trajectory)


def compute_exposures(
    subjects: Iterable[Subject],
    trajectories: Iterable[Trajectory],
    metrics: Optional[Sequence[MetricName]] = None,
) -> List[ExposureRecord]:
    """Derive one record per (subject, metric), ordered by subject id then metric.

    Every trajectory must belong to one of ``subjects``; covariates are copied
    from the subject at derivation time.
    """
    metric_list = list(metrics) if metrics is not None else list(MetricName)
    by_id: Dict[int, Subject] = {s.id: s for s in subjects}

    records: List[ExposureRecord] = []
    for trajectory in sorted(trajectories, key=lambda tr: tr.subject_id):
        subject = by_id.get(trajectory.subject_id)
        if subject is None:
            raise ModelError(
                f"No subject for trajectory {trajectory.subject_id}",
                {"subject_id": trajectory.subject_id},
            )
        snapshot = subject.covariates()
        for metric in metric_list:
            records.append(
                ExposureRecord(
                    subject_id=subject.id,
                    covariates=snapshot,
                    metric=metric,
                    value=compute_metric(trajectory, metric),
                )
            )
    return records
