"""Output tables for the reporting layer.

All frames have fixed column orders and row orders (subject id, then time or
metric; summaries in the order they were produced), so identical inputs give
byte-identical CSV files.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from ..contracts.errors import ModelError
from ..contracts.types import EffectSummary, ExposureRecord, Subject, SubjectFailure, Trajectory

TRAJECTORY_COLUMNS = ["subject_id", "time_h", "concentration", "weight_kg", "age_years", "sex"]
EXPOSURE_COLUMNS = ["subject_id", "weight_kg", "age_years", "sex", "param", "value"]
EFFECT_COLUMNS = ["param", "covariate", "stratum", "median", "lower", "upper"]
FAILURE_COLUMNS = ["subject_id", "error_type", "reason"]


def trajectory_frame(subjects: Iterable[Subject], trajectories: Iterable[Trajectory]) -> pd.DataFrame:
    """Long-format concentration table with subject covariates."""
    by_id = {s.id: s for s in subjects}
    rows: List[Dict] = []
    for trajectory in sorted(trajectories, key=lambda tr: tr.subject_id):
        subject = by_id.get(trajectory.subject_id)
        if subject is None:
            raise ModelError(
                f"No subject for trajectory {trajectory.subject_id}",
                {"subject_id": trajectory.subject_id},
            )
        for t, c in zip(trajectory.times_h, trajectory.concentrations):
            rows.append({
                "subject_id": subject.id,
                "time_h": float(t),
                "concentration": float(c),
                "weight_kg": subject.weight_kg,
                "age_years": subject.age_years,
                "sex": subject.sex.value,
            })
    return pd.DataFrame(rows, columns=TRAJECTORY_COLUMNS)


def exposure_frame(records: Iterable[ExposureRecord]) -> pd.DataFrame:
    rows = [
        {
            "subject_id": r.subject_id,
            "weight_kg": r.covariates.weight_kg,
            "age_years": r.covariates.age_years,
            "sex": r.covariates.sex.value,
            "param": r.metric.value,
            "value": r.value,
        }
        for r in records
    ]
    return pd.DataFrame(rows, columns=EXPOSURE_COLUMNS)


def effect_summary_frame(summaries: Iterable[EffectSummary]) -> pd.DataFrame:
    rows = [
        {
            "param": s.metric.value,
            "covariate": s.covariate.value,
            "stratum": s.stratum_label,
            "median": s.median,
            "lower": s.lower,
            "upper": s.upper,
        }
        for s in summaries
    ]
    return pd.DataFrame(rows, columns=EFFECT_COLUMNS)


def failure_frame(failures: Iterable[SubjectFailure]) -> pd.DataFrame:
    rows = [
        {"subject_id": f.subject_id, "error_type": f.error_type, "reason": f.reason}
        for f in sorted(failures, key=lambda f: f.subject_id)
    ]
    return pd.DataFrame(rows, columns=FAILURE_COLUMNS)


def write_csv(frame: pd.DataFrame, path: Path) -> Path:
    """Write a frame as CSV with full float precision and Unix line endings."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, index=False, lineterminator="\n")
    return path


def write_tables(
    frames: Dict[str, pd.DataFrame],
    directory: Path,
    names: Optional[Sequence[str]] = None,
) -> Dict[str, Path]:
    """Write selected frames to ``directory/<name>.csv``."""
    directory = Path(directory)
    selected = names if names is not None else list(frames)
    return {name: write_csv(frames[name], directory / f"{name}.csv") for name in selected}
