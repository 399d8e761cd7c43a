"""Typed records passed between sampling, simulation and analysis."""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple
import math

import numpy as np

from .errors import InvalidConfigurationError, ModelError


class Sex(Enum):
    """Subject sex with growth-chart coding (1 = male, 2 = female)."""

    FEMALE = "Female"
    MALE = "Male"

    @classmethod
    def from_code(cls, code: Any) -> "Sex":
        try:
            numeric = int(code)
        except (TypeError, ValueError) as exc:
            raise InvalidConfigurationError(f"Invalid sex code: {code!r}") from exc
        if numeric == 1:
            return cls.MALE
        if numeric == 2:
            return cls.FEMALE
        raise InvalidConfigurationError(f"Invalid sex code: {code!r}", {"expected": [1, 2]})

    @property
    def code(self) -> int:
        return 1 if self is Sex.MALE else 2


class Compartment(Enum):
    GUT = "Gut"


class MetricName(Enum):
    CMAX = "Cmax"
    AUC = "AUC"


class CovariateName(Enum):
    WEIGHT = "Weight"
    AGE = "Age"
    SEX = "Sex"
    BSV = "BSV"


@dataclass(frozen=True)
class CovariateParams:
    """One growth-chart grid point (age in months, sex, M/S/L)."""

    age_months: float
    sex: Sex
    m: float
    s: float
    l: float


@dataclass(frozen=True)
class CovariateSnapshot:
    """Value copy of a subject's covariates."""

    weight_kg: float
    age_years: float
    sex: Sex


@dataclass(frozen=True)
class Subject:
    """Virtual subject; ``eta`` is (eta_cl, eta_v) or None when variability is zeroed."""

    id: int
    weight_kg: float
    age_years: float
    sex: Sex
    eta: Optional[Tuple[float, float]] = None

    def covariates(self) -> CovariateSnapshot:
        return CovariateSnapshot(
            weight_kg=self.weight_kg,
            age_years=self.age_years,
            sex=self.sex,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "subject_id": self.id,
            "weight_kg": self.weight_kg,
            "age_years": self.age_years,
            "sex": self.sex.value,
            "eta_cl": None if self.eta is None else self.eta[0],
            "eta_v": None if self.eta is None else self.eta[1],
        }


@dataclass(frozen=True)
class DoseEvent:
    """Single extravascular dose."""

    time_h: float
    amount: float
    compartment: Compartment = Compartment.GUT

    def __post_init__(self) -> None:
        if not math.isfinite(self.time_h) or self.time_h < 0:
            raise InvalidConfigurationError(f"Dose time must be >= 0, got {self.time_h}")
        if not math.isfinite(self.amount) or self.amount <= 0:
            raise InvalidConfigurationError(f"Dose amount must be > 0, got {self.amount}")
        if not isinstance(self.compartment, Compartment):
            raise InvalidConfigurationError(f"Unsupported dose compartment: {self.compartment!r}")


@dataclass(frozen=True)
class Trajectory:
    """Concentration-time series of one subject."""

    subject_id: int
    times_h: np.ndarray
    concentrations: np.ndarray

    def __post_init__(self) -> None:
        times = np.array(self.times_h, dtype=float)
        conc = np.array(self.concentrations, dtype=float)
        if times.ndim != 1 or conc.shape != times.shape:
            raise ModelError(
                "Trajectory times and concentrations must be 1-D arrays of equal length",
                {"subject_id": self.subject_id},
            )
        if times.size > 1 and not np.all(np.diff(times) > 0):
            raise ModelError("Trajectory times must be strictly increasing", {"subject_id": self.subject_id})
        if not np.all(np.isfinite(conc)) or np.any(conc < 0):
            raise ModelError(
                "Trajectory concentrations must be finite and non-negative",
                {"subject_id": self.subject_id},
            )
        times.setflags(write=False)
        conc.setflags(write=False)
        object.__setattr__(self, "times_h", times)
        object.__setattr__(self, "concentrations", conc)

    def __len__(self) -> int:
        return int(self.times_h.size)


@dataclass(frozen=True)
class ExposureRecord:
    """One exposure metric value derived from one trajectory."""

    subject_id: int
    covariates: CovariateSnapshot
    metric: MetricName
    value: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.value) or self.value < 0:
            raise ModelError(
                f"Exposure value must be finite and >= 0, got {self.value}",
                {"subject_id": self.subject_id, "metric": self.metric.value},
            )


@dataclass(frozen=True)
class Stratum:
    """Labelled partition cell over subjects (or covariate snapshots)."""

    covariate: CovariateName
    label: str
    predicate: Callable[[Any], bool] = field(compare=False, repr=False)
    rank: Optional[int] = None
    lower: Optional[float] = None
    upper: Optional[float] = None
    closed_upper: bool = False

    def contains(self, subject: Any) -> bool:
        return bool(self.predicate(subject))


@dataclass(frozen=True)
class EffectSummary:
    """Median and interval of a standardized metric within one stratum."""

    metric: MetricName
    covariate: CovariateName
    stratum_label: str
    median: float
    lower: float
    upper: float

    def __post_init__(self) -> None:
        if not (self.lower <= self.median <= self.upper):
            raise ModelError(
                "Effect summary bounds must satisfy lower <= median <= upper",
                {
                    "stratum": self.stratum_label,
                    "lower": self.lower,
                    "median": self.median,
                    "upper": self.upper,
                },
            )


@dataclass(frozen=True)
class SubjectFailure:
    subject_id: int
    reason: str
    error_type: str


@dataclass
class BatchResult:
    """Outcome of simulating a batch of subjects."""

    subjects: List[Subject] = field(default_factory=list)
    trajectories: List[Trajectory] = field(default_factory=list)
    failures: List[SubjectFailure] = field(default_factory=list)
    cancelled: bool = False
    skipped_ids: List[int] = field(default_factory=list)

    @property
    def n_succeeded(self) -> int:
        return len(self.trajectories)

    @property
    def n_failed(self) -> int:
        return len(self.failures)
