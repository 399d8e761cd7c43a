"""Configuration data models."""

from __future__ import annotations
from typing import List, Literal, Optional, Tuple, Union
from pathlib import Path
import tomllib

import numpy as np
from pydantic import BaseModel, Field, field_validator, model_validator

from ..contracts.types import Compartment, CovariateName, DoseEvent, MetricName, Sex
from ..models.pk import PopulationParameters, make_time_grid


class PKParamsConfig(BaseModel):
    """Population PK parameters."""

    ka: float = Field(..., gt=0, description="Absorption rate constant [1/h]")
    cl: float = Field(..., gt=0, description="Typical clearance at wt_ref [L/h]")
    v: float = Field(..., gt=0, description="Typical volume at wt_ref [L]")
    clwt: float = Field(..., description="Allometric exponent on clearance")
    vwt: float = Field(..., description="Allometric exponent on volume")
    wt_ref: float = Field(..., gt=0, description="Reference weight [kg]")

    def to_population(self) -> PopulationParameters:
        return PopulationParameters(
            ka=self.ka, cl=self.cl, v=self.v, clwt=self.clwt, vwt=self.vwt, wt_ref=self.wt_ref
        )


class DoseConfig(BaseModel):
    """Single dose into the gut compartment."""

    time_h: float = Field(..., ge=0)
    amount: float = Field(..., gt=0)
    compartment: Literal["Gut"] = Field(..., description="Dosing compartment")

    def to_event(self) -> DoseEvent:
        return DoseEvent(time_h=self.time_h, amount=self.amount, compartment=Compartment(self.compartment))


class TimeGridConfig(BaseModel):
    """Output time grid."""

    start_h: float = Field(..., ge=0)
    end_h: float
    step_h: float = Field(..., gt=0)

    @model_validator(mode="after")
    def validate_bounds(self) -> "TimeGridConfig":
        if self.end_h <= self.start_h:
            raise ValueError("end_h must be greater than start_h")
        return self

    def times(self) -> np.ndarray:
        return make_time_grid(self.start_h, self.end_h, self.step_h)


class VariabilityConfig(BaseModel):
    """Between-subject variability on (CL, V)."""

    omega: List[List[float]] = Field(..., description="2x2 covariance matrix of (eta_CL, eta_V)")
    zeroed: bool = Field(..., description="Fix random effects at zero")

    @field_validator("omega")
    @classmethod
    def validate_omega(cls, v: List[List[float]]) -> List[List[float]]:
        if len(v) != 2 or any(len(row) != 2 for row in v):
            raise ValueError("omega must be a 2x2 matrix")
        matrix = np.asarray(v, dtype=float)
        if not np.all(np.isfinite(matrix)):
            raise ValueError("omega entries must be finite")
        if not np.allclose(matrix, matrix.T):
            raise ValueError("omega must be symmetric")
        if np.min(np.linalg.eigvalsh(matrix)) < -1e-12:
            raise ValueError("omega must be positive semi-definite")
        return v

    def covariance(self) -> np.ndarray:
        return np.asarray(self.omega, dtype=float)


class SamplingConfig(BaseModel):
    """Covariate sampling settings."""

    seed: int = Field(..., ge=0, description="Master seed for covariates and random effects")
    n_per_cell: int = Field(..., gt=0, description="Samples per growth-chart age/sex cell")
    growth_chart: Optional[str] = Field(None, description="Growth-chart CSV path")
    age_min_months: Optional[float] = Field(None, ge=0)
    age_max_months: Optional[float] = Field(None, ge=0)
    sexes: Optional[List[Literal["Female", "Male"]]] = None
    on_invalid: Literal["raise", "resample"] = "raise"

    @model_validator(mode="after")
    def validate_age_range(self) -> "SamplingConfig":
        if (
            self.age_min_months is not None
            and self.age_max_months is not None
            and self.age_min_months > self.age_max_months
        ):
            raise ValueError("age_min_months must not exceed age_max_months")
        return self

    def sex_filter(self) -> Optional[Tuple[Sex, ...]]:
        if self.sexes is None:
            return None
        return tuple(Sex(s) for s in self.sexes)


class AnalysisConfig(BaseModel):
    """Stratification and summary settings."""

    n_strata: int = Field(..., ge=1, description="Equal-count bins per continuous covariate")
    ci_probs: Tuple[float, float] = Field(..., description="Lower/upper percentile probabilities")
    covariates: List[Literal["Weight", "Age", "Sex"]] = Field(
        default_factory=lambda: ["Weight", "Age", "Sex"]
    )
    metrics: List[Literal["Cmax", "AUC"]] = Field(default_factory=lambda: ["Cmax", "AUC"])
    standardize_by: Optional[Literal["Sex"]] = None
    include_bsv: bool = True

    @field_validator("ci_probs")
    @classmethod
    def validate_ci_probs(cls, v: Tuple[float, float]) -> Tuple[float, float]:
        lower, upper = v
        if not (0.0 <= lower < 0.5 < upper <= 1.0):
            raise ValueError("ci_probs must satisfy 0 <= lower < 0.5 < upper <= 1")
        return v

    def covariate_names(self) -> List[CovariateName]:
        return [CovariateName(c) for c in self.covariates]

    def metric_names(self) -> List[MetricName]:
        return [MetricName(m) for m in self.metrics]


class SolverConfig(BaseModel):
    """ODE solver configuration (used by the ``ode`` integrator)."""

    method: str = "LSODA"
    rtol: float = 1e-10
    atol: float = 1e-12

    @field_validator("method")
    @classmethod
    def validate_method(cls, v: str) -> str:
        valid_methods = {"RK45", "BDF", "Radau", "DOP853", "LSODA"}
        if v not in valid_methods:
            raise ValueError(f"method must be one of {valid_methods}")
        return v


class RunConfig(BaseModel):
    """Run execution configuration."""

    run_id: Optional[str] = None
    threads: int = 1
    fail_fast: bool = False
    integrator: Literal["analytic", "rk4", "ode"] = "analytic"
    rk4_max_step: float = Field(0.05, gt=0, description="Largest RK4 sub-step [h]")
    artifact_dir: str = "results"

    @field_validator("threads")
    @classmethod
    def validate_threads(cls, v: int) -> int:
        if v < 1:
            raise ValueError("threads must be positive")
        return v


class AppConfig(BaseModel):
    """Complete application configuration."""

    run: RunConfig = Field(default_factory=RunConfig)
    pk: PKParamsConfig
    dose: DoseConfig
    grid: TimeGridConfig
    variability: VariabilityConfig
    sampling: SamplingConfig
    analysis: AnalysisConfig
    solver: SolverConfig = Field(default_factory=SolverConfig)

    @classmethod
    def from_toml_file(cls, path: Union[Path, str]) -> "AppConfig":
        """Load configuration from TOML file."""
        with open(path, "rb") as f:
            data = tomllib.load(f)
        return cls.model_validate(data)
