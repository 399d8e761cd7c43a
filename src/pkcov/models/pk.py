"""One-compartment PK model with first-order absorption from the gut.

States:
  Gut: amount at absorption site
  Central: amount in the central compartment
Equations:
  dGut/dt     = -Ka * Gut
  dCentral/dt =  Ka * Gut - (CL/V) * Central
Concentration = Central / V.

Individual parameters are allometrically scaled from population values and
multiplied by log-normal random effects:
  CL_i = CL * (WT/WTref)^CLWT * exp(eta1)
  V_i  = V  * (WT/WTref)^VWT  * exp(eta2)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Literal, Tuple
import math

import numpy as np
from scipy.integrate import solve_ivp

from ..contracts.errors import InvalidConfigurationError, SolverError
from ..contracts.types import DoseEvent, Subject, Trajectory
from ..config.constants import KA_K_SINGULARITY_RTOL

State = Tuple[float, ...]
RHSFunction = Callable[[float, State], State]
Integrator = Literal["analytic", "rk4", "ode"]


@dataclass(frozen=True)
class PopulationParameters:
    """Typical values and weight exponents."""

    ka: float  # 1/h
    cl: float  # L/h
    v: float  # L
    clwt: float
    vwt: float
    wt_ref: float  # kg

    def __post_init__(self) -> None:
        for name in ("ka", "cl", "v", "wt_ref"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise InvalidConfigurationError(f"Population parameter {name} must be > 0, got {value}")
        for name in ("clwt", "vwt"):
            if not math.isfinite(getattr(self, name)):
                raise InvalidConfigurationError(f"Allometric exponent {name} must be finite")


@dataclass(frozen=True)
class IndividualParameters:
    ka: float
    cl: float
    v: float

    @property
    def k(self) -> float:
        return self.cl / self.v


def make_time_grid(start_h: float, end_h: float, step_h: float) -> np.ndarray:
    """Build an output grid from start to end (inclusive) with a fixed step.

    The end point is appended when it is not a whole number of steps away.
    """
    if not all(math.isfinite(x) for x in (start_h, end_h, step_h)):
        raise InvalidConfigurationError("Time grid bounds must be finite")
    if start_h < 0:
        raise InvalidConfigurationError(f"Time grid start must be >= 0, got {start_h}")
    if step_h <= 0:
        raise InvalidConfigurationError(f"Time grid step must be > 0, got {step_h}")
    if end_h <= start_h:
        raise InvalidConfigurationError(
            f"Time grid end ({end_h}) must be greater than start ({start_h})"
        )

    n_steps = int(math.floor((end_h - start_h) / step_h + 1e-9))
    times = start_h + step_h * np.arange(n_steps + 1, dtype=float)
    tol = 1e-9 * max(1.0, abs(end_h))
    if end_h - times[-1] > tol:
        times = np.append(times, end_h)
    else:
        times[-1] = end_h
    return times


def sample_eta(rng: np.random.Generator, omega: np.ndarray) -> Tuple[float, float]:
    """Draw (eta_CL, eta_V) from N(0, omega)."""
    cov = np.asarray(omega, dtype=float)
    if cov.shape != (2, 2):
        raise InvalidConfigurationError(f"Random-effect covariance must be 2x2, got shape {cov.shape}")
    draw = rng.multivariate_normal(np.zeros(2), cov)
    return float(draw[0]), float(draw[1])


def rk4_step(rhs: RHSFunction, t: float, state: State, h: float) -> State:
    k1 = rhs(t, state)
    s2 = tuple(s + h * k1_i / 2.0 for s, k1_i in zip(state, k1))
    k2 = rhs(t + h / 2.0, s2)
    s3 = tuple(s + h * k2_i / 2.0 for s, k2_i in zip(state, k2))
    k3 = rhs(t + h / 2.0, s3)
    s4 = tuple(s + h * k3_i for s, k3_i in zip(state, k3))
    k4 = rhs(t + h, s4)
    return tuple(
        s + (h / 6.0) * (k1_i + 2.0 * k2_i + 2.0 * k3_i + k4_i)
        for s, k1_i, k2_i, k3_i, k4_i in zip(state, k1, k2, k3, k4)
    )


class OneCompartmentOralModel:
    """Single-dose one-compartment model evaluated on an output grid.

    ``integrator`` selects the closed-form solution (``analytic``), a fixed-step
    Runge-Kutta scheme (``rk4``) or ``scipy.integrate.solve_ivp`` (``ode``).
    All three describe the same linear system.
    """

    def __init__(
        self,
        population: PopulationParameters,
        integrator: Integrator = "analytic",
        rk4_max_step: float = 0.05,
        solver_method: str = "LSODA",
        rtol: float = 1e-10,
        atol: float = 1e-12,
    ) -> None:
        if integrator not in ("analytic", "rk4", "ode"):
            raise InvalidConfigurationError(f"Unknown integrator: {integrator}")
        if rk4_max_step <= 0:
            raise InvalidConfigurationError("rk4_max_step must be positive")
        self.population = population
        self.integrator = integrator
        self.rk4_max_step = rk4_max_step
        self.solver_method = solver_method
        self.rtol = rtol
        self.atol = atol

    def individualize(self, subject: Subject) -> IndividualParameters:
        weight = subject.weight_kg
        if weight is None or not math.isfinite(weight) or weight <= 0:
            raise InvalidConfigurationError(
                f"Subject weight must be > 0, got {weight}",
                {"subject_id": subject.id},
            )

        eta_cl, eta_v = subject.eta if subject.eta is not None else (0.0, 0.0)
        pop = self.population
        size = weight / pop.wt_ref
        try:
            cl = pop.cl * size ** pop.clwt * math.exp(eta_cl)
            v = pop.v * size ** pop.vwt * math.exp(eta_v)
        except OverflowError as exc:
            raise InvalidConfigurationError(
                "Individual parameters overflow",
                {"subject_id": subject.id, "weight_kg": weight, "eta": [eta_cl, eta_v]},
            ) from exc

        if not (math.isfinite(cl) and math.isfinite(v)) or cl <= 0 or v <= 0:
            raise InvalidConfigurationError(
                "Individual parameters are not finite and positive",
                {"subject_id": subject.id, "cl": cl, "v": v},
            )
        return IndividualParameters(ka=pop.ka, cl=cl, v=v)

    @staticmethod
    def rhs(params: IndividualParameters) -> RHSFunction:
        ka = params.ka
        k = params.k

        def _rhs(t: float, state: State) -> State:
            gut, central = state[0], state[1]
            return (-ka * gut, ka * gut - k * central)

        return _rhs

    def simulate(self, subject: Subject, dose: DoseEvent, times: np.ndarray) -> Trajectory:
        """Simulate one subject and return concentrations at ``times``."""
        t = np.asarray(times, dtype=float)
        if t.ndim != 1 or t.size == 0:
            raise InvalidConfigurationError("Output grid must be a non-empty 1-D sequence")
        if not np.all(np.isfinite(t)):
            raise InvalidConfigurationError("Output grid must be finite")
        if t.size > 1 and not np.all(np.diff(t) > 0):
            raise InvalidConfigurationError("Output grid must be strictly increasing")

        params = self.individualize(subject)
        if self.integrator == "analytic":
            conc = self.analytic_concentrations(params, dose, t)
        elif self.integrator == "rk4":
            conc = self._integrate_rk4(params, dose, t)
        else:
            conc = self._integrate_ode(params, dose, t)
        return Trajectory(subject_id=subject.id, times_h=t, concentrations=conc)

    @staticmethod
    def analytic_concentrations(
        params: IndividualParameters, dose: DoseEvent, times: np.ndarray
    ) -> np.ndarray:
        tau = np.asarray(times, dtype=float) - dose.time_h
        after = tau >= 0
        tau_after = np.where(after, tau, 0.0)
        ka, k, v = params.ka, params.k, params.v

        if abs(ka - k) <= KA_K_SINGULARITY_RTOL * ka:
            central = dose.amount * ka * tau_after * np.exp(-k * tau_after)
        else:
            central = dose.amount * ka / (ka - k) * (np.exp(-k * tau_after) - np.exp(-ka * tau_after))
        return np.where(after, central / v, 0.0)

    def _integrate_rk4(self, params: IndividualParameters, dose: DoseEvent, times: np.ndarray) -> np.ndarray:
        rhs = self.rhs(params)
        central = np.zeros_like(times)
        state: State = (dose.amount, 0.0)
        t_curr = dose.time_h

        for i, t_out in enumerate(times):
            if t_out < dose.time_h:
                continue
            span = t_out - t_curr
            if span > 0:
                n = max(1, int(math.ceil(span / self.rk4_max_step - 1e-12)))
                h = span / n
                for j in range(n):
                    state = rk4_step(rhs, t_curr + j * h, state, h)
                t_curr = t_out
            central[i] = state[1]

        return central / params.v

    def _integrate_ode(self, params: IndividualParameters, dose: DoseEvent, times: np.ndarray) -> np.ndarray:
        central = np.zeros_like(times)
        mask = times >= dose.time_h
        t_eval = times[mask]
        if t_eval.size == 0 or t_eval[-1] <= dose.time_h:
            return central

        rhs = self.rhs(params)
        solution = solve_ivp(
            lambda t, y: rhs(t, (y[0], y[1])),
            (dose.time_h, float(t_eval[-1])),
            np.array([dose.amount, 0.0]),
            method=self.solver_method,
            t_eval=t_eval,
            rtol=self.rtol,
            atol=self.atol,
        )
        if not solution.success:
            raise SolverError(f"ODE solver failed: {solution.message}", {"method": self.solver_method})

        central[mask] = solution.y[1]
        # solver round-off can leave values a few atol below zero
        return np.clip(central, 0.0, None) / params.v
