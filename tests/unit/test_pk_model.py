"""Tests for the one-compartment oral PK model."""

import math

import numpy as np
import pytest

from pkcov.contracts.errors import InvalidConfigurationError
from pkcov.contracts.types import DoseEvent, Sex, Subject
from pkcov.models.pk import (
    OneCompartmentOralModel,
    PopulationParameters,
    make_time_grid,
    rk4_step,
    sample_eta,
)
from pkcov.simulation.trial import TrialSimulator

REFERENCE = PopulationParameters(ka=0.5, cl=4.0, v=10.0, clwt=0.75, vwt=1.0, wt_ref=70.0)
DOSE = DoseEvent(time_h=0.0, amount=100.0)


def closed_form(t, dose, ka, cl, v):
    k = cl / v
    return dose * ka / (v * (ka - k)) * (math.exp(-k * t) - math.exp(-ka * t))


@pytest.fixture
def child():
    return Subject(id=1, weight_kg=15.8, age_years=4.0, sex=Sex.MALE)


class TestReferenceScenario:
    """Reference subject (WT 15.8 kg) against the closed form."""

    def test_concentration_at_24h(self, child):
        times = make_time_grid(0.0, 24.0, 0.25)
        simulator = TrialSimulator(
            model=OneCompartmentOralModel(REFERENCE),
            dose=DOSE,
            times=times,
            omega=np.array([[0.09, 0.0], [0.0, 0.04]]),
            zeroed=True,
            master_seed=678549,
        )

        batch = simulator.run([child])
        trajectory = batch.trajectories[0]

        cl = 4.0 * (15.8 / 70.0) ** 0.75
        v = 10.0 * (15.8 / 70.0) ** 1.0
        expected = closed_form(24.0, 100.0, 0.5, cl, v)

        assert trajectory.times_h[-1] == 24.0
        assert trajectory.concentrations[-1] == pytest.approx(expected, rel=1e-6)
        assert batch.subjects[0].eta is None

    def test_zero_at_dose_time(self, child):
        trajectory = OneCompartmentOralModel(REFERENCE).simulate(child, DOSE, np.array([0.0, 1.0]))
        assert trajectory.concentrations[0] == 0.0
        assert trajectory.concentrations[1] > 0.0


class TestIntegrators:
    """Numerical integrators agree with the closed form."""

    @pytest.mark.parametrize("integrator", ["rk4", "ode"])
    def test_agreement(self, child, integrator):
        times = make_time_grid(0.0, 24.0, 0.25)
        analytic = OneCompartmentOralModel(REFERENCE).simulate(child, DOSE, times)
        numeric = OneCompartmentOralModel(REFERENCE, integrator=integrator).simulate(child, DOSE, times)

        np.testing.assert_allclose(numeric.concentrations, analytic.concentrations, rtol=1e-6, atol=1e-12)

    @pytest.mark.parametrize("integrator", ["rk4", "ode"])
    def test_agreement_with_random_effects(self, integrator):
        subject = Subject(id=2, weight_kg=22.0, age_years=6.0, sex=Sex.FEMALE, eta=(0.3, -0.2))
        times = make_time_grid(0.0, 24.0, 0.5)
        analytic = OneCompartmentOralModel(REFERENCE).simulate(subject, DOSE, times)
        numeric = OneCompartmentOralModel(REFERENCE, integrator=integrator).simulate(subject, DOSE, times)

        np.testing.assert_allclose(numeric.concentrations, analytic.concentrations, rtol=1e-6, atol=1e-12)

    def test_ka_equals_k_limit(self):
        # CL/V = 5/10 = Ka at the reference weight
        population = PopulationParameters(ka=0.5, cl=5.0, v=10.0, clwt=0.75, vwt=1.0, wt_ref=70.0)
        subject = Subject(id=1, weight_kg=70.0, age_years=30.0, sex=Sex.MALE)
        times = make_time_grid(0.0, 24.0, 0.5)

        analytic = OneCompartmentOralModel(population).simulate(subject, DOSE, times)
        rk4 = OneCompartmentOralModel(population, integrator="rk4").simulate(subject, DOSE, times)

        expected = 100.0 * 0.5 * times * np.exp(-0.5 * times) / 10.0
        np.testing.assert_allclose(analytic.concentrations, expected, rtol=1e-12)
        np.testing.assert_allclose(rk4.concentrations, expected, rtol=1e-6, atol=1e-12)

    def test_delayed_dose(self, child):
        dose = DoseEvent(time_h=2.0, amount=100.0)
        times = make_time_grid(0.0, 12.0, 0.5)

        analytic = OneCompartmentOralModel(REFERENCE).simulate(child, dose, times)
        rk4 = OneCompartmentOralModel(REFERENCE, integrator="rk4").simulate(child, dose, times)

        assert np.all(analytic.concentrations[times <= 2.0] == 0.0)
        np.testing.assert_allclose(rk4.concentrations, analytic.concentrations, rtol=1e-6, atol=1e-12)

    def test_rk4_step_exponential_decay(self):
        state = rk4_step(lambda t, s: (-s[0],), 0.0, (1.0,), 0.01)
        assert state[0] == pytest.approx(math.exp(-0.01), rel=1e-10)


class TestIndividualParameters:
    """Allometric scaling and random effects."""

    def test_reference_weight(self):
        subject = Subject(id=1, weight_kg=70.0, age_years=30.0, sex=Sex.MALE)
        params = OneCompartmentOralModel(REFERENCE).individualize(subject)

        assert params.cl == pytest.approx(4.0)
        assert params.v == pytest.approx(10.0)
        assert params.k == pytest.approx(0.4)

    def test_random_effects(self):
        subject = Subject(id=1, weight_kg=70.0, age_years=30.0, sex=Sex.MALE, eta=(0.1, -0.1))
        params = OneCompartmentOralModel(REFERENCE).individualize(subject)

        assert params.cl == pytest.approx(4.0 * math.exp(0.1))
        assert params.v == pytest.approx(10.0 * math.exp(-0.1))

    @pytest.mark.parametrize("weight", [0.0, -5.0, float("nan")])
    def test_invalid_weight(self, weight):
        subject = Subject(id=9, weight_kg=weight, age_years=1.0, sex=Sex.FEMALE)
        with pytest.raises(InvalidConfigurationError, match="weight"):
            OneCompartmentOralModel(REFERENCE).individualize(subject)

    def test_invalid_population(self):
        with pytest.raises(InvalidConfigurationError):
            PopulationParameters(ka=0.0, cl=4.0, v=10.0, clwt=0.75, vwt=1.0, wt_ref=70.0)

    def test_unknown_integrator(self):
        with pytest.raises(InvalidConfigurationError):
            OneCompartmentOralModel(REFERENCE, integrator="euler")

    def test_sample_eta_shape(self):
        eta = sample_eta(np.random.default_rng(0), np.array([[0.09, 0.0], [0.0, 0.04]]))
        assert len(eta) == 2

    def test_sample_eta_zero_covariance(self):
        eta = sample_eta(np.random.default_rng(0), np.zeros((2, 2)))
        assert eta == (0.0, 0.0)


class TestTimeGrid:
    """Output grid construction."""

    def test_reference_grid(self):
        times = make_time_grid(0.0, 24.0, 0.25)

        assert times.size == 97
        assert times[0] == 0.0
        assert times[-1] == 24.0

    def test_end_appended(self):
        times = make_time_grid(0.0, 1.0, 0.3)
        np.testing.assert_allclose(times, [0.0, 0.3, 0.6, 0.9, 1.0])

    @pytest.mark.parametrize("start,end,step", [(0.0, 0.0, 1.0), (5.0, 1.0, 1.0), (0.0, 1.0, 0.0), (-1.0, 1.0, 0.5)])
    def test_invalid_grid(self, start, end, step):
        with pytest.raises(InvalidConfigurationError):
            make_time_grid(start, end, step)

    def test_non_increasing_output_grid(self, child):
        with pytest.raises(InvalidConfigurationError, match="strictly increasing"):
            OneCompartmentOralModel(REFERENCE).simulate(child, DOSE, np.array([0.0, 2.0, 1.0]))
