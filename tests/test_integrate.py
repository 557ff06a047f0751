"""
Tests for the integrator adapter and step methods.
"""

import math

import numpy as np
import pytest

from epiwire.errors import DimensionMismatch, NumericalFailure
from epiwire.integrate import (
    RK4,
    STEP_METHODS,
    DormandPrince,
    Euler,
    ScipyStepper,
    StochasticEuler,
    get_step_method,
    integrate,
)
from epiwire.systems import ContinuousMachine, ResourceSharer


def _decay():
    return ResourceSharer(1, lambda u, p, t: [-p["k"] * u[0]], labels=["u"], name="decay")


def _blowup():
    return ResourceSharer(1, lambda u, p, t: [u[0] ** 2], labels=["u"], name="blowup")


class TestIntegrate:

    def test_samples_include_both_ends(self):
        traj = integrate(_decay(), [1.0], (0.0, 1.0), {"k": 1.0}, dt=0.25)
        np.testing.assert_allclose(traj.times, [0.0, 0.25, 0.5, 0.75, 1.0])
        assert len(traj) == 5
        assert traj.states[0, 0] == 1.0

    def test_last_interval_lands_on_end(self):
        traj = integrate(_decay(), [1.0], (0.0, 1.0), {"k": 1.0}, dt=0.3)
        assert traj.times[-1] == 1.0
        np.testing.assert_allclose(traj.times[:-1], [0.0, 0.3, 0.6, 0.9])
        assert traj.final_state[0] == pytest.approx(math.exp(-1.0), rel=1e-4)

    def test_zero_length_span(self):
        traj = integrate(_decay(), [2.0], (3.0, 3.0), {"k": 1.0})
        assert len(traj) == 1
        assert traj.times[0] == 3.0

    def test_span_shorter_than_tolerance_still_steps(self):
        traj = integrate(_decay(), [1.0], (0.0, 1e-12), {"k": 1.0}, "euler", dt=1.0)
        np.testing.assert_allclose(traj.times, [0.0, 1e-12])
        assert traj.states[0, 0] == 1.0
        assert traj.states[1, 0] == pytest.approx(1.0 - 1e-12, rel=0, abs=1e-15)

    def test_dormand_prince_uses_rk45(self):
        stepper = DormandPrince(rtol=1e-4)
        assert stepper.method == "RK45"
        assert stepper.rtol == 1e-4

    def test_initial_state_length_checked(self):
        with pytest.raises(DimensionMismatch):
            integrate(_decay(), [1.0, 2.0], (0.0, 1.0), {"k": 1.0})

    def test_decreasing_span_rejected(self):
        with pytest.raises(ValueError):
            integrate(_decay(), [1.0], (1.0, 0.0), {"k": 1.0})

    def test_non_positive_dt_rejected(self):
        with pytest.raises(ValueError):
            integrate(_decay(), [1.0], (0.0, 1.0), {"k": 1.0}, dt=0.0)

    def test_step_method_by_name(self):
        traj = integrate(_decay(), [1.0], (0.0, 1.0), {"k": 1.0}, step_method="euler", dt=0.5)
        np.testing.assert_allclose(traj.states[:, 0], [1.0, 0.5, 0.25])

    def test_machine_inputs_forwarded(self):
        pump = ContinuousMachine(
            1, ["rate"], 0,
            dynamics=lambda u, x, p, t: [x[0]],
            readout=lambda u: [],
        )
        traj = integrate(pump, [0.0], (0.0, 2.0), None, dt=1.0, inputs=[3.0])
        np.testing.assert_allclose(traj.states[:, 0], [0.0, 3.0, 6.0])

    def test_post_step_applied(self):
        traj = integrate(
            _decay(), [1.0], (0.0, 2.0), {"k": 1.0}, "euler", dt=1.0,
            post_step=lambda u: u + 1.0,
        )
        np.testing.assert_allclose(traj.states[:, 0], [1.0, 1.0, 1.0])

    def test_nan_raises_numerical_failure(self):
        with np.errstate(over="ignore", invalid="ignore"):
            with pytest.raises(NumericalFailure):
                integrate(_blowup(), [1.0], (0.0, 20.0), None, "euler", dt=1.0)

    def test_system_reusable_after_failure(self):
        system = _blowup()
        with np.errstate(over="ignore", invalid="ignore"):
            with pytest.raises(NumericalFailure):
                integrate(system, [1.0], (0.0, 20.0), None, "euler", dt=1.0)
        traj = integrate(system, [1.0], (0.0, 0.5), None, DormandPrince(), dt=0.1)
        assert traj.final_state[0] == pytest.approx(2.0, rel=1e-5)

    def test_progress_bar(self):
        traj = integrate(_decay(), [1.0], (0.0, 1.0), {"k": 1.0}, dt=0.1, progress=True)
        assert len(traj) == 11


class TestStepMethods:

    @pytest.mark.parametrize("stepper, dt, tol", [
        (RK4(), 0.1, 1e-5),
        (DormandPrince(rtol=1e-8, atol=1e-10), 1.0, 1e-6),
        (ScipyStepper(rtol=1e-8, atol=1e-10), 1.0, 1e-6),
    ])
    def test_exponential_decay_accuracy(self, stepper, dt, tol):
        traj = integrate(_decay(), [1.0], (0.0, 3.0), {"k": 1.0}, stepper, dt=dt)
        np.testing.assert_allclose(traj.states[:, 0], np.exp(-traj.times), rtol=tol)

    def test_euler_single_step(self):
        u = Euler().step(lambda t, u: -u, np.array([2.0]), 0.0, 0.5)
        np.testing.assert_allclose(u, [1.0])

    def test_dormand_prince_blowup_reported(self):
        # u' = u^2 from u(0) = 1 blows up at t = 1
        with np.errstate(over="ignore", invalid="ignore"):
            with pytest.raises(NumericalFailure):
                integrate(_blowup(), [1.0], (0.0, 2.0), None, DormandPrince(), dt=2.0)

    def test_scipy_failure_reported(self):
        with np.errstate(over="ignore", invalid="ignore"):
            with pytest.raises(NumericalFailure):
                integrate(_blowup(), [1.0], (0.0, 2.0), None, ScipyStepper(), dt=2.0)

    def test_stochastic_is_seeded_and_non_negative(self):
        system = ResourceSharer(2, lambda u, p, t: [-0.5 * u[0], 0.5 * u[0] - 0.1 * u[1]])
        a = integrate(system, [100.0, 0.0], (0.0, 30.0), None, StochasticEuler(seed=7), dt=1.0)
        b = integrate(system, [100.0, 0.0], (0.0, 30.0), None, StochasticEuler(seed=7), dt=1.0)
        np.testing.assert_array_equal(a.states, b.states)
        assert np.all(a.states >= 0.0)

    def test_stochastic_without_flow_is_deterministic(self):
        still = ResourceSharer(1, lambda u, p, t: [0.0])
        traj = integrate(still, [5.0], (0.0, 3.0), None, StochasticEuler(seed=1), dt=1.0)
        np.testing.assert_array_equal(traj.states[:, 0], [5.0, 5.0, 5.0, 5.0])

    def test_registry(self):
        assert set(STEP_METHODS) == {"euler", "rk4", "dopri5", "scipy", "stochastic"}
        assert isinstance(get_step_method("dopri5", rtol=1e-3), DormandPrince)
        with pytest.raises(ValueError):
            get_step_method("leapfrog")
