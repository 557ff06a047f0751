"""Integrator adapter
==================

:func:`integrate` turns any open system into a sampled trajectory. The step
method is pluggable; the adapter only relies on

    ``step_method.step(rhs, u, t, dt) -> u_next``

where ``rhs(t, u)`` is the system's vector field. Available step methods:

* :class:`Euler` -- fixed-step explicit Euler
* :class:`RK4` -- fixed-step classic Runge-Kutta
* :class:`ScipyStepper` -- delegates each interval to ``scipy.integrate.solve_ivp``
* :class:`DormandPrince` -- adaptive RK5(4), ``ScipyStepper`` pinned to ``RK45``
* :class:`StochasticEuler` -- discrete-time stochastic map clamped at zero
"""
from __future__ import annotations

import math
from typing import Any, Callable, Dict, Optional, Tuple, Type, Union

import numpy as np
from scipy.integrate import solve_ivp
from tqdm import tqdm

from .errors import DimensionMismatch, NumericalFailure
from .systems import Inputs, OpenSystem, check_state
from .trajectory import Trajectory

RHS = Callable[[float, np.ndarray], np.ndarray]


class StepMethod:
    """Advance a state across one output interval ``[t, t + dt]``."""

    name = "base"

    def step(self, rhs: RHS, u: np.ndarray, t: float, dt: float) -> np.ndarray:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Euler(StepMethod):
    name = "euler"

    def step(self, rhs: RHS, u: np.ndarray, t: float, dt: float) -> np.ndarray:
        return u + dt * rhs(t, u)


class RK4(StepMethod):
    """Runge-Kutta 4th order, one evaluation stage set per interval."""

    name = "rk4"

    def step(self, rhs: RHS, u: np.ndarray, t: float, dt: float) -> np.ndarray:
        k1 = rhs(t, u)
        k2 = rhs(t + dt / 2, u + dt * k1 / 2)
        k3 = rhs(t + dt / 2, u + dt * k2 / 2)
        k4 = rhs(t + dt, u + dt * k3)
        return u + dt / 6 * (k1 + 2 * k2 + 2 * k3 + k4)


class ScipyStepper(StepMethod):
    """Integrate each interval with ``scipy.integrate.solve_ivp``."""

    name = "scipy"

    def __init__(self, method: str = "RK45", rtol: float = 1e-6, atol: float = 1e-9):
        self.method = method
        self.rtol = rtol
        self.atol = atol

    def step(self, rhs: RHS, u: np.ndarray, t: float, dt: float) -> np.ndarray:
        solution = solve_ivp(
            rhs, (t, t + dt), u,
            method=self.method, rtol=self.rtol, atol=self.atol,
        )
        if not solution.success:
            raise NumericalFailure(f"solve_ivp ({self.method}) failed at t={t:.6g}: {solution.message}")
        return solution.y[:, -1]

    def __repr__(self) -> str:
        return f"ScipyStepper(method={self.method!r})"


class DormandPrince(ScipyStepper):
    """Adaptive Runge-Kutta 5(4) (scipy's ``RK45``) with local error control.

    Each call integrates exactly to ``t + dt`` with as many substeps as the
    tolerances require. A solver that gives up raises :class:`NumericalFailure`.
    """

    name = "dopri5"

    def __init__(self, rtol: float = 1e-6, atol: float = 1e-9):
        super().__init__(method="RK45", rtol=rtol, atol=atol)

    def __repr__(self) -> str:
        return f"DormandPrince(rtol={self.rtol}, atol={self.atol})"


class StochasticEuler(StepMethod):
    """Discrete stochastic update.

    The deterministic increment ``f * dt`` is perturbed by a standard normal
    draw scaled by ``sqrt(|f * dt|)`` per component, and the result is clamped
    at zero. The generator is owned by the stepper, so give each concurrent
    run its own instance.
    """

    name = "stochastic"

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self.rng = np.random.default_rng(seed)

    def step(self, rhs: RHS, u: np.ndarray, t: float, dt: float) -> np.ndarray:
        increment = dt * rhs(t, u)
        noise = self.rng.standard_normal(u.size) * np.sqrt(np.abs(increment))
        return np.maximum(u + increment + noise, 0.0)

    def __repr__(self) -> str:
        return f"StochasticEuler(seed={self.seed})"


STEP_METHODS: Dict[str, Type[StepMethod]] = {
    cls.name: cls for cls in (Euler, RK4, DormandPrince, ScipyStepper, StochasticEuler)
}


def get_step_method(name: str, **kwargs) -> StepMethod:
    """Instantiate a step method by its registry name."""
    cls = STEP_METHODS.get(name)
    if cls is None:
        raise ValueError(f"Unknown step method '{name}'. Available: {sorted(STEP_METHODS)}")
    return cls(**kwargs)


def integrate(
    system: OpenSystem,
    initial_state,
    time_span: Tuple[float, float],
    params: Any = None,
    step_method: Union[StepMethod, str, None] = None,
    dt: float = 1.0,
    inputs: Inputs = None,
    post_step: Optional[Callable[[np.ndarray], np.ndarray]] = None,
    progress: bool = False,
) -> Trajectory:
    """Integrate ``system`` over ``time_span`` and sample it every ``dt``.

    Args:
        system: Any open system, atomic or composite.
        initial_state: Vector of length ``system.state_dim``.
        time_span: ``(t0, t1)`` with ``t1 >= t0``. The last interval is
            shortened so the final sample lands exactly on ``t1``.
        params: Passed unchanged to every ``dynamics`` call.
        step_method: A :class:`StepMethod`, a registry name, or ``None`` for RK4.
        dt: Output sampling interval (also the step size of fixed-step methods).
        inputs: Input values for machines with input ports (vector or ``t -> vector``).
        post_step: Optional map applied to the state after every step.
        progress: Show a ``tqdm`` progress bar.

    Returns:
        Trajectory with ``n_steps + 1`` samples, the initial state first.

    Raises:
        DimensionMismatch: ``initial_state`` has the wrong length.
        NumericalFailure: a step produced NaN/Inf or the stepper gave up.
    """
    u = check_state(initial_state, system.state_dim, system.name).copy()
    t0, t1 = float(time_span[0]), float(time_span[1])
    if t1 < t0:
        raise ValueError(f"time_span must be increasing, got {time_span}")
    if dt <= 0:
        raise ValueError(f"dt must be positive, got {dt}")

    if step_method is None:
        step_method = RK4()
    elif isinstance(step_method, str):
        step_method = get_step_method(step_method)

    rhs = system.vector_field(params, inputs)

    n_steps = max(1, int(math.ceil((t1 - t0) / dt - 1e-9))) if t1 > t0 else 0
    times = t0 + dt * np.arange(n_steps + 1, dtype=float)
    times[-1] = t1
    states = np.empty((n_steps + 1, system.state_dim))
    states[0] = u

    steps = range(1, n_steps + 1)
    if progress:
        steps = tqdm(steps, desc=system.name, unit="step")
    for idx in steps:
        t_prev = times[idx - 1]
        u = np.asarray(step_method.step(rhs, u, t_prev, times[idx] - t_prev), dtype=float)
        if post_step is not None:
            u = post_step(u)
        if u.shape != (system.state_dim,):
            raise DimensionMismatch(
                f"{step_method!r} returned a state of shape {u.shape}, expected ({system.state_dim},)"
            )
        if not np.all(np.isfinite(u)):
            raise NumericalFailure(f"NaN or Inf detected at step {idx} (t={times[idx]:.6g})")
        states[idx] = u

    return Trajectory(times=times, states=states, labels=tuple(system.labels))
