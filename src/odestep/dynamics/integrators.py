"""Fixed-step integrators with switching function events.

Every integrator advances the state with one explicit one-step scheme. Before
a step is accepted the registered switching functions are checked; when one
of them changes sign the step is truncated at the localized crossing.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Sequence

import numpy as np

from .base import (
    DerivativeFunction,
    DifferentiableSystem,
    DummyStepHandler,
    EventAction,
    StepHandler,
    SwitchingFunction,
)
from .exceptions import DimensionMismatchError, IntegratorError
from .handlers import TrajectoryRecorder
from .ode import ODESystem
from .switching import DEFAULT_MAX_ITERATIONS, SwitchingFunctionsHandler
from .trajectory import Trajectory
from ..utils.logger import logger


class IntegrationMethod(Enum):
    """Available fixed-step integration schemes."""
    EULER = auto()       # Forward Euler (first order)
    MIDPOINT = auto()    # Explicit midpoint (second order)
    RK4 = auto()         # Classic Runge-Kutta 4th order


class FixedStepIntegrator(ABC):
    """Base class of the fixed-step integrators.

    The integrator owns its step size, the switching function registrations
    and a single step handler. All of them persist across ``integrate``
    calls. An instance must not be shared by concurrent integrations.

    Args:
        step: Step size. Only its magnitude matters, the sign is taken
            from the integration direction of each call.
    """

    name: str = "fixed step"
    order: int = 0

    def __init__(self, step: float):
        if not math.isfinite(step) or step == 0.0:
            raise ValueError(f"step must be finite and non-zero, got {step}")
        self.step = float(step)
        self.step_handler: StepHandler = DummyStepHandler()
        self.switches = SwitchingFunctionsHandler()
        self.evaluations = 0

    def set_step_handler(self, handler: StepHandler | None) -> None:
        """Replace the step handler; None restores the no-op handler."""
        self.step_handler = handler if handler is not None else DummyStepHandler()

    def add_switching_function(
        self,
        function: SwitchingFunction,
        max_check_interval: float,
        convergence: float,
        max_iterations: int = DEFAULT_MAX_ITERATIONS
    ) -> None:
        """Register a switching function.

        Args:
            function: The switching function.
            max_check_interval: Maximal time span between two evaluations
                of g inside a step (``math.inf`` checks step ends only).
            convergence: Tolerance on the localized event time.
            max_iterations: Cap on root search iterations.
        """
        self.switches.add(function, max_check_interval, convergence, max_iterations)

    def get_switching_functions(self) -> list[SwitchingFunction]:
        return self.switches.functions

    def clear_switching_functions(self) -> None:
        self.switches.clear()

    def integrate(
        self,
        system: DifferentiableSystem,
        t0: float,
        y0: Sequence[float],
        t1: float,
        y_out: Sequence[float]
    ) -> float:
        """Integrate ``system`` from (t0, y0) to t1.

        Args:
            system: The differentiable system.
            t0: Initial time.
            y0: Initial state, left untouched.
            t1: Target time, may be lower than t0.
            y_out: Buffer receiving the final state. Undefined on error.

        Returns:
            The time reached: t1, or the event time when a switching
            function stopped the integration.

        Raises:
            DimensionMismatchError: If y0, y_out and the system disagree.
            IntegratorError: On a degenerate interval or when event
                localization fails.
            DerivativeError: Propagated from the system.
        """
        self._sanity_checks(system, t0, y0, t1, y_out)

        direction = 1.0 if t1 > t0 else -1.0
        h = direction * abs(self.step)
        if h != self.step:
            logger.debug(
                "step sign corrected from %g to %g for integration toward t1=%g",
                self.step, h, t1
            )

        t = float(t0)
        y = np.array(y0, dtype=float)
        tolerance = 1e-12 * max(1.0, abs(t1))
        self.evaluations = 0

        self.step_handler.reset()
        self.switches.reinitialize_begin(t, y)
        logger.debug(
            "%s integration of %r from t=%g to t=%g, step %g",
            self.name, system, t0, t1, h
        )

        while True:
            t_next = t + h
            if direction * (t_next - t1) >= -tolerance:
                t_next = t1
            h_step = t_next - t

            k1 = self._derivatives(system, t, y)
            y_next = self.step_state(system, t, y, h_step, k1)

            occurrence = None
            if not self.switches.is_empty:
                t_start = t
                occurrence = self.switches.evaluate_step(
                    t, t_next,
                    lambda s: self.step_state(system, t_start, y, s - t_start, k1)
                )
            if occurrence is not None:
                t_next = occurrence.time
                y_next = self.step_state(system, t, y, t_next - t, k1)

            t = t_next
            y[:] = y_next

            action = self.switches.step_accepted(t, y, occurrence)
            stop = action is EventAction.STOP
            is_last = stop or t == t1
            self.step_handler.handle_step(t, y, is_last)
            if is_last:
                if stop:
                    logger.debug("integration stopped by event at t=%.12g", t)
                break
            self.switches.reset_state(t, y)

        y_out[:] = y
        logger.debug(
            "integration ended at t=%g after %d derivative evaluations",
            t, self.evaluations
        )
        return t

    def _sanity_checks(
        self,
        system: DifferentiableSystem,
        t0: float,
        y0: Sequence[float],
        t1: float,
        y_out: Sequence[float]
    ) -> None:
        dimension = system.dimension
        if len(y0) != dimension:
            raise DimensionMismatchError(dimension, len(y0), "initial state")
        if len(y_out) != dimension:
            raise DimensionMismatchError(dimension, len(y_out), "output buffer")
        if abs(t1 - t0) <= 1e-12 * max(abs(t0), abs(t1)):
            raise IntegratorError(
                f"too small integration interval: length = {abs(t1 - t0)}"
            )

    def _derivatives(
        self,
        system: DifferentiableSystem,
        t: float,
        y: np.ndarray
    ) -> np.ndarray:
        y_dot = np.empty(len(y))
        system.compute_derivatives(t, y, y_dot)
        self.evaluations += 1
        return y_dot

    @abstractmethod
    def step_state(
        self,
        system: DifferentiableSystem,
        t: float,
        y: np.ndarray,
        h: float,
        k1: np.ndarray
    ) -> np.ndarray:
        """State after one step of size h from (t, y).

        ``k1`` holds the derivatives at (t, y), shared by all sub-steps
        taken from the same starting point.
        """
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(step={self.step})"


class EulerIntegrator(FixedStepIntegrator):
    """Forward Euler: y + h f(t, y)."""

    name = "Euler"
    order = 1

    def step_state(self, system, t, y, h, k1):
        return y + h * k1


class MidpointIntegrator(FixedStepIntegrator):
    """Explicit midpoint method (second order).

    Computes:
        k1 = f(t, y)
        k2 = f(t + h/2, y + h/2 * k1)
        y_next = y + h * k2
    """

    name = "midpoint"
    order = 2

    def step_state(self, system, t, y, h, k1):
        if h == 0.0:
            return y.copy()
        k2 = self._derivatives(system, t + 0.5 * h, y + 0.5 * h * k1)
        return y + h * k2


class ClassicalRungeKuttaIntegrator(FixedStepIntegrator):
    """Classic Runge-Kutta 4th order."""

    name = "classical Runge-Kutta"
    order = 4

    def step_state(self, system, t, y, h, k1):
        if h == 0.0:
            return y.copy()
        k2 = self._derivatives(system, t + h/2, y + h/2 * k1)
        k3 = self._derivatives(system, t + h/2, y + h/2 * k2)
        k4 = self._derivatives(system, t + h, y + h * k3)
        return y + h/6 * (k1 + 2*k2 + 2*k3 + k4)


_INTEGRATORS = {
    IntegrationMethod.EULER: EulerIntegrator,
    IntegrationMethod.MIDPOINT: MidpointIntegrator,
    IntegrationMethod.RK4: ClassicalRungeKuttaIntegrator,
}


def create_integrator(method: IntegrationMethod, step: float) -> FixedStepIntegrator:
    """Instantiate the integrator implementing ``method``."""
    if method not in _INTEGRATORS:
        raise ValueError(f"Unknown integration method: {method}")
    return _INTEGRATORS[method](step)


@dataclass
class IntegrationResult:
    """Result of ``solve``.

    Attributes:
        trajectory: Initial state followed by every accepted sample.
        events: List of (event_index, event_time, event_state) tuples.
        terminated_by_event: True if a switching function stopped the run.
        termination_event_index: Index of the event that terminated, or None.
    """
    trajectory: Trajectory
    events: list[tuple[int, float, np.ndarray]] = field(default_factory=list)
    terminated_by_event: bool = False
    termination_event_index: int | None = None

    @property
    def final_state(self) -> np.ndarray:
        return self.trajectory.final_state


class _RecordingSwitch:
    """Wraps a switching function to log its events into a result."""

    def __init__(self, index: int, function: SwitchingFunction, log: list):
        self.index = index
        self.function = function
        self.log = log
        self.last_action = EventAction.CONTINUE

    def g(self, t, y):
        return self.function.g(t, y)

    def event_occurred(self, t, y):
        self.last_action = self.function.event_occurred(t, y)
        self.log.append((self.index, t, np.array(y, dtype=float)))
        return self.last_action

    def reset_state(self, t, y):
        self.function.reset_state(t, y)


def solve(
    system: DifferentiableSystem | DerivativeFunction,
    y0: Sequence[float],
    t_span: tuple[float, float],
    method: IntegrationMethod = IntegrationMethod.MIDPOINT,
    step_size: float = 0.01,
    events: list[SwitchingFunction] | None = None,
    max_check_interval: float = math.inf,
    convergence: float | None = None,
) -> IntegrationResult:
    """Integrate an ODE on ``t_span`` and collect its trajectory and events.

    Args:
        system: Differentiable system, or a plain f(t, y) -> dy/dt.
        y0: Initial state.
        t_span: Time interval (t_start, t_end).
        method: Integration scheme.
        step_size: Fixed step size.
        events: Switching functions to monitor.
        max_check_interval: Maximal check interval for all events.
        convergence: Event time tolerance, defaults to 1e-6 * step_size.

    Returns:
        IntegrationResult with trajectory and event information.
    """
    y0 = np.asarray(y0, dtype=float)
    if not isinstance(system, DifferentiableSystem):
        system = ODESystem(f=system, n_dims=len(y0))
    if convergence is None:
        convergence = 1e-6 * abs(step_size)

    integrator = create_integrator(method, step_size)
    recorder = TrajectoryRecorder()
    integrator.set_step_handler(recorder)

    log: list[tuple[int, float, np.ndarray]] = []
    wrappers = []
    for index, event in enumerate(events or []):
        wrapper = _RecordingSwitch(index, event, log)
        wrappers.append(wrapper)
        integrator.add_switching_function(wrapper, max_check_interval, convergence)

    t_start, t_end = t_span
    y_final = np.empty(len(y0))
    t_reached = integrator.integrate(system, t_start, y0, t_end, y_final)

    # Simultaneous events are logged in registration order
    stopping = [
        index for index, t, _ in log
        if t == t_reached and wrappers[index].last_action is EventAction.STOP
    ]
    return IntegrationResult(
        trajectory=recorder.trajectory(initial=(t_start, y0)),
        events=log,
        terminated_by_event=bool(stopping),
        termination_event_index=stopping[0] if stopping else None,
    )
