"""Reference problems with analytical solutions.

Each problem bundles a differentiable system, its integration interval,
initial state, exact solution and, for the discontinuous ones, the switching
functions that must be registered to integrate it correctly.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod

import numpy as np

from ..dynamics import (
    EventAction,
    Event,
    FixedStepIntegrator,
    ODESystem,
    SwitchingFunction,
)
from ..utils.statistics import VectorSampleStatistics


class ReferenceProblem(ABC):
    """Base class for problems with known solution."""

    name: str = "reference"

    @property
    @abstractmethod
    def system(self) -> ODESystem:
        ...

    @property
    @abstractmethod
    def t0(self) -> float:
        ...

    @property
    @abstractmethod
    def t1(self) -> float:
        ...

    @property
    @abstractmethod
    def y0(self) -> np.ndarray:
        ...

    @abstractmethod
    def exact(self, t: float) -> np.ndarray:
        """Analytical state at time t."""
        ...

    @property
    def dimension(self) -> int:
        return self.system.dimension

    @property
    def span(self) -> float:
        return self.t1 - self.t0

    @property
    def error_scale(self) -> np.ndarray:
        """Weights applied to each component's absolute error."""
        return np.ones(self.dimension)

    def switching_functions(self) -> list[SwitchingFunction]:
        """Fresh switching functions for one run (none by default)."""
        return []

    def __repr__(self) -> str:
        return f"{type(self).__name__}(t=[{self.t0}, {self.t1}])"


class ExponentialDecayProblem(ReferenceProblem):
    """y' = -y on [0, 4], y(t) = y0 exp(-t)."""

    name = "exponential_decay"

    def __init__(self):
        self._system = ODESystem.exponential_decay(n_dims=2)
        self._y0 = np.array([1.0, 0.1])

    @property
    def system(self) -> ODESystem:
        return self._system

    @property
    def t0(self) -> float:
        return 0.0

    @property
    def t1(self) -> float:
        return 4.0

    @property
    def y0(self) -> np.ndarray:
        return self._y0.copy()

    def exact(self, t: float) -> np.ndarray:
        return self._y0 * math.exp(-(t - self.t0))


class BackwardDecayProblem(ExponentialDecayProblem):
    """y' = -y integrated backward from 0 to -4."""

    name = "backward_decay"

    @property
    def t1(self) -> float:
        return -4.0


class PolynomialForcingProblem(ReferenceProblem):
    """y' = t^3 - t y on [0, 1], y(t) = t^2 - 2 + 2 exp(-t^2 / 2)."""

    name = "polynomial_forcing"

    def __init__(self):
        self._system = ODESystem(
            f=lambda t, y: t**3 - t * y,
            n_dims=1,
            name=self.name,
        )

    @property
    def system(self) -> ODESystem:
        return self._system

    @property
    def t0(self) -> float:
        return 0.0

    @property
    def t1(self) -> float:
        return 1.0

    @property
    def y0(self) -> np.ndarray:
        return np.array([0.0])

    def exact(self, t: float) -> np.ndarray:
        return np.array([t * t - 2.0 + 2.0 * math.exp(-0.5 * t * t)])


class HarmonicOscillatorProblem(ReferenceProblem):
    """x'' = -x over one period, starting from (1, 0)."""

    name = "harmonic_oscillator"

    def __init__(self):
        self._system = ODESystem.harmonic_oscillator()

    @property
    def system(self) -> ODESystem:
        return self._system

    @property
    def t0(self) -> float:
        return 0.0

    @property
    def t1(self) -> float:
        return 2.0 * math.pi

    @property
    def y0(self) -> np.ndarray:
        return np.array([1.0, 0.0])

    def exact(self, t: float) -> np.ndarray:
        return np.array([math.cos(t), -math.sin(t)])


class Bounce:
    """Switching function reflecting the state when the position hits 0."""

    def g(self, t: float, y: np.ndarray) -> float:
        return float(y[0])

    def event_occurred(self, t: float, y: np.ndarray) -> EventAction:
        return EventAction.RESET_STATE

    def reset_state(self, t: float, y: np.ndarray) -> None:
        y[0] = -y[0]
        y[1] = -y[1]


class BouncingProblem(ReferenceProblem):
    """x'' = -x with velocity reversal whenever x reaches 0.

    The solution is x = |sin(t + a)|. A second switching function stops the
    integration at ``stop_time``, before the nominal final time.
    """

    name = "bouncing"

    def __init__(self, a: float = 1.2, stop_time: float = 12.0):
        self.a = a
        self.stop_time = stop_time
        self._system = ODESystem.harmonic_oscillator()

    @property
    def system(self) -> ODESystem:
        return self._system

    @property
    def t0(self) -> float:
        return 0.0

    @property
    def t1(self) -> float:
        return 15.0

    @property
    def y0(self) -> np.ndarray:
        return np.array([math.sin(self.a), math.cos(self.a)])

    @property
    def error_scale(self) -> np.ndarray:
        # Velocity sign is ambiguous at the bounce itself
        return np.array([1.0, 0.0])

    def exact(self, t: float) -> np.ndarray:
        s = math.sin(t + self.a)
        c = math.cos(t + self.a)
        return np.array([abs(s), c if s >= 0 else -c])

    def bounce_times(self) -> list[float]:
        """Analytical bounce times before the stop time."""
        times = []
        k = math.ceil(self.a / math.pi)
        while k * math.pi - self.a < self.stop_time:
            if k * math.pi - self.a > self.t0:
                times.append(k * math.pi - self.a)
            k += 1
        return times

    def switching_functions(self) -> list[SwitchingFunction]:
        stop_time = self.stop_time
        return [
            Bounce(),
            Event(lambda t, y: t - stop_time, action=EventAction.STOP),
        ]


class ErrorTrackingHandler:
    """Step handler measuring the error against a reference solution.

    Weighted absolute errors of every sample are fed to a
    VectorSampleStatistics, so the componentwise maximum error is available
    once the run is over.
    """

    def __init__(self, problem: ReferenceProblem):
        self.problem = problem
        self.statistics = VectorSampleStatistics()
        self.last_error = math.nan
        self.last_time = math.nan

    def reset(self) -> None:
        self.statistics = VectorSampleStatistics()
        self.last_error = math.nan
        self.last_time = math.nan

    def handle_step(self, t: float, y: np.ndarray, is_last: bool) -> None:
        error = self.problem.error_scale * np.abs(y - self.problem.exact(t))
        self.statistics.add(error)
        if is_last:
            self.last_error = float(np.max(error))
            self.last_time = t

    @property
    def max_error(self) -> float:
        if len(self.statistics) == 0:
            return math.nan
        return float(np.max(self.statistics.max))


def run_reference_problem(
    problem: ReferenceProblem,
    integrator: FixedStepIntegrator,
    max_check_interval: float = math.inf,
    convergence: float | None = None
) -> ErrorTrackingHandler:
    """Integrate ``problem`` with ``integrator`` and track its errors.

    The integrator's step handler and switching functions are replaced.

    Args:
        convergence: Event tolerance, defaults to 1e-6 * step.
    """
    if convergence is None:
        convergence = 1e-6 * abs(integrator.step)

    handler = ErrorTrackingHandler(problem)
    integrator.set_step_handler(handler)
    integrator.clear_switching_functions()
    for function in problem.switching_functions():
        integrator.add_switching_function(function, max_check_interval, convergence)

    y_out = np.empty(problem.dimension)
    integrator.integrate(problem.system, problem.t0, problem.y0, problem.t1, y_out)
    return handler


def get_all_reference_problems() -> list[ReferenceProblem]:
    return [
        ExponentialDecayProblem(),
        BackwardDecayProblem(),
        PolynomialForcingProblem(),
        HarmonicOscillatorProblem(),
        BouncingProblem(),
    ]
