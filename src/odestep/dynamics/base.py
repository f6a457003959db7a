"""Base protocols and types for differentiable systems, events and handlers."""

from __future__ import annotations

from enum import Enum, auto
from typing import Protocol, Callable, runtime_checkable

import numpy as np


# Type alias for derivative function: f(t, y) -> dy/dt
DerivativeFunction = Callable[[float, np.ndarray], np.ndarray]


class EventAction(Enum):
    """What the integrator does once a switching function event is localized."""
    CONTINUE = auto()      # Keep integrating from the event time
    STOP = auto()          # End integration at the event time
    RESET_STATE = auto()   # Let the function rewrite the state, then continue


@runtime_checkable
class DifferentiableSystem(Protocol):
    """Protocol for first-order differential systems dy/dt = f(t, y).

    Implementations fill ``y_dot`` in place and raise
    :class:`~odestep.dynamics.exceptions.DerivativeError` when the
    derivatives cannot be computed for the given state.
    """

    @property
    def dimension(self) -> int:
        """Dimension of the state vector."""
        ...

    def compute_derivatives(
        self,
        t: float,
        y: np.ndarray,
        y_dot: np.ndarray
    ) -> None:
        """Compute dy/dt at (t, y) into ``y_dot``."""
        ...


@runtime_checkable
class SwitchingFunction(Protocol):
    """Protocol for switching functions.

    An event occurs when ``g`` changes sign along the trajectory. Once the
    crossing time is localized, ``event_occurred`` decides what happens next.
    """

    def g(self, t: float, y: np.ndarray) -> float:
        """Value of the switching function at (t, y)."""
        ...

    def event_occurred(self, t: float, y: np.ndarray) -> EventAction:
        """Handle a localized event and return the action to take."""
        ...

    def reset_state(self, t: float, y: np.ndarray) -> None:
        """Rewrite ``y`` in place; only called after RESET_STATE."""
        ...


@runtime_checkable
class StepHandler(Protocol):
    """Protocol for step handlers.

    ``handle_step`` receives every accepted sample in integration order.
    The state array is owned by the integrator and reused between calls,
    so handlers that keep it must copy it.
    """

    def reset(self) -> None:
        """Called once at the start of each integration."""
        ...

    def handle_step(self, t: float, y: np.ndarray, is_last: bool) -> None:
        """Consume the accepted sample (t, y)."""
        ...


class DummyStepHandler:
    """Step handler that ignores every sample.

    This is the integrator's handler until ``set_step_handler`` is called.
    """

    def reset(self) -> None:
        pass

    def handle_step(self, t: float, y: np.ndarray, is_last: bool) -> None:
        pass

    def __repr__(self) -> str:
        return "DummyStepHandler()"
