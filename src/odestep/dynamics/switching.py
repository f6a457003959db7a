"""Switching functions and event localization.

The integrator owns one SwitchingFunctionsHandler. For every registered
switching function it keeps a SwitchState record with the value and sign of
the function at the start of the current step. When asked about a candidate
step, each record samples its function across the step (finer than the step
when the maximum check interval requires it), and a sign change is narrowed
down with Brent's method. The earliest localized crossing ends the step, and
every function whose own crossing lies within its tolerance of that time is
triggered with it.

A function that is exactly zero at the initial time takes its reference sign
from the first value it reaches, so no event is reported at the initial time.

After an event the record forces its reference sign to the side the function
crossed into, so the crossing just handled is not detected again from the
slightly inaccurate event time.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable

import numpy as np
from scipy.optimize import brentq

from .base import EventAction, SwitchingFunction
from .exceptions import EventLocalizationError
from ..utils.logger import logger


DEFAULT_MAX_ITERATIONS = 100

# Maps a time inside the current step to the state there
StateAtTime = Callable[[float], np.ndarray]


@dataclass
class Event:
    """Switching function built from plain callables.

    Attributes:
        function: Event function g(t, y). Event triggers when g crosses zero.
        action: Action returned when the event occurs.
        reset: Callable rewriting y in place, required for RESET_STATE.
        occurrences: Times at which the event was handled.
    """
    function: Callable[[float, np.ndarray], float]
    action: EventAction = EventAction.STOP
    reset: Callable[[float, np.ndarray], None] | None = None
    occurrences: list[float] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.action is EventAction.RESET_STATE and self.reset is None:
            raise ValueError("RESET_STATE events need a reset function")

    def g(self, t: float, y: np.ndarray) -> float:
        return float(self.function(t, y))

    def event_occurred(self, t: float, y: np.ndarray) -> EventAction:
        self.occurrences.append(t)
        return self.action

    def reset_state(self, t: float, y: np.ndarray) -> None:
        if self.reset is not None:
            self.reset(t, y)


@dataclass
class EventOccurrence:
    """A localized crossing selected for the current step.

    Attributes:
        time: Localized event time.
        index: Registration index of the triggering function.
        function: The triggering switching function.
    """
    time: float
    index: int
    function: SwitchingFunction


@dataclass
class SwitchState:
    """Registration record of one switching function.

    Attributes:
        function: The switching function.
        max_check_interval: Largest time span sampled without an
            intermediate evaluation of g.
        convergence: Width below which the crossing bracket is accepted.
        max_iterations: Cap on Brent iterations per localization.
    """
    function: SwitchingFunction
    max_check_interval: float
    convergence: float
    max_iterations: int = DEFAULT_MAX_ITERATIONS

    t0: float = field(default=math.nan, init=False)
    g0: float = field(default=math.nan, init=False)
    g0_positive: bool = field(default=True, init=False)
    previous_event_time: float = field(default=math.nan, init=False)
    pending_event_time: float = field(default=math.nan, init=False)
    after_event_positive: bool = field(default=True, init=False)
    next_action: EventAction = field(default=EventAction.CONTINUE, init=False)
    start_on_zero: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        if not self.max_check_interval > 0:
            raise ValueError(
                f"max_check_interval must be positive, got {self.max_check_interval}"
            )
        if not self.convergence > 0:
            raise ValueError(
                f"convergence must be positive, got {self.convergence}"
            )
        if self.max_iterations < 1:
            raise ValueError(
                f"max_iterations must be at least 1, got {self.max_iterations}"
            )

    def reinitialize(self, t: float, y: np.ndarray) -> None:
        """Forget everything from previous runs and sample g at the start."""
        self.t0 = t
        self.g0 = self.function.g(t, y)
        self.g0_positive = self.g0 >= 0
        self.previous_event_time = math.nan
        self.pending_event_time = math.nan
        self.next_action = EventAction.CONTINUE
        self.start_on_zero = self.g0 == 0.0

    def evaluate_step(self, t_end: float, state_at: StateAtTime) -> float | None:
        """Look for a new sign change of g between t0 and t_end.

        Returns:
            The localized crossing time, or None.
        """
        self.pending_event_time = math.nan
        span = t_end - self.t0
        n = max(1, math.ceil(abs(span) / self.max_check_interval))
        h = span / n

        positive = self.g0_positive
        ta, ga = self.t0, self.g0
        for i in range(n):
            tb = t_end if i == n - 1 else self.t0 + (i + 1) * h
            gb = self.function.g(tb, state_at(tb))

            if positive != (gb >= 0):
                if i == 0 and self.start_on_zero and ga == 0.0:
                    # Zero at the initial time is a starting condition
                    positive = gb >= 0
                    ta, ga = tb, gb
                    continue
                root = self._localize(ta, ga, tb, gb, state_at)
                if (math.isnan(self.previous_event_time)
                        or abs(root - self.previous_event_time) > self.convergence):
                    self.pending_event_time = root
                    self.after_event_positive = gb >= 0
                    return root
                # crossing already handled at the previous event
                positive = gb >= 0

            ta, ga = tb, gb

        return None

    def _localize(
        self,
        ta: float,
        ga: float,
        tb: float,
        gb: float,
        state_at: StateAtTime
    ) -> float:
        if ga == 0.0:
            return ta
        if gb == 0.0:
            return tb
        if (ga > 0) == (gb > 0):
            # Only the forced reference sign differs: the crossing is at ta
            return ta

        lo, hi = (ta, tb) if ta <= tb else (tb, ta)
        root, info = brentq(
            lambda s: self.function.g(s, state_at(s)),
            lo, hi,
            xtol=self.convergence,
            maxiter=self.max_iterations,
            full_output=True,
            disp=False,
        )
        if not info.converged:
            raise EventLocalizationError(lo, hi, info.iterations)
        return float(root)

    def step_accepted(self, t: float, y: np.ndarray, triggered: bool) -> EventAction:
        """Move the reference point to the accepted sample (t, y).

        Args:
            triggered: Whether this function's event is being handled at t.

        Returns:
            The action requested by the function (CONTINUE when not triggered).
        """
        self.t0 = t
        self.g0 = self.function.g(t, y)
        if triggered:
            self.previous_event_time = t
            self.g0_positive = self.after_event_positive
            self.next_action = self.function.event_occurred(t, y)
        else:
            self.g0_positive = self.g0 >= 0
            self.next_action = EventAction.CONTINUE
        self.pending_event_time = math.nan
        self.start_on_zero = False
        return self.next_action

    def crosses_at(self, t: float) -> bool:
        """Whether the crossing found in the current step lies within convergence of t."""
        return (not math.isnan(self.pending_event_time)
                and abs(self.pending_event_time - t) <= self.convergence)

    def refresh(self, t: float, y: np.ndarray) -> None:
        """Re-sample g after the state was rewritten at t."""
        self.g0 = self.function.g(t, y)
        if self.previous_event_time != t:
            self.g0_positive = self.g0 >= 0


# Combined action when several functions trigger at the same time
_ACTION_PRIORITY = {
    EventAction.CONTINUE: 0,
    EventAction.RESET_STATE: 1,
    EventAction.STOP: 2,
}


class SwitchingFunctionsHandler:
    """Event localizer shared by all registered switching functions."""

    def __init__(self):
        self.states: list[SwitchState] = []
        self._triggered: list[SwitchState] = []

    def add(
        self,
        function: SwitchingFunction,
        max_check_interval: float,
        convergence: float,
        max_iterations: int = DEFAULT_MAX_ITERATIONS
    ) -> SwitchState:
        state = SwitchState(function, max_check_interval, convergence, max_iterations)
        self.states.append(state)
        return state

    def clear(self) -> None:
        self.states.clear()
        self._triggered = []

    @property
    def is_empty(self) -> bool:
        return len(self.states) == 0

    @property
    def functions(self) -> list[SwitchingFunction]:
        return [state.function for state in self.states]

    def reinitialize_begin(self, t0: float, y0: np.ndarray) -> None:
        self._triggered = []
        for state in self.states:
            state.reinitialize(t0, y0)

    def evaluate_step(
        self,
        t: float,
        t_end: float,
        state_at: StateAtTime
    ) -> EventOccurrence | None:
        """Find the earliest crossing in the step from t to t_end.

        A later-registered function replaces the current best only when its
        crossing comes earlier by more than its convergence tolerance, so
        the selected time is the one found by the first-registered function
        among near-simultaneous crossings.
        """
        direction = 1.0 if t_end >= t else -1.0
        best: EventOccurrence | None = None
        for index, state in enumerate(self.states):
            root = state.evaluate_step(t_end, state_at)
            if root is None:
                continue
            if best is None or direction * (best.time - root) > state.convergence:
                best = EventOccurrence(time=root, index=index, function=state.function)

        if best is not None:
            logger.debug(
                "switching function %d changes sign at t=%.12g", best.index, best.time
            )
        return best

    def step_accepted(
        self,
        t: float,
        y: np.ndarray,
        occurrence: EventOccurrence | None = None
    ) -> EventAction:
        """Update every record at the accepted sample.

        Besides the selected function, every function whose own crossing
        lies within its convergence of t is triggered too, in registration
        order.

        Returns:
            The strongest action requested (STOP over RESET_STATE over
            CONTINUE), CONTINUE without event.
        """
        action = EventAction.CONTINUE
        self._triggered = []
        for index, state in enumerate(self.states):
            triggered = occurrence is not None and (
                index == occurrence.index or state.crosses_at(t)
            )
            result = state.step_accepted(t, y, triggered)
            if triggered:
                self._triggered.append(state)
                if index != occurrence.index:
                    logger.debug(
                        "switching function %d triggered together with %d at t=%.12g",
                        index, occurrence.index, t
                    )
                if _ACTION_PRIORITY[result] > _ACTION_PRIORITY[action]:
                    action = result
        return action

    def reset_state(self, t: float, y: np.ndarray) -> bool:
        """Apply the pending RESET_STATE requests to y, in registration order.

        Returns:
            True if y was rewritten.
        """
        resetting = [
            state for state in self._triggered
            if state.next_action is EventAction.RESET_STATE
        ]
        self._triggered = []
        if not resetting:
            return False
        for state in resetting:
            state.function.reset_state(t, y)
        for other in self.states:
            other.refresh(t, y)
        logger.debug("state reset by %d function(s) at t=%.12g", len(resetting), t)
        return True
