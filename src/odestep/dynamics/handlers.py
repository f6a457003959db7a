"""Step handlers collecting the samples accepted by an integrator."""

from __future__ import annotations

import numpy as np

from .trajectory import Trajectory
from ..utils.statistics import VectorSampleStatistics


class TrajectoryRecorder:
    """Step handler storing a copy of every accepted sample.

    The initial state is not a step, so it is not recorded here; pass
    ``initial`` to ``trajectory`` to prepend it.
    """

    def __init__(self):
        self._times: list[float] = []
        self._states: list[np.ndarray] = []
        self.finished = False

    def reset(self) -> None:
        self._times = []
        self._states = []
        self.finished = False

    def handle_step(self, t: float, y: np.ndarray, is_last: bool) -> None:
        self._times.append(float(t))
        # The integrator reuses y, keep our own copy
        self._states.append(np.array(y, dtype=float))
        if is_last:
            self.finished = True

    def __len__(self) -> int:
        return len(self._times)

    def trajectory(
        self,
        initial: tuple[float, np.ndarray] | None = None
    ) -> Trajectory:
        """Build a Trajectory from the recorded samples.

        Args:
            initial: Optional (t0, y0) sample placed before the steps.
        """
        times = list(self._times)
        states = list(self._states)
        if initial is not None:
            times.insert(0, float(initial[0]))
            states.insert(0, np.array(initial[1], dtype=float))
        if not times:
            raise ValueError("No samples recorded")
        return Trajectory(times=np.array(times), states=np.array(states))


class StatisticsStepHandler:
    """Step handler accumulating state statistics over accepted samples."""

    def __init__(self):
        self.statistics = VectorSampleStatistics()

    def reset(self) -> None:
        self.statistics = VectorSampleStatistics()

    def handle_step(self, t: float, y: np.ndarray, is_last: bool) -> None:
        self.statistics.add(y)
