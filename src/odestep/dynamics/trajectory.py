"""Sampled solution returned by ``solve``."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class Trajectory:
    """Accepted samples of one integration, in integration order.

    A backward integration yields decreasing times. A time point appears
    twice when a state reset happened there.

    Attributes:
        times: Sample times, shape (n_points,)
        states: Sampled states, shape (n_points, n_dims)
    """
    times: np.ndarray
    states: np.ndarray

    def __post_init__(self) -> None:
        self.times = np.asarray(self.times, dtype=float)
        self.states = np.asarray(self.states, dtype=float)
        if self.states.ndim == 1:
            self.states = self.states[:, np.newaxis]

        if self.states.shape[0] != self.times.shape[0]:
            raise ValueError(
                f"{self.times.shape[0]} times for {self.states.shape[0]} states"
            )

    @property
    def n_points(self) -> int:
        return self.times.shape[0]

    @property
    def n_dims(self) -> int:
        return self.states.shape[1]

    @property
    def t_start(self) -> float:
        return float(self.times[0])

    @property
    def t_end(self) -> float:
        return float(self.times[-1])

    @property
    def final_state(self) -> np.ndarray:
        """Copy of the last sampled state."""
        return self.states[-1].copy()

    def __len__(self) -> int:
        return self.n_points

    def __repr__(self) -> str:
        return (
            f"Trajectory({self.n_points} samples of dimension {self.n_dims}, "
            f"t from {self.t_start:g} to {self.t_end:g})"
        )
