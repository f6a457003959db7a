"""Visualization utilities for trajectories and events."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import matplotlib.pyplot as plt

if TYPE_CHECKING:
    from ..dynamics.trajectory import Trajectory
    from ..dynamics.integrators import IntegrationResult


def plot_trajectory(
    trajectory: Trajectory,
    ax: plt.Axes | None = None,
    dims: Sequence[int] | None = None,
    **kwargs
) -> plt.Axes:
    """Plot state components against time.

    Args:
        trajectory: Trajectory to plot.
        ax: Matplotlib axes (creates new if None).
        dims: Which state components to plot (all by default).
        **kwargs: Additional arguments to ax.plot.

    Returns:
        The matplotlib axes.
    """
    if ax is None:
        fig, ax = plt.subplots()

    if dims is None:
        dims = range(trajectory.n_dims)

    for d in dims:
        ax.plot(trajectory.times, trajectory.states[:, d], label=f'y[{d}]', **kwargs)

    ax.set_xlabel('Time')
    ax.set_ylabel('State')
    return ax


def plot_events(
    result: IntegrationResult,
    ax: plt.Axes | None = None,
    color: str = 'red',
    **kwargs
) -> plt.Axes:
    """Plot the trajectory of a result and mark its event times.

    Returns:
        The matplotlib axes.
    """
    ax = plot_trajectory(result.trajectory, ax=ax, **kwargs)
    for i, (index, t_event, _) in enumerate(result.events):
        ax.axvline(
            t_event, color=color, linestyle='--', alpha=0.5,
            label='Event' if i == 0 else None
        )
    if result.events:
        ax.legend()
    return ax
