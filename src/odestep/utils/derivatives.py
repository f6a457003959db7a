"""Finite-difference derivative approximations."""

from __future__ import annotations

from typing import Callable

import numpy as np


def center_difference(
    func: Callable[[float], float | np.ndarray],
    delta: float
) -> Callable[[float], float | np.ndarray]:
    """Wrap ``func`` into its centered-difference derivative.

    The returned callable evaluates (func(x + delta/2) - func(x - delta/2)) / delta,
    which is second-order accurate in ``delta``.

    Args:
        func: Scalar or vector valued function of one real variable.
        delta: Total width of the difference stencil, must be positive.

    Returns:
        Function approximating d func / dx.
    """
    if not delta > 0:
        raise ValueError(f"delta must be positive, got {delta}")

    half = 0.5 * delta

    def derivative(x: float) -> float | np.ndarray:
        return (np.asarray(func(x + half)) - np.asarray(func(x - half))) / delta

    return derivative


def center_difference_gradient(
    func: Callable[[np.ndarray], np.ndarray],
    x: np.ndarray,
    delta: float = 1e-7
) -> np.ndarray:
    """Centered-difference Jacobian of ``func`` at ``x``.

    Column ``j`` holds the derivative with respect to ``x[j]``.
    """
    x = np.asarray(x, dtype=float)
    columns = []
    for j in range(len(x)):
        def along_axis(s: float, j: int = j) -> np.ndarray:
            shifted = x.copy()
            shifted[j] += s
            return np.atleast_1d(func(shifted))
        columns.append(center_difference(along_axis, delta)(0.0))
    return np.column_stack(columns)
