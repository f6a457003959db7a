"""ODE system built from a plain derivative function."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .base import DerivativeFunction
from .exceptions import DerivativeError
from ..utils.derivatives import center_difference_gradient


@dataclass
class ODESystem:
    """ODE system dy/dt = f(t, y).

    Implements the DifferentiableSystem protocol on top of a callable.
    Failures of ``f`` that signal an unusable state (arithmetic errors,
    value errors, a result of the wrong shape or with non-finite entries)
    are reported as DerivativeError.

    Attributes:
        f: The derivative function f(t, y) -> dy/dt.
        n_dims: Dimension of the state space.
        name: Optional label used in messages and plots.
    """
    f: DerivativeFunction
    n_dims: int
    name: str = "ode"

    def __post_init__(self) -> None:
        if self.n_dims < 1:
            raise ValueError(f"n_dims must be positive, got {self.n_dims}")

    @property
    def dimension(self) -> int:
        """Dimension of the state space."""
        return self.n_dims

    def compute_derivatives(
        self,
        t: float,
        y: np.ndarray,
        y_dot: np.ndarray
    ) -> None:
        """Evaluate f(t, y) into ``y_dot``."""
        try:
            value = np.asarray(self.f(t, y), dtype=float)
        except (ArithmeticError, ValueError) as e:
            raise DerivativeError(
                f"{self.name}: cannot compute derivatives at t={t}: {e}"
            ) from e

        if value.shape != (self.n_dims,):
            raise DerivativeError(
                f"{self.name}: derivative has shape {value.shape}, "
                f"expected ({self.n_dims},)"
            )
        if not np.all(np.isfinite(value)):
            raise DerivativeError(
                f"{self.name}: non-finite derivative at t={t}"
            )

        y_dot[:] = value

    def derivatives(self, t: float, y: np.ndarray) -> np.ndarray:
        """Return dy/dt at (t, y) as a new array."""
        y_dot = np.empty(self.n_dims)
        self.compute_derivatives(t, np.asarray(y, dtype=float), y_dot)
        return y_dot

    def jacobian(self, t: float, y: np.ndarray, delta: float = 1e-7) -> np.ndarray:
        """Approximate df/dy at (t, y) by centered differences.

        Returns:
            Matrix of shape (n_dims, n_dims).
        """
        return center_difference_gradient(
            lambda x: self.derivatives(t, x), y, delta
        )

    @classmethod
    def from_matrix(cls, A: np.ndarray, **kwargs) -> ODESystem:
        """Create linear ODE system dy/dt = Ay.

        Args:
            A: System matrix, shape (n, n).
            **kwargs: Additional options passed to ODESystem.

        Returns:
            ODESystem for the linear system.
        """
        A = np.asarray(A, dtype=float)
        if A.ndim != 2 or A.shape[0] != A.shape[1]:
            raise ValueError(f"A must be a square matrix, got shape {A.shape}")

        def f(t: float, y: np.ndarray) -> np.ndarray:
            return A @ y

        kwargs.setdefault("name", "linear")
        return cls(f=f, n_dims=A.shape[0], **kwargs)

    @classmethod
    def exponential_decay(cls, rate: float = 1.0, n_dims: int = 1) -> ODESystem:
        """Create dy/dt = -rate * y, solution y0 * exp(-rate * t)."""
        def f(t: float, y: np.ndarray) -> np.ndarray:
            return -rate * y

        return cls(f=f, n_dims=n_dims, name="exponential_decay")

    @classmethod
    def harmonic_oscillator(cls, omega: float = 1.0) -> ODESystem:
        """Create harmonic oscillator: dx/dt = v, dv/dt = -omega^2 * x."""
        A = np.array([
            [0, 1],
            [-omega**2, 0]
        ])
        return cls.from_matrix(A, name="harmonic_oscillator")

    def __repr__(self) -> str:
        return f"ODESystem(name={self.name!r}, n_dims={self.n_dims})"
