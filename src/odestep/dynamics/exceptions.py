"""Exceptions raised during ODE integration.

Two families are kept apart so callers can tell a modeling problem from an
algorithmic limitation:

- ``DerivativeError``: the differentiable system could not compute its
  derivatives for the requested state (user-function failure).
- ``IntegratorError``: the solver itself gave up, either because its inputs
  are inconsistent or because event localization did not converge.
"""


class IntegrationError(Exception):
    """Base exception for all integration errors."""

    pass


class DerivativeError(IntegrationError):
    """Derivatives could not be computed for the given time and state."""

    pass


class IntegratorError(IntegrationError):
    """Solver-internal failure."""

    pass


class DimensionMismatchError(IntegratorError):
    """State or output buffer length differs from the problem dimension."""

    def __init__(self, expected: int, got: int, what: str = "state"):
        self.expected = expected
        self.got = got
        super().__init__(
            f"dimensions mismatch: problem has dimension {expected}, "
            f"{what} has length {got}"
        )


class EventLocalizationError(IntegratorError):
    """Root search for a switching function did not converge."""

    def __init__(self, t_start: float, t_end: float, iterations: int):
        self.t_start = t_start
        self.t_end = t_end
        self.iterations = iterations
        super().__init__(
            f"event localization failed to converge in [{t_start}, {t_end}] "
            f"after {iterations} iterations"
        )
