"""Reference problems and convergence studies for the integrators.

This module provides tools for:
- Integrating problems with analytical solutions and tracking errors
- Measuring empirical convergence orders by step halving
"""

from .reference import (
    ReferenceProblem,
    ExponentialDecayProblem,
    BackwardDecayProblem,
    PolynomialForcingProblem,
    HarmonicOscillatorProblem,
    BouncingProblem,
    Bounce,
    ErrorTrackingHandler,
    run_reference_problem,
    get_all_reference_problems,
)
from .convergence import ConvergenceResult, run_step_halving

__all__ = [
    'ReferenceProblem',
    'ExponentialDecayProblem',
    'BackwardDecayProblem',
    'PolynomialForcingProblem',
    'HarmonicOscillatorProblem',
    'BouncingProblem',
    'Bounce',
    'ErrorTrackingHandler',
    'run_reference_problem',
    'get_all_reference_problems',
    'ConvergenceResult',
    'run_step_halving',
]
