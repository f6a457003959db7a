"""Empirical convergence studies by successive step halving."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from ..dynamics import IntegrationMethod, create_integrator
from .reference import ReferenceProblem, run_reference_problem


@dataclass
class ConvergenceResult:
    """Errors of one method on one problem for a sequence of step sizes.

    Attributes:
        problem_name: Name of the reference problem.
        method: Integration method used.
        steps: Step sizes, decreasing.
        max_errors: Maximum error over all accepted samples, per step.
        last_errors: Error at the last sample, per step.
        metadata: Additional experiment data.
    """
    problem_name: str
    method: IntegrationMethod
    steps: list[float]
    max_errors: list[float]
    last_errors: list[float]
    metadata: dict = field(default_factory=dict)

    @property
    def order(self) -> float:
        """Slope of a least-squares line through (log step, log last error)."""
        slope, _ = np.polyfit(np.log(np.abs(self.steps)), np.log(self.last_errors), 1)
        return float(slope)

    @property
    def is_monotone(self) -> bool:
        """Whether each halving strictly decreased the maximum error."""
        return all(b < a for a, b in zip(self.max_errors, self.max_errors[1:]))

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'problem_name': self.problem_name,
            'method': self.method.name,
            'steps': [float(s) for s in self.steps],
            'max_errors': [float(e) for e in self.max_errors],
            'last_errors': [float(e) for e in self.last_errors],
            'metadata': self.metadata,
        }

    def save(self, path: Path | str):
        """Save results to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Path | str) -> ConvergenceResult:
        """Load results from JSON file."""
        with open(path) as f:
            data = json.load(f)
        return cls(
            problem_name=data['problem_name'],
            method=IntegrationMethod[data['method']],
            steps=data['steps'],
            max_errors=data['max_errors'],
            last_errors=data['last_errors'],
            metadata=data.get('metadata', {}),
        )


def run_step_halving(
    problem: ReferenceProblem,
    method: IntegrationMethod = IntegrationMethod.MIDPOINT,
    n_halvings: int = 10,
    first_exponent: int = 1
) -> ConvergenceResult:
    """Integrate ``problem`` with steps span * 2^-k for successive k.

    Args:
        problem: Reference problem to integrate.
        method: Integration method.
        n_halvings: Number of step sizes.
        first_exponent: Exponent k of the largest step.

    Returns:
        ConvergenceResult with one entry per step size.
    """
    steps, max_errors, last_errors = [], [], []
    for k in range(first_exponent, first_exponent + n_halvings):
        step = problem.span * 2.0**(-k)
        handler = run_reference_problem(problem, create_integrator(method, step))
        steps.append(step)
        max_errors.append(handler.max_error)
        last_errors.append(handler.last_error)

    return ConvergenceResult(
        problem_name=problem.name,
        method=method,
        steps=steps,
        max_errors=max_errors,
        last_errors=last_errors,
        metadata={'first_exponent': first_exponent},
    )
