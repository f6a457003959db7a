#!/usr/bin/env python3
"""Measure the empirical convergence order of the fixed-step integrators.

Every reference problem is integrated with successively halved steps for
each integration method. The slope of log(error) against log(step) gives the
observed order, which should match the nominal order of the scheme.

Usage:
    python scripts/run_convergence.py [--quick] [--save] [--outdir DIR]

Options:
    --quick     Fewer halvings (~seconds)
    --save      Save figure and JSON results
    --outdir    Output directory (default: ./results/convergence)
"""

from __future__ import annotations

import argparse
import time
from pathlib import Path

import numpy as np
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from odestep.benchmarks import (
    ConvergenceResult,
    get_all_reference_problems,
    run_step_halving,
)
from odestep.dynamics import IntegrationMethod
from odestep.utils import enable_file_logging


NOMINAL_ORDERS = {
    IntegrationMethod.EULER: 1,
    IntegrationMethod.MIDPOINT: 2,
    IntegrationMethod.RK4: 4,
}


def run_convergence_study(
    n_halvings: int = 8,
    first_exponent: int = 3,
    verbose: bool = True
) -> list[ConvergenceResult]:
    """Run step halving for every (problem, method) pair."""
    results = []
    for problem in get_all_reference_problems():
        if verbose:
            print(f"\n{problem.name}")
        for method in IntegrationMethod:
            result = run_step_halving(problem, method, n_halvings, first_exponent)
            results.append(result)
            if verbose:
                flag = "" if result.is_monotone else "  (non monotone)"
                print(
                    f"  {method.name:<9} order {result.order:5.2f} "
                    f"(nominal {NOMINAL_ORDERS[method]}), "
                    f"smallest step error {result.max_errors[-1]:.2e}{flag}"
                )
    return results


def plot_convergence(
    results: list[ConvergenceResult],
    save_path: Path | None = None
) -> plt.Figure:
    """One log-log panel per problem, one line per method."""
    names = list(dict.fromkeys(r.problem_name for r in results))
    fig, axes = plt.subplots(1, len(names), figsize=(4 * len(names), 4), squeeze=False)

    for ax, name in zip(axes[0], names):
        for result in (r for r in results if r.problem_name == name):
            ax.loglog(
                np.abs(result.steps), result.max_errors, 'o-',
                label=f"{result.method.name} ({result.order:.2f})"
            )
        ax.set_xlabel('|step|')
        ax.set_ylabel('Max error')
        ax.set_title(name)
        ax.grid(True, which='both', alpha=0.3)
        ax.legend(fontsize=8)

    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"Saved convergence plot to {save_path}")

    return fig


def main():
    parser = argparse.ArgumentParser(
        description="Run integrator convergence studies",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument('--quick', action='store_true',
                        help='Fewer step halvings')
    parser.add_argument('--save', action='store_true',
                        help='Save figure and results')
    parser.add_argument('--outdir', type=str, default='./results/convergence',
                        help='Output directory')
    parser.add_argument('--log', action='store_true',
                        help='Write debug log to <outdir>/convergence.log')
    args = parser.parse_args()

    outdir = Path(args.outdir)
    if args.save or args.log:
        outdir.mkdir(parents=True, exist_ok=True)
    if args.log:
        enable_file_logging(str(outdir / 'convergence.log'))

    print("=" * 60)
    print("Fixed-Step Integrator Convergence Study")
    print("=" * 60)

    start = time.perf_counter()
    results = run_convergence_study(n_halvings=5 if args.quick else 8)
    print(f"\nTotal runtime: {time.perf_counter() - start:.1f}s")

    if args.save:
        for result in results:
            result.save(outdir / f"{result.problem_name}_{result.method.name.lower()}.json")
        plot_convergence(results, save_path=outdir / 'convergence.png')


if __name__ == '__main__':
    main()
