"""Bouncing ball example: state resets at switching function events.

The ball is in free fall, dy/dt = v and dv/dt = -g. When the height reaches
zero a switching function fires, and its reset reverses the velocity with a
restitution coefficient. Once the rebound apex would drop below a threshold
the same function stops the integration instead.

Usage:
    python bouncing_ball.py                        # Run without visualization
    python bouncing_ball.py --save                 # Save plots to current directory
    python bouncing_ball.py --save --outdir ./figs # Save plots to specific directory
"""

import argparse
from pathlib import Path

import numpy as np
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from odestep.dynamics import Event, EventAction, IntegrationMethod, ODESystem, solve
from odestep.utils import plot_events


GRAVITY = 9.81


class Ground:
    """Ground contact: bounce while the rebound is high enough, then stop."""

    def __init__(self, restitution=0.8, min_apex=0.01):
        self.restitution = restitution
        self.min_apex = min_apex
        self.occurrences = []

    def g(self, t, y):
        return y[0]

    def event_occurred(self, t, y):
        self.occurrences.append(t)
        # Apex height reached after the bounce is v^2 / (2 g)
        v = self.restitution * y[1]
        if v * v / (2 * GRAVITY) < self.min_apex:
            return EventAction.STOP
        return EventAction.RESET_STATE

    def reset_state(self, t, y):
        y[0] = 0.0
        y[1] = -self.restitution * y[1]


def make_ball(restitution=0.8):
    """Free-fall system and its ground contact switching function."""
    system = ODESystem(
        f=lambda t, y: np.array([y[1], -GRAVITY]),
        n_dims=2,
        name="bouncing_ball",
    )
    return system, Ground(restitution)


def simulate_bouncing_ball(method=IntegrationMethod.MIDPOINT, step_size=0.01):
    """Drop the ball from 1m and record every bounce."""
    print("=" * 60)
    print(f"Bouncing Ball Simulation ({method.name})")
    print("=" * 60)

    system, ground = make_ball()
    x0 = np.array([1.0, 0.0])  # [height, velocity]

    # Safety net in case the ball never settles
    timeout = Event(lambda t, y: t - 8.0, action=EventAction.STOP)

    result = solve(
        system, x0, (0.0, 10.0),
        method=method, step_size=step_size,
        events=[ground, timeout],
    )
    traj = result.trajectory

    print(f"Simulated {len(traj)} time points")
    print(f"Bounces: {len(ground.occurrences)}")
    for i, t in enumerate(ground.occurrences[:5]):
        print(f"  bounce {i + 1}: t = {t:.6f}s")
    if result.terminated_by_event:
        reason = "rebound below 1cm" if result.termination_event_index == 0 else "timeout"
        print(f"Stopped at t = {traj.t_end:.4f}s ({reason})")

    # Exact first impact time
    t_impact = np.sqrt(2 * x0[0] / GRAVITY)
    print(f"First impact error: {abs(ground.occurrences[0] - t_impact):.2e}s")

    return result


def visualize_trajectory(result):
    """Plot height and velocity with the bounce times marked."""
    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(10, 8), sharex=True)

    plot_events(result, ax=ax1, color='gray', dims=[0])
    ax1.axhline(y=0, color='k', linestyle='--', label='Ground')
    ax1.set_ylabel('Height (m)')
    ax1.set_title('Bouncing Ball Trajectory')
    ax1.grid(True, alpha=0.3)

    traj = result.trajectory
    ax2.plot(traj.times, traj.states[:, 1], 'r-')
    ax2.set_xlabel('Time (s)')
    ax2.set_ylabel('Velocity (m/s)')
    ax2.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig


def visualize_phase_portrait(result):
    """Plot phase portrait (height vs velocity)."""
    traj = result.trajectory
    fig, ax = plt.subplots(figsize=(8, 8))

    ax.plot(traj.states[:, 0], traj.states[:, 1], 'b-', alpha=0.7)
    ax.plot(traj.states[0, 0], traj.states[0, 1], 'go', markersize=10, label='Start')
    ax.plot(traj.states[-1, 0], traj.states[-1, 1], 'rs', markersize=10, label='End')

    ax.axvline(x=0, color='k', linestyle='--', label='Ground')
    ax.set_xlabel('Height (m)')
    ax.set_ylabel('Velocity (m/s)')
    ax.set_title('Bouncing Ball Phase Portrait')
    ax.legend()
    ax.grid(True, alpha=0.3)

    return fig


def parse_args():
    parser = argparse.ArgumentParser(description="Bouncing ball example")
    parser.add_argument('--save', action='store_true',
                        help='Save plots to files')
    parser.add_argument('--outdir', type=str, default='.',
                        help='Output directory for saved plots (default: current dir)')
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()

    result = simulate_bouncing_ball()
    simulate_bouncing_ball(IntegrationMethod.RK4, step_size=0.02)

    print("\n" + "=" * 60)
    print("Bouncing ball example completed!")
    print("=" * 60)

    if args.save:
        fig1 = visualize_trajectory(result)
        fig2 = visualize_phase_portrait(result)

        outdir = Path(args.outdir)
        outdir.mkdir(parents=True, exist_ok=True)
        fig1.savefig(outdir / 'bouncing_ball_trajectory.png', dpi=150, bbox_inches='tight')
        fig2.savefig(outdir / 'bouncing_ball_phase.png', dpi=150, bbox_inches='tight')
        print(f"\nFigures saved to {outdir.absolute()}")
