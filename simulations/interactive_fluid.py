"""
Interactive Stable Fluids

Drag with the left mouse button to push the fluid; particles show the flow.
Press 'r' to reset the simulation.

Mouse drags are converted into force events (position + displacement in
normalized coordinates) and queued on the solver between steps.
"""

import argparse
import os
import sys

import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from stablefluids.domain import DIM, DT, VIS, FR
from stablefluids.kernels.cpu_solver import CPUFluidSolver


class DragInput:
    """
    Turns matplotlib mouse events into solver force events.

    Parameters
    ----------
    solver : CPUFluidSolver or GPUFluidSolver
        Solver receiving the events
    ax : Axes
        Axes showing the unit square
    """

    def __init__(self, solver, ax):
        self.solver = solver
        self.ax = ax
        self.last = None

        canvas = ax.figure.canvas
        canvas.mpl_connect('button_press_event', self.on_press)
        canvas.mpl_connect('button_release_event', self.on_release)
        canvas.mpl_connect('motion_notify_event', self.on_motion)
        canvas.mpl_connect('key_press_event', self.on_key)

    def on_press(self, event):
        if event.inaxes is self.ax and event.button == 1:
            self.last = (event.xdata, event.ydata)

    def on_release(self, event):
        self.last = None

    def on_motion(self, event):
        if self.last is None or event.inaxes is not self.ax:
            return
        x, y = event.xdata, event.ydata
        lx, ly = self.last
        self.solver.add_drag(lx, ly, x - lx, y - ly)
        self.last = (x, y)

    def on_key(self, event):
        if event.key == 'r':
            self.solver.reset()


def run_interactive(dim=DIM, dt=DT, visc=VIS, radius=FR, particles_side=None,
                    use_gpu=False, boundary="clamp"):
    """Open a window and run the solver until it is closed."""
    if use_gpu:
        from stablefluids.kernels.gpu_solver import GPUFluidSolver
        solver = GPUFluidSolver(dim, dt=dt, visc=visc, force_radius=radius,
                                particles_side=particles_side, boundary=boundary)
    else:
        solver = CPUFluidSolver(dim, dt=dt, visc=visc, force_radius=radius,
                                particles_side=particles_side, boundary=boundary)

    print(f"Stable fluids: {dim} x {dim}, dt={dt}, visc={visc}, radius={radius}")
    print("Left mouse button + drag: push the fluid, 'r': reset")

    fig, ax = plt.subplots(figsize=(7, 7))
    positions = solver.get_particles()
    scatter = ax.scatter(positions[:, 0], positions[:, 1], s=0.1, c='black',
                         marker='.', linewidths=0)
    ax.set_xlim(0, 1)
    ax.set_ylim(0, 1)
    ax.set_aspect('equal')
    ax.set_title('Stable Fluids')

    drag = DragInput(solver, ax)

    def update(frame):
        solver.step()
        scatter.set_offsets(solver.get_particles())
        if frame % 100 == 99:
            print(f"Step {solver.step_count}, "
                  f"{solver.step_count / solver.total_time:.1f} steps/s")
        return scatter,

    anim = FuncAnimation(fig, update, interval=1, blit=True, cache_frame_data=False)
    plt.show()
    return solver, drag, anim


def main():
    parser = argparse.ArgumentParser(description="Interactive stable fluids")
    parser.add_argument("--dim", type=int, default=256)
    parser.add_argument("--dt", type=float, default=DT)
    parser.add_argument("--visc", type=float, default=VIS)
    parser.add_argument("--radius", type=int, default=FR)
    parser.add_argument("--particles", type=int, default=None,
                        help="particles per row (default: dim)")
    parser.add_argument("--boundary", choices=["clamp", "wrap"], default="clamp")
    parser.add_argument("--gpu", action="store_true")
    args = parser.parse_args()

    run_interactive(args.dim, args.dt, args.visc, args.radius, args.particles,
                    args.gpu, args.boundary)


if __name__ == "__main__":
    main()
