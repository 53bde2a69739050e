"""
Tests for the display and input collaborators.
"""

import pytest
import numpy as np
import sys
import os
from types import SimpleNamespace

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from stablefluids.kernels.cpu_solver import CPUFluidSolver
from visualization.field_plots import plot_flow_field, velocity_to_rgb
from simulations.interactive_fluid import DragInput


class TestFieldPlots:
    """Velocity images and snapshot figures."""

    def test_velocity_to_rgb(self):
        ux = np.array([[1.0, 0.0], [0.0, 0.5]])
        uy = np.zeros((2, 2))
        rgb = velocity_to_rgb(ux, uy, vmax=1.0)
        assert rgb.shape == (2, 2, 3)
        np.testing.assert_allclose(rgb[0, 0], [1.0, 0.0, 0.0])
        np.testing.assert_allclose(rgb[0, 1], [0.0, 0.0, 0.0])
        np.testing.assert_allclose(rgb[1, 1], [0.5, 0.0, 0.0])

    def test_zero_field_is_black(self):
        rgb = velocity_to_rgb(np.zeros((4, 4)), np.zeros((4, 4)))
        assert np.all(rgb == 0.0)

    def test_plot_flow_field_saves(self, tmp_path):
        solver = CPUFluidSolver(32, particles_side=8, seed=0)
        solver.add_force(16, 16, 5.0, 0.0)
        solver.step()

        path = tmp_path / "snapshots" / "flow.png"
        fig = plot_flow_field(solver, save_path=str(path))
        assert path.exists()
        plt.close(fig)


class TestDragInput:
    """Mouse drags become queued force events."""

    @pytest.fixture
    def drag(self):
        solver = CPUFluidSolver(16, particles_side=4, force_scale=100.0, seed=0)
        fig, ax = plt.subplots()
        yield DragInput(solver, ax)
        plt.close(fig)

    def event(self, drag, x=None, y=None, button=1, key=None):
        return SimpleNamespace(inaxes=drag.ax, xdata=x, ydata=y, button=button, key=key)

    def test_drag_queues_force(self, drag):
        drag.on_press(self.event(drag, 0.5, 0.5))
        drag.on_motion(self.event(drag, 0.52, 0.5))

        cx, cy, fx, fy = drag.solver.pending_forces[0]
        assert (cx, cy) == (8, 8)
        assert fx == pytest.approx(2.0)
        assert fy == pytest.approx(0.0)

    def test_motion_without_press_ignored(self, drag):
        drag.on_motion(self.event(drag, 0.3, 0.3))
        drag.on_press(self.event(drag, 0.5, 0.5, button=3))
        drag.on_motion(self.event(drag, 0.6, 0.6))
        assert drag.solver.pending_forces == []

    def test_release_ends_drag(self, drag):
        drag.on_press(self.event(drag, 0.5, 0.5))
        drag.on_release(self.event(drag, 0.5, 0.5))
        drag.on_motion(self.event(drag, 0.7, 0.5))
        assert drag.solver.pending_forces == []

    def test_reset_key(self, drag):
        drag.solver.add_force(8, 8, 1.0, 0.0)
        drag.solver.step()
        drag.on_key(self.event(drag, key='r'))
        assert drag.solver.step_count == 0
        assert drag.solver.get_kinetic_energy() == 0.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
