"""
CPU Stable Fluids Solver

Numba-parallel implementation of the full per-step pipeline:

    force injection -> velocity advection -> forward FFT
    -> diffusion & projection -> inverse FFT -> finalization
    -> particle advection

Every stage is one kernel call whose parallel loop runs over disjoint
tiles; a stage starts only after the previous call has returned.
"""

import time

import numpy as np

from ..domain import (
    DIM, DT, VIS, FR, MAX_FORCE, TILEX, TILEY,
    validate_boundary, validate_dim, validate_max_force, validate_parameters,
    validate_velocity,
)
from ..layout import (
    allocate_spectral_buffers, allocate_velocity_field, complex_view,
    logical_view, make_tiles, padded_widths,
)
from ..forces import add_force_numba, clamp_force, impulse_from_drag
from ..advection import advect_particles_numba, advect_velocity_numba
from ..spectral import SpectralTransform, diffuse_project_numba, update_velocity_numba
from ..particles import ParticleSet
from ..observables import (
    compute_divergence, compute_kinetic_energy, compute_spectral_divergence,
    compute_velocity_magnitude, compute_vorticity,
)


class CPUFluidSolver:
    """
    CPU-based stable fluids solver using NumPy/Numba/SciPy.

    Parameters
    ----------
    dim : int
        Grid dimension (power of two)
    dt : float
        Time step
    visc : float
        Viscosity
    force_scale : float, optional
        Force per unit of normalized mouse drag (default 5.8 * dim)
    force_radius : int
        Force radius in cells
    boundary : str
        Sampling boundary policy, "clamp" or "wrap"
    particles_side : int, optional
        Particles per row of the initial lattice (default dim, 0 disables)
    pitch : int, optional
        Row pitch of the velocity field
    seed : int, optional
        Seed for the particle jitter
    max_force : float
        Larger forces are clamped at injection

    Attributes
    ----------
    field : ndarray
        Velocity field, shape (dim, pitch, 2)
    vx, vy : ndarray
        Padded spectral buffers, shape (dim, rpadw)
    particles : ParticleSet or None
        Tracer particles
    """

    def __init__(self, dim=DIM, dt=DT, visc=VIS, force_scale=None,
                 force_radius=FR, boundary="clamp", particles_side=None,
                 pitch=None, seed=None, max_force=MAX_FORCE):
        self.dim = validate_dim(dim)
        validate_parameters(dt, visc, force_radius)
        self.dt = dt
        self.visc = visc
        self.force_scale = 5.8 * self.dim if force_scale is None else force_scale
        self.force_radius = int(force_radius)
        self.boundary = validate_boundary(boundary)
        self.max_force = validate_max_force(max_force)

        self.cpadw, self.rpadw = padded_widths(self.dim)

        # Fields
        self.field = allocate_velocity_field(self.dim, pitch)
        self.pitch = self.field.shape[1]
        self.vx, self.vy = allocate_spectral_buffers(self.dim)
        self.transform = SpectralTransform(self.dim)

        # Work partitions
        self.tiles = make_tiles(self.dim, self.dim, TILEX, TILEY)
        self.spectral_tiles = make_tiles(self.cpadw, self.dim, TILEX, TILEY)

        if particles_side is None:
            particles_side = self.dim
        self.particles = ParticleSet(particles_side, seed=seed) if particles_side > 0 else None

        # Force events queued for the next step
        self.pending_forces = []

        # Statistics
        self.step_count = 0
        self.total_time = 0.0

    def reset(self):
        """Zero the velocity field and re-create the particles."""
        self.field[:] = 0.0
        self.vx[:] = 0.0
        self.vy[:] = 0.0
        if self.particles is not None:
            self.particles.reset()
        self.pending_forces = []
        self.step_count = 0
        self.total_time = 0.0

    def initialize_from_fields(self, ux, uy):
        """
        Initialize the velocity field from two component arrays.

        Parameters
        ----------
        ux, uy : ndarray
            Velocity components, shape (dim, dim)
        """
        validate_velocity(ux, uy, self.dim)
        self.field[:] = 0.0
        view = logical_view(self.field, self.dim)
        view[..., 0] = ux
        view[..., 1] = uy

    def add_force(self, cx, cy, fx, fy):
        """
        Queue a force event centred on grid cell (cx, cy).

        Invalid forces are rejected here, not in the middle of a step.
        """
        fx, fy = clamp_force(fx, fy, self.max_force)
        self.pending_forces.append((int(cx), int(cy), fx, fy))

    def add_drag(self, x, y, dx, dy):
        """Queue a force event from a normalized mouse drag."""
        cx, cy, fx, fy = impulse_from_drag(x, y, dx, dy, self.dim, self.force_scale)
        self.add_force(cx, cy, fx, fy)

    def apply_forces(self):
        """Apply and clear all queued force events."""
        for cx, cy, fx, fy in self.pending_forces:
            add_force_numba(self.field, self.dim, cx, cy,
                            self.dt * fx, self.dt * fy, self.force_radius)
        self.pending_forces = []

    def advect_velocity(self):
        """Semi-Lagrangian advection into the spectral buffers."""
        advect_velocity_numba(self.field, self.vx, self.vy, self.dim,
                              float(self.dt), self.boundary, self.tiles)

    def diffuse_project(self):
        """Forward FFT, diffusion & projection, inverse FFT."""
        vx_hat = self.transform.forward(self.vx)
        vy_hat = self.transform.forward(self.vy)

        diffuse_project_numba(vx_hat, vy_hat, self.dim, float(self.dt),
                              float(self.visc), True, True, self.spectral_tiles)

        self.transform.inverse(self.vx)
        self.transform.inverse(self.vy)

    def update_velocity(self):
        """Normalize the inverse transform into the velocity field."""
        update_velocity_numba(self.field, self.vx, self.vy, self.dim, self.tiles)

    def advect_particles(self):
        """Move tracer particles through the new field."""
        if self.particles is not None:
            advect_particles_numba(self.particles.positions, self.field, self.dim,
                                   float(self.dt), self.boundary)

    def step(self):
        """
        Perform one simulation step.

        Returns
        -------
        dt : float
            Time taken for this step (seconds)
        """
        start = time.perf_counter()

        self.apply_forces()
        self.advect_velocity()
        self.diffuse_project()
        self.update_velocity()
        self.advect_particles()

        elapsed = time.perf_counter() - start
        self.step_count += 1
        self.total_time += elapsed
        return elapsed

    def run(self, num_steps, verbose=True, report_interval=100):
        """
        Run simulation for specified number of steps.

        Parameters
        ----------
        num_steps : int
            Number of timesteps to run
        verbose : bool
            Print progress information
        report_interval : int
            Steps between progress reports

        Returns
        -------
        steps_per_second : float
            Throughput of the run
        """
        start = time.perf_counter()

        for step in range(num_steps):
            self.step()

            if verbose and (step + 1) % report_interval == 0:
                elapsed = time.perf_counter() - start
                print(f"Step {step + 1}/{num_steps}, "
                      f"{(step + 1) / elapsed:.1f} steps/s")

        total = time.perf_counter() - start
        rate = num_steps / total if total > 0 else float("inf")

        if verbose:
            print(f"Completed {num_steps} steps in {total:.2f}s")
            print(f"Performance: {rate:.1f} steps/s "
                  f"({rate * self.dim * self.dim / 1e6:.2f} Mcells/s)")

        return rate

    def get_velocity(self):
        """
        Read-only copies of the velocity components.

        Returns
        -------
        ux, uy : ndarray
            Velocity components, shape (dim, dim), float32
        """
        view = logical_view(self.field, self.dim)
        ux = np.ascontiguousarray(view[..., 0])
        uy = np.ascontiguousarray(view[..., 1])
        ux.setflags(write=False)
        uy.setflags(write=False)
        return ux, uy

    def get_particles(self):
        """Read-only copy of particle positions (None without particles)."""
        if self.particles is None:
            return None
        return self.particles.snapshot()

    def get_velocity_magnitude(self):
        """Return velocity magnitude field."""
        return compute_velocity_magnitude(*self.get_velocity())

    def get_vorticity(self):
        """Return vorticity field."""
        return compute_vorticity(*self.get_velocity())

    def get_divergence(self):
        """Return central-difference divergence field."""
        return compute_divergence(*self.get_velocity())

    def get_spectral_divergence(self):
        """Return relative spectral divergence (0 for incompressible flow)."""
        return compute_spectral_divergence(*self.get_velocity())

    def get_kinetic_energy(self):
        """Return total kinetic energy."""
        return compute_kinetic_energy(*self.get_velocity())


def benchmark_cpu_solver(grid_sizes=None, num_steps=50, warmup_steps=5):
    """
    Benchmark CPU solver across different grid sizes.

    Parameters
    ----------
    grid_sizes : list of int
        Grid dimensions to test
    num_steps : int
        Number of steps for timing (after warmup)
    warmup_steps : int
        Number of warmup steps (for JIT compilation)

    Returns
    -------
    results : dict
        Grid dimension -> steps per second
    """
    if grid_sizes is None:
        grid_sizes = [64, 128, 256, 512, 1024]

    results = {}

    print("CPU Stable Fluids Benchmark")
    print("=" * 50)
    print(f"dt: {DT}, visc: {VIS}, Steps: {num_steps}, Warmup: {warmup_steps}")
    print()

    for dim in grid_sizes:
        print(f"Grid size: {dim} x {dim}")

        solver = CPUFluidSolver(dim, seed=0)
        solver.add_drag(0.5, 0.5, 0.01, 0.0)

        for _ in range(warmup_steps):
            solver.step()

        start = time.perf_counter()
        for _ in range(num_steps):
            solver.step()
        elapsed = time.perf_counter() - start

        rate = num_steps / elapsed
        results[dim] = rate

        print(f"  Time: {elapsed:.2f}s, {rate:.1f} steps/s")
        print()

    return results


if __name__ == "__main__":
    results = benchmark_cpu_solver()

    print("\nSummary")
    print("=" * 50)
    for dim, rate in results.items():
        print(f"{dim:4d} x {dim:4d}: {rate:8.1f} steps/s")
