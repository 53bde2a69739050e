"""
GPU Stable Fluids Solver

CUDA kernels written with Numba for every stage of the pipeline except the
FFT, which stays a host-side collaborator (SpectralTransform on SciPy).

Tiled kernels (advection, projection, finalization) are launched on a grid
of TILEX x TILEY tiles with TIDSX x TIDSY threads per block. Each thread
owns one column of its tile and walks lb = TILEY / TIDSY consecutive rows,
with a per-row bounds check for the remainder tile.

Spectral buffers stay in their interleaved float layout on the device:
coefficient (kx, ky) has its real part at [ky, 2 * kx] and its imaginary
part at [ky, 2 * kx + 1].
"""

import math
import time

import numpy as np
from numba import cuda

from ..domain import (
    DIM, DT, VIS, FR, MAX_FORCE, BOUNDARY_CLAMP,
    validate_boundary, validate_dim, validate_max_force, validate_parameters,
    validate_velocity,
)
from ..layout import (
    allocate_spectral_buffers, allocate_velocity_field, launch_config,
    logical_view, padded_widths,
)
from ..forces import clamp_force, impulse_from_drag
from ..spectral import SpectralTransform
from ..particles import ParticleSet
from ..advection import ONE_BELOW
from ..observables import (
    compute_divergence, compute_kinetic_energy, compute_spectral_divergence,
    compute_velocity_magnitude, compute_vorticity,
)


# =============================================================================
# Device Functions
# =============================================================================

@cuda.jit(device=True)
def sample_indices(x, n, boundary):
    """Neighbour indices and weight along one axis."""
    if math.isnan(x) or math.isinf(x):
        x = 0.0
    if boundary == BOUNDARY_CLAMP:
        if x < 0.0:
            x = 0.0
        if x > n - 1.0:
            x = n - 1.0
        i0 = int(math.floor(x))
        if i0 > n - 1:
            i0 = n - 1
        i1 = i0 + 1
        if i1 > n - 1:
            i1 = n - 1
    else:
        x = x % n
        if x >= n:
            x -= n
        i0 = int(math.floor(x)) % n
        i1 = (i0 + 1) % n
    t = x - math.floor(x)
    if t < 0.0:
        t = 0.0
    if t > 1.0:
        t = 1.0
    return i0, i1, t


@cuda.jit(device=True)
def bilinear_x(field, x, y, dim, boundary):
    """Bilinear sample of the x component."""
    i0, i1, tx = sample_indices(x, dim, boundary)
    j0, j1, ty = sample_indices(y, dim, boundary)
    return ((1.0 - tx) * (1.0 - ty) * field[j0, i0, 0] + tx * (1.0 - ty) * field[j0, i1, 0]
            + (1.0 - tx) * ty * field[j1, i0, 0] + tx * ty * field[j1, i1, 0])


@cuda.jit(device=True)
def bilinear_y(field, x, y, dim, boundary):
    """Bilinear sample of the y component."""
    i0, i1, tx = sample_indices(x, dim, boundary)
    j0, j1, ty = sample_indices(y, dim, boundary)
    return ((1.0 - tx) * (1.0 - ty) * field[j0, i0, 1] + tx * (1.0 - ty) * field[j0, i1, 1]
            + (1.0 - tx) * ty * field[j1, i0, 1] + tx * ty * field[j1, i1, 1])


# =============================================================================
# Force Injection Kernel
# =============================================================================

@cuda.jit
def add_forces_kernel(field, dim, cx, cy, fx, fy, r):
    """
    Add an impulse to the cells within radius r of (cx, cy).

    One thread per cell of the (2r + 1) x (2r + 1) bounding box.
    """
    tx, ty = cuda.grid(2)
    if tx > 2 * r or ty > 2 * r:
        return

    i = cx - r + tx
    j = cy - r + ty
    if i < 0 or i >= dim or j < 0 or j >= dim:
        return

    dx = i - cx
    dy = j - cy
    d2 = dx * dx + dy * dy
    if r == 0:
        w = 1.0 if d2 == 0 else 0.0
    else:
        r2 = float(r * r)
        w = 0.0
        if d2 < r2:
            s = 1.0 - d2 / r2
            w = s * s

    if w > 0.0:
        field[j, i, 0] += w * fx
        field[j, i, 1] += w * fy


# =============================================================================
# Velocity Advection Kernel
# =============================================================================

@cuda.jit
def advect_velocity_kernel(field, vx, vy, dim, dt, boundary, lb):
    """
    Trace velocity vectors back in time and sample bilinearly.

    Writes columns [0, dim) of the padded buffers vx, vy.
    """
    gtidx = cuda.blockIdx.x * cuda.blockDim.x + cuda.threadIdx.x
    gtidy = cuda.blockIdx.y * (lb * cuda.blockDim.y) + cuda.threadIdx.y * lb

    if gtidx < dim:
        scale = dt * dim
        for p in range(lb):
            fi = gtidy + p
            if fi < dim:
                px = gtidx - scale * field[fi, gtidx, 0]
                py = fi - scale * field[fi, gtidx, 1]
                vx[fi, gtidx] = bilinear_x(field, px, py, dim, boundary)
                vy[fi, gtidx] = bilinear_y(field, px, py, dim, boundary)


# =============================================================================
# Diffusion & Projection Kernel
# =============================================================================

@cuda.jit
def diffuse_project_kernel(vx, vy, cdx, dim, dt, visc, lb):
    """
    Viscous damping and projection on interleaved complex coefficients.

    Parameters
    ----------
    vx, vy : device array
        Transformed buffers, shape (dim, 2 * cdx)
    cdx : int
        Complex coefficients per row (dim / 2 + 1)
    dim : int
        Grid dimension (rows)
    """
    gtidx = cuda.blockIdx.x * cuda.blockDim.x + cuda.threadIdx.x
    gtidy = cuda.blockIdx.y * (lb * cuda.blockDim.y) + cuda.threadIdx.y * lb

    if gtidx < cdx:
        for p in range(lb):
            fi = gtidy + p
            if fi < dim:
                iix = gtidx
                iiy = fi - dim if fi > dim // 2 else fi
                kk = float(iix * iix + iiy * iiy)

                xr = vx[fi, 2 * gtidx]
                xi = vx[fi, 2 * gtidx + 1]
                yr = vy[fi, 2 * gtidx]
                yi = vy[fi, 2 * gtidx + 1]

                diff = 1.0 / (1.0 + visc * dt * kk)
                xr *= diff
                xi *= diff
                yr *= diff
                yi *= diff

                if kk > 0.0:
                    rkk = 1.0 / kk
                    rkp = iix * xr + iiy * yr
                    ikp = iix * xi + iiy * yi
                    xr -= rkk * rkp * iix
                    xi -= rkk * ikp * iix
                    yr -= rkk * rkp * iiy
                    yi -= rkk * ikp * iiy

                vx[fi, 2 * gtidx] = xr
                vx[fi, 2 * gtidx + 1] = xi
                vy[fi, 2 * gtidx] = yr
                vy[fi, 2 * gtidx + 1] = yi


# =============================================================================
# Finalization Kernel
# =============================================================================

@cuda.jit
def update_velocity_kernel(field, vx, vy, dim, lb):
    """Scale the unnormalized inverse FFT by 1 / (dim * dim) into the field."""
    gtidx = cuda.blockIdx.x * cuda.blockDim.x + cuda.threadIdx.x
    gtidy = cuda.blockIdx.y * (lb * cuda.blockDim.y) + cuda.threadIdx.y * lb

    if gtidx < dim:
        scale = 1.0 / (dim * dim)
        for p in range(lb):
            fi = gtidy + p
            if fi < dim:
                field[fi, gtidx, 0] = vx[fi, gtidx] * scale
                field[fi, gtidx, 1] = vy[fi, gtidx] * scale


# =============================================================================
# Particle Advection Kernel
# =============================================================================

@cuda.jit
def advect_particles_kernel(positions, field, dim, dt, boundary):
    """Move each particle by dt * v(p)."""
    n = cuda.grid(1)
    if n >= positions.shape[0]:
        return

    px = positions[n, 0]
    py = positions[n, 1]
    sx = px * dim - 0.5
    sy = py * dim - 0.5

    px = px + dt * bilinear_x(field, sx, sy, dim, boundary)
    py = py + dt * bilinear_y(field, sx, sy, dim, boundary)

    if math.isnan(px) or math.isinf(px):
        px = 0.0
    if math.isnan(py) or math.isinf(py):
        py = 0.0

    if boundary == BOUNDARY_CLAMP:
        px = min(max(px, 0.0), ONE_BELOW)
        py = min(max(py, 0.0), ONE_BELOW)
    else:
        px = px % 1.0
        py = py % 1.0
        if px > ONE_BELOW:
            px = 0.0
        if py > ONE_BELOW:
            py = 0.0

    positions[n, 0] = px
    positions[n, 1] = py


# =============================================================================
# GPU Solver Class
# =============================================================================

class GPUFluidSolver:
    """
    GPU-accelerated stable fluids solver using Numba CUDA.

    Takes the same parameters as CPUFluidSolver. The FFT runs on the host,
    so the spectral buffers cross the bus twice per step.
    """

    def __init__(self, dim=DIM, dt=DT, visc=VIS, force_scale=None,
                 force_radius=FR, boundary="clamp", particles_side=None,
                 pitch=None, seed=None, max_force=MAX_FORCE):
        if not check_cuda_available():
            raise RuntimeError("CUDA is not available!")

        self.dim = validate_dim(dim)
        validate_parameters(dt, visc, force_radius)
        self.dt = dt
        self.visc = visc
        self.force_scale = 5.8 * self.dim if force_scale is None else force_scale
        self.force_radius = int(force_radius)
        self.boundary = validate_boundary(boundary)
        self.max_force = validate_max_force(max_force)

        self.cpadw, self.rpadw = padded_widths(self.dim)

        # Host arrays
        self.field_host = allocate_velocity_field(self.dim, pitch)
        self.pitch = self.field_host.shape[1]
        self.vx_host, self.vy_host = allocate_spectral_buffers(self.dim)
        self.transform = SpectralTransform(self.dim)

        if particles_side is None:
            particles_side = self.dim
        self.particles = ParticleSet(particles_side, seed=seed) if particles_side > 0 else None

        # Device arrays
        self.d_field = cuda.to_device(self.field_host)
        self.d_vx = cuda.to_device(self.vx_host)
        self.d_vy = cuda.to_device(self.vy_host)
        self.d_particles = (
            cuda.to_device(self.particles.positions) if self.particles is not None else None
        )

        # Launch configurations
        self.grid_spatial, self.block_spatial, self.lb = launch_config(self.dim, self.dim)
        self.grid_spectral, self.block_spectral, _ = launch_config(self.cpadw, self.dim)
        self.block_1d = 256

        self.pending_forces = []
        self.step_count = 0
        self.total_time = 0.0

    def reset(self):
        """Zero the velocity field and re-create the particles."""
        self.field_host[:] = 0.0
        self.d_field = cuda.to_device(self.field_host)
        if self.particles is not None:
            self.particles.reset()
            self.d_particles = cuda.to_device(self.particles.positions)
        self.pending_forces = []
        self.step_count = 0
        self.total_time = 0.0

    def initialize_from_fields(self, ux, uy):
        """Initialize the velocity field from two (dim, dim) component arrays."""
        validate_velocity(ux, uy, self.dim)
        self.field_host[:] = 0.0
        view = logical_view(self.field_host, self.dim)
        view[..., 0] = ux
        view[..., 1] = uy
        self.d_field = cuda.to_device(self.field_host)

    def add_force(self, cx, cy, fx, fy):
        """Queue a force event centred on grid cell (cx, cy)."""
        fx, fy = clamp_force(fx, fy, self.max_force)
        self.pending_forces.append((int(cx), int(cy), fx, fy))

    def add_drag(self, x, y, dx, dy):
        """Queue a force event from a normalized mouse drag."""
        cx, cy, fx, fy = impulse_from_drag(x, y, dx, dy, self.dim, self.force_scale)
        self.add_force(cx, cy, fx, fy)

    def apply_forces(self):
        """Apply and clear all queued force events."""
        r = self.force_radius
        block = (16, 16)
        grid = ((2 * r + 1 + 15) // 16, (2 * r + 1 + 15) // 16)
        for cx, cy, fx, fy in self.pending_forces:
            add_forces_kernel[grid, block](
                self.d_field, self.dim, cx, cy, self.dt * fx, self.dt * fy, r
            )
        self.pending_forces = []

    def advect_velocity(self):
        """Semi-Lagrangian advection into the spectral buffers."""
        advect_velocity_kernel[self.grid_spatial, self.block_spatial](
            self.d_field, self.d_vx, self.d_vy, self.dim,
            float(self.dt), self.boundary, self.lb
        )

    def diffuse_project(self):
        """Host FFT, device diffusion & projection, host inverse FFT."""
        self.d_vx.copy_to_host(self.vx_host)
        self.d_vy.copy_to_host(self.vy_host)
        self.transform.forward(self.vx_host)
        self.transform.forward(self.vy_host)
        self.d_vx.copy_to_device(self.vx_host)
        self.d_vy.copy_to_device(self.vy_host)

        diffuse_project_kernel[self.grid_spectral, self.block_spectral](
            self.d_vx, self.d_vy, self.cpadw, self.dim,
            float(self.dt), float(self.visc), self.lb
        )

        self.d_vx.copy_to_host(self.vx_host)
        self.d_vy.copy_to_host(self.vy_host)
        self.transform.inverse(self.vx_host)
        self.transform.inverse(self.vy_host)
        self.d_vx.copy_to_device(self.vx_host)
        self.d_vy.copy_to_device(self.vy_host)

    def update_velocity(self):
        """Normalize the inverse transform into the velocity field."""
        update_velocity_kernel[self.grid_spatial, self.block_spatial](
            self.d_field, self.d_vx, self.d_vy, self.dim, self.lb
        )

    def advect_particles(self):
        """Move tracer particles through the new field."""
        if self.d_particles is None:
            return
        n = self.d_particles.shape[0]
        grid = (n + self.block_1d - 1) // self.block_1d
        advect_particles_kernel[grid, self.block_1d](
            self.d_particles, self.d_field, self.dim, float(self.dt), self.boundary
        )

    def step(self):
        """
        Perform one simulation step.

        Returns
        -------
        dt : float
            Wall time of this step (seconds)
        """
        start = time.perf_counter()

        self.apply_forces()
        self.advect_velocity()
        self.diffuse_project()
        self.update_velocity()
        self.advect_particles()
        self.synchronize()

        elapsed = time.perf_counter() - start
        self.step_count += 1
        self.total_time += elapsed
        return elapsed

    def synchronize(self):
        """Synchronize GPU (wait for all kernels to complete)."""
        cuda.synchronize()

    def run(self, num_steps, verbose=True, report_interval=100):
        """
        Run simulation for specified number of steps.

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
            print(f"Performance: {rate:.1f} steps/s")

        return rate

    def get_velocity(self):
        """
        Copy the velocity field to the host.

        Returns
        -------
        ux, uy : ndarray
            Velocity components, shape (dim, dim)
        """
        self.d_field.copy_to_host(self.field_host)
        view = logical_view(self.field_host, self.dim)
        ux = np.ascontiguousarray(view[..., 0])
        uy = np.ascontiguousarray(view[..., 1])
        ux.setflags(write=False)
        uy.setflags(write=False)
        return ux, uy

    def get_particles(self):
        """Copy particle positions to the host."""
        if self.d_particles is None:
            return None
        self.d_particles.copy_to_host(self.particles.positions)
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
        """Return relative spectral divergence."""
        return compute_spectral_divergence(*self.get_velocity())

    def get_kinetic_energy(self):
        """Return total kinetic energy."""
        return compute_kinetic_energy(*self.get_velocity())


def check_cuda_available():
    """Check if CUDA is available."""
    try:
        return cuda.is_available()
    except Exception:
        return False


def benchmark_gpu_solver(grid_sizes=None, num_steps=100):
    """
    Benchmark GPU solver across different grid sizes.

    Returns
    -------
    results : dict
        Grid dimension -> steps per second
    """
    if not check_cuda_available():
        print("CUDA not available!")
        return {}

    if grid_sizes is None:
        grid_sizes = [128, 256, 512, 1024, 2048]

    results = {}

    print("GPU Stable Fluids Benchmark")
    print("=" * 60)
    print(f"dt: {DT}, visc: {VIS}, Steps: {num_steps}")
    print()

    for dim in grid_sizes:
        print(f"Grid size: {dim} x {dim}")

        try:
            solver = GPUFluidSolver(dim, seed=0)
            for _ in range(5):
                solver.step()
            rate = solver.run(num_steps, verbose=False)
            results[dim] = rate
            print(f"  Performance: {rate:.1f} steps/s")
        except Exception as e:
            print(f"  Error: {e}")
            results[dim] = 0

        print()

    return results


if __name__ == "__main__":
    if check_cuda_available():
        print("CUDA is available!")
        print()

        results = benchmark_gpu_solver()

        print("\nSummary")
        print("=" * 60)
        for dim, rate in results.items():
            print(f"{dim:4d} x {dim:4d}: {rate:8.1f} steps/s")
    else:
        print("CUDA is not available. Cannot run GPU benchmarks.")
