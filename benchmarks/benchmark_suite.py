"""
Benchmark Suite

Performance testing for the stable fluids solvers.
Compares the Numba CPU solver with the CUDA solver and breaks a CPU step
down by pipeline stage.
"""

import numpy as np
import time
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from stablefluids.domain import DT, VIS

# Check CUDA availability
try:
    from numba import cuda
    CUDA_AVAILABLE = cuda.is_available()
except Exception:
    CUDA_AVAILABLE = False


STAGES = ['apply_forces', 'advect_velocity', 'diffuse_project',
          'update_velocity', 'advect_particles']


def stir(solver):
    """Queue a few force events so the field is not at rest."""
    solver.add_drag(0.3, 0.5, 0.02, 0.01)
    solver.add_drag(0.7, 0.4, -0.01, 0.02)


def benchmark_solver(solver, num_steps, warmup_steps=5):
    """
    Time full steps of a solver.

    Returns
    -------
    steps_per_second : float
        Throughput of the timed run
    """
    stir(solver)
    for _ in range(warmup_steps):
        solver.step()

    start = time.perf_counter()
    for step in range(num_steps):
        if step % 10 == 0:
            stir(solver)
        solver.step()
    elapsed = time.perf_counter() - start

    return num_steps / elapsed


def benchmark_cpu(dim, num_steps, warmup_steps=5):
    """Benchmark the Numba CPU solver."""
    from stablefluids.kernels.cpu_solver import CPUFluidSolver

    solver = CPUFluidSolver(dim, seed=0)
    return benchmark_solver(solver, num_steps, warmup_steps)


def benchmark_gpu(dim, num_steps, warmup_steps=5):
    """Benchmark the CUDA solver."""
    if not CUDA_AVAILABLE:
        return 0.0

    from stablefluids.kernels.gpu_solver import GPUFluidSolver

    solver = GPUFluidSolver(dim, seed=0)
    return benchmark_solver(solver, num_steps, warmup_steps)


def profile_cpu_stages(dim, num_steps=20, warmup_steps=3):
    """
    Time each pipeline stage of the CPU solver separately.

    Returns
    -------
    timings : dict
        Stage name -> mean milliseconds per step
    """
    from stablefluids.kernels.cpu_solver import CPUFluidSolver

    solver = CPUFluidSolver(dim, seed=0)
    stir(solver)
    for _ in range(warmup_steps):
        solver.step()

    totals = {name: 0.0 for name in STAGES}
    for _ in range(num_steps):
        stir(solver)
        for name in STAGES:
            start = time.perf_counter()
            getattr(solver, name)()
            totals[name] += time.perf_counter() - start

    return {name: 1e3 * t / num_steps for name, t in totals.items()}


def run_full_benchmark(grid_sizes=None, num_steps=100):
    """
    Run complete benchmark suite comparing the CPU and GPU solvers.
    """
    if grid_sizes is None:
        grid_sizes = [64, 128, 256, 512, 1024]

    print("=" * 70)
    print("Stable Fluids Benchmark Suite")
    print("=" * 70)
    print(f"dt: {DT}, visc: {VIS}")
    print(f"Steps: {num_steps}")
    print(f"CUDA Available: {CUDA_AVAILABLE}")
    print()

    results = {'cpu': {}, 'gpu': {}}

    print("Benchmarking CPU (Numba parallel)...")
    print("-" * 40)
    for dim in grid_sizes:
        try:
            rate = benchmark_cpu(dim, num_steps)
            results['cpu'][dim] = rate
            print(f"  {dim:4d} x {dim:4d}: {rate:8.1f} steps/s")
        except Exception as e:
            print(f"  {dim:4d} x {dim:4d}: Error - {e}")
            results['cpu'][dim] = 0.0
    print()

    if CUDA_AVAILABLE:
        print("Benchmarking GPU (Numba CUDA)...")
        print("-" * 40)
        for dim in grid_sizes:
            try:
                rate = benchmark_gpu(dim, num_steps)
                results['gpu'][dim] = rate
                print(f"  {dim:4d} x {dim:4d}: {rate:8.1f} steps/s")
            except Exception as e:
                print(f"  {dim:4d} x {dim:4d}: Error - {e}")
                results['gpu'][dim] = 0.0
        print()

    # Summary Table
    print("=" * 70)
    print("SUMMARY: Performance Comparison (steps/s)")
    print("=" * 70)
    print(f"{'Grid':<12} {'CPU':>10} {'GPU':>10} {'Mcells/s':>10} {'Speedup':>10}")
    print("-" * 70)

    for dim in grid_sizes:
        cpu = results['cpu'].get(dim, 0.0)
        gpu = results['gpu'].get(dim, 0.0)
        best = max(cpu, gpu)
        mcells = best * dim * dim / 1e6
        speedup = f"{gpu / cpu:.1f}x" if cpu > 0 and gpu > 0 else "N/A"
        print(f"{dim:4d}x{dim:<4d}    {cpu:>10.1f} {gpu:>10.1f} {mcells:>10.1f} {speedup:>10}")

    print("=" * 70)

    return results


def print_stage_breakdown(dim=512):
    """Print the per-stage cost of a CPU step."""
    timings = profile_cpu_stages(dim)
    total = sum(timings.values())

    print()
    print(f"CPU Stage Breakdown ({dim} x {dim})")
    print("=" * 50)
    print(f"{'Stage':<20} {'ms/step':>10} {'Share':>10}")
    print("-" * 50)
    for name, ms in timings.items():
        print(f"{name:<20} {ms:>10.2f} {100 * ms / total:>9.1f}%")
    print("-" * 50)
    print(f"{'total':<20} {total:>10.2f}")
    print("=" * 50)


if __name__ == "__main__":
    results = run_full_benchmark()
    print_stage_breakdown()
