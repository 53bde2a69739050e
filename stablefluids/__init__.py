"""
Stable Fluids 2D

Real-time incompressible fluid solver (semi-Lagrangian advection with
FFT-based diffusion and projection) with tracer particles.
"""

from .domain import DIM, DT, VIS, FORCE, FR
from .kernels.cpu_solver import CPUFluidSolver

__version__ = "0.1.0"

__all__ = ["CPUFluidSolver", "DIM", "DT", "VIS", "FORCE", "FR"]
