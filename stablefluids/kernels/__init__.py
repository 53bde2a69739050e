"""Solver back ends: numba CPU kernels and numba.cuda GPU kernels."""
