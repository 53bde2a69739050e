"""
Boundary Policies and Bilinear Sampling

Every stage that reads the velocity field at a non-integer position goes
through bilinear_sample, so the boundary policy is applied identically for
velocity advection and particle advection.

Coordinates passed to the sampler are in sample space: sample (i, j) of the
grid sits exactly at (i, j). Callers working with cell centres subtract 0.5.

Boundary policies:
- BOUNDARY_CLAMP: positions are clamped to [0, dim - 1] (clamp-to-edge)
- BOUNDARY_WRAP:  positions are wrapped periodically into [0, dim)
"""

import math

import numpy as np
from numba import njit

from .domain import BOUNDARY_CLAMP


@njit(cache=True)
def clamp_coord(x, n):
    """Clamp a continuous coordinate to [0, n - 1]."""
    if x < 0.0:
        return 0.0
    upper = n - 1.0
    if x > upper:
        return upper
    return x


@njit(cache=True)
def wrap_coord(x, n):
    """Wrap a continuous coordinate periodically into [0, n)."""
    x = x % n
    # x % n rounds up to n for tiny negative x
    if x >= n:
        x -= n
    return x


@njit(cache=True)
def sample_indices(x, n, boundary):
    """
    Integer neighbours and fractional weight along one axis.

    Returns
    -------
    i0, i1 : int
        Lower and upper sample indices, both in [0, n)
    t : float
        Weight of i1, in [0, 1]
    """
    # NaN and inf would floor to an int64 far outside the grid
    if math.isnan(x) or math.isinf(x):
        x = 0.0
    if boundary == BOUNDARY_CLAMP:
        x = clamp_coord(x, n)
        i0 = int(math.floor(x))
        if i0 > n - 1:
            i0 = n - 1
        i1 = i0 + 1
        if i1 > n - 1:
            i1 = n - 1
    else:
        x = wrap_coord(x, n)
        i0 = int(math.floor(x)) % n
        i1 = (i0 + 1) % n
    t = x - math.floor(x)
    if t < 0.0:
        t = 0.0
    elif t > 1.0:
        t = 1.0
    return i0, i1, t


@njit(cache=True)
def bilinear_sample(field, x, y, dim, boundary):
    """
    Bilinearly interpolate a pitched velocity field.

    Parameters
    ----------
    field : ndarray
        Velocity field, shape (dim, pitch, 2)
    x, y : float
        Sample-space position
    dim : int
        Logical grid dimension
    boundary : int
        BOUNDARY_CLAMP or BOUNDARY_WRAP

    Returns
    -------
    vx, vy : float
        Interpolated velocity
    """
    i0, i1, tx = sample_indices(x, dim, boundary)
    j0, j1, ty = sample_indices(y, dim, boundary)

    w00 = (1.0 - tx) * (1.0 - ty)
    w10 = tx * (1.0 - ty)
    w01 = (1.0 - tx) * ty
    w11 = tx * ty

    vx = (w00 * field[j0, i0, 0] + w10 * field[j0, i1, 0]
          + w01 * field[j1, i0, 0] + w11 * field[j1, i1, 0])
    vy = (w00 * field[j0, i0, 1] + w10 * field[j0, i1, 1]
          + w01 * field[j1, i0, 1] + w11 * field[j1, i1, 1])
    return vx, vy


def sample_velocity(field, x, y, dim, boundary=BOUNDARY_CLAMP):
    """
    Sample the field at one sample-space position (host helper).

    Returns
    -------
    v : ndarray
        Interpolated velocity, shape (2,)
    """
    vx, vy = bilinear_sample(field, float(x), float(y), int(dim), int(boundary))
    return np.array([vx, vy], dtype=np.float64)
