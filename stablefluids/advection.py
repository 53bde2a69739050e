"""
Semi-Lagrangian Advection

Velocity advection traces every cell centre backward along its own velocity
and samples the field there:

    v(x, t+1) = v(x - dt * v(x, t), t)

Because each output is a bilinear (convex) combination of input samples,
the result never exceeds the input magnitude for any dt. This is what makes
the scheme unconditionally stable, unlike a forward-Euler update.

Velocities are expressed in domain units per unit time; one domain unit is
dim cells, hence the dt * v * dim displacement in cells.

Particle advection moves tracers forward through the same sampler:

    p(t+1) = p(t) + dt * v(p(t))
"""

import math

import numpy as np
from numba import njit, prange

from .domain import BOUNDARY_CLAMP, DT, TILEX, TILEY, validate_boundary, validate_shape
from .layout import make_tiles
from .sampling import bilinear_sample

# Largest float32 strictly below 1.0
ONE_BELOW = float(np.nextafter(np.float32(1.0), np.float32(0.0)))


@njit(parallel=True, cache=True)
def advect_velocity_numba(field, vx, vy, dim, dt, boundary, tiles):
    """
    Tiled semi-Lagrangian velocity advection.

    Parameters
    ----------
    field : ndarray
        Velocity field, shape (dim, pitch, 2)
    vx, vy : ndarray
        Padded output buffers, shape (dim, rpadw); columns [0, dim) written
    dim : int
        Grid dimension
    dt : float
        Time step
    boundary : int
        Sampling boundary policy
    tiles : ndarray
        Disjoint tiles [x0, x1, y0, y1), shape (ntiles, 4)
    """
    scale = dt * dim
    for t in prange(tiles.shape[0]):
        x0 = tiles[t, 0]
        x1 = tiles[t, 1]
        y0 = tiles[t, 2]
        y1 = tiles[t, 3]
        for j in range(y0, y1):
            for i in range(x0, x1):
                # Cell centre (i + 0.5) traced back, then shifted to sample space
                px = i - scale * field[j, i, 0]
                py = j - scale * field[j, i, 1]
                sx, sy = bilinear_sample(field, px, py, dim, boundary)
                vx[j, i] = sx
                vy[j, i] = sy


@njit(parallel=True, cache=True)
def advect_particles_numba(positions, field, dim, dt, boundary):
    """
    Move particles along the velocity field.

    Parameters
    ----------
    positions : ndarray
        Particle positions in [0, 1), shape (n, 2), modified in place
    field : ndarray
        Velocity field, shape (dim, pitch, 2)
    dim : int
        Grid dimension
    dt : float
        Time step
    boundary : int
        BOUNDARY_CLAMP keeps particles in [0, 1); otherwise they wrap
    """
    for n in prange(positions.shape[0]):
        px = positions[n, 0]
        py = positions[n, 1]

        ux, uy = bilinear_sample(field, px * dim - 0.5, py * dim - 0.5,
                                 dim, boundary)
        px = px + dt * ux
        py = py + dt * uy

        # Lost particles restart at the origin
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
            # Values just below 1.0 would round up to 1.0 in float32
            if px > ONE_BELOW:
                px = 0.0
            if py > ONE_BELOW:
                py = 0.0

        positions[n, 0] = px
        positions[n, 1] = py


def advect_velocity(vx, vy, field, dt=DT, dim=None, boundary="clamp", tiles=None):
    """
    Advect the velocity field into the padded spectral buffers.

    Parameters
    ----------
    vx, vy : ndarray
        Output buffers, shape (dim, rpadw)
    field : ndarray
        Velocity field, shape (dim, pitch, 2)
    dt : float
        Time step
    dim : int, optional
        Grid dimension (defaults to field.shape[0])
    boundary : str or int
        Sampling boundary policy ("clamp" or "wrap")
    tiles : ndarray, optional
        Precomputed tiles from make_tiles(dim, dim)

    Returns
    -------
    vx, vy : ndarray
        The output buffers
    """
    if dim is None:
        dim = field.shape[0]
    validate_shape(field, dim, "field")
    validate_shape(vx, dim, "vx")
    validate_shape(vy, dim, "vy")
    policy = validate_boundary(boundary)
    if tiles is None:
        tiles = make_tiles(dim, dim, TILEX, TILEY)

    advect_velocity_numba(field, vx, vy, int(dim), float(dt), policy, tiles)
    return vx, vy


def advect_particles(positions, field, dt=DT, dim=None, boundary="clamp"):
    """
    Advect particle positions in place.

    Parameters
    ----------
    positions : ndarray
        Positions in [0, 1), shape (n, 2), float32
    field : ndarray
        Velocity field, shape (dim, pitch, 2)
    dt : float
        Time step
    dim : int, optional
        Grid dimension (defaults to field.shape[0])
    boundary : str or int
        "clamp" (particles stay inside the domain) or "wrap"

    Returns
    -------
    positions : ndarray
        The updated positions
    """
    if dim is None:
        dim = field.shape[0]
    validate_shape(field, dim, "field")
    if positions.ndim != 2 or positions.shape[1] != 2:
        raise ValueError(f"positions must have shape (n, 2), got {positions.shape}")
    policy = validate_boundary(boundary)

    advect_particles_numba(positions, field, int(dim), float(dt), policy)
    return positions
