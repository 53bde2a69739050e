"""
Force Injection

Adds a localized external impulse to the velocity field:

    v(x, t+1) = v(x, t) + dt * w(|x - c|) * f

The weight w falls off smoothly from 1 at the centre c to 0 at the force
radius r and is exactly zero beyond it:

    w(d) = (1 - (d / r)^2)^2    for d < r
    w(d) = 0                     otherwise

Only the cells of the bounding box [c - r, c + r]^2 that fall inside the grid
are visited, so a centre outside the domain touches nothing.
"""

import math
import warnings

import numpy as np
from numba import njit

from .domain import DT, FORCE, FR, MAX_FORCE, validate_max_force


@njit(cache=True)
def force_weight(d2, r):
    """Falloff weight for squared distance d2 and radius r."""
    if r == 0:
        return 1.0 if d2 == 0 else 0.0
    r2 = float(r * r)
    if d2 >= r2:
        return 0.0
    s = 1.0 - d2 / r2
    return s * s


@njit(cache=True)
def add_force_numba(field, dim, cx, cy, fx, fy, r):
    """
    Add a force impulse inside the bounding box of radius r.

    Parameters
    ----------
    field : ndarray
        Velocity field, shape (dim, pitch, 2), modified in place
    dim : int
        Logical grid dimension
    cx, cy : int
        Force centre (grid cell)
    fx, fy : float
        Impulse already multiplied by dt
    r : int
        Force radius (cells)
    """
    x0 = max(cx - r, 0)
    x1 = min(cx + r, dim - 1)
    y0 = max(cy - r, 0)
    y1 = min(cy + r, dim - 1)

    for j in range(y0, y1 + 1):
        dy = j - cy
        for i in range(x0, x1 + 1):
            dx = i - cx
            w = force_weight(dx * dx + dy * dy, r)
            if w > 0.0:
                field[j, i, 0] += w * fx
                field[j, i, 1] += w * fy


def clamp_force(fx, fy, max_force=MAX_FORCE):
    """
    Reject non-finite forces and clamp the magnitude to max_force.

    Raises
    ------
    ValueError
        If fx or fy is NaN or infinite, or max_force is not positive

    Returns
    -------
    fx, fy : float
        Force with magnitude <= max_force
    """
    max_force = validate_max_force(max_force)
    fx = float(fx)
    fy = float(fy)
    if not (math.isfinite(fx) and math.isfinite(fy)):
        raise ValueError(f"force must be finite, got ({fx}, {fy})")

    mag = math.hypot(fx, fy)
    if mag > max_force:
        warnings.warn(
            f"Force magnitude {mag:.3g} exceeds {max_force:.3g}, clamping",
            RuntimeWarning,
        )
        scale = max_force / mag
        fx *= scale
        fy *= scale
    return fx, fy


def add_force(field, cx, cy, fx, fy, radius=FR, dt=DT, dim=None,
              max_force=MAX_FORCE):
    """
    Apply a force impulse centred on grid cell (cx, cy).

    Parameters
    ----------
    field : ndarray
        Velocity field, shape (dim, pitch, 2), modified in place
    cx, cy : int
        Force centre in grid cells (may lie outside the grid)
    fx, fy : float
        Force vector
    radius : int
        Force radius in cells
    dt : float
        Time step; the impulse added at the centre is dt * f
    dim : int, optional
        Logical grid dimension (defaults to field.shape[0])
    max_force : float
        Forces with a larger magnitude are clamped

    Returns
    -------
    field : ndarray
        The same field, for chaining
    """
    if dim is None:
        dim = field.shape[0]
    if radius < 0:
        raise ValueError(f"radius must be >= 0, got {radius}")
    fx, fy = clamp_force(fx, fy, max_force)

    add_force_numba(field, int(dim), int(cx), int(cy),
                    dt * fx, dt * fy, int(radius))
    return field


def impulse_from_drag(x, y, dx, dy, dim, force_scale=FORCE):
    """
    Convert a mouse drag to a force event.

    Parameters
    ----------
    x, y : float
        Drag position in normalized domain coordinates [0, 1)
    dx, dy : float
        Drag displacement in normalized domain coordinates
    dim : int
        Grid dimension
    force_scale : float
        Force per unit of normalized drag

    Returns
    -------
    cx, cy : int
        Force centre (grid cell)
    fx, fy : float
        Force vector
    """
    cx = int(math.floor(x * dim))
    cy = int(math.floor(y * dim))
    return cx, cy, force_scale * dx, force_scale * dy


def force_footprint(dim, cx, cy, radius):
    """
    Boolean mask of the cells that add_force may modify.

    Useful for diagnostics and for checking locality.
    """
    yy, xx = np.mgrid[:dim, :dim]
    d2 = (xx - cx) ** 2 + (yy - cy) ** 2
    if radius == 0:
        return d2 == 0
    return d2 < radius * radius
