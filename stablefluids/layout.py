"""
Grid and Field Layout

Memory layouts shared by every stage of the solver:

- Spatial layout: the velocity field is stored row-major with a row pitch
  that may exceed the logical width, shape (dim, pitch, 2), float32.
  Element (x, y) lives at linear offset y * pitch + x.
- Frequency layout: each velocity component has a padded buffer of shape
  (dim, rpadw) floats with rpadw = 2 * (dim/2 + 1). In the spatial phase
  the first dim columns hold real samples; after the in-place real-to-complex
  transform the same memory viewed as complex64 holds (dim, dim/2 + 1)
  coefficients, row = ky and column = kx.

The tiling helpers partition a 2D iteration space into disjoint rectangles
so that kernels can process tiles in parallel without sharing outputs.
"""

import numpy as np

from .domain import (
    DTYPE, TILEX, TILEY, TIDSX, TIDSY,
    BOUNDARY_CLAMP, validate_boundary, validate_dim,
)


def is_power_of_two(n):
    """Return True if n is a positive power of two."""
    return n > 0 and (n & (n - 1)) == 0


def padded_widths(dim):
    """
    Padded row widths for the in-place real-to-complex transform.

    Returns
    -------
    cpadw : int
        Complex coefficients per row (dim/2 + 1)
    rpadw : int
        Real elements per row (2 * cpadw)
    """
    cpadw = dim // 2 + 1
    return cpadw, 2 * cpadw


def aligned_pitch(dim, alignment=32):
    """Smallest multiple of alignment that is >= dim."""
    return ((dim + alignment - 1) // alignment) * alignment


def allocate_velocity_field(dim, pitch=None):
    """
    Allocate a zeroed velocity field.

    Parameters
    ----------
    dim : int
        Grid dimension (power of two)
    pitch : int, optional
        Row stride in elements. Defaults to dim rounded up to 32.

    Returns
    -------
    field : ndarray
        Velocity field, shape (dim, pitch, 2), float32
    """
    dim = validate_dim(dim)
    if pitch is None:
        pitch = aligned_pitch(dim)
    if pitch < dim:
        raise ValueError(f"pitch must be >= dim ({dim}), got {pitch}")
    return np.zeros((dim, pitch, 2), dtype=DTYPE)


def logical_view(field, dim):
    """View of the logical dim x dim part of a pitched field."""
    return field[:dim, :dim]


def allocate_spectral_buffers(dim):
    """
    Allocate the two padded spectral buffers (vx, vy).

    Returns
    -------
    vx, vy : ndarray
        Real buffers, shape (dim, rpadw), float32
    """
    dim = validate_dim(dim)
    _, rpadw = padded_widths(dim)
    vx = np.zeros((dim, rpadw), dtype=DTYPE)
    vy = np.zeros((dim, rpadw), dtype=DTYPE)
    return vx, vy


def complex_view(buf):
    """
    Reinterpret a padded real buffer as its complex coefficients.

    The view shares memory with buf, shape (dim, rpadw // 2), complex64.
    """
    return buf.view(np.complex64)


def resolve_index(i, n, boundary=BOUNDARY_CLAMP):
    """Map an integer index into [0, n) by clamping or wrapping."""
    if boundary == BOUNDARY_CLAMP:
        return min(max(i, 0), n - 1)
    return i % n


def linear_offset(x, y, pitch, dim, boundary="clamp"):
    """
    Linear element offset of (x, y) in a pitched spatial field.

    Parameters
    ----------
    x, y : int
        Logical grid indices
    pitch : int
        Row stride in elements
    dim : int
        Logical grid dimension, indices are resolved into [0, dim)
    boundary : str
        "clamp" or "wrap" for indices outside [0, dim)

    Returns
    -------
    offset : int
        y * pitch + x after the boundary policy is applied
    """
    if dim > pitch:
        raise ValueError(f"pitch ({pitch}) must be >= dim ({dim})")
    policy = validate_boundary(boundary)
    x = resolve_index(int(x), dim, policy)
    y = resolve_index(int(y), dim, policy)
    return y * pitch + x


def spectral_offset(x, y, dim, boundary="clamp"):
    """
    Linear offset of spatial sample (x, y) in a padded spectral buffer.

    The padded row holds rpadw = 2 * (dim/2 + 1) floats.
    """
    _, rpadw = padded_widths(dim)
    return linear_offset(x, y, rpadw, dim=dim, boundary=boundary)


def make_tiles(width, height, tile_x=TILEX, tile_y=TILEY):
    """
    Partition a width x height index space into disjoint tiles.

    Tiles are tile_x x tile_y, except along the right and bottom edges
    where the last tile is cut to the remaining columns / rows.

    Parameters
    ----------
    width, height : int
        Extent of the iteration space
    tile_x, tile_y : int
        Tile size

    Returns
    -------
    tiles : ndarray
        int64 array, shape (ntiles, 4), rows of [x0, x1, y0, y1)
    """
    if tile_x <= 0 or tile_y <= 0:
        raise ValueError(f"tile size must be positive, got ({tile_x}, {tile_y})")

    xs = list(range(0, width, tile_x))
    ys = list(range(0, height, tile_y))

    tiles = np.empty((len(xs) * len(ys), 4), dtype=np.int64)
    n = 0
    for y0 in ys:
        for x0 in xs:
            tiles[n, 0] = x0
            tiles[n, 1] = min(x0 + tile_x, width)
            tiles[n, 2] = y0
            tiles[n, 3] = min(y0 + tile_y, height)
            n += 1
    return tiles


def launch_config(width, height, tile_x=TILEX, tile_y=TILEY,
                  tids_x=TIDSX, tids_y=TIDSY):
    """
    CUDA launch configuration for a tiled kernel.

    Each block covers one tile_x x tile_y tile with tids_x x tids_y threads;
    every thread walks lb = tile_y // tids_y consecutive rows.

    Returns
    -------
    grid : tuple
        Blocks in (x, y), rounded up for the remainder tile
    block : tuple
        Threads per block
    lb : int
        Rows per thread
    """
    grid = (
        (width + tile_x - 1) // tile_x,
        (height + tile_y - 1) // tile_y,
    )
    block = (tids_x, tids_y)
    lb = tile_y // tids_y
    return grid, block, lb
