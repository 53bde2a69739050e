"""
Spectral Diffusion, Projection and Finalization

After advection the two velocity components are transformed to the
frequency domain, where both the viscous term and the incompressibility
constraint become local per wavenumber k = (kx, ky):

    Diffusion:   v(k) <- v(k) / (1 + visc * dt * |k|^2)
    Projection:  v(k) <- v(k) - (k . v(k) / |k|^2) * k      (skipped at k = 0)

Diffusion is the exact implicit solution of the heat equation per mode and
is stable for any dt. Projection removes the component of v(k) parallel to k,
which makes the spatial field divergence free.

The transforms themselves are unnormalized; update_velocity rescales the
inverse transform by 1 / (dim * dim) and writes it back into the pitched
velocity field.
"""

import numpy as np
import scipy.fft as sp_fft
from numba import njit, prange

from .domain import DT, VIS, TILEX, TILEY, validate_shape
from .layout import complex_view, make_tiles, padded_widths


class SpectralTransform:
    """
    In-place real-to-complex transform over the padded spectral buffers.

    Both directions are unnormalized: inverse(forward(x)) == dim * dim * x.

    Parameters
    ----------
    dim : int
        Grid dimension
    workers : int, optional
        Worker threads for scipy.fft (None lets scipy decide)
    """

    def __init__(self, dim, workers=None):
        self.dim = dim
        self.cpadw, self.rpadw = padded_widths(dim)
        self.workers = workers

    def _check(self, buf):
        if buf.shape != (self.dim, self.rpadw):
            raise ValueError(
                f"buffer has shape {buf.shape}, expected {(self.dim, self.rpadw)}"
            )

    def forward(self, buf):
        """
        Real-to-complex transform of buf[:, :dim], written back into buf.

        Returns
        -------
        coeffs : ndarray
            Complex view of buf, shape (dim, dim/2 + 1)
        """
        self._check(buf)
        coeffs = sp_fft.rfft2(buf[:, :self.dim], workers=self.workers)
        view = complex_view(buf)
        view[:] = coeffs
        return view

    def inverse(self, buf):
        """
        Complex-to-real transform of complex_view(buf), written back into buf.

        The padding columns are zeroed.

        Returns
        -------
        buf : ndarray
            The real buffer, samples in buf[:, :dim]
        """
        self._check(buf)
        samples = sp_fft.irfft2(
            complex_view(buf), s=(self.dim, self.dim),
            norm="forward", workers=self.workers,
        )
        buf[:, :self.dim] = samples
        buf[:, self.dim:] = 0.0
        return buf


def wavenumbers(dim):
    """
    Integer wavenumbers of the real-to-complex layout.

    Returns
    -------
    kx : ndarray
        Column wavenumbers 0 .. dim/2, shape (1, dim/2 + 1)
    ky : ndarray
        Row wavenumbers, rows above dim/2 folded to negative, shape (dim, 1)
    """
    cpadw, _ = padded_widths(dim)
    kx = np.arange(cpadw, dtype=np.float64)[None, :]
    rows = np.arange(dim)
    ky = np.where(rows > dim // 2, rows - dim, rows).astype(np.float64)[:, None]
    return kx, ky


def diffuse_project_reference(vx_hat, vy_hat, dt=DT, visc=VIS,
                              diffuse=True, project=True):
    """
    Vectorized NumPy diffusion and projection.

    Parameters
    ----------
    vx_hat, vy_hat : ndarray
        Complex coefficients, shape (dim, dim/2 + 1)

    Returns
    -------
    vx_out, vy_out : ndarray
        New coefficient arrays
    """
    dim = vx_hat.shape[0]
    kx, ky = wavenumbers(dim)
    kk = kx * kx + ky * ky

    vx_out = vx_hat.astype(np.complex128)
    vy_out = vy_hat.astype(np.complex128)

    if diffuse:
        diff = 1.0 / (1.0 + visc * dt * kk)
        vx_out *= diff
        vy_out *= diff

    if project:
        kk_safe = np.where(kk > 0, kk, 1.0)
        kv = (kx * vx_out + ky * vy_out) / kk_safe
        vx_out -= kv * kx
        vy_out -= kv * ky

    return vx_out.astype(vx_hat.dtype), vy_out.astype(vy_hat.dtype)


@njit(parallel=True, cache=True)
def diffuse_project_numba(vx_hat, vy_hat, dim, dt, visc, diffuse, project, tiles):
    """
    Tiled diffusion and projection over the complex coefficients.

    Parameters
    ----------
    vx_hat, vy_hat : ndarray
        Complex coefficients, shape (dim, dim/2 + 1), modified in place
    dim : int
        Grid dimension
    dt, visc : float
        Time step and viscosity
    diffuse, project : bool
        Enable each operation
    tiles : ndarray
        Disjoint tiles over the (dim/2 + 1) x dim coefficient space
    """
    half = dim // 2
    for t in prange(tiles.shape[0]):
        x0 = tiles[t, 0]
        x1 = tiles[t, 1]
        y0 = tiles[t, 2]
        y1 = tiles[t, 3]
        for j in range(y0, y1):
            ky = j - dim if j > half else j
            for i in range(x0, x1):
                kx = i
                kk = float(kx * kx + ky * ky)

                xterm = vx_hat[j, i]
                yterm = vy_hat[j, i]

                if diffuse:
                    diff = 1.0 / (1.0 + visc * dt * kk)
                    xterm = xterm * diff
                    yterm = yterm * diff

                # k = 0 has no direction to project against
                if project and kk > 0.0:
                    rkk = 1.0 / kk
                    kv = (kx * xterm + ky * yterm) * rkk
                    xterm = xterm - kv * kx
                    yterm = yterm - kv * ky

                vx_hat[j, i] = xterm
                vy_hat[j, i] = yterm


@njit(parallel=True, cache=True)
def update_velocity_numba(field, vx, vy, dim, tiles):
    """
    Rescale the inverse transform and store it in the pitched field.

    Parameters
    ----------
    field : ndarray
        Velocity field, shape (dim, pitch, 2), columns [0, dim) written
    vx, vy : ndarray
        Inverse-transformed padded buffers, shape (dim, rpadw)
    dim : int
        Grid dimension
    tiles : ndarray
        Disjoint tiles over the dim x dim grid
    """
    scale = 1.0 / (dim * dim)
    for t in prange(tiles.shape[0]):
        x0 = tiles[t, 0]
        x1 = tiles[t, 1]
        y0 = tiles[t, 2]
        y1 = tiles[t, 3]
        for j in range(y0, y1):
            for i in range(x0, x1):
                field[j, i, 0] = vx[j, i] * scale
                field[j, i, 1] = vy[j, i] * scale


def diffuse_project(vx_hat, vy_hat, dt=DT, visc=VIS, diffuse=True,
                    project=True, tiles=None):
    """
    Apply diffusion and projection in place to complex coefficients.

    Parameters
    ----------
    vx_hat, vy_hat : ndarray
        Complex coefficients, shape (dim, dim/2 + 1), complex64
    dt : float
        Time step
    visc : float
        Viscosity
    diffuse : bool
        Apply viscous damping
    project : bool
        Remove the divergent component
    tiles : ndarray, optional
        Precomputed tiles from make_tiles(dim/2 + 1, dim)

    Returns
    -------
    vx_hat, vy_hat : ndarray
        The same arrays
    """
    dim = vx_hat.shape[0]
    cpadw, _ = padded_widths(dim)
    expected = (dim, cpadw)
    if vx_hat.shape != expected or vy_hat.shape != expected:
        raise ValueError(
            f"coefficient arrays have shapes {vx_hat.shape} and {vy_hat.shape}, "
            f"expected {expected}"
        )
    if tiles is None:
        tiles = make_tiles(cpadw, dim, TILEX, TILEY)

    diffuse_project_numba(vx_hat, vy_hat, int(dim), float(dt), float(visc),
                          bool(diffuse), bool(project), tiles)
    return vx_hat, vy_hat


def update_velocity(field, vx, vy, dim=None, tiles=None):
    """
    Write the normalized inverse transform into the velocity field.

    Parameters
    ----------
    field : ndarray
        Velocity field, shape (dim, pitch, 2)
    vx, vy : ndarray
        Padded buffers holding the unnormalized inverse transform
    dim : int, optional
        Grid dimension (defaults to field.shape[0])
    tiles : ndarray, optional
        Precomputed tiles from make_tiles(dim, dim)

    Returns
    -------
    field : ndarray
        The updated field
    """
    if dim is None:
        dim = field.shape[0]
    validate_shape(field, dim, "field")
    validate_shape(vx, dim, "vx")
    validate_shape(vy, dim, "vy")
    if tiles is None:
        tiles = make_tiles(dim, dim, TILEX, TILEY)

    update_velocity_numba(field, vx, vy, int(dim), tiles)
    return field
