"""
Flow Diagnostics

Derived quantities of a velocity field given as two (dim, dim) component
arrays. All finite differences assume the periodic domain of the spectral
solver.
"""

import numpy as np
import scipy.fft as sp_fft

from .spectral import wavenumbers


def compute_divergence(ux, uy, dx=1.0):
    """
    Divergence by central differences.

    div = du_x/dx + du_y/dy

    Parameters
    ----------
    ux : ndarray
        X-velocity field, shape (ny, nx)
    uy : ndarray
        Y-velocity field, shape (ny, nx)
    dx : float
        Grid spacing

    Returns
    -------
    divergence : ndarray
        Divergence field, shape (ny, nx)
    """
    ux = np.asarray(ux, dtype=np.float64)
    uy = np.asarray(uy, dtype=np.float64)
    dux_dx = (np.roll(ux, -1, axis=1) - np.roll(ux, 1, axis=1)) / (2.0 * dx)
    duy_dy = (np.roll(uy, -1, axis=0) - np.roll(uy, 1, axis=0)) / (2.0 * dx)
    return dux_dx + duy_dy


def compute_spectral_divergence(ux, uy):
    """
    Relative spectral divergence of a field.

    Computes |k . v(k)| summed over all modes, divided by |k| |v(k)| summed
    the same way, using the wavenumber convention of the projection step.
    The Nyquist row and column are left out because their sign convention
    is ambiguous for a real field.

    Returns
    -------
    ratio : float
        0 for a divergence-free field, at most 1
    """
    dim = ux.shape[0]
    vx_hat = sp_fft.rfft2(np.asarray(ux, dtype=np.float64))
    vy_hat = sp_fft.rfft2(np.asarray(uy, dtype=np.float64))
    kx, ky = wavenumbers(dim)

    keep = np.ones(vx_hat.shape, dtype=bool)
    keep[dim // 2, :] = False
    keep[:, dim // 2] = False

    kdotv = np.abs(kx * vx_hat + ky * vy_hat)
    knorm = np.sqrt(kx * kx + ky * ky)
    vnorm = np.sqrt(np.abs(vx_hat) ** 2 + np.abs(vy_hat) ** 2)

    denom = np.sum((knorm * vnorm)[keep])
    if denom == 0.0:
        return 0.0
    return float(np.sum(kdotv[keep]) / denom)


def compute_vorticity(ux, uy, dx=1.0):
    """
    Compute vorticity field using central differences.

    omega = du_y/dx - du_x/dy

    Parameters
    ----------
    ux : ndarray
        X-velocity field, shape (ny, nx)
    uy : ndarray
        Y-velocity field, shape (ny, nx)
    dx : float
        Grid spacing

    Returns
    -------
    vorticity : ndarray
        Vorticity field, shape (ny, nx)
    """
    duy_dx = (np.roll(uy, -1, axis=1) - np.roll(uy, 1, axis=1)) / (2.0 * dx)
    dux_dy = (np.roll(ux, -1, axis=0) - np.roll(ux, 1, axis=0)) / (2.0 * dx)
    return duy_dx - dux_dy


def compute_velocity_magnitude(ux, uy):
    """
    Compute velocity magnitude field.

    |u| = sqrt(ux^2 + uy^2)
    """
    return np.sqrt(ux * ux + uy * uy)


def compute_kinetic_energy(ux, uy):
    """Total kinetic energy 0.5 * sum(|u|^2)."""
    ux = np.asarray(ux, dtype=np.float64)
    uy = np.asarray(uy, dtype=np.float64)
    return 0.5 * float(np.sum(ux * ux + uy * uy))
