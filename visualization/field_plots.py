"""
Field Visualization

Plotting functions for velocity, vorticity and tracer particles.

All functions take read-only snapshots from a solver (get_velocity,
get_particles) and never touch solver state.
"""

import os
import sys

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.colors import LinearSegmentedColormap, hsv_to_rgb

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from stablefluids.observables import compute_velocity_magnitude, compute_vorticity


def create_vorticity_colormap():
    """Create a custom colormap for vorticity (blue-white-red)."""
    colors = [
        (0.0, 0.2, 0.6),   # Dark blue (negative)
        (0.4, 0.6, 1.0),   # Light blue
        (1.0, 1.0, 1.0),   # White (zero)
        (1.0, 0.6, 0.4),   # Light red
        (0.6, 0.1, 0.1),   # Dark red (positive)
    ]
    return LinearSegmentedColormap.from_list('vorticity', colors, N=256)


def velocity_to_rgb(ux, uy, vmax=None):
    """
    Color-map a velocity field: hue from direction, brightness from speed.

    Parameters
    ----------
    ux, uy : ndarray
        Velocity components, shape (ny, nx)
    vmax : float, optional
        Speed mapped to full brightness (default: 99th percentile)

    Returns
    -------
    rgb : ndarray
        Image, shape (ny, nx, 3), values in [0, 1]
    """
    speed = compute_velocity_magnitude(ux, uy)
    if vmax is None:
        vmax = np.percentile(speed, 99)
    if vmax <= 0:
        vmax = 1.0

    hsv = np.empty(speed.shape + (3,), dtype=np.float64)
    hsv[..., 0] = (np.arctan2(uy, ux) / (2.0 * np.pi)) % 1.0
    hsv[..., 1] = 1.0
    hsv[..., 2] = np.clip(speed / vmax, 0.0, 1.0)
    return hsv_to_rgb(hsv)


def plot_velocity_magnitude(ux, uy, title="Velocity Magnitude", ax=None):
    """Plot velocity magnitude field."""
    if ax is None:
        _, ax = plt.subplots(figsize=(6, 6))
    im = ax.imshow(compute_velocity_magnitude(ux, uy), origin='lower',
                   cmap='viridis', extent=[0, 1, 0, 1])
    ax.set_title(title, fontsize=12, fontweight='bold')
    plt.colorbar(im, ax=ax, label='|u|', shrink=0.8)
    return ax


def plot_vorticity(vorticity, title="Vorticity", ax=None):
    """Plot vorticity field with diverging colormap."""
    if ax is None:
        _, ax = plt.subplots(figsize=(6, 6))
    vmax = np.percentile(np.abs(vorticity), 98)
    if vmax <= 0:
        vmax = 1.0
    im = ax.imshow(vorticity, origin='lower', cmap=create_vorticity_colormap(),
                   vmin=-vmax, vmax=vmax, extent=[0, 1, 0, 1])
    ax.set_title(title, fontsize=12, fontweight='bold')
    plt.colorbar(im, ax=ax, label='ω', shrink=0.8)
    return ax


def plot_particles(positions, title="Particles", ax=None, size=0.2):
    """Scatter plot of particle positions in the unit square."""
    if ax is None:
        _, ax = plt.subplots(figsize=(6, 6))
    ax.scatter(positions[:, 0], positions[:, 1], s=size, c='black', marker='.',
               linewidths=0)
    ax.set_xlim(0, 1)
    ax.set_ylim(0, 1)
    ax.set_aspect('equal')
    ax.set_title(title, fontsize=12, fontweight='bold')
    return ax


def plot_flow_field(solver, save_path=None, title_suffix=""):
    """
    Velocity color map, vorticity and particles side by side.

    Parameters
    ----------
    solver : CPUFluidSolver or GPUFluidSolver
        Solver to snapshot
    save_path : str, optional
        Path to save figure
    title_suffix : str
        Additional text for titles
    """
    ux, uy = solver.get_velocity()
    positions = solver.get_particles()

    fig, axes = plt.subplots(1, 3, figsize=(18, 6))

    axes[0].imshow(velocity_to_rgb(ux, uy), origin='lower', extent=[0, 1, 0, 1])
    axes[0].set_title(f'Velocity {title_suffix}', fontsize=12, fontweight='bold')

    plot_vorticity(compute_vorticity(ux, uy), title=f'Vorticity {title_suffix}',
                   ax=axes[1])

    if positions is not None:
        plot_particles(positions, title=f'Particles {title_suffix}', ax=axes[2])

    plt.tight_layout()

    if save_path:
        directory = os.path.dirname(save_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        plt.savefig(save_path, dpi=150, bbox_inches='tight', facecolor='white')
        print(f"Saved: {save_path}")

    return fig
