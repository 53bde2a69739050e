"""
Tracer Particles

Massless particles carried by the velocity field for visualization. The set
has a fixed size; positions live in normalized domain coordinates [0, 1).
"""

import numpy as np

from .domain import DTYPE


def init_particles(side, jitter=1.0, seed=None):
    """
    One particle per cell of a side x side lattice, jittered inside the cell.

    Particle (i, j) is placed at ((i + 0.5 + jitter * (r - 0.5)) / side, ...)
    with r uniform in [0, 1).

    Parameters
    ----------
    side : int
        Particles per row and column
    jitter : float
        Jitter amplitude in cells, 0 gives a regular lattice (<= 1)
    seed : int, optional
        Random seed

    Returns
    -------
    positions : ndarray
        Positions, shape (side * side, 2), float32, strictly inside [0, 1)
    """
    if side <= 0:
        raise ValueError(f"side must be positive, got {side}")
    if not 0.0 <= jitter <= 1.0:
        raise ValueError(f"jitter must be in [0, 1], got {jitter}")

    rng = np.random.default_rng(seed)
    jj, ii = np.mgrid[:side, :side]
    r = rng.random((2, side, side))

    x = (ii + 0.5 + jitter * (r[0] - 0.5)) / side
    y = (jj + 0.5 + jitter * (r[1] - 0.5)) / side

    positions = np.empty((side * side, 2), dtype=DTYPE)
    positions[:, 0] = x.ravel()
    positions[:, 1] = y.ravel()
    # float32 rounding may push the last column onto 1.0
    np.minimum(positions, np.nextafter(DTYPE(1.0), DTYPE(0.0)), out=positions)
    return positions


class ParticleSet:
    """
    Fixed-size set of tracer particles.

    Parameters
    ----------
    side : int
        Particles per row and column of the initial lattice
    jitter : float
        Jitter amplitude in cells
    seed : int, optional
        Random seed for the jitter
    color : int
        Packed RGBA tag stored with every particle (not used by physics)

    Attributes
    ----------
    positions : ndarray
        Positions in [0, 1), shape (n, 2), float32
    colors : ndarray
        Per-particle tags, shape (n,), uint32
    """

    def __init__(self, side, jitter=1.0, seed=None, color=0xFFFFFFFF):
        self.side = side
        self.jitter = jitter
        self.seed = seed
        self.color = color
        self.reset()

    def reset(self):
        """Re-create the initial lattice."""
        self.positions = init_particles(self.side, self.jitter, self.seed)
        self.colors = np.full(len(self.positions), self.color, dtype=np.uint32)

    def __len__(self):
        return len(self.positions)

    def snapshot(self):
        """Read-only copy of the positions."""
        snap = self.positions.copy()
        snap.setflags(write=False)
        return snap

    def in_domain(self):
        """True if every particle lies in [0, 1)^2."""
        p = self.positions
        return bool(np.all((p >= 0.0) & (p < 1.0)))
