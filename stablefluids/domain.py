"""
Domain Constants and Parameter Validation

Defines the default stable-fluids domain and checks solver parameters.

The solver works on a square, periodic DIM x DIM grid. The real-to-complex
FFT of one row of DIM real samples yields DIM/2 + 1 complex coefficients,
so the spectral buffers are padded to RPADW = 2 * (DIM/2 + 1) floats per row
and transformed in place.
"""
import warnings

import numpy as np

# Square size of solver domain
DIM = 512
# Total domain size
DS = DIM * DIM
# Padded width for real->complex in-place FFT (complex elements)
CPADW = DIM // 2 + 1
# Padded width for real->complex in-place FFT (real elements)
RPADW = 2 * (DIM // 2 + 1)
# Padded total domain size
PDS = DIM * CPADW

# Delta T for the solver
DT = 0.09
# Viscosity constant
VIS = 0.0025
# Force scale factor
FORCE = 5.8 * DIM
# Force update radius (cells)
FR = 4

# Largest impulse magnitude accepted by force injection
MAX_FORCE = 1.0e4

# Tiling of the advection / projection / finalization kernels
TILEX = 64  # Tile width
TILEY = 64  # Tile height
TIDSX = 64  # Threads in X
TIDSY = 4   # Threads in Y

# Boundary policies for sampling
BOUNDARY_CLAMP = 0
BOUNDARY_WRAP = 1

BOUNDARY_POLICIES = {
    "clamp": BOUNDARY_CLAMP,
    "wrap": BOUNDARY_WRAP,
}

DTYPE = np.float32
CDTYPE = np.complex64


def validate_dim(dim):
    """
    Validate the grid dimension.

    Parameters
    ----------
    dim : int
        Side length of the square grid

    Raises
    ------
    ValueError
        If dim is not a power of two greater than one

    Returns
    -------
    dim : int
        Validated dimension
    """
    dim = int(dim)
    if dim < 2 or dim & (dim - 1):
        raise ValueError(f"dim must be a power of two >= 2, got {dim}")
    return dim


def validate_boundary(boundary):
    """
    Resolve a boundary policy name to its kernel flag.

    Accepts either a policy name ("clamp", "wrap") or one of the
    BOUNDARY_* flags.
    """
    if isinstance(boundary, str):
        try:
            return BOUNDARY_POLICIES[boundary]
        except KeyError:
            raise ValueError(
                f"Unknown boundary policy {boundary!r}, "
                f"expected one of {sorted(BOUNDARY_POLICIES)}"
            ) from None
    if boundary in (BOUNDARY_CLAMP, BOUNDARY_WRAP):
        return int(boundary)
    raise ValueError(f"Unknown boundary policy {boundary!r}")


def validate_parameters(dt, visc, force_radius):
    """
    Validate time step, viscosity and force radius.

    Parameters
    ----------
    dt : float
        Time step (must be >= 0)
    visc : float
        Kinematic viscosity (must be >= 0)
    force_radius : int
        Force application radius in cells (must be >= 0)

    Raises
    ------
    ValueError
        If any parameter is negative or not finite
    """
    if not np.isfinite(dt) or dt < 0.0:
        raise ValueError(f"dt must be a finite value >= 0, got {dt}")
    if not np.isfinite(visc) or visc < 0.0:
        raise ValueError(f"visc must be a finite value >= 0, got {visc}")
    if force_radius < 0:
        raise ValueError(f"force_radius must be >= 0, got {force_radius}")
    if dt > 10.0:
        warnings.warn(
            f"dt = {dt} is large. Semi-Lagrangian advection stays stable, "
            f"but the flow will be heavily smeared."
        )


def validate_shape(array, dim, name="array"):
    """
    Check that the leading two axes of an array cover a dim x dim grid.

    Raises
    ------
    ValueError
        If the array is smaller than the configured grid
    """
    if array.ndim < 2 or array.shape[0] != dim or array.shape[1] < dim:
        raise ValueError(
            f"{name} has shape {array.shape}, which does not match "
            f"a {dim} x {dim} grid"
        )


def validate_max_force(max_force):
    """
    Validate the force clamp limit.

    Raises
    ------
    ValueError
        If max_force is not a finite value > 0
    """
    if not (np.isfinite(max_force) and max_force > 0.0):
        raise ValueError(f"max_force must be a finite value > 0, got {max_force}")
    return float(max_force)


def validate_velocity(ux, uy, dim):
    """
    Check a pair of velocity components before loading them into a solver.

    Raises
    ------
    ValueError
        If either component is not (dim, dim) or holds NaN / inf
    """
    if ux.shape != (dim, dim) or uy.shape != (dim, dim):
        raise ValueError(
            f"velocity components must have shape {(dim, dim)}, "
            f"got {ux.shape} and {uy.shape}"
        )
    if not (np.all(np.isfinite(ux)) and np.all(np.isfinite(uy))):
        raise ValueError("velocity components must be finite")
