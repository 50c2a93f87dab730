"""
SPH smoothing kernels for density, pressure and viscosity.

Implements the three kernels of Müller, Charypar & Gross (2003) with compact
support radius h:

    Poly6      W(r, h)        = 315 / (64 π h⁹) × (h² − r²)³     density
    Spiky      |∇W(r, h)|     ∝  45 / (π h⁶)                      pressure
    Viscosity  ∇²W(r, h)      =  45 / (π h⁶) × (h − r)            viscosity

All kernels vanish for r ≥ h, so two particles exactly h apart do not
interact. The classes are vectorized numpy implementations used by the
brute-force reference and the tests; the numba evaluators take the
precomputed constants directly.

References
----------
.. [1] Müller, M., Charypar, D., & Gross, M. (2003), "Particle-based fluid
       simulation for interactive applications", Proc. SCA, 154-159.
"""

import numpy as np
import numpy.typing as npt

# Type alias for clarity
NDArrayFloat = npt.NDArray[np.float32]


def poly6_constant(h: float) -> float:
    """Normalisation 315 / (64 π h⁹) of the Poly6 kernel."""
    return 315.0 / (64.0 * np.pi * float(h)**9)


def spiky_gradient_constant(h: float) -> float:
    """Magnitude 45 / (π h⁶) of the Spiky kernel gradient."""
    return 45.0 / (np.pi * float(h)**6)


def viscosity_laplacian_constant(h: float) -> float:
    """Magnitude 45 / (π h⁶) of the viscosity kernel Laplacian."""
    return 45.0 / (np.pi * float(h)**6)


class Poly6Kernel:
    """
    Sixth-degree polynomial kernel used for density summation.

    W(r, h) = 315 / (64 π h⁹) × (h² − r²)³  for 0 ≤ r < h, zero otherwise.

    Evaluated on r² so no square root is needed.
    """

    def __init__(self, h: float):
        if h <= 0.0:
            raise ValueError(f"Smoothing radius must be positive, got {h}")
        self.h = float(h)
        self.h2 = self.h * self.h
        self.constant = poly6_constant(self.h)

    def kernel_r2(self, r2: NDArrayFloat) -> NDArrayFloat:
        """W as a function of squared distance."""
        r2 = np.asarray(r2, dtype=np.float64)
        diff = np.where(r2 < self.h2, self.h2 - r2, 0.0)
        return self.constant * diff**3

    def kernel(self, r: NDArrayFloat) -> NDArrayFloat:
        r = np.asarray(r, dtype=np.float64)
        return self.kernel_r2(r * r)

    def self_density(self, mass: float) -> float:
        """Density a lone particle contributes to itself: m × C × h⁶."""
        return float(mass) * self.constant * self.h2**3


class SpikyKernel:
    """
    Spiky kernel gradient used for the pressure force.

    Returns the scalar weight C × (h − r)³ applied along the unit separation
    vector, with C = 45 / (π h⁶).
    """

    def __init__(self, h: float):
        if h <= 0.0:
            raise ValueError(f"Smoothing radius must be positive, got {h}")
        self.h = float(h)
        self.constant = spiky_gradient_constant(self.h)

    def gradient_weight(self, r: NDArrayFloat) -> NDArrayFloat:
        r = np.asarray(r, dtype=np.float64)
        diff = np.where(r < self.h, self.h - r, 0.0)
        return self.constant * diff**3


class ViscosityKernel:
    """
    Laplacian of the viscosity kernel: C × (h − r) with C = 45 / (π h⁶).
    """

    def __init__(self, h: float):
        if h <= 0.0:
            raise ValueError(f"Smoothing radius must be positive, got {h}")
        self.h = float(h)
        self.constant = viscosity_laplacian_constant(self.h)

    def laplacian(self, r: NDArrayFloat) -> NDArrayFloat:
        r = np.asarray(r, dtype=np.float64)
        return np.where(r < self.h, self.constant * (self.h - r), 0.0)
