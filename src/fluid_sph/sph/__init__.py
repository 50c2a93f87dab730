"""
SPH module: particles, kernels, density and pressure/viscosity forces.
"""

from .particles import ParticleSystem
from .kernels import (
    Poly6Kernel,
    SpikyKernel,
    ViscosityKernel,
    poly6_constant,
    spiky_gradient_constant,
    viscosity_laplacian_constant,
)
from .density import compute_density
from .forces import compute_forces, DEFAULT_DENSITY_EPSILON
from .neighbours_cpu import (
    find_neighbours_bruteforce,
    compute_density_bruteforce,
    compute_forces_bruteforce,
)

__all__ = [
    # Particle management
    "ParticleSystem",

    # Kernels
    "Poly6Kernel",
    "SpikyKernel",
    "ViscosityKernel",
    "poly6_constant",
    "spiky_gradient_constant",
    "viscosity_laplacian_constant",

    # Grid-accelerated evaluators
    "compute_density",
    "compute_forces",
    "DEFAULT_DENSITY_EPSILON",

    # Brute-force reference
    "find_neighbours_bruteforce",
    "compute_density_bruteforce",
    "compute_forces_bruteforce",
]
