"""
Integration module: time integrators and the reflecting box.
"""

from fluid_sph.integration.boundary import BoxBoundary
from fluid_sph.integration.leapfrog import LeapfrogIntegrator
from fluid_sph.integration.euler import SemiImplicitEulerIntegrator

__all__ = [
    "BoxBoundary",
    "LeapfrogIntegrator",
    "SemiImplicitEulerIntegrator",
]
