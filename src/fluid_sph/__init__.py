"""
fluid-sph: grid-accelerated SPH fluid solver.

Particles in an axis-aligned box evolve under gravity, pressure and
viscosity. Each step rebuilds a uniform spatial hash (cell keys, parallel
radix sort, per-cell lookup index), evaluates density and forces over the
27 neighbouring cells and advances particles with a kick-drift-kick
integrator that reflects them off the box walls.
"""

__version__ = "0.1.0"

# Core imports for convenience
from fluid_sph.core.interfaces import (
    EOS,
    TimeIntegrator,
    ICGenerator,
)
from fluid_sph.core.simulation import (
    FluidConfig,
    SimulationState,
    Simulation,
)
from fluid_sph.sph.particles import ParticleSystem

__all__ = [
    "EOS",
    "TimeIntegrator",
    "ICGenerator",
    "FluidConfig",
    "SimulationState",
    "Simulation",
    "ParticleSystem",
]
