"""
Core module: interfaces and the simulation orchestrator.
"""

from fluid_sph.core.interfaces import EOS, TimeIntegrator, ICGenerator, NDArrayFloat
from fluid_sph.core.simulation import FluidConfig, SimulationState, Simulation

__all__ = [
    # Interfaces
    "EOS",
    "TimeIntegrator",
    "ICGenerator",
    "NDArrayFloat",

    # Orchestration
    "FluidConfig",
    "SimulationState",
    "Simulation",
]
