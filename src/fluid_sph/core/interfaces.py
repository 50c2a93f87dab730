"""
Abstract base classes defining interfaces for pluggable fluid-solver modules.

The equation of state, the time integrator and the initial-condition
generator can each be swapped without touching the neighbour-search and
force pipeline.
"""

from abc import ABC, abstractmethod
from typing import Any
import numpy as np
import numpy.typing as npt


# Type aliases for clarity
NDArrayFloat = npt.NDArray[np.float32]


class EOS(ABC):
    """
    Abstract base class for equations of state.

    Implementations: IdealGasEOS (linear in density).
    """

    @abstractmethod
    def pressure(self, density: NDArrayFloat, **kwargs) -> NDArrayFloat:
        """
        Compute pressure from density.

        Parameters
        ----------
        density : NDArrayFloat, shape (N,)
            Mass density.
        **kwargs : model-specific parameters.

        Returns
        -------
        P : NDArrayFloat, shape (N,)
            Pressure.
        """
        pass


class TimeIntegrator(ABC):
    """
    Abstract base class for time integration schemes.

    Implementations: LeapfrogIntegrator (kick-drift-kick),
    SemiImplicitEulerIntegrator.
    """

    @abstractmethod
    def step(
        self,
        particles: Any,  # ParticleSystem type
        dt: float,
        first_particle: int = 0,
        **kwargs
    ) -> None:
        """
        Advance particle positions and velocities by one timestep in place.

        Parameters
        ----------
        particles : ParticleSystem
            Particle system to evolve. ``density`` and ``force`` must hold
            this step's values.
        dt : float
            Timestep.
        first_particle : int
            Particles with a lower index are left untouched.
        **kwargs : integrator-specific parameters.
        """
        pass


class ICGenerator(ABC):
    """
    Abstract base class for initial-condition generators.
    """

    @abstractmethod
    def generate(self, **kwargs) -> Any:
        """
        Generate an initial particle configuration.

        Returns
        -------
        particles : ParticleSystem
            Freshly seeded particles.
        """
        pass
