"""
Particle system management for SPH fluid simulations.

This module implements the ParticleSystem class that holds all per-particle
state: positions and velocities (persistent across steps) plus density,
pressure and force (recomputed every step before the integrator consumes
them).
"""

from typing import Optional
import numpy as np
import numpy.typing as npt

# Type alias for clarity
NDArrayFloat = npt.NDArray[np.float32]


class ParticleSystem:
    """
    Container for SPH particle data.

    All arrays are float32 and contiguous so they can be handed straight to
    the numba kernels.

    Attributes
    ----------
    n_particles : int
        Number of particles in the system.
    mass : float
        Mass of every particle.
    ghost_count : int
        Number of leading particles that act as static boundary mass.
    positions : NDArrayFloat, shape (N, 3)
        Cartesian coordinates (x, y, z).
    velocities : NDArrayFloat, shape (N, 3)
        Velocity components (vx, vy, vz).
    density : NDArrayFloat, shape (N,)
        Mass density ρ from the SPH summation.
    pressure : NDArrayFloat, shape (N,)
        Pressure P from the equation of state.
    force : NDArrayFloat, shape (N, 3)
        Pressure + viscosity force density.

    Notes
    -----
    Indices ``0 .. ghost_count - 1`` are ghost particles. Whether they are
    actually held fixed is a simulation policy, not a property of the
    container.
    """

    def __init__(
        self,
        n_particles: int,
        positions: Optional[NDArrayFloat] = None,
        velocities: Optional[NDArrayFloat] = None,
        mass: float = 1.0,
        ghost_count: int = 0,
    ):
        """
        Initialize particle system.

        Parameters
        ----------
        n_particles : int
            Number of particles.
        positions : NDArrayFloat, shape (N, 3), optional
            Initial positions. If None, initialized to zeros.
        velocities : NDArrayFloat, shape (N, 3), optional
            Initial velocities. If None, initialized to zeros.
        mass : float, optional
            Mass of each particle (default 1.0).
        ghost_count : int, optional
            Number of leading ghost particles (default 0).
        """
        if ghost_count < 0 or ghost_count > n_particles:
            raise ValueError(
                f"ghost_count must be in [0, {n_particles}], got {ghost_count}"
            )

        self.n_particles = n_particles
        self.mass = float(mass)
        self.ghost_count = int(ghost_count)

        self.positions = (
            np.ascontiguousarray(positions, dtype=np.float32).copy() if positions is not None
            else np.zeros((n_particles, 3), dtype=np.float32)
        )
        self.velocities = (
            np.ascontiguousarray(velocities, dtype=np.float32).copy() if velocities is not None
            else np.zeros((n_particles, 3), dtype=np.float32)
        )

        # Derived quantities (recomputed every step)
        self.density = np.zeros(n_particles, dtype=np.float32)
        self.pressure = np.zeros(n_particles, dtype=np.float32)
        self.force = np.zeros((n_particles, 3), dtype=np.float32)

        self._validate_shapes()

    def _validate_shapes(self) -> None:
        """Validate that all arrays have consistent shapes."""
        n = self.n_particles
        if self.positions.shape != (n, 3):
            raise ValueError(f"positions shape mismatch: {self.positions.shape}")
        if self.velocities.shape != (n, 3):
            raise ValueError(f"velocities shape mismatch: {self.velocities.shape}")

    @property
    def fluid_slice(self) -> slice:
        """Slice selecting the non-ghost particles."""
        return slice(self.ghost_count, self.n_particles)

    def set_positions(self, positions: NDArrayFloat) -> None:
        """Set particle positions."""
        if positions.shape != (self.n_particles, 3):
            raise ValueError(f"positions shape mismatch: {positions.shape}")
        self.positions[:] = positions

    def set_velocities(self, velocities: NDArrayFloat) -> None:
        """Set particle velocities."""
        if velocities.shape != (self.n_particles, 3):
            raise ValueError(f"velocities shape mismatch: {velocities.shape}")
        self.velocities[:] = velocities

    def kinetic_energy(self, include_ghosts: bool = False) -> float:
        """
        Total kinetic energy ∑ (1/2) m v².

        Parameters
        ----------
        include_ghosts : bool, optional
            Whether ghost particles are counted (default False).
        """
        sel = slice(None) if include_ghosts else self.fluid_slice
        v_squared = np.sum(self.velocities[sel].astype(np.float64)**2, axis=1)
        return float(0.5 * self.mass * np.sum(v_squared))

    def total_mass(self) -> float:
        """Total mass of the system."""
        return self.mass * self.n_particles

    def center_of_mass(self) -> NDArrayFloat:
        """Center of mass position (uniform masses)."""
        if self.n_particles == 0:
            return np.zeros(3, dtype=np.float32)
        return np.mean(self.positions, axis=0)

    def __repr__(self) -> str:
        """String representation of particle system."""
        return (
            f"ParticleSystem(n_particles={self.n_particles}, "
            f"ghost_count={self.ghost_count}, "
            f"mass={self.mass:.3e}, "
            f"E_kin={self.kinetic_energy():.3e})"
        )
