"""
Leapfrog (kick-drift-kick) time integrator for SPH fluids.

Implements the velocity-Verlet form of the leapfrog scheme:
    v^(n+1/2) = v^n + (dt/2) a^n
    x^(n+1)   = x^n + dt v^(n+1/2)
    v^(n+1)   = v^(n+1/2) + (dt/2) a^n

with a^n = g + f^n / (ρ^n + ε). The second kick reuses this step's force,
since the pipeline evaluates forces once per step. The reflecting box is
applied after the update, axis by axis.

References
----------
- Price, D. J. (2012), JCP, 231, 759 - "Smoothed particle hydrodynamics and magnetohydrodynamics"
- Müller, M. et al. (2003), SCA - "Particle-based fluid simulation for interactive applications"
"""

import numpy as np
from numba import njit, prange
from typing import Any

from fluid_sph.core.interfaces import TimeIntegrator
from fluid_sph.integration.boundary import BoxBoundary, reflect_axis
from fluid_sph.sph.forces import DEFAULT_DENSITY_EPSILON


@njit(parallel=True, fastmath=True)
def _kick_drift_kick_numba(positions, velocities, density, force, gravity, dt,
                           epsilon, extent, margin, damping, first):
    n = positions.shape[0]
    half_dt = 0.5 * dt
    for t in prange(n - first):
        i = first + t
        inv_rho = 1.0 / (np.float64(density[i]) + epsilon)
        for a in range(3):
            accel = gravity[a] + force[i, a] * inv_rho
            v_half = velocities[i, a] + half_dt * accel
            x = positions[i, a] + dt * v_half
            v = v_half + half_dt * accel
            x, v = reflect_axis(x, v, margin, extent[a] - margin, damping)
            positions[i, a] = x
            velocities[i, a] = v


class LeapfrogIntegrator(TimeIntegrator):
    """
    Kick-drift-kick integrator under gravity and SPH forces.

    Attributes
    ----------
    gravity : NDArray, shape (3,)
        Constant body acceleration.
    boundary : BoxBoundary
        Reflecting box applied after every update.
    density_epsilon : float
        Added to the density when converting force density to acceleration.
    """

    def __init__(
        self,
        gravity,
        boundary: BoxBoundary,
        density_epsilon: float = DEFAULT_DENSITY_EPSILON,
    ):
        self.gravity = np.asarray(gravity, dtype=np.float64)
        self.boundary = boundary
        self.density_epsilon = density_epsilon

    def step(
        self,
        particles: Any,
        dt: float,
        first_particle: int = 0,
        **kwargs
    ) -> None:
        """
        Advance particle system by one timestep using kick-drift-kick.

        Parameters
        ----------
        particles : ParticleSystem
            Particle system; ``density`` and ``force`` must be current.
        dt : float
            Timestep duration.
        first_particle : int, optional
            Particles below this index are not moved (ghosts).
        **kwargs
            Unused.

        Notes
        -----
        Modifies particles.positions and particles.velocities in-place.
        """
        _kick_drift_kick_numba(
            particles.positions,
            particles.velocities,
            particles.density,
            particles.force,
            self.gravity,
            np.float64(dt),
            np.float64(self.density_epsilon),
            self.boundary.extent,
            np.float64(self.boundary.margin),
            np.float64(self.boundary.damping),
            np.int64(first_particle),
        )
