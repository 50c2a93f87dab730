"""
Semi-implicit Euler integrator without SPH forces.

    x^(n+1) = x^n + dt v^n
    v^(n+1) = v^n + dt g

Pressure and viscosity are ignored, which makes this a cheap integrator for
coarse runs and for checking free fall and wall bounces in isolation.
"""

import numpy as np
from typing import Any

from fluid_sph.core.interfaces import TimeIntegrator
from fluid_sph.integration.boundary import BoxBoundary


class SemiImplicitEulerIntegrator(TimeIntegrator):
    """Gravity-only position-then-velocity update with box reflection."""

    def __init__(self, gravity, boundary: BoxBoundary):
        self.gravity = np.asarray(gravity, dtype=np.float32)
        self.boundary = boundary

    def step(
        self,
        particles: Any,
        dt: float,
        first_particle: int = 0,
        **kwargs
    ) -> None:
        """Advance positions, then velocities, then reflect off the box."""
        sel = slice(first_particle, particles.n_particles)
        dt_f32 = np.float32(dt)

        particles.positions[sel] += dt_f32 * particles.velocities[sel]
        particles.velocities[sel] += dt_f32 * self.gravity

        self.boundary.apply(particles.positions, particles.velocities, first_particle)
