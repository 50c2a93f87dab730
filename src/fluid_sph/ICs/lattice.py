"""
Lattice initial conditions for box-bounded fluids.

LatticeBlock places particles on a regular nx × ny × nz lattice, optionally
jittered, as in a classic dam-break setup. ``boundary_layer`` builds a
floor of static particles, and ``combine_with_ghosts`` prepends them to a
fluid block so they form the ghost prefix of the particle arrays.
"""

import numpy as np
from typing import Optional, Sequence, Tuple, Union
from fluid_sph.core.interfaces import ICGenerator, NDArrayFloat
from fluid_sph.sph.particles import ParticleSystem


class LatticeBlock(ICGenerator):
    """
    Regular block of particles.

    Attributes
    ----------
    shape : Tuple[int, int, int]
        Particles per axis (nx, ny, nz).
    spacing : float
        Lattice spacing.
    origin : NDArrayFloat, shape (3,)
        Position of the lattice point (0, 0, 0).
    velocity : NDArrayFloat, shape (3,)
        Initial velocity of every particle.
    mass : float
        Particle mass.
    jitter : float
        Uniform random displacement amplitude, as a fraction of ``spacing``.
    random_seed : Optional[int]
        Seed for the jitter; None for non-reproducible placement.

    Notes
    -----
    Particles are ordered x-major: lattice point (i, j, k) has index
    (i * ny + j) * nz + k. With ``spacing`` equal to the smoothing radius and
    origin at the centre of a cell, lattice indices and cell keys coincide.
    """

    def __init__(
        self,
        shape: Sequence[int] = (40, 40, 40),
        spacing: float = 0.0175,
        origin: Sequence[float] = (0.15, 0.15, 0.15),
        velocity: Sequence[float] = (0.0, 0.0, 0.0),
        mass: float = 0.12,
        jitter: float = 0.0,
        random_seed: Optional[int] = 42,
    ):
        if len(shape) != 3 or any(int(s) <= 0 for s in shape):
            raise ValueError(f"shape must be three positive integers, got {shape}")
        if spacing <= 0.0:
            raise ValueError(f"spacing must be positive, got {spacing}")
        if not 0.0 <= jitter < 0.5:
            raise ValueError(f"jitter must lie in [0, 0.5), got {jitter}")

        self.shape = tuple(int(s) for s in shape)
        self.spacing = float(spacing)
        self.origin = np.asarray(origin, dtype=np.float32)
        self.velocity = np.asarray(velocity, dtype=np.float32)
        self.mass = float(mass)
        self.jitter = float(jitter)
        self.random_seed = random_seed

    @classmethod
    def from_config(cls, config, **kwargs) -> "LatticeBlock":
        """
        Build a block whose mass and jitter seed come from a ``FluidConfig``.

        Any keyword argument of the constructor may be given; ``mass`` and
        ``random_seed`` override the config values.
        """
        kwargs.setdefault('mass', config.mass)
        kwargs.setdefault('random_seed', config.random_seed)
        return cls(**kwargs)

    @property
    def n_particles(self) -> int:
        nx, ny, nz = self.shape
        return nx * ny * nz

    def extent(self) -> Tuple[NDArrayFloat, NDArrayFloat]:
        """Lower and upper corners of the unjittered lattice."""
        upper = self.origin + self.spacing * (np.asarray(self.shape, dtype=np.float32) - 1)
        return self.origin.copy(), upper

    def positions(self) -> NDArrayFloat:
        """Lattice positions, shape (nx*ny*nz, 3)."""
        nx, ny, nz = self.shape
        i, j, k = np.meshgrid(np.arange(nx), np.arange(ny), np.arange(nz), indexing='ij')
        lattice = np.stack([i.ravel(), j.ravel(), k.ravel()], axis=1).astype(np.float64)
        positions = self.origin + self.spacing * lattice

        if self.jitter > 0.0:
            rng = np.random.default_rng(self.random_seed)
            positions += rng.uniform(
                -self.jitter * self.spacing,
                self.jitter * self.spacing,
                size=positions.shape,
            )

        return positions.astype(np.float32)

    def generate(self, **kwargs) -> ParticleSystem:
        """
        Generate the particle block.

        Parameters
        ----------
        **kwargs
            Unused.

        Returns
        -------
        particles : ParticleSystem
            ``n_particles`` particles with no ghosts.
        """
        n = self.n_particles
        velocities = np.tile(self.velocity, (n, 1))
        return ParticleSystem(
            n,
            positions=self.positions(),
            velocities=velocities,
            mass=self.mass,
        )


def boundary_layer(
    box_extent: Sequence[float],
    spacing: float,
    margin: float,
    layers: int = 1,
    axis: int = 1,
) -> NDArrayFloat:
    """
    Static particle layer(s) on the lower face of the box.

    Parameters
    ----------
    box_extent : Sequence[float]
        Box size (3 components).
    spacing : float
        Particle spacing within and between layers.
    margin : float
        Distance kept from every face, normally the smoothing radius.
    layers : int, optional
        Number of stacked layers (default 1).
    axis : int, optional
        Normal of the face, 1 (y) for a floor.

    Returns
    -------
    positions : NDArrayFloat, shape (M, 3)
        Layer positions, x-major over the two in-plane axes.
    """
    box_extent = np.asarray(box_extent, dtype=np.float64)
    if spacing <= 0.0:
        raise ValueError(f"spacing must be positive, got {spacing}")
    if layers <= 0:
        raise ValueError(f"layers must be positive, got {layers}")

    coords = []
    for a in range(3):
        if a == axis:
            coords.append(margin + spacing * np.arange(layers))
        else:
            # Include the far face when it lands on a lattice point
            n = int(np.floor((box_extent[a] - 2.0 * margin) / spacing + 1e-6)) + 1
            coords.append(margin + spacing * np.arange(max(n, 1)))

    grid = np.meshgrid(*coords, indexing='ij')
    return np.stack([g.ravel() for g in grid], axis=1).astype(np.float32)


def combine_with_ghosts(
    ghosts: Union[NDArrayFloat, ParticleSystem],
    fluid: ParticleSystem,
) -> ParticleSystem:
    """
    Prepend ghost particles to a fluid block.

    The ghosts become indices ``0 .. len(ghosts) - 1`` with zero velocity;
    the result carries ``ghost_count = len(ghosts)`` and the fluid's mass.
    """
    ghost_positions = ghosts.positions if isinstance(ghosts, ParticleSystem) else np.asarray(ghosts, dtype=np.float32)
    ghost_positions = ghost_positions.reshape(-1, 3)
    n_ghosts = ghost_positions.shape[0]

    positions = np.concatenate([ghost_positions, fluid.positions], axis=0)
    velocities = np.concatenate(
        [np.zeros((n_ghosts, 3), dtype=np.float32), fluid.velocities], axis=0
    )

    return ParticleSystem(
        n_ghosts + fluid.n_particles,
        positions=positions,
        velocities=velocities,
        mass=fluid.mass,
        ghost_count=n_ghosts,
    )
