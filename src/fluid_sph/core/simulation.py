"""
Simulation orchestrator for the SPH fluid solver.

This module implements the Simulation class that runs the per-step pipeline:

    cell keys -> radix sort -> lookup index -> density -> pressure (EOS)
    -> pressure/viscosity forces -> integration + box reflection

Design:
- Simulation owns the spatial lookup and its sort buffers, sized once for
  the particle count and reused every step
- EOS and TimeIntegrator are swappable via dependency injection
- Each stage returns before the next begins, so every stage reads complete
  results of the previous one
"""

from typing import Dict, Optional, Tuple
from dataclasses import dataclass, field
import warnings
import numpy as np
import numpy.typing as npt
from pathlib import Path
import time as time_module
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

from fluid_sph.core.interfaces import EOS, TimeIntegrator
from fluid_sph.grid import RadixSorter, SpatialLookup, grid_shape_for_box
from fluid_sph.sph import ParticleSystem, compute_density, compute_forces


NDArrayFloat = npt.NDArray[np.float32]


def _is_power_of_two(v: int) -> bool:
    return v > 0 and (v & (v - 1)) == 0


class FluidConfig(BaseModel):
    """
    Configuration for an SPH fluid run with Pydantic validation.

    Defaults describe a small water-like block falling in a 3 × 2 × 1 box.

    Attributes
    ----------
    smoothing_radius : float
        Interaction cutoff h; also the grid cell size and the wall margin.
    cell_count : Tuple[int, int, int], optional
        Grid shape. Derived as ceil(box_extent / h) when omitted.
    mass, rest_density, gas_constant, viscosity : float
        Fluid parameters.
    gravity : Tuple[float, float, float]
        Constant body acceleration.
    damping : float
        Velocity factor applied on wall contact, in [-1, 1].
    box_extent : Tuple[float, float, float]
        Box size; the box spans [0, box_extent].
    ghost_count : int
        Number of leading particles treated as ghosts.
    exclude_ghosts : bool
        Hold ghosts fixed: keep their density, zero their force, skip
        their integration.
    density_epsilon : float
        Added to densities in the force and acceleration denominators.
    allow_negative_pressure : bool
        Keep k(ρ − ρ₀) unclamped below the rest density.
    integrator : str
        "leapfrog" (kick-drift-kick) or "euler" (gravity only).
    radix_bits, workgroup_size, scan_workers : int
        Sort parameters: digit width, histogram/scatter group size and
        scan workers (block = 2 × scan_workers).
    """

    # Fluid
    smoothing_radius: float = Field(default=0.15, gt=0.0, description="Smoothing radius h")
    mass: float = Field(default=0.12, gt=0.0, description="Particle mass")
    rest_density: float = Field(default=60.0, gt=0.0, description="Rest density ρ₀")
    gas_constant: float = Field(default=200.0, ge=0.0, description="Gas constant k")
    viscosity: float = Field(default=0.1, ge=0.0, description="Dynamic viscosity μ")
    gravity: Tuple[float, float, float] = Field(
        default=(0.0, -1.0, 0.0),
        description="Gravitational acceleration"
    )

    # Box and grid
    box_extent: Tuple[float, float, float] = Field(
        default=(3.0, 2.0, 1.0),
        description="Box size along x, y, z"
    )
    damping: float = Field(
        default=-0.6,
        ge=-1.0,
        le=1.0,
        description="Wall velocity factor (negative inverts)"
    )
    cell_count: Optional[Tuple[int, int, int]] = Field(
        default=None,
        description="Grid cells per axis; derived from the box if omitted"
    )

    # Ghosts and pressure
    ghost_count: int = Field(default=0, ge=0, description="Leading ghost particles")
    exclude_ghosts: bool = Field(default=True, description="Hold ghost particles fixed")
    density_epsilon: float = Field(default=1e-6, ge=0.0, description="Density denominator guard")
    allow_negative_pressure: bool = Field(default=True, description="Allow tensile pressure")

    # Integration and sorting
    integrator: str = Field(default="leapfrog", description="'leapfrog' or 'euler'")
    radix_bits: int = Field(default=8, ge=1, le=16, description="Bits per radix digit")
    workgroup_size: int = Field(default=256, gt=0, description="Histogram/scatter group size")
    scan_workers: int = Field(default=128, gt=0, description="Workers per scan block")

    # Run control
    dt: float = Field(default=0.005, gt=0.0, description="Timestep")
    n_steps: int = Field(default=1000, gt=0, description="Steps per run()")
    output_dir: Optional[str] = Field(default=None, description="Snapshot directory")
    snapshot_interval: int = Field(default=100, gt=0, description="Steps between snapshots")
    random_seed: Optional[int] = Field(default=42, description="Seed for jittered ICs")
    verbose: bool = Field(default=False, description="Enable verbose logging")

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",
    )

    @field_validator('integrator')
    @classmethod
    def validate_integrator(cls, v: str) -> str:
        """Validate integrator name."""
        valid = ["leapfrog", "euler"]
        if v not in valid:
            raise ValueError(f"integrator must be one of {valid}, got '{v}'")
        return v

    @field_validator('workgroup_size', 'scan_workers')
    @classmethod
    def validate_power_of_two(cls, v: int) -> int:
        if not _is_power_of_two(v):
            raise ValueError(f"must be a power of two, got {v}")
        return v

    @field_validator('box_extent')
    @classmethod
    def validate_box_extent(cls, v):
        if any(c <= 0.0 for c in v):
            raise ValueError(f"box_extent components must be positive, got {v}")
        return v

    @field_validator('cell_count')
    @classmethod
    def validate_cell_count(cls, v):
        if v is not None and any(c <= 0 for c in v):
            raise ValueError(f"cell_count components must be positive, got {v}")
        return v

    @model_validator(mode='after')
    def validate_configuration_consistency(self):
        """
        Cross-field validation.

        1. Every box axis fits a particle with one smoothing radius either side
        2. An explicit grid covers the whole box
        3. Zero gas constant or non-inverting damping only warn
        """
        h = self.smoothing_radius

        if any(extent < 2.0 * h for extent in self.box_extent):
            raise ValueError(
                f"box_extent {self.box_extent} must be at least 2 * smoothing_radius "
                f"({2.0 * h}) along every axis"
            )

        if self.cell_count is not None:
            for axis, (cells, extent) in enumerate(zip(self.cell_count, self.box_extent)):
                if cells * h < extent * (1.0 - 1e-6):
                    raise ValueError(
                        f"cell_count {self.cell_count} does not cover the box along axis "
                        f"{axis}: {cells} * {h} < {extent}"
                    )

        if self.gas_constant == 0.0:
            warnings.warn(
                "gas_constant is 0: pressure vanishes and particles will not repel."
            )

        if self.damping >= 0.0:
            warnings.warn(
                f"damping={self.damping} does not invert velocity on wall contact; "
                "particles will stick to or slide along walls."
            )

        return self

    def grid_shape(self) -> npt.NDArray[np.int64]:
        """Configured grid shape, or ceil(box_extent / h) per axis."""
        if self.cell_count is not None:
            return np.asarray(self.cell_count, dtype=np.int64)
        return grid_shape_for_box(self.box_extent, self.smoothing_radius)


@dataclass
class SimulationState:
    """
    Current state of the simulation.
    """
    time: float = 0.0
    step: int = 0
    dt: float = 0.005

    # Energy tracking (non-ghost particles)
    kinetic_energy: float = 0.0
    potential_energy: float = 0.0
    total_energy: float = 0.0

    # Timing diagnostics (seconds, last step)
    timing_cell_keys: float = 0.0
    timing_sort: float = 0.0
    timing_lookup_index: float = 0.0
    timing_density: float = 0.0
    timing_pressure: float = 0.0
    timing_forces: float = 0.0
    timing_integration: float = 0.0
    timing_io: float = 0.0
    timing_total: float = 0.0

    # Wall clock between the two most recent steps
    frame_time: float = 0.0
    last_step_wall_time: Optional[float] = None
    wall_time_start: float = field(default_factory=time_module.time)

    # Snapshots
    snapshot_count: int = 0


class Simulation:
    """
    Per-step SPH pipeline over a fixed particle set.

    Usage:
        >>> from fluid_sph.ICs import LatticeBlock
        >>> config = FluidConfig(box_extent=(1.0, 1.0, 1.0), smoothing_radius=0.1)
        >>> particles = LatticeBlock.from_config(config, shape=(8, 8, 8), spacing=0.05,
        ...                                      origin=(0.2, 0.2, 0.2), jitter=0.1).generate()
        >>> sim = Simulation(particles, config)
        >>> sim.run(100)

    The particle mass always comes from the config; a different mass on
    ``particles`` is overwritten with a warning.

    Ghost particles are the first ``ghost_count`` entries. With
    ``exclude_ghosts`` they keep their density (starting at the rest
    density), get zero force and are never moved, but still act as
    neighbours of fluid particles.
    """

    def __init__(
        self,
        particles: ParticleSystem,
        config: Optional[FluidConfig] = None,
        eos: Optional[EOS] = None,
        integrator: Optional[TimeIntegrator] = None,
    ):
        """
        Initialize simulation.

        Parameters
        ----------
        particles : ParticleSystem
            Particle data; must lie inside the box.
        config : FluidConfig, optional
            Run configuration (defaults if None).
        eos : EOS, optional
            Equation of state. Defaults to IdealGasEOS from the config.
        integrator : TimeIntegrator, optional
            Time integrator. Defaults to the one named by ``config.integrator``.
        """
        # Concrete components import core.interfaces themselves
        from fluid_sph.eos import IdealGasEOS
        from fluid_sph.integration import BoxBoundary

        self.particles = particles
        self.config = config or FluidConfig()
        self.state = SimulationState(dt=self.config.dt)
        self.paused = False

        self.ghost_count = self._resolve_ghost_count()
        particles.ghost_count = self.ghost_count
        if not np.isclose(particles.mass, self.config.mass, rtol=1e-6, atol=0.0):
            warnings.warn(
                f"particles.mass={particles.mass:g} disagrees with "
                f"config.mass={self.config.mass:g}; using config.mass."
            )
        particles.mass = self.config.mass

        self.cell_count = self.config.grid_shape()
        sorter = RadixSorter(
            radix_bits=self.config.radix_bits,
            key_bits=32,
            workgroup_size=self.config.workgroup_size,
            scan_block_size=2 * self.config.scan_workers,
        )
        self.lookup = SpatialLookup(
            particles.n_particles,
            self.config.smoothing_radius,
            self.cell_count,
            sorter=sorter,
        )

        self.boundary = BoxBoundary(
            extent=np.asarray(self.config.box_extent, dtype=np.float64),
            margin=self.config.smoothing_radius,
            damping=self.config.damping,
        )
        self.eos = eos or IdealGasEOS(
            gas_constant=self.config.gas_constant,
            rest_density=self.config.rest_density,
            allow_negative_pressure=self.config.allow_negative_pressure,
        )
        self.integrator = integrator or self._default_integrator()

        # Excluded ghosts never get a density pass, so they start at rest
        particles.density[:self.ghost_count] = self.config.rest_density

        self.output_dir = Path(self.config.output_dir) if self.config.output_dir else None
        if self.output_dir is not None:
            self.output_dir.mkdir(parents=True, exist_ok=True)

        self._log(
            f"Initialized: {particles.n_particles} particles "
            f"({self.ghost_count} ghosts), grid {tuple(int(c) for c in self.cell_count)} "
            f"= {self.lookup.n_cells} cells, integrator={self.config.integrator}"
        )

    def _resolve_ghost_count(self) -> int:
        n = self.particles.n_particles
        configured = self.config.ghost_count
        own = self.particles.ghost_count

        if configured > 0 and own > 0 and configured != own:
            raise ValueError(
                f"config.ghost_count={configured} disagrees with particles.ghost_count={own}"
            )
        ghost_count = configured or own

        if ghost_count > n:
            raise ValueError(f"ghost_count ({ghost_count}) exceeds particle count ({n})")
        if n > 0 and ghost_count == n:
            warnings.warn(
                f"All {n} particles are ghosts; nothing will move."
            )
        return ghost_count

    def _default_integrator(self) -> TimeIntegrator:
        from fluid_sph.integration import LeapfrogIntegrator, SemiImplicitEulerIntegrator

        if self.config.integrator == "euler":
            return SemiImplicitEulerIntegrator(self.config.gravity, self.boundary)
        return LeapfrogIntegrator(
            self.config.gravity,
            self.boundary,
            density_epsilon=self.config.density_epsilon,
        )

    @property
    def first_particle(self) -> int:
        """Index of the first particle the pipeline updates."""
        return self.ghost_count if self.config.exclude_ghosts else 0

    def _log(self, message: str):
        """Log message if verbose."""
        if self.config.verbose:
            print(f"[{self.state.step}] {message}")

    def toggle_pause(self) -> bool:
        """Flip the paused flag and return its new value."""
        self.paused = not self.paused
        self._log("Paused" if self.paused else "Resumed")
        return self.paused

    def compute_energies(self) -> Dict[str, float]:
        """
        Compute kinetic, gravitational potential and total energy.

        Only non-ghost particles are counted. The potential is measured from
        the origin: U = −Σ m g·x.

        Returns
        -------
        energies : Dict[str, float]
            Dictionary with 'kinetic', 'potential', 'total' energies.
        """
        sel = self.particles.fluid_slice
        kinetic = self.particles.kinetic_energy()
        gravity = np.asarray(self.config.gravity, dtype=np.float64)
        positions = self.particles.positions[sel].astype(np.float64)
        potential = float(-self.particles.mass * np.sum(positions @ gravity))

        return {
            'kinetic': kinetic,
            'potential': potential,
            'total': kinetic + potential,
        }

    def update_neighbour_structure(self) -> None:
        """Rebuild cell keys, sorted order and lookup index from current positions."""
        self.lookup.update(self.particles.positions)
        self.state.timing_cell_keys = self.lookup.timings['cell_keys']
        self.state.timing_sort = self.lookup.timings['sort']
        self.state.timing_lookup_index = self.lookup.timings['lookup_index']

    def compute_density(self) -> NDArrayFloat:
        """Density pass followed by the equation of state."""
        first = self.first_particle

        t0 = time_module.time()
        compute_density(
            self.particles.positions,
            self.lookup,
            self.config.mass,
            density=self.particles.density,
            first_particle=first,
        )
        self.state.timing_density = time_module.time() - t0

        t0 = time_module.time()
        self.particles.pressure[:] = self.eos.pressure(self.particles.density)
        self.state.timing_pressure = time_module.time() - t0

        return self.particles.density

    def compute_forces(self) -> NDArrayFloat:
        """Pressure + viscosity force density for every updated particle."""
        t0 = time_module.time()
        compute_forces(
            self.particles.positions,
            self.particles.velocities,
            self.particles.density,
            self.particles.pressure,
            self.lookup,
            self.config.mass,
            self.config.viscosity,
            forces=self.particles.force,
            first_particle=self.first_particle,
            density_epsilon=self.config.density_epsilon,
        )
        self.state.timing_forces = time_module.time() - t0
        return self.particles.force

    def step(self, dt: Optional[float] = None) -> None:
        """
        Advance simulation by one timestep.

        Does nothing while paused.

        Parameters
        ----------
        dt : float, optional
            Timestep for this call; defaults to ``config.dt``.
        """
        if self.paused:
            return

        dt = self.config.dt if dt is None else float(dt)
        if not np.isfinite(dt) or dt <= 0.0:
            raise ValueError(f"dt must be positive and finite, got {dt}")

        t0_step = time_module.time()

        self.update_neighbour_structure()
        self.compute_density()
        self.compute_forces()

        t0 = time_module.time()
        self.integrator.step(self.particles, dt, first_particle=self.first_particle)
        self.state.timing_integration = time_module.time() - t0

        self.state.dt = dt
        self.state.time += dt
        self.state.step += 1

        now = time_module.time()
        self.state.timing_total = now - t0_step
        if self.state.last_step_wall_time is not None:
            self.state.frame_time = now - self.state.last_step_wall_time
        self.state.last_step_wall_time = now

        self._check_finite()

    def _check_finite(self) -> None:
        for name in ('positions', 'velocities', 'density', 'force'):
            array = getattr(self.particles, name)
            if not np.all(np.isfinite(array)):
                bad = int(np.count_nonzero(~np.isfinite(array)))
                warnings.warn(
                    f"Non-finite {name} after step {self.state.step} ({bad} values)"
                )
                self._log(f"WARNING: non-finite {name} ({bad} values)")

    def display_view(self) -> Tuple[NDArrayFloat, NDArrayFloat]:
        """
        Read-only views of positions and density for rendering.

        The views track the live arrays; they are not copies.
        """
        positions = self.particles.positions.view()
        density = self.particles.density.view()
        positions.flags.writeable = False
        density.flags.writeable = False
        return positions, density

    def write_snapshot(self) -> Path:
        """
        Write current state to an HDF5 snapshot in ``output_dir``.
        """
        from fluid_sph.io import write_snapshot

        if self.output_dir is None:
            raise ValueError("output_dir is not configured")

        t0 = time_module.time()
        energies = self.compute_energies()
        self.state.kinetic_energy = energies['kinetic']
        self.state.potential_energy = energies['potential']
        self.state.total_energy = energies['total']

        filename = self.output_dir / f"snapshot_{self.state.snapshot_count:04d}.h5"

        metadata = {
            'step': self.state.step,
            'dt': self.state.dt,
            'smoothing_radius': self.config.smoothing_radius,
            'mass': self.config.mass,
            'rest_density': self.config.rest_density,
            'gas_constant': self.config.gas_constant,
            'viscosity': self.config.viscosity,
            'damping': self.config.damping,
            'gravity': self.config.gravity,
            'box_extent': self.config.box_extent,
            'cell_count': self.cell_count,
            'integrator': self.config.integrator,
            'kinetic_energy': self.state.kinetic_energy,
            'potential_energy': self.state.potential_energy,
            'total_energy': self.state.total_energy,
        }

        write_snapshot(filename, self.particles, self.state.time, metadata)
        self.state.snapshot_count += 1
        self.state.timing_io = time_module.time() - t0

        self._log(f"Snapshot {self.state.snapshot_count} -> {filename.name}")
        return filename

    def run(self, n_steps: Optional[int] = None) -> SimulationState:
        """
        Run ``n_steps`` steps (default ``config.n_steps``).

        With ``output_dir`` set, a snapshot is written before the first step
        and every ``snapshot_interval`` steps after it. Returns immediately
        if the simulation is paused.
        """
        n_steps = self.config.n_steps if n_steps is None else int(n_steps)

        if self.paused:
            self._log("Simulation is paused; run() skipped")
            return self.state

        self._log("=" * 60)
        self._log(f"Starting run of {n_steps} steps, dt={self.config.dt}")
        self._log("=" * 60)

        if self.output_dir is not None and self.state.snapshot_count == 0:
            self.write_snapshot()

        for _ in range(n_steps):
            self.step()

            if self.state.step % self.config.snapshot_interval == 0:
                if self.output_dir is not None:
                    self.write_snapshot()
                energies = self.compute_energies()
                self._log(
                    f"t={self.state.time:.4f}  "
                    f"E_kin={energies['kinetic']:.6e}  "
                    f"E_tot={energies['total']:.6e}  "
                    f"step {self.state.timing_total * 1e3:.2f} ms"
                )

        self._log("Run complete")
        return self.state
