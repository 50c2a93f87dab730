"""
Grid-accelerated pressure and viscosity forces.

For every particle i and each neighbour j ≠ i with r = |r_j − r_i| < h:

    f_i^press += −(r_j − r_i)/r × m (p_i + p_j) / (2 (ρ_j + ε)) × C_s (h − r)³
    f_i^visc  +=  μ m (v_j − v_i) / (ρ_j + ε) × C_v (h − r)

with C_s = C_v = 45 / (π h⁶). The symmetric pressure average keeps pairwise
forces equal and opposite up to each side's own density term. ε guards the
division in sparse regions. Coincident particles (r = 0) push along +x.

The neighbourhood walk is identical to the density pass and reads each cell
as an explicit ``cell_start:cell_end`` run.
"""

import numpy as np
import numpy.typing as npt
from numba import njit, prange

from fluid_sph.grid.cell_keys import decode_cell_key, linear_cell_key
from fluid_sph.grid.spatial_lookup import SpatialLookup
from fluid_sph.sph.kernels import spiky_gradient_constant, viscosity_laplacian_constant

NDArrayFloat = npt.NDArray[np.float32]

DEFAULT_DENSITY_EPSILON = 1e-6


@njit(parallel=True, fastmath=True)
def _compute_forces_numba(positions, velocities, density, pressure, mass, h,
                          viscosity, epsilon, spiky, visc_lap, cell_count,
                          particle_keys, sorted_values, cell_start, cell_end,
                          first, forces):
    n = positions.shape[0]
    hh = np.float64(h)
    h2 = hh * hh

    for t in prange(n - first):
        gid = first + t
        px = np.float64(positions[gid, 0])
        py = np.float64(positions[gid, 1])
        pz = np.float64(positions[gid, 2])
        vx = np.float64(velocities[gid, 0])
        vy = np.float64(velocities[gid, 1])
        vz = np.float64(velocities[gid, 2])
        p_i = np.float64(pressure[gid])
        cx, cy, cz = decode_cell_key(particle_keys[gid], cell_count)

        fx = 0.0
        fy = 0.0
        fz = 0.0
        for ox in range(-1, 2):
            nx = cx + ox
            if nx < 0 or nx >= cell_count[0]:
                continue
            for oy in range(-1, 2):
                ny = cy + oy
                if ny < 0 or ny >= cell_count[1]:
                    continue
                for oz in range(-1, 2):
                    nz = cz + oz
                    if nz < 0 or nz >= cell_count[2]:
                        continue
                    key = linear_cell_key(nx, ny, nz, cell_count)
                    for s in range(cell_start[key], cell_end[key]):
                        j = sorted_values[s]
                        if j == gid:
                            continue
                        dx = positions[j, 0] - px
                        dy = positions[j, 1] - py
                        dz = positions[j, 2] - pz
                        r2 = dx * dx + dy * dy + dz * dz
                        if r2 >= h2:
                            continue

                        r = np.sqrt(r2)
                        if r > 0.0:
                            ux = dx / r
                            uy = dy / r
                            uz = dz / r
                        else:
                            ux = 1.0
                            uy = 0.0
                            uz = 0.0

                        rho_j = np.float64(density[j]) + epsilon
                        falloff = hh - r

                        w_press = (mass * (p_i + pressure[j]) / (2.0 * rho_j)
                                   * spiky * falloff * falloff * falloff)
                        fx -= ux * w_press
                        fy -= uy * w_press
                        fz -= uz * w_press

                        w_visc = viscosity * mass * visc_lap * falloff / rho_j
                        fx += w_visc * (velocities[j, 0] - vx)
                        fy += w_visc * (velocities[j, 1] - vy)
                        fz += w_visc * (velocities[j, 2] - vz)

        forces[gid, 0] = fx
        forces[gid, 1] = fy
        forces[gid, 2] = fz


def compute_forces(
    positions: NDArrayFloat,
    velocities: NDArrayFloat,
    density: NDArrayFloat,
    pressure: NDArrayFloat,
    lookup: SpatialLookup,
    mass: float,
    viscosity: float,
    forces: NDArrayFloat = None,
    first_particle: int = 0,
    density_epsilon: float = DEFAULT_DENSITY_EPSILON,
) -> NDArrayFloat:
    """
    Compute pressure + viscosity force density for every particle.

    Parameters
    ----------
    positions, velocities : NDArrayFloat, shape (N, 3)
        Particle state the lookup was built from.
    density : NDArrayFloat, shape (N,)
        Densities from this step's density pass.
    pressure : NDArrayFloat, shape (N,)
        Pressures from the equation of state.
    lookup : SpatialLookup
        Spatial hash rebuilt from ``positions`` this step.
    mass : float
        Particle mass (uniform).
    viscosity : float
        Dynamic viscosity coefficient μ.
    forces : NDArrayFloat, shape (N, 3), optional
        Output buffer. Rows below ``first_particle`` are set to zero.
    first_particle : int, optional
        Particles with a lower index are not evaluated (ghost exclusion).
    density_epsilon : float, optional
        Added to every neighbour density in the denominators.

    Returns
    -------
    forces : NDArrayFloat, shape (N, 3)
        Force density f_i (divide by ρ_i for acceleration).
    """
    n = positions.shape[0]
    if forces is None:
        forces = np.zeros((n, 3), dtype=np.float32)
    if first_particle > 0:
        forces[:first_particle] = 0.0

    h = lookup.smoothing_radius
    _compute_forces_numba(
        np.ascontiguousarray(positions, dtype=np.float32),
        np.ascontiguousarray(velocities, dtype=np.float32),
        np.ascontiguousarray(density, dtype=np.float32),
        np.ascontiguousarray(pressure, dtype=np.float32),
        np.float64(mass),
        np.float64(h),
        np.float64(viscosity),
        np.float64(density_epsilon),
        np.float64(spiky_gradient_constant(h)),
        np.float64(viscosity_laplacian_constant(h)),
        lookup.cell_count,
        lookup.particle_keys,
        lookup.sorted_values,
        lookup.cell_start,
        lookup.cell_end,
        np.int64(first_particle),
        forces,
    )
    return forces
