"""
Grid-accelerated SPH density summation.

    ρ_i = Σ_j m W_poly6(|r_i − r_j|, h)

The sum runs over the particle itself and every particle in the 3×3×3 block
of cells around it. Neighbour cells outside the grid are skipped (no
wrap-around). Each cell is read as its explicit run
``cell_start[k]:cell_end[k]`` of the sorted particle indices, so an empty
cell contributes nothing.
"""

import numpy as np
import numpy.typing as npt
from numba import njit, prange

from fluid_sph.grid.cell_keys import decode_cell_key, linear_cell_key
from fluid_sph.grid.spatial_lookup import SpatialLookup
from fluid_sph.sph.kernels import poly6_constant

NDArrayFloat = npt.NDArray[np.float32]


@njit(parallel=True, fastmath=True)
def _compute_density_numba(positions, mass, h, poly6, cell_count, particle_keys,
                           sorted_values, cell_start, cell_end, first, density):
    n = positions.shape[0]
    h2 = np.float64(h) * np.float64(h)

    for t in prange(n - first):
        gid = first + t
        px = np.float64(positions[gid, 0])
        py = np.float64(positions[gid, 1])
        pz = np.float64(positions[gid, 2])
        cx, cy, cz = decode_cell_key(particle_keys[gid], cell_count)

        acc = 0.0
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
                        dx = px - positions[j, 0]
                        dy = py - positions[j, 1]
                        dz = pz - positions[j, 2]
                        r2 = dx * dx + dy * dy + dz * dz
                        if r2 < h2:
                            diff = h2 - r2
                            acc += diff * diff * diff

        density[gid] = mass * poly6 * acc


def compute_density(
    positions: NDArrayFloat,
    lookup: SpatialLookup,
    mass: float,
    density: NDArrayFloat = None,
    first_particle: int = 0,
) -> NDArrayFloat:
    """
    Compute SPH density for every particle from an up-to-date spatial lookup.

    Parameters
    ----------
    positions : NDArrayFloat, shape (N, 3)
        Particle positions the lookup was built from.
    lookup : SpatialLookup
        Spatial hash rebuilt from ``positions`` this step.
    mass : float
        Particle mass (uniform).
    density : NDArrayFloat, shape (N,), optional
        Output buffer. Entries below ``first_particle`` are left untouched.
    first_particle : int, optional
        Particles with a lower index are not evaluated (ghost exclusion).
        They still contribute as neighbours.

    Returns
    -------
    density : NDArrayFloat, shape (N,)
        ρ_i, including the self-contribution m × W(0, h).
    """
    n = positions.shape[0]
    if density is None:
        density = np.zeros(n, dtype=np.float32)

    h = lookup.smoothing_radius
    _compute_density_numba(
        np.ascontiguousarray(positions, dtype=np.float32),
        np.float64(mass),
        np.float32(h),
        np.float64(poly6_constant(h)),
        lookup.cell_count,
        lookup.particle_keys,
        lookup.sorted_values,
        lookup.cell_start,
        lookup.cell_end,
        np.int64(first_particle),
        density,
    )
    return density
