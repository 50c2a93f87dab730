"""
CPU brute-force neighbour search, density and forces.

O(N²) pairwise reference implementations used to validate the grid pipeline.
They share no code with the spatial lookup, so agreement between the two is
a check that the 27-cell walk visits every neighbour. Suitable for small
particle counts only.
"""

from typing import List

import numpy as np
import numpy.typing as npt
from numba import njit, prange

from fluid_sph.sph.forces import DEFAULT_DENSITY_EPSILON
from fluid_sph.sph.kernels import Poly6Kernel, SpikyKernel, ViscosityKernel

# Type alias for clarity
NDArrayFloat = npt.NDArray[np.float32]


@njit(parallel=True, fastmath=True)
def _count_neighbours_numba(positions, h2):
    """Count neighbours (excluding self) for each particle."""
    N = len(positions)
    counts = np.zeros(N, dtype=np.int32)

    for i in prange(N):
        count = 0
        for j in range(N):
            if i == j:
                continue
            dx = positions[i, 0] - positions[j, 0]
            dy = positions[i, 1] - positions[j, 1]
            dz = positions[i, 2] - positions[j, 2]
            if dx*dx + dy*dy + dz*dz < h2:
                count += 1
        counts[i] = count
    return counts


@njit(parallel=True, fastmath=True)
def _fill_neighbours_numba(positions, h2, offsets, indices):
    """Fill neighbour indices array."""
    N = len(positions)

    for i in prange(N):
        current = offsets[i]
        for j in range(N):
            if i == j:
                continue
            dx = positions[i, 0] - positions[j, 0]
            dy = positions[i, 1] - positions[j, 1]
            dz = positions[i, 2] - positions[j, 2]
            if dx*dx + dy*dy + dz*dz < h2:
                indices[current] = j
                current += 1


def find_neighbours_bruteforce(
    positions: NDArrayFloat,
    smoothing_radius: float,
) -> List[npt.NDArray[np.int32]]:
    """
    Find all neighbours strictly closer than the smoothing radius.

    Parameters
    ----------
    positions : NDArrayFloat, shape (N, 3)
        Particle positions.
    smoothing_radius : float
        Interaction cutoff h.

    Returns
    -------
    neighbour_lists : List[NDArray[int32]]
        neighbour_lists[i] holds the indices j ≠ i with |r_i − r_j| < h,
        in ascending order.
    """
    positions = np.ascontiguousarray(positions, dtype=np.float64)
    h2 = float(smoothing_radius)**2

    counts = _count_neighbours_numba(positions, h2)
    offsets = np.zeros(len(counts) + 1, dtype=np.int64)
    offsets[1:] = np.cumsum(counts)

    indices = np.empty(offsets[-1], dtype=np.int32)
    _fill_neighbours_numba(positions, h2, offsets, indices)

    return [indices[offsets[i]:offsets[i + 1]] for i in range(len(positions))]


def compute_density_bruteforce(
    positions: NDArrayFloat,
    mass: float,
    smoothing_radius: float,
) -> NDArrayFloat:
    """
    Density by direct summation over all particles (self included).

        ρ_i = Σ_j m W_poly6(|r_i − r_j|, h)
    """
    positions = np.asarray(positions, dtype=np.float64)
    kernel = Poly6Kernel(smoothing_radius)
    n_particles = positions.shape[0]
    density = np.zeros(n_particles, dtype=np.float64)

    for i in range(n_particles):
        r_ij_vec = positions[i] - positions
        r2 = np.sum(r_ij_vec * r_ij_vec, axis=1)
        density[i] = mass * np.sum(kernel.kernel_r2(r2))

    return density.astype(np.float32)


def compute_forces_bruteforce(
    positions: NDArrayFloat,
    velocities: NDArrayFloat,
    density: NDArrayFloat,
    pressure: NDArrayFloat,
    mass: float,
    smoothing_radius: float,
    viscosity: float,
    density_epsilon: float = DEFAULT_DENSITY_EPSILON,
) -> NDArrayFloat:
    """
    Pressure + viscosity force density by direct summation.

    Uses the same pair terms as ``compute_forces`` but evaluated over every
    other particle, with the kernels' own cutoff deciding who contributes.
    """
    positions = np.asarray(positions, dtype=np.float64)
    velocities = np.asarray(velocities, dtype=np.float64)
    density = np.asarray(density, dtype=np.float64)
    pressure = np.asarray(pressure, dtype=np.float64)

    spiky = SpikyKernel(smoothing_radius)
    visc = ViscosityKernel(smoothing_radius)
    n_particles = positions.shape[0]
    forces = np.zeros((n_particles, 3), dtype=np.float64)

    for i in range(n_particles):
        others = np.arange(n_particles) != i
        d = positions[others] - positions[i]
        r = np.linalg.norm(d, axis=1)

        # Coincident pairs push along +x
        unit = np.tile(np.array([1.0, 0.0, 0.0]), (len(r), 1))
        nonzero = r > 0.0
        unit[nonzero] = d[nonzero] / r[nonzero, np.newaxis]

        rho_j = density[others] + density_epsilon
        w_press = mass * (pressure[i] + pressure[others]) / (2.0 * rho_j) * spiky.gradient_weight(r)
        w_visc = viscosity * mass * visc.laplacian(r) / rho_j

        forces[i] = (
            -np.sum(unit * w_press[:, np.newaxis], axis=0)
            + np.sum((velocities[others] - velocities[i]) * w_visc[:, np.newaxis], axis=0)
        )

    return forces.astype(np.float32)
