"""Brute-force neighbour search and its agreement with the 27-cell walk."""

import numpy as np

from fluid_sph.grid import SpatialLookup, decode_cell_key, linear_cell_key
from fluid_sph.sph.neighbours_cpu import (
    find_neighbours_bruteforce,
    compute_density_bruteforce,
)
from fluid_sph.sph import Poly6Kernel


def _grid_candidates(lookup, i):
    """Every particle stored in the 27 cells around particle i."""
    cell_count = lookup.cell_count
    cx, cy, cz = decode_cell_key(lookup.particle_keys[i], cell_count)
    found = []
    for ox in (-1, 0, 1):
        for oy in (-1, 0, 1):
            for oz in (-1, 0, 1):
                nx, ny, nz = cx + ox, cy + oy, cz + oz
                if not (0 <= nx < cell_count[0] and 0 <= ny < cell_count[1]
                        and 0 <= nz < cell_count[2]):
                    continue
                key = linear_cell_key(nx, ny, nz, cell_count)
                found.extend(lookup.particles_in_cell(key).tolist())
    return set(found)


def test_bruteforce_neighbours_exclude_self_and_boundary():
    positions = np.array(
        [
            [0.0, 0.0, 0.0],
            [0.5, 0.0, 0.0],
            [1.0, 0.0, 0.0],
            [0.0, 0.3, 0.0],
        ],
        dtype=np.float32,
    )

    neighbours = find_neighbours_bruteforce(positions, 0.5)

    # 0-1 are exactly h apart and do not count
    assert neighbours[0].tolist() == [3]
    assert neighbours[1].tolist() == []
    assert neighbours[2].tolist() == []
    assert neighbours[3].tolist() == [0]


def test_27_cell_walk_contains_every_neighbour():
    rng = np.random.default_rng(7)
    h = 0.1
    positions = rng.random((500, 3)).astype(np.float32)
    lookup = SpatialLookup(500, h, (10, 10, 10))
    lookup.update(positions)

    neighbours = find_neighbours_bruteforce(positions, h)

    for i in range(0, 500, 11):
        candidates = _grid_candidates(lookup, i)
        assert i in candidates
        assert set(neighbours[i].tolist()) <= candidates


def test_bruteforce_density_isolated_particles():
    positions = np.array([[0.0, 0.0, 0.0], [5.0, 5.0, 5.0]], dtype=np.float32)
    density = compute_density_bruteforce(positions, 2.0, 1.0)
    np.testing.assert_allclose(density, Poly6Kernel(1.0).self_density(2.0), rtol=1e-6)
