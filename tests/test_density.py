"""Tests for the grid-accelerated density summation."""

import numpy as np
import pytest

from fluid_sph.grid import SpatialLookup, grid_shape_for_box
from fluid_sph.sph import Poly6Kernel, compute_density, compute_density_bruteforce


def _density(positions, h, cell_count, mass=1.0, **kwargs):
    lookup = SpatialLookup(len(positions), h, cell_count)
    lookup.update(positions)
    return compute_density(positions, lookup, mass, **kwargs)


def test_matches_bruteforce():
    rng = np.random.default_rng(0)
    h = 0.1
    mass = 0.02
    positions = rng.random((600, 3)).astype(np.float32)

    density = _density(positions, h, grid_shape_for_box((1.0, 1.0, 1.0), h), mass)
    reference = compute_density_bruteforce(positions, mass, h)

    np.testing.assert_allclose(density, reference, rtol=1e-4)


def test_matches_bruteforce_non_cubic_grid():
    rng = np.random.default_rng(1)
    h = 0.15
    extent = np.array([3.0, 2.0, 1.0])
    positions = (rng.random((800, 3)) * extent).astype(np.float32)

    density = _density(positions, h, grid_shape_for_box(extent, h), 0.12)
    reference = compute_density_bruteforce(positions, 0.12, h)

    np.testing.assert_allclose(density, reference, rtol=1e-4)


def test_density_non_negative_and_includes_self():
    rng = np.random.default_rng(2)
    h = 0.2
    positions = rng.random((300, 3)).astype(np.float32)

    density = _density(positions, h, (5, 5, 5), 0.5)

    assert np.all(density >= 0.0)
    assert np.all(density >= Poly6Kernel(h).self_density(0.5) * (1.0 - 1e-5))


def test_lone_particle_density():
    """A particle with no neighbour within h has density m × C × h⁶."""
    rng = np.random.default_rng(3)
    h = 0.04
    mass = 0.12
    # 999 particles packed into the first 3×3×3 cells, one far away
    cluster = rng.random((999, 3)) * (3 * h)
    lone = np.array([[0.35, 0.35, 0.35]])
    positions = np.vstack([cluster, lone]).astype(np.float32)

    density = _density(positions, h, (10, 10, 10), mass)

    assert density[-1] == pytest.approx(Poly6Kernel(h).self_density(mass), rel=1e-5)


def test_particles_exactly_h_apart_do_not_interact():
    h = 0.5
    positions = np.array([[0.25, 0.25, 0.25], [0.75, 0.25, 0.25]], dtype=np.float32)

    density = _density(positions, h, (2, 1, 1))

    expected = Poly6Kernel(h).self_density(1.0)
    np.testing.assert_allclose(density, [expected, expected], rtol=1e-6)


def test_neighbour_in_adjacent_cell_counted():
    h = 0.5
    positions = np.array([[0.45, 0.25, 0.25], [0.55, 0.25, 0.25]], dtype=np.float32)

    density = _density(positions, h, (2, 1, 1))

    kernel = Poly6Kernel(h)
    pair = kernel.kernel(np.float64(np.float32(0.55)) - np.float64(np.float32(0.45)))
    np.testing.assert_allclose(density, kernel.self_density(1.0) + pair, rtol=1e-5)


def test_excluded_particles_keep_previous_density():
    rng = np.random.default_rng(4)
    positions = rng.random((50, 3)).astype(np.float32)
    density = np.full(50, 7.0, dtype=np.float32)

    _density(positions, 0.25, (4, 4, 4), density=density, first_particle=5)

    np.testing.assert_array_equal(density[:5], 7.0)
    assert np.all(density[5:] != 7.0)


def test_empty_cells_do_not_leak_neighbours():
    """Sparse particles separated by empty cells see only themselves."""
    h = 0.1
    positions = np.array(
        [[0.05, 0.05, 0.05], [0.55, 0.55, 0.55], [0.95, 0.95, 0.95]], dtype=np.float32
    )
    density = _density(positions, h, (10, 10, 10))
    np.testing.assert_allclose(density, Poly6Kernel(h).self_density(1.0), rtol=1e-6)
