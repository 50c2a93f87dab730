"""Tests for lattice initial conditions and ghost layers."""

import numpy as np
import pytest

from fluid_sph import FluidConfig
from fluid_sph.ICs import LatticeBlock, boundary_layer, combine_with_ghosts
from fluid_sph.grid import assign_cell_keys


def test_lattice_count_and_bounds():
    block = LatticeBlock(shape=(4, 5, 6), spacing=0.1, origin=(0.2, 0.3, 0.4), mass=0.5)
    particles = block.generate()

    assert particles.n_particles == 120
    assert particles.mass == 0.5
    assert particles.ghost_count == 0
    lower, upper = block.extent()
    np.testing.assert_allclose(particles.positions.min(axis=0), lower, rtol=1e-6)
    np.testing.assert_allclose(particles.positions.max(axis=0), upper, rtol=1e-6)


def test_lattice_order_matches_cell_keys():
    """Unit lattice at cell centres: index i has cell key i."""
    block = LatticeBlock(shape=(3, 3, 3), spacing=1.0, origin=(0.5, 0.5, 0.5))
    keys, _ = assign_cell_keys(block.positions(), 1.0, (3, 3, 3))
    np.testing.assert_array_equal(keys, np.arange(27))


def test_initial_velocity():
    particles = LatticeBlock(shape=(2, 2, 2), velocity=(1.0, 0.0, -1.0)).generate()
    np.testing.assert_array_equal(particles.velocities, np.tile([1.0, 0.0, -1.0], (8, 1)))


def test_jitter_is_seeded_and_bounded():
    kwargs = dict(shape=(5, 5, 5), spacing=0.1, origin=(0.5, 0.5, 0.5), jitter=0.2)
    a = LatticeBlock(random_seed=1, **kwargs).positions()
    b = LatticeBlock(random_seed=1, **kwargs).positions()
    c = LatticeBlock(random_seed=2, **kwargs).positions()
    regular = LatticeBlock(**{**kwargs, 'jitter': 0.0}).positions()

    np.testing.assert_array_equal(a, b)
    assert not np.array_equal(a, c)
    assert np.abs(a - regular).max() <= 0.02 + 1e-6


def test_default_block_fits_default_box():
    block = LatticeBlock()
    lower, upper = block.extent()
    assert block.n_particles == 40**3
    assert np.all(lower >= 0.15)
    assert np.all(upper <= np.array([3.0, 2.0, 1.0]) - 0.15)


def test_invalid_lattice():
    with pytest.raises(ValueError, match="shape"):
        LatticeBlock(shape=(0, 1, 1))
    with pytest.raises(ValueError, match="spacing"):
        LatticeBlock(spacing=0.0)
    with pytest.raises(ValueError, match="jitter"):
        LatticeBlock(jitter=0.5)


def test_boundary_layer_floor():
    floor = boundary_layer((1.0, 1.0, 1.0), spacing=0.1, margin=0.1, layers=2)

    assert floor.shape == (9 * 2 * 9, 3)
    np.testing.assert_allclose(np.unique(floor[:, 1]), [0.1, 0.2], rtol=1e-6)
    assert floor[:, 0].min() == pytest.approx(0.1)
    assert floor[:, 0].max() == pytest.approx(0.9)


def test_combine_with_ghosts():
    fluid = LatticeBlock(shape=(2, 2, 2), spacing=0.1, origin=(0.4, 0.4, 0.4),
                         velocity=(0.0, -1.0, 0.0), mass=0.3).generate()
    floor = boundary_layer((1.0, 1.0, 1.0), spacing=0.2, margin=0.1)

    particles = combine_with_ghosts(floor, fluid)

    assert particles.ghost_count == len(floor)
    assert particles.n_particles == len(floor) + 8
    assert particles.mass == 0.3
    np.testing.assert_array_equal(particles.positions[:len(floor)], floor)
    np.testing.assert_array_equal(particles.velocities[:len(floor)], 0.0)
    np.testing.assert_array_equal(particles.positions[len(floor):], fluid.positions)


def test_from_config_takes_mass_and_seed():
    config = FluidConfig(mass=0.07, random_seed=11)
    block = LatticeBlock.from_config(config, shape=(3, 3, 3), spacing=0.1, jitter=0.2)

    assert block.mass == 0.07
    assert block.random_seed == 11
    np.testing.assert_array_equal(
        block.positions(),
        LatticeBlock(shape=(3, 3, 3), spacing=0.1, jitter=0.2, random_seed=11).positions(),
    )


def test_from_config_seed_changes_jitter():
    a = LatticeBlock.from_config(FluidConfig(random_seed=1), shape=(3, 3, 3), jitter=0.2)
    b = LatticeBlock.from_config(FluidConfig(random_seed=2), shape=(3, 3, 3), jitter=0.2)
    assert not np.array_equal(a.positions(), b.positions())


def test_from_config_keyword_overrides():
    block = LatticeBlock.from_config(FluidConfig(mass=0.07), shape=(2, 2, 2), mass=0.3)
    assert block.mass == 0.3
