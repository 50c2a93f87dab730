"""Tests for cell coordinate and key assignment."""

import numpy as np
import pytest

from fluid_sph.grid import (
    assign_cell_keys,
    grid_shape_for_box,
    total_cell_count,
)


def _lattice_centres(n, h):
    """Cell-centre positions of an n×n×n grid in x-major order."""
    i, j, k = np.meshgrid(np.arange(n), np.arange(n), np.arange(n), indexing='ij')
    coords = np.stack([i.ravel(), j.ravel(), k.ravel()], axis=1)
    return ((coords + 0.5) * h).astype(np.float32)


def test_lattice_keys_equal_indices():
    """Particle at lattice point (i, j, k) of a 3×3×3 grid gets key 9i + 3j + k."""
    positions = _lattice_centres(3, 1.0)
    keys, values = assign_cell_keys(positions, 1.0, (3, 3, 3))

    np.testing.assert_array_equal(keys, np.arange(27, dtype=np.uint32))
    np.testing.assert_array_equal(values, np.arange(27, dtype=np.uint32))


def test_keys_are_x_major():
    positions = np.array(
        [
            [1.5, 0.5, 0.5],  # (1, 0, 0)
            [0.5, 1.5, 0.5],  # (0, 1, 0)
            [0.5, 0.5, 1.5],  # (0, 0, 1)
        ],
        dtype=np.float32,
    )
    keys, _ = assign_cell_keys(positions, 1.0, (4, 5, 6))
    np.testing.assert_array_equal(keys, [30, 6, 1])


def test_non_cubic_grid_keys_in_range():
    rng = np.random.default_rng(0)
    cell_count = (7, 3, 5)
    positions = (rng.random((1000, 3)) * np.array([0.7, 0.3, 0.5])).astype(np.float32)

    keys, values = assign_cell_keys(positions, 0.1, cell_count)

    assert keys.dtype == np.uint32
    assert keys.max() < total_cell_count(cell_count)
    np.testing.assert_array_equal(values, np.arange(1000))

    cells = np.floor(positions.astype(np.float64) / np.float32(0.1)).astype(np.int64)
    cells = np.minimum(cells, np.array(cell_count) - 1)
    expected = (cells[:, 0] * cell_count[1] + cells[:, 1]) * cell_count[2] + cells[:, 2]
    # Only float rounding at exact cell faces could differ
    assert np.mean(keys == expected) > 0.99


def test_out_of_box_coordinates_are_clamped():
    positions = np.array([[-0.1, 5.0, 1.5]], dtype=np.float32)
    keys, _ = assign_cell_keys(positions, 1.0, (3, 3, 3))
    # (0, 2, 1)
    assert keys[0] == 7


def test_keys_written_into_given_buffers():
    positions = _lattice_centres(2, 0.5)
    keys = np.full(8, 99, dtype=np.uint32)
    values = np.full(8, 99, dtype=np.uint32)

    out_keys, out_values = assign_cell_keys(positions, 0.5, (2, 2, 2), keys=keys, values=values)

    assert out_keys is keys
    assert out_values is values
    np.testing.assert_array_equal(keys, np.arange(8))


def test_grid_shape_for_box():
    np.testing.assert_array_equal(grid_shape_for_box((3.0, 2.0, 1.0), 0.15), [20, 14, 7])
    np.testing.assert_array_equal(grid_shape_for_box((1.0, 1.0, 1.0), 0.3), [4, 4, 4])
    # Never fewer than one cell
    np.testing.assert_array_equal(grid_shape_for_box((0.0, 1.0, 1.0), 1.0), [1, 1, 1])


def test_total_cell_count():
    assert total_cell_count((20, 14, 7)) == 1960
    assert total_cell_count(np.array([1, 1, 1])) == 1


@pytest.mark.parametrize("h", [0.04, 0.15, 0.5])
def test_every_key_below_cell_total(h):
    rng = np.random.default_rng(1)
    cell_count = grid_shape_for_box((1.0, 1.0, 1.0), h)
    positions = rng.random((500, 3)).astype(np.float32)
    keys, _ = assign_cell_keys(positions, h, cell_count)
    assert int(keys.max()) < total_cell_count(cell_count)
