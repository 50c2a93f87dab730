"""
Cell key assignment for the uniform spatial hash.

Every particle is mapped to the integer cell floor(x / h) of a uniform,
axis-aligned grid whose cell edge equals the smoothing radius h, and that
cell is linearised into a single key:

    key = (cx * n_y + cy) * n_z + cz

so that the 27-cell neighbourhood of any particle is guaranteed to contain
every particle within h of it.

The assignment is a per-particle parallel map: worker ``gid`` writes only
``keys[gid]`` and ``values[gid]``.
"""

import numpy as np
import numpy.typing as npt
from numba import njit, prange

NDArrayFloat = npt.NDArray[np.float32]
NDArrayUInt = npt.NDArray[np.uint32]


@njit(inline='always')
def cell_coordinate(x, smoothing_radius, n_cells):
    """Grid coordinate of ``x`` along one axis, clamped to [0, n_cells - 1]."""
    c = int(np.floor(x / smoothing_radius))
    if c < 0:
        return 0
    if c >= n_cells:
        return n_cells - 1
    return c


@njit(inline='always')
def linear_cell_key(cx, cy, cz, cell_count):
    """Row-major (x-major) linearisation of a cell coordinate."""
    return (cx * cell_count[1] + cy) * cell_count[2] + cz


@njit(inline='always')
def decode_cell_key(key, cell_count):
    """Inverse of ``linear_cell_key``: (cx, cy, cz) of a key."""
    k = np.int64(key)
    cz = k % cell_count[2]
    k = k // cell_count[2]
    cy = k % cell_count[1]
    cx = k // cell_count[1]
    return cx, cy, cz


@njit(parallel=True, fastmath=True)
def _assign_cell_keys_numba(positions, smoothing_radius, cell_count, keys, values):
    n = positions.shape[0]
    for gid in prange(n):
        cx = cell_coordinate(positions[gid, 0], smoothing_radius, cell_count[0])
        cy = cell_coordinate(positions[gid, 1], smoothing_radius, cell_count[1])
        cz = cell_coordinate(positions[gid, 2], smoothing_radius, cell_count[2])
        keys[gid] = linear_cell_key(cx, cy, cz, cell_count)
        values[gid] = gid


def grid_shape_for_box(box_extent, smoothing_radius: float) -> npt.NDArray[np.int64]:
    """
    Number of cells per axis needed to tile a box with cells of edge h.

    Parameters
    ----------
    box_extent : array-like, shape (3,)
        Box size along x, y, z.
    smoothing_radius : float
        Cell edge length.

    Returns
    -------
    cell_count : NDArray[int64], shape (3,)
        ``ceil(box_extent / h)``, at least 1 per axis.
    """
    extent = np.asarray(box_extent, dtype=np.float64)
    counts = np.ceil(extent / float(smoothing_radius)).astype(np.int64)
    return np.maximum(counts, 1)


def total_cell_count(cell_count) -> int:
    """Total number of cells, i.e. one past the largest possible key."""
    cell_count = np.asarray(cell_count, dtype=np.int64)
    return int(cell_count[0] * cell_count[1] * cell_count[2])


def assign_cell_keys(
    positions: NDArrayFloat,
    smoothing_radius: float,
    cell_count,
    keys: NDArrayUInt = None,
    values: NDArrayUInt = None,
):
    """
    Compute the (unsorted) cell key of every particle.

    Parameters
    ----------
    positions : NDArrayFloat, shape (N, 3)
        Particle positions. Expected inside [0, cell_count * h); coordinates
        outside are clamped to the border cells.
    smoothing_radius : float
        Smoothing radius h, which is also the cell edge.
    cell_count : array-like of int, shape (3,)
        Cells per axis.
    keys, values : NDArray[uint32], shape (N,), optional
        Output buffers to fill in place. Allocated when omitted.

    Returns
    -------
    keys : NDArray[uint32], shape (N,)
        Linear cell key per particle.
    values : NDArray[uint32], shape (N,)
        Particle index paired with each key (``values[i] == i``).
    """
    n = positions.shape[0]
    if keys is None:
        keys = np.empty(n, dtype=np.uint32)
    if values is None:
        values = np.empty(n, dtype=np.uint32)

    _assign_cell_keys_numba(
        np.ascontiguousarray(positions, dtype=np.float32),
        np.float32(smoothing_radius),
        np.asarray(cell_count, dtype=np.int64),
        keys,
        values,
    )
    return keys, values
