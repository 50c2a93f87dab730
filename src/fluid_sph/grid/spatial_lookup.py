"""
Spatial lookup: particles sorted by cell key plus a per-cell range index.

Rebuilt from scratch every step in three barrier-separated stages:

    positions -> assign_cell_keys -> RadixSorter -> build_lookup_index

After a rebuild, entries sharing a cell key are contiguous in
``sorted_keys``/``sorted_values`` and ``cell_start[k]:cell_end[k]`` is the
run of cell ``k``. Both range arrays are zeroed before each build, so a cell
that holds no particle this step reads as the empty range ``0:0`` rather
than a stale offset into another cell's run.
"""

import time as time_module
from typing import Dict

import numpy as np
import numpy.typing as npt
from numba import njit, prange

from fluid_sph.grid.cell_keys import assign_cell_keys, total_cell_count
from fluid_sph.grid.radix_sort import RadixSorter, SortBuffers

NDArrayFloat = npt.NDArray[np.float32]
NDArrayUInt = npt.NDArray[np.uint32]


@njit(parallel=True)
def _build_lookup_index_numba(sorted_keys, cell_start, cell_end):
    n = sorted_keys.shape[0]
    for i in prange(n):
        key = np.int64(sorted_keys[i])
        if i == 0 or sorted_keys[i] != sorted_keys[i - 1]:
            cell_start[key] = i
        if i == n - 1 or sorted_keys[i] != sorted_keys[i + 1]:
            cell_end[key] = i + 1


def build_lookup_index(
    sorted_keys: NDArrayUInt,
    n_cells: int,
    cell_start: npt.NDArray[np.int64] = None,
    cell_end: npt.NDArray[np.int64] = None,
):
    """
    Record where each occupied cell's run begins and ends in the sorted keys.

    Parameters
    ----------
    sorted_keys : NDArray[uint32], shape (N,)
        Keys in non-decreasing order, all below ``n_cells``.
    n_cells : int
        Total number of grid cells.
    cell_start, cell_end : NDArray[int64], shape (n_cells,), optional
        Buffers to reuse. They are reset to zero before the build.

    Returns
    -------
    cell_start : NDArray[int64], shape (n_cells,)
        Index of the first entry of each occupied cell (the lookup index).
    cell_end : NDArray[int64], shape (n_cells,)
        One past the last entry of each occupied cell. Empty cells have
        ``cell_start == cell_end == 0``.
    """
    if cell_start is None:
        cell_start = np.zeros(n_cells, dtype=np.int64)
    else:
        cell_start.fill(0)
    if cell_end is None:
        cell_end = np.zeros(n_cells, dtype=np.int64)
    else:
        cell_end.fill(0)

    if sorted_keys.shape[0] > 0:
        _build_lookup_index_numba(sorted_keys, cell_start, cell_end)
    return cell_start, cell_end


class SpatialLookup:
    """
    Uniform-grid spatial hash over a fixed number of particles.

    Parameters
    ----------
    n_particles : int
        Number of particles indexed every step.
    smoothing_radius : float
        Cell edge length h.
    cell_count : array-like of int, shape (3,)
        Cells per axis.
    sorter : RadixSorter, optional
        Sorter to use; defaults to 8-bit digits over 32-bit keys.

    Attributes
    ----------
    particle_keys : NDArray[uint32], shape (N,)
        Cell key of each particle in particle order (valid after ``update``).
    sorted_keys : NDArray[uint32], shape (N,)
        Cell keys in ascending order (valid after ``update``).
    sorted_values : NDArray[uint32], shape (N,)
        Particle indices in the same order as ``sorted_keys``.
    cell_start, cell_end : NDArray[int64], shape (n_cells,)
        Per-cell run bounds into the sorted arrays.
    timings : Dict[str, float]
        Wall-clock seconds of the last update, per stage.
    """

    def __init__(self, n_particles: int, smoothing_radius: float, cell_count,
                 sorter: RadixSorter = None):
        self.n_particles = int(n_particles)
        self.smoothing_radius = float(smoothing_radius)
        self.cell_count = np.asarray(cell_count, dtype=np.int64)
        self.n_cells = total_cell_count(self.cell_count)
        self.sorter = sorter or RadixSorter()

        max_key = self.n_cells - 1
        if max_key >= (1 << self.sorter.key_bits):
            raise ValueError(
                f"grid of {self.n_cells} cells needs keys wider than "
                f"{self.sorter.key_bits} bits"
            )

        # Per-step arena: unsorted keys, ping-pong sort buffers, range index
        self._unsorted_keys = np.zeros(self.n_particles, dtype=np.uint32)
        self._unsorted_values = np.zeros(self.n_particles, dtype=np.uint32)
        self.buffers = SortBuffers.allocate(self.n_particles)
        self.cell_start = np.zeros(self.n_cells, dtype=np.int64)
        self.cell_end = np.zeros(self.n_cells, dtype=np.int64)

        self.timings: Dict[str, float] = {
            'cell_keys': 0.0,
            'sort': 0.0,
            'lookup_index': 0.0,
        }

    @property
    def sorted_keys(self) -> NDArrayUInt:
        return self.buffers.keys

    @property
    def sorted_values(self) -> NDArrayUInt:
        return self.buffers.values

    @property
    def particle_keys(self) -> NDArrayUInt:
        """Cell key of each particle, indexed by particle (unsorted)."""
        return self._unsorted_keys

    @property
    def lookup_index(self) -> npt.NDArray[np.int64]:
        """First sorted position of each occupied cell."""
        return self.cell_start

    def update(self, positions: NDArrayFloat) -> None:
        """Rebuild keys, sorted order and range index from current positions."""
        if positions.shape[0] != self.n_particles:
            raise ValueError(
                f"expected {self.n_particles} positions, got {positions.shape[0]}"
            )

        t0 = time_module.time()
        assign_cell_keys(
            positions,
            self.smoothing_radius,
            self.cell_count,
            keys=self._unsorted_keys,
            values=self._unsorted_values,
        )
        self.timings['cell_keys'] = time_module.time() - t0

        t0 = time_module.time()
        self.buffers.load(self._unsorted_keys, self._unsorted_values)
        self.sorter.sort_buffers(self.buffers)
        self.timings['sort'] = time_module.time() - t0

        t0 = time_module.time()
        build_lookup_index(
            self.buffers.keys,
            self.n_cells,
            cell_start=self.cell_start,
            cell_end=self.cell_end,
        )
        self.timings['lookup_index'] = time_module.time() - t0

    def cell_range(self, key: int):
        """(start, end) of cell ``key`` in the sorted arrays; empty cells give start == end."""
        return int(self.cell_start[key]), int(self.cell_end[key])

    def particles_in_cell(self, key: int) -> NDArrayUInt:
        """Indices of the particles in cell ``key`` (empty array if unoccupied)."""
        start, end = self.cell_range(key)
        return self.buffers.values[start:end]
