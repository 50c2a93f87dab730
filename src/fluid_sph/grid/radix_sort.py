"""
Stable least-significant-digit radix sort of (key, value) pairs.

Each digit pass runs three stages separated by barriers:

1. Histogram of the current digit (group-local counters merged globally).
2. Exclusive scan of the bin counts into bin start offsets.
3. Scatter of every pair to ``offset[bin]`` followed by a post-increment of
   that running offset.

Stability comes from the scatter: each workgroup starts from
``bin_offset + count of the same bin in all earlier groups`` and walks its
own elements in input order, so equal digits never change relative order.
Passes ping-pong between the two halves of a ``SortBuffers`` arena.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import numpy.typing as npt
from numba import njit, prange

from fluid_sph.grid.prefix_sum import (
    SCAN_BLOCK_SIZE,
    check_scan_block_size,
    digit_histogram,
    exclusive_scan,
)

NDArrayUInt = npt.NDArray[np.uint32]


@dataclass
class SortBuffers:
    """
    Double-buffered key/value storage reused across steps.

    ``keys``/``values`` always hold the input of the next pass (and, after
    the last pass, the sorted output); ``keys_alt``/``values_alt`` receive
    the scatter of the current pass.
    """

    keys: NDArrayUInt
    values: NDArrayUInt
    keys_alt: NDArrayUInt
    values_alt: NDArrayUInt

    @classmethod
    def allocate(cls, n: int) -> "SortBuffers":
        return cls(
            keys=np.zeros(n, dtype=np.uint32),
            values=np.zeros(n, dtype=np.uint32),
            keys_alt=np.zeros(n, dtype=np.uint32),
            values_alt=np.zeros(n, dtype=np.uint32),
        )

    @property
    def size(self) -> int:
        return self.keys.shape[0]

    def load(self, keys: NDArrayUInt, values: NDArrayUInt) -> None:
        """Copy unsorted pairs into the front buffers."""
        self.keys[:] = keys
        self.values[:] = values

    def swap(self) -> None:
        """Make the just-written buffers the input of the next pass."""
        self.keys, self.keys_alt = self.keys_alt, self.keys
        self.values, self.values_alt = self.values_alt, self.values


@njit(parallel=True)
def _scatter_numba(keys_in, values_in, keys_out, values_out, shift, mask,
                   workgroup_size, group_offsets):
    n = keys_in.shape[0]
    n_groups = group_offsets.shape[0]
    for g in prange(n_groups):
        start = g * workgroup_size
        end = min(start + workgroup_size, n)
        for i in range(start, end):
            digit = (np.int64(keys_in[i]) >> shift) & mask
            slot = group_offsets[g, digit]
            group_offsets[g, digit] = slot + 1
            keys_out[slot] = keys_in[i]
            values_out[slot] = values_in[i]


def scatter(
    keys_in: NDArrayUInt,
    values_in: NDArrayUInt,
    keys_out: NDArrayUInt,
    values_out: NDArrayUInt,
    shift: int,
    bin_offsets: npt.NDArray[np.int64],
    group_counts: npt.NDArray[np.int64],
    radix_bits: int = 8,
    workgroup_size: int = 256,
) -> None:
    """
    Write every pair to its globally ordered slot for one digit.

    Parameters
    ----------
    keys_in, values_in : NDArray[uint32], shape (N,)
        Pass input.
    keys_out, values_out : NDArray[uint32], shape (N,)
        Pass output, fully overwritten.
    shift : int
        Bit offset of the digit.
    bin_offsets : NDArray[int64], shape (n_bins,)
        Exclusive scan of the global bin counts.
    group_counts : NDArray[int64], shape (n_groups, n_bins)
        Per-group bin counts from the histogram stage.
    radix_bits, workgroup_size : int
        Must match the histogram stage.
    """
    if keys_in.shape[0] == 0:
        return

    # Starting slot of each (group, bin): global bin start plus the count
    # of that bin in all earlier groups
    group_offsets = bin_offsets[np.newaxis, :] + (
        np.cumsum(group_counts, axis=0) - group_counts
    )

    _scatter_numba(
        keys_in,
        values_in,
        keys_out,
        values_out,
        np.int64(shift),
        np.int64((1 << radix_bits) - 1),
        np.int64(workgroup_size),
        np.ascontiguousarray(group_offsets, dtype=np.int64),
    )


class RadixSorter:
    """
    LSD radix sorter for 32-bit cell keys paired with particle indices.

    Attributes
    ----------
    radix_bits : int
        Digit width per pass (8 in production, giving 256 bins).
    key_bits : int
        Width of the keys; ``ceil(key_bits / radix_bits)`` passes are run.
    workgroup_size : int
        Elements per group in the histogram and scatter stages.
    scan_block_size : int
        Elements per block in the bin-offset scan.

    Examples
    --------
    >>> sorter = RadixSorter()
    >>> keys, values = sorter.sort(np.array([3, 1, 2], dtype=np.uint32),
    ...                            np.array([0, 1, 2], dtype=np.uint32))
    >>> keys.tolist(), values.tolist()
    ([1, 2, 3], [1, 2, 0])
    """

    def __init__(
        self,
        radix_bits: int = 8,
        key_bits: int = 32,
        workgroup_size: int = 256,
        scan_block_size: int = SCAN_BLOCK_SIZE,
    ):
        if not 1 <= radix_bits <= 16:
            raise ValueError(f"radix_bits must be in [1, 16], got {radix_bits}")
        if not 1 <= key_bits <= 32:
            raise ValueError(f"key_bits must be in [1, 32], got {key_bits}")
        if workgroup_size <= 0:
            raise ValueError(f"workgroup_size must be positive, got {workgroup_size}")
        check_scan_block_size(scan_block_size)

        self.radix_bits = radix_bits
        self.key_bits = key_bits
        self.workgroup_size = workgroup_size
        self.scan_block_size = scan_block_size

    @property
    def n_bins(self) -> int:
        return 1 << self.radix_bits

    @property
    def pass_count(self) -> int:
        return -(-self.key_bits // self.radix_bits)

    def sort_pass(self, buffers: SortBuffers, pass_index: int) -> None:
        """Run one digit pass from the front buffers into the back buffers, then swap."""
        shift = pass_index * self.radix_bits

        bin_counts, group_counts = digit_histogram(
            buffers.keys,
            shift,
            radix_bits=self.radix_bits,
            workgroup_size=self.workgroup_size,
        )
        bin_offsets = exclusive_scan(bin_counts, self.scan_block_size)
        scatter(
            buffers.keys,
            buffers.values,
            buffers.keys_alt,
            buffers.values_alt,
            shift,
            bin_offsets,
            group_counts,
            radix_bits=self.radix_bits,
            workgroup_size=self.workgroup_size,
        )
        buffers.swap()

    def sort_buffers(self, buffers: SortBuffers) -> None:
        """Sort the pairs held in ``buffers`` in place (result in the front buffers)."""
        for pass_index in range(self.pass_count):
            self.sort_pass(buffers, pass_index)

    def sort(
        self,
        keys,
        values,
        buffers: Optional[SortBuffers] = None,
    ) -> Tuple[NDArrayUInt, NDArrayUInt]:
        """
        Sort (key, value) pairs by ascending key, preserving the order of equal keys.

        Parameters
        ----------
        keys : array-like of int, shape (N,)
            Non-negative keys below ``2**key_bits``.
        values : array-like of int, shape (N,)
            Payload carried with each key.
        buffers : SortBuffers, optional
            Preallocated arena of size N. A fresh one is used when omitted.

        Returns
        -------
        sorted_keys, sorted_values : NDArray[uint32], shape (N,)
            Views into the front buffers of the arena.

        Raises
        ------
        ValueError
            If the arrays differ in length, or a key is negative or wider than
            ``key_bits``.
        """
        keys = np.asarray(keys)
        values = np.asarray(values)
        if keys.shape != values.shape or keys.ndim != 1:
            raise ValueError(
                f"keys and values must be 1-D arrays of equal length, "
                f"got {keys.shape} and {values.shape}"
            )
        if keys.size > 0:
            if np.min(keys) < 0:
                raise ValueError("radix sort keys must be non-negative")
            if int(np.max(keys)) >= (1 << self.key_bits):
                raise ValueError(
                    f"key {int(np.max(keys))} does not fit in {self.key_bits} bits"
                )

        if buffers is None:
            buffers = SortBuffers.allocate(keys.shape[0])
        elif buffers.size != keys.shape[0]:
            raise ValueError(
                f"buffer size {buffers.size} does not match key count {keys.shape[0]}"
            )

        buffers.load(keys.astype(np.uint32), values.astype(np.uint32))
        self.sort_buffers(buffers)
        return buffers.keys, buffers.values
