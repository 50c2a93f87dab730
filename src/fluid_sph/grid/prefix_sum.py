"""
Digit histogram and exclusive prefix sum for the radix sort.

Both primitives are written in the workgroup style of a compute dispatch:

- ``digit_histogram`` splits the input into groups of ``workgroup_size``
  consecutive elements. Each group fills its own row of counters (the
  group-local counters) and the rows are merged into the global bin counts
  once every group has finished.

- ``exclusive_scan`` runs the balanced-tree (up-sweep / down-sweep) scan of
  Blelloch (1990) over blocks of ``2 * scan_workers`` elements. Every level
  of the tree is one lock-step pass over the active workers, and the end of
  a level is the barrier. Inputs longer than one block use a second level:
  each block is scanned independently, the block totals are scanned
  recursively, and the scanned totals are broadcast-added back.

References
----------
- Blelloch, G. E. (1990), "Prefix sums and their applications",
  CMU-CS-90-190.
- Harris, M., Sengupta, S., Owens, J. D. (2007), "Parallel prefix sum
  (scan) with CUDA", GPU Gems 3, ch. 39.
"""

import numpy as np
import numpy.typing as npt
from numba import njit, prange

NDArrayInt = npt.NDArray[np.int64]

# One scan block: 128 workers, two elements each
SCAN_WORKERS = 128
SCAN_BLOCK_SIZE = 2 * SCAN_WORKERS


def _is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def check_scan_block_size(block_size: int) -> None:
    """Raise ValueError unless ``block_size`` is a power of two of at least 2."""
    if block_size < 2 or not _is_power_of_two(block_size):
        raise ValueError(
            f"block_size must be a power of two of at least 2, got {block_size}"
        )


@njit(parallel=True)
def _group_histogram_numba(keys, shift, mask, workgroup_size, group_counts):
    n = keys.shape[0]
    n_groups = group_counts.shape[0]
    for g in prange(n_groups):
        start = g * workgroup_size
        end = min(start + workgroup_size, n)
        for i in range(start, end):
            digit = (np.int64(keys[i]) >> shift) & mask
            group_counts[g, digit] += 1


def digit_histogram(
    keys: npt.NDArray,
    shift: int,
    radix_bits: int = 8,
    workgroup_size: int = 256,
):
    """
    Count how many keys fall into each bin of one radix digit.

    Parameters
    ----------
    keys : NDArray[uint32], shape (N,)
        Keys to bin.
    shift : int
        Bit offset of the digit (``pass_index * radix_bits``).
    radix_bits : int, optional
        Digit width in bits (default 8, i.e. 256 bins).
    workgroup_size : int, optional
        Number of consecutive elements handled by one group (default 256).

    Returns
    -------
    bin_counts : NDArray[int64], shape (2**radix_bits,)
        Global count per bin.
    group_counts : NDArray[int64], shape (n_groups, 2**radix_bits)
        Per-group counts, needed by the stable scatter.
    """
    n_bins = 1 << radix_bits
    n = keys.shape[0]
    n_groups = (n + workgroup_size - 1) // workgroup_size
    group_counts = np.zeros((n_groups, n_bins), dtype=np.int64)

    if n > 0:
        _group_histogram_numba(
            keys,
            np.int64(shift),
            np.int64(n_bins - 1),
            np.int64(workgroup_size),
            group_counts,
        )

    # Merge group-local counters into the global bins
    bin_counts = group_counts.sum(axis=0)
    return bin_counts, group_counts


@njit
def _block_scan(values, start, length, out, width):
    """Exclusive tree scan of values[start:start+length]; returns the block total."""
    temp = np.zeros(width, dtype=np.int64)
    for i in range(length):
        temp[i] = values[start + i]

    # Up-sweep (reduce)
    offset = 1
    d = width >> 1
    while d > 0:
        for worker in range(d):
            ai = offset * (2 * worker + 1) - 1
            bi = offset * (2 * worker + 2) - 1
            temp[bi] += temp[ai]
        offset *= 2
        d >>= 1

    total = temp[width - 1]
    temp[width - 1] = 0

    # Down-sweep
    d = 1
    while d < width:
        offset >>= 1
        for worker in range(d):
            ai = offset * (2 * worker + 1) - 1
            bi = offset * (2 * worker + 2) - 1
            t = temp[ai]
            temp[ai] = temp[bi]
            temp[bi] += t
        d *= 2

    for i in range(length):
        out[start + i] = temp[i]
    return total


@njit(parallel=True)
def _scan_blocks_numba(values, out, block_totals, block_size):
    n = values.shape[0]
    n_blocks = block_totals.shape[0]
    for b in prange(n_blocks):
        start = b * block_size
        length = min(block_size, n - start)
        block_totals[b] = _block_scan(values, start, length, out, block_size)


@njit(parallel=True)
def _add_block_offsets_numba(out, block_offsets, block_size):
    for i in prange(out.shape[0]):
        out[i] += block_offsets[i // block_size]


def exclusive_scan(values, block_size: int = SCAN_BLOCK_SIZE) -> NDArrayInt:
    """
    Exclusive prefix sum: ``out[i] = sum(values[:i])``.

    Parameters
    ----------
    values : array-like of int, shape (N,)
        Non-negative counts.
    block_size : int, optional
        Elements per scan block; must be a power of two of at least 2 so
        that each level shrinks the block totals. The default of 256 is one
        group of 128 workers.

    Returns
    -------
    out : NDArray[int64], shape (N,)
        Starting offset of every element.

    Raises
    ------
    ValueError
        If ``block_size`` is not a power of two of at least 2.
    """
    check_scan_block_size(block_size)

    values = np.ascontiguousarray(values, dtype=np.int64)
    n = values.shape[0]
    out = np.zeros(n, dtype=np.int64)
    if n == 0:
        return out

    n_blocks = (n + block_size - 1) // block_size
    block_totals = np.zeros(n_blocks, dtype=np.int64)
    _scan_blocks_numba(values, out, block_totals, np.int64(block_size))

    if n_blocks > 1:
        block_offsets = exclusive_scan(block_totals, block_size)
        _add_block_offsets_numba(out, block_offsets, np.int64(block_size))

    return out
