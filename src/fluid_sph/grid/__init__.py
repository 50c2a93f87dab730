"""
Grid module: cell keys, radix sort, prefix sums and the spatial lookup.
"""

from .cell_keys import (
    assign_cell_keys,
    cell_coordinate,
    linear_cell_key,
    decode_cell_key,
    grid_shape_for_box,
    total_cell_count,
)
from .prefix_sum import (
    SCAN_WORKERS,
    SCAN_BLOCK_SIZE,
    digit_histogram,
    exclusive_scan,
)
from .radix_sort import RadixSorter, SortBuffers, scatter
from .spatial_lookup import SpatialLookup, build_lookup_index

__all__ = [
    # Cell keys
    "assign_cell_keys",
    "cell_coordinate",
    "linear_cell_key",
    "decode_cell_key",
    "grid_shape_for_box",
    "total_cell_count",

    # Sorting primitives
    "SCAN_WORKERS",
    "SCAN_BLOCK_SIZE",
    "digit_histogram",
    "exclusive_scan",
    "scatter",
    "RadixSorter",
    "SortBuffers",

    # Spatial lookup
    "SpatialLookup",
    "build_lookup_index",
]
