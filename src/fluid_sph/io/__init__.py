"""
I/O module: HDF5 snapshots.
"""

from fluid_sph.io.hdf5 import HDF5Writer, write_snapshot, read_snapshot, SNAPSHOT_FIELDS

__all__ = [
    "HDF5Writer",
    "write_snapshot",
    "read_snapshot",
    "SNAPSHOT_FIELDS",
]
