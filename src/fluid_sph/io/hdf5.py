"""
HDF5 snapshot I/O for fluid simulations.

Layout:
- /particles/{positions, velocities, density, force}, gzip-compressed
- /particles attrs: n_particles, ghost_count, time
- /metadata attrs: code version, creation time, run parameters

Example usage:
    >>> writer = HDF5Writer()
    >>> writer.write_snapshot("snapshot_0000.h5", particles, time=0.0,
    ...                       metadata={"smoothing_radius": 0.15})
    >>> data = writer.read_snapshot("snapshot_0000.h5")
"""

import h5py
import numpy as np
from typing import Dict, Any, Optional, Union
from pathlib import Path
from datetime import datetime
import numpy.typing as npt

from fluid_sph.sph.particles import ParticleSystem

NDArrayFloat = npt.NDArray[np.float32]

SNAPSHOT_FIELDS = ('positions', 'velocities', 'density', 'force')


class HDF5Writer:
    """
    HDF5-based snapshot writer for particle data.

    Attributes
    ----------
    compression : str
        Compression algorithm (default: 'gzip')
    compression_level : int
        Compression level 0-9 (default: 4)
    code_version : str
        Version identifier written into every file
    """

    def __init__(
        self,
        compression: str = "gzip",
        compression_level: int = 4,
        code_version: str = "0.1.0"
    ):
        self.compression = compression
        self.compression_level = compression_level if compression == "gzip" else None
        self.code_version = code_version

    def write_snapshot(
        self,
        filename: Union[str, Path],
        particles: Union[ParticleSystem, Dict[str, NDArrayFloat]],
        time: float,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Write particle snapshot to HDF5 file.

        Parameters
        ----------
        filename : str or Path
            Output path. Missing parent directories are created.
        particles : ParticleSystem or Dict[str, NDArrayFloat]
            Either a particle system or a mapping with at least the keys
            'positions', 'velocities', 'density' and 'force'.
        time : float
            Current simulation time.
        metadata : Dict[str, Any], optional
            Scalars become attributes, arrays and sequences become datasets
            in /metadata; anything else is stored as its string form.
        """
        Path(filename).parent.mkdir(parents=True, exist_ok=True)

        ghost_count = 0
        if isinstance(particles, ParticleSystem):
            ghost_count = particles.ghost_count
            particles = {name: getattr(particles, name) for name in SNAPSHOT_FIELDS}

        missing = [f for f in SNAPSHOT_FIELDS if f not in particles]
        if missing:
            raise ValueError(f"Missing required particle fields: {missing}")

        n_particles = len(particles['positions'])

        with h5py.File(filename, 'w') as f:
            particle_group = f.create_group('particles')

            for key, array in particles.items():
                array = np.asarray(array)
                if array.dtype != np.float32:
                    array = array.astype(np.float32)

                particle_group.create_dataset(
                    key,
                    data=array,
                    compression=self.compression,
                    compression_opts=self.compression_level,
                    chunks=True if array.size > 0 else None
                )

            particle_group.attrs['n_particles'] = n_particles
            particle_group.attrs['ghost_count'] = ghost_count
            particle_group.attrs['time'] = time

            meta_group = f.create_group('metadata')
            meta_group.attrs['code_version'] = self.code_version
            meta_group.attrs['creation_time'] = datetime.now().isoformat()
            meta_group.attrs['simulation_time'] = time
            meta_group.attrs['n_particles'] = n_particles

            if metadata is not None:
                for key, value in metadata.items():
                    if value is None:
                        continue
                    if isinstance(value, (int, float, str, bool, np.number)):
                        meta_group.attrs[key] = value
                    elif isinstance(value, (np.ndarray, list, tuple)):
                        meta_group.create_dataset(key, data=np.asarray(value))
                    else:
                        meta_group.attrs[key] = str(value)

            f.attrs['time'] = time
            f.attrs['n_particles'] = n_particles
            f.attrs['code_version'] = self.code_version

    def read_snapshot(
        self,
        filename: Union[str, Path],
        load_metadata: bool = True
    ) -> Dict[str, Any]:
        """
        Read particle snapshot from HDF5 file.

        Returns
        -------
        data : Dict[str, Any]
            'particles' (dict of arrays), 'time', 'n_particles',
            'ghost_count' and, if requested, 'metadata'.
        """
        if not Path(filename).exists():
            raise FileNotFoundError(f"Snapshot file not found: {filename}")

        with h5py.File(filename, 'r') as f:
            particle_group = f['particles']
            particles = {key: particle_group[key][:] for key in particle_group.keys()}

            result = {
                'particles': particles,
                'time': float(f.attrs['time']),
                'n_particles': int(f.attrs['n_particles']),
                'ghost_count': int(particle_group.attrs.get('ghost_count', 0)),
            }

            if load_metadata and 'metadata' in f:
                meta_group = f['metadata']
                metadata = {key: meta_group.attrs[key] for key in meta_group.attrs.keys()}
                for key in meta_group.keys():
                    metadata[key] = meta_group[key][:]
                result['metadata'] = metadata

            return result

    def list_snapshots(self, directory: Union[str, Path], pattern: str = "snapshot_*.h5") -> list:
        """Sorted snapshot files in ``directory``."""
        dir_path = Path(directory)
        if not dir_path.exists():
            raise ValueError(f"Directory not found: {directory}")
        return sorted(dir_path.glob(pattern))


def write_snapshot(
    filename: Union[str, Path],
    particles: Union[ParticleSystem, Dict[str, NDArrayFloat]],
    time: float,
    metadata: Optional[Dict[str, Any]] = None,
    **kwargs
) -> None:
    """
    Convenience function to write a snapshot with default settings.

    Extra keyword arguments go to the ``HDF5Writer`` constructor.
    """
    writer = HDF5Writer(**kwargs)
    writer.write_snapshot(filename, particles, time, metadata)


def read_snapshot(filename: Union[str, Path], **kwargs) -> Dict[str, Any]:
    """Convenience function to read a snapshot with default settings."""
    writer = HDF5Writer()
    return writer.read_snapshot(filename, **kwargs)
