"""
Configuration loaders for YAML and JSON files.

This module loads and validates fluid configurations from YAML/JSON files.
Files may group parameters into the sections ``fluid``, ``grid``, ``box``,
``simulation``, ``sorting`` and ``ghosts``; they are flattened onto the
fields of FluidConfig.
"""

from typing import Dict, Any, Union
from pathlib import Path
import yaml
import json

from fluid_sph.core.simulation import FluidConfig


# Section -> {file key: FluidConfig field}
FIELD_MAPPINGS = {
    'fluid': {
        'smoothing_radius': 'smoothing_radius',
        'h': 'smoothing_radius',
        'mass': 'mass',
        'rest_density': 'rest_density',
        'gas_constant': 'gas_constant',
        'viscosity': 'viscosity',
        'gravity': 'gravity',
        'density_epsilon': 'density_epsilon',
        'allow_negative_pressure': 'allow_negative_pressure',
    },
    'grid': {
        'cell_count': 'cell_count',
        'cells': 'cell_count',
    },
    'box': {
        'extent': 'box_extent',
        'box_extent': 'box_extent',
        'damping': 'damping',
    },
    'simulation': {
        'dt': 'dt',
        'n_steps': 'n_steps',
        'steps': 'n_steps',
        'integrator': 'integrator',
        'output_dir': 'output_dir',
        'snapshot_interval': 'snapshot_interval',
        'random_seed': 'random_seed',
        'verbose': 'verbose',
    },
    'sorting': {
        'radix_bits': 'radix_bits',
        'workgroup_size': 'workgroup_size',
        'scan_workers': 'scan_workers',
    },
    'ghosts': {
        'count': 'ghost_count',
        'ghost_count': 'ghost_count',
        'exclude': 'exclude_ghosts',
        'exclude_ghosts': 'exclude_ghosts',
    },
}


def load_config(filename: Union[str, Path], **overrides) -> FluidConfig:
    """
    Load fluid configuration from YAML or JSON file.

    Parameters
    ----------
    filename : str or Path
        Path to configuration file (.yaml, .yml, or .json)
    **overrides : keyword arguments
        Override specific config values (e.g., dt=0.001, verbose=True)

    Returns
    -------
    config : FluidConfig
        Validated configuration

    Raises
    ------
    FileNotFoundError
        If configuration file does not exist
    ValueError
        If file format is unsupported or config is invalid

    Examples
    --------
    >>> config = load_config("dam_break.yaml")
    >>> config = load_config("dam_break.yaml", integrator="euler", n_steps=50)
    """
    filepath = Path(filename)

    if not filepath.exists():
        raise FileNotFoundError(f"Configuration file not found: {filepath}")

    suffix = filepath.suffix.lower()
    if suffix in ['.yaml', '.yml']:
        config_dict = load_yaml(filepath)
    elif suffix == '.json':
        config_dict = load_json(filepath)
    else:
        raise ValueError(
            f"Unsupported config file format: {suffix}. "
            "Use .yaml, .yml, or .json"
        )

    flat_config = flatten_config(config_dict)
    flat_config.update(overrides)

    try:
        config = FluidConfig(**flat_config)
    except ValueError as e:
        raise ValueError(
            f"Configuration validation failed for {filepath}: {e}"
        ) from e

    return config


def load_yaml(filepath: Path) -> Dict[str, Any]:
    """Load YAML configuration file (an empty file gives an empty dict)."""
    with open(filepath, 'r') as f:
        config_dict = yaml.safe_load(f)

    if config_dict is None:
        config_dict = {}

    return config_dict


def load_json(filepath: Path) -> Dict[str, Any]:
    """Load JSON configuration file."""
    with open(filepath, 'r') as f:
        config_dict = json.load(f)

    return config_dict


def flatten_config(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Flatten nested configuration dictionary.

    Converts nested structures like:
        {'box': {'extent': [1, 1, 1], 'damping': -0.5}}
    to:
        {'box_extent': [1, 1, 1], 'damping': -0.5}

    Keys of a known section without a mapping, and keys of unknown
    sections, pass through under their own name so that FluidConfig can
    reject them.

    Parameters
    ----------
    config_dict : Dict[str, Any]
        Nested configuration dictionary

    Returns
    -------
    flat_dict : Dict[str, Any]
        Flattened configuration dictionary
    """
    flat = {}

    for key, value in config_dict.items():
        if key in FIELD_MAPPINGS and isinstance(value, dict):
            for subkey, subvalue in value.items():
                flat[FIELD_MAPPINGS[key].get(subkey, subkey)] = subvalue
        elif isinstance(value, dict):
            flat.update(flatten_config(value))
        else:
            flat[key] = value

    return flat


def _as_plain(value):
    """Tuples become lists so that yaml.safe_load can read the file back."""
    if isinstance(value, tuple):
        return [_as_plain(v) for v in value]
    return value


def save_config(config: FluidConfig, filename: Union[str, Path]) -> None:
    """
    Save FluidConfig to a YAML or JSON file in the sectioned layout.

    Parameters
    ----------
    config : FluidConfig
        Configuration to save
    filename : str or Path
        Output file path (.yaml, .yml or .json)
    """
    filepath = Path(filename)
    c = {key: _as_plain(value) for key, value in config.model_dump().items()}

    organized = {
        'fluid': {
            'smoothing_radius': c['smoothing_radius'],
            'mass': c['mass'],
            'rest_density': c['rest_density'],
            'gas_constant': c['gas_constant'],
            'viscosity': c['viscosity'],
            'gravity': c['gravity'],
            'density_epsilon': c['density_epsilon'],
            'allow_negative_pressure': c['allow_negative_pressure'],
        },
        'grid': {
            'cell_count': c['cell_count'],
        },
        'box': {
            'extent': c['box_extent'],
            'damping': c['damping'],
        },
        'simulation': {
            'dt': c['dt'],
            'n_steps': c['n_steps'],
            'integrator': c['integrator'],
            'output_dir': c['output_dir'],
            'snapshot_interval': c['snapshot_interval'],
            'random_seed': c['random_seed'],
            'verbose': c['verbose'],
        },
        'sorting': {
            'radix_bits': c['radix_bits'],
            'workgroup_size': c['workgroup_size'],
            'scan_workers': c['scan_workers'],
        },
        'ghosts': {
            'count': c['ghost_count'],
            'exclude': c['exclude_ghosts'],
        },
    }

    suffix = filepath.suffix.lower()
    if suffix in ['.yaml', '.yml']:
        with open(filepath, 'w') as f:
            yaml.safe_dump(organized, f, default_flow_style=False, sort_keys=False)
    elif suffix == '.json':
        with open(filepath, 'w') as f:
            json.dump(organized, f, indent=2)
    else:
        raise ValueError(f"Unsupported output format: {suffix}. Use .yaml or .json")


def config_from_dict(config_dict: Dict[str, Any]) -> FluidConfig:
    """
    Create FluidConfig from a (possibly sectioned) dictionary.
    """
    flat = flatten_config(config_dict)
    return FluidConfig(**flat)
