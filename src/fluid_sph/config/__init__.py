"""
Configuration module: YAML/JSON loading and saving of FluidConfig.
"""

from fluid_sph.config.loaders import (
    FIELD_MAPPINGS,
    load_config,
    save_config,
    config_from_dict,
    flatten_config,
)

__all__ = [
    'FIELD_MAPPINGS',
    'load_config',
    'save_config',
    'config_from_dict',
    'flatten_config',
]
