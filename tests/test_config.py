"""
Tests for the configuration system.

Validates:
- FluidConfig Pydantic validation
- YAML/JSON loading with nested sections
- Cross-field consistency checks and warnings
"""

import json
import warnings

import numpy as np
import pytest
import yaml

from fluid_sph.core.simulation import FluidConfig
from fluid_sph.config import load_config, save_config, config_from_dict, flatten_config


class TestFluidConfigValidation:
    """Test Pydantic validation rules for FluidConfig."""

    def test_defaults(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error", UserWarning)
            config = FluidConfig()
        assert config.smoothing_radius == 0.15
        assert config.mass == 0.12
        assert config.rest_density == 60.0
        assert config.gas_constant == 200.0
        assert config.viscosity == 0.1
        assert config.damping == -0.6
        assert config.gravity == (0.0, -1.0, 0.0)
        assert config.integrator == "leapfrog"
        assert config.radix_bits == 8

    def test_integrator_validation(self):
        assert FluidConfig(integrator="euler").integrator == "euler"
        with pytest.raises(ValueError, match="integrator must be one of"):
            FluidConfig(integrator="rk4")

    def test_power_of_two_fields(self):
        FluidConfig(workgroup_size=64, scan_workers=32)
        with pytest.raises(ValueError, match="power of two"):
            FluidConfig(workgroup_size=100)
        with pytest.raises(ValueError, match="power of two"):
            FluidConfig(scan_workers=3)

    def test_radix_bits_bounds(self):
        with pytest.raises(ValueError):
            FluidConfig(radix_bits=0)
        with pytest.raises(ValueError):
            FluidConfig(radix_bits=17)

    def test_damping_bounds(self):
        with pytest.raises(ValueError):
            FluidConfig(damping=-1.5)

    def test_positive_fields(self):
        for field in ("smoothing_radius", "mass", "rest_density", "dt"):
            with pytest.raises(ValueError):
                FluidConfig(**{field: 0.0})

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError):
            FluidConfig(bh_mass=1.0)

    def test_box_must_fit_two_radii(self):
        with pytest.raises(ValueError, match="at least 2 \\* smoothing_radius"):
            FluidConfig(box_extent=(1.0, 0.2, 1.0), smoothing_radius=0.15)

    def test_cell_count_must_cover_box(self):
        FluidConfig(box_extent=(1.0, 1.0, 1.0), smoothing_radius=0.1, cell_count=(10, 10, 10))
        with pytest.raises(ValueError, match="does not cover the box"):
            FluidConfig(box_extent=(1.0, 1.0, 1.0), smoothing_radius=0.1, cell_count=(9, 10, 10))

    def test_non_positive_cell_count(self):
        with pytest.raises(ValueError, match="cell_count components must be positive"):
            FluidConfig(cell_count=(0, 10, 10))

    def test_zero_gas_constant_warns(self):
        with pytest.warns(UserWarning, match="gas_constant is 0"):
            FluidConfig(gas_constant=0.0)

    def test_non_inverting_damping_warns(self):
        with pytest.warns(UserWarning, match="does not invert velocity"):
            FluidConfig(damping=0.5)

    def test_assignment_revalidated(self):
        config = FluidConfig()
        with pytest.raises(ValueError):
            config.integrator = "verlet"

    def test_grid_shape(self):
        config = FluidConfig()
        np.testing.assert_array_equal(config.grid_shape(), [20, 14, 7])

        config = FluidConfig(box_extent=(1.0, 1.0, 1.0), smoothing_radius=0.1,
                             cell_count=(12, 11, 10))
        np.testing.assert_array_equal(config.grid_shape(), [12, 11, 10])


class TestConfigLoaders:
    """YAML/JSON loading."""

    SECTIONED = {
        'fluid': {'smoothing_radius': 0.1, 'mass': 0.02, 'gravity': [0.0, -9.8, 0.0]},
        'grid': {'cell_count': [10, 10, 10]},
        'box': {'extent': [1.0, 1.0, 1.0], 'damping': -0.5},
        'simulation': {'dt': 0.001, 'n_steps': 20, 'integrator': 'euler'},
        'sorting': {'radix_bits': 4, 'workgroup_size': 64, 'scan_workers': 32},
        'ghosts': {'count': 10, 'exclude': False},
    }

    def _check(self, config):
        assert config.smoothing_radius == 0.1
        assert config.mass == 0.02
        assert config.gravity == (0.0, -9.8, 0.0)
        assert config.cell_count == (10, 10, 10)
        assert config.box_extent == (1.0, 1.0, 1.0)
        assert config.damping == -0.5
        assert config.dt == 0.001
        assert config.n_steps == 20
        assert config.integrator == "euler"
        assert config.radix_bits == 4
        assert config.ghost_count == 10
        assert config.exclude_ghosts is False

    def test_flatten_sections(self):
        flat = flatten_config(self.SECTIONED)
        assert flat['box_extent'] == [1.0, 1.0, 1.0]
        assert flat['ghost_count'] == 10
        assert flat['exclude_ghosts'] is False

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text(yaml.safe_dump(self.SECTIONED))
        self._check(load_config(path))

    def test_load_json(self, tmp_path):
        path = tmp_path / "run.json"
        path.write_text(json.dumps(self.SECTIONED))
        self._check(load_config(path))

    def test_flat_keys_pass_through(self, tmp_path):
        path = tmp_path / "flat.yaml"
        path.write_text("viscosity: 0.5\nverbose: true\n")
        config = load_config(path)
        assert config.viscosity == 0.5
        assert config.verbose is True

    def test_empty_yaml_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_config(path) == FluidConfig()

    def test_overrides(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text(yaml.safe_dump(self.SECTIONED))
        config = load_config(path, n_steps=5, integrator="leapfrog")
        assert config.n_steps == 5
        assert config.integrator == "leapfrog"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "run.toml"
        path.write_text("x = 1")
        with pytest.raises(ValueError, match="Unsupported config file format"):
            load_config(path)

    def test_invalid_values_reported_with_path(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump({'simulation': {'integrator': 'rk4'}}))
        with pytest.raises(ValueError, match="Configuration validation failed"):
            load_config(path)

    @pytest.mark.parametrize("suffix", [".yaml", ".json"])
    def test_save_and_reload(self, tmp_path, suffix):
        config = config_from_dict(self.SECTIONED)
        path = tmp_path / f"saved{suffix}"

        save_config(config, path)

        assert load_config(path) == config

    def test_save_unsupported_suffix(self, tmp_path):
        with pytest.raises(ValueError, match="Unsupported output format"):
            save_config(FluidConfig(), tmp_path / "run.txt")

    def test_config_from_dict(self):
        self._check(config_from_dict(self.SECTIONED))
