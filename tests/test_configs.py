"""Tests for configuration loading and validation."""

import dataclasses
from pathlib import Path

import pytest

from physarum.configs import (
    BOUNDARY_POLICIES,
    NEIGHBORHOODS,
    Config,
    SimulationParameters,
    validate_parameters,
)
from physarum.errors import InitError

DEFAULT_YAML = Path(__file__).resolve().parent.parent / "configs" / "default.yaml"


class TestSimulationParameters:
    """Tests for the parameter struct."""

    def test_defaults(self):
        params = SimulationParameters()
        assert params.evaporate_speed == 0.01
        assert params.diffuse_speed == 0.5
        assert params.num_agents == 20_000
        assert params.max_pheromone == 1.0

    def test_frozen(self):
        params = SimulationParameters()
        with pytest.raises(dataclasses.FrozenInstanceError):
            params.wobbling = 1.0

    def test_replace(self):
        params = SimulationParameters().replace(twisting_angle=0.3)
        assert params.twisting_angle == 0.3

    def test_flat_list_order(self):
        params = SimulationParameters(
            evaporate_speed=1.0, diffuse_speed=0.2, num_agents=3, wobbling=4.0,
            pheromone_deposit=5.0, max_pheromone=6.0, twisting_angle=7.0,
        )
        assert params.as_list() == [1.0, 0.2, 3.0, 4.0, 5.0, 6.0, 7.0]

        restored = SimulationParameters.from_list(params.as_list())
        assert restored == params
        assert isinstance(restored.num_agents, int)

    def test_from_list_wrong_length(self):
        with pytest.raises(ValueError):
            SimulationParameters.from_list([0.0] * 6)

    def test_validate_accepts_defaults(self):
        validate_parameters(SimulationParameters())

    @pytest.mark.parametrize(
        "overrides",
        [
            {"num_agents": -5},
            {"diffuse_speed": 2.0},
            {"evaporate_speed": -0.5},
            {"pheromone_deposit": -1.0},
            {"wobbling": -0.1},
            {"max_pheromone": -1.0},
            {"twisting_angle": float("inf")},
        ],
    )
    def test_validate_rejects(self, overrides):
        with pytest.raises(InitError):
            validate_parameters(SimulationParameters().replace(**overrides))


class TestConfig:
    """Tests for the master config."""

    def test_default_yaml_matches_defaults(self):
        assert Config.from_yaml(str(DEFAULT_YAML)) == Config()

    def test_yaml_round_trip(self, tmp_path):
        config = Config()
        config.field.width = 64
        config.field.neighborhood = "von_neumann"
        config.engine.boundary = "reflect"
        config.params = config.params.replace(num_agents=123, wobbling=0.7)

        path = tmp_path / "config.yaml"
        config.to_yaml(str(path))
        loaded = Config.from_yaml(str(path))

        assert loaded == config
        assert loaded.params.num_agents == 123

    def test_partial_yaml(self, tmp_path):
        path = tmp_path / "partial.yaml"
        path.write_text("field:\n  width: 40\nparams:\n  num_agents: 10\n")

        config = Config.from_yaml(str(path))
        assert config.field.width == 40
        assert config.field.height == 256
        assert config.params.num_agents == 10
        assert config.params.diffuse_speed == 0.5

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert Config.from_yaml(str(path)) == Config()

    def test_validate_accepts_defaults(self):
        Config().validate()

    def test_policies(self):
        assert "moore" in NEIGHBORHOODS and "von_neumann" in NEIGHBORHOODS
        assert set(BOUNDARY_POLICIES) == {"clamp", "wrap", "reflect"}

    @pytest.mark.parametrize(
        "section,name,value",
        [
            ("field", "width", 0),
            ("field", "height", -3),
            ("field", "neighborhood", "hexagonal"),
            ("engine", "boundary", "teleport"),
            ("agent", "speed", -1.0),
            ("agent", "sensor_size", -1.0),
            ("agent", "max_sensor_radius", -1),
            ("agent", "sensor_size", 6.0),
            ("agent", "max_sensor_radius", 0),
            ("agent", "spawn_radius_fraction", 0.9),
            ("agent", "sensor_length", float("nan")),
        ],
    )
    def test_validate_rejects(self, section, name, value):
        config = Config()
        setattr(getattr(config, section), name, value)
        with pytest.raises(InitError):
            config.validate()
