"""Tests for configuration loading and validation."""

import pytest
import yaml

from coffee_fleet_sim.config import Config, MachineConfig
from coffee_fleet_sim.errors import ConfigError

ENV_VARS = [
    "COFFEE_FLEET_TICK_MS",
    "COFFEE_FLEET_SEED",
    "COFFEE_FLEET_CONNECT_DELAY_MS",
    "COFFEE_FLEET_TOPIC_PREFIX",
    "COFFEE_FLEET_ALERTS_TOPIC",
    "COFFEE_FLEET_MACHINES",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestConfigDefaults:
    """Tests for the default configuration."""

    def test_default_fleet(self):
        config = Config.default()

        assert config.machine_ids == ["A-001", "A-002", "B-001"]
        assert config.simulation.tick_interval_ms == 3000
        assert config.connection.connect_delay_ms == 1000
        assert config.topics.prefix == "coffee/machines"
        assert config.topics.alerts_topic == "coffee/alerts"

    def test_default_probabilities(self):
        sim = Config.default().simulation

        assert sim.usage_probability == 0.2
        assert sim.alert_probability == 0.05
        assert sim.maintenance_probability == 0.1
        assert sim.order_probability == 0.3

    def test_machine_name_defaults_from_id(self):
        assert MachineConfig(machine_id="C-003").name == "Machine C-003"

    def test_get_machine(self):
        config = Config.default()

        assert config.get_machine("B-001").location == "Los Angeles"
        assert config.get_machine("Z-999") is None

    def test_hierarchy(self):
        tree = Config.default().hierarchy()

        assert list(tree) == ["New York", "Los Angeles"]
        assert [m.machine_id for m in tree["New York"]["Main Office"]] == ["A-001", "A-002"]
        assert [m.machine_id for m in tree["Los Angeles"]["West Branch"]] == ["B-001"]

    def test_hierarchy_unassigned(self):
        config = Config(machines=[MachineConfig(machine_id="X")])

        assert list(config.hierarchy()) == ["Unassigned"]


class TestConfigValidation:
    """Tests for Config.validate()."""

    def test_default_is_valid(self):
        config = Config.default()

        assert config.validate() is config

    @pytest.mark.parametrize(
        "mutate,match",
        [
            (lambda c: setattr(c.simulation, "tick_interval_ms", 0), "tick_interval_ms"),
            (lambda c: setattr(c.connection, "connect_delay_ms", -1), "connect_delay_ms"),
            (lambda c: setattr(c.simulation, "alert_probability", 1.5), "alert_probability"),
            (lambda c: setattr(c, "machines", []), "at least one machine"),
            (
                lambda c: c.machines.append(MachineConfig(machine_id="A-001")),
                "duplicate machine ids: A-001",
            ),
            (lambda c: setattr(c.topics, "prefix", ""), "must not be empty"),
        ],
    )
    def test_invalid(self, mutate, match):
        config = Config.default()
        mutate(config)

        with pytest.raises(ConfigError, match=match):
            config.validate()

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)


class TestConfigYaml:
    """Tests for YAML loading and saving."""

    def test_missing_file_gives_defaults(self, tmp_path):
        config = Config.from_yaml(tmp_path / "missing.yaml")

        assert config.machine_ids == ["A-001", "A-002", "B-001"]

    def test_save_and_load(self, tmp_path):
        original = Config.default()
        original.simulation.tick_interval_ms = 500
        original.simulation.random_seed = 9
        original.topics.prefix = "fleet"
        path = tmp_path / "nested" / "config.yaml"

        original.to_yaml(path)
        loaded = Config.from_yaml(path)

        assert loaded == original

    def test_partial_file_keeps_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            yaml.dump(
                {
                    "simulation": {"alert_probability": 0.5},
                    "machines": {"K-1": {"location": "Oslo"}, "K-2": None},
                }
            )
        )

        config = Config.from_yaml(path)

        assert config.simulation.alert_probability == 0.5
        assert config.simulation.tick_interval_ms == 3000
        assert config.machine_ids == ["K-1", "K-2"]
        assert config.get_machine("K-1").location == "Oslo"
        assert config.get_machine("K-2").name == "Machine K-2"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert Config.from_yaml(path).machine_ids == ["A-001", "A-002", "B-001"]

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigError):
            Config.from_yaml(path)

    def test_unparseable_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("simulation: [unclosed\n")

        with pytest.raises(ConfigError, match="invalid YAML"):
            Config.from_yaml(path)

    @pytest.mark.parametrize(
        "data,match",
        [
            ({"simulation": {"tick_interval_ms": "fast"}}, "invalid config value"),
            ({"simulation": {"alert_probability": "often"}}, "invalid config value"),
            ({"simulation": {"random_seed": "abc"}}, "invalid config value"),
            ({"connection": {"connect_delay_ms": [1, 2]}}, "invalid config value"),
            ({"machines": ["A-001", "B-001"]}, "machines: expected a mapping, got list"),
            ({"machines": {"A-001": "New York"}}, "machines.A-001: expected a mapping"),
            ({"simulation": [1, 2]}, "simulation: expected a mapping"),
            ({"connection": "localhost"}, "connection: expected a mapping"),
            ({"topics": 5}, "topics: expected a mapping"),
        ],
    )
    def test_malformed_values_raise_config_error(self, tmp_path, data, match):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump(data))

        with pytest.raises(ConfigError, match=match):
            Config.from_yaml(path)


class TestConfigEnv:
    """Tests for environment overrides."""

    def test_no_overrides(self, clean_env):
        assert Config.from_env() == Config.default()

    def test_overrides(self, clean_env):
        clean_env.setenv("COFFEE_FLEET_TICK_MS", "250")
        clean_env.setenv("COFFEE_FLEET_SEED", "17")
        clean_env.setenv("COFFEE_FLEET_CONNECT_DELAY_MS", "0")
        clean_env.setenv("COFFEE_FLEET_TOPIC_PREFIX", "office/coffee")
        clean_env.setenv("COFFEE_FLEET_ALERTS_TOPIC", "office/alerts")

        config = Config.from_env()

        assert config.simulation.tick_interval_ms == 250
        assert config.simulation.random_seed == 17
        assert config.connection.connect_delay_ms == 0
        assert config.topics.prefix == "office/coffee"
        assert config.topics.alerts_topic == "office/alerts"

    def test_machines_override_keeps_known_placements(self, clean_env):
        clean_env.setenv("COFFEE_FLEET_MACHINES", "B-001, Z-9")

        config = Config.from_env()

        assert config.machine_ids == ["B-001", "Z-9"]
        assert config.get_machine("B-001").office == "West Branch"
        assert config.get_machine("Z-9").location == ""

    def test_overrides_apply_on_base(self, clean_env):
        base = Config(machines=[MachineConfig(machine_id="Q-1")])
        clean_env.setenv("COFFEE_FLEET_TICK_MS", "100")

        config = Config.from_env(base)

        assert config.machine_ids == ["Q-1"]
        assert config.simulation.tick_interval_ms == 100

    def test_invalid_number(self, clean_env):
        clean_env.setenv("COFFEE_FLEET_TICK_MS", "fast")

        with pytest.raises(ConfigError, match="invalid numeric"):
            Config.from_env()


class TestConfigSample:
    """Tests for generated sample fleets."""

    def test_sample_size_and_ids(self):
        config = Config.sample(10, seed=3)

        assert len(config.machines) == 10
        assert len(set(config.machine_ids)) == 10
        assert config.machine_ids[0] == "A-001"
        assert config.validate() is config

    def test_sample_is_reproducible(self):
        assert Config.sample(6, seed=5) == Config.sample(6, seed=5)

    def test_sample_rejects_zero(self):
        with pytest.raises(ConfigError):
            Config.sample(0)
