"""Configuration management for the fleet simulator."""

import os
import random
from collections import OrderedDict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from faker import Faker

from .errors import ConfigError


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Return ``data[name]`` as a mapping; an empty section counts as ``{}``."""
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"{name}: expected a mapping, got {type(value).__name__}")
    return value


@dataclass
class ConnectionConfig:
    """Simulated broker connection settings."""

    client_id: str = "coffee-fleet-dashboard"
    connect_delay_ms: int = 1000


@dataclass
class TopicConfig:
    """Topic naming convention."""

    prefix: str = "coffee/machines"
    alerts_topic: str = "coffee/alerts"


@dataclass
class SimulationConfig:
    """Simulation parameters."""

    tick_interval_ms: int = 3000
    random_seed: Optional[int] = None
    usage_probability: float = 0.2
    alert_probability: float = 0.05
    maintenance_probability: float = 0.1
    order_probability: float = 0.3


@dataclass
class MachineConfig:
    """A coffee machine placed in an office."""

    machine_id: str
    name: str = ""
    location: str = ""
    office: str = ""
    floor: str = ""

    def __post_init__(self):
        if not self.name:
            self.name = f"Machine {self.machine_id}"


@dataclass
class Config:
    """Main configuration container."""

    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    topics: TopicConfig = field(default_factory=TopicConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    machines: List[MachineConfig] = field(default_factory=list)

    @property
    def machine_ids(self) -> List[str]:
        return [m.machine_id for m in self.machines]

    def get_machine(self, machine_id: str) -> Optional[MachineConfig]:
        for machine in self.machines:
            if machine.machine_id == machine_id:
                return machine
        return None

    def hierarchy(self) -> "OrderedDict[str, OrderedDict[str, List[MachineConfig]]]":
        """Group machines as location -> office -> machines, in config order."""
        tree: "OrderedDict[str, OrderedDict[str, List[MachineConfig]]]" = OrderedDict()
        for machine in self.machines:
            offices = tree.setdefault(machine.location or "Unassigned", OrderedDict())
            offices.setdefault(machine.office or "Unassigned", []).append(machine)
        return tree

    def validate(self) -> "Config":
        """Check value ranges, raising ConfigError on the first problem."""
        sim = self.simulation
        if sim.tick_interval_ms <= 0:
            raise ConfigError(f"tick_interval_ms must be positive, got {sim.tick_interval_ms}")
        if self.connection.connect_delay_ms < 0:
            raise ConfigError(
                f"connect_delay_ms must not be negative, got {self.connection.connect_delay_ms}"
            )
        for name in (
            "usage_probability",
            "alert_probability",
            "maintenance_probability",
            "order_probability",
        ):
            value = getattr(sim, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} must be within [0, 1], got {value}")
        if not self.machines:
            raise ConfigError("at least one machine must be configured")
        ids = self.machine_ids
        duplicates = sorted({m for m in ids if ids.count(m) > 1})
        if duplicates:
            raise ConfigError(f"duplicate machine ids: {', '.join(duplicates)}")
        if not self.topics.prefix or not self.topics.alerts_topic:
            raise ConfigError("topic prefix and alerts topic must not be empty")
        return self

    @classmethod
    def from_yaml(cls, config_path: Path) -> "Config":
        """Load configuration from YAML file."""
        if not config_path.exists():
            return cls.default()

        with open(config_path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"{config_path}: invalid YAML: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"{config_path}: expected a mapping at top level")

        return cls._from_dict(data)

    @classmethod
    def from_env(cls, base: Optional["Config"] = None) -> "Config":
        """Apply environment variable overrides on top of ``base`` (or defaults)."""
        config = base or cls.default()

        try:
            tick = os.getenv("COFFEE_FLEET_TICK_MS")
            if tick:
                config.simulation.tick_interval_ms = int(tick)

            seed = os.getenv("COFFEE_FLEET_SEED")
            if seed:
                config.simulation.random_seed = int(seed)

            delay = os.getenv("COFFEE_FLEET_CONNECT_DELAY_MS")
            if delay:
                config.connection.connect_delay_ms = int(delay)
        except ValueError as e:
            raise ConfigError(f"invalid numeric environment override: {e}") from e

        config.topics.prefix = os.getenv("COFFEE_FLEET_TOPIC_PREFIX", config.topics.prefix)
        config.topics.alerts_topic = os.getenv(
            "COFFEE_FLEET_ALERTS_TOPIC", config.topics.alerts_topic
        )

        # Comma-separated ids replace the fleet, keeping known placements
        machines = os.getenv("COFFEE_FLEET_MACHINES")
        if machines:
            ids = [m.strip() for m in machines.split(",") if m.strip()]
            config.machines = [
                config.get_machine(machine_id) or MachineConfig(machine_id=machine_id)
                for machine_id in ids
            ]

        return config

    @classmethod
    def default(cls) -> "Config":
        """Create default configuration with the demo fleet."""
        config = cls()

        config.machines = [
            MachineConfig(
                machine_id="A-001",
                name="Machine A-001",
                location="New York",
                office="Main Office",
                floor="2nd Floor",
            ),
            MachineConfig(
                machine_id="A-002",
                name="Machine A-002",
                location="New York",
                office="Main Office",
                floor="1st Floor",
            ),
            MachineConfig(
                machine_id="B-001",
                name="Machine B-001",
                location="Los Angeles",
                office="West Branch",
                floor="Ground Floor",
            ),
        ]

        return config

    @classmethod
    def sample(cls, count: int, seed: Optional[int] = None) -> "Config":
        """Create a configuration with a generated demo fleet.

        Machines are spread over a handful of cities, two offices per city,
        and numbered per location (``A-001``, ``A-002``, ``B-001`` ...).
        """
        if count < 1:
            raise ConfigError(f"machine count must be at least 1, got {count}")

        fake = Faker()
        rng = random.Random(seed)
        if seed is not None:
            fake.seed_instance(seed)

        num_locations = max(1, min(26, (count + 3) // 4))
        locations = []
        for index in range(num_locations):
            offices = [f"{fake.last_name()} {suffix}" for suffix in ("Tower", "Plaza")]
            locations.append((chr(ord("A") + index), fake.city(), offices))

        floors = ["Ground Floor", "1st Floor", "2nd Floor", "3rd Floor"]
        counters: Dict[str, int] = {}
        config = cls()
        for index in range(count):
            letter, city, offices = locations[index % num_locations]
            counters[letter] = counters.get(letter, 0) + 1
            machine_id = f"{letter}-{counters[letter]:03d}"
            config.machines.append(
                MachineConfig(
                    machine_id=machine_id,
                    name=f"Machine {machine_id}",
                    location=city,
                    office=rng.choice(offices),
                    floor=rng.choice(floors),
                )
            )
        config.simulation.random_seed = seed
        return config

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create config from dictionary.

        Malformed sections or values raise ConfigError.
        """
        config = cls.default()

        try:
            if "connection" in data:
                conn_data = _section(data, "connection")
                config.connection = ConnectionConfig(
                    client_id=str(conn_data.get("client_id", config.connection.client_id)),
                    connect_delay_ms=int(
                        conn_data.get("connect_delay_ms", config.connection.connect_delay_ms)
                    ),
                )

            if "topics" in data:
                topic_data = _section(data, "topics")
                config.topics = TopicConfig(
                    prefix=str(topic_data.get("prefix", config.topics.prefix)),
                    alerts_topic=str(
                        topic_data.get("alerts_topic", config.topics.alerts_topic)
                    ),
                )

            if "simulation" in data:
                sim_data = _section(data, "simulation")
                defaults = config.simulation
                seed = sim_data.get("random_seed")
                config.simulation = SimulationConfig(
                    tick_interval_ms=int(
                        sim_data.get("tick_interval_ms", defaults.tick_interval_ms)
                    ),
                    random_seed=int(seed) if seed is not None else None,
                    usage_probability=float(
                        sim_data.get("usage_probability", defaults.usage_probability)
                    ),
                    alert_probability=float(
                        sim_data.get("alert_probability", defaults.alert_probability)
                    ),
                    maintenance_probability=float(
                        sim_data.get("maintenance_probability", defaults.maintenance_probability)
                    ),
                    order_probability=float(
                        sim_data.get("order_probability", defaults.order_probability)
                    ),
                )
        except (TypeError, ValueError) as e:
            if isinstance(e, ConfigError):
                raise
            raise ConfigError(f"invalid config value: {e}") from e

        # Machines config: a mapping of machine id -> placement fields
        if "machines" in data:
            config.machines = []
            for machine_id, machine_data in _section(data, "machines").items():
                machine_data = machine_data or {}
                if not isinstance(machine_data, dict):
                    raise ConfigError(
                        f"machines.{machine_id}: expected a mapping, "
                        f"got {type(machine_data).__name__}"
                    )
                config.machines.append(
                    MachineConfig(
                        machine_id=str(machine_id),
                        name=str(machine_data.get("name", "")),
                        location=str(machine_data.get("location", "")),
                        office=str(machine_data.get("office", "")),
                        floor=str(machine_data.get("floor", "")),
                    )
                )

        return config

    def to_yaml(self, path: Path) -> None:
        """Save configuration to YAML file."""
        data = {
            "connection": {
                "client_id": self.connection.client_id,
                "connect_delay_ms": self.connection.connect_delay_ms,
            },
            "topics": {
                "prefix": self.topics.prefix,
                "alerts_topic": self.topics.alerts_topic,
            },
            "simulation": {
                "tick_interval_ms": self.simulation.tick_interval_ms,
                "random_seed": self.simulation.random_seed,
                "usage_probability": self.simulation.usage_probability,
                "alert_probability": self.simulation.alert_probability,
                "maintenance_probability": self.simulation.maintenance_probability,
                "order_probability": self.simulation.order_probability,
            },
            "machines": {
                m.machine_id: {
                    "name": m.name,
                    "location": m.location,
                    "office": m.office,
                    "floor": m.floor,
                }
                for m in self.machines
            },
        }

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
