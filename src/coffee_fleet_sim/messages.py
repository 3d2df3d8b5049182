"""Message envelope and typed telemetry payloads.

Payloads form a small tagged union keyed by ``MessageKind``:

- ``StatusUpdate``: per-machine operating state, boiler readings, supplies
- ``UsageUpdate``: per-machine daily consumption figures
- ``AlertNotice``: fleet-wide notification about a critically low supply

``to_dict()`` produces the camelCase shape the dashboard UI reads, and
``from_dict()`` validates an untyped dict at a consumer boundary.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Union

from .errors import PayloadError


class MessageKind(str, Enum):
    """Discriminator for payload types."""

    STATUS = "status"
    USAGE = "usage"
    ALERT = "alert"


class MachineStatus(str, Enum):
    """Operational state of a machine."""

    OPERATIONAL = "operational"
    MAINTENANCE = "maintenance"
    OFFLINE = "offline"


class SupplyType(str, Enum):
    """Consumables tracked per machine."""

    WATER = "water"
    MILK = "milk"
    COFFEE_BEANS = "coffee_beans"
    SUGAR = "sugar"


_MISSING = object()


def clamp_level(value: float) -> float:
    """Clamp a percentage to [0, 100]."""
    return max(0.0, min(100.0, float(value)))


def _field(data: Dict[str, Any], *names: str, default: Any = _MISSING) -> Any:
    for name in names:
        if name in data and data[name] is not None:
            return data[name]
    if default is _MISSING:
        raise PayloadError(f"missing field '{names[0]}'")
    return default


def _number(data: Dict[str, Any], *names: str, cast=float, default: Any = _MISSING) -> Any:
    value = _field(data, *names, default=default)
    if value is None:
        return None
    if isinstance(value, bool):
        raise PayloadError(f"field '{names[0]}' must be numeric, got {value!r}")
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise PayloadError(f"field '{names[0]}' must be numeric, got {value!r}") from None


def _enum(enum_cls, value: Any, name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise PayloadError(f"field '{name}' must be one of {allowed}, got {value!r}") from None


@dataclass(frozen=True)
class StatusUpdate:
    """Synthetic status telemetry for one machine."""

    machine_id: str
    status: MachineStatus
    temperature: float
    pressure: float
    water_level: float
    milk_level: float
    coffee_beans_level: float
    sugar_level: float
    power_usage: float = 0.0
    current_order: Optional[str] = None
    queue_length: int = 0

    kind = MessageKind.STATUS

    def __post_init__(self):
        # Frozen dataclass: normalize through object.__setattr__
        for name in (
            "water_level",
            "milk_level",
            "coffee_beans_level",
            "sugar_level",
            "power_usage",
        ):
            object.__setattr__(self, name, clamp_level(getattr(self, name)))
        object.__setattr__(self, "queue_length", max(0, int(self.queue_length)))
        if not isinstance(self.status, MachineStatus):
            object.__setattr__(self, "status", _enum(MachineStatus, self.status, "status"))

    def supply_level(self, supply: SupplyType) -> float:
        return {
            SupplyType.WATER: self.water_level,
            SupplyType.MILK: self.milk_level,
            SupplyType.COFFEE_BEANS: self.coffee_beans_level,
            SupplyType.SUGAR: self.sugar_level,
        }[supply]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "machineId": self.machine_id,
            "status": self.status.value,
            "temperature": self.temperature,
            "pressure": self.pressure,
            "waterLevel": self.water_level,
            "milkLevel": self.milk_level,
            "coffeeBeansLevel": self.coffee_beans_level,
            "sugarLevel": self.sugar_level,
            "powerUsage": self.power_usage,
            "currentOrder": self.current_order,
            "queueLength": self.queue_length,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatusUpdate":
        if not isinstance(data, dict):
            raise PayloadError(f"status payload must be a mapping, got {type(data).__name__}")
        order = _field(data, "currentOrder", "current_order", default=None)
        return cls(
            machine_id=str(_field(data, "machineId", "machine_id")),
            status=_enum(MachineStatus, _field(data, "status"), "status"),
            temperature=_number(data, "temperature"),
            pressure=_number(data, "pressure"),
            water_level=_number(data, "waterLevel", "water_level"),
            milk_level=_number(data, "milkLevel", "milk_level"),
            coffee_beans_level=_number(data, "coffeeBeansLevel", "coffee_beans_level"),
            sugar_level=_number(data, "sugarLevel", "sugar_level"),
            power_usage=_number(data, "powerUsage", "power_usage", default=0.0),
            current_order=str(order) if order is not None else None,
            queue_length=_number(data, "queueLength", "queue_length", cast=int, default=0),
        )


@dataclass(frozen=True)
class UsageUpdate:
    """Daily usage figures for one machine."""

    machine_id: str
    cups_today: int
    revenue: float
    last_activity: str = "Just now"

    kind = MessageKind.USAGE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "machineId": self.machine_id,
            "cupsToday": self.cups_today,
            "revenue": self.revenue,
            "lastActivity": self.last_activity,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UsageUpdate":
        if not isinstance(data, dict):
            raise PayloadError(f"usage payload must be a mapping, got {type(data).__name__}")
        return cls(
            machine_id=str(_field(data, "machineId", "machine_id")),
            cups_today=_number(data, "cupsToday", "cups_today", cast=int),
            revenue=_number(data, "revenue"),
            last_activity=str(_field(data, "lastActivity", "last_activity", default="Just now")),
        )


@dataclass(frozen=True)
class AlertNotice:
    """Fleet-wide alert naming one machine and one supply."""

    machine_id: str
    supply: SupplyType
    level: int
    message: str = "Supply level is critically low"
    alert_type: str = "low_supply"

    kind = MessageKind.ALERT

    def __post_init__(self):
        if not isinstance(self.supply, SupplyType):
            object.__setattr__(self, "supply", _enum(SupplyType, self.supply, "supply"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.alert_type,
            "machineId": self.machine_id,
            "supply": self.supply.value,
            "level": self.level,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlertNotice":
        if not isinstance(data, dict):
            raise PayloadError(f"alert payload must be a mapping, got {type(data).__name__}")
        return cls(
            machine_id=str(_field(data, "machineId", "machine_id")),
            supply=_enum(SupplyType, _field(data, "supply"), "supply"),
            level=_number(data, "level", cast=int),
            message=str(_field(data, "message", default="Supply level is critically low")),
            alert_type=str(_field(data, "type", "alert_type", default="low_supply")),
        )


Payload = Union[StatusUpdate, UsageUpdate, AlertNotice]

PAYLOAD_TYPES = {
    MessageKind.STATUS: StatusUpdate,
    MessageKind.USAGE: UsageUpdate,
    MessageKind.ALERT: AlertNotice,
}


def parse_payload(kind: Union[MessageKind, str], data: Dict[str, Any]) -> Payload:
    """Validate a plain dict into the payload type for ``kind``."""
    kind = _enum(MessageKind, kind, "kind")
    return PAYLOAD_TYPES[kind].from_dict(data)


def coerce_payload(payload: Any, expected: Iterable[MessageKind]) -> Payload:
    """Return ``payload`` as a typed payload of one of the ``expected`` kinds.

    Typed payloads pass through; dicts are tried against each expected kind
    in order. Anything else raises PayloadError.
    """
    expected = tuple(expected)
    if getattr(payload, "kind", None) in expected:
        return payload
    if isinstance(payload, dict):
        errors = []
        for kind in expected:
            try:
                return parse_payload(kind, payload)
            except PayloadError as e:
                errors.append(f"{kind.value}: {e}")
        raise PayloadError("; ".join(errors))
    names = ", ".join(kind.value for kind in expected)
    raise PayloadError(f"expected {names} payload, got {type(payload).__name__}")


@dataclass(frozen=True)
class Message:
    """Envelope delivered to subscribers."""

    topic: str
    payload: Any
    timestamp: int  # milliseconds since epoch

    @property
    def kind(self) -> Optional[MessageKind]:
        return getattr(self.payload, "kind", None)

    def to_dict(self) -> Dict[str, Any]:
        payload = self.payload.to_dict() if hasattr(self.payload, "to_dict") else self.payload
        return {
            "topic": self.topic,
            "timestamp": self.timestamp,
            "kind": self.kind.value if self.kind else None,
            "payload": payload,
        }
