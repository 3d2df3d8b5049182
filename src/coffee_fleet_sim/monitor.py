"""Fleet monitor: the dashboard's view of live telemetry.

Subscribes (through bindings) to every machine's status and usage topics and
to the alerts topic, and keeps:

- the latest status and usage per machine
- a bounded list of recent alerts (newest last)

Health bands follow the dashboard's colour coding:

    temperature  ok 90-96 C, warning 85-98 C, otherwise critical
    pressure     ok 14-16 bar, otherwise warning
"""

import logging
import threading
from collections import deque
from functools import partial
from dataclasses import dataclass
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Sequence

from .binding import SubscriptionBinding
from .errors import PayloadError
from .messages import (
    AlertNotice,
    MachineStatus,
    Message,
    MessageKind,
    StatusUpdate,
    SupplyType,
    UsageUpdate,
    coerce_payload,
)

logger = logging.getLogger(__name__)


class HealthBand(str, Enum):
    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"


def temperature_band(value: float) -> HealthBand:
    if 90.0 <= value <= 96.0:
        return HealthBand.OK
    if 85.0 <= value <= 98.0:
        return HealthBand.WARNING
    return HealthBand.CRITICAL


def pressure_band(value: float) -> HealthBand:
    if 14.0 <= value <= 16.0:
        return HealthBand.OK
    return HealthBand.WARNING


@dataclass
class MachineSnapshot:
    """Latest known telemetry for one machine."""

    machine_id: str
    status: Optional[StatusUpdate] = None
    usage: Optional[UsageUpdate] = None
    updated_at: Optional[int] = None

    @property
    def state(self) -> MachineStatus:
        if self.status is None:
            return MachineStatus.OFFLINE
        return self.status.status

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "machineId": self.machine_id,
            "state": self.state.value,
            "updatedAt": self.updated_at,
        }
        if self.status is not None:
            data.update(self.status.to_dict())
            data["temperatureBand"] = temperature_band(self.status.temperature).value
            data["pressureBand"] = pressure_band(self.status.pressure).value
        if self.usage is not None:
            data.update(self.usage.to_dict())
        return data


class FleetMonitor:
    """Maintains live snapshots for a set of machines."""

    def __init__(
        self,
        client,
        machine_ids: Optional[Sequence[str]] = None,
        alert_history: int = 50,
        low_supply_threshold: float = 20.0,
    ):
        self._client = client
        self.machine_ids: List[str] = list(
            machine_ids if machine_ids is not None else client.config.machine_ids
        )
        self.low_supply_threshold = low_supply_threshold
        self._lock = threading.Lock()
        self._snapshots: Dict[str, MachineSnapshot] = {
            machine_id: MachineSnapshot(machine_id) for machine_id in self.machine_ids
        }
        self._alerts: Deque[AlertNotice] = deque(maxlen=alert_history)
        self._invalid = 0

        topics = client.topics
        self._bindings: List[SubscriptionBinding] = []
        for machine_id in self.machine_ids:
            self._bindings.append(
                client.bind(topics.status(machine_id), partial(self._on_status, machine_id))
            )
            self._bindings.append(
                client.bind(topics.usage(machine_id), partial(self._on_usage, machine_id))
            )
        self._bindings.append(client.bind(topics.alerts, self._on_alert))

    @property
    def active(self) -> bool:
        return any(b.active for b in self._bindings)

    @property
    def invalid_messages(self) -> int:
        return self._invalid

    def start(self) -> "FleetMonitor":
        for binding in self._bindings:
            binding.activate()
        return self

    def stop(self) -> None:
        for binding in self._bindings:
            binding.deactivate()

    def __enter__(self) -> "FleetMonitor":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # =========================================================================
    # Message handlers
    # =========================================================================

    def _validate(self, message: Message, kind: MessageKind):
        try:
            return coerce_payload(message.payload, [kind])
        except PayloadError as e:
            self._reject(message, f"invalid {kind.value} payload: {e}")
            return None

    def _reject(self, message: Message, reason: str) -> None:
        with self._lock:
            self._invalid += 1
        logger.warning(f"Ignoring message on {message.topic}: {reason}")

    def _validate_for(self, machine_id: str, message: Message, kind: MessageKind):
        """Validate a per-machine payload against the machine its topic names."""
        payload = self._validate(message, kind)
        if payload is None:
            return None
        if payload.machine_id != machine_id:
            self._reject(
                message,
                f"{kind.value} payload names {payload.machine_id!r}, topic is for {machine_id!r}",
            )
            return None
        return payload

    def _on_status(self, machine_id: str, message: Message) -> None:
        status = self._validate_for(machine_id, message, MessageKind.STATUS)
        if status is None:
            return
        with self._lock:
            snapshot = self._snapshots[machine_id]
            snapshot.status = status
            snapshot.updated_at = message.timestamp

    def _on_usage(self, machine_id: str, message: Message) -> None:
        usage = self._validate_for(machine_id, message, MessageKind.USAGE)
        if usage is None:
            return
        with self._lock:
            snapshot = self._snapshots[machine_id]
            snapshot.usage = usage
            snapshot.updated_at = message.timestamp

    def _on_alert(self, message: Message) -> None:
        alert = self._validate(message, MessageKind.ALERT)
        if alert is None:
            return
        with self._lock:
            self._alerts.append(alert)

    # =========================================================================
    # Queries
    # =========================================================================

    def snapshot(self, machine_id: str) -> Optional[MachineSnapshot]:
        with self._lock:
            return self._snapshots.get(machine_id)

    def snapshots(self) -> List[MachineSnapshot]:
        with self._lock:
            return list(self._snapshots.values())

    def recent_alerts(self, limit: Optional[int] = None) -> List[AlertNotice]:
        with self._lock:
            alerts = list(self._alerts)
        if limit is not None:
            alerts = alerts[-limit:] if limit > 0 else []
        return alerts

    def low_supplies(self, machine_id: str) -> List[SupplyType]:
        """Supplies below the low-supply threshold in the latest status."""
        snapshot = self.snapshot(machine_id)
        if snapshot is None or snapshot.status is None:
            return []
        return [
            supply
            for supply in SupplyType
            if snapshot.status.supply_level(supply) < self.low_supply_threshold
        ]

    def summary(self) -> Dict[str, Any]:
        counts = {state.value: 0 for state in MachineStatus}
        for snapshot in self.snapshots():
            counts[snapshot.state.value] += 1
        return {
            "connection": self._client.state.value,
            "machines": len(self._snapshots),
            **counts,
            "alerts": len(self._alerts),
            "invalid_messages": self._invalid,
        }
