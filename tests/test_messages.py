"""Tests for message payloads and the envelope."""

import dataclasses

import pytest

from coffee_fleet_sim.errors import PayloadError
from coffee_fleet_sim.messages import (
    AlertNotice,
    MachineStatus,
    Message,
    MessageKind,
    StatusUpdate,
    SupplyType,
    UsageUpdate,
    coerce_payload,
    parse_payload,
)


def make_status(**overrides):
    values = dict(
        machine_id="A-001",
        status=MachineStatus.OPERATIONAL,
        temperature=92.5,
        pressure=15.0,
        water_level=80.0,
        milk_level=60.0,
        coffee_beans_level=70.0,
        sugar_level=90.0,
        power_usage=75.0,
        current_order="Latte",
        queue_length=2,
    )
    values.update(overrides)
    return StatusUpdate(**values)


class TestStatusUpdate:
    """Tests for StatusUpdate."""

    def test_levels_are_clamped(self):
        status = make_status(water_level=-5, milk_level=130.0, power_usage=101)

        assert status.water_level == 0.0
        assert status.milk_level == 100.0
        assert status.power_usage == 100.0

    def test_negative_queue_clamped(self):
        assert make_status(queue_length=-3).queue_length == 0

    def test_status_string_coerced(self):
        assert make_status(status="maintenance").status is MachineStatus.MAINTENANCE

    def test_invalid_status_rejected(self):
        with pytest.raises(PayloadError):
            make_status(status="broken")

    def test_is_frozen(self):
        status = make_status()
        with pytest.raises(dataclasses.FrozenInstanceError):
            status.water_level = 10.0

    def test_to_dict_uses_ui_field_names(self):
        data = make_status().to_dict()

        assert data == {
            "machineId": "A-001",
            "status": "operational",
            "temperature": 92.5,
            "pressure": 15.0,
            "waterLevel": 80.0,
            "milkLevel": 60.0,
            "coffeeBeansLevel": 70.0,
            "sugarLevel": 90.0,
            "powerUsage": 75.0,
            "currentOrder": "Latte",
            "queueLength": 2,
        }

    def test_from_dict_accepts_snake_case(self):
        status = StatusUpdate.from_dict(
            {
                "machine_id": "B-001",
                "status": "offline",
                "temperature": "90",
                "pressure": 14,
                "water_level": 10,
                "milk_level": 20,
                "coffee_beans_level": 30,
                "sugar_level": 40,
            }
        )

        assert status.machine_id == "B-001"
        assert status.status is MachineStatus.OFFLINE
        assert status.temperature == 90.0
        assert status.current_order is None
        assert status.queue_length == 0

    def test_from_dict_missing_field(self):
        data = make_status().to_dict()
        del data["pressure"]

        with pytest.raises(PayloadError, match="pressure"):
            StatusUpdate.from_dict(data)

    def test_from_dict_non_numeric(self):
        data = make_status().to_dict()
        data["temperature"] = "hot"

        with pytest.raises(PayloadError, match="temperature"):
            StatusUpdate.from_dict(data)

    def test_supply_level_lookup(self):
        status = make_status()

        assert status.supply_level(SupplyType.COFFEE_BEANS) == 70.0
        assert status.supply_level(SupplyType.SUGAR) == 90.0


class TestUsageAndAlert:
    """Tests for UsageUpdate and AlertNotice."""

    def test_usage_to_dict(self):
        usage = UsageUpdate(machine_id="A-001", cups_today=120, revenue=350.0)

        assert usage.to_dict() == {
            "machineId": "A-001",
            "cupsToday": 120,
            "revenue": 350.0,
            "lastActivity": "Just now",
        }

    def test_alert_to_dict(self):
        alert = AlertNotice(machine_id="B-001", supply=SupplyType.MILK, level=5)

        assert alert.to_dict() == {
            "type": "low_supply",
            "machineId": "B-001",
            "supply": "milk",
            "level": 5,
            "message": "Supply level is critically low",
        }

    def test_alert_supply_string_coerced(self):
        alert = AlertNotice(machine_id="B-001", supply="coffee_beans", level=5)

        assert alert.supply is SupplyType.COFFEE_BEANS

    def test_alert_unknown_supply(self):
        with pytest.raises(PayloadError, match="supply"):
            AlertNotice.from_dict({"machineId": "B-001", "supply": "cream", "level": 1})

    def test_kinds(self):
        assert UsageUpdate.kind is MessageKind.USAGE
        assert AlertNotice.kind is MessageKind.ALERT
        assert make_status().kind is MessageKind.STATUS


class TestParsing:
    """Tests for parse_payload and coerce_payload."""

    def test_parse_by_kind(self):
        payload = parse_payload("usage", {"machineId": "A", "cupsToday": 1, "revenue": 2})

        assert isinstance(payload, UsageUpdate)

    def test_parse_unknown_kind(self):
        with pytest.raises(PayloadError):
            parse_payload("telemetry", {})

    def test_coerce_passes_typed_payload_through(self):
        status = make_status()

        assert coerce_payload(status, [MessageKind.STATUS]) is status

    def test_coerce_rejects_wrong_kind(self):
        usage = UsageUpdate(machine_id="A", cups_today=1, revenue=1.0)

        with pytest.raises(PayloadError):
            coerce_payload(usage, [MessageKind.STATUS])

    def test_coerce_dict(self):
        alert = coerce_payload(
            {"machineId": "A", "supply": "water", "level": 3}, [MessageKind.ALERT]
        )

        assert alert == AlertNotice(machine_id="A", supply=SupplyType.WATER, level=3)

    def test_coerce_rejects_other_types(self):
        with pytest.raises(PayloadError, match="status"):
            coerce_payload("hello", [MessageKind.STATUS])


class TestMessage:
    """Tests for the Message envelope."""

    def test_kind_from_payload(self):
        assert Message("t", make_status(), 1).kind is MessageKind.STATUS
        assert Message("t", {"raw": True}, 1).kind is None

    def test_to_dict(self):
        message = Message("coffee/alerts", AlertNotice("A", SupplyType.SUGAR, 2), 1234)

        assert message.to_dict() == {
            "topic": "coffee/alerts",
            "timestamp": 1234,
            "kind": "alert",
            "payload": {
                "type": "low_supply",
                "machineId": "A",
                "supply": "sugar",
                "level": 2,
                "message": "Supply level is critically low",
            },
        }

    def test_to_dict_untyped_payload(self):
        assert Message("t", {"x": 1}, 5).to_dict()["payload"] == {"x": 1}
