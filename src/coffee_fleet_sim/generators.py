"""Synthetic telemetry generators for the coffee machine fleet.

Values are drawn independently every tick within fixed bands; there is no
physical model linking one tick to the next.

Bands:
    temperature        88-96 C
    pressure           13-17 bar
    water level        50-100 %
    milk level         30-100 %
    coffee beans level 40-100 %
    sugar level        60-100 %
    power usage        70-90 %
    queue length       0-4
"""

import random
from typing import Optional, Sequence

from .config import SimulationConfig
from .messages import (
    AlertNotice,
    MachineStatus,
    StatusUpdate,
    SupplyType,
    UsageUpdate,
)

DRINKS = ["Espresso", "Latte", "Cappuccino"]
SUPPLIES = list(SupplyType)

TEMPERATURE_RANGE = (88.0, 96.0)
PRESSURE_RANGE = (13.0, 17.0)
POWER_USAGE_RANGE = (70.0, 90.0)
SUPPLY_RANGES = {
    SupplyType.WATER: (50.0, 100.0),
    SupplyType.MILK: (30.0, 100.0),
    SupplyType.COFFEE_BEANS: (40.0, 100.0),
    SupplyType.SUGAR: (60.0, 100.0),
}
MAX_QUEUE_LENGTH = 4
CUPS_RANGE = (100, 149)
REVENUE_RANGE = (300, 499)
ALERT_LEVEL_RANGE = (0, 19)


class TelemetryGenerator:
    """Generates status, usage and alert payloads."""

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or SimulationConfig()
        self.rng = rng or random.Random(self.config.random_seed)

    def _uniform(self, bounds) -> float:
        low, high = bounds
        return round(self.rng.uniform(low, high), 2)

    def status_update(self, machine_id: str) -> StatusUpdate:
        rng = self.rng
        if rng.random() < self.config.maintenance_probability:
            status = MachineStatus.MAINTENANCE
        else:
            status = MachineStatus.OPERATIONAL

        current_order = None
        if rng.random() < self.config.order_probability:
            current_order = rng.choice(DRINKS)

        return StatusUpdate(
            machine_id=machine_id,
            status=status,
            temperature=self._uniform(TEMPERATURE_RANGE),
            pressure=self._uniform(PRESSURE_RANGE),
            water_level=self._uniform(SUPPLY_RANGES[SupplyType.WATER]),
            milk_level=self._uniform(SUPPLY_RANGES[SupplyType.MILK]),
            coffee_beans_level=self._uniform(SUPPLY_RANGES[SupplyType.COFFEE_BEANS]),
            sugar_level=self._uniform(SUPPLY_RANGES[SupplyType.SUGAR]),
            power_usage=self._uniform(POWER_USAGE_RANGE),
            current_order=current_order,
            queue_length=rng.randint(0, MAX_QUEUE_LENGTH),
        )

    def should_publish_usage(self) -> bool:
        return self.rng.random() < self.config.usage_probability

    def usage_update(self, machine_id: str) -> UsageUpdate:
        return UsageUpdate(
            machine_id=machine_id,
            cups_today=self.rng.randint(*CUPS_RANGE),
            revenue=float(self.rng.randint(*REVENUE_RANGE)),
            last_activity="Just now",
        )

    def should_publish_alert(self) -> bool:
        return self.rng.random() < self.config.alert_probability

    def alert(self, machine_ids: Sequence[str]) -> AlertNotice:
        """Low-supply alert for a random machine and supply."""
        return AlertNotice(
            machine_id=self.rng.choice(list(machine_ids)),
            supply=self.rng.choice(SUPPLIES),
            level=self.rng.randint(*ALERT_LEVEL_RANGE),
        )
