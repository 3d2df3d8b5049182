"""Simulation driver publishing synthetic fleet telemetry on a fixed interval.

Per tick, for every configured machine:

- a status update on ``{prefix}/{machine_id}/status``
- with ``usage_probability``, a usage update on ``{prefix}/{machine_id}/usage``

and then, with ``alert_probability``, one low-supply alert on the alerts topic.
"""

import logging
import threading
from typing import TYPE_CHECKING, List, Optional

from .config import Config
from .generators import TelemetryGenerator
from .scheduler import Scheduler, TimerHandle
from .topics import Topics

if TYPE_CHECKING:
    from .client import FleetClient

logger = logging.getLogger(__name__)


class SimulationDriver:
    """Drives periodic telemetry through a client's publish()."""

    def __init__(
        self,
        client: "FleetClient",
        scheduler: Scheduler,
        config: Config,
        generator: Optional[TelemetryGenerator] = None,
    ):
        self._client = client
        self._scheduler = scheduler
        self.config = config
        self.topics = Topics(config.topics)
        self.generator = generator or TelemetryGenerator(config.simulation)
        self.machine_ids: List[str] = list(config.machine_ids)

        self._lock = threading.Lock()
        self._running = False
        self._handle: Optional[TimerHandle] = None
        self._tick_count = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def interval(self) -> float:
        return self.config.simulation.tick_interval_ms / 1000.0

    def start(self) -> None:
        """Start the tick timer. No effect if already running."""
        with self._lock:
            if self._running:
                return
            self._running = True
            self._handle = self._scheduler.call_every(self.interval, self._on_timer)
        logger.info(
            f"Simulation started: {len(self.machine_ids)} machines every {self.interval:g}s"
        )

    def stop(self) -> None:
        """Stop the tick timer. No effect if not running.

        Blocks until an in-flight tick on the timer thread has finished, so no
        publish happens after this returns.
        """
        with self._lock:
            if not self._running:
                return
            self._running = False
            handle, self._handle = self._handle, None
        # Cancel outside our lock: the timer thread holds the handle lock
        # while it waits for ours in _on_timer.
        if handle:
            handle.cancel()
        logger.info(f"Simulation stopped after {self._tick_count} ticks")

    def _on_timer(self) -> None:
        with self._lock:
            if not self._running:
                return
        self.tick()

    def tick(self) -> int:
        """Execute one simulation tick. Returns the number of messages accepted."""
        self._tick_count += 1
        gen = self.generator
        published = 0

        for machine_id in self.machine_ids:
            status = gen.status_update(machine_id)
            published += self._client.publish(self.topics.status(machine_id), status)

            if gen.should_publish_usage():
                usage = gen.usage_update(machine_id)
                published += self._client.publish(self.topics.usage(machine_id), usage)

        if self.machine_ids and gen.should_publish_alert():
            alert = gen.alert(self.machine_ids)
            logger.info(
                f"Alert: {alert.machine_id} {alert.supply.value} at {alert.level}%"
            )
            published += self._client.publish(self.topics.alerts, alert)

        return published
