"""In-process MQTT-style client: topic registry, publisher and connection lifecycle.

Nothing here touches a network. ``connect()`` simulates the broker handshake
with a fixed delay, then starts the simulation driver; ``publish()`` delivers
synchronously to the local subscribers of the exact topic.

The client is an ordinary object: build one in the application's composition
root and hand it to whatever needs it.
"""

import logging
import random
import threading
from concurrent.futures import Future
from enum import Enum
from typing import Any, Dict, Optional

from .binding import SubscriptionBinding
from .config import Config
from .generators import TelemetryGenerator
from .messages import Message
from .registry import Callback, Subscription, TopicRegistry
from .scheduler import Scheduler, ThreadScheduler, TimerHandle
from .simulator import SimulationDriver
from .topics import Topics

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Connection lifecycle states."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class FleetClient:
    """Simulated broker client for the coffee fleet dashboard."""

    def __init__(
        self,
        config: Optional[Config] = None,
        scheduler: Optional[Scheduler] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or Config.default()
        self.scheduler = scheduler or ThreadScheduler()
        self.topics = Topics(self.config.topics)
        self.registry = TopicRegistry()

        generator = TelemetryGenerator(self.config.simulation, rng=rng)
        self.driver = SimulationDriver(self, self.scheduler, self.config, generator)

        # Reentrant: done-callbacks of the connect future run under it and may
        # call back into connect() or disconnect().
        self._lock = threading.RLock()
        self._state = ConnectionState.DISCONNECTED
        self._connect_future: Optional["Future[bool]"] = None
        self._connect_handle: Optional[TimerHandle] = None
        self._last_timestamp = 0

        # Stats, guarded by _stats_lock
        self._stats_lock = threading.Lock()
        self._messages_published = 0
        self._messages_rejected = 0
        self._handler_errors = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def client_id(self) -> str:
        return self.config.connection.client_id

    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    def connect(self) -> "Future[bool]":
        """Connect to the simulated broker.

        Returns a future resolving to True once connected. Calling again while
        connected returns an already-resolved future; calling while a connect
        is pending returns that same pending future.
        """
        with self._lock:
            if self._state is ConnectionState.CONNECTED:
                done: "Future[bool]" = Future()
                done.set_result(True)
                return done
            if self._state is ConnectionState.CONNECTING and self._connect_future:
                return self._connect_future

            self._state = ConnectionState.CONNECTING
            future: "Future[bool]" = Future()
            self._connect_future = future
            logger.info(f"Connecting to broker as {self.client_id}...")
            delay = self.config.connection.connect_delay_ms / 1000.0
            self._connect_handle = self.scheduler.call_later(
                delay, lambda: self._complete_connect(future)
            )
        return future

    def _complete_connect(self, future: "Future[bool]") -> None:
        with self._lock:
            if self._connect_future is not future or self._state is not ConnectionState.CONNECTING:
                return
            self._state = ConnectionState.CONNECTED
            self._connect_future = None
            self._connect_handle = None
            self.driver.start()
            logger.info("Connected to broker")
            # A concurrent disconnect() waits until the future is resolved
            if not future.done():
                future.set_result(True)

    def disconnect(self) -> None:
        """Stop the simulation and disconnect. Safe to call in any state."""
        with self._lock:
            previous = self._state
            self._state = ConnectionState.DISCONNECTED
            pending, self._connect_future = self._connect_future, None
            handle, self._connect_handle = self._connect_handle, None

        if handle:
            handle.cancel()
        self.driver.stop()
        if pending and not pending.done():
            pending.set_result(False)

        if previous is not ConnectionState.DISCONNECTED:
            logger.info("Disconnected from broker")

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self, topic: str, callback: Callback) -> Subscription:
        """Register ``callback`` for messages on exactly ``topic``."""
        sub = self.registry.subscribe(topic, callback)
        logger.info(f"Subscribed to topic: {topic}")
        return sub

    def unsubscribe(self, topic: str, callback: Callback) -> None:
        """Remove the first registration of ``callback``; unknown is a no-op."""
        self.registry.unsubscribe(topic, callback)

    def bind(self, topic: str, callback: Callback) -> SubscriptionBinding:
        """Create an inactive binding for a consumer's lifetime."""
        return SubscriptionBinding(self, topic, callback)

    # =========================================================================
    # Publishing
    # =========================================================================

    def publish(self, topic: str, payload: Any) -> bool:
        """Deliver ``payload`` to the current subscribers of ``topic``.

        Returns False (after logging a warning) when not connected. A failing
        subscriber is logged and skipped; the rest still receive the message.
        """
        if self._state is not ConnectionState.CONNECTED:
            with self._stats_lock:
                self._messages_rejected += 1
            logger.warning(f"Cannot publish to {topic} - not connected to broker")
            return False

        message = Message(topic=topic, payload=payload, timestamp=self._next_timestamp())
        logger.debug(f"Publishing to {topic}: {message.kind}")
        with self._stats_lock:
            self._messages_published += 1

        for callback in self.registry.subscribers(topic):
            try:
                callback(message)
            except Exception as e:
                with self._stats_lock:
                    self._handler_errors += 1
                logger.exception(f"Error in message handler for {topic}: {e}")

        return True

    def _next_timestamp(self) -> int:
        # Never goes backwards even if the wall clock does
        with self._lock:
            now = int(self.scheduler.now() * 1000)
            self._last_timestamp = max(self._last_timestamp, now)
            return self._last_timestamp

    def stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            published = self._messages_published
            rejected = self._messages_rejected
            handler_errors = self._handler_errors
        return {
            "state": self._state.value,
            "messages_published": published,
            "messages_rejected": rejected,
            "handler_errors": handler_errors,
            "subscriptions": self.registry.subscriber_count(),
            "ticks": self.driver.tick_count,
        }
