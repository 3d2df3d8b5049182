"""Lifetime-scoped subscriptions for dashboard consumers.

A ``SubscriptionBinding`` ties one (topic, callback) registration to a
consumer's active period. It subscribes exactly once on ``activate()``,
disposes exactly once on ``deactivate()``, and when rebound while active it
removes the old registration before adding the new one, so repeated
activate/deactivate cycles never leak or duplicate deliveries.

Example::

    binding = client.bind("coffee/machines/A-001/status", panel.on_status)
    with binding:
        ...  # panel receives updates here
"""

import logging
import threading
from typing import Any, Callable, Optional

from .registry import Callback, Subscription

logger = logging.getLogger(__name__)


class SubscriptionBinding:
    """Bind a subscription's lifetime to a consumer's active lifetime.

    ``source`` is anything with ``subscribe(topic, callback) -> Subscription``,
    usually a FleetClient or a TopicRegistry.
    """

    def __init__(
        self,
        source: Any,
        topic: Optional[str] = None,
        callback: Optional[Callback] = None,
    ):
        self._source = source
        self._topic = topic
        self._callback = callback
        self._subscription: Optional[Subscription] = None
        self._active = False
        self._lock = threading.RLock()

    @property
    def topic(self) -> Optional[str]:
        return self._topic

    @property
    def callback(self) -> Optional[Callable[[Any], None]]:
        return self._callback

    @property
    def active(self) -> bool:
        return self._active

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None and not self._subscription.disposed

    def bind(self, topic: str, callback: Callback) -> "SubscriptionBinding":
        """Set the target. If active and the target changed, resubscribe."""
        with self._lock:
            if topic == self._topic and callback == self._callback:
                return self
            self._topic = topic
            self._callback = callback
            if self._active:
                self._release()
                self._acquire()
        return self

    def activate(self) -> "SubscriptionBinding":
        with self._lock:
            if self._active:
                return self
            self._active = True
            self._acquire()
        return self

    def deactivate(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
            self._release()

    def _acquire(self) -> None:
        if self._topic is None or self._callback is None:
            logger.debug("Binding activated without a target; nothing subscribed")
            return
        self._subscription = self._source.subscribe(self._topic, self._callback)

    def _release(self) -> None:
        sub, self._subscription = self._subscription, None
        if sub is not None:
            sub.dispose()

    def __enter__(self) -> "SubscriptionBinding":
        return self.activate()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.deactivate()

    def __repr__(self) -> str:
        state = "active" if self._active else "inactive"
        return f"<SubscriptionBinding {self._topic!r} {state}>"
