"""Topic registry mapping topic strings to ordered subscriber callbacks."""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

Callback = Callable[[Any], None]


class Subscription:
    """Handle for one registration; dispose() removes exactly that registration."""

    def __init__(self, registry: "TopicRegistry", topic: str, callback: Callback):
        self._registry = registry
        self.topic = topic
        self.callback = callback
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._registry._remove(self)

    close = dispose

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"<Subscription {self.topic!r} {state}>"


class TopicRegistry:
    """Ordered subscriber lists per exact topic.

    Mutation and snapshotting share one lock so a publish running on the
    simulation thread never observes a half-updated list.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subs: Dict[str, List[Subscription]] = {}

    def subscribe(self, topic: str, callback: Callback) -> Subscription:
        """Register ``callback`` under ``topic``. Duplicates are kept."""
        sub = Subscription(self, topic, callback)
        with self._lock:
            self._subs.setdefault(topic, []).append(sub)
        logger.debug(f"Subscribed to topic: {topic}")
        return sub

    def unsubscribe(self, topic: str, callback: Callback) -> bool:
        """Remove the first registration of ``callback`` for ``topic``.

        Returns False when nothing matched.
        """
        with self._lock:
            subs = self._subs.get(topic)
            if not subs:
                return False
            for index, sub in enumerate(subs):
                if sub.callback == callback:
                    del subs[index]
                    sub._disposed = True
                    break
            else:
                return False
            if not subs:
                del self._subs[topic]
        logger.debug(f"Unsubscribed from topic: {topic}")
        return True

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subs.get(sub.topic)
            if not subs:
                return
            for index, existing in enumerate(subs):
                if existing is sub:
                    del subs[index]
                    break
            if not subs:
                del self._subs[sub.topic]

    def subscribers(self, topic: str) -> Tuple[Callback, ...]:
        """Snapshot of callbacks for ``topic`` in registration order."""
        with self._lock:
            return tuple(sub.callback for sub in self._subs.get(topic, ()))

    def topics(self) -> List[str]:
        with self._lock:
            return list(self._subs)

    def subscriber_count(self, topic: Optional[str] = None) -> int:
        with self._lock:
            if topic is not None:
                return len(self._subs.get(topic, ()))
            return sum(len(subs) for subs in self._subs.values())

    def clear(self) -> None:
        """Drop every registration (useful for testing)."""
        with self._lock:
            for subs in self._subs.values():
                for sub in subs:
                    sub._disposed = True
            self._subs.clear()
