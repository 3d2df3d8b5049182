"""Topic naming convention.

Topic Structure:
    {prefix}/{machine_id}/status   - per-machine status updates
    {prefix}/{machine_id}/usage    - per-machine usage updates
    {alerts_topic}                 - fleet-wide alerts

With the defaults that is ``coffee/machines/A-001/status`` and
``coffee/alerts``, the strings the dashboard UI subscribes to.
"""

from typing import List, Optional

from paho.mqtt.client import topic_matches_sub

from .config import TopicConfig
from .messages import MessageKind


class Topics:
    """Builds topic strings for one topic configuration."""

    def __init__(self, config: Optional[TopicConfig] = None):
        self.config = config or TopicConfig()

    @property
    def prefix(self) -> str:
        return self.config.prefix.rstrip("/")

    @property
    def alerts(self) -> str:
        return self.config.alerts_topic

    def status(self, machine_id: str) -> str:
        return f"{self.prefix}/{machine_id}/{MessageKind.STATUS.value}"

    def usage(self, machine_id: str) -> str:
        return f"{self.prefix}/{machine_id}/{MessageKind.USAGE.value}"

    def for_machine(self, machine_id: str) -> List[str]:
        return [self.status(machine_id), self.usage(machine_id)]

    def all_topics(self, machine_ids: List[str]) -> List[str]:
        """Every topic the simulator can publish to for the given fleet."""
        topics = []
        for machine_id in machine_ids:
            topics.extend(self.for_machine(machine_id))
        topics.append(self.alerts)
        return topics

    @staticmethod
    def matches(topic_filter: str, topic: str) -> bool:
        """MQTT wildcard match (``+`` single level, ``#`` multi level)."""
        return topic_matches_sub(topic_filter, topic)
