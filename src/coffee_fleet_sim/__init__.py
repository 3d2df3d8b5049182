"""Coffee Fleet Simulator - in-process telemetry pub/sub for a coffee machine fleet."""

__version__ = "0.1.0"

from .binding import SubscriptionBinding
from .client import ConnectionState, FleetClient
from .config import Config
from .messages import AlertNotice, Message, MessageKind, StatusUpdate, UsageUpdate
from .monitor import FleetMonitor
from .scheduler import ManualScheduler, ThreadScheduler

__all__ = [
    "AlertNotice",
    "Config",
    "ConnectionState",
    "FleetClient",
    "FleetMonitor",
    "ManualScheduler",
    "Message",
    "MessageKind",
    "StatusUpdate",
    "SubscriptionBinding",
    "ThreadScheduler",
    "UsageUpdate",
    "__version__",
]
