"""Exception types raised for invalid input.

The pub/sub runtime itself never raises these: delivery and connection
failures are logged instead.
"""


class FleetSimError(Exception):
    """Base class for all simulator errors."""


class ConfigError(FleetSimError, ValueError):
    """Configuration value out of range or malformed."""


class PayloadError(FleetSimError, ValueError):
    """Payload dict could not be validated into a typed message."""
