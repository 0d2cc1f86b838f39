"""Exception types for StockAlerts."""

from typing import Optional


class AlertsError(Exception):
    """Base class for all StockAlerts errors."""


class ValidationError(AlertsError):
    """An alert definition was rejected before it could be stored."""

    def __init__(self, message: str, problems: Optional[list[str]] = None):
        super().__init__(message)
        self.problems = problems or [message]


class DataUnavailableError(AlertsError):
    """Market data for a symbol is missing, incomplete or stale."""

    def __init__(self, symbol: str, message: str):
        super().__init__(f"{symbol}: {message}")
        self.symbol = symbol


class GatewayTimeoutError(DataUnavailableError):
    """A market data lookup did not finish in time."""


class StoreError(AlertsError):
    """The alert store could not complete an operation."""


class NotifierError(AlertsError):
    """A notification could not be delivered."""


class ConfigError(AlertsError):
    """The configuration file is malformed or holds invalid values."""
