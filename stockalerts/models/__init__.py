"""Data models for StockAlerts."""

from stockalerts.models.alert import (
    AlertDefinition,
    AlertRequest,
    AlertType,
    validate_request,
)
from stockalerts.models.outcome import (
    EvaluationOutcome,
    OutcomeStatus,
    PassReport,
    PassState,
)
from stockalerts.models.snapshot import MarketSnapshot

__all__ = [
    "AlertDefinition",
    "AlertRequest",
    "AlertType",
    "EvaluationOutcome",
    "MarketSnapshot",
    "OutcomeStatus",
    "PassReport",
    "PassState",
    "validate_request",
]
