"""Base notifier interface for StockAlerts."""

from abc import ABC, abstractmethod

from stockalerts.models import AlertDefinition, EvaluationOutcome


def format_subject(definition: AlertDefinition) -> str:
    return f"Stock alert: {definition.describe()}"


def format_body(definition: AlertDefinition, outcome: EvaluationOutcome) -> str:
    """Plain-text notification body."""
    return (
        f"Your alert #{definition.id} on {definition.symbol} has fired.\n\n"
        f"Condition: {definition.alert_type.label} {definition.condition_value:g}\n"
        f"Observed:  {outcome.reason}\n"
        f"Time:      {outcome.timestamp:%Y-%m-%d %H:%M:%S}\n\n"
        "The alert is now inactive. Create a new alert to keep watching this symbol."
    )


class BaseNotifier(ABC):
    """Abstract base class for alert notification channels."""

    @abstractmethod
    def notify(self, definition: AlertDefinition, outcome: EvaluationOutcome) -> None:
        """Tell the alert's owner that it fired.

        Args:
            definition: The alert that fired.
            outcome: The evaluation that fired it.

        Raises:
            NotifierError: If the message could not be delivered.
        """
        pass
