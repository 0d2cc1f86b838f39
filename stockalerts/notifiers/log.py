"""Notifier that only writes to the log."""

import logging

from stockalerts.models import AlertDefinition, EvaluationOutcome
from stockalerts.notifiers.base import BaseNotifier, format_subject

logger = logging.getLogger(__name__)


class LogNotifier(BaseNotifier):
    """Logs fired alerts. Used when no delivery channel is configured."""

    def __init__(self):
        self.sent: list[tuple[int, str]] = []

    def notify(self, definition: AlertDefinition, outcome: EvaluationOutcome) -> None:
        logger.info(
            "%s -> %s (%s)", format_subject(definition), definition.email, outcome.reason
        )
        self.sent.append((definition.id, outcome.reason))
