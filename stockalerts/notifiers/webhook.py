"""HTTP webhook notifier."""

from typing import Optional

import requests

from stockalerts.errors import NotifierError
from stockalerts.models import AlertDefinition, EvaluationOutcome
from stockalerts.notifiers.base import BaseNotifier, format_subject


class WebhookNotifier(BaseNotifier):
    """POSTs fired alerts as JSON to a webhook URL."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        if not url:
            raise ValueError("Webhook URL is required")
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()

    def build_payload(
        self, definition: AlertDefinition, outcome: EvaluationOutcome
    ) -> dict:
        return {
            "text": f"{format_subject(definition)} ({outcome.reason})",
            "alert": definition.model_dump(mode="json"),
            "outcome": outcome.model_dump(mode="json"),
        }

    def notify(self, definition: AlertDefinition, outcome: EvaluationOutcome) -> None:
        try:
            response = self._session.post(
                self.url,
                json=self.build_payload(definition, outcome),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise NotifierError(f"Webhook for alert {definition.id} failed: {exc}") from exc
        if not 200 <= response.status_code < 300:
            raise NotifierError(
                f"Webhook for alert {definition.id} returned HTTP {response.status_code}"
            )
