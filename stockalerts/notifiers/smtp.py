"""SMTP email notifier."""

import smtplib
from email.message import EmailMessage
from typing import Optional

from stockalerts.errors import NotifierError
from stockalerts.models import AlertDefinition, EvaluationOutcome
from stockalerts.notifiers.base import BaseNotifier, format_body, format_subject


class EmailNotifier(BaseNotifier):
    """Sends fired alerts to the alert's email address over SMTP."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        from_address: str = "alerts@localhost",
        username: Optional[str] = None,
        password: Optional[str] = None,
        starttls: bool = True,
        timeout: float = 10.0,
    ):
        """Initialize the notifier.

        Args:
            host: SMTP server host.
            port: SMTP server port.
            from_address: Sender address.
            username: Optional SMTP login.
            password: Password for ``username``.
            starttls: Upgrade the connection with STARTTLS before sending.
            timeout: Socket timeout in seconds.
        """
        if not host:
            raise ValueError("SMTP host is required")
        self.host = host
        self.port = port
        self.from_address = from_address
        self.username = username
        self.password = password
        self.starttls = starttls
        self.timeout = timeout

    def build_message(
        self, definition: AlertDefinition, outcome: EvaluationOutcome
    ) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = format_subject(definition)
        message["From"] = self.from_address
        message["To"] = definition.email
        message.set_content(format_body(definition, outcome))
        return message

    def notify(self, definition: AlertDefinition, outcome: EvaluationOutcome) -> None:
        message = self.build_message(definition, outcome)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.starttls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password or "")
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotifierError(
                f"Email to {definition.email} for alert {definition.id} failed: {exc}"
            ) from exc
