"""Tests for notification channels.

**Feature: stock-alerts**
"""

import smtplib
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
import requests

from stockalerts.errors import NotifierError
from stockalerts.models import AlertDefinition, EvaluationOutcome, OutcomeStatus
from stockalerts.notifiers import (
    EmailNotifier,
    LogNotifier,
    WebhookNotifier,
    format_body,
    format_subject,
)


@pytest.fixture
def fired():
    alert = AlertDefinition(
        id=7,
        email="trader@example.com",
        symbol="AAPL",
        alert_type="price_above",
        condition_value=100,
    )
    outcome = EvaluationOutcome(
        alert_id=7,
        symbol="AAPL",
        status=OutcomeStatus.FIRED,
        reason="price 101.5 > 100",
        timestamp=datetime(2024, 1, 2, 15, 30),
    )
    return alert, outcome


class TestFormatting:
    def test_subject_and_body(self, fired):
        alert, outcome = fired
        assert format_subject(alert) == "Stock alert: AAPL price above 100"
        body = format_body(alert, outcome)
        assert "#7" in body
        assert "price 101.5 > 100" in body
        assert "2024-01-02 15:30:00" in body


class TestEmailNotifier:
    def test_sends_message(self, fired):
        alert, outcome = fired
        with patch("stockalerts.notifiers.smtp.smtplib.SMTP") as mock_smtp:
            smtp = MagicMock()
            mock_smtp.return_value.__enter__.return_value = smtp

            notifier = EmailNotifier(
                "smtp.example.com", port=2525, from_address="bot@example.com",
                username="bot", password="secret",
            )
            notifier.notify(alert, outcome)

        mock_smtp.assert_called_once_with("smtp.example.com", 2525, timeout=10.0)
        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("bot", "secret")
        message = smtp.send_message.call_args[0][0]
        assert message["To"] == "trader@example.com"
        assert message["From"] == "bot@example.com"
        assert "AAPL" in message["Subject"]

    def test_no_tls_no_login(self, fired):
        alert, outcome = fired
        with patch("stockalerts.notifiers.smtp.smtplib.SMTP") as mock_smtp:
            smtp = MagicMock()
            mock_smtp.return_value.__enter__.return_value = smtp
            EmailNotifier("localhost", port=25, starttls=False).notify(alert, outcome)

        smtp.starttls.assert_not_called()
        smtp.login.assert_not_called()
        smtp.send_message.assert_called_once()

    def test_smtp_failure_raises_notifier_error(self, fired):
        alert, outcome = fired
        with patch("stockalerts.notifiers.smtp.smtplib.SMTP") as mock_smtp:
            smtp = MagicMock()
            smtp.send_message.side_effect = smtplib.SMTPRecipientsRefused({})
            mock_smtp.return_value.__enter__.return_value = smtp
            with pytest.raises(NotifierError):
                EmailNotifier("localhost").notify(alert, outcome)

    def test_connection_failure_raises_notifier_error(self, fired):
        alert, outcome = fired
        with patch("stockalerts.notifiers.smtp.smtplib.SMTP") as mock_smtp:
            mock_smtp.side_effect = ConnectionRefusedError("refused")
            with pytest.raises(NotifierError):
                EmailNotifier("localhost").notify(alert, outcome)

    def test_requires_host(self):
        with pytest.raises(ValueError):
            EmailNotifier("")


class TestWebhookNotifier:
    def test_posts_json(self, fired):
        alert, outcome = fired
        session = MagicMock()
        session.post.return_value = MagicMock(status_code=204)

        WebhookNotifier("https://hooks.example.com/x", session=session).notify(alert, outcome)

        args, kwargs = session.post.call_args
        assert args[0] == "https://hooks.example.com/x"
        assert kwargs["json"]["alert"]["id"] == 7
        assert kwargs["json"]["alert"]["alert_type"] == "price_above"
        assert kwargs["json"]["outcome"]["status"] == "fired"
        assert kwargs["json"]["outcome"]["fired"] is True
        assert "AAPL" in kwargs["json"]["text"]

    def test_http_error_raises(self, fired):
        alert, outcome = fired
        session = MagicMock()
        session.post.return_value = MagicMock(status_code=500)
        with pytest.raises(NotifierError, match="HTTP 500"):
            WebhookNotifier("https://hooks.example.com/x", session=session).notify(alert, outcome)

    def test_request_exception_raises(self, fired):
        alert, outcome = fired
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("down")
        with pytest.raises(NotifierError):
            WebhookNotifier("https://hooks.example.com/x", session=session).notify(alert, outcome)


class TestLogNotifier:
    def test_records_and_logs(self, fired, caplog):
        alert, outcome = fired
        notifier = LogNotifier()
        with caplog.at_level("INFO", logger="stockalerts.notifiers.log"):
            notifier.notify(alert, outcome)
        assert notifier.sent == [(7, "price 101.5 > 100")]
        assert "trader@example.com" in caplog.text
