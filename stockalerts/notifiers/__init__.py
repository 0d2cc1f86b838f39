"""Notification channels for StockAlerts."""

from stockalerts.notifiers.base import BaseNotifier, format_body, format_subject
from stockalerts.notifiers.smtp import EmailNotifier
from stockalerts.notifiers.log import LogNotifier
from stockalerts.notifiers.webhook import WebhookNotifier

__all__ = [
    "BaseNotifier",
    "EmailNotifier",
    "LogNotifier",
    "WebhookNotifier",
    "format_body",
    "format_subject",
]
