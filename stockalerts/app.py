"""Builds the StockAlerts services from a config dict.

Nothing here holds global state: every command builds its own AlertsApp
and passes the parts to each other explicitly.
"""

from datetime import timedelta
from pathlib import Path
from typing import Optional

from stockalerts.config import get_api_key, load_config
from stockalerts.db.store import AlertStore
from stockalerts.errors import ConfigError
from stockalerts.gateways import (
    AlphaVantageGateway,
    BaseGateway,
    FinnhubGateway,
    StaticGateway,
)
from stockalerts.notifiers import BaseNotifier, EmailNotifier, LogNotifier, WebhookNotifier
from stockalerts.runner import EvaluationRunner
from stockalerts.scheduler import AlertScheduler


def build_store(config: dict) -> AlertStore:
    return AlertStore(Path(config["alerts"]["db_path"]).expanduser())


def build_gateway(config: dict) -> BaseGateway:
    """Create the market data gateway named by ``gateway.provider``."""
    gateway_config = config["gateway"]
    provider = gateway_config["provider"]
    timeout = float(gateway_config["timeout_seconds"])
    max_workers = int(gateway_config["max_workers"])

    if provider == "static":
        return StaticGateway(timeout=timeout, max_workers=max_workers)

    api_key = get_api_key(config)
    if not api_key:
        raise ConfigError(f"No API key configured for gateway provider '{provider}'")
    if provider == "finnhub":
        return FinnhubGateway(api_key, timeout=timeout, max_workers=max_workers)
    return AlphaVantageGateway(api_key, timeout=timeout, max_workers=max_workers)


def build_notifier(config: dict) -> BaseNotifier:
    """Create the notifier named by ``notify.method``."""
    notify = config["notify"]
    method = notify["method"]
    if method == "email":
        return EmailNotifier(
            host=notify["smtp_host"],
            port=int(notify["smtp_port"]),
            from_address=notify["from_address"],
            username=notify["smtp_user"] or None,
            password=notify["smtp_password"] or None,
            starttls=bool(notify["smtp_starttls"]),
            timeout=float(notify["timeout_seconds"]),
        )
    if method == "webhook":
        return WebhookNotifier(notify["webhook_url"], timeout=float(notify["timeout_seconds"]))
    return LogNotifier()


class AlertsApp:
    """The store, gateway, notifier, runner and scheduler for one process."""

    def __init__(
        self,
        config: dict,
        store: Optional[AlertStore] = None,
        gateway: Optional[BaseGateway] = None,
        notifier: Optional[BaseNotifier] = None,
    ):
        self.config = config
        self.store = store or build_store(config)
        self.gateway = gateway or build_gateway(config)
        self.notifier = notifier or build_notifier(config)

        max_age = config["alerts"]["max_snapshot_age_minutes"]
        self.runner = EvaluationRunner(
            self.store,
            self.gateway,
            self.notifier,
            max_snapshot_age=timedelta(minutes=max_age) if max_age else None,
        )
        self.scheduler = AlertScheduler(
            self.runner, interval_minutes=config["alerts"]["interval_minutes"]
        )

    @classmethod
    def from_config_file(cls, path: Optional[Path] = None) -> "AlertsApp":
        return cls(load_config(path))

    def close(self) -> None:
        self.scheduler.shutdown(wait=True)
        self.gateway.close()
        self.store.close()
