"""Configuration file handling for StockAlerts."""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Optional

import toml

from stockalerts.errors import ConfigError

CONFIG_DIR = Path.home() / ".config" / "stockalerts"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.toml"
CONFIG_ENV_VAR = "STOCKALERTS_CONFIG"

GATEWAY_PROVIDERS = ("static", "finnhub", "alphavantage")
NOTIFY_METHODS = ("log", "email", "webhook")

DEFAULT_CONFIG: dict[str, Any] = {
    "alerts": {
        "db_path": str(CONFIG_DIR / "alerts.db"),
        "interval_minutes": 10,
        "max_snapshot_age_minutes": 0,  # 0 disables the staleness check
    },
    "gateway": {
        "provider": "static",
        "api_key": "",  # Leave empty to use FINNHUB_API_KEY / ALPHAVANTAGE_API_KEY
        "timeout_seconds": 10,
        "max_workers": 8,
    },
    "notify": {
        "method": "log",
        "smtp_host": "",
        "smtp_port": 587,
        "smtp_user": "",
        "smtp_password": "",
        "smtp_starttls": True,
        "from_address": "alerts@localhost",
        "webhook_url": "",
        "timeout_seconds": 10,
    },
    "logging": {
        "level": "INFO",
        "file": "",
    },
}

API_KEY_ENV_VARS = {
    "finnhub": "FINNHUB_API_KEY",
    "alphavantage": "ALPHAVANTAGE_API_KEY",
}


def get_config_path(path: Optional[Path] = None) -> Path:
    """Resolve the config path: explicit argument, env var, then default."""
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH


def _merge(defaults: dict, overrides: dict) -> dict:
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Optional[Path] = None) -> dict:
    """Load the configuration, filling gaps from DEFAULT_CONFIG.

    Args:
        path: Config file. Defaults to $STOCKALERTS_CONFIG or
            ~/.config/stockalerts/config.toml.

    Returns:
        Complete config dict. A missing file yields the defaults.

    Raises:
        ConfigError: If the file cannot be parsed or holds invalid values.
    """
    config_path = get_config_path(path)
    overrides: dict = {}
    if config_path.exists():
        try:
            overrides = toml.load(config_path)
        except (toml.TomlDecodeError, OSError) as exc:
            raise ConfigError(f"Cannot read {config_path}: {exc}") from exc

    config = _merge(DEFAULT_CONFIG, overrides)
    validate_config(config)
    return config


def _is_number(value: Any) -> bool:
    # toml booleans are ints to isinstance
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config(config: dict) -> None:
    """Check config values that would otherwise fail deep inside the app.

    Raises:
        ConfigError: Naming the first invalid value.
    """
    for section in DEFAULT_CONFIG:
        if not isinstance(config.get(section), dict):
            raise ConfigError(f"[{section}] must be a table, got {config.get(section)!r}")

    alerts = config["alerts"]
    gateway = config["gateway"]
    notify = config["notify"]
    level = config["logging"]["level"]

    if not _is_number(alerts["interval_minutes"]) or alerts["interval_minutes"] <= 0:
        raise ConfigError("alerts.interval_minutes must be a positive number")
    if not _is_number(alerts["max_snapshot_age_minutes"]) or alerts["max_snapshot_age_minutes"] < 0:
        raise ConfigError("alerts.max_snapshot_age_minutes must be zero or positive")
    if gateway["provider"] not in GATEWAY_PROVIDERS:
        raise ConfigError(
            f"gateway.provider must be one of {', '.join(GATEWAY_PROVIDERS)}, "
            f"got {gateway['provider']!r}"
        )
    if not _is_number(gateway["timeout_seconds"]) or gateway["timeout_seconds"] <= 0:
        raise ConfigError("gateway.timeout_seconds must be a positive number")
    if not _is_integer(gateway["max_workers"]) or gateway["max_workers"] < 1:
        raise ConfigError("gateway.max_workers must be a positive integer")
    if notify["method"] not in NOTIFY_METHODS:
        raise ConfigError(
            f"notify.method must be one of {', '.join(NOTIFY_METHODS)}, "
            f"got {notify['method']!r}"
        )
    if notify["method"] == "email" and not notify["smtp_host"]:
        raise ConfigError("notify.smtp_host is required when notify.method is 'email'")
    if notify["method"] == "webhook" and not notify["webhook_url"]:
        raise ConfigError("notify.webhook_url is required when notify.method is 'webhook'")
    if not _is_integer(notify["smtp_port"]):
        raise ConfigError("notify.smtp_port must be an integer")
    if not _is_number(notify["timeout_seconds"]) or notify["timeout_seconds"] <= 0:
        raise ConfigError("notify.timeout_seconds must be a positive number")
    if not isinstance(level, str) or not isinstance(logging.getLevelName(level.upper()), int):
        raise ConfigError(
            f"logging.level must be a level name such as INFO or DEBUG, got {level!r}"
        )


def get_api_key(config: dict) -> str:
    """API key for the configured provider, falling back to its env var."""
    provider = config["gateway"]["provider"]
    key = config["gateway"].get("api_key") or ""
    if not key and provider in API_KEY_ENV_VARS:
        key = os.environ.get(API_KEY_ENV_VARS[provider], "")
    return key


def create_template_config(path: Optional[Path] = None) -> Path:
    """Write a config file holding the defaults.

    The database path points next to the config file.

    Returns:
        Path of the written file.
    """
    config_path = get_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config = copy.deepcopy(DEFAULT_CONFIG)
    config["alerts"]["db_path"] = str(config_path.parent / "alerts.db")
    with open(config_path, "w") as f:
        toml.dump(config, f)
    return config_path
