"""Shared HTTP helper for the REST gateways."""

from typing import Any

import requests

from stockalerts.errors import DataUnavailableError, GatewayTimeoutError


def get_json(
    session: requests.Session,
    url: str,
    params: dict[str, Any],
    symbol: str,
    timeout: float,
) -> Any:
    """GET a JSON document, mapping transport failures to gateway errors.

    Raises:
        GatewayTimeoutError: If the request times out.
        DataUnavailableError: On any other HTTP or decoding failure.
    """
    try:
        response = session.get(url, params=params, timeout=timeout)
    except requests.Timeout as exc:
        raise GatewayTimeoutError(symbol, f"request timed out: {exc}") from exc
    except requests.RequestException as exc:
        raise DataUnavailableError(symbol, f"request failed: {exc}") from exc

    if response.status_code == 429:
        raise DataUnavailableError(symbol, "rate limited by data provider")
    if response.status_code != 200:
        raise DataUnavailableError(symbol, f"HTTP {response.status_code}")
    try:
        return response.json()
    except ValueError as exc:
        raise DataUnavailableError(symbol, "response is not valid JSON") from exc


def to_float(value: Any) -> float | None:
    """Parse a numeric field, returning None when it is absent or malformed."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = value.strip().rstrip("%")
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
