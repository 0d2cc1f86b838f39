"""Condition evaluation for alerts.

Evaluation is a pure function of an alert and a market snapshot: no I/O,
no clock, no state. Missing data is an error rather than "not fired" so the
caller can retry the alert later instead of silently skipping it.
"""

import math
import operator
from typing import Callable

from stockalerts.errors import DataUnavailableError
from stockalerts.models import AlertRequest, AlertType, MarketSnapshot

# alert type -> (snapshot field, comparison, symbol used in reasons)
CONDITIONS: dict[AlertType, tuple[str, Callable[[float, float], bool], str]] = {
    AlertType.PRICE_ABOVE: ("price", operator.gt, ">"),
    AlertType.PRICE_BELOW: ("price", operator.lt, "<"),
    AlertType.PCT_CHANGE_ABOVE: ("percent_change", operator.gt, ">"),
    AlertType.PCT_CHANGE_BELOW: ("percent_change", operator.lt, "<"),
    AlertType.VOLUME_ABOVE: ("volume", operator.gt, ">"),
}

_NEGATED = {">": "<=", "<": ">="}


def _fmt(value: float) -> str:
    text = f"{value:,.4f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def required_field(alert_type: AlertType) -> str:
    """Name of the snapshot field an alert type is evaluated against."""
    return CONDITIONS[alert_type][0]


def evaluate(
    definition: AlertRequest, snapshot: MarketSnapshot
) -> tuple[bool, str]:
    """Check whether an alert's condition holds for a snapshot.

    All comparisons are strict: a PRICE_ABOVE alert at 100 fires at 100.01
    but not at 100.00.

    Args:
        definition: The alert to check.
        snapshot: Market data for the alert's symbol.

    Returns:
        Tuple of (fired, reason).

    Raises:
        DataUnavailableError: If the snapshot is for another symbol or lacks
            the field the alert type needs.
    """
    if snapshot.symbol.upper() != definition.symbol:
        raise DataUnavailableError(
            definition.symbol, f"snapshot is for {snapshot.symbol}"
        )

    field, compare, sign = CONDITIONS[definition.alert_type]
    observed = getattr(snapshot, field)
    if observed is None or not math.isfinite(observed):
        raise DataUnavailableError(definition.symbol, f"snapshot has no {field}")

    label = field.replace("_", " ")
    threshold = definition.condition_value
    if compare(observed, threshold):
        return True, f"{label} {_fmt(observed)} {sign} {_fmt(threshold)}"
    return False, f"{label} {_fmt(observed)} {_NEGATED[sign]} {_fmt(threshold)}"
