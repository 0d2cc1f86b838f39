"""Alert data models."""

import math
import re
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from stockalerts.errors import ValidationError

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
SYMBOL_PATTERN = re.compile(r"^[A-Z0-9][A-Z0-9.\-]{0,9}$")


class AlertType(str, Enum):
    """Kinds of condition an alert can watch for."""

    PRICE_ABOVE = "price_above"
    PRICE_BELOW = "price_below"
    PCT_CHANGE_ABOVE = "pct_change_above"
    PCT_CHANGE_BELOW = "pct_change_below"
    VOLUME_ABOVE = "volume_above"

    @property
    def label(self) -> str:
        return self.value.replace("pct_", "% ").replace("_", " ")


class AlertRequest(BaseModel):
    """A request to create an alert, validated before it reaches the store."""

    email: str = Field(..., description="Notification address")
    symbol: str = Field(..., description="Ticker symbol, uppercase")
    alert_type: AlertType = Field(..., description="Condition kind")
    condition_value: float = Field(
        ..., allow_inf_nan=False, description="Threshold for the condition"
    )

    model_config = {"frozen": True}

    @field_validator("email", mode="before")
    @classmethod
    def _check_email(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("email is required")
        value = value.strip()
        if not EMAIL_PATTERN.match(value):
            raise ValueError(f"invalid email address: {value!r}")
        return value

    @field_validator("symbol", mode="before")
    @classmethod
    def _normalize_symbol(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("symbol must be a string")
        value = value.strip().upper()
        if not SYMBOL_PATTERN.match(value):
            raise ValueError(
                f"invalid symbol {value!r}: expected 1-10 characters of A-Z, 0-9, '.', '-'"
                " starting with a letter or digit"
            )
        return value

    @field_validator("alert_type", mode="before")
    @classmethod
    def _normalize_alert_type(cls, value: Any) -> Any:
        if isinstance(value, str) and not isinstance(value, AlertType):
            return value.strip().lower()
        return value

    @field_validator("condition_value", mode="before")
    @classmethod
    def _parse_condition_value(cls, value: Any) -> float:
        if isinstance(value, bool) or value is None:
            raise ValueError("condition_value must be a number")
        if isinstance(value, str):
            value = value.strip()
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"condition_value {value!r} is not a number") from None
        if not math.isfinite(number):
            raise ValueError("condition_value must be finite")
        return number

    @model_validator(mode="after")
    def _check_threshold(self) -> "AlertRequest":
        if self.alert_type == AlertType.VOLUME_ABOVE and self.condition_value < 0:
            raise ValueError("volume threshold cannot be negative")
        return self

    def describe(self) -> str:
        """Human readable form, e.g. 'AAPL price above 100'."""
        return f"{self.symbol} {self.alert_type.label} {self.condition_value:g}"


class AlertDefinition(AlertRequest):
    """A stored alert."""

    id: int = Field(..., description="Database ID")
    active: bool = Field(default=True, description="False once fired or cancelled")
    created_at: datetime = Field(
        default_factory=datetime.now, description="Creation timestamp"
    )
    deactivated_at: Optional[datetime] = Field(
        default=None, description="When the alert left the active state"
    )
    deactivation_reason: Optional[str] = Field(
        default=None, description="'fired' or 'cancelled'"
    )


def validate_request(data: Any = None, **fields: Any) -> AlertRequest:
    """Build an AlertRequest, converting pydantic errors to ValidationError.

    Args:
        data: An AlertRequest, a mapping of fields, or None.
        **fields: Fields given as keywords (merged over ``data``).

    Returns:
        The validated request.

    Raises:
        ValidationError: If any field is malformed.
    """
    if isinstance(data, AlertRequest) and not fields:
        return data
    if isinstance(data, AlertRequest):
        payload = data.model_dump(include=set(AlertRequest.model_fields))
    else:
        payload = dict(data or {})
    payload.update(fields)
    try:
        return AlertRequest.model_validate(payload)
    except PydanticValidationError as exc:
        problems = []
        for err in exc.errors():
            loc = ".".join(str(part) for part in err["loc"]) or "alert"
            problems.append(f"{loc}: {err['msg']}")
        raise ValidationError("; ".join(problems), problems) from exc
