"""Evaluation outcome and pass report models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field


class OutcomeStatus(str, Enum):
    FIRED = "fired"
    NOT_FIRED = "not_fired"
    DEFERRED = "deferred"
    ERRORED = "errored"


class PassState(str, Enum):
    """States of one evaluation pass."""

    LOADING = "loading"
    BATCHING = "batching"
    EVALUATING = "evaluating"
    APPLYING = "applying"
    DONE = "done"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


class EvaluationOutcome(BaseModel):
    """Result of evaluating one alert during one pass."""

    alert_id: int = Field(..., description="Alert ID")
    symbol: str = Field(..., description="Ticker symbol")
    status: OutcomeStatus = Field(..., description="What happened to the alert")
    reason: str = Field(default="", description="Explanation of the status")
    timestamp: datetime = Field(default_factory=datetime.now)
    notified: Optional[bool] = Field(
        default=None, description="Notification result; None if not attempted"
    )

    model_config = {"frozen": True}

    @computed_field
    @property
    def fired(self) -> bool:
        return self.status == OutcomeStatus.FIRED


class PassReport(BaseModel):
    """Summary of one evaluation pass."""

    state: PassState = Field(..., description="Final state of the pass")
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: Optional[datetime] = Field(default=None)
    checked: int = Field(default=0, ge=0, description="Active alerts loaded")
    fired: int = Field(default=0, ge=0)
    deferred: int = Field(default=0, ge=0)
    errored: int = Field(default=0, ge=0)
    notify_failures: int = Field(default=0, ge=0)
    symbols_requested: list[str] = Field(default_factory=list)
    outcomes: list[EvaluationOutcome] = Field(default_factory=list)
    error: Optional[str] = Field(default=None, description="Why the pass failed")

    model_config = {"frozen": True}

    @property
    def ok(self) -> bool:
        return self.state in (PassState.DONE, PassState.SKIPPED)

    def summary(self) -> str:
        if self.state == PassState.SKIPPED:
            return "pass skipped: another pass is still running"
        if self.state == PassState.FAILED:
            return f"pass failed: {self.error}"
        return (
            f"pass {self.state.value}: {self.checked} checked, {self.fired} fired, "
            f"{self.deferred} deferred, {self.errored} errored"
        )
