"""Install, activation and teardown steps for StockAlerts.

Each step reports what happened in a LifecycleResult instead of raising, so
a partial failure can be shown to the operator.
"""

import logging
from typing import Callable

from pydantic import BaseModel, Field

from stockalerts.db.store import AlertStore
from stockalerts.errors import AlertsError
from stockalerts.scheduler import AlertScheduler

logger = logging.getLogger(__name__)


class LifecycleResult(BaseModel):
    """Outcome of a lifecycle action."""

    action: str = Field(..., description="activate, deactivate or uninstall")
    steps: list[str] = Field(default_factory=list, description="Completed steps")
    errors: list[str] = Field(default_factory=list, description="Failed steps")

    @property
    def ok(self) -> bool:
        return not self.errors


def _run_step(result: LifecycleResult, name: str, step: Callable[[], object]) -> bool:
    try:
        outcome = step()
    except (AlertsError, ValueError, RuntimeError) as exc:
        logger.error("%s: %s failed: %s", result.action, name, exc)
        result.errors.append(f"{name}: {exc}")
        return False
    result.steps.append(name if outcome is not False else f"{name} (no change)")
    return True


def activate(store: AlertStore, scheduler: AlertScheduler) -> LifecycleResult:
    """Create the schema and register the recurring check."""
    result = LifecycleResult(action="activate")
    if _run_step(result, "open store", store.open):
        _run_step(result, "schedule alert check", scheduler.schedule)
    if result.ok:
        logger.info("Activated: %s", ", ".join(result.steps))
    return result


def deactivate(scheduler: AlertScheduler) -> LifecycleResult:
    """Remove the recurring check. Alerts are kept."""
    result = LifecycleResult(action="deactivate")
    _run_step(result, "unschedule alert check", scheduler.unschedule)
    return result


def uninstall(store: AlertStore, scheduler: AlertScheduler) -> LifecycleResult:
    """Remove the recurring check and delete every stored alert."""
    result = LifecycleResult(action="uninstall")
    _run_step(result, "unschedule alert check", scheduler.unschedule)
    if not store.is_open:
        _run_step(result, "open store", store.open)
    if store.is_open:
        _run_step(result, "delete alerts", store.delete_all)
    if result.ok:
        logger.info("Uninstalled: all alerts removed")
    return result
