"""Evaluation runner for StockAlerts.

One pass loads the active alerts, fetches a snapshot per distinct symbol,
evaluates every alert, deactivates the ones that fired and notifies their
owners. Alerts are deactivated before their notification is sent, so a
crash between the two loses a notification instead of sending it twice.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from stockalerts.db.store import AlertStore
from stockalerts.errors import DataUnavailableError, NotifierError, StoreError
from stockalerts.evaluator import evaluate
from stockalerts.gateways.base import BaseGateway, SnapshotBatch
from stockalerts.models import (
    AlertDefinition,
    EvaluationOutcome,
    OutcomeStatus,
    PassReport,
    PassState,
)
from stockalerts.notifiers.base import BaseNotifier
from stockalerts.notifiers.log import LogNotifier

logger = logging.getLogger(__name__)


class EvaluationRunner:
    """Runs evaluation passes over the active alerts.

    Only one pass runs at a time; a pass requested while another is in
    flight is skipped rather than queued.
    """

    def __init__(
        self,
        store: AlertStore,
        gateway: BaseGateway,
        notifier: Optional[BaseNotifier] = None,
        max_snapshot_age: Optional[timedelta] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the runner.

        Args:
            store: Alert store to load and deactivate alerts.
            gateway: Market data source.
            notifier: Channel for fired alerts. Defaults to LogNotifier.
            max_snapshot_age: Snapshots older than this are treated as
                unavailable. None disables the check.
            clock: Source of the current time.
        """
        self.store = store
        self.gateway = gateway
        self.notifier = notifier or LogNotifier()
        self.max_snapshot_age = max_snapshot_age
        self._clock = clock
        self._busy = threading.Lock()
        self._cancelled = threading.Event()
        self.state: Optional[PassState] = None
        self.last_report: Optional[PassReport] = None

    @property
    def is_busy(self) -> bool:
        return self._busy.locked()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Ask the running pass (and any later pass) to stop early.

        Alerts not yet deactivated stay active. An alert that has already
        been deactivated still gets its notification attempt.
        """
        self._cancelled.set()

    def reset(self) -> None:
        """Clear a previous cancel so passes can run again."""
        self._cancelled.clear()

    def run_pass(self) -> PassReport:
        """Run one evaluation pass.

        Returns:
            PassReport describing the pass. The state is SKIPPED if another
            pass was running and FAILED if the active alerts could not be
            loaded.
        """
        if not self._busy.acquire(blocking=False):
            logger.warning("Alert check skipped: previous pass still running")
            return PassReport(state=PassState.SKIPPED, finished_at=self._clock())
        try:
            report = self._run(self._clock())
        finally:
            self.state = None
            self._busy.release()

        self.last_report = report
        if report.state == PassState.FAILED:
            logger.error("Alert check failed: %s", report.error)
        else:
            logger.info("Alert check finished: %s", report.summary())
        return report

    def _finish(self, state: PassState, started_at: datetime, **fields) -> PassReport:
        return PassReport(
            state=state, started_at=started_at, finished_at=self._clock(), **fields
        )

    def _run(self, started_at: datetime) -> PassReport:
        if self.cancelled:
            return self._finish(PassState.CANCELLED, started_at)

        self.state = PassState.LOADING
        try:
            alerts = self.store.list_active()
        except StoreError as exc:
            return self._finish(PassState.FAILED, started_at, error=str(exc))

        if not alerts:
            logger.debug("No active alerts")
            return self._finish(PassState.DONE, started_at)

        self.state = PassState.BATCHING
        symbols = sorted({alert.symbol for alert in alerts})
        logger.info("Checking %d alerts across %d symbols", len(alerts), len(symbols))
        batch = self._fetch(symbols)

        self.state = PassState.EVALUATING
        outcomes: dict[int, EvaluationOutcome] = {}
        fired: list[AlertDefinition] = []
        for alert in alerts:
            if self.cancelled:
                break
            outcome = self._evaluate(alert, batch)
            outcomes[alert.id] = outcome
            if outcome.fired:
                fired.append(alert)

        self.state = PassState.APPLYING
        notify_failures = 0
        for alert in fired:
            if self.cancelled:
                # Leave it active; the next pass will see it again
                outcomes[alert.id] = self._outcome(
                    alert, OutcomeStatus.DEFERRED, "pass cancelled before deactivation"
                )
                continue
            outcome, delivered = self._apply(alert, outcomes[alert.id])
            outcomes[alert.id] = outcome
            if delivered is False:
                notify_failures += 1

        results = list(outcomes.values())
        self._record(results)

        counts = {status: 0 for status in OutcomeStatus}
        for outcome in results:
            counts[outcome.status] += 1
        return self._finish(
            PassState.CANCELLED if self.cancelled else PassState.DONE,
            started_at,
            checked=len(alerts),
            fired=counts[OutcomeStatus.FIRED],
            deferred=counts[OutcomeStatus.DEFERRED],
            errored=counts[OutcomeStatus.ERRORED],
            notify_failures=notify_failures,
            symbols_requested=symbols,
            outcomes=results,
        )

    def _fetch(self, symbols: list[str]) -> SnapshotBatch:
        try:
            return self.gateway.fetch_snapshots(symbols)
        except Exception as exc:
            # The gateway contract is per-symbol failures; treat a whole-batch
            # failure as every symbol being unavailable.
            logger.error("Market data gateway failed: %s", exc)
            return SnapshotBatch(
                errors={symbol: DataUnavailableError(symbol, str(exc)) for symbol in symbols}
            )

    def _outcome(
        self, alert: AlertDefinition, status: OutcomeStatus, reason: str
    ) -> EvaluationOutcome:
        return EvaluationOutcome(
            alert_id=alert.id,
            symbol=alert.symbol,
            status=status,
            reason=reason,
            timestamp=self._clock(),
        )

    def _evaluate(self, alert: AlertDefinition, batch: SnapshotBatch) -> EvaluationOutcome:
        """Evaluate one alert. Never raises."""
        if alert.symbol in batch.errors:
            logger.warning("Alert %d deferred: %s", alert.id, batch.errors[alert.symbol])
            return self._outcome(alert, OutcomeStatus.DEFERRED, str(batch.errors[alert.symbol]))

        snapshot = batch.snapshots.get(alert.symbol)
        if snapshot is None:
            return self._outcome(alert, OutcomeStatus.DEFERRED, f"{alert.symbol}: no snapshot")

        if self.max_snapshot_age is not None:
            age = self._clock() - snapshot.as_of
            if age > self.max_snapshot_age:
                logger.warning("Alert %d deferred: %s data is %s old", alert.id, alert.symbol, age)
                return self._outcome(
                    alert, OutcomeStatus.DEFERRED, f"{alert.symbol}: snapshot is stale"
                )

        try:
            is_fired, reason = evaluate(alert, snapshot)
        except DataUnavailableError as exc:
            logger.warning("Alert %d deferred: %s", alert.id, exc)
            return self._outcome(alert, OutcomeStatus.DEFERRED, str(exc))
        except Exception as exc:
            logger.exception("Alert %d could not be evaluated", alert.id)
            return self._outcome(alert, OutcomeStatus.ERRORED, f"evaluation error: {exc}")

        logger.debug("Alert %d: %s", alert.id, reason)
        status = OutcomeStatus.FIRED if is_fired else OutcomeStatus.NOT_FIRED
        return self._outcome(alert, status, reason)

    def _apply(
        self, alert: AlertDefinition, outcome: EvaluationOutcome
    ) -> tuple[EvaluationOutcome, Optional[bool]]:
        """Deactivate a fired alert, then notify.

        Returns:
            The final outcome and whether the notification was delivered
            (None when no notification was attempted).
        """
        try:
            won = self.store.deactivate(alert.id, reason="fired")
        except StoreError as exc:
            logger.error("Alert %d fired but could not be deactivated: %s", alert.id, exc)
            return (
                self._outcome(alert, OutcomeStatus.ERRORED, f"deactivation failed: {exc}"),
                None,
            )

        if not won:
            # Someone else already moved it out of the active state
            return (
                self._outcome(alert, OutcomeStatus.NOT_FIRED, "already inactive"),
                None,
            )

        logger.info("Alert %d fired: %s", alert.id, outcome.reason)
        try:
            self.notifier.notify(alert, outcome)
        except NotifierError as exc:
            logger.error("Notification for alert %d failed: %s", alert.id, exc)
            return outcome.model_copy(update={"notified": False}), False
        except Exception:
            logger.exception("Notifier crashed for alert %d", alert.id)
            return outcome.model_copy(update={"notified": False}), False
        return outcome.model_copy(update={"notified": True}), True

    def _record(self, outcomes: list[EvaluationOutcome]) -> None:
        history = [o for o in outcomes if o.status != OutcomeStatus.NOT_FIRED]
        if not history:
            return
        try:
            self.store.record_outcomes(history)
        except StoreError as exc:
            logger.error("Could not record %d outcomes: %s", len(history), exc)
