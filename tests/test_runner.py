"""Tests for the evaluation runner.

**Feature: stock-alerts**
"""

import tempfile
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import pytest

from stockalerts.db.store import AlertStore
from stockalerts.errors import NotifierError, StoreError
from stockalerts.gateways import StaticGateway
from stockalerts.models import (
    AlertDefinition,
    EvaluationOutcome,
    MarketSnapshot,
    OutcomeStatus,
    PassState,
)
from stockalerts.notifiers import BaseNotifier
from stockalerts.runner import EvaluationRunner


class RecordingNotifier(BaseNotifier):
    def __init__(self, fail: bool = False, on_notify=None):
        self.calls: list[tuple[int, str]] = []
        self.fail = fail
        self.on_notify = on_notify

    def notify(self, definition: AlertDefinition, outcome: EvaluationOutcome) -> None:
        self.calls.append((definition.id, outcome.reason))
        if self.on_notify:
            self.on_notify()
        if self.fail:
            raise NotifierError("smtp down")


class BlockingGateway(StaticGateway):
    """Lookups for blocked symbols hang until ``release`` is set."""

    def __init__(self, blocked: set[str], **kwargs):
        super().__init__(**kwargs)
        self.blocked = blocked
        self.started = threading.Event()
        self.release = threading.Event()

    def get_snapshot(self, symbol: str) -> MarketSnapshot:
        if symbol in self.blocked:
            self.started.set()
            self.release.wait(5)
        return super().get_snapshot(symbol)


class FlakyStore(AlertStore):
    """Store whose deactivate fails (or reports a lost race) for chosen ids."""

    def __init__(self, db_path: Path, failing: Optional[set[int]] = None, lost: Optional[set[int]] = None):
        super().__init__(db_path)
        self.failing = failing or set()
        self.lost = lost or set()

    def deactivate(self, alert_id: int, reason: str = "cancelled") -> bool:
        if alert_id in self.failing:
            raise StoreError("database is locked")
        if alert_id in self.lost:
            return False
        return super().deactivate(alert_id, reason)


@pytest.fixture
def temp_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store(temp_dir):
    with AlertStore(temp_dir / "alerts.db") as s:
        yield s


def _create(store: AlertStore, symbol: str, alert_type: str = "price_above", value: float = 100) -> int:
    return store.create(
        email="trader@example.com", symbol=symbol, alert_type=alert_type, condition_value=value
    )


class TestPassBasics:
    def test_empty_store_is_noop(self, store):
        gateway = StaticGateway()
        report = EvaluationRunner(store, gateway, RecordingNotifier()).run_pass()

        assert report.state == PassState.DONE
        assert report.checked == 0
        assert sum(gateway.lookups.values()) == 0

    def test_fired_alert_deactivated_and_notified(self, store):
        alert_id = _create(store, "AAPL", value=100)
        gateway = StaticGateway()
        gateway.set_quote("AAPL", price=100.01)
        notifier = RecordingNotifier()

        report = EvaluationRunner(store, gateway, notifier).run_pass()

        assert report.state == PassState.DONE
        assert report.fired == 1
        assert notifier.calls == [(alert_id, "price 100.01 > 100")]
        alert = store.get(alert_id)
        assert alert.active is False
        assert alert.deactivation_reason == "fired"
        assert report.outcomes[0].notified is True

    def test_not_fired_stays_active(self, store):
        alert_id = _create(store, "AAPL", value=100)
        gateway = StaticGateway()
        gateway.set_quote("AAPL", price=100.00)
        notifier = RecordingNotifier()

        report = EvaluationRunner(store, gateway, notifier).run_pass()

        assert report.fired == 0
        assert notifier.calls == []
        assert store.get(alert_id).active is True
        assert store.recent_outcomes() == []

    def test_alert_fires_only_once(self, store):
        _create(store, "AAPL", value=100)
        gateway = StaticGateway()
        gateway.set_quote("AAPL", price=150)
        notifier = RecordingNotifier()
        runner = EvaluationRunner(store, gateway, notifier)

        runner.run_pass()
        second = runner.run_pass()

        assert len(notifier.calls) == 1
        assert second.checked == 0
        assert runner.last_report is second

    def test_fired_outcome_recorded(self, store):
        alert_id = _create(store, "AAPL", value=100)
        gateway = StaticGateway()
        gateway.set_quote("AAPL", price=150)

        EvaluationRunner(store, gateway, RecordingNotifier()).run_pass()

        history = store.recent_outcomes(alert_id=alert_id)
        assert len(history) == 1
        assert history[0].status == OutcomeStatus.FIRED
        assert history[0].notified is True


class TestBatching:
    """
    **Scenario: one lookup per distinct symbol**

    Three active alerts on AAPL, AAPL, TSLA produce exactly two lookups.
    """

    def test_two_lookups_for_three_alerts(self, store):
        _create(store, "AAPL", value=500)
        _create(store, "AAPL", "price_below", 10)
        _create(store, "TSLA", value=500)
        gateway = StaticGateway()
        gateway.set_quote("AAPL", price=150)
        gateway.set_quote("TSLA", price=200)

        report = EvaluationRunner(store, gateway, RecordingNotifier()).run_pass()

        assert gateway.lookups == {"AAPL": 1, "TSLA": 1}
        assert report.symbols_requested == ["AAPL", "TSLA"]
        assert report.checked == 3


class TestDeferral:
    """
    **Scenario: a timed-out symbol does not block the others**

    The TSLA lookup times out; AAPL alerts still evaluate and fire, and the
    TSLA alert stays active for the next pass.
    """

    def test_timeout_defers_only_that_symbol(self, store):
        first = _create(store, "AAPL", value=100)
        second = _create(store, "AAPL", "pct_change_above", 1)
        slow = _create(store, "TSLA", value=1)
        gateway = BlockingGateway({"TSLA"}, timeout=0.2)
        gateway.set_quote("AAPL", price=150, percent_change=2.5)
        gateway.set_quote("TSLA", price=200)
        notifier = RecordingNotifier()

        try:
            report = EvaluationRunner(store, gateway, notifier).run_pass()
        finally:
            gateway.release.set()

        assert report.state == PassState.DONE
        assert report.fired == 2
        assert report.deferred == 1
        assert {call[0] for call in notifier.calls} == {first, second}
        assert store.get(slow).active is True
        deferred = [o for o in report.outcomes if o.status == OutcomeStatus.DEFERRED]
        assert [o.alert_id for o in deferred] == [slow]

    def test_missing_field_defers(self, store):
        alert_id = _create(store, "AAPL", "volume_above", 1000)
        gateway = StaticGateway()
        gateway.set_quote("AAPL", price=150)

        report = EvaluationRunner(store, gateway, RecordingNotifier()).run_pass()

        assert report.deferred == 1
        assert store.get(alert_id).active is True
        assert store.recent_outcomes()[0].status == OutcomeStatus.DEFERRED

    def test_unknown_symbol_defers(self, store):
        alert_id = _create(store, "NOPE", value=1)
        report = EvaluationRunner(store, StaticGateway(), RecordingNotifier()).run_pass()
        assert report.deferred == 1
        assert store.get(alert_id).active is True

    def test_stale_snapshot_defers(self, store):
        alert_id = _create(store, "AAPL", value=100)
        gateway = StaticGateway()
        gateway.set_snapshot(
            MarketSnapshot(symbol="AAPL", price=150, as_of=datetime.now() - timedelta(hours=1))
        )
        runner = EvaluationRunner(
            store, gateway, RecordingNotifier(), max_snapshot_age=timedelta(minutes=5)
        )

        report = runner.run_pass()

        assert report.deferred == 1
        assert "stale" in report.outcomes[0].reason
        assert store.get(alert_id).active is True

    def test_gateway_crash_defers_everything(self, store):
        alert_id = _create(store, "AAPL", value=100)

        class BrokenGateway(StaticGateway):
            def fetch_snapshots(self, symbols):
                raise RuntimeError("provider offline")

        report = EvaluationRunner(store, BrokenGateway(), RecordingNotifier()).run_pass()

        assert report.state == PassState.DONE
        assert report.deferred == 1
        assert store.get(alert_id).active is True


class TestFailures:
    def test_load_failure_fails_pass(self, store):
        _create(store, "AAPL")
        store.close()

        report = EvaluationRunner(store, StaticGateway(), RecordingNotifier()).run_pass()

        assert report.state == PassState.FAILED
        assert "not open" in report.error
        assert not report.ok

    def test_notifier_failure_keeps_alert_inactive(self, store):
        alert_id = _create(store, "AAPL", value=100)
        gateway = StaticGateway()
        gateway.set_quote("AAPL", price=150)

        report = EvaluationRunner(store, gateway, RecordingNotifier(fail=True)).run_pass()

        assert report.fired == 1
        assert report.notify_failures == 1
        assert report.outcomes[0].notified is False
        assert store.get(alert_id).active is False
        assert store.recent_outcomes()[0].notified is False

    def test_deactivation_failure_leaves_alert_for_next_pass(self, temp_dir):
        store = FlakyStore(temp_dir / "alerts.db")
        store.open()
        broken = _create(store, "AAPL", value=100)
        healthy = _create(store, "TSLA", value=100)
        store.failing = {broken}
        gateway = StaticGateway()
        gateway.set_quote("AAPL", price=150)
        gateway.set_quote("TSLA", price=150)
        notifier = RecordingNotifier()

        report = EvaluationRunner(store, gateway, notifier).run_pass()

        assert report.state == PassState.DONE
        assert report.errored == 1
        assert report.fired == 1
        assert [call[0] for call in notifier.calls] == [healthy]
        assert store.get(broken).active is True

    def test_lost_race_does_not_notify(self, temp_dir):
        store = FlakyStore(temp_dir / "alerts.db")
        store.open()
        alert_id = _create(store, "AAPL", value=100)
        store.lost = {alert_id}
        gateway = StaticGateway()
        gateway.set_quote("AAPL", price=150)
        notifier = RecordingNotifier()

        report = EvaluationRunner(store, gateway, notifier).run_pass()

        assert notifier.calls == []
        assert report.fired == 0


class TestConcurrency:
    """
    **Property: Single-flight passes**

    A pass requested while another is running is skipped.
    """

    def test_overlapping_pass_is_skipped(self, store):
        _create(store, "TSLA", value=100)
        gateway = BlockingGateway({"TSLA"}, timeout=5)
        gateway.set_quote("TSLA", price=150)
        notifier = RecordingNotifier()
        runner = EvaluationRunner(store, gateway, notifier)

        results = []
        worker = threading.Thread(target=lambda: results.append(runner.run_pass()))
        worker.start()
        try:
            assert gateway.started.wait(5)
            assert runner.is_busy
            skipped = runner.run_pass()
        finally:
            gateway.release.set()
            worker.join(5)

        assert skipped.state == PassState.SKIPPED
        assert skipped.ok
        assert results[0].state == PassState.DONE
        assert len(notifier.calls) == 1
        assert not runner.is_busy

    def test_cancelled_before_start(self, store):
        alert_id = _create(store, "AAPL", value=100)
        gateway = StaticGateway()
        gateway.set_quote("AAPL", price=150)
        runner = EvaluationRunner(store, gateway, RecordingNotifier())

        runner.cancel()
        report = runner.run_pass()

        assert report.state == PassState.CANCELLED
        assert store.get(alert_id).active is True

        runner.reset()
        assert runner.run_pass().fired == 1

    def test_cancel_mid_apply_keeps_untouched_alerts_active(self, store):
        first = _create(store, "AAPL", value=100)
        second = _create(store, "MSFT", value=100)
        gateway = StaticGateway()
        gateway.set_quote("AAPL", price=150)
        gateway.set_quote("MSFT", price=150)
        runner = EvaluationRunner(store, gateway)
        notifier = RecordingNotifier(on_notify=runner.cancel)
        runner.notifier = notifier

        report = runner.run_pass()

        assert report.state == PassState.CANCELLED
        # The alert deactivated before the cancel still got its notification
        assert notifier.calls == [(first, "price 150 > 100")]
        assert store.get(first).active is False
        assert store.get(second).active is True
        statuses = {o.alert_id: o.status for o in report.outcomes}
        assert statuses == {first: OutcomeStatus.FIRED, second: OutcomeStatus.DEFERRED}
