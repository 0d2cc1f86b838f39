"""SQLite alert store for StockAlerts."""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

from stockalerts.errors import StoreError
from stockalerts.models import (
    AlertDefinition,
    AlertRequest,
    EvaluationOutcome,
    OutcomeStatus,
    validate_request,
)

logger = logging.getLogger(__name__)

DEACTIVATION_REASONS = ("fired", "cancelled")

_ALERT_COLUMNS = (
    "id, email, symbol, alert_type, condition_value, active, created_at, "
    "deactivated_at, deactivation_reason"
)


class AlertStore:
    """SQLite-based store for alert definitions and their outcome history.

    Each operation opens its own short-lived connection, so one store can be
    shared between the scheduler thread and the CLI. State transitions are
    single UPDATE statements and therefore atomic.
    """

    REQUIRED_TABLES = ["alerts", "alert_outcomes"]
    REQUIRED_INDEXES = ["idx_alerts_active"]

    def __init__(self, db_path: Path):
        """Initialize the store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self._open = False

    def __enter__(self) -> "AlertStore":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        """Create the database file and schema if needed.

        Raises:
            StoreError: If the database cannot be created or opened.
        """
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreError(f"Cannot create database directory: {exc}") from exc
        self._open = True
        try:
            self._init_schema()
        except StoreError:
            self._open = False
            raise
        logger.info("Alert store opened at %s", self.db_path)

    def close(self) -> None:
        """Mark the store closed. Later operations raise StoreError."""
        self._open = False

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        if not self._open:
            raise StoreError("Alert store is not open")
        try:
            conn = sqlite3.connect(self.db_path, timeout=10)
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open {self.db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        return conn

    def _execute(self, sql: str, params: tuple = ()) -> tuple[int, Optional[int]]:
        """Run one write statement in its own transaction.

        Returns:
            The affected row count and the last inserted row id.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(sql, params)
            conn.commit()
            return cursor.rowcount, cursor.lastrowid
        except sqlite3.Error as exc:
            raise StoreError(f"Database write failed: {exc}") from exc
        finally:
            conn.close()

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(sql, params)
            return cursor.fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Database query failed: {exc}") from exc
        finally:
            conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema on first run."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()

            # AUTOINCREMENT keeps ids from being reused after deletes
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS alerts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    alert_type TEXT NOT NULL,
                    condition_value REAL NOT NULL,
                    active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    deactivated_at TEXT,
                    deactivation_reason TEXT
                )
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_alerts_active ON alerts (active)"
            )

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS alert_outcomes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    alert_id INTEGER NOT NULL,
                    symbol TEXT NOT NULL,
                    status TEXT NOT NULL,
                    reason TEXT NOT NULL,
                    notified INTEGER,
                    recorded_at TEXT NOT NULL
                )
            """)

            conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot initialize schema: {exc}") from exc
        finally:
            conn.close()

    def get_tables(self) -> list[str]:
        """Get list of all tables in the database."""
        rows = self._query(
            "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
        )
        return [row["name"] for row in rows]

    def get_indexes(self) -> list[str]:
        """Get list of explicitly created indexes."""
        rows = self._query(
            "SELECT name FROM sqlite_master WHERE type='index' AND name NOT LIKE 'sqlite_%'"
        )
        return [row["name"] for row in rows]

    # ==================== Alerts ====================

    @staticmethod
    def _row_to_alert(row: sqlite3.Row) -> AlertDefinition:
        return AlertDefinition(
            id=row["id"],
            email=row["email"],
            symbol=row["symbol"],
            alert_type=row["alert_type"],
            condition_value=row["condition_value"],
            active=bool(row["active"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            deactivated_at=(
                datetime.fromisoformat(row["deactivated_at"])
                if row["deactivated_at"]
                else None
            ),
            deactivation_reason=row["deactivation_reason"],
        )

    def create(self, request: Optional[AlertRequest] = None, **fields: Any) -> int:
        """Validate and persist a new alert.

        Args:
            request: The alert to create. Fields may also be given as keywords.

        Returns:
            The ID of the new alert.

        Raises:
            ValidationError: If the definition is malformed. Nothing is stored.
            StoreError: If the insert fails.
        """
        alert = validate_request(request, **fields)
        _, alert_id = self._execute(
            """
            INSERT INTO alerts (email, symbol, alert_type, condition_value, active, created_at)
            VALUES (?, ?, ?, ?, 1, ?)
            """,
            (
                alert.email,
                alert.symbol,
                alert.alert_type.value,
                alert.condition_value,
                datetime.now().isoformat(),
            ),
        )
        if not alert_id:
            raise StoreError("Insert did not return an alert id")
        logger.info("Created alert %d: %s", alert_id, alert.describe())
        return alert_id

    def get(self, alert_id: int) -> Optional[AlertDefinition]:
        """Get an alert by ID.

        Returns:
            Alert if found, None otherwise.
        """
        rows = self._query(
            f"SELECT {_ALERT_COLUMNS} FROM alerts WHERE id = ?", (alert_id,)
        )
        return self._row_to_alert(rows[0]) if rows else None

    def list_active(self) -> list[AlertDefinition]:
        """Get all alerts that are still active."""
        rows = self._query(
            f"SELECT {_ALERT_COLUMNS} FROM alerts WHERE active = 1 ORDER BY id"
        )
        return [self._row_to_alert(row) for row in rows]

    def list_all(self) -> list[AlertDefinition]:
        """Get every alert, active or not, newest first."""
        rows = self._query(f"SELECT {_ALERT_COLUMNS} FROM alerts ORDER BY id DESC")
        return [self._row_to_alert(row) for row in rows]

    def deactivate(self, alert_id: int, reason: str = "cancelled") -> bool:
        """Move an alert to the inactive state.

        The transition is a compare-and-set on ``active``, so when several
        callers race on the same alert exactly one of them wins.

        Args:
            alert_id: Alert ID.
            reason: Either 'fired' or 'cancelled'.

        Returns:
            True if this call deactivated the alert, False if it was already
            inactive or does not exist.

        Raises:
            StoreError: If the update fails.
        """
        if reason not in DEACTIVATION_REASONS:
            raise ValueError(f"Unknown deactivation reason: {reason!r}")
        updated, _ = self._execute(
            """
            UPDATE alerts
            SET active = 0, deactivated_at = ?, deactivation_reason = ?
            WHERE id = ? AND active = 1
            """,
            (datetime.now().isoformat(), reason, alert_id),
        )
        if updated == 1:
            logger.info("Alert %d deactivated (%s)", alert_id, reason)
            return True

        if self.get(alert_id) is None:
            logger.warning("Deactivate ignored: alert %d does not exist", alert_id)
        else:
            logger.warning("Deactivate ignored: alert %d is already inactive", alert_id)
        return False

    def cancel(self, alert_id: int) -> bool:
        """Cancel an alert at the user's request."""
        return self.deactivate(alert_id, reason="cancelled")

    def delete_all(self) -> int:
        """Delete every alert and outcome record.

        Returns:
            Number of alerts removed.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM alerts")
            removed = cursor.rowcount
            cursor.execute("DELETE FROM alert_outcomes")
            conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot purge alerts: {exc}") from exc
        finally:
            conn.close()
        logger.info("Removed %d alerts", removed)
        return removed

    # ==================== Outcomes ====================

    def record_outcomes(self, outcomes: Iterable[EvaluationOutcome]) -> int:
        """Append evaluation outcomes to the audit history.

        Returns:
            Number of outcomes written.
        """
        rows = [
            (
                outcome.alert_id,
                outcome.symbol,
                outcome.status.value,
                outcome.reason,
                None if outcome.notified is None else int(outcome.notified),
                outcome.timestamp.isoformat(),
            )
            for outcome in outcomes
        ]
        if not rows:
            return 0
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.executemany(
                """
                INSERT INTO alert_outcomes
                (alert_id, symbol, status, reason, notified, recorded_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
            conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot record outcomes: {exc}") from exc
        finally:
            conn.close()
        return len(rows)

    def recent_outcomes(
        self, limit: int = 50, alert_id: Optional[int] = None
    ) -> list[EvaluationOutcome]:
        """Get recorded outcomes, newest first.

        Args:
            limit: Maximum number of outcomes.
            alert_id: Optional alert filter.
        """
        if alert_id is not None:
            rows = self._query(
                """
                SELECT alert_id, symbol, status, reason, notified, recorded_at
                FROM alert_outcomes
                WHERE alert_id = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                (alert_id, limit),
            )
        else:
            rows = self._query(
                """
                SELECT alert_id, symbol, status, reason, notified, recorded_at
                FROM alert_outcomes
                ORDER BY id DESC
                LIMIT ?
                """,
                (limit,),
            )
        return [
            EvaluationOutcome(
                alert_id=row["alert_id"],
                symbol=row["symbol"],
                status=OutcomeStatus(row["status"]),
                reason=row["reason"],
                notified=None if row["notified"] is None else bool(row["notified"]),
                timestamp=datetime.fromisoformat(row["recorded_at"]),
            )
            for row in rows
        ]

    # ==================== Stats ====================

    def get_stats(self) -> dict:
        """Get alert counts.

        Returns:
            Dictionary with active, inactive and outcome counts.
        """
        rows = self._query(
            "SELECT active, COUNT(*) AS count FROM alerts GROUP BY active"
        )
        counts = {bool(row["active"]): row["count"] for row in rows}
        outcomes = self._query("SELECT COUNT(*) AS count FROM alert_outcomes")
        return {
            "active": counts.get(True, 0),
            "inactive": counts.get(False, 0),
            "outcomes": outcomes[0]["count"],
        }
