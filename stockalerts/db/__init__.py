"""Persistence layer for StockAlerts."""

from stockalerts.db.store import AlertStore

__all__ = ["AlertStore"]
