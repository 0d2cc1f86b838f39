"""In-memory market data gateway for paper mode and testing."""

import threading
from collections import Counter
from datetime import datetime
from typing import Optional

from stockalerts.errors import DataUnavailableError
from stockalerts.gateways.base import BaseGateway
from stockalerts.models import MarketSnapshot


class StaticGateway(BaseGateway):
    """Gateway serving snapshots that were set by hand.

    Useful for dry runs and tests: quotes are set with ``set_quote`` or
    ``set_snapshot``, and ``lookups`` counts how often each symbol was
    requested.
    """

    def __init__(
        self,
        snapshots: Optional[dict[str, MarketSnapshot]] = None,
        timeout: float = 10.0,
        max_workers: int = 8,
    ):
        super().__init__(timeout=timeout, max_workers=max_workers)
        self._snapshots: dict[str, MarketSnapshot] = {}
        self._lock = threading.Lock()
        self.lookups: Counter = Counter()
        for snapshot in (snapshots or {}).values():
            self.set_snapshot(snapshot)

    def set_snapshot(self, snapshot: MarketSnapshot) -> None:
        with self._lock:
            self._snapshots[snapshot.symbol.upper()] = snapshot

    def set_quote(
        self,
        symbol: str,
        price: Optional[float] = None,
        percent_change: Optional[float] = None,
        volume: Optional[float] = None,
    ) -> MarketSnapshot:
        """Set the current quote for a symbol and return the snapshot."""
        snapshot = MarketSnapshot(
            symbol=symbol.upper(),
            price=price,
            percent_change=percent_change,
            volume=volume,
            as_of=datetime.now(),
        )
        self.set_snapshot(snapshot)
        return snapshot

    def remove(self, symbol: str) -> None:
        with self._lock:
            self._snapshots.pop(symbol.upper(), None)

    def get_snapshot(self, symbol: str) -> MarketSnapshot:
        with self._lock:
            self.lookups[symbol] += 1
            snapshot = self._snapshots.get(symbol)
        if snapshot is None:
            raise DataUnavailableError(symbol, "no quote loaded")
        return snapshot
