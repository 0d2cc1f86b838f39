"""Base market data gateway interface for StockAlerts."""

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Iterable

from pydantic import BaseModel, Field

from stockalerts.errors import DataUnavailableError, GatewayTimeoutError
from stockalerts.models import MarketSnapshot

logger = logging.getLogger(__name__)


class SnapshotBatch(BaseModel):
    """Per-symbol results of one batch lookup.

    Every requested symbol ends up in exactly one of ``snapshots`` or
    ``errors``.
    """

    snapshots: dict[str, MarketSnapshot] = Field(default_factory=dict)
    errors: dict[str, DataUnavailableError] = Field(default_factory=dict)

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    @property
    def symbols(self) -> set[str]:
        return set(self.snapshots) | set(self.errors)


class BaseGateway(ABC):
    """Abstract base class for market data sources.

    Implementations only need ``get_snapshot``; batching, deduplication,
    concurrency and the batch timeout are handled here.
    """

    def __init__(self, timeout: float = 10.0, max_workers: int = 8):
        """Initialize the gateway.

        Args:
            timeout: Seconds to wait for a whole batch before giving up on
                the symbols that have not answered.
            max_workers: Maximum concurrent lookups.
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.timeout = timeout
        self.max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()

    @abstractmethod
    def get_snapshot(self, symbol: str) -> MarketSnapshot:
        """Get current market data for one symbol.

        Args:
            symbol: Uppercase ticker symbol.

        Returns:
            Snapshot with whatever fields the source provides.

        Raises:
            DataUnavailableError: If the source has no usable data.
        """
        pass

    def _get_executor(self) -> ThreadPoolExecutor:
        # One pool per gateway, so lookups stuck past the batch timeout hold
        # at most max_workers threads across all passes.
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix="stockalerts-gateway",
                )
            return self._executor

    def close(self) -> None:
        """Release the lookup threads. Stuck lookups are not waited for."""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    def fetch_snapshots(self, symbols: Iterable[str]) -> SnapshotBatch:
        """Look up many symbols, one call per distinct symbol.

        Lookups run concurrently. A failure or timeout for one symbol is
        recorded against that symbol only.

        Args:
            symbols: Symbols to look up; duplicates are collapsed.

        Returns:
            SnapshotBatch with a snapshot or an error for every symbol.
        """
        unique = sorted({symbol.strip().upper() for symbol in symbols})
        if not unique:
            return SnapshotBatch()

        snapshots: dict[str, MarketSnapshot] = {}
        errors: dict[str, DataUnavailableError] = {}

        executor = self._get_executor()
        futures: dict[Future, str] = {
            executor.submit(self.get_snapshot, symbol): symbol for symbol in unique
        }
        done, pending = wait(futures, timeout=self.timeout)

        for future in done:
            symbol = futures[future]
            try:
                snapshots[symbol] = future.result()
            except DataUnavailableError as exc:
                errors[symbol] = exc
            except Exception as exc:
                errors[symbol] = DataUnavailableError(symbol, str(exc) or type(exc).__name__)

        for future in pending:
            symbol = futures[future]
            # Queued lookups are dropped; running ones finish in the background
            future.cancel()
            errors[symbol] = GatewayTimeoutError(
                symbol, f"no response within {self.timeout:g}s"
            )

        for symbol, exc in sorted(errors.items()):
            logger.warning("Market data unavailable for %s: %s", symbol, exc)
        return SnapshotBatch(snapshots=snapshots, errors=errors)
