"""Finnhub quote gateway."""

from datetime import datetime
from typing import Optional

import requests

from stockalerts.errors import DataUnavailableError
from stockalerts.gateways._http import get_json, to_float
from stockalerts.gateways.base import BaseGateway
from stockalerts.models import MarketSnapshot


class FinnhubGateway(BaseGateway):
    """Market data from Finnhub's ``/quote`` endpoint.

    The quote endpoint has price and percent change but no volume, so
    VOLUME_ABOVE alerts stay deferred when this gateway is used.
    """

    BASE_URL = "https://finnhub.io/api/v1/quote"

    def __init__(
        self,
        api_key: str,
        timeout: float = 10.0,
        max_workers: int = 8,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise ValueError("Finnhub API key is required")
        super().__init__(timeout=timeout, max_workers=max_workers)
        self._api_key = api_key
        self._session = session or requests.Session()

    def get_snapshot(self, symbol: str) -> MarketSnapshot:
        data = get_json(
            self._session,
            self.BASE_URL,
            {"symbol": symbol, "token": self._api_key},
            symbol,
            self.timeout,
        )
        if not isinstance(data, dict):
            raise DataUnavailableError(symbol, "unexpected quote payload")
        if data.get("error"):
            raise DataUnavailableError(symbol, str(data["error"]))

        price = to_float(data.get("c"))
        # Finnhub answers unknown symbols with an all-zero quote
        if not price and not data.get("t"):
            raise DataUnavailableError(symbol, "unknown symbol")

        timestamp = data.get("t")
        as_of = datetime.fromtimestamp(timestamp) if timestamp else datetime.now()
        return MarketSnapshot(
            symbol=symbol,
            price=price,
            percent_change=to_float(data.get("dp")),
            volume=None,
            as_of=as_of,
        )
