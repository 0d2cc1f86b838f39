"""Alpha Vantage GLOBAL_QUOTE gateway."""

from datetime import datetime
from typing import Optional

import requests

from stockalerts.errors import DataUnavailableError
from stockalerts.gateways._http import get_json, to_float
from stockalerts.gateways.base import BaseGateway
from stockalerts.models import MarketSnapshot


class AlphaVantageGateway(BaseGateway):
    """Market data from Alpha Vantage's ``GLOBAL_QUOTE`` function.

    The free tier is heavily rate limited; throttling notices come back as
    HTTP 200 with a ``Note`` or ``Information`` key and are reported as
    unavailable data.
    """

    BASE_URL = "https://www.alphavantage.co/query"

    def __init__(
        self,
        api_key: str,
        timeout: float = 10.0,
        max_workers: int = 4,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise ValueError("Alpha Vantage API key is required")
        super().__init__(timeout=timeout, max_workers=max_workers)
        self._api_key = api_key
        self._session = session or requests.Session()

    def get_snapshot(self, symbol: str) -> MarketSnapshot:
        data = get_json(
            self._session,
            self.BASE_URL,
            {"function": "GLOBAL_QUOTE", "symbol": symbol, "apikey": self._api_key},
            symbol,
            self.timeout,
        )
        if not isinstance(data, dict):
            raise DataUnavailableError(symbol, "unexpected quote payload")
        for key in ("Note", "Information", "Error Message"):
            if key in data:
                raise DataUnavailableError(symbol, str(data[key]))

        quote = data.get("Global Quote") or {}
        if not quote:
            raise DataUnavailableError(symbol, "empty quote")

        return MarketSnapshot(
            symbol=symbol,
            price=to_float(quote.get("05. price")),
            percent_change=to_float(quote.get("10. change percent")),
            volume=to_float(quote.get("06. volume")),
            as_of=datetime.now(),
        )
