"""Market data gateways for StockAlerts."""

from stockalerts.gateways.base import BaseGateway, SnapshotBatch
from stockalerts.gateways.alphavantage import AlphaVantageGateway
from stockalerts.gateways.finnhub import FinnhubGateway
from stockalerts.gateways.static import StaticGateway

__all__ = [
    "AlphaVantageGateway",
    "BaseGateway",
    "FinnhubGateway",
    "SnapshotBatch",
    "StaticGateway",
]
