"""StockAlerts - price and condition alerts for stock symbols."""

__version__ = "0.1.0"
