"""Market snapshot data model."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class MarketSnapshot(BaseModel):
    """Point-in-time market data for one symbol.

    Fields a data source does not provide are left as None.
    """

    symbol: str = Field(..., min_length=1, description="Ticker symbol")
    price: Optional[float] = Field(default=None, description="Last traded price")
    percent_change: Optional[float] = Field(
        default=None, description="Change from previous close, in percent"
    )
    volume: Optional[float] = Field(default=None, ge=0, description="Session volume")
    as_of: datetime = Field(default_factory=datetime.now, description="Read time")

    model_config = {"frozen": True}
