"""Market data models."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel


class StockPrice(BaseModel):
    """One day's OHLCV bar for a symbol.

    By convention buys fill at the open and sells fill at the close.
    """

    symbol: str
    date: dt.date
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int = 0

    @property
    def buy_price(self) -> Decimal:
        return self.open

    @property
    def sell_price(self) -> Decimal:
        return self.close
