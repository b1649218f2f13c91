"""Position state models."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Mapping

from pydantic import BaseModel, Field, field_validator

from models.decision import TradingAction


class Position(BaseModel):
    """Cash and holdings (symbol -> shares) for one agent on one date.

    Positions are immutable. The trade engine derives a new ``Position`` from
    an old one plus an executed trade; the ledger only ever appends them.
    Holdings never contain zero or negative share counts.
    """

    model_config = {"frozen": True}

    date: dt.date
    agent_id: str
    holdings: dict[str, int] = Field(default_factory=dict)
    cash: Decimal = Field(ge=0)
    last_action: TradingAction | None = None

    @field_validator("holdings")
    @classmethod
    def _positive_holdings(cls, value: dict[str, int]) -> dict[str, int]:
        bad = {sym: qty for sym, qty in value.items() if qty <= 0}
        if bad:
            raise ValueError(f"Holdings must be positive share counts, got {bad}.")
        return value

    @classmethod
    def initial(cls, agent_id: str, date: dt.date, cash: Decimal) -> Position:
        """Opening position for an agent with no ledger history."""
        return cls(date=date, agent_id=agent_id, holdings={}, cash=cash)

    def holdings_value(self, prices: Mapping[str, Decimal]) -> Decimal:
        """Market value of the share holdings; unknown symbols count as zero."""
        return sum(
            (Decimal(qty) * prices.get(sym, Decimal(0)) for sym, qty in self.holdings.items()),
            Decimal(0),
        )

    def portfolio_value(self, prices: Mapping[str, Decimal]) -> Decimal:
        """Cash plus the market value of all holdings."""
        return self.cash + self.holdings_value(prices)
