"""Trading decisions: ActionType and TradingAction."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel


class ActionType(str, Enum):
    """Kind of decision an agent can take at a step."""

    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


class TradingAction(BaseModel):
    """A single decision produced by the decision parser.

    ``total_cost`` stays ``None`` until the trade engine executes the action;
    the engine returns an enriched copy rather than mutating this one.
    ``amount`` is kept as the provider stated it, so a negative or zero
    amount reaches the engine and is rejected there.
    """

    model_config = {"frozen": True}

    action: ActionType
    symbol: str = ""
    amount: int = 0
    date: dt.date
    price: Decimal = Decimal(0)
    total_cost: Decimal | None = None
    agent_id: str = ""
    reasoning: str = ""

    @property
    def is_trade(self) -> bool:
        return self.action in (ActionType.BUY, ActionType.SELL)
