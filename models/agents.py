"""Per-step agent context passed to the reasoning provider."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel

from models.config import AgentConfig
from models.decision import TradingAction
from models.market import StockPrice
from models.portfolio import Position


class AgentContext(BaseModel):
    """Ephemeral working state for one reasoning step.

    Rebuilt from the latest ``Position`` at every step and never persisted.
    """

    position: Position
    current_date: dt.date
    prices: dict[str, StockPrice]
    previous_actions: list[TradingAction] = []
    agent_id: str
    config: AgentConfig
