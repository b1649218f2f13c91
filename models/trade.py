"""Trade execution result."""

from __future__ import annotations

from pydantic import BaseModel

from models.decision import TradingAction
from models.portfolio import Position


class TradeResult(BaseModel):
    """Outcome of ``trade_engine.execute``.

    On success ``updated_position`` and ``action`` are set. On rejection
    ``error_message`` names the shortfall and nothing else is populated.
    """

    success: bool
    error_message: str | None = None
    updated_position: Position | None = None
    action: TradingAction | None = None

    @classmethod
    def rejected(cls, message: str) -> TradeResult:
        return cls(success=False, error_message=message)
