"""Data models for the multi-agent trading arena.

The ledger, trade engine, decision loop and orchestrator all import from models.
"""

from models.agents import AgentContext
from models.config import (
    AgentConfig,
    AgentSettings,
    ArenaConfig,
    DateRange,
    LogConfig,
    ModelEntry,
    PriceConfig,
)
from models.decision import ActionType, TradingAction
from models.log import DayResult, RunLog, SimulationProgress, TerminalReason, TradingLog
from models.market import StockPrice
from models.portfolio import Position
from models.trade import TradeResult

__all__ = [
    # agents
    "AgentContext",
    # config
    "AgentConfig",
    "AgentSettings",
    "ArenaConfig",
    "DateRange",
    "LogConfig",
    "ModelEntry",
    "PriceConfig",
    # decision
    "ActionType",
    "TradingAction",
    # log
    "DayResult",
    "RunLog",
    "SimulationProgress",
    "TerminalReason",
    "TradingLog",
    # market
    "StockPrice",
    # portfolio
    "Position",
    # trade
    "TradeResult",
]
