"""Logging and run-result models.

- ``TradingLog`` — one durable record per reasoning step.
- ``DayResult`` — what one agent's decision loop produced for one day.
- ``SimulationProgress`` — progress report emitted after each simulated day.
"""

from __future__ import annotations

import datetime as dt
from enum import Enum

from pydantic import BaseModel, Field

from models.config import ArenaConfig
from models.decision import TradingAction


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class TradingLog(BaseModel):
    """Append-only record of a single reasoning step for one agent on one day."""

    date: dt.date
    agent_id: str
    step: int = Field(ge=0)
    message: str = ""
    reasoning: str | None = None
    action: TradingAction | None = None
    timestamp: dt.datetime = Field(default_factory=_utcnow)


class TerminalReason(str, Enum):
    """Why an agent's trading day ended."""

    MAX_STEPS = "max_steps"
    HOLD = "hold"
    PROVIDER_EXHAUSTED = "provider_exhausted"
    NO_PRICES = "no_prices"
    PERSISTENCE_ERROR = "persistence_error"
    CANCELLED = "cancelled"
    AGENT_ERROR = "agent_error"

    @property
    def is_failure(self) -> bool:
        return self in (
            TerminalReason.PROVIDER_EXHAUSTED,
            TerminalReason.PERSISTENCE_ERROR,
            TerminalReason.AGENT_ERROR,
        )


class DayResult(BaseModel):
    """Executed actions and terminal reason for one (agent, date) decision loop."""

    agent_id: str
    date: dt.date
    actions: list[TradingAction] = []
    terminal_reason: TerminalReason
    steps_taken: int = 0
    error: str | None = None


class SimulationProgress(BaseModel):
    """Reported to the progress sink after each completed trading day."""

    current_date: dt.date
    total_dates: int
    completed_dates: int
    total_agents: int
    completed_agents: int


class RunLog(BaseModel):
    """Run-level log with embedded configuration for reproducibility.

    ``run_name`` is derived from the configuration file path by the runner.
    """

    run_name: str
    config: ArenaConfig | None = None
    day_results: list[DayResult] = []
    errors: list[str] = []
