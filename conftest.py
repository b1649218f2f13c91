"""Shared fixtures and helpers for the arena tests.

Nothing here calls a real LLM API; providers are scripted and sleeps are
recorded instead of awaited.
"""

from __future__ import annotations

import asyncio
import datetime as dt
from decimal import Decimal

import pytest

from agents.mock import ScriptedReasoningProvider
from models.config import AgentConfig
from models.market import StockPrice
from simulation.decision_loop import AgentDecisionLoop
from simulation.ledger import LedgerStore
from simulation.prices import StaticPriceProvider
from simulation.trade_log import TradingLogStore

MONDAY = dt.date(2025, 1, 6)
TUESDAY = dt.date(2025, 1, 7)


def run_async(coro):
    return asyncio.run(coro)


def make_price(symbol: str, date: dt.date, open_: str, close: str, volume: int = 1_000_000) -> StockPrice:
    o, c = Decimal(open_), Decimal(close)
    return StockPrice(
        symbol=symbol,
        date=date,
        open=o,
        high=max(o, c) + 1,
        low=min(o, c) - 1,
        close=c,
        volume=volume,
    )


def make_config(name: str = "alpha", **overrides) -> AgentConfig:
    params = {
        "name": name,
        "model": "scripted",
        "max_steps": 5,
        "max_retries": 2,
        "base_delay": 1.0,
        "initial_cash": Decimal("10000"),
    }
    params.update(overrides)
    return AgentConfig(**params)


class SleepRecorder:
    """Stands in for ``asyncio.sleep``; records delays and yields control."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


class ScriptedFactory:
    """Provider factory handing each agent its own scripted provider."""

    def __init__(self, scripts: dict) -> None:
        self._scripts = scripts
        self.providers: dict[str, ScriptedReasoningProvider] = {}

    def __call__(self, config: AgentConfig) -> ScriptedReasoningProvider:
        if config.name not in self.providers:
            self.providers[config.name] = ScriptedReasoningProvider(config, self._scripts[config.name])
        return self.providers[config.name]


@pytest.fixture
def prices():
    """Two trading days of AAPL/MSFT quotes."""
    return StaticPriceProvider(
        {
            MONDAY: {
                "AAPL": make_price("AAPL", MONDAY, "150", "155"),
                "MSFT": make_price("MSFT", MONDAY, "400", "405"),
            },
            TUESDAY: {
                "AAPL": make_price("AAPL", TUESDAY, "158", "160"),
                "MSFT": make_price("MSFT", TUESDAY, "402", "398"),
            },
        }
    )


@pytest.fixture
def ledger(tmp_path) -> LedgerStore:
    return LedgerStore(tmp_path / "agents")


@pytest.fixture
def log_store(tmp_path) -> TradingLogStore:
    return TradingLogStore(tmp_path / "agents")


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def build_loop(ledger, log_store, prices, sleeper):
    """Factory: ``build_loop(scripts)`` -> (loop, provider factory)."""

    def _build(scripts: dict, price_provider=None):
        factory = ScriptedFactory(scripts)
        loop = AgentDecisionLoop(
            ledger,
            log_store,
            price_provider or prices,
            provider_factory=factory,
            sleep=sleeper,
        )
        return loop, factory

    return _build
