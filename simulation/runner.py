"""Arena runner: wires config into the engine and drives a run.

Lifecycle:
    1. Build the ledger, log store, price provider, decision loop and
       orchestrator from the ``ArenaConfig``.
    2. Run a single agent-day, a cohort day, or a whole date range.
    3. Record each day's results and write a performance summary.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
import signal
from decimal import Decimal
from typing import Any

from agents.mock import MockReasoningProvider
from models.config import AgentConfig, ArenaConfig
from models.decision import TradingAction
from models.log import SimulationProgress
from models.portfolio import Position
from simulation.decision_loop import AgentDecisionLoop, ProviderFactory
from simulation.ledger import LedgerStore
from simulation.orchestrator import SimulationOrchestrator, trading_days
from simulation.prices import JsonlPriceProvider, PriceCache, PriceProvider
from simulation.sim_logging import SimulationLogger, agent_summary, run_name_from_config_path
from simulation.trade_log import TradingLogStore

logger = logging.getLogger(__name__)


class ArenaRunner:
    """Drives an arena run from a loaded configuration."""

    def __init__(
        self,
        config: ArenaConfig,
        config_yaml_path: str,
        output_dir: str = "results",
        mock: bool = False,
        provider_factory: ProviderFactory | None = None,
        price_provider: PriceProvider | None = None,
    ) -> None:
        self._config = config
        self._config_yaml_path = config_yaml_path
        self._agent_configs = config.agent_configs()

        if provider_factory is None and mock:
            provider_factory = MockReasoningProvider

        self._ledger = LedgerStore(config.log_config.log_path)
        self._log_store = TradingLogStore(config.log_config.log_path)
        self._prices = price_provider or JsonlPriceProvider(
            config.price_config.data_path,
            config.price_config.symbols,
            cache=PriceCache(),
            synthesize_missing=config.price_config.synthesize_missing,
        )
        loop_kwargs = {} if provider_factory is None else {"provider_factory": provider_factory}
        self._decision_loop = AgentDecisionLoop(
            self._ledger, self._log_store, self._prices, **loop_kwargs
        )
        self._orchestrator = SimulationOrchestrator(
            self._decision_loop, max_concurrency=config.max_concurrency
        )
        self._sim_logger = SimulationLogger(
            output_dir, run_name_from_config_path(config_yaml_path), config
        )

    @property
    def orchestrator(self) -> SimulationOrchestrator:
        return self._orchestrator

    @property
    def agent_configs(self) -> dict[str, AgentConfig]:
        return dict(self._agent_configs)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run_range(
        self,
        start: dt.date | None = None,
        end: dt.date | None = None,
    ) -> dict[str, list[TradingAction]]:
        """Run every enabled agent over ``[start, end]`` (default: config range)."""
        start = start or self._config.date_range.init_date
        end = end or self._config.date_range.end_date
        agent_ids = list(self._agent_configs)

        def _report(progress: SimulationProgress) -> None:
            self._sim_logger.record_day(progress.current_date, self._orchestrator.last_day_results)
            logger.info(
                "Progress: %s done (%d/%d days, %d agents)",
                progress.current_date,
                progress.completed_dates,
                progress.total_dates,
                progress.total_agents,
            )

        self._sim_logger.init_run(self._config_yaml_path)
        with self._cancel_on_signal():
            results = await self._orchestrator.run_date_range(
                start, end, agent_ids, self._agent_configs, progress=_report
            )
        await self._finalize(results, start, end)
        return results

    async def run_day(
        self,
        date: dt.date,
        agent_id: str | None = None,
    ) -> dict[str, list[TradingAction]]:
        """Run one day for a single agent, or for every enabled agent."""
        self._sim_logger.init_run(self._config_yaml_path)
        with self._cancel_on_signal():
            if agent_id is not None:
                if agent_id not in self._agent_configs:
                    available = ", ".join(sorted(self._agent_configs)) or "(none)"
                    raise KeyError(f"Unknown or disabled agent '{agent_id}'. Available: {available}.")
                actions = await self._orchestrator.run_single_agent_day(
                    date, agent_id, self._agent_configs[agent_id]
                )
                results = {agent_id: actions}
            else:
                results = await self._orchestrator.run_all_agents_day(
                    date, list(self._agent_configs), self._agent_configs
                )
        self._sim_logger.record_day(date, self._orchestrator.last_day_results)
        await self._finalize(results, date, date)
        return results

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    async def _finalize(
        self,
        results: dict[str, list[TradingAction]],
        start: dt.date,
        end: dt.date,
    ) -> None:
        summary = await self._build_summary(results, start, end)
        self._sim_logger.finalize(summary)
        logger.info("Run complete. Output: %s", self._sim_logger.run_dir)

    async def _build_summary(
        self,
        results: dict[str, list[TradingAction]],
        start: dt.date,
        end: dt.date,
    ) -> dict[str, Any]:
        """Closing value and return per agent, priced at the last trading day's close."""
        days = trading_days(start, end)
        closes: dict[str, Decimal] = {}
        if days:
            quotes = await self._prices.prices_for_date(days[-1])
            closes = {symbol: bar.close for symbol, bar in quotes.items()}

        summaries = []
        for agent_id, actions in results.items():
            config = self._agent_configs[agent_id]
            position = self._ledger.current_position(agent_id, end) or Position.initial(
                agent_id, start, config.initial_cash
            )
            summaries.append(agent_summary(position, config.initial_cash, closes, len(actions)))

        return {
            "run_name": self._sim_logger.run_log.run_name,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "trading_days": len(days),
            "cancelled": self._orchestrator.cancelled,
            "agent_summaries": summaries,
        }

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def _cancel_on_signal(self) -> _SignalCancellation:
        return _SignalCancellation(self._orchestrator)


class _SignalCancellation:
    """Context manager routing SIGINT/SIGTERM to ``orchestrator.cancel``."""

    _SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(self, orchestrator: SimulationOrchestrator) -> None:
        self._orchestrator = orchestrator
        self._installed: list[signal.Signals] = []

    def __enter__(self) -> _SignalCancellation:
        loop = asyncio.get_running_loop()
        for sig in self._SIGNALS:
            try:
                loop.add_signal_handler(sig, self._orchestrator.cancel)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform / not the main thread.
                continue
            self._installed.append(sig)
        return self

    def __exit__(self, *exc_info: object) -> None:
        loop = asyncio.get_running_loop()
        for sig in self._installed:
            loop.remove_signal_handler(sig)
