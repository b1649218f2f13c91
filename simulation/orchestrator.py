"""Multi-agent orchestration: agents run concurrently within a day, days run in order.

Day N+1 opens from the positions written on day N, so ``run_date_range``
waits for every agent in the cohort to finish a day before starting the next
one. Within a day each agent writes only its own ledger partition, so the
agents can interleave freely.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from typing import Callable

from models.config import AgentConfig
from models.decision import TradingAction
from models.log import DayResult, SimulationProgress, TerminalReason
from simulation.decision_loop import AgentDecisionLoop

logger = logging.getLogger(__name__)

ProgressSink = Callable[[SimulationProgress], None]


def trading_days(start: dt.date, end: dt.date) -> list[dt.date]:
    """Weekdays in ``[start, end]``. No holiday calendar is applied."""
    days: list[dt.date] = []
    day = start
    while day <= end:
        if day.weekday() < 5:
            days.append(day)
        day += dt.timedelta(days=1)
    return days


class SimulationOrchestrator:
    """Runs decision loops for a cohort of agents over one day or a date range."""

    def __init__(
        self,
        decision_loop: AgentDecisionLoop,
        max_concurrency: int | None = None,
    ) -> None:
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}.")
        self._decision_loop = decision_loop
        self._max_concurrency = max_concurrency
        self._cancel_event = asyncio.Event()
        self._last_day_results: dict[str, DayResult] = {}

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Stop starting new days and new provider calls.

        Trades already executing finish and are persisted.
        """
        logger.info("Cancellation requested")
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def last_day_results(self) -> dict[str, DayResult]:
        """``DayResult`` per agent for the most recently completed day."""
        return dict(self._last_day_results)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run_single_agent_day(
        self,
        date: dt.date,
        agent_id: str,
        config: AgentConfig,
    ) -> list[TradingAction]:
        """Run one agent for one day and return its executed actions."""
        result = await self._run_agent(date, agent_id, {agent_id: config}, asyncio.Semaphore(1))
        self._last_day_results = {agent_id: result}
        return result.actions

    async def run_all_agents_day(
        self,
        date: dt.date,
        agent_ids: list[str],
        configs: dict[str, AgentConfig],
    ) -> dict[str, list[TradingAction]]:
        """Run every agent concurrently for *date*.

        An agent that fails, or has no config, gets an empty action list; its
        siblings are unaffected.
        """
        # A duplicated id would put two concurrent loops on one ledger partition.
        cohort = list(dict.fromkeys(agent_ids))
        logger.info("Starting multi-agent simulation for %s with %d agents", date, len(cohort))

        semaphore = asyncio.Semaphore(self._max_concurrency or max(len(cohort), 1))
        results = await asyncio.gather(
            *(self._run_agent(date, agent_id, configs, semaphore) for agent_id in cohort)
        )

        self._last_day_results = {r.agent_id: r for r in results}
        day_actions = {r.agent_id: r.actions for r in results}
        logger.info(
            "Completed multi-agent simulation for %s. Total actions: %d",
            date,
            sum(len(a) for a in day_actions.values()),
        )
        return day_actions

    run_day = run_all_agents_day

    async def run_date_range(
        self,
        start: dt.date,
        end: dt.date,
        agent_ids: list[str],
        configs: dict[str, AgentConfig],
        progress: ProgressSink | None = None,
    ) -> dict[str, list[TradingAction]]:
        """Run the cohort over every trading day in ``[start, end]``, in order.

        Returns all executed actions per agent across the range. After each
        day the optional *progress* sink receives a ``SimulationProgress``.
        """
        cohort = list(dict.fromkeys(agent_ids))
        days = trading_days(start, end)
        all_actions: dict[str, list[TradingAction]] = {agent_id: [] for agent_id in cohort}

        logger.info(
            "Starting date range simulation from %s to %s (%d trading days) with %d agents",
            start,
            end,
            len(days),
            len(cohort),
        )

        for completed, day in enumerate(days, start=1):
            if self.cancelled:
                logger.info("Run cancelled before %s; %d day(s) not started", day, len(days) - completed + 1)
                break

            day_actions = await self.run_all_agents_day(day, cohort, configs)
            for agent_id, actions in day_actions.items():
                all_actions.setdefault(agent_id, []).extend(actions)

            if progress is not None:
                progress(
                    SimulationProgress(
                        current_date=day,
                        total_dates=len(days),
                        completed_dates=completed,
                        total_agents=len(cohort),
                        completed_agents=len(day_actions),
                    )
                )

        logger.info(
            "Completed date range simulation. Total actions across all agents: %d",
            sum(len(a) for a in all_actions.values()),
        )
        return all_actions

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run_agent(
        self,
        date: dt.date,
        agent_id: str,
        configs: dict[str, AgentConfig],
        semaphore: asyncio.Semaphore,
    ) -> DayResult:
        config = configs.get(agent_id)
        if config is None:
            logger.warning("Config not found for agent %s", agent_id)
            return DayResult(
                agent_id=agent_id,
                date=date,
                terminal_reason=TerminalReason.AGENT_ERROR,
                error="config not found",
            )

        async with semaphore:
            try:
                logger.info("Running agent %s for date %s", agent_id, date)
                return await self._decision_loop.run_trading_day(
                    date, agent_id, config, cancel_event=self._cancel_event
                )
            except Exception as exc:
                logger.exception("Error running agent %s for date %s", agent_id, date)
                return DayResult(
                    agent_id=agent_id,
                    date=date,
                    terminal_reason=TerminalReason.AGENT_ERROR,
                    error=f"{type(exc).__name__}: {exc}",
                )
