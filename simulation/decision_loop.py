"""Per-agent, per-day decision loop.

Lifecycle of ``run_trading_day``:
    1. Start: load the previous close from the ledger (or synthesise the
       opening position from ``initial_cash``) and fetch the day's prices.
       No prices ends the day with zero actions.
    2. For each step, up to ``max_steps``:
        - Build an ``AgentContext`` from the latest position.
        - Ask the reasoning provider for a decision, retrying provider
          failures with exponential backoff.
        - Parse the text into a ``TradingAction`` (never fails; worst case hold).
        - Hold: logged; ends the day unless it is the first step.
        - Invalid buy/sell: logged, next step.
        - Valid buy/sell: executed by the trade engine; fills are appended to
          the ledger before they count.
        - Wait ``base_delay`` before the next step.
    3. Write one terminal log line naming why the day ended and return the
       executed actions.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from typing import Awaitable, Callable

from agents.base import ReasoningProvider
from agents.parser import parse_decision
from agents.prompts import build_system_prompt, build_trading_prompt, describe_action
from agents.registry import create_reasoning_provider
from agents.retry import RetryPolicy
from models.agents import AgentContext
from models.config import AgentConfig
from models.decision import ActionType, TradingAction
from models.log import DayResult, TerminalReason, TradingLog
from models.portfolio import Position
from simulation import trade_engine
from simulation.errors import (
    DataUnavailableError,
    PersistenceError,
    StepFatalError,
    TradeValidationError,
)
from simulation.ledger import LedgerStore
from simulation.prices import PriceProvider
from simulation.trade_log import TradingLogStore

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[AgentConfig], ReasoningProvider]


class AgentDecisionLoop:
    """Runs one agent through one trading day.

    Holds no per-agent state, so one instance can serve every agent in a
    cohort concurrently.
    """

    def __init__(
        self,
        ledger: LedgerStore,
        log_store: TradingLogStore,
        price_provider: PriceProvider,
        provider_factory: ProviderFactory = create_reasoning_provider,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._ledger = ledger
        self._log_store = log_store
        self._price_provider = price_provider
        self._provider_factory = provider_factory
        self._sleep = sleep

    async def run_trading_day(
        self,
        date: dt.date,
        agent_id: str,
        config: AgentConfig,
        cancel_event: asyncio.Event | None = None,
    ) -> DayResult:
        """Run the decision loop for *agent_id* on *date*."""

        def cancelled() -> bool:
            return cancel_event is not None and cancel_event.is_set()

        actions: list[TradingAction] = []
        steps_taken = 0
        error: str | None = None
        reason = TerminalReason.MAX_STEPS

        try:
            position = await asyncio.to_thread(
                self._ledger.current_position, agent_id, date - dt.timedelta(days=1)
            )
            if position is None:
                position = Position.initial(agent_id, date, config.initial_cash)

            prices = await self._price_provider.prices_for_date(date)
            if not prices:
                logger.warning("No prices available for %s; agent %s skips the day", date, agent_id)
                error = str(DataUnavailableError(f"no prices available for {date}"))
                reason = TerminalReason.NO_PRICES
                return await self._finish(date, agent_id, steps_taken, actions, reason, error)

            provider = self._provider_factory(config)
            policy = RetryPolicy(config.max_retries, config.base_delay, sleep=self._sleep)
            system_prompt = build_system_prompt()

            for step in range(config.max_steps):
                if cancelled():
                    reason = TerminalReason.CANCELLED
                    break

                steps_taken = step + 1
                logger.info(
                    "Agent %s step %d/%d on %s", agent_id, step + 1, config.max_steps, date
                )
                context = AgentContext(
                    position=position,
                    current_date=date,
                    prices=prices,
                    previous_actions=list(actions),
                    agent_id=agent_id,
                    config=config,
                )
                user_prompt = build_trading_prompt(context)

                outcome = await policy.run(
                    lambda: provider.complete(system_prompt, user_prompt),
                    should_stop=cancelled,
                    label=f"agent {agent_id} step {step}",
                )
                if outcome.cancelled:
                    reason = TerminalReason.CANCELLED
                    break
                if not outcome.ok:
                    fatal: StepFatalError = outcome.error
                    error = str(fatal)
                    reason = TerminalReason.PROVIDER_EXHAUSTED
                    await self._save_log(
                        TradingLog(date=date, agent_id=agent_id, step=step, message=f"Error: {fatal}")
                    )
                    break

                action = parse_decision(outcome.value, context)

                if action.action == ActionType.HOLD:
                    if step > 0 and config.terminate_on_hold_after_first_step:
                        await self._save_log(
                            TradingLog(
                                date=date,
                                agent_id=agent_id,
                                step=step,
                                message="Agent decided to hold - ending trading day",
                                reasoning=action.reasoning,
                            )
                        )
                        reason = TerminalReason.HOLD
                        break
                    log = TradingLog(
                        date=date,
                        agent_id=agent_id,
                        step=step,
                        message="Agent decided to hold",
                        reasoning=action.reasoning,
                    )
                elif not action.symbol or action.amount <= 0 or action.symbol not in prices:
                    rejection = TradeValidationError(
                        f"Invalid action: Symbol={action.symbol}, Amount={action.amount}"
                    )
                    logger.warning("%s for agent %s: %s", rejection.category, agent_id, rejection)
                    log = TradingLog(
                        date=date,
                        agent_id=agent_id,
                        step=step,
                        message=str(rejection),
                        reasoning=action.reasoning,
                    )
                else:
                    result = trade_engine.execute(action, position)
                    if result.success:
                        # Only a confirmed append makes the fill count.
                        await asyncio.to_thread(self._ledger.append, result.updated_position)
                        position = result.updated_position
                        actions.append(result.action)
                        logger.info(
                            "Agent %s executed %s %d shares of %s at $%.2f",
                            agent_id,
                            action.action.value,
                            action.amount,
                            action.symbol,
                            action.price,
                        )
                        log = TradingLog(
                            date=date,
                            agent_id=agent_id,
                            step=step,
                            message=describe_action(result.action),
                            reasoning=action.reasoning,
                            action=result.action,
                        )
                    else:
                        rejection = TradeValidationError(f"Trade failed: {result.error_message}")
                        logger.warning(
                            "%s for agent %s: %s", rejection.category, agent_id, rejection
                        )
                        log = TradingLog(
                            date=date,
                            agent_id=agent_id,
                            step=step,
                            message=str(rejection),
                            reasoning=action.reasoning,
                        )

                await self._save_log(log)

                if step < config.max_steps - 1:
                    await self._sleep(config.base_delay)

        except PersistenceError as exc:
            logger.error("Persistence failure for agent %s on %s: %s", agent_id, date, exc)
            error = str(exc)
            reason = TerminalReason.PERSISTENCE_ERROR
        except Exception as exc:
            logger.exception("Error in trading day for agent %s on %s", agent_id, date)
            error = f"{type(exc).__name__}: {exc}"
            reason = TerminalReason.AGENT_ERROR

        return await self._finish(date, agent_id, steps_taken, actions, reason, error)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _save_log(self, log: TradingLog) -> None:
        await asyncio.to_thread(self._log_store.save, log)

    async def _finish(
        self,
        date: dt.date,
        agent_id: str,
        steps_taken: int,
        actions: list[TradingAction],
        reason: TerminalReason,
        error: str | None,
    ) -> DayResult:
        """Write the terminal log line and build the ``DayResult``."""
        message = _terminal_message(reason, steps_taken, error)
        try:
            await self._save_log(
                TradingLog(date=date, agent_id=agent_id, step=steps_taken, message=message)
            )
        except PersistenceError as exc:
            logger.error("Could not write terminal log for agent %s: %s", agent_id, exc)

        log_fn = logger.warning if reason.is_failure else logger.info
        log_fn(
            "Agent %s finished %s with %d action(s): %s", agent_id, date, len(actions), message
        )
        return DayResult(
            agent_id=agent_id,
            date=date,
            actions=actions,
            terminal_reason=reason,
            steps_taken=steps_taken,
            error=error,
        )


def _terminal_message(reason: TerminalReason, steps_taken: int, error: str | None) -> str:
    if reason == TerminalReason.MAX_STEPS:
        detail = f"max steps reached ({steps_taken})"
    elif reason == TerminalReason.HOLD:
        detail = "agent decided to hold"
    elif reason == TerminalReason.PROVIDER_EXHAUSTED:
        detail = f"{StepFatalError.category}: {error}"
    elif reason == TerminalReason.NO_PRICES:
        detail = f"{DataUnavailableError.category}: {error}"
    elif reason == TerminalReason.PERSISTENCE_ERROR:
        detail = f"{PersistenceError.category}: {error}"
    elif reason == TerminalReason.CANCELLED:
        detail = "run cancelled"
    else:
        detail = f"unexpected error: {error}"
    return f"Trading day ended - {detail}"
