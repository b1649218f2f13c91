"""Offline reasoning providers (no API calls).

- ``MockReasoningProvider`` — registered as ``mock``; derives a deterministic
  decision from the step prompt, for ``--mock`` runs without API keys.
- ``ScriptedReasoningProvider`` — replays a fixed list of responses; an
  exception in the list is raised instead of returned. Used by the tests.
"""

from __future__ import annotations

import json
import random
import re
import zlib
from typing import Callable, Sequence

from agents.base import ReasoningProvider
from agents.registry import register
from models.config import AgentConfig

_DATE_RE = re.compile(r"Current Date:\s*(\d{4}-\d{2}-\d{2})")
_QUOTE_RE = re.compile(r"^- ([A-Z][A-Z.]*): Open=\$", re.MULTILINE)
_HOLDING_RE = re.compile(r"^- ([A-Z][A-Z.]*): (\d+) shares", re.MULTILINE)


def _mock_decision(agent_name: str, user: str, call_index: int) -> dict:
    """Deterministic decision for one step, seeded by agent, date and step."""
    date_match = _DATE_RE.search(user)
    day = date_match.group(1) if date_match else ""
    rng = random.Random(zlib.crc32(f"{agent_name}:{day}:{call_index}".encode("utf-8")))

    quotes = _QUOTE_RE.findall(user)
    holdings = {sym: int(qty) for sym, qty in _HOLDING_RE.findall(user)}

    roll = rng.random()
    if holdings and roll < 0.3:
        symbol = rng.choice(sorted(holdings))
        amount = max(1, holdings[symbol] // 2)
        return {
            "action": "sell",
            "symbol": symbol,
            "amount": amount,
            "reasoning": f"[mock] Taking profit on half of the {symbol} position.",
        }
    if quotes and roll < 0.75:
        symbol = rng.choice(quotes)
        return {
            "action": "buy",
            "symbol": symbol,
            "amount": rng.randint(1, 10),
            "reasoning": f"[mock] {symbol} looks constructive today.",
        }
    return {"action": "hold", "symbol": "", "amount": 0, "reasoning": "[mock] Nothing compelling."}


@register("mock")
class MockReasoningProvider(ReasoningProvider):
    """Deterministic offline provider returning JSON decisions."""

    def __init__(self, config: AgentConfig) -> None:
        super().__init__(config)
        self._calls = 0

    async def complete(self, system: str, user: str) -> str:
        decision = _mock_decision(self.config.name, user, self._calls)
        self._calls += 1
        return json.dumps(decision)


class ScriptedReasoningProvider(ReasoningProvider):
    """Replays *responses* in order, repeating the last one when exhausted.

    Each entry is either the text to return or an exception instance to raise.
    *responses* may also be a callable ``(system, user, call_index) -> str``.
    """

    def __init__(
        self,
        config: AgentConfig,
        responses: Sequence[str | BaseException] | Callable[[str, str, int], str],
    ) -> None:
        super().__init__(config)
        self._responses = responses
        self.calls: list[tuple[str, str]] = []

    async def complete(self, system: str, user: str) -> str:
        index = len(self.calls)
        self.calls.append((system, user))

        if callable(self._responses):
            return self._responses(system, user, index)

        if not self._responses:
            raise ValueError("ScriptedReasoningProvider needs at least one response.")
        item = self._responses[min(index, len(self._responses) - 1)]
        if isinstance(item, BaseException):
            raise item
        return item
