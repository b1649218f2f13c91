"""Decision parser: free-form provider text -> ``TradingAction``.

Fallback chain:
  1. structured payload — a JSON object (fenced code block, or the span from
     the first ``{`` to the last ``}``) with ``action``, ``symbol``, ``amount``
     and ``reasoning`` fields;
  2. text scan — the text mentions "buy" and a symbol quoted today, which
     becomes a buy of ``FALLBACK_AMOUNT`` shares;
  3. hold.

``parse_decision`` never raises; unreadable text degrades to a hold.
"""

from __future__ import annotations

import json
import logging
import re
from decimal import Decimal
from typing import Any

from models.agents import AgentContext
from models.decision import ActionType, TradingAction
from simulation.errors import ParseError

logger = logging.getLogger(__name__)

# Shares bought when the action is recovered by the text scan.
FALLBACK_AMOUNT = 10

_FENCED_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_ACTIONS = {"buy": ActionType.BUY, "sell": ActionType.SELL, "hold": ActionType.HOLD}


def parse_decision(text: str | None, context: AgentContext) -> TradingAction:
    """Parse provider output into a single decision for *context*."""
    text = text or ""

    try:
        return _parse_structured(text, context)
    except ParseError as exc:
        logger.warning(
            "Failed to parse JSON decision for agent %s (%s): %.200s",
            context.agent_id,
            exc,
            text,
        )

    scanned = _scan_text(text, context)
    if scanned is not None:
        return scanned

    return _make_action(ActionType.HOLD, "", 0, text, context)


# ------------------------------------------------------------------
# Stage 1: structured payload
# ------------------------------------------------------------------

def _parse_structured(text: str, context: AgentContext) -> TradingAction:
    payload = _extract_payload(text)

    raw_action = payload.get("action")
    if not isinstance(raw_action, str):
        raise ParseError("missing or non-string 'action' field")
    # Unknown verbs are treated as a hold.
    action = _ACTIONS.get(raw_action.strip().lower(), ActionType.HOLD)

    raw_symbol = payload.get("symbol") or ""
    if not isinstance(raw_symbol, str):
        raise ParseError(f"non-string 'symbol' field: {raw_symbol!r}")
    symbol = raw_symbol.strip().upper()

    amount = _coerce_amount(payload.get("amount"))

    reasoning = payload.get("reasoning")
    if not isinstance(reasoning, str) or not reasoning:
        reasoning = text

    if action == ActionType.HOLD:
        return _make_action(ActionType.HOLD, "", 0, reasoning, context)
    return _make_action(action, symbol, amount, reasoning, context)


def _extract_payload(text: str) -> dict[str, Any]:
    candidates: list[str] = []
    fenced = _FENCED_RE.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())
    start, end = text.find("{"), text.rfind("}")
    if start >= 0 and end > start:
        candidates.append(text[start:end + 1])

    if not candidates:
        raise ParseError("no JSON object found")

    last_error: Exception | None = None
    for candidate in candidates:
        try:
            payload = json.loads(candidate)
        except (ValueError, RecursionError) as exc:
            # ValueError covers JSONDecodeError and oversized integer literals.
            # RecursionError comes from pathologically deep nesting.
            last_error = exc
            continue
        if isinstance(payload, dict):
            return payload
        last_error = ValueError(f"expected an object, got {type(payload).__name__}")
    raise ParseError(f"invalid JSON payload: {last_error}")


def _coerce_amount(value: Any) -> int:
    """Accept ints, integral floats and integer strings; ``None`` means 0."""
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ParseError(f"boolean 'amount' field: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ParseError(f"non-integer 'amount' field: {value!r}")


# ------------------------------------------------------------------
# Stage 2: text scan
# ------------------------------------------------------------------

def _scan_text(text: str, context: AgentContext) -> TradingAction | None:
    lowered = text.lower()
    if "buy" not in lowered or not context.prices:
        return None

    for symbol in context.prices:
        if re.search(rf"\b{re.escape(symbol.lower())}\b", lowered):
            return _make_action(ActionType.BUY, symbol, FALLBACK_AMOUNT, text, context)
    return None


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _make_action(
    action: ActionType,
    symbol: str,
    amount: int,
    reasoning: str,
    context: AgentContext,
) -> TradingAction:
    """Build the action, pricing buys at the open and sells at the close."""
    quote = context.prices.get(symbol) if symbol else None
    if quote is None:
        price = Decimal(0)
    elif action == ActionType.SELL:
        price = quote.sell_price
    else:
        price = quote.buy_price

    return TradingAction(
        action=action,
        symbol=symbol,
        amount=amount,
        date=context.current_date,
        price=price,
        agent_id=context.agent_id,
        reasoning=reasoning,
    )
