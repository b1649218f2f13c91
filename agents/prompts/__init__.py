"""Prompts for the trading agents.

Templates are ``.jinja`` files in this package directory, rendered via Jinja2.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from models.agents import AgentContext
from models.decision import TradingAction

# ---------------------------------------------------------------------------
# Jinja2 environment; templates live next to this __init__.py
# ---------------------------------------------------------------------------

_TEMPLATE_DIR = Path(__file__).resolve().parent
_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    keep_trailing_newline=True,
    undefined=StrictUndefined,
)

# Cap on quotes listed per prompt; the universe can be much larger.
MAX_PROMPT_SYMBOLS = 20


def build_system_prompt() -> str:
    """System instruction describing the JSON decision contract."""
    return _env.get_template("system.jinja").render()


def build_trading_prompt(context: AgentContext) -> str:
    """Per-step prompt: cash, holdings at live value, capped price list."""
    position = context.position
    prices = context.prices

    holdings = []
    for symbol, shares in position.holdings.items():
        quote = prices.get(symbol)
        value = shares * quote.close if quote is not None else Decimal(0)
        holdings.append({"symbol": symbol, "shares": shares, "value": _money(value)})

    quotes = [
        {
            "symbol": symbol,
            "open": _money(bar.open),
            "high": _money(bar.high),
            "low": _money(bar.low),
            "close": _money(bar.close),
            "volume": f"{bar.volume:,}",
        }
        for symbol, bar in list(prices.items())[:MAX_PROMPT_SYMBOLS]
    ]

    return _env.get_template("trading_step.jinja").render(
        date=context.current_date.isoformat(),
        cash=_money(position.cash),
        holdings=holdings,
        quotes=quotes,
        previous_actions=[describe_action(a) for a in context.previous_actions],
    )


def describe_action(action: TradingAction) -> str:
    """One-line human-readable description of an executed action."""
    total = action.total_cost if action.total_cost is not None else Decimal(0)
    return (
        f"{action.action.value.upper()} {action.amount} shares of {action.symbol} "
        f"at ${_money(action.price)} (Total: ${_money(total)})"
    )


def _money(value: Decimal) -> str:
    return f"{value:.2f}"
