"""Trade engine: validation and application of one action to a position.

Everything here is pure. The engine never touches the ledger; callers persist
the returned position. Business-rule violations are reported through a
rejected ``TradeResult`` with a message naming the shortfall.
"""

from __future__ import annotations

from decimal import Decimal

from models.decision import ActionType, TradingAction
from models.portfolio import Position
from models.trade import TradeResult


def calculate_cost(price: Decimal, amount: int) -> Decimal:
    """Gross value of *amount* shares at *price*."""
    return price * amount


def validate(action: TradingAction, position: Position) -> bool:
    """Return ``True`` if *action* can be applied to *position*.

    Buys need ``cash >= price * amount``, sells need enough shares of the
    symbol, both need a positive amount. Holds are always valid.
    """
    if action.action == ActionType.BUY:
        return action.amount > 0 and position.cash >= calculate_cost(action.price, action.amount)
    if action.action == ActionType.SELL:
        return action.amount > 0 and position.holdings.get(action.symbol, 0) >= action.amount
    return True


def execute(action: TradingAction, position: Position) -> TradeResult:
    """Apply *action* to *position* and return the new position.

    The input position is never mutated. On success the result carries a new
    ``Position`` dated on the action's date, plus a copy of the action with
    ``total_cost`` stamped.

    Raises ``TypeError`` only when called with the wrong argument types.
    """
    if not isinstance(action, TradingAction):
        raise TypeError(f"Expected TradingAction, got {type(action).__name__}.")
    if not isinstance(position, Position):
        raise TypeError(f"Expected Position, got {type(position).__name__}.")

    if action.action == ActionType.HOLD:
        return TradeResult.rejected("Hold actions are not executable")
    if action.amount <= 0:
        return TradeResult.rejected("Trade amount must be greater than zero")
    if not action.symbol:
        return TradeResult.rejected("Stock symbol is required")

    cost = calculate_cost(action.price, action.amount)

    if not validate(action, position):
        if action.action == ActionType.BUY:
            message = (
                f"Insufficient cash for purchase. Required: ${cost:.2f}, "
                f"Available: ${position.cash:.2f}"
            )
        else:
            message = (
                f"Insufficient holdings for sale. Required: {action.amount}, "
                f"Available: {position.holdings.get(action.symbol, 0)}"
            )
        return TradeResult.rejected(message)

    holdings = dict(position.holdings)
    held = holdings.get(action.symbol, 0)

    if action.action == ActionType.BUY:
        cash = position.cash - cost
        holdings[action.symbol] = held + action.amount
    else:
        cash = position.cash + cost
        remaining = held - action.amount
        if remaining > 0:
            holdings[action.symbol] = remaining
        else:
            del holdings[action.symbol]

    executed = action.model_copy(update={"total_cost": cost})
    updated = Position(
        date=action.date,
        agent_id=position.agent_id,
        holdings=holdings,
        cash=cash,
        last_action=executed,
    )
    return TradeResult(success=True, updated_position=updated, action=executed)
