"""Append-only position ledger, one JSON-lines file per agent.

Layout::

    {base_path}/{agent_id}/positions/position.jsonl

Each line is a self-describing entry::

    {"date": "2025-01-06", "agent_id": "gpt-4o", "positions": {"AAPL": 10, "CASH": 8500.25}}

The reserved ``CASH`` key carries the cash balance, so one flat mapping holds
the whole position. Entries are never rewritten; corrections are new appends.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
import os
from decimal import Decimal, InvalidOperation
from pathlib import Path

from models.portfolio import Position
from simulation.errors import PersistenceError

logger = logging.getLogger(__name__)

CASH_KEY = "CASH"


def to_ledger_line(position: Position) -> str:
    """Serialise *position* to a single ledger line (no trailing newline).

    Cash is written as a JSON number spelled with the Decimal's own digits;
    ``json`` cannot emit a Decimal, and a float detour loses precision.
    """
    if not position.cash.is_finite():
        raise ValueError(f"Cash must be finite, got {position.cash}.")
    fields = [f"{json.dumps(symbol)}: {qty}" for symbol, qty in position.holdings.items()]
    fields.append(f"{json.dumps(CASH_KEY)}: {position.cash}")
    return (
        f'{{"date": {json.dumps(position.date.isoformat())}, '
        f'"agent_id": {json.dumps(position.agent_id)}, '
        f'"positions": {{{", ".join(fields)}}}}}'
    )


def from_ledger_line(line: str) -> Position:
    """Parse one ledger line back into a ``Position``.

    Raises ``ValueError`` (or ``KeyError``) for malformed lines.
    """
    entry = json.loads(line, parse_float=Decimal)
    if not isinstance(entry, dict):
        raise ValueError(f"Ledger entry must be an object, got {type(entry).__name__}.")
    raw_positions = entry.get("positions") or {}
    cash = Decimal(str(raw_positions.get(CASH_KEY, 0)))
    holdings = {
        symbol: int(qty)
        for symbol, qty in raw_positions.items()
        if symbol != CASH_KEY
    }
    return Position(
        date=dt.date.fromisoformat(entry["date"]),
        agent_id=entry["agent_id"],
        holdings=holdings,
        cash=cash,
    )


class LedgerStore:
    """Durable per-agent position history.

    Each agent writes only its own partition, so concurrent agents need no
    cross-agent locking. A single agent's appends are sequential because its
    decision loop never has two steps in flight.
    """

    def __init__(self, base_path: str | Path) -> None:
        self._base_path = Path(base_path)

    @property
    def base_path(self) -> Path:
        return self._base_path

    def ledger_path(self, agent_id: str) -> Path:
        return self._base_path / agent_id / "positions" / "position.jsonl"

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append(self, position: Position) -> None:
        """Durably append one entry for ``(position.agent_id, position.date)``.

        Raises ``PersistenceError`` if the line cannot be written and synced.
        """
        path = self.ledger_path(position.agent_id)
        line = to_ledger_line(position)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
                fh.flush()
                os.fsync(fh.fileno())
        except OSError as exc:
            raise PersistenceError(
                f"Failed to append ledger entry for agent '{position.agent_id}' "
                f"on {position.date}: {exc}"
            ) from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def current_position(self, agent_id: str, as_of: dt.date) -> Position | None:
        """Most recent position dated on or before *as_of*, or ``None``.

        When several entries share the latest date, the last one written wins.
        """
        latest: Position | None = None
        for position in self._read_entries(agent_id):
            if position.date > as_of:
                continue
            if latest is None or position.date >= latest.date:
                latest = position
        return latest

    def history(self, agent_id: str, start: dt.date, end: dt.date) -> list[Position]:
        """All positions dated within ``[start, end]``, ascending by date.

        Same-date entries keep their write order.
        """
        positions = [
            p for p in self._read_entries(agent_id) if start <= p.date <= end
        ]
        return sorted(positions, key=lambda p: p.date)

    def _read_entries(self, agent_id: str) -> list[Position]:
        path = self.ledger_path(agent_id)
        if not path.exists():
            return []

        positions: list[Position] = []
        with path.open(encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    positions.append(from_ledger_line(line))
                except (ValueError, KeyError, TypeError, InvalidOperation) as exc:
                    logger.warning(
                        "Skipping malformed ledger entry %s:%d: %s", path, lineno, exc
                    )
        return positions
