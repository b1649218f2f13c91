"""Per-step trading log persistence.

Layout::

    {base_path}/{agent_id}/logs/{YYYY-MM-DD}/log.jsonl

One JSON line per reasoning step, append-only, partitioned by agent and date.
"""

from __future__ import annotations

import datetime as dt
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from models.log import TradingLog
from simulation.errors import PersistenceError

logger = logging.getLogger(__name__)


class TradingLogStore:
    """Reads and appends ``TradingLog`` records."""

    def __init__(self, base_path: str | Path) -> None:
        self._base_path = Path(base_path)

    def log_path(self, agent_id: str, date: dt.date) -> Path:
        return self._base_path / agent_id / "logs" / date.isoformat() / "log.jsonl"

    def save(self, log: TradingLog) -> None:
        """Append *log*; raises ``PersistenceError`` if the write fails."""
        path = self.log_path(log.agent_id, log.date)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as fh:
                fh.write(log.model_dump_json() + "\n")
                fh.flush()
                os.fsync(fh.fileno())
        except OSError as exc:
            raise PersistenceError(
                f"Failed to write step {log.step} log for agent '{log.agent_id}' "
                f"on {log.date}: {exc}"
            ) from exc

    def get_logs(self, agent_id: str, date: dt.date) -> list[TradingLog]:
        """All logs for one agent and day, ordered by step.

        The sort is stable, so the terminal line written after the last step
        stays after it.
        """
        path = self.log_path(agent_id, date)
        if not path.exists():
            return []

        logs: list[TradingLog] = []
        with path.open(encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    logs.append(TradingLog.model_validate_json(line))
                except ValidationError as exc:
                    logger.warning("Skipping malformed log entry %s:%d: %s", path, lineno, exc)
        return sorted(logs, key=lambda entry: entry.step)

    def get_logs_range(self, agent_id: str, start: dt.date, end: dt.date) -> list[TradingLog]:
        """Logs for every weekday in ``[start, end]``, ordered by date then step."""
        logs: list[TradingLog] = []
        day = start
        while day <= end:
            if day.weekday() < 5:
                logs.extend(self.get_logs(agent_id, day))
            day += dt.timedelta(days=1)
        return logs
