"""Run output: persists the RunLog, per-day results, and the final summary.

The output directory structure is::

    {output_dir}/{run_name}/
    ├── config.yaml
    ├── run_log.json
    ├── days/
    │   ├── 2025-01-06.json
    │   └── ...
    └── summary.json

Per-step reasoning logs and ledgers are not duplicated here; they live under
the configured ``log_path`` (see ``simulation.ledger`` and
``simulation.trade_log``).
"""

from __future__ import annotations

import datetime as dt
import json
import logging
import shutil
from decimal import Decimal
from pathlib import Path
from typing import Any

from models.config import ArenaConfig
from models.log import DayResult, RunLog
from models.portfolio import Position

logger = logging.getLogger(__name__)


def run_name_from_config_path(config_path: str | Path) -> str:
    """Derive a run name from the configuration file path (stem without extension)."""
    return Path(config_path).stem


class SimulationLogger:
    """Manages on-disk output for an arena run.

    Call ``init_run`` once at the start, ``record_day`` after each simulated
    day, and ``finalize`` at the very end.
    """

    def __init__(
        self,
        output_dir: str,
        run_name: str,
        config: ArenaConfig | None = None,
    ) -> None:
        self._run_dir = _unique_run_dir(Path(output_dir), run_name)
        self._days_dir = self._run_dir / "days"
        self._run_log = RunLog(run_name=self._run_dir.name, config=config)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init_run(self, config_yaml_path: str | None = None) -> None:
        """Create the output directory tree and optionally copy the config."""
        self._run_dir.mkdir(parents=True, exist_ok=True)
        self._days_dir.mkdir(exist_ok=True)
        if config_yaml_path is not None:
            dest = self._run_dir / "config.yaml"
            shutil.copy2(config_yaml_path, dest)
            logger.info("Copied config to %s", dest)

    def record_day(self, date: dt.date, results: dict[str, DayResult]) -> None:
        """Persist one day's per-agent results and keep them for the run log."""
        day_results = list(results.values())
        _write_json(
            self._days_dir / f"{date.isoformat()}.json",
            [r.model_dump(mode="json") for r in day_results],
        )
        self._run_log.day_results.extend(day_results)
        for result in day_results:
            if result.terminal_reason.is_failure:
                self.record_error(
                    f"Agent '{result.agent_id}' on {date}: "
                    f"{result.terminal_reason.value}: {result.error}"
                )

    def record_error(self, message: str) -> None:
        """Append an error message to the run-level log."""
        self._run_log.errors.append(message)
        logger.error("Simulation error: %s", message)

    def finalize(self, summary: dict[str, Any] | None = None) -> None:
        """Write the run-level log and optional summary."""
        _write_json(
            self._run_dir / "run_log.json",
            self._run_log.model_dump(mode="json"),
        )
        if summary is not None:
            _write_json(self._run_dir / "summary.json", summary)
        logger.info("Run log finalized at %s", self._run_dir)

    @property
    def run_log(self) -> RunLog:
        return self._run_log

    @property
    def run_dir(self) -> Path:
        return self._run_dir


# ------------------------------------------------------------------
# Summary
# ------------------------------------------------------------------

def agent_summary(
    position: Position,
    initial_cash: Decimal,
    closes: dict[str, Decimal],
    total_trades: int,
) -> dict[str, Any]:
    """Performance summary for one agent's closing position."""
    position_values = {
        symbol: float(qty * closes.get(symbol, Decimal(0)))
        for symbol, qty in position.holdings.items()
    }
    value = position.portfolio_value(closes)
    return_pct = ((value - initial_cash) / initial_cash * 100) if initial_cash else Decimal(0)
    return {
        "agent_id": position.agent_id,
        "as_of": position.date.isoformat(),
        "initial_cash": float(initial_cash),
        "final_cash": float(position.cash),
        "final_holdings": dict(position.holdings),
        "position_values": position_values,
        "portfolio_value": float(value),
        "return_pct": float(return_pct),
        "total_trades": total_trades,
    }


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _unique_run_dir(output_dir: Path, run_name: str) -> Path:
    """Return a run directory that does not already exist.

    If ``output_dir/run_name`` is free, use it directly (first run keeps
    a clean name).  Otherwise append an incrementing suffix:
    ``run_name_001``, ``run_name_002``, etc.
    """
    candidate = output_dir / run_name
    if not candidate.exists():
        return candidate

    idx = 1
    while True:
        candidate = output_dir / f"{run_name}_{idx:03d}"
        if not candidate.exists():
            return candidate
        idx += 1


def _write_json(path: Path, data: Any) -> None:
    """Write *data* as pretty-printed JSON to *path*."""
    path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
