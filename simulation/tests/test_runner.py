"""End-to-end tests for the arena runner and run output.

Runs use the offline mock provider or scripted providers, with synthetic or
static prices, so no network access or API key is needed.
"""

from __future__ import annotations

import datetime as dt
import json
from decimal import Decimal

import pytest
import yaml

from models.config import ArenaConfig, LogConfig
from models.log import DayResult, TerminalReason
from models.portfolio import Position
from simulation.runner import ArenaRunner
from simulation.sim_logging import SimulationLogger, agent_summary, run_name_from_config_path

from conftest import MONDAY, ScriptedFactory, run_async

FRIDAY = dt.date(2025, 1, 3)
TUESDAY = dt.date(2025, 1, 7)


@pytest.fixture
def config_path(tmp_path):
    data = {
        "date_range": {"init_date": FRIDAY.isoformat(), "end_date": TUESDAY.isoformat()},
        "models": [
            {"name": "claude", "model": "claude-3-5-sonnet-20241022"},
            {"name": "gpt", "model": "gpt-4o"},
            {"name": "retired", "model": "gpt-4", "enabled": False},
        ],
        "agent_config": {"max_steps": 4, "max_retries": 1, "base_delay": 0.0},
        "log_config": {"log_path": str(tmp_path / "agents")},
        "price_config": {"data_path": str(tmp_path / "prices"), "symbols": ["AAPL", "MSFT", "NVDA"]},
    }
    path = tmp_path / "weekly_arena.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def _runner(config_path, tmp_path, **kwargs) -> ArenaRunner:
    config = ArenaConfig.from_yaml(config_path)
    return ArenaRunner(config, str(config_path), output_dir=str(tmp_path / "results"), **kwargs)


class TestMockRun:
    def test_range_run_writes_output_tree(self, config_path, tmp_path):
        runner = _runner(config_path, tmp_path, mock=True)

        results = run_async(runner.run_range())

        assert set(results) == {"claude", "gpt"}
        run_dir = tmp_path / "results" / "weekly_arena"
        assert (run_dir / "config.yaml").exists()
        assert sorted(p.name for p in (run_dir / "days").iterdir()) == [
            "2025-01-03.json",
            "2025-01-06.json",
            "2025-01-07.json",
        ]

        run_log = json.loads((run_dir / "run_log.json").read_text())
        assert run_log["run_name"] == "weekly_arena"
        assert len(run_log["day_results"]) == 6
        assert run_log["errors"] == []

        summary = json.loads((run_dir / "summary.json").read_text())
        assert summary["trading_days"] == 3
        assert summary["cancelled"] is False
        by_agent = {s["agent_id"]: s for s in summary["agent_summaries"]}
        assert set(by_agent) == {"claude", "gpt"}
        for agent_id, s in by_agent.items():
            assert s["total_trades"] == len(results[agent_id])
            assert s["portfolio_value"] == pytest.approx(
                s["final_cash"] + sum(s["position_values"].values())
            )

    def test_mock_run_is_reproducible(self, config_path, tmp_path):
        first = run_async(_runner(config_path, tmp_path / "one", mock=True).run_range())

        # Fresh ledgers, same synthetic prices already on disk.
        config = ArenaConfig.from_yaml(config_path).model_copy(
            update={"log_config": LogConfig(log_path=str(tmp_path / "agents-2"))}
        )
        second_runner = ArenaRunner(config, str(config_path), output_dir=str(tmp_path / "two"), mock=True)
        second = run_async(second_runner.run_range())

        def _key(results):
            return {a: [(x.action, x.symbol, x.amount, x.date) for x in acts] for a, acts in results.items()}

        assert _key(first) == _key(second)

    def test_second_run_gets_a_fresh_directory(self, config_path, tmp_path):
        run_async(_runner(config_path, tmp_path, mock=True).run_day(MONDAY))
        runner = _runner(config_path, tmp_path, mock=True)
        run_async(runner.run_day(TUESDAY))

        assert runner._sim_logger.run_dir.name == "weekly_arena_001"


class TestRunDay:
    def test_single_agent_with_scripted_provider(self, config_path, tmp_path, prices):
        factory = ScriptedFactory(
            {"gpt": ['{"action": "buy", "symbol": "AAPL", "amount": 3}', '{"action": "hold"}']}
        )
        runner = _runner(config_path, tmp_path, provider_factory=factory, price_provider=prices)

        results = run_async(runner.run_day(MONDAY, agent_id="gpt"))

        assert list(results) == ["gpt"]
        assert [a.amount for a in results["gpt"]] == [3]
        summary = json.loads((runner._sim_logger.run_dir / "summary.json").read_text())
        (gpt,) = summary["agent_summaries"]
        assert gpt["final_cash"] == 10000 - 450
        assert gpt["final_holdings"] == {"AAPL": 3}

    def test_unknown_agent_raises(self, config_path, tmp_path):
        runner = _runner(config_path, tmp_path, mock=True)
        with pytest.raises(KeyError, match="retired"):
            run_async(runner.run_day(MONDAY, agent_id="retired"))

    def test_without_keys_failures_are_recorded(self, config_path, tmp_path, prices):
        runner = _runner(config_path, tmp_path, price_provider=prices)

        results = run_async(runner.run_day(MONDAY))

        assert results == {"claude": [], "gpt": []}
        errors = runner._sim_logger.run_log.errors
        assert len(errors) == 2
        assert all("provider_exhausted" in e for e in errors)


class TestSimulationLogger:
    def test_run_name_from_config_path(self):
        assert run_name_from_config_path("config/arena_q1.yaml") == "arena_q1"

    def test_record_day_flags_failures(self, tmp_path):
        sim_logger = SimulationLogger(str(tmp_path), "run")
        sim_logger.init_run()
        sim_logger.record_day(
            MONDAY,
            {
                "ok": DayResult(agent_id="ok", date=MONDAY, terminal_reason=TerminalReason.HOLD),
                "bad": DayResult(
                    agent_id="bad",
                    date=MONDAY,
                    terminal_reason=TerminalReason.PERSISTENCE_ERROR,
                    error="disk full",
                ),
            },
        )
        sim_logger.finalize()

        assert sim_logger.run_log.errors == ["Agent 'bad' on 2025-01-06: persistence_error: disk full"]
        day = json.loads((tmp_path / "run" / "days" / "2025-01-06.json").read_text())
        assert [d["agent_id"] for d in day] == ["ok", "bad"]
        assert (tmp_path / "run" / "run_log.json").exists()
        assert not (tmp_path / "run" / "summary.json").exists()

    def test_agent_summary(self):
        position = Position(
            date=MONDAY, agent_id="a", holdings={"AAPL": 10, "XYZ": 1}, cash=Decimal("8500")
        )
        summary = agent_summary(position, Decimal("10000"), {"AAPL": Decimal("160")}, total_trades=2)

        assert summary["portfolio_value"] == 10100.0
        assert summary["return_pct"] == pytest.approx(1.0)
        assert summary["position_values"] == {"AAPL": 1600.0, "XYZ": 0.0}
        assert summary["total_trades"] == 2
