#!/usr/bin/env python3
"""CLI entrypoint for the trading arena.

Usage::

    python run_simulation.py --config config/example.yaml
    python run_simulation.py --config config/example.yaml --start 2025-01-06 --end 2025-01-10
    python run_simulation.py --config config/example.yaml --date 2025-01-06 --agent gpt-4o
    python run_simulation.py --config config/example.yaml --mock

The arena loads a YAML configuration file, builds the ledger, price provider
and decision loop, then runs every enabled agent over the configured date
range (or a single day). The run name is derived automatically from the config
file name (e.g. ``example.yaml`` -> ``example``).
"""

from __future__ import annotations

import argparse
import asyncio
import datetime as dt
import logging
import sys

from models.config import ArenaConfig
from simulation.runner import ArenaRunner


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Expected YYYY-MM-DD, got '{value}'.") from exc


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run a multi-agent trading arena.",
    )
    parser.add_argument(
        "--config",
        required=True,
        type=str,
        help="Path to the YAML configuration file.",
    )
    parser.add_argument(
        "--start",
        type=_parse_date,
        help="First date of the range (default: date_range.init_date from the config).",
    )
    parser.add_argument(
        "--end",
        type=_parse_date,
        help="Last date of the range (default: date_range.end_date from the config).",
    )
    parser.add_argument(
        "--date",
        type=_parse_date,
        help="Run a single day instead of a range.",
    )
    parser.add_argument(
        "--agent",
        type=str,
        help="With --date, run only this agent.",
    )
    parser.add_argument(
        "--output-dir",
        default="results",
        type=str,
        help="Directory where run results will be written (default: results/).",
    )
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use the deterministic offline provider instead of calling any LLM API.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO).",
    )
    args = parser.parse_args()
    if args.agent and not args.date:
        parser.error("--agent requires --date.")
    return args


def _setup_logging(level: str) -> None:
    """Configure root logger with a clean format."""
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


async def _main() -> None:
    args = _parse_args()
    _setup_logging(args.log_level)

    logger = logging.getLogger(__name__)
    logger.info("Loading config from '%s'...", args.config)

    config = ArenaConfig.from_yaml(args.config)
    logger.info(
        "Config loaded: %d agent(s), %s to %s",
        sum(1 for m in config.models if m.enabled),
        config.date_range.init_date,
        config.date_range.end_date,
    )

    runner = ArenaRunner(
        config,
        config_yaml_path=args.config,
        output_dir=args.output_dir,
        mock=args.mock,
    )
    if args.date:
        await runner.run_day(args.date, agent_id=args.agent)
    else:
        await runner.run_range(args.start, args.end)


def cli() -> None:
    asyncio.run(_main())


if __name__ == "__main__":
    cli()
