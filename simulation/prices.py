"""Price providers: daily OHLCV bars for the trading universe.

The decision loop only needs ``prices_for_date(date)``. An empty mapping means
"no trading day" and ends every agent's loop for that date.

Data files live under ``{data_path}/{SYMBOL}.jsonl``, one ``StockPrice`` per
line. When a symbol has no stored bar for a requested year and synthesis is
enabled, a deterministic random walk is generated for that year, merged into
the file and cached, so repeated runs see identical prices.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
import random
import threading
import zlib
from abc import ABC, abstractmethod
from decimal import Decimal
from pathlib import Path
from typing import Iterable

from pydantic import ValidationError

from models.market import StockPrice

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


class PriceProvider(ABC):
    """Source of daily prices for the decision loop."""

    @abstractmethod
    async def prices_for_date(self, date: dt.date) -> dict[str, StockPrice]:
        """Return ``symbol -> StockPrice`` for *date*; empty if not a trading day."""


class PriceCache:
    """In-memory bars per symbol, keyed by date.

    Owned by a provider and passed in explicitly, so tests and runs can share
    or isolate caches as they need.
    """

    def __init__(self) -> None:
        self._bars: dict[str, dict[dt.date, StockPrice]] = {}

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._bars

    def get(self, symbol: str) -> dict[dt.date, StockPrice] | None:
        return self._bars.get(symbol)

    def put(self, symbol: str, bars: Iterable[StockPrice]) -> None:
        self._bars.setdefault(symbol, {}).update({bar.date: bar for bar in bars})

    def clear(self) -> None:
        self._bars.clear()


class StaticPriceProvider(PriceProvider):
    """Serves a fixed ``date -> {symbol: StockPrice}`` mapping."""

    def __init__(self, prices_by_date: dict[dt.date, dict[str, StockPrice]]) -> None:
        self._prices_by_date = prices_by_date

    async def prices_for_date(self, date: dt.date) -> dict[str, StockPrice]:
        return dict(self._prices_by_date.get(date, {}))


class JsonlPriceProvider(PriceProvider):
    """Reads bars from JSON-lines files, synthesising missing years on demand."""

    def __init__(
        self,
        data_path: str | Path,
        symbols: list[str],
        cache: PriceCache | None = None,
        synthesize_missing: bool = True,
    ) -> None:
        self._data_path = Path(data_path)
        # Preserve order, drop duplicates.
        self._symbols = list(dict.fromkeys(s.upper() for s in symbols))
        self._cache = cache if cache is not None else PriceCache()
        self._synthesize_missing = synthesize_missing
        self._lock = threading.Lock()

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    async def prices_for_date(self, date: dt.date) -> dict[str, StockPrice]:
        return await asyncio.to_thread(self._prices_for_date, date)

    def _prices_for_date(self, date: dt.date) -> dict[str, StockPrice]:
        if date.weekday() >= 5:
            return {}

        prices: dict[str, StockPrice] = {}
        with self._lock:
            for symbol in self._symbols:
                bar = self._bar(symbol, date)
                if bar is not None:
                    prices[symbol] = bar

        logger.debug(
            "Fetched prices for %d/%d symbols on %s", len(prices), len(self._symbols), date
        )
        return prices

    def _bar(self, symbol: str, date: dt.date) -> StockPrice | None:
        if symbol not in self._cache:
            self._cache.put(symbol, self._load_file(symbol))

        bars = self._cache.get(symbol) or {}
        bar = bars.get(date)
        if bar is not None or not self._synthesize_missing:
            return bar

        if any(d.year == date.year for d in bars):
            # Real or previously synthesised data covers this year; the date is a gap.
            return None

        logger.info(
            "Using synthetic prices for %s in %d - no stored data found", symbol, date.year
        )
        synthetic = synthesize_bars(symbol, dt.date(date.year, 1, 1), dt.date(date.year, 12, 31))
        self._cache.put(symbol, synthetic)
        self._save_file(symbol)
        return (self._cache.get(symbol) or {}).get(date)

    def _file_path(self, symbol: str) -> Path:
        return self._data_path / f"{symbol}.jsonl"

    def _load_file(self, symbol: str) -> list[StockPrice]:
        path = self._file_path(symbol)
        if not path.exists():
            return []

        bars: list[StockPrice] = []
        with path.open(encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if not line:
                    continue
                try:
                    bars.append(StockPrice.model_validate_json(line))
                except ValidationError as exc:
                    logger.warning("Failed to parse price data in %s: %s", path, exc)
        return bars

    def _save_file(self, symbol: str) -> None:
        """Rewrite the symbol's file with every cached bar, sorted by date."""
        bars = sorted((self._cache.get(symbol) or {}).values(), key=lambda b: b.date)
        path = self._file_path(symbol)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            "".join(bar.model_dump_json() + "\n" for bar in bars),
            encoding="utf-8",
        )


def synthesize_bars(symbol: str, start: dt.date, end: dt.date) -> list[StockPrice]:
    """Deterministic weekday random walk for *symbol* over ``[start, end]``.

    Seeded from the symbol name and start year so the same inputs always give
    the same series, independent of ``PYTHONHASHSEED``.
    """
    rng = random.Random(zlib.crc32(f"{symbol}:{start.year}".encode("utf-8")))
    level = 100 + rng.random() * 200
    bars: list[StockPrice] = []

    day = start
    while day <= end:
        if day.weekday() < 5:
            level = max(10.0, min(500.0, level + (rng.random() - 0.5) * 10))
            high = level + rng.random() * 5
            low = max(1.0, level - rng.random() * 5)
            close = min(high, max(low, level + (rng.random() - 0.5) * 3))
            bars.append(
                StockPrice(
                    symbol=symbol,
                    date=day,
                    open=_money(level),
                    high=_money(high),
                    low=_money(low),
                    close=_money(close),
                    volume=int(rng.random() * 10_000_000 + 1_000_000),
                )
            )
        day += dt.timedelta(days=1)
    return bars


def _money(value: float) -> Decimal:
    return Decimal(str(value)).quantize(_CENT)
