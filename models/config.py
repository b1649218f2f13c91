"""Arena configuration models, loaded from YAML.

These live in ``models/`` because they are shared data contracts used by the
orchestrator, the decision loop, and the CLI.
"""

from __future__ import annotations

import datetime as dt
import os
from decimal import Decimal
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Prefixes marking an api_key value as a reference to an environment variable.
_KEY_REFERENCE_PREFIXES = ("env:", "secret:")

DEFAULT_SYMBOLS: list[str] = [
    "AAPL", "MSFT", "GOOGL", "AMZN", "NVDA", "META", "TSLA", "AVGO", "COST", "NFLX",
    "AMD", "PEP", "ADBE", "CSCO", "CMCSA", "QCOM", "INTU", "AMGN", "ISRG", "BKNG",
    "AMAT", "ASML", "HON", "ADI", "PAYX", "SBUX", "KLAC", "CDNS", "SNPS", "MAR",
]


def infer_provider(model: str) -> str:
    """Guess the reasoning provider from a model identifier.

    ``gpt-*``, anything mentioning ``openai`` and ``o1*`` models go to OpenAI;
    everything else goes to Anthropic.
    """
    name = model.lower()
    if "gpt" in name or "openai" in name or name.startswith("o1"):
        return "openai"
    return "anthropic"


def resolve_api_key(value: str | None) -> str | None:
    """Resolve ``env:NAME`` / ``secret:NAME`` references from the environment.

    Literal keys are returned unchanged. An unset variable resolves to ``None``.
    """
    if value is None:
        return None
    for prefix in _KEY_REFERENCE_PREFIXES:
        if value.startswith(prefix):
            return os.environ.get(value[len(prefix):]) or None
    return value


class AgentConfig(BaseModel):
    """Run parameters for one trading agent. Immutable for the run's duration."""

    model_config = {"frozen": True}

    name: str = Field(description="Agent identifier; also the ledger partition key.")
    model: str = Field(description="Model identifier, e.g. 'gpt-4o', 'claude-3-5-sonnet-20241022'.")
    provider: str | None = Field(
        default=None,
        description="Reasoning provider name. Inferred from ``model`` when omitted.",
    )
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_steps: int = Field(default=30, ge=1, description="Reasoning steps per trading day.")
    max_retries: int = Field(
        default=3,
        ge=0,
        description="Retries of a failed provider call before the step is fatal.",
    )
    base_delay: float = Field(
        default=1.0,
        ge=0.0,
        description="Seconds between steps; also the base of the retry backoff.",
    )
    initial_cash: Decimal = Field(default=Decimal("10000"), ge=0)
    api_key: str | None = Field(default=None, exclude=True, repr=False)
    enabled: bool = True
    terminate_on_hold_after_first_step: bool = Field(
        default=True,
        description="End the trading day when the agent holds on any step after the first.",
    )

    @property
    def resolved_provider(self) -> str:
        return (self.provider or infer_provider(self.model)).lower()


class DateRange(BaseModel):
    init_date: dt.date
    end_date: dt.date

    @model_validator(mode="after")
    def _ordered(self) -> DateRange:
        if self.end_date < self.init_date:
            raise ValueError(
                f"end_date {self.end_date} is before init_date {self.init_date}."
            )
        return self


class ModelEntry(BaseModel):
    """One competing agent as listed under ``models:`` in the YAML file."""

    name: str
    model: str
    provider: str | None = None
    enabled: bool = True
    api_key: str | None = Field(
        default=None,
        exclude=True,
        repr=False,
        description="Literal key or an 'env:NAME' / 'secret:NAME' reference.",
    )
    temperature: float | None = None


class AgentSettings(BaseModel):
    """Loop parameters shared by every agent in the arena."""

    max_steps: int = Field(default=30, ge=1)
    max_retries: int = Field(default=3, ge=0)
    base_delay: float = Field(default=1.0, ge=0.0)
    initial_cash: Decimal = Field(default=Decimal("10000"), ge=0)
    terminate_on_hold_after_first_step: bool = True


class LogConfig(BaseModel):
    log_path: str = Field(
        default="./data/agents",
        description="Root directory for per-agent ledgers and step logs.",
    )


class PriceConfig(BaseModel):
    data_path: str = Field(default="./data/prices", description="Directory of {SYMBOL}.jsonl files.")
    symbols: list[str] = Field(default_factory=lambda: list(DEFAULT_SYMBOLS))
    synthesize_missing: bool = Field(
        default=True,
        description="Generate deterministic synthetic bars for symbols with no stored data.",
    )


class ArenaConfig(BaseModel):
    """Top-level configuration for an arena run, loaded from YAML."""

    date_range: DateRange
    models: list[ModelEntry] = Field(description="Competing agents.")
    agent_config: AgentSettings = Field(default_factory=AgentSettings)
    log_config: LogConfig = Field(default_factory=LogConfig)
    price_config: PriceConfig = Field(default_factory=PriceConfig)
    max_concurrency: int | None = Field(
        default=None,
        ge=1,
        description="Upper bound on agents running at once within a day (default: all).",
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> ArenaConfig:
        """Load and validate an ``ArenaConfig`` from a YAML file.

        Raises ``FileNotFoundError`` if the file does not exist and
        ``ValueError`` if the content is not a valid YAML mapping.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with path.open(encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)

        if not isinstance(raw, dict):
            raise ValueError(
                f"Expected a YAML mapping in {path}, got {type(raw).__name__}."
            )

        return cls(**raw)

    def agent_configs(self) -> dict[str, AgentConfig]:
        """Per-agent configs for every enabled model, keyed by agent name.

        API key references are resolved here, after loading any ``.env`` file.
        """
        load_dotenv()
        shared = self.agent_config
        configs: dict[str, AgentConfig] = {}
        for entry in self.models:
            if not entry.enabled:
                continue
            extra = {} if entry.temperature is None else {"temperature": entry.temperature}
            configs[entry.name] = AgentConfig(
                name=entry.name,
                model=entry.model,
                provider=entry.provider,
                max_steps=shared.max_steps,
                max_retries=shared.max_retries,
                base_delay=shared.base_delay,
                initial_cash=shared.initial_cash,
                api_key=resolve_api_key(entry.api_key),
                terminate_on_hold_after_first_step=shared.terminate_on_hold_after_first_step,
                **extra,
            )
        return configs
