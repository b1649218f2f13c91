"""Reasoning provider registry.

Provider classes register under one or more names; an agent config picks one
through ``AgentConfig.resolved_provider`` (explicit ``provider`` or inferred
from the model id). Names are matched case-insensitively.

Usage::

    from agents.registry import create_reasoning_provider

    provider = create_reasoning_provider(agent_config)
"""

from __future__ import annotations

from typing import Type

from agents.base import ReasoningProvider
from models.config import AgentConfig

_PROVIDERS: dict[str, Type[ReasoningProvider]] = {}


def register(*names: str):
    """Class decorator registering a ``ReasoningProvider`` under every name in *names*.

    Registration is all-or-nothing: if any name is taken, none are added.
    """
    if not names:
        raise ValueError("register() needs at least one provider name.")
    keys = [name.strip().lower() for name in names]

    def _decorator(cls: Type[ReasoningProvider]) -> Type[ReasoningProvider]:
        taken = [key for key in keys if key in _PROVIDERS]
        if taken:
            owners = ", ".join(f"'{key}' ({_PROVIDERS[key].__name__})" for key in taken)
            raise ValueError(f"Reasoning provider name already registered: {owners}.")
        for key in keys:
            _PROVIDERS[key] = cls
        return cls

    return _decorator


def available_providers() -> list[str]:
    _ensure_builtins_loaded()
    return sorted(_PROVIDERS)


def provider_class(name: str) -> Type[ReasoningProvider]:
    """Class registered under *name*; raises ``KeyError`` if there is none."""
    _ensure_builtins_loaded()
    key = name.strip().lower()
    if key not in _PROVIDERS:
        available = ", ".join(sorted(_PROVIDERS)) or "(none)"
        raise KeyError(f"Unknown reasoning provider '{name}'. Available: {available}.")
    return _PROVIDERS[key]


def create_reasoning_provider(config: AgentConfig) -> ReasoningProvider:
    """Instantiate the provider *config* resolves to."""
    return provider_class(config.resolved_provider)(config)


def _ensure_builtins_loaded() -> None:
    # Importing the built-in modules runs their @register decorators.
    import agents.llm  # noqa: F401
    import agents.mock  # noqa: F401
