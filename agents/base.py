"""Abstract base class for reasoning providers.

Every provider (LangChain chat model, scripted replay, offline mock) implements
this interface so the decision loop can call them interchangeably.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from models.config import AgentConfig


class ReasoningProvider(ABC):
    """Turns a system instruction plus a per-step prompt into free-form text.

    Lifecycle:
        1. ``__init__`` — receive the agent config.
        2. ``complete`` — called once per attempt of each reasoning step.

    Implementations raise ``simulation.errors.ProviderError`` for transport or
    provider-side failures. Whatever text they return is handed to the
    decision parser, which tolerates anything.
    """

    def __init__(self, config: AgentConfig) -> None:
        self.config = config

    @abstractmethod
    async def complete(self, system: str, user: str) -> str:
        """Return the provider's raw text response for one step."""
