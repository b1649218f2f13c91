"""LangChain-backed reasoning provider for OpenAI and Anthropic chat models.

The provider sends the system instruction and step prompt as a two-message
conversation and returns the model's text. Any library or transport failure
is surfaced as ``ProviderError`` so the retry policy can handle it.
"""

from __future__ import annotations

import logging
from typing import Any

from langchain_core.messages import HumanMessage, SystemMessage

from agents.base import ReasoningProvider
from agents.registry import register
from models.config import AgentConfig
from simulation.errors import ProviderError

logger = logging.getLogger(__name__)

_MAX_TOKENS = 4096
_REQUEST_TIMEOUT = 60
# Fallback model ids when the configured model does not belong to the provider.
_DEFAULT_OPENAI_MODEL = "gpt-4o"
_DEFAULT_ANTHROPIC_MODEL = "claude-3-5-sonnet-20241022"


def _create_llm(config: AgentConfig):
    """Instantiate the appropriate LangChain chat model from config.

    LangChain's own retries are disabled; retrying is the decision loop's job.
    """
    provider = config.resolved_provider

    if provider == "openai":
        from langchain_openai import ChatOpenAI

        model = config.model if "gpt" in config.model or config.model.startswith("o1") else _DEFAULT_OPENAI_MODEL
        return ChatOpenAI(
            model=model,
            temperature=config.temperature,
            api_key=config.api_key,
            max_tokens=_MAX_TOKENS,
            timeout=_REQUEST_TIMEOUT,
            max_retries=0,
        )
    elif provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        model = config.model if "claude" in config.model else _DEFAULT_ANTHROPIC_MODEL
        return ChatAnthropic(
            model=model,
            temperature=config.temperature,
            api_key=config.api_key,
            max_tokens=_MAX_TOKENS,
            timeout=_REQUEST_TIMEOUT,
            max_retries=0,
        )
    else:
        raise ValueError(
            f"Unsupported LLM provider '{provider}'. "
            f"Supported: 'openai', 'anthropic'."
        )


@register("openai", "anthropic")
class LangChainReasoningProvider(ReasoningProvider):
    """Chat-model provider; the model client is built on first use."""

    def __init__(self, config: AgentConfig) -> None:
        super().__init__(config)
        self._llm = None

    async def complete(self, system: str, user: str) -> str:
        if not self.config.api_key:
            raise ProviderError(
                f"API key not configured for agent {self.config.name}",
                retryable=False,
            )

        if self._llm is None:
            self._llm = _create_llm(self.config)

        messages = [
            SystemMessage(content=system),
            HumanMessage(content=user),
        ]
        try:
            response = await self._llm.ainvoke(messages)
        except Exception as exc:
            raise ProviderError(f"{type(exc).__name__}: {exc}") from exc

        text = _content_text(getattr(response, "content", None))
        if not text:
            raise ProviderError(
                f"Empty or undecodable response from {self.config.model}"
            )
        logger.debug("Agent %s received %d characters", self.config.name, len(text))
        return text


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _content_text(content: Any) -> str:
    """Flatten LangChain message content (string or content blocks) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    return ""
