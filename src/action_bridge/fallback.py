"""
Ordered fallback across LLM providers.

Each turn is offered to the configured providers one after the other; the
first provider that answers wins and the rest are never contacted.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from action_bridge.client import BaseAsyncLLM, create_llm
from action_bridge.config import Settings
from action_bridge.context import BusinessContext
from action_bridge.errors import ProviderExhaustedError
from action_bridge.params import ChatMessage, build_history
from action_bridge.prompts import build_system_prompt
from action_bridge.registry import ToolRegistry
from action_bridge.tools import build_default_registry
from action_bridge.types import ToolCall

__all__ = ["AssistantReply", "FallbackClient", "ProviderAttempt"]


@dataclass(frozen=True, slots=True)
class ProviderAttempt:
    """What happened when one provider was tried for a turn."""

    provider: str
    ordinal: int
    outcome: str  # "ok", "timeout" or "error"
    error: Optional[str] = None


@dataclass(slots=True)
class AssistantReply:
    text: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    stop_reason: str = ""
    provider_used: str = ""
    attempts: list[ProviderAttempt] = field(default_factory=list)


class FallbackClient:
    """
    Sends a turn to the first provider that answers.

    Args:
        llms: Provider handles in priority order.
        registry: Tool catalogue advertised to every provider.
        timeout: Seconds allowed per provider attempt.
        history_limit: Prior conversational turns kept in the request.
        max_tokens: Completion budget per request.
        prompt_builder: Renders the system prompt from the turn's context.
    """

    def __init__(
        self,
        llms: Sequence[BaseAsyncLLM],
        registry: ToolRegistry,
        *,
        timeout: float = 30.0,
        history_limit: int = 10,
        max_tokens: int = 2048,
        prompt_builder: Callable[[BusinessContext], str] = build_system_prompt,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.llms = list(llms)
        self.registry = registry
        self.timeout = timeout
        self.history_limit = history_limit
        self.max_tokens = max_tokens
        self.prompt_builder = prompt_builder
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        registry: Optional[ToolRegistry] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> "FallbackClient":
        """One handle per provider that has an API key, in ``settings.provider_order``."""
        if registry is None:
            registry = build_default_registry()
        llms = [
            create_llm(
                provider,
                settings.models[provider],
                logger=logger,
                timeout=settings.provider_timeout,
            )
            for provider in settings.available_providers()
        ]
        return cls(
            llms,
            registry,
            timeout=settings.provider_timeout,
            history_limit=settings.history_limit,
            max_tokens=settings.max_tokens,
            logger=logger,
        )

    def build_messages(
        self,
        message: str,
        context: BusinessContext,
        history: Optional[Iterable[Mapping[str, Any]]] = None,
    ) -> list[ChatMessage]:
        return [
            {"role": "system", "content": self.prompt_builder(context)},
            *build_history(history, self.history_limit),
            {"role": "user", "content": message},
        ]

    async def process_message(
        self,
        message: str,
        context: BusinessContext,
        history: Optional[Iterable[Mapping[str, Any]]] = None,
    ) -> AssistantReply:
        """
        Answer one user message.

        Raises:
            ProviderExhaustedError: every provider timed out or failed, or
                none is configured.
        """
        messages = self.build_messages(message, context, history)
        schemas = self.registry.schemas()
        attempts: list[ProviderAttempt] = []

        for ordinal, llm in enumerate(self.llms, start=1):
            name = str(getattr(llm, "provider", llm.name))
            params = {
                "max_tokens": self.max_tokens,
                "tools": llm.adapter.tools_for_provider(schemas),
                "tool_choice": "auto",
            }
            try:
                response = await asyncio.wait_for(
                    llm.chat(messages, params=params), timeout=self.timeout
                )
            except asyncio.TimeoutError:
                self.logger.warning("Provider %s timed out after %ss", name, self.timeout)
                attempts.append(ProviderAttempt(name, ordinal, "timeout", f"timeout after {self.timeout}s"))
                continue

            if response.is_error:
                self.logger.warning("Provider %s failed: %s", name, response.error)
                attempts.append(ProviderAttempt(name, ordinal, "error", response.error))
                continue

            attempts.append(ProviderAttempt(name, ordinal, "ok"))
            self.logger.info("Turn answered by %s (attempt %d)", name, ordinal)
            return AssistantReply(
                text=response.content or "",
                tool_calls=list(response.tool_calls or []),
                stop_reason=response.stop_reason,
                provider_used=name,
                attempts=attempts,
            )

        self.logger.error("No provider could answer the turn (%d tried)", len(attempts))
        raise ProviderExhaustedError(attempts)

    async def aclose(self) -> None:
        for llm in self.llms:
            await llm.aclose()
