"""
LLM provider handles with a unified chat() method.

A handle holds credentials and an SDK client and nothing else; it is built
once at process start and shared by every turn.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional, Protocol, Self, Sequence

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from action_bridge.adapters import (
    AnthropicRequestAdapter,
    GeminiRequestAdapter,
    OpenAIRequestAdapter,
)
from action_bridge.errors import classify_error
from action_bridge.params import ChatMessage, normalize_params
from action_bridge.provider import Provider, get_api_key
from action_bridge.response import ChatResponse


class RequestAdapter(Protocol):
    """Pure translation between the generic chat shape and one provider's wire shape."""

    def tools_for_provider(self, schemas: Sequence[dict[str, Any]]) -> list[dict[str, Any]]: ...

    def to_provider(
        self, messages: Sequence[ChatMessage], params: dict[str, Any]
    ) -> dict[str, Any]: ...

    def from_provider(self, raw: Any) -> ChatResponse: ...


class BaseAsyncLLM(ABC):
    """
    Abstract base class for async-first LLM wrappers.

    Subclasses implement ``_chat_impl`` (raw request) and ``adapter``;
    ``chat`` turns every failure into an error ``ChatResponse``.
    """

    provider: Provider

    def __init__(
        self,
        model: str,
        *,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        self.model = model
        self.logger = logger or logging.getLogger(__name__)
        self.name = name or self.__class__.__name__

    @abstractmethod
    async def _chat_impl(self, messages: Sequence[ChatMessage], params: dict[str, Any]) -> Any:
        """Send *messages* with normalized *params* and return the raw provider response."""

    @property
    @abstractmethod
    def adapter(self) -> RequestAdapter: ...

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        *,
        params: dict[str, Any] | None = None,
    ) -> ChatResponse:
        """
        Send one request and return the parsed response.

        Provider and parsing failures never raise; they come back as a
        ChatResponse whose ``error`` is set.
        """
        try:
            raw = await self._chat_impl(messages, normalize_params(params))
            return self.adapter.from_provider(raw)
        except Exception as exc:
            return self._wrap_error(exc)

    def _wrap_error(self, exc: Exception) -> ChatResponse:
        return ChatResponse(content="", error=str(classify_error(exc, self.logger)))

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")

    async def aclose(self) -> None:
        """Close the underlying HTTP client, if any. Safe to call twice."""
        close = getattr(getattr(self, "_client", None), "close", None)
        if close:
            await close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


class _SDKBackedLLM(BaseAsyncLLM):
    """A handle around one vendor SDK client (``client_type``)."""

    client_type: ClassVar[type]
    default_base_url: ClassVar[Optional[str]] = None

    def __init__(
        self,
        model: str,
        *,
        api_key: str,
        timeout: float = 60.0,
        max_retries: int = 2,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> None:
        super().__init__(model, logger=logger, name=name)
        self._client = self.client_type(
            api_key=api_key,
            timeout=timeout,
            max_retries=max_retries,
            base_url=base_url or self.default_base_url,
        )
        self._adapter = self._make_adapter()

    @classmethod
    def from_client(
        cls,
        model: str,
        client: Any,
        *,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
        **_: Any,
    ) -> Self:
        """Wrap an SDK client the caller already configured (timeouts, proxies...)."""
        if not isinstance(client, cls.client_type):
            raise TypeError(
                f"{cls.__name__}.from_client expects {cls.client_type.__name__}; "
                f"got {type(client).__name__}"
            )
        self = cls.__new__(cls)
        BaseAsyncLLM.__init__(self, model, logger=logger, name=name)
        self._client = client
        self._adapter = self._make_adapter()
        return self

    @abstractmethod
    def _make_adapter(self) -> RequestAdapter: ...

    @abstractmethod
    async def _create(self, request: dict[str, Any]) -> Any:
        """Issue the SDK call for a fully built *request*."""

    @property
    def adapter(self) -> RequestAdapter:
        return self._adapter

    async def _chat_impl(self, messages: Sequence[ChatMessage], params: dict[str, Any]) -> Any:
        request = {"model": self.model, **self._adapter.to_provider(messages, params)}
        self._log(f"Sending request to {self.provider} model {self.model}", logging.DEBUG)
        return await self._create(request)


class OpenAILLM(_SDKBackedLLM):
    provider = Provider.OPENAI
    client_type = AsyncOpenAI

    def _make_adapter(self) -> RequestAdapter:
        return OpenAIRequestAdapter()

    async def _create(self, request: dict[str, Any]) -> Any:
        return await self._client.chat.completions.create(**request)


class GeminiLLM(OpenAILLM):
    """Gemini through its OpenAI-compatible endpoint."""

    provider = Provider.GEMINI
    default_base_url = "https://generativelanguage.googleapis.com/v1beta/openai/"

    def _make_adapter(self) -> RequestAdapter:
        return GeminiRequestAdapter()


class AnthropicLLM(_SDKBackedLLM):
    provider = Provider.ANTHROPIC
    client_type = AsyncAnthropic

    def _make_adapter(self) -> RequestAdapter:
        return AnthropicRequestAdapter()

    async def _create(self, request: dict[str, Any]) -> Any:
        return await self._client.messages.create(**request)


_LLM_REGISTRY: dict[Provider, type[_SDKBackedLLM]] = {
    Provider.OPENAI: OpenAILLM,
    Provider.ANTHROPIC: AnthropicLLM,
    Provider.GEMINI: GeminiLLM,
}


def create_llm(
    provider: Provider | str,
    model: str,
    *,
    api_key: str | None = None,
    client: AsyncOpenAI | AsyncAnthropic | None = None,
    logger: logging.Logger | None = None,
    **provider_kwargs: Any,
) -> BaseAsyncLLM:
    """
    Build the handle for *provider*.

    Args:
        provider: Which provider to use (openai, anthropic, gemini).
        model: Model identifier (e.g. "gpt-4o-mini").
        api_key: Overrides the environment lookup.
        client: Pre-configured SDK client to wrap instead of building one.
            ``AsyncOpenAI`` for openai and gemini, ``AsyncAnthropic`` for anthropic.
        logger: Optional custom logger.
        **provider_kwargs: ``timeout``, ``max_retries``, ``base_url``, ``name``.
    """
    try:
        llm_cls = _LLM_REGISTRY[Provider(provider)]
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Unsupported provider: {provider}") from exc

    if client is not None:
        return llm_cls.from_client(model, client, logger=logger, **provider_kwargs)

    key = api_key or get_api_key(Provider(provider))
    return llm_cls(model, api_key=key, logger=logger, **provider_kwargs)
