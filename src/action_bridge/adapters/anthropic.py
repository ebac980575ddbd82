"""Anthropic adapter for pure request/response transformations."""

from __future__ import annotations

from typing import Any, Sequence

from anthropic.types import Message

from action_bridge.adapters.openai import UnparseableResponseError
from action_bridge.params import ChatMessage
from action_bridge.response import ChatResponse
from action_bridge.types import ToolCall

DEFAULT_MAX_TOKENS = 2048


def ephemeral(text: str) -> dict[str, Any]:
    """Return a text block marked for Anthropic's 5-minute *ephemeral* prompt cache."""
    return {
        "type": "text",
        "text": text,
        "cache_control": {"type": "ephemeral"},
    }


class AnthropicRequestAdapter:
    """Adapter for converting between generic format and Anthropic format."""

    def tools_for_provider(self, schemas: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        return [
            {
                "name": schema["name"],
                "description": schema.get("description", ""),
                "input_schema": schema.get("parameters", {"type": "object", "properties": {}}),
            }
            for schema in schemas
        ]

    def to_provider(
        self, messages: Sequence[ChatMessage], params: dict[str, Any]
    ) -> dict[str, Any]:
        """Convert generic messages and params to Anthropic request format."""
        anthropic_messages: list[dict[str, Any]] = []
        system_prompt: str | list[Any] = ""

        for msg in messages:
            # Anthropic takes the system prompt as a top-level field
            if msg["role"] == "system":
                content = msg.get("content", "")
                system_prompt = content if isinstance(content, (str, list)) else str(content)
                continue

            anthropic_msg: dict[str, Any] = {"role": msg["role"]}
            content = msg.get("content")
            if content is not None:
                anthropic_msg["content"] = content if isinstance(content, (str, list)) else str(content)

            if msg.get("tool_call_id"):
                anthropic_msg["role"] = "user"
                anthropic_msg["content"] = [
                    {
                        "type": "tool_result",
                        "tool_use_id": msg["tool_call_id"],
                        "content": msg.get("content", ""),
                    }
                ]

            anthropic_messages.append(anthropic_msg)

        base_params = dict(params)
        base_params.pop("stream", None)
        extras = base_params.pop("extra", {})

        # Anthropic requires max_tokens
        base_params.setdefault("max_tokens", DEFAULT_MAX_TOKENS)

        if "stop" in base_params:
            stop = base_params.pop("stop")
            base_params["stop_sequences"] = stop if isinstance(stop, list) else [stop]

        if base_params.get("tools"):
            if base_params.get("tool_choice") == "auto":
                base_params["tool_choice"] = {"type": "auto"}
        else:
            base_params.pop("tools", None)
            base_params.pop("tool_choice", None)

        for k, v in extras.items():
            base_params.setdefault(k, v)

        request: dict[str, Any] = {"messages": anthropic_messages, **base_params}
        if isinstance(system_prompt, str) and system_prompt:
            # the business snapshot repeats across a conversation's turns
            request["system"] = [ephemeral(system_prompt)]
        elif system_prompt:
            request["system"] = system_prompt
        return request

    def from_provider(self, raw: Message) -> ChatResponse:
        """Convert Anthropic response to unified ChatResponse."""
        if raw.content is None:
            raise UnparseableResponseError("Anthropic response has no content")

        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []

        for block in raw.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall(
                        id=block.id,
                        name=block.name,
                        parameters=dict(block.input) if hasattr(block.input, "items") else {},
                    )
                )

        return ChatResponse(
            content="".join(text_parts).strip(),
            tool_calls=tool_calls or None,
            stop_reason=raw.stop_reason or "end_turn",
            raw=raw,
        )
