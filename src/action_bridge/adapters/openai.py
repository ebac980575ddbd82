"""OpenAI adapter for pure request/response transformations."""

from __future__ import annotations

import json
from typing import Any, Sequence

from openai.types.chat import ChatCompletion

from action_bridge.params import ChatMessage
from action_bridge.response import ChatResponse
from action_bridge.types import ToolCall


class UnparseableResponseError(ValueError):
    """The provider answered, but not in a shape we can act on."""


class OpenAIRequestAdapter:
    """Adapter for converting between generic format and OpenAI format."""

    def tools_for_provider(self, schemas: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        """Wrap registry schemas as OpenAI ``function`` tools."""
        return [
            {
                "type": "function",
                "function": {
                    "name": schema["name"],
                    "description": schema.get("description", ""),
                    "parameters": schema.get("parameters", {"type": "object", "properties": {}}),
                },
            }
            for schema in schemas
        ]

    def to_provider(
        self, messages: Sequence[ChatMessage], params: dict[str, Any]
    ) -> dict[str, Any]:
        """Convert generic messages and params to OpenAI request format."""
        openai_messages: list[dict[str, Any]] = []
        for msg in messages:
            openai_msg: dict[str, Any] = {"role": msg["role"]}

            if msg.get("content") is not None:
                openai_msg["content"] = msg["content"]

            # Assistant messages that carried function calls
            if msg.get("tool_calls"):
                openai_msg["tool_calls"] = msg["tool_calls"]
                # OpenAI expects null content alongside tool_calls
                if "content" not in openai_msg:
                    openai_msg["content"] = None

            if msg.get("tool_call_id"):
                openai_msg["tool_call_id"] = msg["tool_call_id"]

            if "content" not in openai_msg and not openai_msg.get("tool_calls"):
                openai_msg["content"] = ""

            openai_messages.append(openai_msg)

        base_params = dict(params)
        base_params.pop("stream", None)
        extras = base_params.pop("extra", {})

        if base_params.get("tools"):
            base_params.setdefault("tool_choice", "auto")
        else:
            base_params.pop("tools", None)
            base_params.pop("tool_choice", None)

        for k, v in extras.items():
            base_params.setdefault(k, v)

        return {"messages": openai_messages, **base_params}

    def from_provider(self, raw: ChatCompletion) -> ChatResponse:
        """Convert OpenAI response to unified ChatResponse."""
        if not raw.choices:
            raise UnparseableResponseError("OpenAI response has no choices")

        choice = raw.choices[0]
        message = choice.message
        content = (message.content or "").strip()
        tool_calls: list[ToolCall] | None = None

        if message.tool_calls:
            tool_calls = []
            for tc in message.tool_calls:
                if tc.type != "function":
                    continue
                tool_calls.append(
                    ToolCall(
                        id=tc.id,
                        name=tc.function.name,
                        parameters=self._parse_arguments(tc.function.name, tc.function.arguments),
                    )
                )

        return ChatResponse(
            content=content,
            tool_calls=tool_calls or None,
            stop_reason=choice.finish_reason or "stop",
            raw=raw,
        )

    @staticmethod
    def _parse_arguments(name: str, raw_args: Any) -> dict[str, Any]:
        if isinstance(raw_args, dict):
            return raw_args
        if not isinstance(raw_args, str) or not raw_args.strip():
            return {}
        try:
            arguments = json.loads(raw_args)
        except json.JSONDecodeError as exc:
            raise UnparseableResponseError(f"Bad JSON in arguments for {name}") from exc
        if not isinstance(arguments, dict):
            raise UnparseableResponseError(f"Arguments for {name} are not an object")
        return arguments
