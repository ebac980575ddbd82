"""Gemini adapter for pure request/response transformations.

Gemini is reached through its OpenAI-compatible endpoint, so the request and
response shapes are OpenAI's. Gemini may omit tool-call ids; those get a
local id so confirmations can still reference them.
"""

from __future__ import annotations

import uuid

from openai.types.chat import ChatCompletion

from action_bridge.response import ChatResponse

from .openai import OpenAIRequestAdapter


class GeminiRequestAdapter(OpenAIRequestAdapter):
    def from_provider(self, raw: ChatCompletion) -> ChatResponse:
        response = super().from_provider(raw)
        for call in response.tool_calls or []:
            if not call.id:
                call.id = f"gemini-{uuid.uuid4().hex[:12]}"
        return response
