"""
Request parameter and history normalization.

Contract
- Standard keys work across providers:
  max_tokens: int
  temperature: float
  tools: list (provider-shaped, produced by an adapter)
  tool_choice: str | dict
  stop: str | list[str]

- Anything else goes under `extra` and passes through unchanged.

History handed to a provider is always the last N user/assistant turns;
system and tool messages from earlier turns are dropped.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

# Type alias for chat messages
ChatMessage = dict[str, Any]

STANDARD_KEYS = {
    "temperature",
    "max_tokens",
    "stream",
    "tools",
    "tool_choice",
    "stop",
    "top_p",
}

CONVERSATION_ROLES = ("user", "assistant")


def normalize_params(params: dict | None) -> dict:
    """
    Normalize a params dict to a single internal shape.

    Returns a dict with only standard keys plus an `extra` dict.
    Defaults:
      stream is always False (turns are answered in one piece)
      extra defaults to {}
    Rules:
      - Keys not in STANDARD_KEYS are moved into extra
      - If the caller already passed an `extra` dict it is merged last
      - None values are dropped

    >>> normalize_params({"max_tokens": 512, "seed": 7})
    {'max_tokens': 512, 'stream': False, 'extra': {'seed': 7}}
    """
    if params is None:
        return {"stream": False, "extra": {}}
    if not isinstance(params, dict):
        raise TypeError(f"params must be a dict, got {type(params).__name__}")

    user_extra = params.get("extra") or {}
    if not isinstance(user_extra, dict):
        raise TypeError("params['extra'] must be a dict")

    std: dict = {}
    extra: dict = {}
    for key, value in params.items():
        if key == "extra" or value is None:
            continue
        if key in STANDARD_KEYS:
            std[key] = value
        else:
            extra[key] = value

    std["stream"] = False
    std["extra"] = {**extra, **user_extra}
    return std


def build_history(
    history: Iterable[Mapping[str, Any]] | None,
    limit: int,
) -> list[ChatMessage]:
    """
    Keep the last *limit* conversational turns as plain ``{role, content}`` messages.

    Entries with another role, or without text content, are skipped before
    the limit is applied.
    """
    if limit <= 0 or not history:
        return []

    turns: list[ChatMessage] = []
    for entry in history:
        role = entry.get("role")
        content = entry.get("content")
        if role not in CONVERSATION_ROLES or not isinstance(content, str) or not content:
            continue
        turns.append({"role": role, "content": content})
    return turns[-limit:]
