"""Runtime settings read from the environment (and a local ``.env``)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping

from dotenv import load_dotenv

from action_bridge.provider import DEFAULT_ORDER, Provider, available_providers

logger = logging.getLogger(__name__)

_PREFIX = "ACTION_BRIDGE_"

DEFAULT_MODELS: dict[Provider, str] = {
    Provider.OPENAI: "gpt-4o-mini",
    Provider.ANTHROPIC: "claude-sonnet-4-20250514",
    Provider.GEMINI: "gemini-1.5-flash",
}


@dataclass(slots=True)
class Settings:
    provider_order: tuple[Provider, ...] = DEFAULT_ORDER
    models: dict[Provider, str] = field(default_factory=lambda: dict(DEFAULT_MODELS))
    provider_timeout: float = 30.0
    call_timeout: float = 15.0
    send_timeout: float = 15.0
    history_limit: int = 10
    max_tokens: int = 2048

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from ``ACTION_BRIDGE_*`` variables, falling back to defaults."""
        if environ is None:
            load_dotenv()
            environ = os.environ

        def get(name: str) -> str | None:
            value = environ.get(_PREFIX + name)
            return value.strip() if value and value.strip() else None

        settings = cls()

        order = get("PROVIDER_ORDER")
        if order:
            try:
                settings.provider_order = tuple(
                    Provider(part.strip().lower()) for part in order.split(",") if part.strip()
                )
            except ValueError as exc:
                raise ValueError(f"{_PREFIX}PROVIDER_ORDER: {exc}") from exc

        for provider in Provider:
            model = get(f"{provider.upper()}_MODEL")
            if model:
                settings.models[provider] = model

        settings.provider_timeout = _number(get("PROVIDER_TIMEOUT"), float, settings.provider_timeout)
        settings.call_timeout = _number(get("CALL_TIMEOUT"), float, settings.call_timeout)
        settings.send_timeout = _number(get("SEND_TIMEOUT"), float, settings.send_timeout)
        settings.history_limit = _number(get("HISTORY_LIMIT"), int, settings.history_limit)
        settings.max_tokens = _number(get("MAX_TOKENS"), int, settings.max_tokens)
        return settings

    def available_providers(self) -> list[Provider]:
        """Configured providers that have credentials, in priority order."""
        providers = available_providers(self.provider_order)
        skipped = [p for p in self.provider_order if p not in providers]
        if skipped:
            logger.info("Skipping providers without an API key: %s", ", ".join(skipped))
        return providers


def _number(raw: str | None, kind: type, default):
    if raw is None:
        return default
    try:
        value = kind(raw)
    except ValueError as exc:
        raise ValueError(f"Expected {kind.__name__}, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"Expected a positive value, got {raw!r}")
    return value
