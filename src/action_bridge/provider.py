from __future__ import annotations

import os
from enum import StrEnum
from typing import Final, Iterable

from dotenv import load_dotenv


class Provider(StrEnum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"


_ENV_VARS: Final[dict[Provider, str]] = {
    Provider.OPENAI: "OPENAI_API_KEY",
    Provider.ANTHROPIC: "ANTHROPIC_API_KEY",
    Provider.GEMINI: "GEMINI_API_KEY",
}

# Cheapest and fastest first
DEFAULT_ORDER: Final[tuple[Provider, ...]] = (
    Provider.OPENAI,
    Provider.ANTHROPIC,
    Provider.GEMINI,
)


def get_api_key(provider: Provider) -> str:
    """Return the API key for *provider* or raise RuntimeError."""
    load_dotenv()
    try:
        env_var = _ENV_VARS[provider]
    except KeyError:
        raise RuntimeError(f"No config for {provider!s}") from None

    key = os.environ.get(env_var)
    if not key:
        raise RuntimeError(f"{env_var} missing")
    return key


def available_providers(order: Iterable[Provider] = DEFAULT_ORDER) -> list[Provider]:
    """Filter *order* down to the providers that have an API key set."""
    load_dotenv()
    return [p for p in order if os.environ.get(_ENV_VARS[p])]


__all__ = ["Provider", "DEFAULT_ORDER", "get_api_key", "available_providers"]
