"""
Exception hierarchy for action-bridge.

Noisy provider and collaborator tracebacks are translated into a small set of
bridge-level errors, while the original exception is preserved for logging.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Final, Optional, Sequence, Type

import anthropic
import openai

if TYPE_CHECKING:
    from action_bridge.fallback import ProviderAttempt

__all__: tuple[str, ...] = (
    "ActionBridgeError",
    "ProviderError",
    "ProviderExhaustedError",
    "ToolValidationError",
    "ConfirmationStateError",
    "ConfirmationNotFoundError",
    "EmptyBatchError",
    "CollaboratorError",
    "StorageError",
    "MessagingError",
    "classify_error",
)


class ActionBridgeError(RuntimeError):
    """Base class for every error raised by this package."""


class ProviderError(ActionBridgeError):
    """A single provider attempt failed.

    Attributes:
        original_exc: The underlying provider exception.
    """

    original_exc: Exception

    def __init__(self, message: str, original_exc: Exception) -> None:
        super().__init__(message)
        self.original_exc = original_exc
        self.__cause__ = original_exc


class ProviderExhaustedError(ActionBridgeError):
    """Every provider in the fallback chain failed for this turn."""

    def __init__(self, attempts: Sequence["ProviderAttempt"]) -> None:
        self.attempts = list(attempts)
        if self.attempts:
            details = "; ".join(f"{a.provider}: {a.outcome}" for a in self.attempts)
        else:
            details = "no provider configured"
        super().__init__(f"All LLM providers failed ({details})")


class ToolValidationError(ActionBridgeError):
    """A tool's parameter payload did not narrow into its request type."""

    def __init__(self, tool: str, message: str) -> None:
        super().__init__(f"{tool}: {message}")
        self.tool = tool
        self.user_message = message


class ConfirmationStateError(ActionBridgeError):
    """An illegal transition was requested on a confirmation record."""

    def __init__(self, record_id: str, current: str, requested: str) -> None:
        super().__init__(
            f"Confirmation {record_id} cannot move from '{current}' to '{requested}'"
        )
        self.record_id = record_id
        self.current = current
        self.requested = requested


class ConfirmationNotFoundError(ActionBridgeError, KeyError):
    def __init__(self, record_id: str) -> None:
        super().__init__(f"Unknown confirmation: {record_id}")
        self.record_id = record_id

    def __str__(self) -> str:
        return self.args[0]


class EmptyBatchError(ActionBridgeError):
    """A batch preview resolved to no actionable target. The message is user-facing."""


class CollaboratorError(ActionBridgeError):
    """Error reported by an external collaborator (storage, messaging).

    ``code`` is the collaborator's own error code, if any.
    """

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code


class StorageError(CollaboratorError):
    pass


class MessagingError(CollaboratorError):
    pass


RATE_LIMIT_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.RateLimitError,
    anthropic.RateLimitError,
)

AUTH_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.AuthenticationError,
    anthropic.AuthenticationError,
    openai.PermissionDeniedError,
    anthropic.PermissionDeniedError,
)

CONN_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.APIConnectionError,
    anthropic.APIConnectionError,
    asyncio.TimeoutError,
    TimeoutError,
    ConnectionError,
)

API_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.APIError,
    anthropic.APIError,
)


def classify_error(
    exc: Exception,
    logger: Optional[logging.Logger] = None,
) -> ProviderError:
    """Wrap an SDK exception in ProviderError with a friendly, concise message."""
    log = logger or logging.getLogger("action_bridge.errors")

    if isinstance(exc, RATE_LIMIT_ERRORS):
        msg = "Rate-limit exceeded"
    elif isinstance(exc, AUTH_ERRORS):
        msg = "Authentication rejected by the LLM provider"
    elif isinstance(exc, CONN_ERRORS):
        msg = "Connection problem - unable to reach the LLM provider"
    elif isinstance(exc, API_ERRORS):
        msg = "Provider reported an internal error"
    else:
        msg = exc.__class__.__name__

    log.warning("Wrapping provider exception: %s", msg, extra={"exc": exc})
    return ProviderError(f"{msg}: {exc}", exc)
