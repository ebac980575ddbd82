"""
Action Bridge - LLM-driven business actions behind explicit confirmation.
"""

import logging

from .client import (
    BaseAsyncLLM,
    OpenAILLM,
    AnthropicLLM,
    GeminiLLM,
    create_llm,
)
from .config import Settings
from .confirmation import ConfirmationManager, InMemoryConfirmationStore
from .context import BusinessContext
from .dispatcher import ToolDispatcher
from .errors import (
    ActionBridgeError,
    ConfirmationNotFoundError,
    ConfirmationStateError,
    EmptyBatchError,
    ProviderExhaustedError,
    ToolValidationError,
)
from .fallback import AssistantReply, FallbackClient, ProviderAttempt
from .orchestrator import Assistant, Decision, ResolutionOutcome, TurnOutcome
from .provider import Provider, get_api_key
from .registry import ToolDefinition, ToolRegistry
from .response import ChatResponse
from .tools import ToolKind, build_default_registry
from .types import (
    BatchActionResult,
    BatchItemResult,
    ConfirmationRecord,
    ConfirmationStatus,
    ConfirmationType,
    ErrorKind,
    ToolCall,
    ToolResult,
)

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "BaseAsyncLLM",
    "OpenAILLM",
    "AnthropicLLM",
    "GeminiLLM",
    "create_llm",
    "ChatResponse",
    "Provider",
    "get_api_key",
    "Settings",
    "BusinessContext",
    "ToolDefinition",
    "ToolRegistry",
    "ToolKind",
    "build_default_registry",
    "ToolDispatcher",
    "ConfirmationManager",
    "InMemoryConfirmationStore",
    "FallbackClient",
    "AssistantReply",
    "ProviderAttempt",
    "Assistant",
    "Decision",
    "TurnOutcome",
    "ResolutionOutcome",
    "ToolCall",
    "ToolResult",
    "ErrorKind",
    "ConfirmationRecord",
    "ConfirmationStatus",
    "ConfirmationType",
    "BatchActionResult",
    "BatchItemResult",
    "ActionBridgeError",
    "ProviderExhaustedError",
    "ToolValidationError",
    "ConfirmationStateError",
    "ConfirmationNotFoundError",
    "EmptyBatchError",
]
