from .tool import ErrorKind, ToolCall, ToolError, ToolResult
from .confirmation import (
    ConfirmationRecord,
    ConfirmationStatus,
    ConfirmationType,
    TERMINAL_STATUSES,
)
from .batch import BatchActionResult, BatchItemResult

__all__ = [
    "ErrorKind",
    "ToolCall",
    "ToolError",
    "ToolResult",
    "ConfirmationRecord",
    "ConfirmationStatus",
    "ConfirmationType",
    "TERMINAL_STATUSES",
    "BatchActionResult",
    "BatchItemResult",
]
