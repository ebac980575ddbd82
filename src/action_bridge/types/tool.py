"""
Provider-neutral dataclasses for tool calls and their results.

Everything provider-specific lives in adapters; everything business-specific
lives in ``action_bridge.tools``.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Optional

__all__ = ["ErrorKind", "ToolCall", "ToolError", "ToolResult"]


class ErrorKind(StrEnum):
    """Bounded taxonomy of dispatch failures shown to the end user."""

    TOOL_NOT_FOUND = "tool_not_found"
    INVALID_PARAMETERS = "invalid_parameters"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorKind":
        """Best-effort bucket for a collaborator failure, from its type then its text."""
        if isinstance(exc, (TimeoutError, ConnectionError)):
            return cls.TIMEOUT
        if isinstance(exc, PermissionError):
            return cls.PERMISSION_DENIED
        text = f"{getattr(exc, 'code', '') or ''} {exc}".lower()
        # schema drift is a bug on our side, not a missing row
        if "column" in text and "does not exist" in text:
            return cls.UNKNOWN
        for kind, needles in _ERROR_PATTERNS:
            if any(needle in text for needle in needles):
                return kind
        return cls.UNKNOWN


_ERROR_PATTERNS: tuple[tuple[ErrorKind, tuple[str, ...]], ...] = (
    (ErrorKind.PERMISSION_DENIED, ("permission denied", "row-level security", " rls", "forbidden", "42501")),
    (ErrorKind.CONFLICT, ("duplicate key", "unique constraint", "already exists", "23505")),
    (ErrorKind.CONFLICT, ("foreign key", "violates", "23503")),
    (ErrorKind.TIMEOUT, ("timeout", "timed out", "connection")),
    (ErrorKind.NOT_FOUND, ("not found", "does not exist", "no rows", "pgrst116")),
)


@dataclass(slots=True)
class ToolCall:
    """A model-agnostic request emitted by the LLM to call a local tool."""

    id: str
    name: str
    parameters: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def new(cls, name: str, parameters: Optional[dict[str, Any]] = None) -> "ToolCall":
        return cls(id=f"call_{uuid.uuid4().hex[:12]}", name=name, parameters=dict(parameters or {}))

    def with_parameters(self, edits: dict[str, Any]) -> "ToolCall":
        """Shallow-merge *edits* over the current parameters."""
        return ToolCall(id=self.id, name=self.name, parameters={**self.parameters, **edits})

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "parameters": dict(self.parameters)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        return cls(id=data["id"], name=data["name"], parameters=dict(data.get("parameters") or {}))


@dataclass(frozen=True, slots=True)
class ToolError:
    kind: ErrorKind
    message: str


@dataclass(slots=True)
class ToolResult:
    """Outcome of one dispatch attempt: ``data`` on success, ``error`` otherwise."""

    success: bool
    data: dict[str, Any] = field(default_factory=dict)
    error: Optional[ToolError] = None

    @classmethod
    def ok(cls, **data: Any) -> "ToolResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "ToolResult":
        return cls(success=False, error=ToolError(kind=kind, message=message))

    @property
    def message(self) -> str:
        if self.error is not None:
            return self.error.message
        return str(self.data.get("message", ""))

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success}
        if self.data:
            out["data"] = {
                key: value.as_dict() if hasattr(value, "as_dict") else value
                for key, value in self.data.items()
            }
        if self.error is not None:
            out["error"] = {"kind": self.error.kind.value, "message": self.error.message}
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolResult":
        error = data.get("error")
        return cls(
            success=bool(data["success"]),
            data=dict(data.get("data") or {}),
            error=ToolError(ErrorKind(error["kind"]), error["message"]) if error else None,
        )
