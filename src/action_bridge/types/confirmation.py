"""Confirmation records: two-phase gate in front of side-effecting tools."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Final, Optional

from action_bridge.errors import ConfirmationStateError
from action_bridge.types.tool import ToolCall, ToolResult

__all__ = [
    "ConfirmationType",
    "ConfirmationStatus",
    "ConfirmationRecord",
    "TERMINAL_STATUSES",
]


class ConfirmationType(StrEnum):
    MEETING = "meeting"
    MEETING_DELETE = "meeting_delete"
    MEETING_UPDATE = "meeting_update"
    TASK = "task"
    WHATSAPP = "whatsapp"
    PAYMENT = "payment"
    REMINDER = "reminder"
    CLIENT_SELECT = "client_select"
    BATCH = "batch"
    GENERIC = "generic"


class ConfirmationStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES: Final[frozenset[ConfirmationStatus]] = frozenset(
    {ConfirmationStatus.CANCELLED, ConfirmationStatus.COMPLETED, ConfirmationStatus.FAILED}
)

_TRANSITIONS: Final[dict[ConfirmationStatus, frozenset[ConfirmationStatus]]] = {
    ConfirmationStatus.PENDING: frozenset({ConfirmationStatus.CONFIRMED, ConfirmationStatus.CANCELLED}),
    ConfirmationStatus.CONFIRMED: frozenset({ConfirmationStatus.EXECUTING}),
    ConfirmationStatus.EXECUTING: frozenset({ConfirmationStatus.COMPLETED, ConfirmationStatus.FAILED}),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ConfirmationRecord:
    """
    A pending side effect awaiting an explicit user decision.

    ``tool_to_execute`` is plain data so a record can be persisted and
    replayed in a later request.
    """

    type: ConfirmationType
    payload: dict[str, Any]
    tool_to_execute: ToolCall
    actor_id: str
    id: str = field(default_factory=lambda: f"conf_{uuid.uuid4().hex}")
    status: ConfirmationStatus = ConfirmationStatus.PENDING
    created_at: datetime = field(default_factory=_now)
    resolved_at: Optional[datetime] = None
    result: Optional[ToolResult] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(self, target: ConfirmationStatus) -> None:
        """Move to *target* or raise ``ConfirmationStateError``."""
        allowed = _TRANSITIONS.get(self.status, frozenset())
        if target not in allowed:
            raise ConfirmationStateError(self.id, self.status.value, target.value)
        self.status = target
        if target in TERMINAL_STATUSES:
            self.resolved_at = _now()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "status": self.status.value,
            "payload": self.payload,
            "tool_to_execute": self.tool_to_execute.to_dict(),
            "actor_id": self.actor_id,
            "created_at": self.created_at.isoformat(),
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "result": self.result.to_dict() if self.result else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConfirmationRecord":
        resolved_at = data.get("resolved_at")
        result = data.get("result")
        return cls(
            id=data["id"],
            type=ConfirmationType(data["type"]),
            status=ConfirmationStatus(data["status"]),
            payload=dict(data.get("payload") or {}),
            tool_to_execute=ToolCall.from_dict(data["tool_to_execute"]),
            actor_id=data["actor_id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            resolved_at=datetime.fromisoformat(resolved_at) if resolved_at else None,
            result=ToolResult.from_dict(result) if result else None,
        )
