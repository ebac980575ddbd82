"""
Interfaces of the external collaborators this package drives.

Storage and messaging are owned by the caller; implementations raise
``StorageError`` / ``MessagingError`` (or anything else) and the dispatcher
maps the failure to a user-safe message.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional, Protocol, runtime_checkable

from action_bridge.types import ConfirmationRecord

Record = dict[str, Any]


@runtime_checkable
class BusinessStore(Protocol):
    """Rows scoped to one actor. Date bounds are inclusive; ``None`` means unbounded."""

    async def search_clients(self, actor_id: str, query: str, *, limit: int = 10) -> list[Record]: ...

    async def list_clients(
        self, actor_id: str, *, status: Optional[str] = None, limit: Optional[int] = None
    ) -> list[Record]: ...

    async def get_client(self, actor_id: str, client_id: str) -> Optional[Record]: ...

    async def update_client(self, actor_id: str, client_id: str, changes: Record) -> Record: ...

    async def list_meetings(
        self,
        actor_id: str,
        *,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        client_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[Record]: ...

    async def get_meeting(self, actor_id: str, meeting_id: str) -> Optional[Record]: ...

    async def create_meeting(self, actor_id: str, data: Record) -> Record: ...

    async def update_meeting(self, actor_id: str, meeting_id: str, changes: Record) -> Record: ...

    async def delete_meeting(self, actor_id: str, meeting_id: str) -> None: ...

    async def list_tasks(
        self,
        actor_id: str,
        *,
        status: Optional[str] = None,
        client_id: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> list[Record]: ...

    async def get_task(self, actor_id: str, task_id: str) -> Optional[Record]: ...

    async def create_task(self, actor_id: str, data: Record) -> Record: ...

    async def update_task(self, actor_id: str, task_id: str, changes: Record) -> Record: ...

    async def list_payments(
        self,
        actor_id: str,
        *,
        status: Optional[str] = None,
        client_id: Optional[str] = None,
        due_from: Optional[date] = None,
        due_to: Optional[date] = None,
    ) -> list[Record]: ...

    async def get_payment(self, actor_id: str, payment_id: str) -> Optional[Record]: ...

    async def create_payment(self, actor_id: str, data: Record) -> Record: ...

    async def update_payment(self, actor_id: str, payment_id: str, changes: Record) -> Record: ...

    async def create_reminder(self, actor_id: str, data: Record) -> Record: ...


@runtime_checkable
class MessagingGateway(Protocol):
    async def send_text(self, phone: str, message: str) -> str:
        """Deliver *message* to *phone* (digits only) and return the gateway's message id."""
        ...


class ConfirmationStore(Protocol):
    async def get(self, record_id: str) -> Optional[ConfirmationRecord]: ...

    async def save(self, record: ConfirmationRecord) -> None: ...
