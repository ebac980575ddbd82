"""
Preview payloads shown next to a pending confirmation.

A builder narrows the call's params (so an invalid call is refused before a
record exists) and resolves display names from the turn's context, falling
back to the store. Keys are camelCase because payloads go to the client UI
verbatim.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from action_bridge.context import BusinessContext
from action_bridge.messages import to_date
from action_bridge.services import BusinessStore, Record
from action_bridge.tools.requests import (
    CreateMeetingRequest,
    CreatePaymentRequest,
    CreateReminderRequest,
    CreateTaskRequest,
    DeleteMeetingRequest,
    SendWhatsAppRequest,
    UpdateMeetingRequest,
)
from action_bridge.types import ConfirmationType, ToolCall


class _Lookup:
    def __init__(self, context: BusinessContext, store: BusinessStore, actor_id: str) -> None:
        self.context = context
        self.store = store
        self.actor_id = actor_id

    async def client(self, client_id: Optional[str]) -> Optional[Record]:
        if not client_id:
            return None
        return self.context.client(client_id) or await self.store.get_client(self.actor_id, client_id)

    async def meeting(
        self, meeting_id: Optional[str], client_id: Optional[str], on: Optional[str]
    ) -> Optional[Record]:
        if meeting_id:
            return await self.store.get_meeting(self.actor_id, meeting_id)
        if client_id and on:
            day = to_date(on)
            meetings = await self.store.list_meetings(
                self.actor_id, date_from=day, date_to=day, client_id=client_id
            )
            return meetings[0] if meetings else None
        return None


Builder = Callable[[ToolCall, _Lookup], Awaitable[dict[str, Any]]]


def _name(client: Optional[Record], default: Optional[str] = "Cliente") -> Optional[str]:
    return client.get("name") if client else default


async def _meeting(call: ToolCall, lookup: _Lookup) -> dict[str, Any]:
    request = CreateMeetingRequest.from_params(call.parameters)
    client = await lookup.client(request.client_id)
    return {
        "clientId": request.client_id,
        "clientName": _name(client),
        "contactName": client.get("contact_name") if client else None,
        "date": request.date,
        "time": request.time,
        "type": request.type,
        "notes": request.notes,
    }


async def _existing_meeting(
    lookup: _Lookup, meeting_id: Optional[str], client_id: Optional[str], on: Optional[str]
) -> dict[str, Any]:
    meeting = await lookup.meeting(meeting_id, client_id, on) or {}
    client = await lookup.client(meeting.get("client_id") or client_id)
    return {
        "meetingId": meeting.get("id") or meeting_id or "",
        "clientId": meeting.get("client_id") or client_id or "",
        "clientName": _name(client),
        "contactName": client.get("contact_name") if client else None,
        "date": meeting.get("date") or on or "",
        "time": meeting.get("time") or "",
        "type": meeting.get("type"),
    }


async def _meeting_delete(call: ToolCall, lookup: _Lookup) -> dict[str, Any]:
    request = DeleteMeetingRequest.from_params(call.parameters)
    return await _existing_meeting(lookup, request.meeting_id, request.client_id, request.date)


async def _meeting_update(call: ToolCall, lookup: _Lookup) -> dict[str, Any]:
    request = UpdateMeetingRequest.from_params(call.parameters)
    current = await _existing_meeting(
        lookup, request.meeting_id, request.client_id, request.current_date
    )
    current["currentDate"] = current.pop("date")
    current["currentTime"] = current.pop("time")
    current.update(
        newDate=request.new_date,
        newTime=request.new_time,
        newType=request.new_type,
        newNotes=request.new_notes,
    )
    return current


async def _task(call: ToolCall, lookup: _Lookup) -> dict[str, Any]:
    request = CreateTaskRequest.from_params(call.parameters)
    client = await lookup.client(request.client_id)
    return {
        "clientId": request.client_id,
        "clientName": _name(client, None),
        "title": request.title,
        "description": request.description,
        "dueDate": request.due_date,
        "priority": request.priority,
        "category": request.category,
    }


async def _whatsapp(call: ToolCall, lookup: _Lookup) -> dict[str, Any]:
    request = SendWhatsAppRequest.from_params(call.parameters)
    client = await lookup.client(request.client_id)
    return {
        "clientId": request.client_id,
        "clientName": _name(client),
        "contactName": (client or {}).get("contact_name") or _name(client),
        "phone": (client or {}).get("contact_phone") or "",
        "message": request.message,
    }


async def _payment(call: ToolCall, lookup: _Lookup) -> dict[str, Any]:
    request = CreatePaymentRequest.from_params(call.parameters)
    client = await lookup.client(request.client_id)
    return {
        "clientId": request.client_id,
        "clientName": _name(client),
        "amount": request.amount,
        "dueDate": request.due_date,
        "description": request.description,
    }


async def _reminder(call: ToolCall, lookup: _Lookup) -> dict[str, Any]:
    request = CreateReminderRequest.from_params(call.parameters)
    client = await lookup.client(request.client_id)
    return {
        "message": request.message,
        "date": request.date,
        "time": request.time,
        "clientId": request.client_id,
        "clientName": _name(client, None),
    }


async def _generic(call: ToolCall, lookup: _Lookup) -> dict[str, Any]:
    return {
        "title": f"Confirmar: {call.name}",
        "description": "Deseja executar esta ação?",
        "details": dict(call.parameters),
    }


PREVIEW_BUILDERS: dict[ConfirmationType, Builder] = {
    ConfirmationType.MEETING: _meeting,
    ConfirmationType.MEETING_DELETE: _meeting_delete,
    ConfirmationType.MEETING_UPDATE: _meeting_update,
    ConfirmationType.TASK: _task,
    ConfirmationType.WHATSAPP: _whatsapp,
    ConfirmationType.PAYMENT: _payment,
    ConfirmationType.REMINDER: _reminder,
    ConfirmationType.GENERIC: _generic,
}


async def build_preview(
    ctype: ConfirmationType,
    call: ToolCall,
    context: BusinessContext,
    store: BusinessStore,
    actor_id: str,
) -> dict[str, Any]:
    """Payload for a single-action confirmation of *ctype*. Raises ``ToolValidationError``."""
    builder = PREVIEW_BUILDERS.get(ctype, _generic)
    return await builder(call, _Lookup(context, store, actor_id))
