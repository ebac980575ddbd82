"""Shared fakes: an in-memory business store, a scripted gateway and scripted LLMs."""

import asyncio
import json
import uuid
from datetime import date
from typing import Any, Optional, Sequence

import pytest
from openai.types.chat import ChatCompletion

from action_bridge.adapters import OpenAIRequestAdapter
from action_bridge.client import BaseAsyncLLM
from action_bridge.confirmation import ConfirmationManager, InMemoryConfirmationStore
from action_bridge.context import BusinessContext
from action_bridge.dispatcher import ToolDispatcher
from action_bridge.errors import MessagingError
from action_bridge.tools import build_default_registry

TODAY = date(2025, 11, 18)
ACTOR = "user-1"


def _in_range(value: Any, start: Optional[date], end: Optional[date]) -> bool:
    day = date.fromisoformat(str(value)[:10])
    return (start is None or day >= start) and (end is None or day <= end)


class FakeStore:
    """Async BusinessStore over plain dicts. ``writes`` logs every mutation."""

    def __init__(self) -> None:
        self.clients: dict[str, dict] = {}
        self.meetings: dict[str, dict] = {}
        self.tasks: dict[str, dict] = {}
        self.payments: dict[str, dict] = {}
        self.reminders: list[dict] = []
        self.writes: list[tuple[str, Any]] = []
        self.fail_with: Optional[Exception] = None

    # seeding helpers
    def add_client(self, id: str, name: str, **fields: Any) -> dict:
        client = {"id": id, "name": name, "status": "active", **fields}
        self.clients[id] = client
        return client

    def add_payment(self, id: str, client_id: str, amount: float, due_date: str, status: str = "pending") -> dict:
        payment = {"id": id, "client_id": client_id, "amount": amount, "due_date": due_date, "status": status}
        self.payments[id] = payment
        return payment

    def add_meeting(self, id: str, client_id: str, on: str, time: str = "10:00", **fields: Any) -> dict:
        meeting = {
            "id": id,
            "client_id": client_id,
            "date": on,
            "time": time,
            "type": "online",
            "status": "scheduled",
            **fields,
        }
        self.meetings[id] = meeting
        return meeting

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def _write(self, op: str, value: Any) -> None:
        self._check()
        self.writes.append((op, value))

    # clients
    async def search_clients(self, actor_id, query, *, limit=10):
        q = query.lower()
        return [c for c in self.clients.values() if q in c["name"].lower()][:limit]

    async def list_clients(self, actor_id, *, status=None, limit=None):
        self._check()
        rows = [c for c in self.clients.values() if status is None or c.get("status") == status]
        return rows[:limit] if limit else rows

    async def get_client(self, actor_id, client_id):
        self._check()
        return self.clients.get(client_id)

    async def update_client(self, actor_id, client_id, changes):
        self._write("update_client", (client_id, changes))
        self.clients[client_id].update(changes)
        return self.clients[client_id]

    # meetings
    async def list_meetings(self, actor_id, *, date_from=None, date_to=None, client_id=None, status=None):
        self._check()
        return [
            m
            for m in self.meetings.values()
            if _in_range(m["date"], date_from, date_to)
            and (client_id is None or m["client_id"] == client_id)
            and (status is None or m.get("status") == status)
        ]

    async def get_meeting(self, actor_id, meeting_id):
        return self.meetings.get(meeting_id)

    async def create_meeting(self, actor_id, data):
        self._write("create_meeting", data)
        meeting = {"id": f"m-{uuid.uuid4().hex[:6]}", **data}
        self.meetings[meeting["id"]] = meeting
        return meeting

    async def update_meeting(self, actor_id, meeting_id, changes):
        self._write("update_meeting", (meeting_id, changes))
        self.meetings[meeting_id].update(changes)
        return self.meetings[meeting_id]

    async def delete_meeting(self, actor_id, meeting_id):
        self._write("delete_meeting", meeting_id)
        del self.meetings[meeting_id]

    # tasks
    async def list_tasks(self, actor_id, *, status=None, client_id=None, priority=None):
        return [
            t
            for t in self.tasks.values()
            if (status is None or t.get("status") == status)
            and (client_id is None or t.get("client_id") == client_id)
            and (priority is None or t.get("priority") == priority)
        ]

    async def get_task(self, actor_id, task_id):
        return self.tasks.get(task_id)

    async def create_task(self, actor_id, data):
        self._write("create_task", data)
        task = {"id": f"t-{uuid.uuid4().hex[:6]}", **data}
        self.tasks[task["id"]] = task
        return task

    async def update_task(self, actor_id, task_id, changes):
        self._write("update_task", (task_id, changes))
        self.tasks[task_id].update(changes)
        return self.tasks[task_id]

    # payments
    async def list_payments(self, actor_id, *, status=None, client_id=None, due_from=None, due_to=None):
        self._check()
        return [
            p
            for p in self.payments.values()
            if (status is None or p.get("status") == status)
            and (client_id is None or p.get("client_id") == client_id)
            and _in_range(p["due_date"], due_from, due_to)
        ]

    async def get_payment(self, actor_id, payment_id):
        return self.payments.get(payment_id)

    async def create_payment(self, actor_id, data):
        self._write("create_payment", data)
        payment = {"id": f"p-{uuid.uuid4().hex[:6]}", **data}
        self.payments[payment["id"]] = payment
        return payment

    async def update_payment(self, actor_id, payment_id, changes):
        self._write("update_payment", (payment_id, changes))
        self.payments[payment_id].update(changes)
        return self.payments[payment_id]

    # reminders
    async def create_reminder(self, actor_id, data):
        self._write("create_reminder", data)
        self.reminders.append(data)
        return {"id": f"r-{len(self.reminders)}", **data}


class SlowStore:
    """Wraps a ``FakeStore``; every read sleeps ``delay`` seconds first."""

    def __init__(self, inner: FakeStore, delay: float) -> None:
        self.inner = inner
        self.delay = delay

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self.inner, name)
        if not name.startswith(("get_", "list_", "search_")):
            return attr

        async def slow(*args: Any, **kwargs: Any) -> Any:
            await asyncio.sleep(self.delay)
            return await attr(*args, **kwargs)

        return slow


class FakeGateway:
    """Records sends; the sends numbered in ``fail_on`` (1-based) raise."""

    def __init__(self, fail_on: Sequence[int] = ()) -> None:
        self.fail_on = set(fail_on)
        self.sent: list[tuple[str, str]] = []
        self.calls = 0

    async def send_text(self, phone: str, message: str) -> str:
        self.calls += 1
        if self.calls in self.fail_on:
            raise MessagingError("upstream returned 502 for instance abc123")
        self.sent.append((phone, message))
        return f"msg-{self.calls}"


def completion(content: str = "", tool_calls: Sequence[tuple[str, dict]] = ()) -> ChatCompletion:
    """A real ``ChatCompletion`` with optional function calls."""
    message: dict[str, Any] = {"role": "assistant", "content": content or None}
    if tool_calls:
        message["tool_calls"] = [
            {
                "id": f"call_{i}",
                "type": "function",
                "function": {"name": name, "arguments": json.dumps(args)},
            }
            for i, (name, args) in enumerate(tool_calls)
        ]
    return ChatCompletion.model_validate(
        {
            "id": "chatcmpl-test",
            "object": "chat.completion",
            "created": 1731900000,
            "model": "gpt-4o-mini",
            "choices": [
                {
                    "index": 0,
                    "message": message,
                    "finish_reason": "tool_calls" if tool_calls else "stop",
                    "logprobs": None,
                }
            ],
        }
    )


class ScriptedLLM(BaseAsyncLLM):
    """An LLM handle whose raw responses (or exceptions) are scripted."""

    def __init__(self, name: str, outcome: Any = None, *, delay: float = 0.0) -> None:
        super().__init__(model="scripted", name=name)
        self.provider = name
        self.outcome = outcome
        self.delay = delay
        self.calls: list[dict[str, Any]] = []
        self._adapter = OpenAIRequestAdapter()

    @property
    def adapter(self):
        return self._adapter

    async def _chat_impl(self, messages, params):
        self.calls.append({"messages": list(messages), "params": params})
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def dispatcher(store, gateway) -> ToolDispatcher:
    return ToolDispatcher(store, gateway, today=lambda: TODAY)


@pytest.fixture
def manager(registry, dispatcher) -> ConfirmationManager:
    return ConfirmationManager(registry, dispatcher, InMemoryConfirmationStore())


def make_context(store: FakeStore) -> BusinessContext:
    """Snapshot of the store as the caller would hand it in for one turn."""
    return BusinessContext(
        actor_id=ACTOR,
        today=TODAY,
        clients=list(store.clients.values()),
        meetings=list(store.meetings.values()),
        tasks=list(store.tasks.values()),
        payments=list(store.payments.values()),
    )
