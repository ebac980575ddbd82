"""
Routes a ``ToolCall`` to its handler and turns every failure into a ``ToolResult``.

Nothing escapes ``execute_tool`` except cancellation: validation problems,
empty batches, collaborator errors and timeouts all come back as
``ToolResult.fail`` with a message from ``action_bridge.messages``. The raw
exception text only reaches the log.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Callable, Mapping, Optional

from action_bridge.errors import EmptyBatchError, ToolValidationError
from action_bridge.messages import error_message
from action_bridge.services import BusinessStore, MessagingGateway
from action_bridge.tools.batch import BatchActionsExecutor
from action_bridge.tools.definitions import ToolKind
from action_bridge.tools.handlers import HANDLERS, Handler, HandlerContext
from action_bridge.types import ErrorKind, ToolCall, ToolResult

__all__ = ["ToolDispatcher", "ToolKind", "classify_tool_error"]


def classify_tool_error(exc: BaseException) -> ErrorKind:
    return ErrorKind.from_exception(exc)


class ToolDispatcher:
    """
    Executes tools against the caller's collaborators.

    Args:
        store: Business storage, scoped per call by ``actor_id``.
        gateway: WhatsApp gateway; ``None`` disables direct sends.
        call_timeout: Seconds allowed for a single non-batch tool, or for
            resolving a batch's targets. Batch execution bounds each target
            instead, with ``send_timeout``.
        send_timeout: Seconds allowed per batch target.
        today: Clock, injectable for tests.
        handlers: Routing table; must cover every ``ToolKind``.
    """

    def __init__(
        self,
        store: BusinessStore,
        gateway: Optional[MessagingGateway] = None,
        *,
        call_timeout: float = 15.0,
        send_timeout: float = 15.0,
        today: Callable[[], date] = date.today,
        handlers: Mapping[ToolKind, Handler] = HANDLERS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        missing = [kind.value for kind in ToolKind if kind not in handlers]
        if missing:
            raise ValueError(f"No handler for tool(s): {', '.join(missing)}")
        self.store = store
        self.gateway = gateway
        self.call_timeout = call_timeout
        self.send_timeout = send_timeout
        self._today = today
        self._handlers = dict(handlers)
        self.logger = logger or logging.getLogger(__name__)

    def context(self, actor_id: str) -> HandlerContext:
        return HandlerContext(
            store=self.store,
            gateway=self.gateway,
            actor_id=actor_id,
            today=self._today(),
            send_timeout=self.send_timeout,
            call_timeout=self.call_timeout,
        )

    def batch_executor(self, actor_id: str) -> BatchActionsExecutor:
        return self.context(actor_id).batch()

    async def execute_tool(self, call: ToolCall, actor_id: str) -> ToolResult:
        kind = ToolKind.lookup(call.name)
        if kind is None:
            self.logger.warning("Unknown tool requested: %s", call.name)
            return ToolResult.fail(ErrorKind.TOOL_NOT_FOUND, error_message(ErrorKind.TOOL_NOT_FOUND))

        handler = self._handlers[kind]
        ctx = self.context(actor_id)
        self.logger.debug("Executing %s (%s) for %s", kind.value, call.id, actor_id)
        try:
            if kind.is_batch:
                return await handler(ctx, call.parameters)
            return await asyncio.wait_for(handler(ctx, call.parameters), timeout=self.call_timeout)
        except ToolValidationError as exc:
            self.logger.info("Rejected %s parameters: %s", kind.value, exc)
            return ToolResult.fail(ErrorKind.INVALID_PARAMETERS, exc.user_message)
        except EmptyBatchError as exc:
            return ToolResult.fail(ErrorKind.NOT_FOUND, str(exc))
        except Exception as exc:
            error_kind = classify_tool_error(exc)
            self.logger.error(
                "Tool %s failed (%s): %s", kind.value, error_kind.value, exc, exc_info=exc
            )
            return ToolResult.fail(error_kind, error_message(error_kind))
