"""
Two-phase execution for side-effecting tools.

``submit`` turns a tool call into a pending ``ConfirmationRecord`` (or runs it
right away when the tool is read-only); ``confirm`` and ``cancel`` resolve a
record exactly once. Nothing is written to a collaborator before ``confirm``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional

from action_bridge.context import BusinessContext
from action_bridge.dispatcher import ToolDispatcher
from action_bridge.errors import ConfirmationNotFoundError, EmptyBatchError, ToolValidationError
from action_bridge.messages import error_message
from action_bridge.registry import ToolRegistry
from action_bridge.services import ConfirmationStore
from action_bridge.tools.definitions import ToolKind
from action_bridge.tools.previews import build_preview
from action_bridge.types import (
    ConfirmationRecord,
    ConfirmationStatus,
    ConfirmationType,
    ErrorKind,
    ToolCall,
    ToolResult,
)

__all__ = ["ConfirmationManager", "InMemoryConfirmationStore", "CLIENT_PARAM"]

logger = logging.getLogger(__name__)

CLIENT_PARAM = "clientId"


class InMemoryConfirmationStore:
    """Process-local record store. Records are kept as live objects."""

    def __init__(self) -> None:
        self._records: dict[str, ConfirmationRecord] = {}

    async def get(self, record_id: str) -> Optional[ConfirmationRecord]:
        return self._records.get(record_id)

    async def save(self, record: ConfirmationRecord) -> None:
        self._records[record.id] = record

    def __len__(self) -> int:
        return len(self._records)


class ConfirmationManager:
    """
    Gatekeeper between the LLM's tool calls and the dispatcher.

    Args:
        registry: Tells which tools need confirmation, and of what type.
        dispatcher: Executes a call once it may run.
        store: Where pending and resolved records live between requests.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        dispatcher: ToolDispatcher,
        store: Optional[ConfirmationStore] = None,
    ) -> None:
        self.registry = registry
        self.dispatcher = dispatcher
        self.store = store if store is not None else InMemoryConfirmationStore()

    # --- submit ------------------------------------------------------------

    async def submit(
        self,
        call: ToolCall,
        actor_id: str,
        context: BusinessContext,
    ) -> ConfirmationRecord | ToolResult:
        """
        Route *call*: a ``ToolResult`` if it ran (or was refused), otherwise
        the saved pending record.

        Store lookups made while resolving the client or building the preview
        are bounded by the dispatcher's ``call_timeout``; their failures come
        back as a failed ``ToolResult`` with a user-safe message.

        Raises:
            EmptyBatchError: a batch tool resolved to no target.
        """
        definition = self.registry.get(call.name)
        if definition is None:
            return await self.dispatcher.execute_tool(call, actor_id)

        timeout = self.dispatcher.call_timeout
        try:
            outcome = await asyncio.wait_for(
                self._resolve_client(call, actor_id, context), timeout=timeout
            )
            if isinstance(outcome, ToolCall) and definition.requires_confirmation:
                outcome = await asyncio.wait_for(
                    self._preview(definition.confirmation_type, outcome, actor_id, context),
                    timeout=timeout,
                )
        except ToolValidationError as exc:
            return ToolResult.fail(ErrorKind.INVALID_PARAMETERS, exc.user_message)
        except EmptyBatchError:
            raise
        except Exception as exc:
            kind = ErrorKind.from_exception(exc)
            logger.error("Could not prepare %s (%s): %s", call.name, kind.value, exc, exc_info=exc)
            return ToolResult.fail(kind, error_message(kind))

        if isinstance(outcome, ToolCall):
            return await self.dispatcher.execute_tool(outcome, actor_id)
        if isinstance(outcome, ConfirmationRecord):
            await self.store.save(outcome)
            logger.info("Confirmation %s (%s) pending for %s", outcome.id, outcome.type.value, call.name)
        return outcome

    async def _preview(
        self,
        ctype: Optional[ConfirmationType],
        call: ToolCall,
        actor_id: str,
        context: BusinessContext,
    ) -> ConfirmationRecord:
        ctype = ctype or ConfirmationType.GENERIC
        if ctype is ConfirmationType.BATCH:
            return await _prepare_batch(self.dispatcher.batch_executor(actor_id), call)
        payload = await build_preview(ctype, call, context, self.dispatcher.store, actor_id)
        return ConfirmationRecord(type=ctype, payload=payload, tool_to_execute=call, actor_id=actor_id)

    async def _resolve_client(
        self, call: ToolCall, actor_id: str, context: BusinessContext
    ) -> ToolCall | ConfirmationRecord | ToolResult:
        """
        Replace a client name in ``clientId`` by the matching client's id.

        One match rewrites the call, several produce a ``client_select``
        record. With no match the value is looked up in the store as an id,
        since the context may hold only part of the client base; failing that
        the call fails. Without clients in the context, or when the value
        already is a known id, the call passes through.
        """
        query = call.parameters.get(CLIENT_PARAM)
        if not isinstance(query, str) or not query.strip() or not context.clients:
            return call
        if context.client(query) is not None:
            return call

        matches = context.match_clients(query)
        if len(matches) == 1:
            logger.debug("Resolved client %r to %s", query, matches[0]["id"])
            return call.with_parameters({CLIENT_PARAM: matches[0]["id"]})
        if not matches:
            if await self.dispatcher.store.get_client(actor_id, query) is not None:
                return call
            return ToolResult.fail(ErrorKind.NOT_FOUND, f'Não encontrei nenhum cliente com "{query}".')

        return ConfirmationRecord(
            type=ConfirmationType.CLIENT_SELECT,
            payload={
                "query": query,
                "candidates": [
                    {
                        "id": c["id"],
                        "name": c.get("name"),
                        "contactName": c.get("contact_name"),
                        "segment": c.get("segment"),
                    }
                    for c in matches
                ],
                "targetParam": CLIENT_PARAM,
                "pendingTool": call.to_dict(),
            },
            tool_to_execute=call,
            actor_id=actor_id,
        )

    # --- resolve -----------------------------------------------------------

    async def _load(self, record_id: str) -> ConfirmationRecord:
        record = await self.store.get(record_id)
        if record is None:
            raise ConfirmationNotFoundError(record_id)
        return record

    async def confirm(
        self,
        record_id: str,
        edited_params: Optional[Mapping[str, Any]] = None,
    ) -> ConfirmationRecord:
        """
        Execute a pending record, applying *edited_params* over its call.

        The record is claimed (moved to ``executing``) before the first
        await, so a concurrent or repeated confirm fails with
        ``ConfirmationStateError`` and the tool runs once.

        Raises:
            ConfirmationNotFoundError: unknown id.
            ConfirmationStateError: the record is no longer pending.
            ValueError: a ``client_select`` edit names a client that was not offered.
        """
        record = await self._load(record_id)
        edits = dict(edited_params or {})
        if record.type is ConfirmationType.CLIENT_SELECT and record.status is ConfirmationStatus.PENDING:
            _check_candidate(record, edits.get(record.payload.get("targetParam", CLIENT_PARAM)))

        record.transition(ConfirmationStatus.CONFIRMED)
        record.transition(ConfirmationStatus.EXECUTING)
        if edits:
            record.tool_to_execute = record.tool_to_execute.with_parameters(edits)
        await self.store.save(record)

        call = record.tool_to_execute
        try:
            result = await self.dispatcher.execute_tool(call, record.actor_id)
        except BaseException:
            record.result = ToolResult.fail(ErrorKind.UNKNOWN, error_message(ErrorKind.UNKNOWN))
            record.transition(ConfirmationStatus.FAILED)
            await self.store.save(record)
            raise

        record.result = result
        record.transition(
            ConfirmationStatus.COMPLETED if result.success else ConfirmationStatus.FAILED
        )
        await self.store.save(record)
        logger.info("Confirmation %s %s", record.id, record.status.value)
        return record

    async def select_candidate(
        self,
        record_id: str,
        candidate_id: str,
        edited_params: Optional[Mapping[str, Any]] = None,
    ) -> ConfirmationRecord:
        """Resolve a ``client_select`` record with one of its candidates."""
        record = await self._load(record_id)
        if record.type is not ConfirmationType.CLIENT_SELECT:
            raise ValueError(f"Confirmation {record_id} is not a client selection")
        target = record.payload.get("targetParam", CLIENT_PARAM)
        return await self.confirm(record_id, {**(edited_params or {}), target: candidate_id})

    async def cancel(self, record_id: str) -> ConfirmationRecord:
        record = await self._load(record_id)
        record.transition(ConfirmationStatus.CANCELLED)
        await self.store.save(record)
        logger.info("Confirmation %s cancelled", record.id)
        return record


def _check_candidate(record: ConfirmationRecord, candidate_id: Any) -> None:
    offered = {c["id"] for c in record.payload.get("candidates", [])}
    if candidate_id not in offered:
        raise ValueError(f"{candidate_id!r} is not one of the offered clients")


async def _prepare_batch(executor, call: ToolCall) -> ConfirmationRecord:
    prepare = {
        ToolKind.COBRAR_TODOS_VENCIDOS: executor.prepare_overdue_charges,
        ToolKind.CONFIRMAR_REUNIOES_AMANHA: executor.prepare_meeting_confirmations,
        ToolKind.GERAR_FATURAS_MES: executor.prepare_monthly_invoices,
        ToolKind.ENVIAR_FOLLOWUP_LOTE: executor.prepare_followups,
        ToolKind.AGENDAR_RECORRENTE: executor.prepare_recurring,
        ToolKind.REGISTRAR_POS_REUNIAO: executor.prepare_post_meeting,
    }[ToolKind(call.name)]
    return await prepare(call.parameters)
