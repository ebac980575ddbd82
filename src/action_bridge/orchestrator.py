"""
Conversation turns: user text in, assistant text plus at most one action out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Iterable, Mapping, Optional

from action_bridge.config import Settings
from action_bridge.confirmation import ConfirmationManager
from action_bridge.context import BusinessContext
from action_bridge.dispatcher import ToolDispatcher
from action_bridge.errors import EmptyBatchError, ProviderExhaustedError
from action_bridge.fallback import FallbackClient
from action_bridge.messages import (
    CANCELLED_MESSAGE,
    PROVIDER_EXHAUSTED_MESSAGE,
    action_message,
    result_message,
)
from action_bridge.services import BusinessStore, ConfirmationStore, MessagingGateway
from action_bridge.tools import build_default_registry
from action_bridge.types import ConfirmationRecord, ToolResult

__all__ = ["Assistant", "Decision", "ResolutionOutcome", "TurnOutcome"]

logger = logging.getLogger(__name__)


class Decision(StrEnum):
    CONFIRM = "confirm"
    CANCEL = "cancel"


@dataclass(slots=True)
class TurnOutcome:
    assistant_text: str
    pending_confirmation: Optional[ConfirmationRecord] = None
    result: Optional[ToolResult] = None
    provider_used: Optional[str] = None


@dataclass(slots=True)
class ResolutionOutcome:
    assistant_text: str
    result: Optional[ToolResult]
    record: ConfirmationRecord


class Assistant:
    """
    Ties the fallback client to the confirmation manager.

    Use ``Assistant.from_settings`` to wire the default catalogue, providers
    and dispatcher around your store and gateway.
    """

    def __init__(self, fallback: FallbackClient, manager: ConfirmationManager) -> None:
        self.fallback = fallback
        self.manager = manager

    @classmethod
    def from_settings(
        cls,
        store: BusinessStore,
        gateway: Optional[MessagingGateway] = None,
        *,
        settings: Optional[Settings] = None,
        confirmations: Optional[ConfirmationStore] = None,
    ) -> "Assistant":
        settings = settings or Settings.from_env()
        registry = build_default_registry()
        dispatcher = ToolDispatcher(
            store,
            gateway,
            call_timeout=settings.call_timeout,
            send_timeout=settings.send_timeout,
        )
        return cls(
            FallbackClient.from_settings(settings, registry),
            ConfirmationManager(registry, dispatcher, confirmations),
        )

    async def process_turn(
        self,
        user_message: str,
        context: BusinessContext,
        history: Optional[Iterable[Mapping[str, Any]]] = None,
    ) -> TurnOutcome:
        try:
            reply = await self.fallback.process_message(user_message, context, history)
        except ProviderExhaustedError as exc:
            logger.error("%s", exc)
            return TurnOutcome(assistant_text=PROVIDER_EXHAUSTED_MESSAGE)

        if not reply.tool_calls:
            return TurnOutcome(assistant_text=reply.text, provider_used=reply.provider_used)

        if len(reply.tool_calls) > 1:
            logger.info(
                "Ignoring %d extra tool call(s) from %s", len(reply.tool_calls) - 1, reply.provider_used
            )
        call = reply.tool_calls[0]

        try:
            outcome = await self.manager.submit(call, context.actor_id, context)
        except EmptyBatchError as exc:
            return TurnOutcome(assistant_text=str(exc), provider_used=reply.provider_used)

        if isinstance(outcome, ConfirmationRecord):
            return TurnOutcome(
                assistant_text=action_message(outcome),
                pending_confirmation=outcome,
                provider_used=reply.provider_used,
            )
        return TurnOutcome(
            assistant_text=result_message(call.name, outcome),
            result=outcome,
            provider_used=reply.provider_used,
        )

    async def resolve_confirmation(
        self,
        confirmation_id: str,
        decision: Decision | str,
        edited_params: Optional[Mapping[str, Any]] = None,
        candidate_id: Optional[str] = None,
    ) -> ResolutionOutcome:
        """
        Apply the user's decision to a pending record.

        ``candidate_id`` is required to confirm a ``client_select`` record.
        ``ConfirmationStateError`` and ``ConfirmationNotFoundError`` propagate.
        """
        decision = Decision(decision)
        if decision is Decision.CANCEL:
            record = await self.manager.cancel(confirmation_id)
            return ResolutionOutcome(CANCELLED_MESSAGE, None, record)

        if candidate_id is not None:
            record = await self.manager.select_candidate(confirmation_id, candidate_id, edited_params)
        else:
            record = await self.manager.confirm(confirmation_id, edited_params)

        result = record.result
        tool = record.tool_to_execute.name
        text = result_message(tool, result, deferred=True) if result else ""
        return ResolutionOutcome(text, result, record)

    async def aclose(self) -> None:
        await self.fallback.aclose()
