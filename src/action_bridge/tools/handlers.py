"""
One coroutine per tool.

Handlers narrow their params through ``tools.requests``, talk to the store
and gateway of a ``HandlerContext`` and return a ``ToolResult``. Expected
misses (unknown client, no phone) come back as failed results; anything else
is raised and mapped by the dispatcher.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Awaitable, Callable, Mapping, Optional
from urllib.parse import quote

from action_bridge.context import fold
from action_bridge.messages import format_brl, format_date, to_date
from action_bridge.services import BusinessStore, MessagingGateway, Record
from action_bridge.tools.batch import PREVIEW_KEY, BatchActionsExecutor, digits
from action_bridge.tools.definitions import ToolKind
from action_bridge.tools.requests import (
    ClientSummaryRequest,
    CompleteTaskRequest,
    CreateMeetingRequest,
    CreatePaymentRequest,
    CreateReminderRequest,
    CreateTaskRequest,
    DeleteMeetingRequest,
    GenerateMessageRequest,
    ListClientsRequest,
    ListMeetingsRequest,
    ListPaymentsRequest,
    ListTasksRequest,
    MarkPaidRequest,
    SearchClientRequest,
    SendWhatsAppRequest,
    UpdateMeetingRequest,
)
from action_bridge.types import BatchActionResult, ErrorKind, ToolResult

logger = logging.getLogger(__name__)

CLIENT_NOT_FOUND = "Cliente não encontrado"
MEETING_NOT_FOUND = "Reunião não encontrada"


@dataclass(slots=True)
class HandlerContext:
    """Collaborators and clock for one dispatch, already scoped to the actor."""

    store: BusinessStore
    gateway: Optional[MessagingGateway]
    actor_id: str
    today: date
    send_timeout: float = 15.0
    call_timeout: float = 15.0

    def batch(self) -> BatchActionsExecutor:
        return BatchActionsExecutor(
            self.store, self.gateway, self.actor_id, self.today, send_timeout=self.send_timeout
        )

    async def client(self, client_id: str) -> Optional[Record]:
        return await self.store.get_client(self.actor_id, client_id)


Handler = Callable[[HandlerContext, Mapping[str, Any]], Awaitable[ToolResult]]


def _not_found(message: str) -> ToolResult:
    return ToolResult.fail(ErrorKind.NOT_FOUND, message)


def _client_name(client: Optional[Record]) -> str:
    return (client or {}).get("name") or "Cliente"


async def _names_by_id(ctx: HandlerContext) -> dict[str, str]:
    return {c["id"]: c.get("name", "") for c in await ctx.store.list_clients(ctx.actor_id)}


# --- clients ---------------------------------------------------------------


async def search_client(ctx: HandlerContext, params: Mapping[str, Any]) -> ToolResult:
    request = SearchClientRequest.from_params(params)
    clients = await ctx.store.search_clients(ctx.actor_id, request.query)
    if not clients:
        return ToolResult.ok(
            found=False, clients=[], message=f'Nenhum cliente encontrado com "{request.query}"'
        )
    message = (
        f"Cliente encontrado: {clients[0].get('name')}"
        if len(clients) == 1
        else f"Encontrados {len(clients)} clientes correspondentes"
    )
    return ToolResult.ok(
        found=True, multiple=len(clients) > 1, clients=clients, client=clients[0], message=message
    )


async def list_clients(ctx: HandlerContext, params: Mapping[str, Any]) -> ToolResult:
    request = ListClientsRequest.from_params(params)
    clients = await ctx.store.list_clients(ctx.actor_id, status=request.status, limit=request.limit)
    return ToolResult.ok(clients=clients, total=len(clients), message=f"{len(clients)} clientes encontrados")


async def client_summary(ctx: HandlerContext, params: Mapping[str, Any]) -> ToolResult:
    request = ClientSummaryRequest.from_params(params)
    client = await ctx.client(request.client_id)
    if client is None:
        return _not_found(CLIENT_NOT_FOUND)

    store, actor = ctx.store, ctx.actor_id
    meetings = await store.list_meetings(actor, date_from=ctx.today, client_id=client["id"])
    tasks = [
        t
        for t in await store.list_tasks(actor, client_id=client["id"])
        if t.get("status") in ("todo", "doing")
    ]
    payments = await store.list_payments(actor, status="pending", client_id=client["id"])
    total = sum(float(p.get("amount") or 0) for p in payments)
    return ToolResult.ok(
        client=client,
        upcomingMeetings=meetings[:5],
        pendingTasks=tasks[:5],
        pendingPayments=payments,
        totalPendingAmount=total,
        message=(
            f"Resumo de {client['name']}: {len(meetings[:5])} reuniões agendadas, "
            f"{len(tasks[:5])} tarefas pendentes, {format_brl(total)} em aberto"
        ),
    )


# --- meetings --------------------------------------------------------------


async def create_meeting(ctx: HandlerContext, params: Mapping[str, Any]) -> ToolResult:
    request = CreateMeetingRequest.from_params(params)
    client = await ctx.client(request.client_id)
    if client is None:
        return _not_found(CLIENT_NOT_FOUND)
    meeting = await ctx.store.create_meeting(
        ctx.actor_id,
        {
            "client_id": client["id"],
            "date": request.date,
            "time": request.time,
            "type": request.type,
            "notes": request.notes,
            "status": "scheduled",
        },
    )
    return ToolResult.ok(
        meeting=meeting,
        clientName=client["name"],
        message=f"Reunião agendada com {client['name']} para {format_date(request.date)} às {request.time}",
    )


def _period(periodo: Optional[str], today: date) -> tuple[Optional[date], Optional[date]]:
    match periodo:
        case "hoje":
            return today, today
        case "amanha":
            return today + timedelta(days=1), today + timedelta(days=1)
        case "semana":
            return today, today + timedelta(days=7)
        case "mes":
            return today, today + timedelta(days=30)
        case _:
            return None, None


async def list_meetings(ctx: HandlerContext, params: Mapping[str, Any]) -> ToolResult:
    request = ListMeetingsRequest.from_params(params)
    date_from, date_to = _period(request.periodo, ctx.today)
    meetings = await ctx.store.list_meetings(
        ctx.actor_id, date_from=date_from, date_to=date_to, client_id=request.client_id
    )
    names = await _names_by_id(ctx)
    rows = [
        {**m, "clientName": names.get(m.get("client_id"), "Cliente não especificado")}
        for m in sorted(meetings, key=lambda m: (str(m.get("date")), str(m.get("time", ""))))
    ]
    return ToolResult.ok(meetings=rows, total=len(rows), message=f"{len(rows)} reuniões encontradas")


async def find_meeting(
    ctx: HandlerContext,
    meeting_id: Optional[str],
    client_id: Optional[str],
    on: Optional[str],
) -> list[Record]:
    """Meetings addressed either by id or by client and date."""
    if meeting_id:
        meeting = await ctx.store.get_meeting(ctx.actor_id, meeting_id)
        return [meeting] if meeting else []
    day = to_date(on)
    return await ctx.store.list_meetings(ctx.actor_id, date_from=day, date_to=day, client_id=client_id)


async def delete_meeting(ctx: HandlerContext, params: Mapping[str, Any]) -> ToolResult:
    request = DeleteMeetingRequest.from_params(params)
    meetings = await find_meeting(ctx, request.meeting_id, request.client_id, request.date)
    if not meetings:
        if request.meeting_id:
            return _not_found(MEETING_NOT_FOUND)
        return _not_found("Nenhuma reunião encontrada para este cliente nesta data")
    if len(meetings) > 1:
        return ToolResult.ok(
            multiple=True,
            meetings=[{"id": m["id"], "time": m.get("time"), "type": m.get("type")} for m in meetings],
            message=f"Encontrei {len(meetings)} reuniões nesta data. Qual você quer excluir?",
        )

    meeting = meetings[0]
    client = await ctx.client(meeting.get("client_id", ""))
    await ctx.store.delete_meeting(ctx.actor_id, meeting["id"])
    name = _client_name(client)
    return ToolResult.ok(
        deleted=True,
        meetingId=meeting["id"],
        clientName=name,
        message=(
            f"Reunião com {name} do dia {format_date(meeting['date'])} às "
            f"{meeting.get('time', '')} foi excluída com sucesso"
        ),
    )


async def update_meeting(ctx: HandlerContext, params: Mapping[str, Any]) -> ToolResult:
    request = UpdateMeetingRequest.from_params(params)
    meetings = await find_meeting(ctx, request.meeting_id, request.client_id, request.current_date)
    if not meetings:
        if request.meeting_id:
            return _not_found(MEETING_NOT_FOUND)
        return _not_found("Nenhuma reunião encontrada para este cliente nesta data")
    if len(meetings) > 1:
        return ToolResult.ok(
            multiple=True,
            meetings=[{"id": m["id"], "time": m.get("time"), "type": m.get("type")} for m in meetings],
            message=(
                f"Encontrei {len(meetings)} reuniões nesta data. Por favor, seja mais "
                "específico sobre qual reunião remarcar."
            ),
        )

    meeting = dict(meetings[0])  # stores may update the row in place
    changes = request.changes()
    updated = await ctx.store.update_meeting(ctx.actor_id, meeting["id"], changes)
    client = await ctx.client(meeting.get("client_id", ""))
    name = _client_name(client)

    described = []
    if "date" in changes:
        described.append(f"data: {format_date(meeting['date'])} → {format_date(changes['date'])}")
    if "time" in changes:
        described.append(f"horário: {meeting.get('time') or 'não definido'} → {changes['time']}")
    if "type" in changes:
        described.append(f"tipo: {meeting.get('type') or 'não definido'} → {changes['type']}")
    if "notes" in changes:
        described.append("observações atualizadas")
    return ToolResult.ok(
        meeting=updated,
        meetingId=meeting["id"],
        clientName=name,
        previousDate=meeting.get("date"),
        previousTime=meeting.get("time"),
        changes=described,
        message=f"Reunião com {name} atualizada: {', '.join(described)}",
    )


# --- tasks -----------------------------------------------------------------


async def create_task(ctx: HandlerContext, params: Mapping[str, Any]) -> ToolResult:
    request = CreateTaskRequest.from_params(params)
    client_id = None
    if request.client_id:
        client = await ctx.client(request.client_id)
        if client is None:
            return _not_found(CLIENT_NOT_FOUND)
        client_id = client["id"]
    task = await ctx.store.create_task(
        ctx.actor_id,
        {
            "title": request.title,
            "description": request.description,
            "client_id": client_id,
            "due_date": request.due_date,
            "priority": request.priority,
            "category": request.category,
            "status": "todo",
        },
    )
    return ToolResult.ok(task=task, message=f'Tarefa "{request.title}" criada com sucesso')


async def list_tasks(ctx: HandlerContext, params: Mapping[str, Any]) -> ToolResult:
    request = ListTasksRequest.from_params(params)
    tasks = await ctx.store.list_tasks(
        ctx.actor_id, status=request.status, client_id=request.client_id, priority=request.priority
    )
    today = ctx.today

    def due(task: Record) -> Optional[date]:
        return to_date(task["due_date"]) if task.get("due_date") else None

    match request.periodo:
        case "hoje":
            tasks = [t for t in tasks if due(t) == today]
        case "semana":
            tasks = [t for t in tasks if due(t) is not None and due(t) <= today + timedelta(days=7)]
        case "atrasadas":
            tasks = [t for t in tasks if due(t) is not None and due(t) < today and t.get("status") != "done"]
    tasks.sort(key=lambda t: (due(t) is None, due(t) or today))
    return ToolResult.ok(tasks=tasks, total=len(tasks), message=f"{len(tasks)} tarefas encontradas")


async def complete_task(ctx: HandlerContext, params: Mapping[str, Any]) -> ToolResult:
    request = CompleteTaskRequest.from_params(params)
    task = await ctx.store.get_task(ctx.actor_id, request.task_id) if request.task_id else None
    if task is None:
        needle = fold(request.task_title or request.task_id or "")
        open_tasks = [
            t
            for status in ("todo", "doing")
            for t in await ctx.store.list_tasks(ctx.actor_id, status=status)
        ]
        task = next((t for t in open_tasks if needle and needle in fold(t.get("title", ""))), None)
    if task is None:
        return _not_found("Tarefa não encontrada. Verifique o nome ou ID da tarefa.")
    await ctx.store.update_task(ctx.actor_id, task["id"], {"status": "done"})
    return ToolResult.ok(taskId=task["id"], message=f'Tarefa "{task.get("title", "")}" marcada como concluída')


# --- payments --------------------------------------------------------------


async def create_payment(ctx: HandlerContext, params: Mapping[str, Any]) -> ToolResult:
    request = CreatePaymentRequest.from_params(params)
    client = await ctx.client(request.client_id)
    if client is None:
        return _not_found(CLIENT_NOT_FOUND)
    payment = await ctx.store.create_payment(
        ctx.actor_id,
        {
            "client_id": client["id"],
            "amount": request.amount,
            "due_date": request.due_date,
            "description": request.description,
            "status": "pending",
        },
    )
    return ToolResult.ok(
        payment=payment,
        clientName=client["name"],
        message=f"Cobrança de {format_brl(request.amount)} criada para {client['name']}",
    )


async def list_payments(ctx: HandlerContext, params: Mapping[str, Any]) -> ToolResult:
    request = ListPaymentsRequest.from_params(params)
    yesterday = ctx.today - timedelta(days=1)
    match request.status:
        case "pending":
            filters = {"status": "pending", "due_from": ctx.today}
        case "overdue":
            filters = {"status": "pending", "due_to": yesterday}
        case "paid":
            filters = {"status": "paid"}
        case _:
            filters = {}
    payments = await ctx.store.list_payments(ctx.actor_id, client_id=request.client_id, **filters)
    payments = sorted(payments, key=lambda p: str(p.get("due_date")))
    total = sum(float(p.get("amount") or 0) for p in payments if p.get("status") == "pending")
    return ToolResult.ok(
        payments=payments,
        total=len(payments),
        totalPending=total,
        message=f"{len(payments)} pagamentos encontrados. Total pendente: {format_brl(total)}",
    )


async def mark_paid(ctx: HandlerContext, params: Mapping[str, Any]) -> ToolResult:
    request = MarkPaidRequest.from_params(params)
    payment = await ctx.store.get_payment(ctx.actor_id, request.payment_id)
    if payment is None:
        return _not_found("Pagamento não encontrado")
    paid_at = request.paid_at or ctx.today.isoformat()
    await ctx.store.update_payment(ctx.actor_id, payment["id"], {"status": "paid", "paid_at": paid_at})
    client = await ctx.client(payment.get("client_id", ""))
    name = _client_name(client)
    amount = float(payment.get("amount") or 0)
    return ToolResult.ok(
        paymentId=payment["id"],
        amount=amount,
        clientName=name,
        paidAt=paid_at,
        message=f"Pagamento de {format_brl(amount)} de {name} marcado como pago",
    )


# --- messaging and reminders -----------------------------------------------


async def send_whatsapp(ctx: HandlerContext, params: Mapping[str, Any]) -> ToolResult:
    request = SendWhatsAppRequest.from_params(params)
    client = await ctx.client(request.client_id)
    if client is None:
        return _not_found("Cliente não encontrado. Verifique se o cliente existe e tente novamente.")
    phone = digits(client.get("contact_phone"))
    if not phone:
        return ToolResult.fail(
            ErrorKind.INVALID_PARAMETERS,
            f"{client['name']} não possui telefone cadastrado. Adicione o telefone na página "
            "do cliente antes de enviar mensagens.",
        )
    contact = client.get("contact_name") or client["name"]
    base = {
        "clientName": client["name"],
        "contactName": client.get("contact_name"),
        "phone": client.get("contact_phone"),
        "message": request.message,
    }

    if ctx.gateway is not None:
        try:
            message_id = await ctx.gateway.send_text(phone, request.message)
        except Exception:
            # fall through to the click-to-send link
            logger.exception("WhatsApp gateway failed for client %s", client["id"])
        else:
            return ToolResult.ok(
                **base,
                messageId=message_id,
                sentVia="gateway",
                message_result=f"✅ Mensagem enviada para {contact} via WhatsApp!",
            )

    return ToolResult.ok(
        **base,
        whatsappUrl=f"https://wa.me/55{phone}?text={quote(request.message, safe='')}",
        sentVia="link",
        message_result=f"Mensagem preparada para {contact}. Clique no link para enviar via WhatsApp.",
    )


MESSAGE_TEMPLATES = {
    "lembrete_pagamento": (
        "Olá {nome}! Tudo bem? 😊\n\nEstou passando para lembrar sobre o pagamento deste mês. "
        "Poderia verificar por favor?\n\nQualquer dúvida, estou à disposição!"
    ),
    "confirmacao_reuniao": (
        "Olá {nome}! Tudo bem?\n\nGostaria de confirmar nossa reunião. Podemos manter o "
        "horário combinado?\n\nAguardo sua confirmação!"
    ),
    "followup": (
        "Olá {nome}! Tudo bem?\n\nEstou entrando em contato para saber como estão as coisas "
        "por aí. Tem alguma demanda ou ajuste que gostaria de fazer nas campanhas?\n\n"
        "Estou à disposição!"
    ),
    "boas_vindas": (
        "Olá {nome}! Seja muito bem-vindo(a)! 🎉\n\nEstou muito feliz em tê-lo(a) como "
        "cliente. Vamos trabalhar juntos para alcançar excelentes resultados!\n\n"
        "Qualquer dúvida, pode me chamar. Vamos com tudo!"
    ),
    "cobranca": (
        "Olá {nome}! Tudo bem?\n\nGostaria de falar sobre o pagamento que está em aberto. "
        "Houve algum problema? Podemos conversar sobre isso?\n\nAguardo seu retorno!"
    ),
    "custom": "Olá {nome}! Tudo bem?\n\n[Sua mensagem aqui]",
}


async def generate_message(ctx: HandlerContext, params: Mapping[str, Any]) -> ToolResult:
    request = GenerateMessageRequest.from_params(params)
    client = await ctx.client(request.client_id)
    if client is None:
        return _not_found(CLIENT_NOT_FOUND)
    contact = client.get("contact_name") or client["name"]
    if request.tipo == "custom" and request.contexto:
        text = request.contexto
    else:
        text = MESSAGE_TEMPLATES[request.tipo].replace("{nome}", contact)
    return ToolResult.ok(
        clientId=client["id"],
        clientName=client["name"],
        contactName=contact,
        tipo=request.tipo,
        mensagem=text,
        message=f'Mensagem "{request.tipo}" gerada para {contact}',
    )


async def create_reminder(ctx: HandlerContext, params: Mapping[str, Any]) -> ToolResult:
    request = CreateReminderRequest.from_params(params)
    reminder = await ctx.store.create_reminder(
        ctx.actor_id,
        {
            "client_id": request.client_id,
            "message": request.message,
            "remind_at": request.remind_at,
            "type": "personal",
            "is_sent": False,
        },
    )
    at = f" às {request.time}" if request.time else ""
    return ToolResult.ok(
        reminder=reminder,
        message_result=f'Lembrete criado para {format_date(request.date)}{at}: "{request.message}"',
    )


# --- summaries -------------------------------------------------------------


async def day_summary(ctx: HandlerContext, params: Mapping[str, Any]) -> ToolResult:
    today = ctx.today
    store, actor = ctx.store, ctx.actor_id
    meetings = await store.list_meetings(actor, date_from=today, date_to=today)
    meetings.sort(key=lambda m: str(m.get("time", "")))
    tasks = [
        t
        for status in ("todo", "doing")
        for t in await store.list_tasks(actor, status=status)
        if t.get("due_date") and to_date(t["due_date"]) <= today
    ][:10]
    overdue = await store.list_payments(actor, status="pending", due_to=today - timedelta(days=1))
    active = await store.list_clients(actor, status="active")
    return ToolResult.ok(
        date=today.isoformat(),
        meetings=meetings,
        meetingsCount=len(meetings),
        tasks=tasks,
        tasksCount=len(tasks),
        overduePayments=overdue,
        overduePaymentsCount=len(overdue),
        activeClients=len(active),
        message=(
            f"Resumo do dia: {len(meetings)} reuniões, {len(tasks)} tarefas pendentes, "
            f"{len(overdue)} pagamentos atrasados"
        ),
    )


# --- batch -----------------------------------------------------------------


def _batch(prepare: str, execute: str) -> Handler:
    """
    Run a batch tool from its confirmed preview.

    The preview stored under ``_preview`` is what the user approved, so it is
    replayed as is. Without one (a direct call) the population is resolved
    first.
    """

    async def handler(ctx: HandlerContext, params: Mapping[str, Any]) -> ToolResult:
        executor = ctx.batch()
        payload = params.get(PREVIEW_KEY)
        if not isinstance(payload, Mapping):
            record = await asyncio.wait_for(getattr(executor, prepare)(params), timeout=ctx.call_timeout)
            payload = record.payload
        result: BatchActionResult = await getattr(executor, execute)(payload)
        return ToolResult(success=result.success, data={"batch": result, "message": result.summary})

    handler.__name__ = execute
    return handler


HANDLERS: dict[ToolKind, Handler] = {
    ToolKind.BUSCAR_CLIENTE: search_client,
    ToolKind.LISTAR_CLIENTES: list_clients,
    ToolKind.CRIAR_REUNIAO: create_meeting,
    ToolKind.LISTAR_REUNIOES: list_meetings,
    ToolKind.EXCLUIR_REUNIAO: delete_meeting,
    ToolKind.ATUALIZAR_REUNIAO: update_meeting,
    ToolKind.CRIAR_TAREFA: create_task,
    ToolKind.LISTAR_TAREFAS: list_tasks,
    ToolKind.CONCLUIR_TAREFA: complete_task,
    ToolKind.CRIAR_COBRANCA: create_payment,
    ToolKind.LISTAR_PAGAMENTOS: list_payments,
    ToolKind.MARCAR_PAGO: mark_paid,
    ToolKind.ENVIAR_WHATSAPP: send_whatsapp,
    ToolKind.GERAR_MENSAGEM: generate_message,
    ToolKind.CRIAR_LEMBRETE: create_reminder,
    ToolKind.RESUMO_DIA: day_summary,
    ToolKind.RESUMO_CLIENTE: client_summary,
    ToolKind.COBRAR_TODOS_VENCIDOS: _batch("prepare_overdue_charges", "execute_overdue_charges"),
    ToolKind.CONFIRMAR_REUNIOES_AMANHA: _batch(
        "prepare_meeting_confirmations", "execute_meeting_confirmations"
    ),
    ToolKind.GERAR_FATURAS_MES: _batch("prepare_monthly_invoices", "execute_monthly_invoices"),
    ToolKind.ENVIAR_FOLLOWUP_LOTE: _batch("prepare_followups", "execute_followups"),
    ToolKind.AGENDAR_RECORRENTE: _batch("prepare_recurring", "execute_recurring"),
    ToolKind.REGISTRAR_POS_REUNIAO: _batch("prepare_post_meeting", "execute_post_meeting"),
}
