"""
Batch actions: one confirmation fanned out over many targets.

``prepare_*`` resolves the target population and renders every per-target
message, producing a pending ``ConfirmationRecord`` and no side effect.
``execute_*`` replays the stored targets in order, each inside its own
failure boundary, and aggregates a ``BatchActionResult``.
"""

from __future__ import annotations

import asyncio
import calendar
import logging
import re
from datetime import date, timedelta
from typing import Any, Awaitable, Callable, Final, Mapping, Optional

from action_bridge.context import fold
from action_bridge.errors import EmptyBatchError, MessagingError
from action_bridge.messages import (
    error_message,
    format_amount,
    format_brl,
    format_date,
    format_date_long,
    month_label,
    to_date,
)
from action_bridge.services import BusinessStore, MessagingGateway, Record
from action_bridge.tools.requests import (
    FollowupRequest,
    MeetingConfirmationsRequest,
    MonthlyInvoicesRequest,
    OverdueChargesRequest,
    PostMeetingRequest,
    RecurringScheduleRequest,
)
from action_bridge.types import (
    BatchActionResult,
    BatchItemResult,
    ConfirmationRecord,
    ConfirmationType,
    ErrorKind,
    ToolCall,
)

logger = logging.getLogger(__name__)

PREVIEW_KEY: Final = "_preview"

NO_WHATSAPP: Final = "WhatsApp não configurado ou telefone inválido"

CHARGE_TEMPLATES: Final[dict[str, str]] = {
    "padrao": (
        "Olá {nome}! Tudo bem? 😊\n\nEstou passando para lembrar sobre o pagamento de "
        "R$ {valor} que venceu dia {vencimento}.\n\nPoderia verificar, por favor? "
        "Qualquer dúvida estou à disposição!"
    ),
    "leve": (
        "Oi {nome}! Passando rapidinho pra lembrar do pagamento pendente. "
        "Me avisa quando puder resolver? 🙂"
    ),
    "firme": (
        "Olá {nome},\n\nIdentifiquei que há um pagamento de R$ {valor} em aberto desde "
        "{vencimento} ({dias} dias).\n\nPreciso que regularize essa pendência o mais breve "
        "possível.\n\nAguardo retorno."
    ),
}

MEETING_TEMPLATES: Final[dict[str, str]] = {
    "casual": (
        "Oi {nome}! Tudo bem? 😊\n\nPassando pra confirmar nossa reunião amanhã às "
        "{horario} ({tipo}).\n\nPode confirmar pra mim? Até lá! 🙌"
    ),
    "formal": (
        "Olá {nome},\n\nGostaria de confirmar nossa reunião agendada para amanhã, {data}, "
        "às {horario}.\n\nA reunião será {tipo}.\n\nPor favor, confirme sua "
        "disponibilidade.\n\nAtenciosamente."
    ),
}

FOLLOWUP_TEMPLATES: Final[dict[str, str]] = {
    "checkup": (
        "Oi {nome}! Tudo bem por aí? 😊\n\nFaz um tempinho que não nos falamos e queria "
        "saber como estão as coisas com as campanhas.\n\nTem alguma demanda ou ajuste que "
        "gostaria de fazer?\n\nEstou à disposição!"
    ),
    "novidades": (
        "Olá {nome}! Passando pra dar um alô! 👋\n\nTemos algumas novidades que podem ser "
        "interessantes pro seu negócio. Quer que eu te conte?\n\nAbraço!"
    ),
    "valor": (
        "Oi {nome}! Tudo bem?\n\nEstava analisando sua conta e identifiquei algumas "
        "oportunidades de melhoria nas campanhas.\n\nPodemos marcar uma call rápida pra eu "
        "te mostrar?\n\nAbraço!"
    ),
}

# Clients never contacted sort as this many days without contact
NEVER_CONTACTED_DAYS: Final = 999

_PLACEHOLDER_RE = re.compile(r"\{(nome|valor|vencimento|dias|horario|tipo|data)\}")

OCCURRENCE_LABELS: Final = {"reuniao": "reunião(ões)", "tarefa": "tarefa(s)", "lembrete": "lembrete(s)"}
FREQUENCY_LABELS: Final = {"semanal": "semanais", "quinzenal": "quinzenais", "mensal": "mensais"}

NEXT_MEETING_DAYS: Final = 14


def render(template: str, values: Mapping[str, Any]) -> str:
    """Replace every known ``{placeholder}``; unknown ones are left as written."""

    def sub(match: re.Match[str]) -> str:
        key = match.group(1)
        return str(values[key]) if key in values else match.group(0)

    return _PLACEHOLDER_RE.sub(sub, template)


def digits(phone: Optional[str]) -> str:
    return re.sub(r"\D", "", phone or "")


def _day_in_month(year: int, month: int, day: int) -> date:
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def _add_months(start: date, months: int, day: int) -> date:
    years, month = divmod(start.month - 1 + months, 12)
    return _day_in_month(start.year + years, month + 1, day)


def occurrence_dates(
    today: date,
    frequency: str,
    count: int,
    *,
    weekday: Optional[int] = None,
    day_of_month: Optional[int] = None,
) -> list[date]:
    """
    The first *count* dates of a series starting on or after *today*.

    The series starts on *weekday* when given, on *day_of_month* for a
    monthly series, otherwise on the next Monday. Monthly series keep their
    day of month, clamped to short months.
    """
    if weekday is not None:
        first = today + timedelta(days=(weekday - today.weekday()) % 7)
    elif day_of_month and frequency == "mensal":
        first = _day_in_month(today.year, today.month, day_of_month)
        if first < today:
            first = _add_months(first, 1, day_of_month)
    else:
        first = today + timedelta(days=-today.weekday() % 7)

    anchor = day_of_month or first.day
    match frequency:
        case "semanal":
            return [first + timedelta(weeks=i) for i in range(count)]
        case "quinzenal":
            return [first + timedelta(weeks=2 * i) for i in range(count)]
        case _:
            return [_add_months(first, i, anchor) for i in range(count)]


def split_items(text: Optional[str]) -> list[str]:
    """Free text listing items separated by commas, semicolons or newlines."""
    return [part.strip() for part in re.split(r"[,;\n]", text or "") if part.strip()]


def satisfaction(feedback: str) -> str:
    text = fold(feedback)
    # "insatisfeito" contains "satisfeito"
    if any(word in text for word in ("insatisfeito", "ruim", "problema")):
        return "insatisfeito"
    if any(word in text for word in ("muito", "otimo", "excelente")):
        return "muito_satisfeito"
    if any(word in text for word in ("satisfeito", "bom", "bem")):
        return "satisfeito"
    return "neutro"


def _contact_name(client: Record) -> str:
    return client.get("contact_name") or client.get("name") or "Cliente"


def _plural(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


class BatchActionsExecutor:
    """
    Prepares and runs the batch tools for one actor.

    Args:
        store: Business storage.
        gateway: Messaging gateway, or ``None`` when WhatsApp is not set up
            (every send target then fails individually).
        actor_id: The user the batch runs for.
        today: Reference date for "overdue", "tomorrow" and "current month".
        send_timeout: Upper bound, in seconds, for each per-target side effect.
    """

    def __init__(
        self,
        store: BusinessStore,
        gateway: Optional[MessagingGateway],
        actor_id: str,
        today: date,
        send_timeout: float = 15.0,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.actor_id = actor_id
        self.today = today
        self.send_timeout = send_timeout

    # --- shared ------------------------------------------------------------

    async def _clients_by_id(self) -> dict[str, Record]:
        clients = await self.store.list_clients(self.actor_id)
        return {c["id"]: c for c in clients}

    def _record(
        self,
        tool: str,
        params: Mapping[str, Any],
        payload: dict[str, Any],
    ) -> ConfirmationRecord:
        parameters = {k: v for k, v in params.items() if k != PREVIEW_KEY}
        parameters[PREVIEW_KEY] = payload
        return ConfirmationRecord(
            type=ConfirmationType.BATCH,
            payload=payload,
            tool_to_execute=ToolCall.new(tool, parameters),
            actor_id=self.actor_id,
        )

    async def _bounded(self, awaitable: Awaitable[Any]) -> Any:
        return await asyncio.wait_for(awaitable, timeout=self.send_timeout)

    async def _send(self, phone: str, message: str) -> str:
        if self.gateway is None or not digits(phone):
            raise MessagingError(NO_WHATSAPP)
        return await self._bounded(self.gateway.send_text(digits(phone), message))

    async def _run(
        self,
        targets: list[dict[str, Any]],
        step: Callable[[dict[str, Any]], Awaitable[dict[str, Any]]],
    ) -> BatchActionResult:
        """Apply *step* to each target in order; one failure never stops the rest."""
        result = BatchActionResult()
        for index, target in enumerate(targets):
            target_id = target.get("targetId") or target.get("clientId", "")
            target_name = target.get("targetName") or target.get("clientName", "Cliente")
            try:
                details = await step(target)
            except MessagingError as exc:
                logger.warning("Batch item %d (%s) not delivered: %s", index, target_id, exc)
                error = str(exc) if str(exc) == NO_WHATSAPP else error_message(ErrorKind.from_exception(exc))
                result.record(BatchItemResult(target_id, target_name, False, error=error))
            except Exception as exc:
                logger.exception("Batch item %d (%s) failed", index, target_id)
                result.record(
                    BatchItemResult(
                        target_id, target_name, False, error=error_message(ErrorKind.from_exception(exc))
                    )
                )
            else:
                result.record(BatchItemResult(target_id, target_name, True, details=details))
        return result

    @staticmethod
    def _tail(result: BatchActionResult) -> str:
        return f" {result.failed_count} falha(s)." if result.failed_count else ""

    # --- cobrar_todos_vencidos ---------------------------------------------

    async def prepare_overdue_charges(self, params: Mapping[str, Any]) -> ConfirmationRecord:
        request = OverdueChargesRequest.from_params(params)
        due_to = self.today - timedelta(days=request.dias_minimo)
        due_from = (
            self.today - timedelta(days=request.dias_maximo)
            if request.dias_maximo is not None
            else None
        )
        payments = await self.store.list_payments(
            self.actor_id, status="pending", due_from=due_from, due_to=due_to
        )
        if not payments:
            raise EmptyBatchError("Nenhum pagamento vencido encontrado com os critérios especificados.")

        clients = await self._clients_by_id()
        template = CHARGE_TEMPLATES[request.template]
        targets: list[dict[str, Any]] = []
        for payment in sorted(payments, key=lambda p: str(p["due_date"])):
            client = clients.get(payment.get("client_id"), {})
            phone = client.get("contact_phone")
            if not digits(phone):
                continue
            due = to_date(payment["due_date"])
            amount = float(payment["amount"])
            days = (self.today - due).days
            targets.append(
                {
                    "clientId": client.get("id", payment.get("client_id", "")),
                    "clientName": client.get("name", "Cliente"),
                    "contactName": _contact_name(client),
                    "phone": phone,
                    "paymentId": payment["id"],
                    "amount": amount,
                    "dueDate": due.isoformat(),
                    "daysOverdue": days,
                    "message": render(
                        template,
                        {
                            "nome": _contact_name(client),
                            "valor": format_amount(amount),
                            "vencimento": format_date(due),
                            "dias": days,
                        },
                    ),
                }
            )
        targets = targets[: request.limite]
        if not targets:
            raise EmptyBatchError("Nenhum cliente com telefone cadastrado encontrado.")

        total = sum(t["amount"] for t in targets)
        payload = {
            "kind": OverdueChargesRequest.tool,
            "title": "Cobrança em Lote",
            "description": f"Enviar cobrança para {len(targets)} cliente(s), total {format_brl(total)}",
            "targets": targets,
            "totalClientes": len(targets),
            "totalAmount": total,
            "messageTemplate": template,
        }
        logger.info("Prepared overdue charge batch for %d client(s)", len(targets))
        return self._record(OverdueChargesRequest.tool, params, payload)

    async def execute_overdue_charges(self, payload: Mapping[str, Any]) -> BatchActionResult:
        async def step(target: dict[str, Any]) -> dict[str, Any]:
            message_id = await self._send(target["phone"], target["message"])
            return {"messageId": message_id, "paymentId": target.get("paymentId")}

        targets = list(payload.get("targets", []))
        result = await self._run(targets, step)
        result.summary = (
            f"Cobrança enviada para {result.success_count} de {len(targets)} clientes."
            + self._tail(result)
        )
        return result

    # --- confirmar_reunioes_amanha -----------------------------------------

    async def prepare_meeting_confirmations(self, params: Mapping[str, Any]) -> ConfirmationRecord:
        request = MeetingConfirmationsRequest.from_params(params)
        target_day = to_date(request.data) if request.data else self.today + timedelta(days=1)
        meetings = await self.store.list_meetings(
            self.actor_id, date_from=target_day, date_to=target_day, status="scheduled"
        )
        if not meetings:
            raise EmptyBatchError(f"Nenhuma reunião encontrada para {format_date(target_day)}.")

        clients = await self._clients_by_id()
        template = MEETING_TEMPLATES[request.template]
        targets: list[dict[str, Any]] = []
        for meeting in sorted(meetings, key=lambda m: str(m.get("time", ""))):
            client = clients.get(meeting.get("client_id"), {})
            phone = client.get("contact_phone")
            if not digits(phone):
                continue
            kind = meeting.get("type") or "online"
            tipo = "online (vou te enviar o link)" if kind == "online" else "presencial"
            targets.append(
                {
                    "meetingId": meeting["id"],
                    "clientId": client.get("id", meeting.get("client_id", "")),
                    "clientName": client.get("name", "Cliente"),
                    "contactName": _contact_name(client),
                    "phone": phone,
                    "time": meeting.get("time", ""),
                    "type": kind,
                    "message": render(
                        template,
                        {
                            "nome": _contact_name(client),
                            "horario": meeting.get("time", ""),
                            "tipo": tipo,
                            "data": format_date(target_day),
                        },
                    ),
                }
            )
        if not targets:
            raise EmptyBatchError("Nenhum cliente com telefone cadastrado encontrado.")

        payload = {
            "kind": MeetingConfirmationsRequest.tool,
            "title": "Confirmação de Reuniões",
            "description": (
                f"Confirmar {len(targets)} {_plural(len(targets), 'reunião', 'reuniões')} "
                f"de {format_date(target_day)}"
            ),
            "data": target_day.isoformat(),
            "targets": targets,
            "totalReunioes": len(targets),
            "messageTemplate": template,
        }
        logger.info("Prepared meeting confirmation batch for %d meeting(s)", len(targets))
        return self._record(MeetingConfirmationsRequest.tool, params, payload)

    async def execute_meeting_confirmations(self, payload: Mapping[str, Any]) -> BatchActionResult:
        async def step(target: dict[str, Any]) -> dict[str, Any]:
            message_id = await self._send(target["phone"], target["message"])
            return {"messageId": message_id, "time": target.get("time")}

        targets = list(payload.get("targets", []))
        result = await self._run(targets, step)
        result.summary = (
            f"Confirmação enviada para {result.success_count} de {len(targets)} reuniões."
            + self._tail(result)
        )
        return result

    # --- gerar_faturas_mes -------------------------------------------------

    async def prepare_monthly_invoices(self, params: Mapping[str, Any]) -> ConfirmationRecord:
        request = MonthlyInvoicesRequest.from_params(params)
        year, month = request.mes or (self.today.year, self.today.month)
        last_day = calendar.monthrange(year, month)[1]
        label = month_label(year, month)

        clients = await self.store.list_clients(
            self.actor_id, status="active" if request.apenas_ativos else None
        )
        if not clients:
            raise EmptyBatchError("Nenhum cliente encontrado para gerar faturas.")

        existing = await self.store.list_payments(
            self.actor_id, due_from=date(year, month, 1), due_to=date(year, month, last_day)
        )
        billed = {p.get("client_id") for p in existing}

        targets: list[dict[str, Any]] = []
        for client in clients:
            monthly = float(client.get("monthly_value") or 0)
            if monthly <= 0:
                continue
            due_day = min(int(client.get("due_day") or request.dia_vencimento_padrao), last_day)
            targets.append(
                {
                    "clientId": client["id"],
                    "clientName": client.get("name", "Cliente"),
                    "monthlyValue": monthly,
                    "dueDay": due_day,
                    "dueDate": date(year, month, due_day).isoformat(),
                    "alreadyBilled": client["id"] in billed,
                }
            )

        new = [t for t in targets if not t["alreadyBilled"]]
        if not new:
            raise EmptyBatchError("Todos os clientes já possuem cobrança para este mês.")

        total = sum(t["monthlyValue"] for t in new)
        payload = {
            "kind": MonthlyInvoicesRequest.tool,
            "title": "Gerar Faturas Mensais",
            "description": f"Criar {len(new)} cobrança(s) para {label}, total {format_brl(total)}",
            "mes": f"{year:04d}-{month:02d}",
            "mesLabel": label,
            "targets": targets,
            "totalClientes": len(new),
            "clientesJaFaturados": len(targets) - len(new),
            "totalAmount": total,
        }
        logger.info("Prepared invoice batch for %d client(s), %s", len(new), payload["mes"])
        return self._record(MonthlyInvoicesRequest.tool, params, payload)

    async def execute_monthly_invoices(self, payload: Mapping[str, Any]) -> BatchActionResult:
        label = payload.get("mesLabel", "")

        async def step(target: dict[str, Any]) -> dict[str, Any]:
            payment = await self._bounded(
                self.store.create_payment(
                    self.actor_id,
                    {
                        "client_id": target["clientId"],
                        "amount": target["monthlyValue"],
                        "due_date": target["dueDate"],
                        "status": "pending",
                        "description": f"Serviço de gestão de tráfego - {label}",
                    },
                )
            )
            return {
                "paymentId": payment.get("id"),
                "amount": target["monthlyValue"],
                "dueDate": target["dueDate"],
            }

        targets = [t for t in payload.get("targets", []) if not t.get("alreadyBilled")]
        result = await self._run(targets, step)
        created = sum(item.details.get("amount", 0) for item in result.items if item.success)
        result.summary = (
            f"{result.success_count} cobrança(s) criada(s) para {label}. "
            f"Total: {format_brl(created)}." + self._tail(result)
        )
        return result

    # --- enviar_followup_lote ----------------------------------------------

    async def prepare_followups(self, params: Mapping[str, Any]) -> ConfirmationRecord:
        request = FollowupRequest.from_params(params)
        clients = await self.store.list_clients(self.actor_id, status="active")
        if not clients:
            raise EmptyBatchError(
                f"Nenhum cliente encontrado sem contato há mais de {request.dias_minimo} dias."
            )

        template = FOLLOWUP_TEMPLATES[request.template]
        targets: list[dict[str, Any]] = []
        for client in clients:
            last = client.get("last_contact")
            days = (self.today - to_date(last)).days if last else NEVER_CONTACTED_DAYS
            if days < request.dias_minimo:
                continue
            if last and days > request.dias_maximo:
                continue
            phone = client.get("contact_phone")
            if not digits(phone):
                continue
            targets.append(
                {
                    "clientId": client["id"],
                    "clientName": client.get("name", "Cliente"),
                    "contactName": _contact_name(client),
                    "phone": phone,
                    "daysWithoutContact": days,
                    "lastContact": to_date(last).isoformat() if last else None,
                    "lastContactType": client.get("last_contact_type"),
                    "message": render(template, {"nome": _contact_name(client)}),
                }
            )
        targets = targets[: request.limite]
        if not targets:
            raise EmptyBatchError(
                "Nenhum cliente com telefone cadastrado encontrado nos critérios especificados."
            )

        payload = {
            "kind": FollowupRequest.tool,
            "title": "Follow-up em Lote",
            "description": f"Enviar follow-up para {len(targets)} cliente(s) sem contato recente",
            "targets": targets,
            "totalClientes": len(targets),
            "diasMinimo": request.dias_minimo,
            "messageTemplate": template,
        }
        logger.info("Prepared follow-up batch for %d client(s)", len(targets))
        return self._record(FollowupRequest.tool, params, payload)

    async def execute_followups(self, payload: Mapping[str, Any]) -> BatchActionResult:
        async def step(target: dict[str, Any]) -> dict[str, Any]:
            message_id = await self._send(target["phone"], target["message"])
            details = {"messageId": message_id, "daysWithoutContact": target.get("daysWithoutContact")}
            # The message is out; a failed bookkeeping update does not undo it.
            try:
                await self._bounded(
                    self.store.update_client(
                        self.actor_id,
                        target["clientId"],
                        {"last_contact": self.today.isoformat(), "last_contact_type": "whatsapp"},
                    )
                )
                details["contactUpdated"] = True
            except Exception:
                logger.exception("Could not update last contact for %s", target["clientId"])
                details["contactUpdated"] = False
            return details

        targets = list(payload.get("targets", []))
        result = await self._run(targets, step)
        result.summary = (
            f"Follow-up enviado para {result.success_count} de {len(targets)} clientes."
            + self._tail(result)
        )
        return result

    # --- agendar_recorrente ------------------------------------------------

    async def prepare_recurring(self, params: Mapping[str, Any]) -> ConfirmationRecord:
        request = RecurringScheduleRequest.from_params(params)
        client = await self.store.get_client(self.actor_id, request.client_id)
        if client is None:
            raise EmptyBatchError("Cliente não encontrado para o agendamento.")

        name = client.get("name", "Cliente")
        label = OCCURRENCE_LABELS[request.tipo]
        targets = [
            {
                "targetId": day.isoformat(),
                "targetName": format_date_long(day),
                "clientId": client["id"],
                "date": day.isoformat(),
                "time": request.horario if request.tipo == "reuniao" else None,
            }
            for day in occurrence_dates(
                self.today,
                request.frequencia,
                request.quantidade,
                weekday=request.dia_semana,
                day_of_month=request.dia_do_mes,
            )
        ]
        summary = f"{len(targets)} {label} {FREQUENCY_LABELS[request.frequencia]} para {name}"
        payload = {
            "kind": RecurringScheduleRequest.tool,
            "title": "Agendamento Recorrente",
            "description": summary,
            "clientId": client["id"],
            "clientName": name,
            "tipo": request.tipo,
            "frequencia": request.frequencia,
            "horario": request.horario if request.tipo == "reuniao" else None,
            "titulo": request.titulo,
            "dataInicio": targets[0]["date"],
            "targets": targets,
            "totalOcorrencias": len(targets),
        }
        logger.info("Prepared %d %s occurrence(s) for %s", len(targets), request.frequencia, client["id"])
        return self._record(RecurringScheduleRequest.tool, params, payload)

    async def execute_recurring(self, payload: Mapping[str, Any]) -> BatchActionResult:
        tipo = payload.get("tipo", "reuniao")
        frequencia = payload.get("frequencia", "")
        title = payload.get("titulo")

        async def step(target: dict[str, Any]) -> dict[str, Any]:
            match tipo:
                case "reuniao":
                    row = await self._bounded(
                        self.store.create_meeting(
                            self.actor_id,
                            {
                                "client_id": target["clientId"],
                                "date": target["date"],
                                "time": target.get("time"),
                                "type": "online",
                                "status": "scheduled",
                                "notes": f"Reunião {frequencia}",
                            },
                        )
                    )
                case "tarefa":
                    row = await self._bounded(
                        self.store.create_task(
                            self.actor_id,
                            {
                                "client_id": target["clientId"],
                                "title": title or f"Tarefa {frequencia}",
                                "due_date": target["date"],
                                "priority": "medium",
                                "status": "todo",
                            },
                        )
                    )
                case _:
                    row = await self._bounded(
                        self.store.create_reminder(
                            self.actor_id,
                            {
                                "client_id": target["clientId"],
                                "message": title or f"Lembrete {frequencia}",
                                "remind_at": f"{target['date']}T09:00:00",
                                "status": "pending",
                            },
                        )
                    )
            return {"id": row.get("id"), "date": target["date"]}

        targets = list(payload.get("targets", []))
        result = await self._run(targets, step)
        result.summary = (
            f"{result.success_count} de {len(targets)} {OCCURRENCE_LABELS.get(tipo, 'item(ns)')} "
            f"criado(s) para {payload.get('clientName', 'o cliente')}." + self._tail(result)
        )
        return result

    # --- registrar_pos_reuniao ---------------------------------------------

    async def prepare_post_meeting(self, params: Mapping[str, Any]) -> ConfirmationRecord:
        request = PostMeetingRequest.from_params(params)
        if request.meeting_id:
            meeting = await self.store.get_meeting(self.actor_id, request.meeting_id)
        else:
            past = await self.store.list_meetings(
                self.actor_id, date_to=self.today, client_id=request.client_id
            )
            meeting = max(
                past, key=lambda m: (str(m.get("date")), str(m.get("time") or "")), default=None
            )
        if meeting is None:
            raise EmptyBatchError("Reunião não encontrada. Informe o cliente ou o ID da reunião.")

        client_id = meeting.get("client_id") or request.client_id or ""
        client = await self.store.get_client(self.actor_id, client_id) or {}
        name = client.get("name", "Cliente")
        held_on = to_date(meeting["date"]).isoformat()
        base = {"clientId": client_id, "meetingId": meeting["id"]}

        steps = [
            {
                "descricao": text,
                "responsavel": "gestor",
                "prioridade": "alta" if index == 0 else "media",
                "prazo": (self.today + timedelta(days=3 if index == 0 else 7)).isoformat(),
            }
            for index, text in enumerate(split_items(request.proximos_passos))
        ]
        decisions = [{"descricao": text, "responsavel": "ambos"} for text in split_items(request.decisoes)]
        feedback = (
            {"satisfacao": satisfaction(request.feedback), "comentarios": request.feedback}
            if request.feedback
            else None
        )
        next_meeting = (
            {
                "data": (self.today + timedelta(days=NEXT_MEETING_DAYS)).isoformat(),
                "horario": meeting.get("time"),
                "pauta": "Acompanhamento",
            }
            if request.agendar_proxima
            else None
        )

        targets: list[dict[str, Any]] = [
            {**base, "action": "meeting", "targetId": meeting["id"], "targetName": "Registro da reunião"}
        ]
        for index, item in enumerate(steps, start=1):
            targets.append(
                {
                    **base,
                    "action": "task",
                    "targetId": f"{meeting['id']}:passo-{index}",
                    "targetName": item["descricao"],
                    "priority": "high" if item["prioridade"] == "alta" else "medium",
                    "dueDate": item["prazo"],
                }
            )
        if next_meeting:
            targets.append(
                {
                    **base,
                    "action": "next_meeting",
                    "targetId": f"{meeting['id']}:proxima",
                    "targetName": "Próxima reunião",
                    "date": next_meeting["data"],
                    "time": next_meeting["horario"],
                }
            )

        summary = (
            f"{len(decisions)} {_plural(len(decisions), 'decisão', 'decisões')}, "
            f"{len(steps)} próximo(s) passo(s)"
        )
        payload = {
            "kind": PostMeetingRequest.tool,
            "title": "Registro Pós-Reunião",
            "description": f"Registrar reunião com {name}: {summary}",
            "meetingId": meeting["id"],
            "clientId": client_id,
            "clientName": name,
            "dataReuniao": held_on,
            "anotacoes": request.anotacoes,
            "decisoes": decisions,
            "proximosPassos": steps,
            "feedbackCliente": feedback,
            "proximaReuniao": next_meeting,
            "resumo": summary,
            "targets": targets,
        }
        logger.info("Prepared post-meeting record for %s (%d step(s))", meeting["id"], len(steps))
        return self._record(PostMeetingRequest.tool, params, payload)

    async def execute_post_meeting(self, payload: Mapping[str, Any]) -> BatchActionResult:
        held_on = payload.get("dataReuniao") or self.today.isoformat()
        notes = payload.get("anotacoes", "")

        async def close_meeting(target: dict[str, Any]) -> dict[str, Any]:
            await self._bounded(
                self.store.update_meeting(
                    self.actor_id, target["meetingId"], {"status": "completed", "notes": notes}
                )
            )
            details: dict[str, Any] = {"action": "meeting", "meetingId": target["meetingId"]}
            # The meeting is recorded; a failed bookkeeping update does not undo it.
            try:
                await self._bounded(
                    self.store.update_client(
                        self.actor_id,
                        target["clientId"],
                        {"last_contact": held_on, "last_contact_type": "reuniao"},
                    )
                )
                details["contactUpdated"] = True
            except Exception:
                logger.exception("Could not update last contact for %s", target["clientId"])
                details["contactUpdated"] = False
            return details

        async def create_task(target: dict[str, Any]) -> dict[str, Any]:
            task = await self._bounded(
                self.store.create_task(
                    self.actor_id,
                    {
                        "client_id": target["clientId"],
                        "title": target["targetName"],
                        "description": f"Definido na reunião de {format_date(held_on)}",
                        "due_date": target["dueDate"],
                        "priority": target["priority"],
                        "status": "todo",
                    },
                )
            )
            return {"action": "task", "taskId": task.get("id")}

        async def schedule_next(target: dict[str, Any]) -> dict[str, Any]:
            meeting = await self._bounded(
                self.store.create_meeting(
                    self.actor_id,
                    {
                        "client_id": target["clientId"],
                        "date": target["date"],
                        "time": target.get("time"),
                        "type": "online",
                        "status": "scheduled",
                        "notes": "Acompanhamento",
                    },
                )
            )
            return {"action": "next_meeting", "meetingId": meeting.get("id")}

        actions = {"meeting": close_meeting, "task": create_task, "next_meeting": schedule_next}

        async def step(target: dict[str, Any]) -> dict[str, Any]:
            return await actions[target["action"]](target)

        result = await self._run(list(payload.get("targets", [])), step)
        done = [item.details.get("action") for item in result.items if item.success]
        name = payload.get("clientName", "Cliente")
        head = (
            f"Reunião com {name} registrada."
            if "meeting" in done
            else f"Não consegui registrar a reunião com {name}."
        )
        result.summary = (
            f"{head} {done.count('task')} tarefa(s) criada(s)."
            + (" Próxima reunião agendada." if "next_meeting" in done else "")
            + self._tail(result)
        )
        return result
