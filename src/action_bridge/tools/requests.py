"""
Typed requests narrowed from the untrusted parameter dict an LLM produced.

Every handler calls ``<Request>.from_params(params)`` before touching a
collaborator. A payload that does not fit raises ``ToolValidationError``
with a message safe to show the user.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, ClassVar, Mapping, Optional, Sequence

from action_bridge.context import fold
from action_bridge.errors import ToolValidationError

_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)(:[0-5]\d)?$")
_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")
_THOUSANDS_RE = re.compile(r"^-?\d{1,3}(\.\d{3})+$")
_EMPTY = ("", "undefined", "null", "none")


class _Reader:
    """Pulls typed values out of a params mapping on behalf of one tool."""

    def __init__(self, tool: str, params: Mapping[str, Any] | None) -> None:
        if params is not None and not isinstance(params, Mapping):
            raise ToolValidationError(tool, "Parâmetros inválidos.")
        self.tool = tool
        self.params = params or {}

    def fail(self, message: str) -> ToolValidationError:
        return ToolValidationError(self.tool, message)

    def _raw(self, key: str) -> Any:
        value = self.params.get(key)
        if isinstance(value, str) and value.strip().lower() in _EMPTY:
            return None
        return value

    def text(self, key: str, *, required: bool = False, default: Optional[str] = None) -> Optional[str]:
        value = self._raw(key)
        if value is None:
            if required:
                raise self.fail(f"Informe o campo obrigatório '{key}'.")
            return default
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, str):
            raise self.fail(f"O campo '{key}' deve ser um texto.")
        return value.strip()

    def choice(self, key: str, choices: Sequence[str], *, default: Optional[str] = None) -> Optional[str]:
        value = self.text(key, default=default)
        if value is not None and value not in choices:
            raise self.fail(f"Valor inválido para '{key}': use {', '.join(choices)}.")
        return value

    def number(
        self,
        key: str,
        *,
        required: bool = False,
        default: Optional[float] = None,
        positive: bool = False,
    ) -> Optional[float]:
        value = self._raw(key)
        if value is None:
            if required:
                raise self.fail(f"Informe o campo obrigatório '{key}'.")
            return default
        if isinstance(value, bool):
            raise self.fail(f"O campo '{key}' deve ser um número.")
        if isinstance(value, str):
            value = value.replace("R$", "").strip()
            # pt-BR "1.234,56" and "1.234"
            if "," in value:
                value = value.replace(".", "").replace(",", ".")
            elif _THOUSANDS_RE.match(value):
                value = value.replace(".", "")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise self.fail(f"O campo '{key}' deve ser um número.") from None
        if not math.isfinite(number):
            raise self.fail(f"O campo '{key}' deve ser um número.")
        if positive and number <= 0:
            raise self.fail(f"O campo '{key}' deve ser maior que zero.")
        return number

    def integer(self, key: str, *, default: Optional[int] = None, minimum: int = 0) -> Optional[int]:
        number = self.number(key, default=None)
        if number is None:
            return default
        if number != int(number) or number < minimum:
            raise self.fail(f"O campo '{key}' deve ser um inteiro maior ou igual a {minimum}.")
        return int(number)

    def flag(self, key: str, *, default: bool) -> bool:
        value = self._raw(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "sim", "1"):
            return True
        if isinstance(value, str) and value.strip().lower() in ("false", "nao", "não", "0"):
            return False
        raise self.fail(f"O campo '{key}' deve ser verdadeiro ou falso.")

    def iso_date(self, key: str, *, required: bool = False) -> Optional[str]:
        value = self.text(key, required=required)
        if value is None:
            return None
        try:
            return date.fromisoformat(value[:10]).isoformat()
        except ValueError:
            raise self.fail(f"Data inválida em '{key}': use o formato AAAA-MM-DD.") from None

    def clock(self, key: str, *, required: bool = False) -> Optional[str]:
        value = self.text(key, required=required)
        if value is None:
            return None
        match = _TIME_RE.match(value)
        if not match:
            raise self.fail(f"Horário inválido em '{key}': use o formato HH:mm.")
        return f"{int(match.group(1)):02d}:{match.group(2)}"

    def month(self, key: str) -> Optional[tuple[int, int]]:
        value = self.text(key)
        if value is None:
            return None
        match = _MONTH_RE.match(value)
        if not match or not 1 <= int(match.group(2)) <= 12:
            raise self.fail(f"Mês inválido em '{key}': use o formato AAAA-MM.")
        return int(match.group(1)), int(match.group(2))


MEETING_TYPES = ("online", "presencial")
PRIORITIES = ("low", "medium", "high", "urgent")


# --- clients ---------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SearchClientRequest:
    tool: ClassVar[str] = "buscar_cliente"
    query: str

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "SearchClientRequest":
        r = _Reader(cls.tool, params)
        return cls(query=r.text("query", required=True))


@dataclass(frozen=True, slots=True)
class ListClientsRequest:
    tool: ClassVar[str] = "listar_clientes"
    status: Optional[str] = None
    limit: int = 50

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "ListClientsRequest":
        r = _Reader(cls.tool, params)
        status = r.choice("status", ("active", "inactive", "paused", "all"))
        return cls(
            status=None if status == "all" else status,
            limit=r.integer("limit", default=50, minimum=1),
        )


@dataclass(frozen=True, slots=True)
class ClientSummaryRequest:
    tool: ClassVar[str] = "resumo_cliente"
    client_id: str

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "ClientSummaryRequest":
        return cls(client_id=_Reader(cls.tool, params).text("clientId", required=True))


# --- meetings --------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CreateMeetingRequest:
    tool: ClassVar[str] = "criar_reuniao"
    client_id: str
    date: str
    time: str
    type: str = "online"
    notes: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "CreateMeetingRequest":
        r = _Reader(cls.tool, params)
        return cls(
            client_id=r.text("clientId", required=True),
            date=r.iso_date("date", required=True),
            time=r.clock("time", required=True),
            type=r.choice("type", MEETING_TYPES, default="online"),
            notes=r.text("notes"),
        )


@dataclass(frozen=True, slots=True)
class ListMeetingsRequest:
    tool: ClassVar[str] = "listar_reunioes"
    periodo: Optional[str] = None
    client_id: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "ListMeetingsRequest":
        r = _Reader(cls.tool, params)
        return cls(
            periodo=r.choice("periodo", ("hoje", "amanha", "semana", "mes")),
            client_id=r.text("clientId"),
        )


@dataclass(frozen=True, slots=True)
class DeleteMeetingRequest:
    tool: ClassVar[str] = "excluir_reuniao"
    meeting_id: Optional[str] = None
    client_id: Optional[str] = None
    date: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "DeleteMeetingRequest":
        r = _Reader(cls.tool, params)
        request = cls(
            meeting_id=r.text("meetingId"),
            client_id=r.text("clientId"),
            date=r.iso_date("date"),
        )
        if not request.meeting_id and not (request.client_id and request.date):
            raise r.fail("É necessário informar o ID da reunião ou o cliente e a data.")
        return request


@dataclass(frozen=True, slots=True)
class UpdateMeetingRequest:
    tool: ClassVar[str] = "atualizar_reuniao"
    meeting_id: Optional[str] = None
    client_id: Optional[str] = None
    current_date: Optional[str] = None
    new_date: Optional[str] = None
    new_time: Optional[str] = None
    new_type: Optional[str] = None
    new_notes: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "UpdateMeetingRequest":
        r = _Reader(cls.tool, params)
        request = cls(
            meeting_id=r.text("meetingId"),
            client_id=r.text("clientId"),
            current_date=r.iso_date("currentDate"),
            new_date=r.iso_date("newDate"),
            new_time=r.clock("newTime"),
            new_type=r.choice("newType", MEETING_TYPES),
            new_notes=r.text("newNotes"),
        )
        if not request.meeting_id and not (request.client_id and request.current_date):
            raise r.fail("É necessário informar o ID da reunião ou o cliente e a data atual.")
        if not request.changes():
            raise r.fail("Informe o que deve mudar na reunião (data, horário, tipo ou observações).")
        return request

    def changes(self) -> dict[str, Any]:
        fields = {
            "date": self.new_date,
            "time": self.new_time,
            "type": self.new_type,
            "notes": self.new_notes,
        }
        return {k: v for k, v in fields.items() if v is not None}


# --- tasks -----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CreateTaskRequest:
    tool: ClassVar[str] = "criar_tarefa"
    title: str
    description: Optional[str] = None
    client_id: Optional[str] = None
    due_date: Optional[str] = None
    priority: str = "medium"
    category: str = "other"

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "CreateTaskRequest":
        r = _Reader(cls.tool, params)
        return cls(
            title=r.text("title", required=True),
            description=r.text("description"),
            client_id=r.text("clientId"),
            due_date=r.iso_date("dueDate"),
            priority=r.choice("priority", PRIORITIES, default="medium"),
            category=r.choice(
                "category",
                ("optimization", "creative", "report", "meeting", "payment", "other"),
                default="other",
            ),
        )


@dataclass(frozen=True, slots=True)
class ListTasksRequest:
    tool: ClassVar[str] = "listar_tarefas"
    status: Optional[str] = None
    client_id: Optional[str] = None
    priority: Optional[str] = None
    periodo: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "ListTasksRequest":
        r = _Reader(cls.tool, params)
        status = r.choice("status", ("todo", "doing", "done", "all"))
        return cls(
            status=None if status == "all" else status,
            client_id=r.text("clientId"),
            priority=r.choice("priority", PRIORITIES),
            periodo=r.choice("periodo", ("hoje", "semana", "atrasadas", "todas")),
        )


@dataclass(frozen=True, slots=True)
class CompleteTaskRequest:
    tool: ClassVar[str] = "concluir_tarefa"
    task_id: Optional[str] = None
    task_title: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "CompleteTaskRequest":
        r = _Reader(cls.tool, params)
        request = cls(task_id=r.text("taskId"), task_title=r.text("taskTitle"))
        if not request.task_id and not request.task_title:
            raise r.fail("Informe o ID ou o título da tarefa.")
        return request


# --- payments --------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CreatePaymentRequest:
    tool: ClassVar[str] = "criar_cobranca"
    client_id: str
    amount: float
    due_date: str
    description: str = "Serviço de gestão de tráfego"

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "CreatePaymentRequest":
        r = _Reader(cls.tool, params)
        return cls(
            client_id=r.text("clientId", required=True),
            amount=r.number("amount", required=True, positive=True),
            due_date=r.iso_date("dueDate", required=True),
            description=r.text("description", default="Serviço de gestão de tráfego"),
        )


@dataclass(frozen=True, slots=True)
class ListPaymentsRequest:
    tool: ClassVar[str] = "listar_pagamentos"
    status: str = "pending"
    client_id: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "ListPaymentsRequest":
        r = _Reader(cls.tool, params)
        return cls(
            status=r.choice("status", ("pending", "paid", "overdue", "all"), default="pending"),
            client_id=r.text("clientId"),
        )


@dataclass(frozen=True, slots=True)
class MarkPaidRequest:
    tool: ClassVar[str] = "marcar_pago"
    payment_id: str
    paid_at: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "MarkPaidRequest":
        r = _Reader(cls.tool, params)
        return cls(payment_id=r.text("paymentId", required=True), paid_at=r.iso_date("paidAt"))


# --- messaging and reminders -----------------------------------------------


@dataclass(frozen=True, slots=True)
class SendWhatsAppRequest:
    tool: ClassVar[str] = "enviar_whatsapp"
    client_id: str
    message: str

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "SendWhatsAppRequest":
        r = _Reader(cls.tool, params)
        client_id = r.text("clientId")
        if not client_id:
            raise r.fail("Informe para qual cliente deseja enviar a mensagem.")
        message = r.text("message")
        if not message:
            raise r.fail("Informe o conteúdo da mensagem.")
        return cls(client_id=client_id, message=message)


MESSAGE_KINDS = (
    "lembrete_pagamento",
    "confirmacao_reuniao",
    "followup",
    "boas_vindas",
    "cobranca",
    "custom",
)


@dataclass(frozen=True, slots=True)
class GenerateMessageRequest:
    tool: ClassVar[str] = "gerar_mensagem"
    client_id: str
    tipo: str
    contexto: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "GenerateMessageRequest":
        r = _Reader(cls.tool, params)
        return cls(
            client_id=r.text("clientId", required=True),
            tipo=r.choice("tipo", MESSAGE_KINDS, default="custom"),
            contexto=r.text("contexto"),
        )


@dataclass(frozen=True, slots=True)
class CreateReminderRequest:
    tool: ClassVar[str] = "criar_lembrete"
    message: str
    date: str
    time: Optional[str] = None
    client_id: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "CreateReminderRequest":
        r = _Reader(cls.tool, params)
        return cls(
            message=r.text("message", required=True),
            date=r.iso_date("date", required=True),
            time=r.clock("time"),
            client_id=r.text("clientId"),
        )

    @property
    def remind_at(self) -> str:
        return f"{self.date}T{self.time or '09:00'}:00"


# --- batch -----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class OverdueChargesRequest:
    tool: ClassVar[str] = "cobrar_todos_vencidos"
    dias_minimo: int = 1
    dias_maximo: Optional[int] = None
    limite: int = 20
    template: str = "padrao"

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "OverdueChargesRequest":
        r = _Reader(cls.tool, params)
        return cls(
            dias_minimo=r.integer("diasMinimo", default=1, minimum=0),
            dias_maximo=r.integer("diasMaximo", minimum=0),
            limite=r.integer("limite", default=20, minimum=1),
            template=r.choice("templateMensagem", ("padrao", "leve", "firme"), default="padrao"),
        )


@dataclass(frozen=True, slots=True)
class MeetingConfirmationsRequest:
    tool: ClassVar[str] = "confirmar_reunioes_amanha"
    data: Optional[str] = None
    template: str = "casual"

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "MeetingConfirmationsRequest":
        r = _Reader(cls.tool, params)
        return cls(
            data=r.iso_date("data"),
            template=r.choice("templateMensagem", ("formal", "casual"), default="casual"),
        )


@dataclass(frozen=True, slots=True)
class MonthlyInvoicesRequest:
    tool: ClassVar[str] = "gerar_faturas_mes"
    mes: Optional[tuple[int, int]] = None
    dia_vencimento_padrao: int = 10
    apenas_ativos: bool = True

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "MonthlyInvoicesRequest":
        r = _Reader(cls.tool, params)
        due_day = r.integer("diaVencimentoPadrao", default=10, minimum=1)
        if due_day > 31:
            raise r.fail("O dia de vencimento deve estar entre 1 e 31.")
        return cls(
            mes=r.month("mes"),
            dia_vencimento_padrao=due_day,
            apenas_ativos=r.flag("apenasClientesAtivos", default=True),
        )


@dataclass(frozen=True, slots=True)
class FollowupRequest:
    tool: ClassVar[str] = "enviar_followup_lote"
    dias_minimo: int = 14
    dias_maximo: int = 60
    limite: int = 10
    template: str = "checkup"

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "FollowupRequest":
        r = _Reader(cls.tool, params)
        request = cls(
            dias_minimo=r.integer("diasMinimo", default=14, minimum=0),
            dias_maximo=r.integer("diasMaximo", default=60, minimum=0),
            limite=r.integer("limite", default=10, minimum=1),
            template=r.choice("templateMensagem", ("checkup", "novidades", "valor"), default="checkup"),
        )
        if request.dias_maximo < request.dias_minimo:
            raise r.fail("diasMaximo deve ser maior ou igual a diasMinimo.")
        return request


# --- scheduling and meeting follow-up --------------------------------------

WEEKDAYS = {"segunda": 0, "terca": 1, "quarta": 2, "quinta": 3, "sexta": 4, "sabado": 5, "domingo": 6}
MAX_OCCURRENCES = 24


@dataclass(frozen=True, slots=True)
class RecurringScheduleRequest:
    tool: ClassVar[str] = "agendar_recorrente"
    client_id: str
    tipo: str = "reuniao"
    frequencia: str = "quinzenal"
    dia_semana: Optional[int] = None
    dia_do_mes: Optional[int] = None
    horario: str = "14:00"
    titulo: Optional[str] = None
    quantidade: int = 4

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "RecurringScheduleRequest":
        r = _Reader(cls.tool, params)
        weekday = r.text("diaSemana")
        # "terça-feira" and "terca" name the same day
        folded = fold(weekday).removesuffix("-feira") if weekday else None
        if folded is not None and folded not in WEEKDAYS:
            raise r.fail(f"Valor inválido para 'diaSemana': use {', '.join(WEEKDAYS)}.")
        day_of_month = r.integer("diaDoMes", minimum=1)
        if day_of_month is not None and day_of_month > 31:
            raise r.fail("O dia do mês deve estar entre 1 e 31.")
        quantity = r.integer("quantidadeOcorrencias", default=4, minimum=1)
        if quantity > MAX_OCCURRENCES:
            raise r.fail(f"Posso agendar no máximo {MAX_OCCURRENCES} ocorrências de uma vez.")
        return cls(
            client_id=r.text("clientId", required=True),
            tipo=r.choice("tipo", ("reuniao", "tarefa", "lembrete"), default="reuniao"),
            frequencia=r.choice("frequencia", ("semanal", "quinzenal", "mensal"), default="quinzenal"),
            dia_semana=WEEKDAYS[folded] if folded is not None else None,
            dia_do_mes=day_of_month,
            horario=r.clock("horario") or "14:00",
            titulo=r.text("titulo"),
            quantidade=quantity,
        )


@dataclass(frozen=True, slots=True)
class PostMeetingRequest:
    tool: ClassVar[str] = "registrar_pos_reuniao"
    meeting_id: Optional[str] = None
    client_id: Optional[str] = None
    anotacoes: str = ""
    decisoes: Optional[str] = None
    proximos_passos: Optional[str] = None
    feedback: Optional[str] = None
    agendar_proxima: bool = False

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "PostMeetingRequest":
        r = _Reader(cls.tool, params)
        request = cls(
            meeting_id=r.text("meetingId"),
            client_id=r.text("clientId"),
            anotacoes=r.text("anotacoes", default=""),
            decisoes=r.text("decisoes"),
            proximos_passos=r.text("proximosPassos"),
            feedback=r.text("feedbackCliente"),
            agendar_proxima=r.flag("agendarProxima", default=False),
        )
        if not request.meeting_id and not request.client_id:
            raise r.fail("Informe a reunião ou o cliente para registrar.")
        return request
