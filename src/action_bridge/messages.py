"""
User-facing text: error templates, action prompts, success lines and pt-BR formatting.

Everything the end user reads comes from here. Raw provider or storage text
never does.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Final, Mapping

from action_bridge.types import (
    BatchActionResult,
    ConfirmationRecord,
    ConfirmationType,
    ErrorKind,
    ToolResult,
)

PROVIDER_EXHAUSTED_MESSAGE: Final = (
    "Desculpe, estou com dificuldades para processar sua mensagem agora. "
    "Tente novamente em alguns instantes."
)

ERROR_MESSAGES: Final[dict[ErrorKind, str]] = {
    ErrorKind.TOOL_NOT_FOUND: "Não conheço essa ação. Pode reformular o pedido?",
    ErrorKind.INVALID_PARAMETERS: "Faltaram informações para executar essa ação.",
    ErrorKind.NOT_FOUND: "Não encontrei o registro solicitado. Verifique os dados e tente novamente.",
    ErrorKind.PERMISSION_DENIED: "Você não tem permissão para acessar esses dados.",
    ErrorKind.CONFLICT: "Este registro já existe no sistema.",
    ErrorKind.TIMEOUT: "Problema de conexão. Por favor, tente novamente.",
    ErrorKind.UNKNOWN: "Ocorreu um erro ao processar sua solicitação. Tente novamente.",
}

ACTION_MESSAGES: Final[dict[ConfirmationType, str]] = {
    ConfirmationType.MEETING: "Vou agendar essa reunião pra você. Confirme os detalhes abaixo:",
    ConfirmationType.MEETING_DELETE: "Você quer excluir essa reunião? Confirme abaixo:",
    ConfirmationType.MEETING_UPDATE: "Vou remarcar essa reunião. Confirme as alterações:",
    ConfirmationType.TASK: "Beleza! Vou criar essa tarefa. Confere se está tudo certo:",
    ConfirmationType.WHATSAPP: "Preparei a mensagem. Dá uma olhada antes de enviar:",
    ConfirmationType.PAYMENT: "Vou registrar essa cobrança. Confirma os dados:",
    ConfirmationType.REMINDER: "Vou criar esse lembrete pra você. Confere:",
    ConfirmationType.CLIENT_SELECT: "Encontrei mais de um cliente com esse nome. Qual deles?",
    ConfirmationType.BATCH: "Confira a lista abaixo antes de eu executar a ação em lote:",
}

CANCELLED_MESSAGE: Final = "Tudo bem, ação cancelada."
DEFAULT_SUCCESS_MESSAGE: Final = "Ação executada com sucesso!"

_WEEKDAYS: Final = (
    "segunda-feira",
    "terça-feira",
    "quarta-feira",
    "quinta-feira",
    "sexta-feira",
    "sábado",
    "domingo",
)

_MONTHS: Final = (
    "janeiro",
    "fevereiro",
    "março",
    "abril",
    "maio",
    "junho",
    "julho",
    "agosto",
    "setembro",
    "outubro",
    "novembro",
    "dezembro",
)


# --- formatting ------------------------------------------------------------


def format_amount(value: float | int | str) -> str:
    """``1234.5`` -> ``"1.234,50"``"""
    text = f"{float(value):,.2f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def format_brl(value: float | int | str) -> str:
    return f"R$ {format_amount(value)}"


def to_date(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def format_date(value: date | datetime | str) -> str:
    """ISO date or ``date`` -> ``dd/mm/yyyy``."""
    return to_date(value).strftime("%d/%m/%Y")


def format_date_long(value: date | datetime | str) -> str:
    """``"2025-11-18"`` -> ``"terça-feira, 18 de novembro"``"""
    d = to_date(value)
    return f"{_WEEKDAYS[d.weekday()]}, {d.day} de {_MONTHS[d.month - 1]}"


def month_label(year: int, month: int) -> str:
    return f"{_MONTHS[month - 1]} de {year}"


# --- messages --------------------------------------------------------------


def error_message(kind: ErrorKind) -> str:
    return ERROR_MESSAGES.get(kind, ERROR_MESSAGES[ErrorKind.UNKNOWN])


def action_message(record: ConfirmationRecord) -> str:
    """Text shown next to a pending confirmation."""
    if record.type is ConfirmationType.BATCH:
        title = record.payload.get("title")
        description = record.payload.get("description")
        if title and description:
            return f"{title}: {description}. Confirma?"
    try:
        return ACTION_MESSAGES[record.type]
    except KeyError:
        return f'Confirme a ação "{record.tool_to_execute.name}" antes de executar:'


def _get(data: Mapping[str, Any] | None, path: str) -> Any:
    current: Any = data
    for key in path.split("."):
        if not isinstance(current, Mapping) or key not in current:
            return None
        current = current[key]
    return current


def success_message(tool_name: str, data: Mapping[str, Any] | None) -> str:
    """Friendly confirmation line after a deferred tool ran."""
    data = data or {}
    match tool_name:
        case "criar_reuniao":
            when = _get(data, "meeting.date")
            at = _get(data, "meeting.time")
            client = data.get("clientName") or "o cliente"
            return (
                f"Reunião agendada com {client} para "
                f"{format_date(when) if when else 'a data'} às {at or 'o horário'}."
            )
        case "criar_tarefa":
            title = _get(data, "task.title") or data.get("title") or ""
            return f'Tarefa "{title}" criada com sucesso!'
        case "criar_cobranca":
            amount = _get(data, "payment.amount") or 0
            client = data.get("clientName") or "o cliente"
            return f"Cobrança de {format_brl(amount)} criada para {client}."
        case "marcar_pago":
            client = data.get("clientName") or "cliente"
            return f"Pagamento de {format_brl(data.get('amount') or 0)} de {client} marcado como pago."
        case "enviar_whatsapp" | "criar_lembrete":
            return data.get("message_result") or data.get("message") or DEFAULT_SUCCESS_MESSAGE
        case _:
            return data.get("message") or DEFAULT_SUCCESS_MESSAGE


def batch_tally(result: BatchActionResult) -> str:
    lines = [result.summary.strip()] if result.summary else []
    lines.append(f"{result.success_count} de {result.total_processed} concluído(s).")
    failed = [item for item in result.items if not item.success]
    for item in failed:
        lines.append(f"- {item.target_name}: {item.error or 'falha'}")
    return "\n".join(lines)


def result_message(tool_name: str, result: ToolResult, *, deferred: bool = False) -> str:
    """Summarise a ToolResult for the chat transcript."""
    batch = result.data.get("batch") if result.data else None
    if isinstance(batch, BatchActionResult):
        return batch_tally(batch)
    if not result.success:
        return result.message
    if deferred:
        return success_message(tool_name, result.data)
    return result.message or DEFAULT_SUCCESS_MESSAGE
