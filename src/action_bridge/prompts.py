"""System prompt assembled from the business snapshot."""

from __future__ import annotations

from action_bridge.context import BusinessContext
from action_bridge.messages import format_brl, format_date_long, to_date

MAX_CLIENTS = 15
MAX_ROWS = 10


def _clients(context: BusinessContext) -> str:
    if not context.clients:
        return "Nenhum cliente cadastrado ainda."
    lines = []
    for c in context.clients[:MAX_CLIENTS]:
        contact = f" (contato: {c['contact_name']})" if c.get("contact_name") else ""
        phone = f" | Tel: {c['contact_phone']}" if c.get("contact_phone") else ""
        segment = f" - {c['segment']}" if c.get("segment") else ""
        lines.append(f"- ID: {c['id']} | {c.get('name', '')}{contact}{phone}{segment} [{c.get('status', '')}]")
    if len(context.clients) > MAX_CLIENTS:
        lines.append(f"... e mais {len(context.clients) - MAX_CLIENTS} clientes")
    return "\n".join(lines)


def _client_name(context: BusinessContext, client_id: str | None) -> str:
    client = context.client(client_id) if client_id else None
    return client.get("name", "Cliente") if client else "Cliente"


def _meetings(context: BusinessContext) -> str:
    upcoming = [m for m in context.meetings if to_date(m["date"]) >= context.today]
    if not upcoming:
        return "Nenhuma reunião agendada."
    return "\n".join(
        f"- {format_date_long(m['date'])} às {m.get('time', '')} com "
        f"{_client_name(context, m.get('client_id'))}"
        for m in upcoming[:MAX_ROWS]
    )


def _tasks(context: BusinessContext) -> str:
    pending = [t for t in context.tasks if t.get("status") != "done"]
    if not pending:
        return "Nenhuma tarefa pendente."
    lines = []
    for t in pending[:MAX_ROWS]:
        client = f" ({_client_name(context, t['client_id'])})" if t.get("client_id") else ""
        due = f" - vence {format_date_long(t['due_date'])}" if t.get("due_date") else ""
        priority = f" [{t['priority'].upper()}]" if t.get("priority") in ("high", "urgent") else ""
        lines.append(f"- ID: {t['id']} | {t.get('title', '')}{client}{due}{priority}")
    return "\n".join(lines)


def _payments(context: BusinessContext) -> str:
    pending = [p for p in context.payments if p.get("status") == "pending"]
    if not pending:
        return "Nenhum pagamento pendente."
    lines = []
    for p in pending[:MAX_ROWS]:
        overdue_days = (context.today - to_date(p["due_date"])).days
        overdue = f" [ATRASADO {overdue_days} dias]" if overdue_days > 0 else ""
        lines.append(
            f"- ID: {p['id']} | {_client_name(context, p.get('client_id'))}: "
            f"{format_brl(p.get('amount', 0))} vence {format_date_long(p['due_date'])}{overdue}"
        )
    return "\n".join(lines)


def build_system_prompt(context: BusinessContext) -> str:
    today = context.today
    return f"""Você é um assistente virtual para gestores de tráfego pago. Você ajuda {context.user_name} a gerenciar clientes, reuniões, tarefas e cobranças.

## CONTEXTO ATUAL
- Data: {format_date_long(today)}
- Hoje em ISO: {today.isoformat()}
- Total de clientes: {len(context.clients)} ({len(context.active_clients)} ativos)

## CLIENTES
{_clients(context)}

## PRÓXIMAS REUNIÕES
{_meetings(context)}

## TAREFAS PENDENTES
{_tasks(context)}

## PAGAMENTOS PENDENTES
{_payments(context)}

## REGRAS
- Use o ID do cliente da lista acima sempre que possível; se não souber o ID, passe o nome do cliente em clientId.
- Datas no formato YYYY-MM-DD e horários no formato HH:mm.
- Use no máximo uma ferramenta por resposta.
- Ações que alteram dados serão confirmadas pelo usuário antes de executar; não peça confirmação em texto.
- Responda em português do Brasil, de forma direta e amigável."""
