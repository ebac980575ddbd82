"""
Default tool catalogue.

Tool and parameter names are the wire names the LLM sees, in Portuguese like
the prompt. ``ToolKind`` is the closed set the dispatcher routes on.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Optional

from action_bridge.registry import ToolDefinition, ToolRegistry
from action_bridge.types import ConfirmationType


class ToolKind(StrEnum):
    BUSCAR_CLIENTE = "buscar_cliente"
    LISTAR_CLIENTES = "listar_clientes"
    CRIAR_REUNIAO = "criar_reuniao"
    LISTAR_REUNIOES = "listar_reunioes"
    EXCLUIR_REUNIAO = "excluir_reuniao"
    ATUALIZAR_REUNIAO = "atualizar_reuniao"
    CRIAR_TAREFA = "criar_tarefa"
    LISTAR_TAREFAS = "listar_tarefas"
    CONCLUIR_TAREFA = "concluir_tarefa"
    CRIAR_COBRANCA = "criar_cobranca"
    LISTAR_PAGAMENTOS = "listar_pagamentos"
    MARCAR_PAGO = "marcar_pago"
    ENVIAR_WHATSAPP = "enviar_whatsapp"
    GERAR_MENSAGEM = "gerar_mensagem"
    CRIAR_LEMBRETE = "criar_lembrete"
    RESUMO_DIA = "resumo_dia"
    RESUMO_CLIENTE = "resumo_cliente"
    COBRAR_TODOS_VENCIDOS = "cobrar_todos_vencidos"
    CONFIRMAR_REUNIOES_AMANHA = "confirmar_reunioes_amanha"
    GERAR_FATURAS_MES = "gerar_faturas_mes"
    ENVIAR_FOLLOWUP_LOTE = "enviar_followup_lote"
    AGENDAR_RECORRENTE = "agendar_recorrente"
    REGISTRAR_POS_REUNIAO = "registrar_pos_reuniao"

    @classmethod
    def lookup(cls, name: str) -> Optional["ToolKind"]:
        try:
            return cls(name)
        except ValueError:
            return None

    @property
    def is_batch(self) -> bool:
        return self in BATCH_KINDS


BATCH_KINDS = frozenset(
    {
        ToolKind.COBRAR_TODOS_VENCIDOS,
        ToolKind.CONFIRMAR_REUNIOES_AMANHA,
        ToolKind.GERAR_FATURAS_MES,
        ToolKind.ENVIAR_FOLLOWUP_LOTE,
        ToolKind.AGENDAR_RECORRENTE,
        ToolKind.REGISTRAR_POS_REUNIAO,
    }
)


def _schema(required: tuple[str, ...] = (), **properties: dict[str, Any]) -> dict[str, Any]:
    return {"type": "object", "properties": properties, "required": list(required)}


def _str(description: str, enum: Optional[list[str]] = None) -> dict[str, Any]:
    prop: dict[str, Any] = {"type": "string", "description": description}
    if enum:
        prop["enum"] = enum
    return prop


def _num(description: str) -> dict[str, Any]:
    return {"type": "number", "description": description}


_CLIENT_ID = _str("ID do cliente (ou o nome, se o ID não for conhecido)")

DEFAULT_TOOLS: tuple[ToolDefinition, ...] = (
    # clientes
    ToolDefinition(
        ToolKind.BUSCAR_CLIENTE,
        "Busca clientes pelo nome, contato ou segmento e retorna ID, nome, contato, "
        "telefone, segmento e status.",
        _schema(("query",), query=_str('Nome, apelido ou característica do cliente (ex: "hamburgueria")')),
    ),
    ToolDefinition(
        ToolKind.LISTAR_CLIENTES,
        "Lista os clientes do usuário com contato, telefone, segmento, status e valor mensal.",
        _schema(
            status=_str("Filtrar por status do cliente", ["active", "inactive", "paused", "all"]),
            limit=_num("Número máximo de clientes a retornar"),
        ),
    ),
    # reuniões
    ToolDefinition(
        ToolKind.CRIAR_REUNIAO,
        "Agenda uma reunião com um cliente.",
        _schema(
            ("clientId", "date", "time"),
            clientId=_CLIENT_ID,
            date=_str("Data da reunião no formato YYYY-MM-DD"),
            time=_str("Horário da reunião no formato HH:mm"),
            type=_str("Tipo da reunião", ["online", "presencial"]),
            notes=_str("Observações opcionais"),
        ),
        requires_confirmation=True,
        confirmation_type=ConfirmationType.MEETING,
    ),
    ToolDefinition(
        ToolKind.LISTAR_REUNIOES,
        "Lista reuniões agendadas (agenda, compromissos).",
        _schema(
            periodo=_str("Período para filtrar reuniões", ["hoje", "amanha", "semana", "mes"]),
            clientId=_str("Filtrar por cliente específico"),
        ),
    ),
    ToolDefinition(
        ToolKind.EXCLUIR_REUNIAO,
        "Exclui/cancela uma reunião existente.",
        _schema(
            meetingId=_str("ID da reunião, se conhecido"),
            clientId=_str("ID do cliente, se meetingId não for informado"),
            date=_str("Data da reunião no formato YYYY-MM-DD, se meetingId não for informado"),
        ),
        requires_confirmation=True,
        confirmation_type=ConfirmationType.MEETING_DELETE,
    ),
    ToolDefinition(
        ToolKind.ATUALIZAR_REUNIAO,
        "Remarca ou altera uma reunião existente.",
        _schema(
            meetingId=_str("ID da reunião, se conhecido"),
            clientId=_str("ID do cliente, se meetingId não for informado"),
            currentDate=_str("Data atual da reunião (YYYY-MM-DD), se meetingId não for informado"),
            newDate=_str("Nova data no formato YYYY-MM-DD"),
            newTime=_str("Novo horário no formato HH:mm"),
            newType=_str("Novo tipo da reunião", ["online", "presencial"]),
            newNotes=_str("Novas observações"),
        ),
        requires_confirmation=True,
        confirmation_type=ConfirmationType.MEETING_UPDATE,
    ),
    # tarefas
    ToolDefinition(
        ToolKind.CRIAR_TAREFA,
        "Cria uma nova tarefa (to-do, pendência).",
        _schema(
            ("title",),
            title=_str("Título da tarefa"),
            description=_str("Descrição detalhada opcional"),
            clientId=_str("ID do cliente relacionado (opcional)"),
            dueDate=_str("Data limite no formato YYYY-MM-DD"),
            priority=_str("Prioridade da tarefa", ["low", "medium", "high", "urgent"]),
            category=_str(
                "Categoria da tarefa",
                ["optimization", "creative", "report", "meeting", "payment", "other"],
            ),
        ),
        requires_confirmation=True,
        confirmation_type=ConfirmationType.TASK,
    ),
    ToolDefinition(
        ToolKind.LISTAR_TAREFAS,
        "Lista tarefas e pendências.",
        _schema(
            status=_str("Filtrar por status", ["todo", "doing", "done", "all"]),
            clientId=_str("Filtrar por cliente"),
            priority=_str("Filtrar por prioridade", ["low", "medium", "high", "urgent"]),
            periodo=_str("Filtrar por período", ["hoje", "semana", "atrasadas", "todas"]),
        ),
    ),
    ToolDefinition(
        ToolKind.CONCLUIR_TAREFA,
        "Marca uma tarefa como concluída, pelo ID ou pelo título.",
        _schema(
            taskId=_str("ID da tarefa"),
            taskTitle=_str("Título da tarefa, quando o ID não for conhecido"),
        ),
    ),
    # pagamentos
    ToolDefinition(
        ToolKind.CRIAR_COBRANCA,
        "Cria uma nova cobrança para um cliente.",
        _schema(
            ("clientId", "amount", "dueDate"),
            clientId=_CLIENT_ID,
            amount=_num("Valor da cobrança em reais"),
            dueDate=_str("Data de vencimento no formato YYYY-MM-DD"),
            description=_str("Descrição da cobrança"),
        ),
        requires_confirmation=True,
        confirmation_type=ConfirmationType.PAYMENT,
    ),
    ToolDefinition(
        ToolKind.LISTAR_PAGAMENTOS,
        "Lista pagamentos pendentes, vencidos ou pagos.",
        _schema(
            status=_str("Filtrar por status", ["pending", "paid", "overdue", "all"]),
            clientId=_str("Filtrar por cliente"),
        ),
    ),
    ToolDefinition(
        ToolKind.MARCAR_PAGO,
        "Marca um pagamento como pago.",
        _schema(
            ("paymentId",),
            paymentId=_str("ID do pagamento"),
            paidAt=_str("Data do pagamento (YYYY-MM-DD), padrão hoje"),
        ),
        requires_confirmation=True,
        confirmation_type=ConfirmationType.GENERIC,
    ),
    # whatsapp
    ToolDefinition(
        ToolKind.ENVIAR_WHATSAPP,
        "Envia uma mensagem de WhatsApp para um cliente.",
        _schema(
            ("clientId", "message"),
            clientId=_CLIENT_ID,
            message=_str("Texto da mensagem"),
        ),
        requires_confirmation=True,
        confirmation_type=ConfirmationType.WHATSAPP,
    ),
    ToolDefinition(
        ToolKind.GERAR_MENSAGEM,
        "Gera o texto de uma mensagem para um cliente (cobrança, follow-up, boas-vindas...).",
        _schema(
            ("clientId", "tipo"),
            clientId=_CLIENT_ID,
            tipo=_str(
                "Tipo de mensagem",
                ["lembrete_pagamento", "confirmacao_reuniao", "followup", "boas_vindas", "cobranca", "custom"],
            ),
            contexto=_str("Texto livre para o tipo custom"),
        ),
    ),
    # lembretes
    ToolDefinition(
        ToolKind.CRIAR_LEMBRETE,
        "Cria um lembrete pessoal para uma data.",
        _schema(
            ("message", "date"),
            message=_str("Texto do lembrete"),
            date=_str("Data no formato YYYY-MM-DD"),
            time=_str("Horário opcional no formato HH:mm"),
            clientId=_str("Cliente relacionado (opcional)"),
        ),
        requires_confirmation=True,
        confirmation_type=ConfirmationType.REMINDER,
    ),
    # resumos
    ToolDefinition(
        ToolKind.RESUMO_DIA,
        'Resumo do dia: reuniões de hoje, tarefas vencendo e pagamentos atrasados. Use para "o que tenho hoje".',
        _schema(),
    ),
    ToolDefinition(
        ToolKind.RESUMO_CLIENTE,
        "Resumo completo de um cliente: reuniões, tarefas e valores em aberto.",
        _schema(("clientId",), clientId=_CLIENT_ID),
    ),
    # ações em lote
    ToolDefinition(
        ToolKind.COBRAR_TODOS_VENCIDOS,
        "Envia cobrança via WhatsApp para todos os clientes com pagamentos vencidos. "
        "Mostra a lista de clientes, valores e a mensagem antes de enviar.",
        _schema(
            diasMinimo=_num("Dias mínimos de atraso. Padrão: 1"),
            diasMaximo=_num("Dias máximos de atraso. Padrão: sem limite"),
            limite=_num("Quantidade máxima de clientes. Padrão: 20"),
            templateMensagem=_str("Tom da mensagem", ["padrao", "leve", "firme"]),
        ),
        requires_confirmation=True,
        confirmation_type=ConfirmationType.BATCH,
    ),
    ToolDefinition(
        ToolKind.CONFIRMAR_REUNIOES_AMANHA,
        "Envia mensagem de confirmação para todos os clientes com reunião no dia (padrão: amanhã).",
        _schema(
            data=_str("Data das reuniões (YYYY-MM-DD). Padrão: amanhã"),
            templateMensagem=_str("Tom da mensagem", ["formal", "casual"]),
        ),
        requires_confirmation=True,
        confirmation_type=ConfirmationType.BATCH,
    ),
    ToolDefinition(
        ToolKind.GERAR_FATURAS_MES,
        "Cria as cobranças mensais de todos os clientes com valor mensal, pulando quem já foi cobrado no mês.",
        _schema(
            mes=_str("Mês no formato YYYY-MM. Padrão: mês atual"),
            diaVencimentoPadrao=_num("Dia de vencimento para clientes sem dia definido. Padrão: 10"),
            apenasClientesAtivos={"type": "boolean", "description": "Somente clientes ativos. Padrão: true"},
        ),
        requires_confirmation=True,
        confirmation_type=ConfirmationType.BATCH,
    ),
    ToolDefinition(
        ToolKind.ENVIAR_FOLLOWUP_LOTE,
        "Envia follow-up via WhatsApp para clientes ativos sem contato recente.",
        _schema(
            diasMinimo=_num("Dias mínimos sem contato. Padrão: 14"),
            diasMaximo=_num("Dias máximos sem contato. Padrão: 60"),
            limite=_num("Quantidade máxima de clientes. Padrão: 10"),
            templateMensagem=_str("Tom da mensagem", ["checkup", "novidades", "valor"]),
        ),
        requires_confirmation=True,
        confirmation_type=ConfirmationType.BATCH,
    ),
    # agenda e pós-reunião
    ToolDefinition(
        ToolKind.AGENDAR_RECORRENTE,
        "Agenda reuniões, tarefas ou lembretes recorrentes para um cliente (semanal, quinzenal "
        "ou mensal). Mostra as próximas datas antes de criar.",
        _schema(
            ("clientId",),
            clientId=_CLIENT_ID,
            tipo=_str("Tipo de agendamento. Padrão: reuniao", ["reuniao", "tarefa", "lembrete"]),
            frequencia=_str("Frequência. Padrão: quinzenal", ["semanal", "quinzenal", "mensal"]),
            diaSemana=_str(
                "Dia da semana para recorrência semanal/quinzenal",
                ["segunda", "terca", "quarta", "quinta", "sexta"],
            ),
            diaDoMes=_num("Dia do mês para recorrência mensal"),
            horario=_str("Horário (HH:mm) das reuniões. Padrão: 14:00"),
            titulo=_str("Título das tarefas ou lembretes"),
            quantidadeOcorrencias=_num("Quantas ocorrências criar. Padrão: 4"),
        ),
        requires_confirmation=True,
        confirmation_type=ConfirmationType.BATCH,
    ),
    ToolDefinition(
        ToolKind.REGISTRAR_POS_REUNIAO,
        "Registra anotações, decisões e próximos passos de uma reunião que aconteceu, cria "
        "uma tarefa por próximo passo e, se pedido, agenda a próxima reunião.",
        _schema(
            meetingId=_str("ID da reunião, se conhecido"),
            clientId=_str("ID do cliente (ou o nome); usa a reunião mais recente dele"),
            anotacoes=_str("Anotações gerais da reunião"),
            decisoes=_str("Decisões tomadas, separadas por vírgula ou ponto e vírgula"),
            proximosPassos=_str("Próximos passos acordados, separados por vírgula ou ponto e vírgula"),
            feedbackCliente=_str("Como o cliente se mostrou (satisfeito, neutro, insatisfeito)"),
            agendarProxima={"type": "boolean", "description": "Agendar a próxima reunião em 14 dias. Padrão: false"},
        ),
        requires_confirmation=True,
        confirmation_type=ConfirmationType.BATCH,
    ),
)


def build_default_registry() -> ToolRegistry:
    return ToolRegistry(DEFAULT_TOOLS)
