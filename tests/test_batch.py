"""Tests for batch preparation and partial-failure execution."""

import asyncio
from datetime import date

import pytest

from action_bridge.errors import EmptyBatchError, StorageError
from action_bridge.messages import ERROR_MESSAGES
from action_bridge.tools.batch import (
    NO_WHATSAPP,
    BatchActionsExecutor,
    occurrence_dates,
    render,
    satisfaction,
    split_items,
)
from action_bridge.types import ConfirmationStatus, ConfirmationType, ErrorKind

from conftest import ACTOR, TODAY, FakeGateway, FakeStore


def executor(store, gateway=None):
    return BatchActionsExecutor(store, gateway, ACTOR, TODAY)


def seed_overdue(store, total, with_phone, amount=100.0):
    for i in range(total):
        phone = {"contact_phone": f"(11) 90000-{i:04d}"} if i < with_phone else {}
        store.add_client(f"c{i}", f"Cliente {i}", contact_name=f"Contato {i}", **phone)
        store.add_payment(f"p{i}", f"c{i}", amount, "2025-11-01")


class TestRender:
    """Test message template rendering."""

    def test_every_occurrence_is_replaced(self):
        """Test a placeholder is replaced everywhere it appears."""
        text = render("{nome}, {nome}! R$ {valor}", {"nome": "Ana", "valor": "10,00"})
        assert text == "Ana, Ana! R$ 10,00"

    def test_unknown_placeholder_is_kept(self):
        """Test unknown placeholders are left untouched."""
        assert render("Oi {nome} {outro}", {"nome": "Ana"}) == "Oi Ana {outro}"


class TestOverdueCharges:
    """Test cobrar_todos_vencidos preparation and execution."""

    def test_contact_filter_runs_before_limit(self, store):
        """Test clients without a phone are dropped before the limit applies."""
        seed_overdue(store, total=25, with_phone=18)

        record = asyncio.run(executor(store).prepare_overdue_charges({"limite": 20}))

        assert record.type is ConfirmationType.BATCH
        assert record.status is ConfirmationStatus.PENDING
        assert len(record.payload["targets"]) == 18
        assert record.payload["totalClientes"] == 18
        assert record.payload["totalAmount"] == pytest.approx(1800.0)
        assert all(t["phone"] for t in record.payload["targets"])

    def test_limit_applies_to_reachable_targets(self, store):
        """Test the limit caps the reachable targets."""
        seed_overdue(store, total=25, with_phone=18)

        record = asyncio.run(executor(store).prepare_overdue_charges({"limite": 10}))

        assert record.payload["totalClientes"] == 10

    def test_preview_is_carried_by_the_deferred_call(self, store):
        """Test the deferred call carries the approved preview."""
        seed_overdue(store, total=2, with_phone=2)

        record = asyncio.run(executor(store).prepare_overdue_charges({"templateMensagem": "firme"}))

        call = record.tool_to_execute
        assert call.name == "cobrar_todos_vencidos"
        assert call.parameters["_preview"] is record.payload
        assert call.parameters["templateMensagem"] == "firme"
        message = record.payload["targets"][0]["message"]
        assert "Contato 0" in message
        assert "R$ 100,00" in message
        assert "01/11/2025" in message
        assert "(17 dias)" in message

    def test_no_side_effect_on_prepare(self, store):
        """Test preparing a batch sends and writes nothing."""
        seed_overdue(store, total=3, with_phone=3)
        gateway = FakeGateway()

        asyncio.run(executor(store, gateway).prepare_overdue_charges({}))

        assert gateway.calls == 0
        assert store.writes == []

    def test_empty_population_raises(self, store):
        """Test no overdue payment leaves nothing to charge."""
        with pytest.raises(EmptyBatchError, match="Nenhum pagamento vencido"):
            asyncio.run(executor(store).prepare_overdue_charges({}))

    def test_population_without_phones_raises(self, store):
        """Test overdue clients without a phone leave nothing to charge."""
        seed_overdue(store, total=3, with_phone=0)

        with pytest.raises(EmptyBatchError, match="telefone"):
            asyncio.run(executor(store).prepare_overdue_charges({}))

    def test_failure_on_one_target_does_not_stop_the_rest(self, store):
        """Test one failed send is reported while the rest go out."""
        seed_overdue(store, total=5, with_phone=5)
        gateway = FakeGateway(fail_on=[3])
        ex = executor(store, gateway)

        record = asyncio.run(ex.prepare_overdue_charges({}))
        result = asyncio.run(ex.execute_overdue_charges(record.payload))

        assert result.total_processed == 5
        assert result.success_count == 4
        assert result.failed_count == 1
        assert [item.success for item in result.items] == [True, True, False, True, True]
        assert result.items[2].target_id == "c2"
        assert result.success is True
        assert result.all_succeeded is False
        assert len(gateway.sent) == 4
        assert gateway.sent[0][0] == "11900000000"

    def test_item_error_hides_collaborator_text(self, store):
        """Test a failed item carries the user-facing error only."""
        seed_overdue(store, total=2, with_phone=2)
        gateway = FakeGateway(fail_on=[1])
        ex = executor(store, gateway)

        record = asyncio.run(ex.prepare_overdue_charges({}))
        result = asyncio.run(ex.execute_overdue_charges(record.payload))

        error = result.items[0].error
        assert error == ERROR_MESSAGES[ErrorKind.UNKNOWN]
        assert "502" not in error
        assert "abc123" not in error

    def test_missing_gateway_fails_each_target(self, store):
        """Test every target fails on its own without a gateway."""
        seed_overdue(store, total=2, with_phone=2)
        ex = executor(store, gateway=None)

        record = asyncio.run(ex.prepare_overdue_charges({}))
        result = asyncio.run(ex.execute_overdue_charges(record.payload))

        assert result.success is False
        assert [item.error for item in result.items] == [NO_WHATSAPP, NO_WHATSAPP]
        assert "0 de 2" in result.summary

    def test_as_dict_uses_wire_keys(self, store):
        """Test the batch result serializes with camelCase keys."""
        seed_overdue(store, total=2, with_phone=2)
        ex = executor(store, FakeGateway(fail_on=[2]))

        record = asyncio.run(ex.prepare_overdue_charges({}))
        data = asyncio.run(ex.execute_overdue_charges(record.payload)).as_dict()

        assert data["totalProcessed"] == 2
        assert data["successCount"] == 1
        assert data["failedCount"] == 1
        assert data["results"][1]["success"] is False


class TestMeetingConfirmations:
    """Test confirmar_reunioes_amanha preparation."""

    def test_only_tomorrows_meetings_with_phone(self, store):
        """Test only tomorrow's reachable meetings are targeted."""
        store.add_client("c1", "Alfa", contact_name="Ana", contact_phone="11 91111-1111")
        store.add_client("c2", "Beta")
        store.add_meeting("m1", "c1", "2025-11-19", time="14:00")
        store.add_meeting("m2", "c2", "2025-11-19", time="09:00")
        store.add_meeting("m3", "c1", "2025-11-20")

        record = asyncio.run(executor(store).prepare_meeting_confirmations({}))

        targets = record.payload["targets"]
        assert [t["meetingId"] for t in targets] == ["m1"]
        assert "14:00" in targets[0]["message"]
        assert "Ana" in targets[0]["message"]

    def test_no_meetings_raises(self, store):
        """Test no meeting tomorrow leaves nothing to confirm."""
        with pytest.raises(EmptyBatchError, match="19/11/2025"):
            asyncio.run(executor(store).prepare_meeting_confirmations({}))


class TestMonthlyInvoices:
    """Test gerar_faturas_mes preparation."""

    def test_due_day_is_clamped_and_billed_clients_are_skipped(self, store):
        """Test the due day fits the month and billed clients are skipped."""
        store.add_client("c1", "Alfa", monthly_value=1500, due_day=31)
        store.add_client("c2", "Beta", monthly_value=800, due_day=5)
        store.add_client("c3", "Gama", monthly_value=0)
        store.add_payment("old", "c2", 800, "2026-02-05")
        ex = executor(store)

        record = asyncio.run(ex.prepare_monthly_invoices({"mes": "2026-02"}))

        by_client = {t["clientId"]: t for t in record.payload["targets"]}
        assert set(by_client) == {"c1", "c2"}
        assert by_client["c1"]["dueDate"] == "2026-02-28"
        assert by_client["c2"]["alreadyBilled"] is True
        assert record.payload["totalClientes"] == 1
        assert record.payload["totalAmount"] == pytest.approx(1500.0)

        result = asyncio.run(ex.execute_monthly_invoices(record.payload))

        assert result.total_processed == 1
        created = [data for op, data in store.writes if op == "create_payment"]
        assert len(created) == 1
        assert created[0]["client_id"] == "c1"
        assert created[0]["due_date"] == "2026-02-28"

    def test_everyone_billed_raises(self, store):
        """Test a month already billed leaves nothing to invoice."""
        store.add_client("c1", "Alfa", monthly_value=1500, due_day=10)
        store.add_payment("old", "c1", 1500, "2025-11-10")

        with pytest.raises(EmptyBatchError, match="já possuem cobrança"):
            asyncio.run(executor(store).prepare_monthly_invoices({}))


class TestFollowups:
    """Test enviar_followup_lote preparation and execution."""

    def test_window_and_never_contacted(self, store):
        """Test the contact window and never-contacted clients."""
        store.add_client("recent", "Recente", contact_phone="11911110001", last_contact="2025-11-13")
        store.add_client("due", "Na janela", contact_phone="11911110002", last_contact="2025-10-20")
        store.add_client("stale", "Antigo", contact_phone="11911110003", last_contact="2025-06-01")
        store.add_client("never", "Nunca", contact_phone="11911110004")

        record = asyncio.run(executor(store).prepare_followups({}))

        ids = [t["clientId"] for t in record.payload["targets"]]
        assert ids == ["due", "never"]
        assert record.payload["targets"][1]["daysWithoutContact"] == 999

    def test_execution_updates_last_contact(self, store):
        """Test a delivered follow-up updates the last contact."""
        store.add_client("due", "Na janela", contact_phone="11911110002", last_contact="2025-10-20")
        gateway = FakeGateway()
        ex = executor(store, gateway)

        record = asyncio.run(ex.prepare_followups({}))
        result = asyncio.run(ex.execute_followups(record.payload))

        assert result.success_count == 1
        assert store.clients["due"]["last_contact"] == "2025-11-18"
        assert store.clients["due"]["last_contact_type"] == "whatsapp"
        assert result.items[0].details["contactUpdated"] is True


class FlakyStore(FakeStore):
    """Refuses to create anything due on the dates in ``fail_on``."""

    def __init__(self, fail_on):
        super().__init__()
        self.fail_on = set(fail_on)

    def _refuse(self, day):
        if day in self.fail_on:
            raise StorageError('duplicate key value violates unique constraint "meetings_pkey"')

    async def create_meeting(self, actor_id, data):
        self._refuse(data["date"])
        return await super().create_meeting(actor_id, data)

    async def create_task(self, actor_id, data):
        self._refuse(data["due_date"])
        return await super().create_task(actor_id, data)


class TestOccurrenceDates:
    """Test recurring series date arithmetic."""

    def test_default_series_starts_next_monday(self):
        """Test a fortnightly series without a weekday starts on the coming Monday."""
        dates = occurrence_dates(TODAY, "quinzenal", 4)

        assert [d.isoformat() for d in dates] == ["2025-11-24", "2025-12-08", "2025-12-22", "2026-01-05"]

    def test_weekly_on_today_includes_today(self):
        """Test a weekly series on today's weekday starts today."""
        dates = occurrence_dates(TODAY, "semanal", 3, weekday=1)

        assert dates == [date(2025, 11, 18), date(2025, 11, 25), date(2025, 12, 2)]

    def test_monthly_day_is_clamped_to_short_months(self):
        """Test day 31 falls back to the last day of shorter months and recovers."""
        dates = occurrence_dates(TODAY, "mensal", 3, day_of_month=31)

        assert dates == [date(2025, 11, 30), date(2025, 12, 31), date(2026, 1, 31)]

    def test_monthly_day_already_past_starts_next_month(self):
        """Test a day of month earlier than today moves the series to next month."""
        dates = occurrence_dates(TODAY, "mensal", 2, day_of_month=10)

        assert dates == [date(2025, 12, 10), date(2026, 1, 10)]


class TestRecurringSchedule:
    """Test agendar_recorrente preparation and execution."""

    @pytest.fixture
    def padaria(self, store):
        store.add_client("c1", "Padaria Central", contact_name="Ana")
        return store

    def test_prepare_lists_each_occurrence_without_writing(self, padaria):
        """Test the preview lists every occurrence and writes nothing."""
        params = {"clientId": "c1", "frequencia": "semanal", "diaSemana": "terça", "horario": "09:30"}

        record = asyncio.run(executor(padaria).prepare_recurring(params))

        payload = record.payload
        assert record.type is ConfirmationType.BATCH
        assert payload["description"] == "4 reunião(ões) semanais para Padaria Central"
        assert [t["date"] for t in payload["targets"]] == [
            "2025-11-18",
            "2025-11-25",
            "2025-12-02",
            "2025-12-09",
        ]
        assert payload["targets"][0]["targetName"] == "terça-feira, 18 de novembro"
        assert all(t["time"] == "09:30" for t in payload["targets"])
        assert payload["dataInicio"] == "2025-11-18"
        assert padaria.writes == []

    def test_unknown_client_raises(self, store):
        """Test an unknown client leaves nothing to schedule."""
        with pytest.raises(EmptyBatchError, match="Cliente não encontrado"):
            asyncio.run(executor(store).prepare_recurring({"clientId": "c9"}))

    def test_tasks_are_created_with_title(self, padaria):
        """Test a task series creates one titled task per occurrence."""
        run = executor(padaria)
        params = {
            "clientId": "c1",
            "tipo": "tarefa",
            "frequencia": "mensal",
            "diaDoMes": 5,
            "titulo": "Relatório mensal",
            "quantidadeOcorrencias": 2,
        }
        record = asyncio.run(run.prepare_recurring(params))

        result = asyncio.run(run.execute_recurring(record.payload))

        assert result.success_count == 2
        assert [(d["title"], d["due_date"]) for op, d in padaria.writes] == [
            ("Relatório mensal", "2025-12-05"),
            ("Relatório mensal", "2026-01-05"),
        ]
        assert result.summary == "2 de 2 tarefa(s) criado(s) para Padaria Central."

    def test_reminders_fire_in_the_morning(self, padaria):
        """Test a reminder series stores a morning reminder per occurrence."""
        run = executor(padaria)
        params = {"clientId": "c1", "tipo": "lembrete", "quantidadeOcorrencias": 1}
        record = asyncio.run(run.prepare_recurring(params))

        asyncio.run(run.execute_recurring(record.payload))

        assert padaria.reminders[0]["remind_at"] == "2025-11-24T09:00:00"
        assert padaria.reminders[0]["message"] == "Lembrete quinzenal"

    def test_one_failed_occurrence_does_not_stop_the_rest(self):
        """Test a refused occurrence is reported while the others are created."""
        store = FlakyStore(fail_on={"2025-12-08"})
        store.add_client("c1", "Padaria Central")
        run = executor(store)
        record = asyncio.run(run.prepare_recurring({"clientId": "c1", "quantidadeOcorrencias": 3}))

        result = asyncio.run(run.execute_recurring(record.payload))

        assert [item.success for item in result.items] == [True, False, True]
        assert result.items[1].target_id == "2025-12-08"
        assert result.items[1].error == ERROR_MESSAGES[ErrorKind.CONFLICT]
        assert len(store.writes) == 2
        assert result.summary == "2 de 3 reunião(ões) criado(s) para Padaria Central. 1 falha(s)."


class TestPostMeeting:
    """Test registrar_pos_reuniao preparation and execution."""

    @pytest.fixture
    def held(self, store):
        store.add_client("c1", "Padaria Central", contact_name="Ana")
        store.add_meeting("m-old", "c1", "2025-11-04", "09:00")
        store.add_meeting("m-last", "c1", "2025-11-17", "16:00")
        store.add_meeting("m-next", "c1", "2025-11-25", "10:00")
        return store

    params = {
        "clientId": "c1",
        "anotacoes": "Cliente quer ampliar o contrato",
        "decisoes": "Renovar por 12 meses; Incluir entregas",
        "proximosPassos": "Enviar proposta\nAgendar visita",
        "feedbackCliente": "Muito satisfeito com o atendimento",
        "agendarProxima": True,
    }

    def test_prepare_uses_latest_past_meeting(self, held):
        """Test the client's most recent held meeting is the one recorded."""
        record = asyncio.run(executor(held).prepare_post_meeting(self.params))

        payload = record.payload
        assert payload["meetingId"] == "m-last"
        assert payload["dataReuniao"] == "2025-11-17"
        assert payload["resumo"] == "2 decisões, 2 próximo(s) passo(s)"
        assert payload["feedbackCliente"]["satisfacao"] == "muito_satisfeito"
        assert [s["prazo"] for s in payload["proximosPassos"]] == ["2025-11-21", "2025-11-25"]
        assert payload["proximaReuniao"] == {
            "data": "2025-12-02",
            "horario": "16:00",
            "pauta": "Acompanhamento",
        }
        assert [t["action"] for t in payload["targets"]] == ["meeting", "task", "task", "next_meeting"]
        assert held.writes == []

    def test_missing_meeting_raises(self, store):
        """Test a client without held meetings leaves nothing to record."""
        store.add_client("c1", "Padaria Central")

        with pytest.raises(EmptyBatchError, match="Reunião não encontrada"):
            asyncio.run(executor(store).prepare_post_meeting({"clientId": "c1"}))

    def test_execute_records_meeting_tasks_and_next_meeting(self, held):
        """Test execution closes the meeting, creates the tasks and books the follow-up."""
        run = executor(held)
        record = asyncio.run(run.prepare_post_meeting(self.params))

        result = asyncio.run(run.execute_post_meeting(record.payload))

        assert result.success_count == 4
        assert held.meetings["m-last"]["status"] == "completed"
        assert held.meetings["m-last"]["notes"] == "Cliente quer ampliar o contrato"
        assert held.clients["c1"]["last_contact"] == "2025-11-17"
        tasks = [data for op, data in held.writes if op == "create_task"]
        assert [(t["title"], t["priority"]) for t in tasks] == [
            ("Enviar proposta", "high"),
            ("Agendar visita", "medium"),
        ]
        assert tasks[0]["description"] == "Definido na reunião de 17/11/2025"
        assert result.summary == (
            "Reunião com Padaria Central registrada. 2 tarefa(s) criada(s). Próxima reunião agendada."
        )

    def test_failed_task_is_reported_alone(self):
        """Test one refused task leaves the meeting record and other tasks in place."""
        store = FlakyStore(fail_on={"2025-11-21"})
        store.add_client("c1", "Padaria Central")
        store.add_meeting("m1", "c1", "2025-11-17")
        run = executor(store)
        record = asyncio.run(
            run.prepare_post_meeting({"meetingId": "m1", "proximosPassos": "Enviar proposta, Agendar visita"})
        )

        result = asyncio.run(run.execute_post_meeting(record.payload))

        assert [item.success for item in result.items] == [True, False, True]
        assert result.items[1].target_id == "m1:passo-1"
        assert result.summary == "Reunião com Padaria Central registrada. 1 tarefa(s) criada(s). 1 falha(s)."


class TestPostMeetingHelpers:
    """Test free-text helpers for post-meeting records."""

    @pytest.mark.parametrize(
        "feedback, expected",
        [
            ("Ficou insatisfeito com o prazo", "insatisfeito"),
            ("Teve um problema na entrega", "insatisfeito"),
            ("Ótimo atendimento", "muito_satisfeito"),
            ("Está satisfeito", "satisfeito"),
            ("Sem comentários", "neutro"),
        ],
    )
    def test_satisfaction(self, feedback, expected):
        """Test feedback text is bucketed by its strongest cue."""
        assert satisfaction(feedback) == expected

    def test_split_items(self):
        """Test items split on commas, semicolons and newlines, dropping blanks."""
        assert split_items("a, b;c\n\n d ;") == ["a", "b", "c", "d"]
        assert split_items(None) == []
