"""Tests for tool dispatch and error classification."""

import asyncio

import pytest

from action_bridge.dispatcher import ToolDispatcher, classify_tool_error
from action_bridge.errors import MessagingError, StorageError
from action_bridge.messages import ERROR_MESSAGES
from action_bridge.tools import HANDLERS, ToolKind
from action_bridge.types import ErrorKind, ToolCall, ToolResult

from conftest import ACTOR, TODAY, FakeGateway, SlowStore


def run(dispatcher, name, **params):
    return asyncio.run(dispatcher.execute_tool(ToolCall.new(name, params), ACTOR))


class TestRouting:
    """Test tool routing functionality."""

    def test_unknown_tool(self, dispatcher):
        """Test an unknown tool name is not found."""
        result = run(dispatcher, "apagar_tudo")

        assert not result.success
        assert result.error.kind is ErrorKind.TOOL_NOT_FOUND
        assert result.message == ERROR_MESSAGES[ErrorKind.TOOL_NOT_FOUND]

    def test_invalid_parameters(self, dispatcher, store):
        """Test invalid parameters are reported as such."""
        store.add_client("c1", "Alfa")

        result = run(dispatcher, "criar_reuniao", clientId="c1", time="10:00")

        assert result.error.kind is ErrorKind.INVALID_PARAMETERS
        assert "date" in result.message

    def test_bad_date_format(self, dispatcher, store):
        """Test a malformed date is refused."""
        store.add_client("c1", "Alfa")

        result = run(dispatcher, "criar_reuniao", clientId="c1", date="20/11/2025", time="10:00")

        assert result.error.kind is ErrorKind.INVALID_PARAMETERS
        assert "AAAA-MM-DD" in result.message

    def test_read_only_tool(self, dispatcher, store):
        """Test a read-only tool returns its data."""
        store.add_client("c1", "Alfa")
        store.add_client("c2", "Beta", status="inactive")

        result = run(dispatcher, "listar_clientes", status="active")

        assert result.success
        assert [c["id"] for c in result.data["clients"]] == ["c1"]

    def test_missing_client_is_not_found(self, dispatcher):
        """Test an unknown client id is not found."""
        result = run(dispatcher, "criar_reuniao", clientId="nope", date="2025-11-20", time="10:00")

        assert result.error.kind is ErrorKind.NOT_FOUND

    def test_every_tool_needs_a_handler(self, store):
        """Test a routing table missing a tool is refused."""
        handlers = {k: v for k, v in HANDLERS.items() if k is not ToolKind.RESUMO_DIA}

        with pytest.raises(ValueError, match="resumo_dia"):
            ToolDispatcher(store, handlers=handlers)


class TestCollaboratorFailures:
    """Test collaborator failure mapping."""

    def test_duplicate_key_is_conflict_without_raw_text(self, dispatcher, store):
        """Test a duplicate key is a conflict without the raw text."""
        store.add_client("c1", "Alfa")
        store.fail_with = StorageError(
            'duplicate key value violates unique constraint "payments_pkey"', code="23505"
        )

        result = run(dispatcher, "criar_cobranca", clientId="c1", amount=100, dueDate="2025-12-01")

        assert result.error.kind is ErrorKind.CONFLICT
        assert result.message == ERROR_MESSAGES[ErrorKind.CONFLICT]
        assert "payments_pkey" not in result.message

    def test_timeout_error(self, dispatcher, store):
        """Test a collaborator timeout is classified."""
        store.fail_with = TimeoutError()

        result = run(dispatcher, "listar_clientes")

        assert result.error.kind is ErrorKind.TIMEOUT

    def test_permission_error(self, dispatcher, store):
        """Test a permission failure is classified."""
        store.fail_with = StorageError("new row violates row-level security policy", code="42501")

        result = run(dispatcher, "listar_clientes")

        assert result.error.kind is ErrorKind.PERMISSION_DENIED

    def test_slow_handler_is_cut_off(self, store):
        """Test a slow handler is cut off by the call timeout."""
        async def slow(ctx, params):
            await asyncio.sleep(1)
            return ToolResult.ok(message="tarde demais")

        handlers = {**HANDLERS, ToolKind.LISTAR_CLIENTES: slow}
        dispatcher = ToolDispatcher(store, handlers=handlers, call_timeout=0.05)

        result = run(dispatcher, "listar_clientes")

        assert result.error.kind is ErrorKind.TIMEOUT
        assert result.message == ERROR_MESSAGES[ErrorKind.TIMEOUT]

    def test_slow_store_is_cut_off_before_a_direct_batch(self, store, gateway):
        """Test a slow store is cut off while a direct batch resolves its targets."""
        store.add_client("c1", "Alfa", contact_phone="11900000001")
        store.add_payment("p1", "c1", 200.0, "2025-11-01")
        slow = SlowStore(store, delay=1.0)
        dispatcher = ToolDispatcher(slow, gateway, call_timeout=0.05, today=lambda: TODAY)

        result = run(dispatcher, "cobrar_todos_vencidos")

        assert result.error.kind is ErrorKind.TIMEOUT
        assert gateway.calls == 0

    def test_empty_batch_is_not_found(self, dispatcher):
        """Test an empty batch comes back as not found."""
        result = run(dispatcher, "cobrar_todos_vencidos")

        assert result.error.kind is ErrorKind.NOT_FOUND
        assert "Nenhum pagamento vencido" in result.message


class TestWhatsApp:
    """Test enviar_whatsapp functionality."""

    def test_gateway_send(self, dispatcher, store, gateway):
        """Test a message goes out through the gateway."""
        store.add_client("c1", "Alfa", contact_name="Ana", contact_phone="(11) 91234-5678")

        result = run(dispatcher, "enviar_whatsapp", clientId="c1", message="Olá!")

        assert result.success
        assert result.data["sentVia"] == "gateway"
        assert gateway.sent == [("11912345678", "Olá!")]

    def test_without_gateway_returns_link(self, store):
        """Test a wa.me link is returned without a gateway."""
        store.add_client("c1", "Alfa", contact_name="Ana", contact_phone="(11) 91234-5678")
        dispatcher = ToolDispatcher(store, None, today=lambda: TODAY)

        result = run(dispatcher, "enviar_whatsapp", clientId="c1", message="Olá, tudo bem?")

        assert result.success
        assert result.data["sentVia"] == "link"
        url = result.data["whatsappUrl"]
        assert url.startswith("https://wa.me/5511912345678?text=")
        assert "Ol%C3%A1%2C%20tudo%20bem%3F" in url

    def test_gateway_failure_falls_back_to_link(self, store):
        """Test a gateway failure falls back to a wa.me link."""
        store.add_client("c1", "Alfa", contact_phone="11912345678")
        dispatcher = ToolDispatcher(store, FakeGateway(fail_on=[1]), today=lambda: TODAY)

        result = run(dispatcher, "enviar_whatsapp", clientId="c1", message="Oi")

        assert result.success
        assert result.data["sentVia"] == "link"

    def test_client_without_phone(self, dispatcher, store, gateway):
        """Test a client without a phone cannot be messaged."""
        store.add_client("c1", "Alfa")

        result = run(dispatcher, "enviar_whatsapp", clientId="c1", message="Oi")

        assert result.error.kind is ErrorKind.INVALID_PARAMETERS
        assert "telefone" in result.message
        assert gateway.calls == 0


@pytest.mark.parametrize(
    "exc, kind",
    [
        (PermissionError(), ErrorKind.PERMISSION_DENIED),
        (ConnectionResetError(), ErrorKind.TIMEOUT),
        (StorageError("permission denied for table clients"), ErrorKind.PERMISSION_DENIED),
        (StorageError("insert violates foreign key constraint", code="23503"), ErrorKind.CONFLICT),
        (StorageError("JSON object requested, multiple (or no) rows returned", code="PGRST116"), ErrorKind.NOT_FOUND),
        (StorageError('column "foo" does not exist'), ErrorKind.UNKNOWN),
        (StorageError('relation "clients" does not exist'), ErrorKind.NOT_FOUND),
        (MessagingError("request timed out"), ErrorKind.TIMEOUT),
        (RuntimeError("boom"), ErrorKind.UNKNOWN),
    ],
)
def test_classify_tool_error(exc, kind):
    """Test collaborator errors are bucketed by kind."""
    assert classify_tool_error(exc) is kind
