"""Tests for the payloads shown next to pending confirmations."""

import asyncio

import pytest

from action_bridge.errors import ToolValidationError
from action_bridge.tools import build_preview
from action_bridge.types import ConfirmationType, ToolCall

from conftest import ACTOR, make_context


def preview(store, ctype, name, **params):
    call = ToolCall.new(name, params)
    return asyncio.run(build_preview(ctype, call, make_context(store), store, ACTOR))


@pytest.fixture
def seeded(store):
    store.add_client("c1", "Alfa", contact_name="Ana", contact_phone="11911112222")
    store.add_meeting("m1", "c1", "2025-11-20", time="10:00", type="presencial")
    return store


def test_meeting_update_shows_before_and_after(seeded):
    """Test a meeting update preview shows old and new values."""
    payload = preview(
        seeded,
        ConfirmationType.MEETING_UPDATE,
        "atualizar_reuniao",
        clientId="c1",
        currentDate="2025-11-20",
        newDate="2025-11-21",
    )

    assert payload["meetingId"] == "m1"
    assert payload["clientName"] == "Alfa"
    assert (payload["currentDate"], payload["currentTime"]) == ("2025-11-20", "10:00")
    assert payload["newDate"] == "2025-11-21"
    assert payload["newTime"] is None


def test_meeting_delete_by_id(seeded):
    """Test a meeting delete preview by id."""
    payload = preview(seeded, ConfirmationType.MEETING_DELETE, "excluir_reuniao", meetingId="m1")

    assert payload["clientName"] == "Alfa"
    assert payload["type"] == "presencial"


def test_whatsapp_uses_contact(seeded):
    """Test a WhatsApp preview names the contact."""
    payload = preview(seeded, ConfirmationType.WHATSAPP, "enviar_whatsapp", clientId="c1", message="Oi!")

    assert payload == {
        "clientId": "c1",
        "clientName": "Alfa",
        "contactName": "Ana",
        "phone": "11911112222",
        "message": "Oi!",
    }


def test_client_outside_snapshot_is_read_from_store(store):
    """Test a client missing from the context is read from the store."""
    store.add_client("c9", "Novo")
    context = make_context(store)
    context.clients.clear()
    call = ToolCall.new("criar_cobranca", {"clientId": "c9", "amount": 90, "dueDate": "2025-12-05"})

    payload = asyncio.run(build_preview(ConfirmationType.PAYMENT, call, context, store, ACTOR))

    assert payload["clientName"] == "Novo"
    assert payload["amount"] == 90.0


def test_generic_lists_parameters(seeded):
    """Test a generic preview lists the parameters."""
    payload = preview(seeded, ConfirmationType.GENERIC, "marcar_pago", paymentId="p1")

    assert payload["title"] == "Confirmar: marcar_pago"
    assert payload["details"] == {"paymentId": "p1"}


def test_invalid_call_is_refused(seeded):
    """Test an invalid call is refused while previewing."""
    with pytest.raises(ToolValidationError):
        preview(seeded, ConfirmationType.TASK, "criar_tarefa", priority="altissima")
