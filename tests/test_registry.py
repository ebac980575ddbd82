"""Tests for the tool catalogue."""

import pytest

from action_bridge.registry import ToolDefinition, ToolRegistry
from action_bridge.tools import BATCH_KINDS, DEFAULT_TOOLS, HANDLERS, ToolKind
from action_bridge.types import ConfirmationType

READ_ONLY = {
    ToolKind.BUSCAR_CLIENTE,
    ToolKind.LISTAR_CLIENTES,
    ToolKind.LISTAR_REUNIOES,
    ToolKind.LISTAR_TAREFAS,
    ToolKind.CONCLUIR_TAREFA,
    ToolKind.LISTAR_PAGAMENTOS,
    ToolKind.GERAR_MENSAGEM,
    ToolKind.RESUMO_DIA,
    ToolKind.RESUMO_CLIENTE,
}


def test_catalogue_matches_routing_table(registry):
    """Test the catalogue matches the routing table."""
    assert len(registry) == len(ToolKind) == len(DEFAULT_TOOLS)
    assert set(registry.names()) == {kind.value for kind in ToolKind}
    assert set(HANDLERS) == set(ToolKind)


@pytest.mark.parametrize("kind", list(ToolKind))
def test_confirmation_flags(registry, kind):
    """Test each tool's confirmation flags."""
    definition = registry.get(kind)
    if kind in READ_ONLY:
        assert not definition.requires_confirmation
        assert definition.confirmation_type is None
    else:
        assert definition.requires_confirmation
        assert definition.confirmation_type is not None
    if kind in BATCH_KINDS:
        assert definition.confirmation_type is ConfirmationType.BATCH


def test_schemas_are_well_formed(registry):
    """Test every tool schema is well formed."""
    for schema in registry.schemas():
        assert set(schema) == {"name", "description", "parameters"}
        assert schema["description"]
        params = schema["parameters"]
        assert params["type"] == "object"
        assert set(params.get("required", [])) <= set(params["properties"])


def test_duplicate_registration_is_rejected():
    """Test a tool cannot be registered twice."""
    registry = ToolRegistry([ToolDefinition("ping", "Ping")])

    with pytest.raises(ValueError, match="ping"):
        registry.register(ToolDefinition("ping", "Ping again"))


def test_confirmation_defaults_to_generic():
    """Test the confirmation type defaults to generic."""
    definition = ToolDefinition("arquivar", "Arquiva", requires_confirmation=True)

    assert definition.confirmation_type is ConfirmationType.GENERIC


def test_unknown_tool_lookups(registry):
    """Test lookups of unknown tools."""
    assert registry.get("apagar_tudo") is None
    assert "apagar_tudo" not in registry
    assert registry.requires_confirmation("apagar_tudo") is False
    assert ToolKind.lookup("apagar_tudo") is None
