"""Static catalogue of tools the assistant may call."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Optional

from action_bridge.types import ConfirmationType

__all__ = ["ToolDefinition", "ToolRegistry"]


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """
    Name, description and parameter schema of one tool.

    ``parameters`` is a JSON-schema-like object (``type``, ``properties``,
    ``required``, ``enum``). It describes the contract for the LLM only;
    each handler checks its own input.
    """

    name: str
    description: str
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )
    requires_confirmation: bool = False
    confirmation_type: Optional[ConfirmationType] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", str(self.name))
        if self.requires_confirmation and self.confirmation_type is None:
            object.__setattr__(self, "confirmation_type", ConfirmationType.GENERIC)

    def schema(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


class ToolRegistry:
    def __init__(self, definitions: Iterable[ToolDefinition] = ()) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: ToolDefinition) -> None:
        if definition.name in self._tools:
            raise ValueError(f"Tool already registered: {definition.name}")
        self._tools[definition.name] = definition

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def requires_confirmation(self, name: str) -> bool:
        definition = self._tools.get(name)
        return definition.requires_confirmation if definition else False

    def confirmation_type(self, name: str) -> Optional[ConfirmationType]:
        definition = self._tools.get(name)
        return definition.confirmation_type if definition else None

    def schemas(self) -> list[dict[str, Any]]:
        """Export ``{name, description, parameters}`` for every tool, in registration order."""
        return [definition.schema() for definition in self._tools.values()]

    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)
