"""Read-only business snapshot handed in with every turn."""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

Record = dict[str, Any]


def fold(text: str) -> str:
    """Casefold and strip accents, so "joão" matches "Joao"."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold().strip()


@dataclass(slots=True)
class BusinessContext:
    """
    What the assistant knows about one user's business at the start of a turn.

    Records are plain dicts using the store's field names (``id``, ``name``,
    ``contact_name``, ``contact_phone``, ``status``...).
    """

    actor_id: str
    today: date
    user_name: str = "gestor"
    clients: list[Record] = field(default_factory=list)
    meetings: list[Record] = field(default_factory=list)
    tasks: list[Record] = field(default_factory=list)
    payments: list[Record] = field(default_factory=list)

    def client(self, client_id: str) -> Optional[Record]:
        for client in self.clients:
            if client.get("id") == client_id:
                return client
        return None

    def match_clients(self, query: str) -> list[Record]:
        """Clients whose name, or else contact name, contains *query*."""
        needle = fold(query)
        if not needle:
            return []
        for key in ("name", "contact_name"):
            exact = [c for c in self.clients if fold(c.get(key) or "") == needle]
            if exact:
                return exact
            partial = [c for c in self.clients if needle in fold(c.get(key) or "")]
            if partial:
                return partial
        return []

    @property
    def active_clients(self) -> list[Record]:
        return [c for c in self.clients if c.get("status") == "active"]
