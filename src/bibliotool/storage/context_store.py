"""
Context Store for the conversation context.

The context is the set of papers, tags, authors, collections, topics and
tables the user (or the agent) has pinned to the conversation.
"""

from dataclasses import dataclass
from typing import Any

ContextKey = tuple[str, str]


@dataclass
class ContextEntry:
    """One pinned item."""
    type: str
    id: int | str
    display_name: str
    source: str = "command"

    @property
    def key(self) -> ContextKey:
        return (self.type, str(self.id))

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "id": self.id, "name": self.display_name}


class ContextStore:
    """In-memory context for one conversation. Entries keep insertion order."""

    def __init__(self) -> None:
        self._entries: dict[ContextKey, ContextEntry] = {}

    def add(
        self, item_id: int | str, item_type: str, display_name: str, source: str = "command"
    ) -> bool:
        """Pin an item. Returns False if it was already pinned."""
        entry = ContextEntry(type=item_type, id=item_id, display_name=display_name, source=source)
        if entry.key in self._entries:
            return False
        self._entries[entry.key] = entry
        return True

    def remove(self, item_id: int | str, item_type: str) -> bool:
        """Unpin an item. Returns False if it was not pinned."""
        return self._entries.pop((item_type, str(item_id)), None) is not None

    def items(self) -> list[ContextEntry]:
        return list(self._entries.values())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: ContextKey) -> bool:
        return key in self._entries
