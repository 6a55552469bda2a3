"""
Table Store for paper analysis tables.

A table is a list of papers plus columns. Built-in columns show item
metadata; computed columns carry an AI prompt whose per-paper answers are
kept in generated_data.
"""

import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

# A table created this recently wins "active" lookups over the most
# recently updated one.
RECENT_CREATION_WINDOW = 30.0

_ACTIVE_ALIASES = ("", "active", "undefined", "null", "none")


def _new_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:5]}"


@dataclass
class TableColumn:
    """A column of an analysis table."""
    id: str
    name: str
    type: str = "text"
    ai_prompt: str | None = None

    @property
    def is_generated(self) -> bool:
        return self.type == "computed" or bool(self.ai_prompt)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id, "name": self.name, "type": self.type}
        if self.ai_prompt:
            result["ai_prompt"] = self.ai_prompt
        return result


def default_columns() -> list[TableColumn]:
    return [
        TableColumn(id="title", name="Title"),
        TableColumn(id="author", name="Author"),
        TableColumn(id="year", name="Year"),
    ]


@dataclass
class AnalysisTable:
    """A paper analysis table."""
    id: str
    name: str
    columns: list[TableColumn] = field(default_factory=default_columns)
    paper_ids: list[int] = field(default_factory=list)
    generated_data: dict[int, dict[str, str]] = field(default_factory=dict)
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    def column(self, column_id: str) -> TableColumn | None:
        for column in self.columns:
            if column.id == column_id:
                return column
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "columns": [c.to_dict() for c in self.columns],
            "paper_ids": list(self.paper_ids),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class TableStore:
    """
    In-memory storage for analysis tables.

    Updates go through update(), which applies a mutation and bumps
    updated_at in one step so concurrent tool calls never interleave
    half-applied changes.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._tables: dict[str, AnalysisTable] = {}
        self._clock = clock
        self._last_created: tuple[str, float] | None = None

    def create(self, name: str, paper_ids: list[int] | None = None) -> AnalysisTable:
        now = self._clock()
        unique_ids = list(dict.fromkeys(paper_ids or []))
        table = AnalysisTable(
            id=_new_id("table"),
            name=name,
            paper_ids=unique_ids,
            created_at=now,
            updated_at=now,
        )
        self._tables[table.id] = table
        self._last_created = (table.id, now)
        return table

    def get(self, table_id: str) -> AnalysisTable | None:
        return self._tables.get(table_id)

    def all(self) -> list[AnalysisTable]:
        """All tables, most recently updated first."""
        return sorted(self._tables.values(), key=lambda t: t.updated_at, reverse=True)

    def update(
        self, table_id: str, mutate: Callable[[AnalysisTable], None]
    ) -> AnalysisTable | None:
        table = self._tables.get(table_id)
        if table is None:
            return None
        mutate(table)
        table.updated_at = self._clock()
        return table

    def find(self, table_id: str | None) -> AnalysisTable | None:
        """
        Find a table, tolerating the ways the model refers to one.

        An empty or placeholder ID ("active", "undefined", ...) means the
        table created in the last few seconds, else the most recent one.
        Otherwise an exact ID, then a fuzzy ID match, then the only table
        if there is just one.
        """
        tables = self.all()
        if not tables:
            return None

        if table_id is None or table_id.strip().lower() in _ACTIVE_ALIASES:
            if self._last_created is not None:
                created_id, created_at = self._last_created
                if self._clock() - created_at < RECENT_CREATION_WINDOW and created_id in self._tables:
                    return self._tables[created_id]
            return tables[0]

        exact = self._tables.get(table_id)
        if exact is not None:
            return exact

        wanted = table_id.lower()
        for table in tables:
            candidate = table.id.lower()
            if (
                wanted in candidate
                or candidate in wanted
                or candidate.removeprefix("table_") == wanted.removeprefix("t_")
            ):
                return table

        if len(tables) == 1:
            return tables[0]
        return None

    def new_column_id(self) -> str:
        return _new_id("col")
