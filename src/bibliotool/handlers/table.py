"""
Analysis table tools.

Tables are looked up leniently (see TableStore.find) because the model
often refers to the table it just created by a placeholder rather than
its ID.
"""

import logging

from bibliotool.config import AgentConfig
from bibliotool.handlers.base import handler_boundary
from bibliotool.schemas import (
    AddToTableArgs,
    CreateTableArgs,
    CreateTableColumnArgs,
    EmptyArgs,
    GenerateTableDataArgs,
    ReadTableArgs,
    TableAddColumn,
    TableAddPapers,
    TableArgs,
    TableCreate,
    TableGenerate,
    TableList,
    TableRead,
)
from bibliotool.services.llm import CompletionClient, LLMError
from bibliotool.storage.library_store import LibraryItem, LibraryStore
from bibliotool.storage.table_store import AnalysisTable, TableColumn, TableStore
from bibliotool.types import ToolResult

logger = logging.getLogger(__name__)

CELL_SYSTEM_PROMPT = (
    "You extract information from research papers for a comparison table. "
    "Answer concisely in one or two sentences. "
    "If the paper does not contain the information, answer \"Not reported\"."
)

ABSTRACT_CHARS = 4000


def _cell_prompt(item: LibraryItem, column: TableColumn) -> str:
    authors = ", ".join(item.author_names) or "Unknown"
    return (
        f"Paper: {item.title or 'Untitled'}\n"
        f"Authors: {authors}\n"
        f"Year: {item.year or 'n.d.'}\n"
        f"Abstract: {item.abstract[:ABSTRACT_CHARS] or 'No abstract available.'}\n\n"
        f"Column \"{column.name}\": {column.ai_prompt}"
    )


class TableTools:
    """Handlers for the table tool and its legacy aliases."""

    def __init__(
        self, tables: TableStore, library: LibraryStore, llm: CompletionClient | None = None
    ) -> None:
        self.tables = tables
        self.library = library
        self.llm = llm

    @handler_boundary("table")
    async def run(self, args: TableArgs, config: AgentConfig) -> ToolResult:
        if isinstance(args, TableList):
            return await self.list_all()
        if isinstance(args, TableCreate):
            return await self.create(args.name, args.paper_ids)
        if isinstance(args, TableAddPapers):
            return await self.add_papers(args.table_id, args.paper_ids)
        if isinstance(args, TableAddColumn):
            return await self.add_column(args.table_id, args.column_name, args.ai_prompt)
        if isinstance(args, TableGenerate):
            return await self.generate(args.table_id, args.column_id, args.item_ids)
        if isinstance(args, TableRead):
            return await self.read(args.table_id, args.include_data)
        return ToolResult.fail(f"Unknown table action: {getattr(args, 'action', None)}")

    async def list_all(self) -> ToolResult:
        tables = self.tables.all()
        listing = [
            {
                "id": t.id,
                "name": t.name or "Unnamed Table",
                "columns": [c.name for c in t.columns],
                "item_count": len(t.paper_ids),
            }
            for t in tables
        ]
        summary = f"Found {len(tables)} table(s)"
        if tables:
            summary += f', most recent: "{tables[0].name}"'
        return ToolResult.ok(data={"tables": listing}, summary=summary)

    async def create(self, name: str, paper_ids: list[int] | None = None) -> ToolResult:
        table = self.tables.create(name, paper_ids)
        logger.info(f"Created table {table.id} '{name}' with {len(table.paper_ids)} papers")
        return ToolResult.ok(
            data={"table_id": table.id, "name": table.name, "item_count": len(table.paper_ids)},
            summary=f'Created new table "{name}" with {len(table.paper_ids)} papers.',
        )

    async def add_papers(self, table_id: str, paper_ids: list[int]) -> ToolResult:
        table = self.tables.find(table_id)
        if table is None:
            return ToolResult.fail(
                f'Table with ID "{table_id}" not found. Try list_tables to see available tables.'
            )

        new_ids = [pid for pid in dict.fromkeys(paper_ids) if pid not in table.paper_ids]

        def extend(t: AnalysisTable) -> None:
            t.paper_ids.extend(new_ids)

        self.tables.update(table.id, extend)
        return ToolResult.ok(
            data={
                "table_id": table.id,
                "added_count": len(new_ids),
                "requested": len(paper_ids),
                "total_count": len(table.paper_ids),
            },
            summary=(
                f"Added {len(new_ids)} of {len(paper_ids)} papers to table "
                f'"{table.name or table.id}" (Total: {len(table.paper_ids)})'
            ),
        )

    async def add_column(self, table_id: str, column_name: str, ai_prompt: str) -> ToolResult:
        table = self.tables.find(table_id)
        if table is None:
            return ToolResult.fail(
                f'Table with ID "{table_id}" not found. '
                "Use create_table first if you want to start a new analysis."
            )

        column = TableColumn(
            id=self.tables.new_column_id(), name=column_name, type="computed", ai_prompt=ai_prompt
        )
        self.tables.update(table.id, lambda t: t.columns.append(column))
        return ToolResult.ok(
            data={"table_id": table.id, "column_id": column.id, "column_name": column_name},
            summary=f'Created column "{column_name}" in table "{table.name or table.id}"',
        )

    async def generate(
        self, table_id: str, column_id: str | None = None, item_ids: list[int] | None = None
    ) -> ToolResult:
        table = self.tables.find(table_id)
        if table is None:
            return ToolResult.fail(f'Table with ID "{table_id}" not found')

        if column_id:
            columns = [c for c in table.columns if c.id == column_id and c.ai_prompt]
        else:
            columns = [c for c in table.columns if c.is_generated and c.ai_prompt]
        if not columns:
            return ToolResult.fail("No AI-generated columns found to generate data for")

        targets = item_ids or list(table.paper_ids)
        if not targets:
            return ToolResult.fail("No items in table to generate data for")
        if self.llm is None:
            return ToolResult.fail("Completion endpoint is not configured")

        logger.info(f"Generating {len(columns)} column(s) x {len(targets)} item(s) for table {table.id}")
        cells: dict[int, dict[str, str]] = {}
        errors = []
        for item_id in targets:
            item = self.library.get_item(item_id)
            if item is None:
                errors.append(f"Item with ID {item_id} not found")
                continue
            for column in columns:
                try:
                    answer = await self.llm.complete(_cell_prompt(item, column), system=CELL_SYSTEM_PROMPT)
                except LLMError as e:
                    logger.warning(f"Cell generation failed for item {item_id}, column {column.id}: {e}")
                    errors.append(f"{item_id}/{column.name}: {e}")
                    continue
                cells.setdefault(item_id, {})[column.id] = answer.strip()

        def store(t: AnalysisTable) -> None:
            for item_id, values in cells.items():
                t.generated_data.setdefault(item_id, {}).update(values)

        self.tables.update(table.id, store)
        generated = sum(len(values) for values in cells.values())
        names = ", ".join(c.name for c in columns)
        summary = f'Generated {generated} cells for columns "{names}".'
        if errors:
            summary += f" {len(errors)} errors occurred."
        data = {"generated_count": generated, "table_id": table.id}
        if errors:
            data["errors"] = errors
        return ToolResult.ok(data=data, summary=summary)

    async def read(self, table_id: str | None = None, include_data: bool = True) -> ToolResult:
        table = self.tables.find(table_id)
        if table is None:
            if table_id:
                return ToolResult.fail(f"Table with ID {table_id} not found")
            return ToolResult.fail("No tables exist. Create a table first with create_table.")

        rows = []
        for paper_id in table.paper_ids:
            item = self.library.get_item(paper_id)
            if item is None:
                continue
            title = item.title or "Untitled"
            values: dict[str, str] = {}
            if include_data:
                values["title"] = title
                values["author"] = ", ".join(item.author_names) or "Unknown"
                values["year"] = item.year
                for column_key, value in table.generated_data.get(paper_id, {}).items():
                    values[column_key] = str(value or "")
            rows.append({"item_id": paper_id, "title": title, "data": values})

        columns = [c.to_dict() for c in table.columns]
        column_names = ", ".join(c.name for c in table.columns)
        cell_count = sum(len(row["data"]) for row in rows)
        detail = f"{cell_count} data cells included." if include_data else "Structure only."
        return ToolResult.ok(
            data={
                "table_id": table.id,
                "name": table.name,
                "columns": columns,
                "rows": rows,
                "total_rows": len(rows),
            },
            summary=(
                f'Table "{table.name}" contains {len(rows)} papers with '
                f"{len(columns)} columns ({column_names}). {detail}"
            ),
        )

    # Legacy aliases

    @handler_boundary("list_tables")
    async def list_tables(self, args: EmptyArgs, config: AgentConfig) -> ToolResult:
        return await self.list_all()

    @handler_boundary("create_table")
    async def create_table(self, args: CreateTableArgs, config: AgentConfig) -> ToolResult:
        return await self.create(args.name, args.item_ids)

    @handler_boundary("add_to_table")
    async def add_to_table(self, args: AddToTableArgs, config: AgentConfig) -> ToolResult:
        return await self.add_papers(args.table_id, args.item_ids)

    @handler_boundary("create_table_column")
    async def create_table_column(self, args: CreateTableColumnArgs, config: AgentConfig) -> ToolResult:
        return await self.add_column(args.table_id, args.column_name, args.ai_prompt)

    @handler_boundary("generate_table_data")
    async def generate_table_data(self, args: GenerateTableDataArgs, config: AgentConfig) -> ToolResult:
        return await self.generate(args.table_id, args.column_id, args.item_ids)

    @handler_boundary("read_table")
    async def read_table(self, args: ReadTableArgs, config: AgentConfig) -> ToolResult:
        return await self.read(args.table_id, args.include_data)
