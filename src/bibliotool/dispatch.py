"""
Handler Dispatch Table.

Maps every tool name, current and legacy, to the async handler that runs
it. Legacy single-verb tools point at adapters on the same handler object
as their unified equivalent, so both surfaces share one implementation.
"""

from collections.abc import Mapping
from types import MappingProxyType

from bibliotool.handlers import (
    CitationTools,
    CollectionTools,
    ContextTools,
    Handler,
    LibraryTools,
    NoteTools,
    TableTools,
    TagTools,
    WebTools,
)
from bibliotool.tool_names import ToolName


def build_dispatch_table(
    library: LibraryTools,
    tags: TagTools,
    context: ContextTools,
    collections: CollectionTools,
    tables: TableTools,
    notes: NoteTools,
    citations: CitationTools,
    web: WebTools,
) -> Mapping[str, Handler]:
    """Build the immutable name -> handler table."""
    table: dict[ToolName, Handler] = {
        # Core tools
        ToolName.SEARCH_LIBRARY: library.search_library,
        ToolName.SEARCH_EXTERNAL: library.search_external,
        ToolName.GET_ITEM_METADATA: library.get_item_metadata,
        ToolName.READ_ITEM_CONTENT: library.read_item_content,
        ToolName.IMPORT_PAPER: library.import_paper,
        ToolName.GENERATE_ITEM_TAGS: tags.generate_item_tags,

        # Unified tools
        ToolName.CONTEXT: context.run,
        ToolName.COLLECTION: collections.run,
        ToolName.TABLE: tables.run,
        ToolName.NOTE: notes.run,
        ToolName.RELATED_PAPERS: citations.run,
        ToolName.WEB: web.run,

        # Legacy aliases
        ToolName.ADD_TO_CONTEXT: context.add_to_context,
        ToolName.REMOVE_FROM_CONTEXT: context.remove_from_context,
        ToolName.LIST_CONTEXT: context.list_context,
        ToolName.LIST_TABLES: tables.list_tables,
        ToolName.CREATE_TABLE: tables.create_table,
        ToolName.ADD_TO_TABLE: tables.add_to_table,
        ToolName.CREATE_TABLE_COLUMN: tables.create_table_column,
        ToolName.GENERATE_TABLE_DATA: tables.generate_table_data,
        ToolName.READ_TABLE: tables.read_table,
        ToolName.CREATE_NOTE: notes.create_note,
        ToolName.EDIT_NOTE: notes.edit_note,
        ToolName.FIND_COLLECTION: collections.find_collection,
        ToolName.CREATE_COLLECTION: collections.create_collection,
        ToolName.LIST_COLLECTION: collections.list_collection,
        ToolName.MOVE_ITEM: collections.move_item,
        ToolName.REMOVE_ITEM_FROM_COLLECTION: collections.remove_item_from_collection,
        ToolName.SEARCH_WEB: web.search_web,
        ToolName.READ_WEBPAGE: web.read_webpage,
        ToolName.GET_CITATIONS: citations.get_citations,
        ToolName.GET_REFERENCES: citations.get_references,
    }
    return MappingProxyType({name.value: handler for name, handler in table.items()})
