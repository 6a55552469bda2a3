"""
Names of every tool the model can call.

The consolidated surface groups related verbs behind an ``action`` field.
The legacy single-verb names are still accepted so that older prompts and
stored conversations keep working.
"""

from enum import Enum


class ToolName(str, Enum):
    """Every callable tool name, current and legacy."""

    # Core tools
    SEARCH_LIBRARY = "search_library"
    SEARCH_EXTERNAL = "search_external"
    GET_ITEM_METADATA = "get_item_metadata"
    READ_ITEM_CONTENT = "read_item_content"
    IMPORT_PAPER = "import_paper"
    GENERATE_ITEM_TAGS = "generate_item_tags"

    # Unified tools
    CONTEXT = "context"
    COLLECTION = "collection"
    TABLE = "table"
    NOTE = "note"
    RELATED_PAPERS = "related_papers"
    WEB = "web"

    # Legacy aliases
    ADD_TO_CONTEXT = "add_to_context"
    REMOVE_FROM_CONTEXT = "remove_from_context"
    LIST_CONTEXT = "list_context"
    LIST_TABLES = "list_tables"
    CREATE_TABLE = "create_table"
    ADD_TO_TABLE = "add_to_table"
    CREATE_TABLE_COLUMN = "create_table_column"
    GENERATE_TABLE_DATA = "generate_table_data"
    READ_TABLE = "read_table"
    CREATE_NOTE = "create_note"
    EDIT_NOTE = "edit_note"
    FIND_COLLECTION = "find_collection"
    CREATE_COLLECTION = "create_collection"
    LIST_COLLECTION = "list_collection"
    MOVE_ITEM = "move_item"
    REMOVE_ITEM_FROM_COLLECTION = "remove_item_from_collection"
    SEARCH_WEB = "search_web"
    READ_WEBPAGE = "read_webpage"
    GET_CITATIONS = "get_citations"
    GET_REFERENCES = "get_references"


CORE_TOOLS: frozenset[ToolName] = frozenset({
    ToolName.SEARCH_LIBRARY,
    ToolName.SEARCH_EXTERNAL,
    ToolName.GET_ITEM_METADATA,
    ToolName.READ_ITEM_CONTENT,
    ToolName.IMPORT_PAPER,
    ToolName.GENERATE_ITEM_TAGS,
})

UNIFIED_TOOLS: frozenset[ToolName] = frozenset({
    ToolName.CONTEXT,
    ToolName.COLLECTION,
    ToolName.TABLE,
    ToolName.NOTE,
    ToolName.RELATED_PAPERS,
    ToolName.WEB,
})

LEGACY_TOOLS: frozenset[ToolName] = frozenset(
    name for name in ToolName if name not in CORE_TOOLS | UNIFIED_TOOLS
)
