"""
Parameter Schema Registry.

Every tool the model can call has a pydantic model describing its
arguments. Validation is strict: a string is never coerced into a number
and a number is never coerced into a bool, so the model gets told exactly
what to fix instead of having its mistakes silently reinterpreted.

Unified tools (context, collection, table, note, related_papers, web) are
discriminated unions keyed by ``action``. The action is resolved first and
the matching variant is applied; violation paths are reported relative to
the arguments object so feedback reads ``item_ids: ...`` rather than
``add_item.item_ids: ...``.

A tool with no registered schema is passed through as ``Unvalidated`` and
logged. It is never rejected, so newly added tools keep working before
their schema lands.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Annotated, Any, Literal, Union, get_args

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    StrictBool,
    StrictInt,
    StrictStr,
    TypeAdapter,
    ValidationError,
    model_validator,
)

from bibliotool.tool_names import ToolName

logger = logging.getLogger(__name__)

ItemId = Annotated[StrictInt, Field(gt=0)]
NonEmptyStr = Annotated[StrictStr, Field(min_length=1)]
ResultLimit = Annotated[StrictInt, Field(ge=1, le=50)]
WebLimit = Annotated[StrictInt, Field(ge=1, le=20)]

ItemType = Literal[
    "journalArticle", "book", "bookSection", "conferencePaper",
    "report", "thesis", "webpage", "preprint",
]
ContextItemType = Literal["paper", "tag", "author", "collection", "topic", "table"]
EditOperationType = Literal["replace", "insert", "append", "prepend", "delete"]


class ToolArgs(BaseModel):
    """Base for every argument model. Unknown keys are dropped."""
    model_config = ConfigDict(extra="ignore", frozen=True)


# Search & discovery

class SearchFilters(ToolArgs):
    year_from: StrictInt | None = Field(None, description="Minimum publication year (inclusive)")
    year_to: StrictInt | None = Field(None, description="Maximum publication year (inclusive)")
    authors: list[StrictStr] | None = Field(None, description="Author names to filter by")
    tags: list[StrictStr] | None = Field(None, description="Tags to filter by")
    collection: StrictStr | None = Field(None, description="Collection name to filter by")
    item_types: list[ItemType] | None = Field(None, description="Item types to include")


class SearchLibraryArgs(ToolArgs):
    query: StrictStr = Field(description="Search query for titles, authors, abstracts, and full text")
    filters: SearchFilters | None = Field(None, description="Optional filters to narrow search results")
    limit: ResultLimit = Field(10, description="Maximum number of results (default: 10, max: 50)")


class SearchExternalArgs(ToolArgs):
    query: NonEmptyStr = Field(description="Search query for Semantic Scholar")
    year: StrictStr | None = Field(None, description="Year range, e.g. '2020-2024' or '2023-'")
    limit: ResultLimit = Field(10, description="Maximum number of results (default: 10, max: 50)")
    openAccessPdf: StrictBool | None = Field(None, description="Only return papers with open access PDFs")


class GetItemMetadataArgs(ToolArgs):
    item_id: ItemId = Field(description="The library item ID")


class ReadItemContentArgs(ToolArgs):
    item_id: ItemId = Field(description="The library item ID to read content from")
    include_notes: StrictBool = Field(True, description="Include attached notes in content")
    include_pdf: StrictBool = Field(True, description="Include PDF text content if available")
    trigger_ocr: StrictBool = Field(False, description="Trigger OCR if no text content is found")
    max_length: Annotated[StrictInt, Field(ge=0)] | None = Field(
        None, description="Maximum content length (0 for no limit)"
    )


class ImportPaperArgs(ToolArgs):
    paper_id: NonEmptyStr = Field(description="Semantic Scholar paper ID")
    target_collection_id: ItemId | None = Field(None, description="Collection ID to add the imported paper to")
    trigger_ocr: StrictBool | None = Field(None, description="Automatically trigger OCR after import")


class GenerateItemTagsArgs(ToolArgs):
    item_id: ItemId = Field(description="Library item ID to generate tags for")


# Notes

class _NoteCreateFields(ToolArgs):
    parent_item_id: ItemId | None = Field(None, description="Parent item ID to attach the note to")
    collection_id: ItemId | None = Field(None, description="Collection ID for a standalone note")
    title: NonEmptyStr = Field(description="Note title")
    content: NonEmptyStr = Field(description="Note content in Markdown")
    tags: list[StrictStr] | None = Field(None, description="Tags to add to the note")

    @model_validator(mode="after")
    def require_location(self) -> "_NoteCreateFields":
        if self.parent_item_id is None and self.collection_id is None:
            raise ValueError("Either parent_item_id or collection_id must be provided")
        return self


class CreateNoteArgs(_NoteCreateFields):
    pass


class EditOperation(ToolArgs):
    type: EditOperationType = Field(description="Type of edit operation")
    search: StrictStr | None = Field(None, description="Text to search for (required for 'replace' and 'delete')")
    content: StrictStr | None = Field(None, description="New content to insert/append/prepend or replacement text")
    position: StrictStr | None = Field(None, description="Position for 'insert': 'start', 'end', or a tag name")
    replace_all: StrictBool = Field(False, description="For 'replace': replace all occurrences (default: first only)")


class _NoteEditFields(ToolArgs):
    note_id: ItemId = Field(description="ID of the existing note to edit")
    operations: list[EditOperation] = Field(min_length=1, description="Edit operations to apply in order")
    convert_markdown: StrictBool = Field(True, description="Convert markdown content to HTML (default: true)")


class EditNoteArgs(_NoteEditFields):
    pass


class NoteCreate(_NoteCreateFields):
    action: Literal["create"]


class NoteEdit(_NoteEditFields):
    action: Literal["edit"]


# Context

class ContextItem(ToolArgs):
    type: ContextItemType = Field(description="Type of context item")
    id: StrictInt | StrictStr | None = Field(None, description="Item ID")
    name: StrictStr | None = Field(None, description="Item name (for display)")


class ContextItemRef(ToolArgs):
    type: ContextItemType
    id: StrictInt | StrictStr | None = None


class AddToContextArgs(ToolArgs):
    items: list[ContextItem] = Field(min_length=1, description="Items to add to the conversation context")


class RemoveFromContextArgs(ToolArgs):
    items: list[ContextItemRef] = Field(min_length=1, description="Items to remove from context")


class EmptyArgs(ToolArgs):
    pass


class ContextList(ToolArgs):
    action: Literal["list"]


class ContextAdd(ToolArgs):
    action: Literal["add"]
    items: list[ContextItem] = Field(min_length=1, description="Items to add to context")


class ContextRemove(ToolArgs):
    action: Literal["remove"]
    items: list[ContextItem] = Field(min_length=1, description="Items to remove from context")


# Tables

class CreateTableArgs(ToolArgs):
    name: NonEmptyStr = Field(description="Name for the new table")
    item_ids: list[ItemId] | None = Field(None, description="Initial paper IDs to add to the table")


class AddToTableArgs(ToolArgs):
    table_id: NonEmptyStr = Field(description="ID of the target table")
    item_ids: list[ItemId] = Field(min_length=1, description="Paper IDs to add to the table")


class _TableColumnFields(ToolArgs):
    table_id: NonEmptyStr = Field(description="ID of the target table")
    column_name: NonEmptyStr = Field(description="Name for the new column")
    ai_prompt: NonEmptyStr = Field(description="AI prompt used to generate the column's data")


class CreateTableColumnArgs(_TableColumnFields):
    pass


class _TableGenerateFields(ToolArgs):
    table_id: NonEmptyStr = Field(description="ID of the target table")
    column_id: StrictStr | None = Field(None, description="Column to generate (all AI columns if omitted)")
    item_ids: list[ItemId] | None = Field(None, description="Items to generate for (all if omitted)")


class GenerateTableDataArgs(_TableGenerateFields):
    pass


class _TableReadFields(ToolArgs):
    table_id: StrictStr | None = Field(None, description="Table ID to read (most recent if omitted)")
    include_data: StrictBool = Field(True, description="Include generated cell data")


class ReadTableArgs(_TableReadFields):
    pass


class TableList(ToolArgs):
    action: Literal["list"]


class TableCreate(ToolArgs):
    action: Literal["create"]
    name: NonEmptyStr = Field(description="Table name")
    paper_ids: list[ItemId] | None = Field(None, description="Initial papers")


class TableAddPapers(ToolArgs):
    action: Literal["add_papers"]
    table_id: NonEmptyStr = Field(description="Table ID")
    paper_ids: list[ItemId] = Field(min_length=1, description="Paper IDs to add")


class TableAddColumn(_TableColumnFields):
    action: Literal["add_column"]


class TableGenerate(_TableGenerateFields):
    action: Literal["generate"]


class TableRead(_TableReadFields):
    action: Literal["read"]


# Collections

class FindCollectionArgs(ToolArgs):
    name: NonEmptyStr = Field(description="Collection name to search for")
    library_id: StrictInt | None = Field(None, description="Library ID to search in")
    parent_collection_id: ItemId | None = Field(None, description="Parent collection ID to search within")


class CreateCollectionArgs(ToolArgs):
    name: NonEmptyStr = Field(description="Name for the new collection")
    parent_collection_id: ItemId | None = Field(None, description="Parent collection ID (creates a nested collection)")
    library_id: StrictInt | None = Field(None, description="Library ID to create in")


class ListCollectionArgs(ToolArgs):
    collection_id: ItemId = Field(description="Collection ID to list contents of")


class MoveItemArgs(ToolArgs):
    item_id: ItemId = Field(description="Item ID to move")
    target_collection_id: ItemId = Field(description="Target collection ID")
    remove_from_others: StrictBool = Field(False, description="Remove from other collections")


class RemoveItemFromCollectionArgs(ToolArgs):
    item_id: ItemId = Field(description="Item ID to remove")
    collection_id: ItemId = Field(description="Collection ID to remove from")


class CollectionFind(ToolArgs):
    action: Literal["find"]
    name: NonEmptyStr = Field(description="Collection name to search for")
    library_id: StrictInt | None = Field(None, description="Library ID to search in")
    parent_id: ItemId | None = Field(None, description="Parent collection ID to search within")


class CollectionCreate(ToolArgs):
    action: Literal["create"]
    name: NonEmptyStr = Field(description="Name for the new collection")
    parent_id: ItemId | None = Field(None, description="Parent collection ID")
    library_id: StrictInt | None = Field(None, description="Library ID to create in")


class CollectionList(ToolArgs):
    action: Literal["list"]
    collection_id: ItemId = Field(description="Collection ID to list")


class CollectionAddItem(ToolArgs):
    action: Literal["add_item"]
    collection_id: ItemId = Field(description="Target collection ID")
    item_ids: list[ItemId] = Field(min_length=1, description="Item IDs to add")
    remove_from_others: StrictBool = Field(False, description="Remove the items from their other collections")


class CollectionRemoveItem(ToolArgs):
    action: Literal["remove_item"]
    collection_id: ItemId = Field(description="Collection ID")
    item_ids: list[ItemId] = Field(min_length=1, description="Item IDs to remove")


# Web & citations

class _WebSearchFields(ToolArgs):
    query: NonEmptyStr = Field(description="Search query")
    limit: WebLimit = Field(5, description="Maximum results (default: 5)")


class _WebReadFields(ToolArgs):
    url: HttpUrl = Field(description="URL to read")


class SearchWebArgs(_WebSearchFields):
    pass


class ReadWebPageArgs(_WebReadFields):
    pass


class WebSearch(_WebSearchFields):
    action: Literal["search"]


class WebRead(_WebReadFields):
    action: Literal["read"]


class _PaperGraphFields(ToolArgs):
    paper_id: NonEmptyStr = Field(description="Semantic Scholar paper ID")
    limit: ResultLimit = Field(10, description="Maximum results (default: 10)")


class GetCitationsArgs(_PaperGraphFields):
    pass


class GetReferencesArgs(_PaperGraphFields):
    pass


class RelatedCitations(_PaperGraphFields):
    action: Literal["citations"]


class RelatedReferences(_PaperGraphFields):
    action: Literal["references"]


ContextArgs = ContextList | ContextAdd | ContextRemove
CollectionArgs = CollectionFind | CollectionCreate | CollectionList | CollectionAddItem | CollectionRemoveItem
TableArgs = TableList | TableCreate | TableAddPapers | TableAddColumn | TableGenerate | TableRead
NoteArgs = NoteCreate | NoteEdit
RelatedPapersArgs = RelatedCitations | RelatedReferences
WebArgs = WebSearch | WebRead


@dataclass(frozen=True)
class Violation:
    """One reason a payload was rejected."""
    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message


@dataclass(frozen=True)
class Validated:
    value: ToolArgs


@dataclass(frozen=True)
class Unvalidated:
    value: Any


@dataclass(frozen=True)
class Rejected:
    violations: tuple[Violation, ...]

    @property
    def message(self) -> str:
        return format_violations(self.violations)


ValidationOutcome = Validated | Unvalidated | Rejected


class ToolSchema:
    """
    Validator for one tool's arguments.

    A plain schema wraps a single model. A discriminated schema wraps one
    model per action and branches on the discriminator field first.
    """

    def __init__(self, *variants: type[ToolArgs], discriminator: str | None = None) -> None:
        if not variants:
            raise ValueError("ToolSchema needs at least one model")
        if discriminator is None and len(variants) > 1:
            raise ValueError("Multiple variants require a discriminator")
        self.variants = variants
        self.discriminator = discriminator
        if discriminator is None:
            self._adapter: TypeAdapter[Any] = TypeAdapter(variants[0])
        else:
            self._adapter = TypeAdapter(
                Annotated[Union[variants], Field(discriminator=discriminator)]
            )

    @property
    def actions(self) -> dict[str, type[ToolArgs]]:
        """Map of discriminator value to variant model (empty for plain schemas)."""
        if self.discriminator is None:
            return {}
        return {
            get_args(variant.model_fields[self.discriminator].annotation)[0]: variant
            for variant in self.variants
        }

    def validate(self, value: Any) -> ToolArgs:
        """Validate a decoded payload, raising pydantic's ValidationError."""
        return self._adapter.validate_python(value)

    def violations(self, error: ValidationError) -> tuple[Violation, ...]:
        """Turn a pydantic error into violations with argument-relative paths."""
        result = []
        for issue in error.errors(include_url=False):
            loc = list(issue["loc"])
            message = issue["msg"]
            if issue["type"] in ("union_tag_invalid", "union_tag_not_found"):
                result.append(Violation(self.discriminator or "", message))
                continue
            if self.discriminator is not None and loc:
                # First element is the variant tag
                loc = loc[1:]
            if issue["type"] == "value_error":
                message = str(issue.get("ctx", {}).get("error", message))
            result.append(Violation(".".join(str(part) for part in loc), message))
        return tuple(result)


def format_violations(violations: tuple[Violation, ...] | list[Violation]) -> str:
    """Render violations as ``path: message; path: message``."""
    return "; ".join(str(v) for v in violations)


def _unified(*variants: type[ToolArgs]) -> ToolSchema:
    return ToolSchema(*variants, discriminator="action")


SCHEMAS: Mapping[str, ToolSchema] = MappingProxyType({
    # Core tools
    ToolName.SEARCH_LIBRARY.value: ToolSchema(SearchLibraryArgs),
    ToolName.SEARCH_EXTERNAL.value: ToolSchema(SearchExternalArgs),
    ToolName.GET_ITEM_METADATA.value: ToolSchema(GetItemMetadataArgs),
    ToolName.READ_ITEM_CONTENT.value: ToolSchema(ReadItemContentArgs),
    ToolName.IMPORT_PAPER.value: ToolSchema(ImportPaperArgs),
    ToolName.GENERATE_ITEM_TAGS.value: ToolSchema(GenerateItemTagsArgs),

    # Unified tools
    ToolName.CONTEXT.value: _unified(ContextList, ContextAdd, ContextRemove),
    ToolName.COLLECTION.value: _unified(
        CollectionFind, CollectionCreate, CollectionList, CollectionAddItem, CollectionRemoveItem
    ),
    ToolName.TABLE.value: _unified(
        TableList, TableCreate, TableAddPapers, TableAddColumn, TableGenerate, TableRead
    ),
    ToolName.NOTE.value: _unified(NoteCreate, NoteEdit),
    ToolName.RELATED_PAPERS.value: _unified(RelatedCitations, RelatedReferences),
    ToolName.WEB.value: _unified(WebSearch, WebRead),

    # Legacy aliases
    ToolName.ADD_TO_CONTEXT.value: ToolSchema(AddToContextArgs),
    ToolName.REMOVE_FROM_CONTEXT.value: ToolSchema(RemoveFromContextArgs),
    ToolName.LIST_CONTEXT.value: ToolSchema(EmptyArgs),
    ToolName.LIST_TABLES.value: ToolSchema(EmptyArgs),
    ToolName.CREATE_TABLE.value: ToolSchema(CreateTableArgs),
    ToolName.ADD_TO_TABLE.value: ToolSchema(AddToTableArgs),
    ToolName.CREATE_TABLE_COLUMN.value: ToolSchema(CreateTableColumnArgs),
    ToolName.GENERATE_TABLE_DATA.value: ToolSchema(GenerateTableDataArgs),
    ToolName.READ_TABLE.value: ToolSchema(ReadTableArgs),
    ToolName.CREATE_NOTE.value: ToolSchema(CreateNoteArgs),
    ToolName.EDIT_NOTE.value: ToolSchema(EditNoteArgs),
    ToolName.FIND_COLLECTION.value: ToolSchema(FindCollectionArgs),
    ToolName.CREATE_COLLECTION.value: ToolSchema(CreateCollectionArgs),
    ToolName.LIST_COLLECTION.value: ToolSchema(ListCollectionArgs),
    ToolName.MOVE_ITEM.value: ToolSchema(MoveItemArgs),
    ToolName.REMOVE_ITEM_FROM_COLLECTION.value: ToolSchema(RemoveItemFromCollectionArgs),
    ToolName.SEARCH_WEB.value: ToolSchema(SearchWebArgs),
    ToolName.READ_WEBPAGE.value: ToolSchema(ReadWebPageArgs),
    ToolName.GET_CITATIONS.value: ToolSchema(GetCitationsArgs),
    ToolName.GET_REFERENCES.value: ToolSchema(GetReferencesArgs),
})


def get_schema(tool_name: str) -> ToolSchema | None:
    """Get the schema registered for a tool, if any."""
    return SCHEMAS.get(tool_name)


def validate_tool_args(
    tool_name: str,
    value: Any,
    schemas: Mapping[str, ToolSchema] = SCHEMAS,
) -> ValidationOutcome:
    """
    Validate a decoded argument payload against the tool's schema.

    Returns Validated with a typed, frozen model, Rejected with every
    violation found, or Unvalidated when no schema is registered.
    """
    schema = schemas.get(tool_name)
    if schema is None:
        logger.warning(f"No schema registered for tool: {tool_name}; passing arguments through")
        return Unvalidated(value)

    try:
        return Validated(schema.validate(value))
    except ValidationError as e:
        rejected = Rejected(schema.violations(e))
        logger.debug(f"Validation failed for {tool_name}: {rejected.message}")
        return rejected
