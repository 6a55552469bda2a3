"""
Tool Catalog - the model's menu.

Each ToolDefinition pairs a tool name and description with a JSON schema
generated from the same pydantic models the Schema Registry validates
with. Advertised and enforced parameter shapes therefore cannot drift
apart, so self-correction feedback never contradicts the menu.
"""

import copy
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from bibliotool.schemas import SCHEMAS, ToolSchema
from bibliotool.tool_names import LEGACY_TOOLS, ToolName

DESCRIPTIONS: Mapping[str, str] = MappingProxyType({
    # Core tools
    ToolName.SEARCH_LIBRARY.value: (
        "Search the reference library for papers and items matching a query. Returns "
        "matching items with basic metadata. Use this to find relevant papers before "
        "reading their content."
    ),
    ToolName.SEARCH_EXTERNAL.value: (
        "Search Semantic Scholar for academic papers that are not yet in the library."
    ),
    ToolName.GET_ITEM_METADATA.value: (
        "Get detailed metadata for a library item by ID: authors, abstract, DOI, tags "
        "and collections."
    ),
    ToolName.READ_ITEM_CONTENT.value: (
        "Read the full content of a paper from its notes, PDF text, or OCR output. Use "
        "this when you need the actual content of a paper, not just its metadata."
    ),
    ToolName.IMPORT_PAPER.value: (
        "Import a paper from Semantic Scholar into the library, optionally placing it "
        "in a collection and running OCR on its PDF."
    ),
    ToolName.GENERATE_ITEM_TAGS.value: (
        "Generate tags for a library item from its content and apply them to the item."
    ),

    # Unified tools
    ToolName.CONTEXT.value: (
        "Manage conversation context. Add items (papers, tags, authors, collections, "
        "topics, tables) to focus the conversation, remove them, or list current context."
    ),
    ToolName.COLLECTION.value: (
        "Manage library collections. Find, create, list contents, or add/remove items "
        "from collections."
    ),
    ToolName.TABLE.value: (
        "Manage paper analysis tables. List tables, create new tables, add papers, add "
        "AI columns, generate column data, or read table contents."
    ),
    ToolName.NOTE.value: (
        "Create or edit notes. Create new notes attached to items or collections, or "
        "edit existing notes with replace/insert/append/prepend/delete operations."
    ),
    ToolName.RELATED_PAPERS.value: (
        "Explore the citation network. Find papers that cite a given paper (citations) "
        "or papers it cites (references)."
    ),
    ToolName.WEB.value: (
        "Web research. Search the web for information or read a webpage as markdown."
    ),

    # Legacy aliases
    ToolName.ADD_TO_CONTEXT.value: "Add items to the current chat context.",
    ToolName.REMOVE_FROM_CONTEXT.value: "Remove items from the current chat context.",
    ToolName.LIST_CONTEXT.value: "List all items currently in the chat context.",
    ToolName.LIST_TABLES.value: "List all paper analysis tables, most recent first.",
    ToolName.CREATE_TABLE.value: "Create a new paper analysis table.",
    ToolName.ADD_TO_TABLE.value: "Add one or more papers to an existing table.",
    ToolName.CREATE_TABLE_COLUMN.value: (
        "Create a column whose values are generated from each paper by an AI prompt."
    ),
    ToolName.GENERATE_TABLE_DATA.value: (
        "Run a table's column prompts against its papers to fill in the cells."
    ),
    ToolName.READ_TABLE.value: (
        "Read a table's papers, columns and generated data."
    ),
    ToolName.CREATE_NOTE.value: (
        "Create a new note attached to an item or placed in a collection."
    ),
    ToolName.EDIT_NOTE.value: (
        "Edit an existing note with replace, insert, append, prepend and delete operations."
    ),
    ToolName.FIND_COLLECTION.value: (
        "Find collections by name. If parent_collection_id is given, searches within it."
    ),
    ToolName.CREATE_COLLECTION.value: "Create a new collection (folder).",
    ToolName.LIST_COLLECTION.value: "List the items and sub-collections of a collection.",
    ToolName.MOVE_ITEM.value: (
        "Add an item to a collection and optionally remove it from its other collections."
    ),
    ToolName.REMOVE_ITEM_FROM_COLLECTION.value: (
        "Remove an item from a collection without deleting it from the library."
    ),
    ToolName.SEARCH_WEB.value: "Search the general web for information.",
    ToolName.READ_WEBPAGE.value: "Read the content of a webpage URL as clean markdown.",
    ToolName.GET_CITATIONS.value: "Find papers that cite a specific paper (forward citations).",
    ToolName.GET_REFERENCES.value: "Find papers cited by a specific paper (backward references).",
})

_SCHEMA_NOISE = ("title", "$defs")


@dataclass(frozen=True)
class ToolDefinition:
    """
    Definition of a tool surfaced to the model.

    - name: Unique identifier
    - description: What the tool does (shown to the model)
    - parameters: JSON Schema for the tool's arguments
    """
    name: str
    description: str
    parameters: Mapping[str, Any]

    def to_openai_schema(self) -> dict[str, Any]:
        """Convert to OpenAI tool format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": copy.deepcopy(dict(self.parameters)),
            },
        }


def _clean(node: Any, defs: Mapping[str, Any]) -> Any:
    """Inline $refs, collapse optional anyOf and drop pydantic's titles."""
    if isinstance(node, list):
        return [_clean(child, defs) for child in node]
    if not isinstance(node, dict):
        return node

    if "$ref" in node:
        target = defs[node["$ref"].rsplit("/", 1)[-1]]
        extra = {k: v for k, v in node.items() if k != "$ref"}
        return _clean({**target, **extra}, defs)

    options = node.get("anyOf")
    if isinstance(options, list) and {"type": "null"} in options:
        rest = [option for option in options if option != {"type": "null"}]
        merged = {k: v for k, v in node.items() if k != "anyOf"}
        if len(rest) == 1:
            return _clean({**rest[0], **merged}, defs)
        node = {**merged, "anyOf": rest}

    cleaned: dict[str, Any] = {}
    for key, value in node.items():
        if key in _SCHEMA_NOISE:
            continue
        if key == "default" and value is None:
            continue
        if key == "properties":
            cleaned[key] = {name: _clean(prop, defs) for name, prop in value.items()}
        else:
            cleaned[key] = _clean(value, defs)
    return cleaned


def model_parameters(model: type) -> dict[str, Any]:
    """Generate a cleaned JSON schema for one argument model."""
    raw = model.model_json_schema()
    schema = _clean(raw, raw.get("$defs", {}))
    schema.setdefault("properties", {})
    schema["type"] = "object"
    return schema


def _unified_parameters(schema: ToolSchema) -> dict[str, Any]:
    """
    Flatten a discriminated schema into one object.

    The model sees an ``action`` enum plus the union of every variant's
    properties. Which fields each action requires is spelled out in the
    action description.
    """
    discriminator = schema.discriminator or "action"
    properties: dict[str, Any] = {}
    requirements = []
    for action, variant in schema.actions.items():
        variant_schema = model_parameters(variant)
        required = [f for f in variant_schema.get("required", []) if f != discriminator]
        requirements.append(f"{action} ({', '.join(required)})" if required else action)
        for name, prop in variant_schema["properties"].items():
            if name != discriminator:
                properties.setdefault(name, prop)

    return {
        "type": "object",
        "properties": {
            discriminator: {
                "type": "string",
                "enum": list(schema.actions),
                "description": "Action to perform. Required fields: " + "; ".join(requirements),
            },
            **properties,
        },
        "required": [discriminator],
    }


def parameters_for(schema: ToolSchema) -> dict[str, Any]:
    """JSON schema advertised for a registered tool schema."""
    if schema.discriminator is not None:
        return _unified_parameters(schema)
    return model_parameters(schema.variants[0])


def build_catalog(
    schemas: Mapping[str, ToolSchema] = SCHEMAS,
    descriptions: Mapping[str, str] = DESCRIPTIONS,
) -> Mapping[str, ToolDefinition]:
    """Build the immutable name -> ToolDefinition table."""
    return MappingProxyType({
        name: ToolDefinition(
            name=name,
            description=descriptions.get(name, ""),
            parameters=MappingProxyType(parameters_for(schema)),
        )
        for name, schema in schemas.items()
    })


CATALOG: Mapping[str, ToolDefinition] = build_catalog()


def tool_definitions(include_legacy: bool = True) -> list[ToolDefinition]:
    """Definitions surfaced to the model, optionally without legacy aliases."""
    legacy = {name.value for name in LEGACY_TOOLS}
    return [
        definition for name, definition in CATALOG.items()
        if include_legacy or name not in legacy
    ]


def get_schemas(include_legacy: bool = True) -> list[dict[str, Any]]:
    """Get OpenAI-format schemas for every catalogued tool."""
    return [definition.to_openai_schema() for definition in tool_definitions(include_legacy)]
