"""
Conversation context tools.
"""

import logging
from collections import Counter

from bibliotool.config import AgentConfig
from bibliotool.handlers.base import batch_result, handler_boundary
from bibliotool.schemas import (
    AddToContextArgs,
    ContextAdd,
    ContextArgs,
    ContextItem,
    ContextItemRef,
    ContextList,
    ContextRemove,
    EmptyArgs,
    RemoveFromContextArgs,
)
from bibliotool.storage.context_store import ContextStore
from bibliotool.storage.library_store import LibraryStore
from bibliotool.types import ToolResult

logger = logging.getLogger(__name__)

NAMED_TYPES = ("tag", "author", "topic")


class ContextTools:
    """Handlers for the context tool and its legacy aliases."""

    def __init__(self, context: ContextStore, library: LibraryStore) -> None:
        self.context = context
        self.library = library

    @handler_boundary("context")
    async def run(self, args: ContextArgs, config: AgentConfig) -> ToolResult:
        if isinstance(args, ContextList):
            return await self.list_items()
        if isinstance(args, ContextAdd):
            return await self.add_items(args.items)
        if isinstance(args, ContextRemove):
            return await self.remove_items(args.items)
        return ToolResult.fail(f"Unknown context action: {getattr(args, 'action', None)}")

    def _resolve(self, entry: ContextItem) -> tuple[int | str, str]:
        """Resolve an entry to (id, display name). Raises ValueError when it cannot."""
        if entry.type == "paper":
            if entry.id is None:
                raise ValueError("Paper requires an id")
            item = self.library.get_item(int(entry.id)) if str(entry.id).isdigit() else None
            if item is None:
                raise ValueError(f"Item with ID {entry.id} not found")
            return item.id, item.title or "Untitled"

        if entry.type in NAMED_TYPES:
            name = entry.name or (str(entry.id) if entry.id is not None else "")
            if not name:
                raise ValueError(f"{entry.type.capitalize()} requires a name")
            return name, name

        if entry.type == "collection":
            if entry.id is not None:
                collection = (
                    self.library.get_collection(int(entry.id)) if str(entry.id).isdigit() else None
                )
                if collection is None:
                    raise ValueError(f"Collection with ID {entry.id} not found")
                return collection.id, collection.name
            if entry.name:
                wanted = entry.name.lower()
                for collection in self.library.collections_in(self.library.user_library_id):
                    if collection.name.lower() == wanted:
                        return collection.id, collection.name
                raise ValueError(f'Collection "{entry.name}" not found')
            raise ValueError("Collection requires an id or a name")

        if entry.type == "table":
            if entry.id is None:
                raise ValueError("Table requires an id")
            return entry.id, entry.name or str(entry.id)

        raise ValueError(f"Unsupported context type: {entry.type}")

    async def add_items(self, items: list[ContextItem]) -> ToolResult:
        added = []
        failures = []
        for entry in items:
            try:
                item_id, display_name = self._resolve(entry)
            except ValueError as e:
                failures.append(str(e))
                continue
            # Already-pinned items count as added
            self.context.add(item_id, entry.type, display_name, source="agent")
            added.append({"type": entry.type, "id": item_id, "name": display_name})

        logger.debug(f"Context now has {len(self.context)} entries")
        return batch_result(
            "Added", len(added), len(items), "item(s)", "to context",
            "added_count", failures,
            extra={
                "added": added,
                "current_items": [e.to_dict() for e in self.context.items()],
            },
        )

    async def remove_items(self, items: list[ContextItem] | list[ContextItemRef]) -> ToolResult:
        removed = 0
        failures = []
        for entry in items:
            item_id = entry.id
            if item_id is None:
                item_id = getattr(entry, "name", None)
            if item_id is None:
                failures.append(f"{entry.type}: missing id")
                continue
            if self.context.remove(item_id, entry.type):
                removed += 1
            else:
                failures.append(f"{entry.type} {item_id} is not in context")

        return batch_result(
            "Removed", removed, len(items), "item(s)", "from context",
            "removed_count", failures,
            extra={"current_items": [e.to_dict() for e in self.context.items()]},
        )

    async def list_items(self) -> ToolResult:
        entries = self.context.items()
        if not entries:
            return ToolResult.ok(data={"items": [], "count": 0}, summary="Context is empty")

        counts = Counter(e.type for e in entries)
        breakdown = ", ".join(f"{n} {kind}(s)" for kind, n in counts.items())
        return ToolResult.ok(
            data={"items": [e.to_dict() for e in entries], "count": len(entries)},
            summary=f"Context has {len(entries)} items: {breakdown}",
        )

    # Legacy aliases

    @handler_boundary("add_to_context")
    async def add_to_context(self, args: AddToContextArgs, config: AgentConfig) -> ToolResult:
        return await self.add_items(args.items)

    @handler_boundary("remove_from_context")
    async def remove_from_context(self, args: RemoveFromContextArgs, config: AgentConfig) -> ToolResult:
        return await self.remove_items(args.items)

    @handler_boundary("list_context")
    async def list_context(self, args: EmptyArgs, config: AgentConfig) -> ToolResult:
        return await self.list_items()
