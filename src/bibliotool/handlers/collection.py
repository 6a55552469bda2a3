"""
Collection tools: find, create, list, add items to and remove items from
collections.

Adding to a collection is idempotent: an item already in the target is
confirmed, never duplicated. Moving across libraries is refused.
"""

import logging

from bibliotool.config import AgentConfig
from bibliotool.handlers.base import batch_result, handler_boundary
from bibliotool.schemas import (
    CollectionAddItem,
    CollectionArgs,
    CollectionCreate,
    CollectionFind,
    CollectionList,
    CollectionRemoveItem,
    CreateCollectionArgs,
    FindCollectionArgs,
    ListCollectionArgs,
    MoveItemArgs,
    RemoveItemFromCollectionArgs,
)
from bibliotool.storage.library_store import Collection, LibraryStore
from bibliotool.types import ToolResult

logger = logging.getLogger(__name__)

MAX_FIND_RESULTS = 10


class CollectionTools:
    """Handlers for the collection tool and its legacy aliases."""

    def __init__(self, library: LibraryStore) -> None:
        self.library = library

    @handler_boundary("collection")
    async def run(self, args: CollectionArgs, config: AgentConfig) -> ToolResult:
        logger.debug(f"collection action={args.action}")
        if isinstance(args, CollectionFind):
            return await self.find(args.name, args.library_id, args.parent_id)
        if isinstance(args, CollectionCreate):
            return await self.create(args.name, args.parent_id, args.library_id)
        if isinstance(args, CollectionList):
            return await self.list_contents(args.collection_id)
        if isinstance(args, CollectionAddItem):
            return await self.add_items(args.collection_id, args.item_ids, args.remove_from_others)
        if isinstance(args, CollectionRemoveItem):
            return await self.remove_items(args.collection_id, args.item_ids)
        return ToolResult.fail(f"Unknown collection action: {getattr(args, 'action', None)}")

    def _describe(self, collection: Collection) -> dict:
        return {
            "id": collection.id,
            "name": collection.name,
            "library_id": collection.library_id,
            "path": self.library.collection_path(collection),
        }

    async def find(
        self, name: str, library_id: int | None = None, parent_id: int | None = None
    ) -> ToolResult:
        wanted = name.lower()
        if parent_id is not None:
            if self.library.get_collection(parent_id) is None:
                return ToolResult.fail(f"Parent collection {parent_id} not found")
            candidates = self.library.child_collections(parent_id)
        elif library_id is not None:
            candidates = self.library.collections_in(library_id)
        else:
            candidates = self.library.all_collections()

        matches = [self._describe(c) for c in candidates if wanted in c.name.lower()]
        matches.sort(key=lambda c: (c["name"].lower() != wanted, len(c["path"])))

        return ToolResult.ok(
            data={"collections": matches[:MAX_FIND_RESULTS]},
            summary=f'Found {len(matches)} collections matching "{name}"',
        )

    async def create(
        self, name: str, parent_id: int | None = None, library_id: int | None = None
    ) -> ToolResult:
        wanted = name.lower()
        if parent_id is not None:
            parent = self.library.get_collection(parent_id)
            if parent is None:
                return ToolResult.fail(f"Parent collection {parent_id} not found")
            siblings = self.library.child_collections(parent_id)
        else:
            library_id = library_id or self.library.user_library_id
            if self.library.get_library(library_id) is None:
                return ToolResult.fail(f"Library {library_id} not found")
            siblings = [c for c in self.library.collections_in(library_id) if c.parent_id is None]

        existing = next((c for c in siblings if c.name.lower() == wanted), None)
        if existing is not None:
            return ToolResult.ok(
                data={"collection_id": existing.id, "name": existing.name, "created": False},
                summary=f'Found existing collection "{existing.name}" (ID: {existing.id})',
            )

        collection = self.library.create_collection(name, library_id=library_id, parent_id=parent_id)
        logger.info(f"Created collection {collection.id} '{name}'")
        return ToolResult.ok(
            data={"collection_id": collection.id, "name": collection.name, "created": True},
            summary=f'Created collection "{name}" (ID: {collection.id})',
        )

    async def list_contents(self, collection_id: int) -> ToolResult:
        collection = self.library.get_collection(collection_id)
        if collection is None:
            return ToolResult.fail(f"Collection {collection_id} not found")

        entries = [
            {"id": c.id, "title": c.name, "type": "collection"}
            for c in self.library.child_collections(collection_id)
        ]
        for item in self.library.collection_items(collection_id):
            entries.append({
                "id": item.id,
                "title": item.title or "Untitled",
                "type": item.item_type,
                "details": item.year[:4],
            })

        return ToolResult.ok(
            data={"items": entries},
            summary=f'Listed {len(entries)} entries in collection "{collection.name}"',
        )

    async def add_item(
        self, item_id: int, collection_id: int, remove_from_others: bool = False
    ) -> ToolResult:
        """Add one item to a collection. Fails without changing anything."""
        item = self.library.get_item(item_id)
        if item is None:
            return ToolResult.fail(f"Item with ID {item_id} not found")
        target = self.library.get_collection(collection_id)
        if target is None:
            return ToolResult.fail(f"Target collection with ID {collection_id} not found")
        if item.library_id != target.library_id:
            return ToolResult.fail(
                f"Cannot move item across libraries "
                f"(Item: {item.library_id}, Collection: {target.library_id})"
            )

        previous = list(item.collections)
        previous_names = [
            c.name if c else f"#{cid}"
            for cid, c in ((cid, self.library.get_collection(cid)) for cid in previous)
        ]
        removed = 0
        if remove_from_others:
            for other in previous:
                if other != collection_id and self.library.remove_from_collection(item_id, other):
                    removed += 1
        added = self.library.add_to_collection(item_id, collection_id)

        title = item.title or "Untitled"
        if added:
            summary = f'Successfully added "{title}" to collection "{target.name}"'
        else:
            summary = f'Successfully confirmed "{title}" in collection "{target.name}" (item was already a member)'
        if removed:
            summary += f". Removed from {removed} other collection(s)"
        summary += "."

        return ToolResult.ok(
            data={
                "item_id": item_id,
                "was_already_in_target": not added,
                "previous_collections": previous_names,
            },
            summary=summary,
        )

    async def remove_item(self, item_id: int, collection_id: int) -> ToolResult:
        """Remove one item from a collection without deleting it."""
        item = self.library.get_item(item_id)
        if item is None:
            return ToolResult.fail(f"Item with ID {item_id} not found")
        collection = self.library.get_collection(collection_id)
        if collection is None:
            return ToolResult.fail(f"Collection with ID {collection_id} not found")

        was_member = self.library.remove_from_collection(item_id, collection_id)
        title = item.title or "Untitled"
        if not was_member:
            return ToolResult.ok(
                data={"item_id": item_id, "was_member": False},
                summary=f'"{title}" was not in collection "{collection.name}"; nothing to remove.',
            )
        return ToolResult.ok(
            data={"item_id": item_id, "was_member": True},
            summary=f'Successfully removed "{title}" from collection "{collection.name}".',
        )

    async def add_items(
        self, collection_id: int, item_ids: list[int], remove_from_others: bool = False
    ) -> ToolResult:
        """Add several items; each succeeds or fails on its own."""
        target = self.library.get_collection(collection_id)
        if target is None:
            return ToolResult.fail(f"Target collection with ID {collection_id} not found")

        added = 0
        failures = []
        for item_id in item_ids:
            result = await self.add_item(item_id, collection_id, remove_from_others)
            if result.success:
                added += 1
            else:
                failures.append(f"{item_id}: {result.error}")

        return batch_result(
            "Added", added, len(item_ids), "item(s)", f'to collection "{target.name}"',
            "added_count", failures,
        )

    async def remove_items(self, collection_id: int, item_ids: list[int]) -> ToolResult:
        """Remove several items; each succeeds or fails on its own."""
        collection = self.library.get_collection(collection_id)
        if collection is None:
            return ToolResult.fail(f"Collection with ID {collection_id} not found")

        removed = 0
        failures = []
        for item_id in item_ids:
            result = await self.remove_item(item_id, collection_id)
            if result.success:
                removed += 1
            else:
                failures.append(f"{item_id}: {result.error}")

        return batch_result(
            "Removed", removed, len(item_ids), "item(s)", f'from collection "{collection.name}"',
            "removed_count", failures,
        )

    # Legacy aliases

    @handler_boundary("find_collection")
    async def find_collection(self, args: FindCollectionArgs, config: AgentConfig) -> ToolResult:
        return await self.find(args.name, args.library_id, args.parent_collection_id)

    @handler_boundary("create_collection")
    async def create_collection(self, args: CreateCollectionArgs, config: AgentConfig) -> ToolResult:
        return await self.create(args.name, args.parent_collection_id, args.library_id)

    @handler_boundary("list_collection")
    async def list_collection(self, args: ListCollectionArgs, config: AgentConfig) -> ToolResult:
        return await self.list_contents(args.collection_id)

    @handler_boundary("move_item")
    async def move_item(self, args: MoveItemArgs, config: AgentConfig) -> ToolResult:
        return await self.add_item(args.item_id, args.target_collection_id, args.remove_from_others)

    @handler_boundary("remove_item_from_collection")
    async def remove_item_from_collection(
        self, args: RemoveItemFromCollectionArgs, config: AgentConfig
    ) -> ToolResult:
        return await self.remove_item(args.item_id, args.collection_id)
