"""
Library Store for the reference library.

Holds libraries, items (regular items, notes and attachments) and
collections in memory. Items belong to exactly one library and may be
members of any number of collections within that library.
"""

import itertools
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from bibliotool.config import LibraryScope, ScopeKind

USER_LIBRARY_ID = 1


class ItemKind(str, Enum):
    """Top-level kind of a library item."""
    REGULAR = "regular"
    NOTE = "note"
    ATTACHMENT = "attachment"


@dataclass
class Creator:
    """An author or editor of an item."""
    first_name: str = ""
    last_name: str = ""
    creator_type: str = "author"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> dict[str, Any]:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "creator_type": self.creator_type,
        }


@dataclass
class Library:
    """A user or group library."""
    id: int
    name: str
    group_id: int | None = None


@dataclass
class Collection:
    """A folder of items inside one library."""
    id: int
    library_id: int
    name: str
    parent_id: int | None = None


@dataclass
class LibraryItem:
    """A regular item, note or attachment."""
    id: int
    library_id: int
    kind: ItemKind
    item_type: str
    title: str = ""
    creators: list[Creator] = field(default_factory=list)
    year: str = ""
    abstract: str = ""
    doi: str = ""
    url: str = ""
    venue: str = ""
    tags: list[str] = field(default_factory=list)
    collections: list[int] = field(default_factory=list)
    parent_id: int | None = None
    note_html: str = ""
    # Attachments only
    content_type: str = ""
    file_path: str | None = None
    full_text: str = ""
    extra: dict[str, Any] = field(default_factory=dict)
    date_added: float = field(default_factory=time.time)
    date_modified: float = field(default_factory=time.time)

    @property
    def is_regular(self) -> bool:
        return self.kind is ItemKind.REGULAR

    @property
    def is_note(self) -> bool:
        return self.kind is ItemKind.NOTE

    @property
    def is_attachment(self) -> bool:
        return self.kind is ItemKind.ATTACHMENT

    @property
    def author_names(self) -> list[str]:
        return [c.full_name for c in self.creators if c.full_name]

    def touch(self) -> None:
        self.date_modified = time.time()

    def summary(self) -> dict[str, Any]:
        """Short form used in search and listing results."""
        return {
            "id": self.id,
            "title": self.title or "Untitled",
            "authors": self.author_names,
            "year": self.year,
            "item_type": self.item_type,
        }

    def to_dict(self) -> dict[str, Any]:
        """Full metadata for API responses."""
        return {
            "id": self.id,
            "library_id": self.library_id,
            "item_type": self.item_type,
            "title": self.title,
            "creators": [c.to_dict() for c in self.creators],
            "year": self.year,
            "abstract": self.abstract,
            "doi": self.doi,
            "url": self.url,
            "venue": self.venue,
            "tags": list(self.tags),
            "collections": list(self.collections),
            "parent_id": self.parent_id,
            "extra": dict(self.extra),
            "date_added": self.date_added,
            "date_modified": self.date_modified,
        }


def strip_html(html: str) -> str:
    """Plain text of a note's HTML."""
    text = re.sub(r"<br\s*/?>|</p>|</h\d>|</li>", "\n", html)
    text = re.sub(r"<[^>]+>", "", text)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


class LibraryStore:
    """
    In-memory storage for the reference library.

    The user library always exists with ID 1. Group libraries are added
    with add_library.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._libraries: dict[int, Library] = {
            USER_LIBRARY_ID: Library(id=USER_LIBRARY_ID, name="My Library"),
        }
        self._library_ids = itertools.count(USER_LIBRARY_ID + 1)
        self._items: dict[int, LibraryItem] = {}
        self._collections: dict[int, Collection] = {}

    @property
    def user_library_id(self) -> int:
        return USER_LIBRARY_ID

    # Libraries

    def add_library(self, name: str, group_id: int | None = None) -> Library:
        library = Library(id=next(self._library_ids), name=name, group_id=group_id)
        self._libraries[library.id] = library
        return library

    def libraries(self) -> list[Library]:
        return list(self._libraries.values())

    def get_library(self, library_id: int) -> Library | None:
        return self._libraries.get(library_id)

    def library_for_group(self, group_id: int) -> Library | None:
        for library in self._libraries.values():
            if library.group_id == group_id:
                return library
        return None

    # Items

    def create_item(
        self,
        title: str,
        item_type: str = "journalArticle",
        library_id: int | None = None,
        creators: list[Creator] | None = None,
        year: str = "",
        abstract: str = "",
        doi: str = "",
        url: str = "",
        venue: str = "",
        tags: list[str] | None = None,
        collections: list[int] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> LibraryItem:
        """Create a regular item."""
        item = LibraryItem(
            id=next(self._ids),
            library_id=library_id or USER_LIBRARY_ID,
            kind=ItemKind.REGULAR,
            item_type=item_type,
            title=title,
            creators=list(creators or []),
            year=year,
            abstract=abstract,
            doi=doi,
            url=url,
            venue=venue,
            tags=list(tags or []),
            collections=list(collections or []),
            extra=dict(extra or {}),
        )
        self._items[item.id] = item
        return item

    def create_note(
        self,
        html: str,
        parent_id: int | None = None,
        library_id: int | None = None,
        tags: list[str] | None = None,
    ) -> LibraryItem:
        """Create a child note, or a standalone note when parent_id is None."""
        if parent_id is not None:
            parent = self._require_item(parent_id)
            library_id = parent.library_id
        note = LibraryItem(
            id=next(self._ids),
            library_id=library_id or USER_LIBRARY_ID,
            kind=ItemKind.NOTE,
            item_type="note",
            parent_id=parent_id,
            note_html=html,
            tags=list(tags or []),
        )
        self._items[note.id] = note
        return note

    def create_attachment(
        self,
        parent_id: int,
        title: str,
        content_type: str = "application/pdf",
        file_path: str | None = None,
        full_text: str = "",
        url: str = "",
    ) -> LibraryItem:
        """Attach a file to a regular item."""
        parent = self._require_item(parent_id)
        attachment = LibraryItem(
            id=next(self._ids),
            library_id=parent.library_id,
            kind=ItemKind.ATTACHMENT,
            item_type="attachment",
            title=title,
            parent_id=parent_id,
            content_type=content_type,
            file_path=file_path,
            full_text=full_text,
            url=url,
        )
        self._items[attachment.id] = attachment
        return attachment

    def get_item(self, item_id: int) -> LibraryItem | None:
        return self._items.get(item_id)

    def _require_item(self, item_id: int) -> LibraryItem:
        item = self._items.get(item_id)
        if item is None:
            raise KeyError(f"Item with ID {item_id} not found")
        return item

    def children(self, item_id: int) -> list[LibraryItem]:
        return [i for i in self._items.values() if i.parent_id == item_id]

    def notes(self, item_id: int) -> list[LibraryItem]:
        return [i for i in self.children(item_id) if i.is_note]

    def attachments(self, item_id: int) -> list[LibraryItem]:
        return [i for i in self.children(item_id) if i.is_attachment]

    def pdf_attachments(self, item_id: int) -> list[LibraryItem]:
        return [a for a in self.attachments(item_id) if a.content_type == "application/pdf"]

    def set_note(self, note_id: int, html: str) -> None:
        note = self._require_item(note_id)
        note.note_html = html
        note.touch()

    def add_tags(self, item_id: int, tags: list[str]) -> list[str]:
        """Add tags that are not already present. Returns the ones added."""
        item = self._require_item(item_id)
        added = []
        for tag in tags:
            tag = tag.strip()
            if tag and tag not in item.tags:
                item.tags.append(tag)
                added.append(tag)
        if added:
            item.touch()
        return added

    def find_by_doi(self, doi: str, library_id: int | None = None) -> LibraryItem | None:
        if not doi:
            return None
        wanted = doi.lower()
        for item in self._items.values():
            if item.is_regular and item.doi.lower() == wanted:
                if library_id is None or item.library_id == library_id:
                    return item
        return None

    # Collections

    def create_collection(
        self, name: str, library_id: int | None = None, parent_id: int | None = None
    ) -> Collection:
        if parent_id is not None:
            parent = self._collections.get(parent_id)
            if parent is None:
                raise KeyError(f"Parent collection {parent_id} not found")
            library_id = parent.library_id
        collection = Collection(
            id=next(self._ids),
            library_id=library_id or USER_LIBRARY_ID,
            name=name,
            parent_id=parent_id,
        )
        self._collections[collection.id] = collection
        return collection

    def get_collection(self, collection_id: int) -> Collection | None:
        return self._collections.get(collection_id)

    def collections_in(self, library_id: int) -> list[Collection]:
        return [c for c in self._collections.values() if c.library_id == library_id]

    def all_collections(self) -> list[Collection]:
        return list(self._collections.values())

    def child_collections(self, collection_id: int) -> list[Collection]:
        return [c for c in self._collections.values() if c.parent_id == collection_id]

    def descendant_ids(self, collection_id: int) -> set[int]:
        """The collection and every collection nested beneath it."""
        found = {collection_id}
        frontier = [collection_id]
        while frontier:
            current = frontier.pop()
            for child in self.child_collections(current):
                if child.id not in found:
                    found.add(child.id)
                    frontier.append(child.id)
        return found

    def collection_items(self, collection_id: int) -> list[LibraryItem]:
        """Top-level items (not child notes or attachments) in a collection."""
        return [
            i for i in self._items.values()
            if collection_id in i.collections and i.parent_id is None
        ]

    def collection_path(self, collection: Collection) -> str:
        parts = [collection.name]
        seen = {collection.id}
        current = collection
        while current.parent_id is not None and current.parent_id not in seen:
            parent = self._collections.get(current.parent_id)
            if parent is None:
                break
            parts.insert(0, parent.name)
            seen.add(parent.id)
            current = parent
        return " / ".join(parts)

    def add_to_collection(self, item_id: int, collection_id: int) -> bool:
        """Add membership. Returns False if the item was already a member."""
        item = self._require_item(item_id)
        if collection_id in item.collections:
            return False
        item.collections.append(collection_id)
        item.touch()
        return True

    def remove_from_collection(self, item_id: int, collection_id: int) -> bool:
        """Remove membership. Returns False if the item was not a member."""
        item = self._require_item(item_id)
        if collection_id not in item.collections:
            return False
        item.collections.remove(collection_id)
        item.touch()
        return True

    # Search

    def _in_scope(self, item: LibraryItem, scope: LibraryScope) -> bool:
        if scope.kind is ScopeKind.ALL:
            return True
        if scope.kind is ScopeKind.GROUP:
            library = self.library_for_group(scope.group_id) if scope.group_id is not None else None
            return library is not None and item.library_id == library.id
        if scope.kind is ScopeKind.COLLECTION:
            if scope.collection_id is None:
                return False
            if scope.library_id is not None and item.library_id != scope.library_id:
                return False
            return bool(self.descendant_ids(scope.collection_id) & set(item.collections))
        return item.library_id == USER_LIBRARY_ID

    def _searchable_text(self, item: LibraryItem) -> str:
        parts = [item.abstract, " ".join(item.tags), item.venue]
        for child in self.children(item.id):
            if child.is_note:
                parts.append(strip_html(child.note_html))
            elif child.is_attachment:
                parts.append(child.full_text)
        return " ".join(parts).lower()

    def search(
        self,
        query: str,
        scope: LibraryScope | None = None,
        year_from: int | None = None,
        year_to: int | None = None,
        authors: list[str] | None = None,
        tags: list[str] | None = None,
        collection: str | None = None,
        item_types: list[str] | None = None,
        limit: int | None = None,
    ) -> list[LibraryItem]:
        """
        Search regular items.

        Every query term must appear in the title, creators, abstract,
        tags, venue, child notes or attachment text. Matches in the title
        rank first; ties go to the most recently modified item.
        """
        scope = scope or LibraryScope()
        terms = [t for t in query.lower().split() if t]
        wanted_tags = {t.lower() for t in tags or []}
        wanted_authors = [a.lower() for a in authors or []]
        collection_ids: set[int] | None = None
        if collection:
            collection_ids = set()
            for c in self._collections.values():
                if c.name.lower() == collection.lower():
                    collection_ids |= self.descendant_ids(c.id)

        scored: list[tuple[int, float, LibraryItem]] = []
        for item in self._items.values():
            if not item.is_regular or not self._in_scope(item, scope):
                continue
            if item_types and item.item_type not in item_types:
                continue
            year = int(item.year[:4]) if item.year[:4].isdigit() and len(item.year) >= 4 else None
            if year_from is not None and (year is None or year < year_from):
                continue
            if year_to is not None and (year is None or year > year_to):
                continue
            names = " ".join(item.author_names).lower()
            if wanted_authors and not any(a in names for a in wanted_authors):
                continue
            if wanted_tags and not wanted_tags <= {t.lower() for t in item.tags}:
                continue
            if collection_ids is not None and not collection_ids & set(item.collections):
                continue

            title = item.title.lower()
            body = f"{names} {self._searchable_text(item)}"
            score = 0
            for term in terms:
                if term in title:
                    score += 3
                elif term in body:
                    score += 1
                else:
                    break
            else:
                scored.append((score, item.date_modified, item))

        scored.sort(key=lambda entry: (entry[0], entry[1]), reverse=True)
        results = [item for _, _, item in scored]
        return results[:limit] if limit is not None else results
