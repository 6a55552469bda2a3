"""
Note tools: create notes from markdown and edit existing notes in place.
"""

import logging

from bibliotool.config import AgentConfig
from bibliotool.handlers.base import handler_boundary
from bibliotool.markdown import looks_like_html, markdown_to_html
from bibliotool.schemas import (
    CreateNoteArgs,
    EditNoteArgs,
    EditOperation,
    NoteArgs,
    NoteCreate,
    NoteEdit,
)
from bibliotool.storage.library_store import LibraryStore
from bibliotool.types import ToolResult

logger = logging.getLogger(__name__)

GENERATED_TAG = "AI-Generated"
EDITED_TAG = "AI-Edited"


class EditFailed(Exception):
    """An edit operation could not be applied."""
    pass


def _prepare(text: str | None, convert_markdown: bool) -> str:
    if not text:
        return ""
    if convert_markdown and not looks_like_html(text):
        return markdown_to_html(text)
    return text


def _require_search(op: EditOperation, content: str) -> str:
    if not op.search:
        raise EditFailed(f"'{op.type}' operation requires 'search' parameter")
    if op.search not in content:
        raise EditFailed(f'Search text not found: "{op.search[:50]}..."')
    return op.search


def apply_edit(content: str, op: EditOperation, convert_markdown: bool = True) -> str:
    """
    Apply one edit operation to note HTML and return the new HTML.

    Insert positions are "start", "end", or a marker: the new content goes
    right after the first ``</tag>``, ``<tag>``, ``id="..."`` or
    ``class="..."`` found, and at the end when none is.

    Raises:
        EditFailed: If the operation is missing a parameter or its search
            text is not in the note
    """
    if op.type == "replace":
        search = _require_search(op, content)
        if op.content is None:
            raise EditFailed("'replace' operation requires 'content' parameter")
        replacement = _prepare(op.content, convert_markdown)
        return content.replace(search, replacement, -1 if op.replace_all else 1)

    if op.type == "delete":
        search = _require_search(op, content)
        return content.replace(search, "")

    if op.content is None:
        raise EditFailed(f"'{op.type}' operation requires 'content' parameter")
    addition = _prepare(op.content, convert_markdown)

    if op.type == "append":
        return content + addition
    if op.type == "prepend":
        return addition + content

    position = op.position or "end"
    if position == "start":
        return addition + content
    if position == "end":
        return content + addition
    for marker in (f"</{position}>", f"<{position}>", f'id="{position}"', f'class="{position}"'):
        index = content.find(marker)
        if index != -1:
            cut = index + len(marker)
            return content[:cut] + addition + content[cut:]
    return content + addition


class NoteTools:
    """Handlers for the note tool and its legacy aliases."""

    def __init__(self, library: LibraryStore) -> None:
        self.library = library

    @handler_boundary("note")
    async def run(self, args: NoteArgs, config: AgentConfig) -> ToolResult:
        if isinstance(args, NoteCreate):
            return await self.create(args)
        if isinstance(args, NoteEdit):
            return await self.edit(args)
        return ToolResult.fail(f"Unknown note action: {getattr(args, 'action', None)}")

    async def create(self, args: CreateNoteArgs | NoteCreate) -> ToolResult:
        library_id = None
        if args.parent_item_id is not None:
            parent = self.library.get_item(args.parent_item_id)
            if parent is None:
                return ToolResult.fail(f"Parent item with ID {args.parent_item_id} not found")
            if not parent.is_regular:
                return ToolResult.fail(f"Item {args.parent_item_id} is not a regular item")
        if args.collection_id is not None:
            collection = self.library.get_collection(args.collection_id)
            if collection is None:
                return ToolResult.fail(f"Collection with ID {args.collection_id} not found")
            library_id = collection.library_id

        html = _prepare(args.content, convert_markdown=True)
        lower_html = html.lower()
        lower_title = args.title.lower()
        if not any(
            f"<{tag}>{lower_title}" in lower_html for tag in ("h1", "h2", "strong")
        ):
            html = f"<h1>{args.title}</h1>{html}"

        note = self.library.create_note(
            html,
            parent_id=args.parent_item_id,
            library_id=library_id,
        )
        self.library.add_tags(note.id, [*(args.tags or []), GENERATED_TAG])
        # Child notes live with their parent; only standalone notes join a collection
        if args.parent_item_id is None and args.collection_id is not None:
            self.library.add_to_collection(note.id, args.collection_id)

        logger.info(f"Created note {note.id} '{args.title}'")
        where = (
            f"item {args.parent_item_id}" if args.parent_item_id is not None
            else f"collection {args.collection_id}"
        )
        return ToolResult.ok(
            data={"note_id": note.id, "parent_item_id": args.parent_item_id},
            summary=f'Created note "{args.title}" in {where}',
        )

    async def edit(self, args: EditNoteArgs | NoteEdit) -> ToolResult:
        item = self.library.get_item(args.note_id)
        if item is None:
            return ToolResult.fail(f"Item with ID {args.note_id} not found")

        note = item
        if not item.is_note:
            if not item.is_regular:
                return ToolResult.fail(f"Item {args.note_id} is not a note (type: {item.item_type})")
            child_notes = self.library.notes(item.id)
            if not child_notes:
                return ToolResult.fail(
                    f"Item {args.note_id} is not a note and has no child notes. "
                    "Use create_note to create a new note for this item."
                )
            note = child_notes[0]
            if len(child_notes) > 1:
                logger.debug(
                    f"Item {item.id} has {len(child_notes)} child notes, editing the first ({note.id})"
                )

        content = note.note_html
        applied = 0
        errors = []
        for op in args.operations:
            try:
                content = apply_edit(content, op, args.convert_markdown)
            except EditFailed as e:
                logger.debug(f"Edit operation '{op.type}' on note {note.id} failed: {e}")
                errors.append(f"{op.type}: {e}")
                continue
            applied += 1

        if applied == 0:
            return ToolResult.fail(
                "No operations were successfully applied. Check that search terms exist in the note."
            )

        self.library.set_note(note.id, content)
        self.library.add_tags(note.id, [EDITED_TAG])

        summary = f"Applied {applied} of {len(args.operations)} edit(s) to note {note.id}"
        if note.id != args.note_id:
            summary += f" (resolved from parent item {args.note_id})"
        data = {
            "note_id": note.id,
            "operations_applied": applied,
            "new_content_length": len(content),
        }
        if errors:
            data["operation_errors"] = errors
        return ToolResult.ok(data=data, summary=summary)

    # Legacy aliases

    @handler_boundary("create_note")
    async def create_note(self, args: CreateNoteArgs, config: AgentConfig) -> ToolResult:
        return await self.create(args)

    @handler_boundary("edit_note")
    async def edit_note(self, args: EditNoteArgs, config: AgentConfig) -> ToolResult:
        return await self.edit(args)
