"""
AI tag generation for library items.
"""

import logging
import re

from bibliotool.config import AgentConfig
from bibliotool.handlers.base import handler_boundary
from bibliotool.schemas import GenerateItemTagsArgs
from bibliotool.services.llm import CompletionClient
from bibliotool.storage.library_store import LibraryItem, LibraryStore
from bibliotool.types import ToolResult

logger = logging.getLogger(__name__)

MAX_TAGS = 8

TAG_SYSTEM_PROMPT = (
    "You are a research librarian. Suggest concise subject tags for the paper. "
    "Reply with a comma-separated list of tags and nothing else."
)


def parse_tags(reply: str, limit: int = MAX_TAGS) -> list[str]:
    """Split a model reply into clean, unique tags."""
    tags: list[str] = []
    seen: set[str] = set()
    for raw in re.split(r"[,\n;]", reply):
        tag = raw.strip().strip("-*#\"'").strip()
        if not tag or len(tag) > 50 or tag.lower() in seen:
            continue
        seen.add(tag.lower())
        tags.append(tag)
        if len(tags) == limit:
            break
    return tags


def _tag_prompt(item: LibraryItem) -> str:
    prompt = f"Title: {item.title or 'Untitled'}\n"
    if item.abstract:
        prompt += f"Abstract: {item.abstract}\n"
    if item.tags:
        prompt += f"Existing tags: {', '.join(item.tags)}\n"
    return prompt + f"\nSuggest up to {MAX_TAGS} tags."


class TagTools:
    def __init__(self, library: LibraryStore, llm: CompletionClient) -> None:
        self.library = library
        self.llm = llm

    @handler_boundary("generate_item_tags")
    async def generate_item_tags(self, args: GenerateItemTagsArgs, config: AgentConfig) -> ToolResult:
        item = self.library.get_item(args.item_id)
        if item is None:
            return ToolResult.fail(f"Item with ID {args.item_id} not found")
        if not item.is_regular:
            return ToolResult.fail(f"Item {args.item_id} is not a regular item")

        reply = await self.llm.complete(_tag_prompt(item), system=TAG_SYSTEM_PROMPT)
        suggested = parse_tags(reply)
        if not suggested:
            return ToolResult.fail("The model did not suggest any tags")

        added = self.library.add_tags(item.id, suggested)
        logger.info(f"Tagged item {item.id} with {added}")
        summary = f'Added {len(added)} tags to "{item.title or "Untitled"}"'
        if added:
            summary += f": {', '.join(added)}"
        return ToolResult.ok(
            data={"item_id": item.id, "suggested": suggested, "added": added, "tags": list(item.tags)},
            summary=summary,
        )
