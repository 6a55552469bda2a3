"""
Citation graph tools: papers citing a paper and papers it references.
"""

import logging
from typing import Any

from bibliotool.config import AgentConfig
from bibliotool.handlers.base import handler_boundary
from bibliotool.schemas import (
    GetCitationsArgs,
    GetReferencesArgs,
    RelatedCitations,
    RelatedPapersArgs,
    RelatedReferences,
)
from bibliotool.services.scholar import SemanticScholarClient
from bibliotool.types import ToolResult

logger = logging.getLogger(__name__)


def _paper_entry(paper: dict[str, Any]) -> dict[str, Any]:
    return {
        "paperId": paper.get("paperId"),
        "title": paper.get("title") or "Untitled",
        "authors": [a.get("name") for a in paper.get("authors") or [] if a.get("name")],
        "year": paper.get("year"),
        "citationCount": paper.get("citationCount") or 0,
        "url": paper.get("url"),
        "has_pdf": bool((paper.get("openAccessPdf") or {}).get("url")),
        "intent": paper.get("intents") or [],
        "isInfluential": bool(paper.get("isInfluential")),
    }


class CitationTools:
    """Handlers for the related_papers tool and its legacy aliases."""

    def __init__(self, scholar: SemanticScholarClient) -> None:
        self.scholar = scholar

    @handler_boundary("related_papers")
    async def run(self, args: RelatedPapersArgs, config: AgentConfig) -> ToolResult:
        if isinstance(args, RelatedCitations):
            return await self.citations(args.paper_id, args.limit)
        if isinstance(args, RelatedReferences):
            return await self.references(args.paper_id, args.limit)
        return ToolResult.fail(f"Unknown related_papers action: {getattr(args, 'action', None)}")

    async def citations(self, paper_id: str, limit: int = 10) -> ToolResult:
        graph = await self.scholar.get_citations(paper_id, limit)
        papers = [_paper_entry(p) for p in graph["data"] if p.get("paperId")]
        return ToolResult.ok(
            data={"paper_id": paper_id, "total": graph["total"], "papers": papers},
            summary=f"Found {graph['total']} citations, returning {len(papers)}",
        )

    async def references(self, paper_id: str, limit: int = 10) -> ToolResult:
        graph = await self.scholar.get_references(paper_id, limit)
        papers = [_paper_entry(p) for p in graph["data"] if p.get("paperId")]
        return ToolResult.ok(
            data={"paper_id": paper_id, "total": graph["total"], "papers": papers},
            summary=f"Found {graph['total']} references, returning {len(papers)}",
        )

    # Legacy aliases

    @handler_boundary("get_citations")
    async def get_citations(self, args: GetCitationsArgs, config: AgentConfig) -> ToolResult:
        return await self.citations(args.paper_id, args.limit)

    @handler_boundary("get_references")
    async def get_references(self, args: GetReferencesArgs, config: AgentConfig) -> ToolResult:
        return await self.references(args.paper_id, args.limit)
