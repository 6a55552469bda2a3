"""
Core library tools: searching the local library and Semantic Scholar,
reading item metadata and content, and importing papers.
"""

import logging
from pathlib import Path
from typing import Any

from bibliotool.config import AgentConfig
from bibliotool.handlers.base import handler_boundary
from bibliotool.schemas import (
    GetItemMetadataArgs,
    ImportPaperArgs,
    ReadItemContentArgs,
    SearchExternalArgs,
    SearchLibraryArgs,
)
from bibliotool.services.http import ServiceError
from bibliotool.services.ocr import DatalabOcrClient, OcrError
from bibliotool.services.scholar import SemanticScholarClient
from bibliotool.storage.library_store import Creator, LibraryItem, LibraryStore, strip_html
from bibliotool.types import ToolResult

logger = logging.getLogger(__name__)

SNIPPET_CHARS = 300
ABSTRACT_PREVIEW_CHARS = 500

# Semantic Scholar publication types to library item types
PUBLICATION_TYPES = {
    "JournalArticle": "journalArticle",
    "Review": "journalArticle",
    "Conference": "conferencePaper",
    "Book": "book",
    "BookSection": "bookSection",
    "Dataset": "report",
}


def _creators(authors: list[dict[str, Any]]) -> list[Creator]:
    creators = []
    for author in authors:
        name = (author.get("name") or "").strip()
        if not name:
            continue
        first, _, last = name.rpartition(" ")
        creators.append(Creator(first_name=first, last_name=last))
    return creators


def _item_type(paper: dict[str, Any]) -> str:
    for publication_type in paper.get("publicationTypes") or []:
        if publication_type in PUBLICATION_TYPES:
            return PUBLICATION_TYPES[publication_type]
    if "ArXiv" in (paper.get("externalIds") or {}) and not paper.get("venue"):
        return "preprint"
    return "journalArticle"


def _truncate(text: str, limit: int) -> tuple[str, bool]:
    if limit <= 0 or len(text) <= limit:
        return text, False
    return text[:limit], True


class LibraryTools:
    """Handlers for the core search, read and import tools."""

    def __init__(
        self,
        library: LibraryStore,
        scholar: SemanticScholarClient,
        ocr: DatalabOcrClient | None = None,
    ) -> None:
        self.library = library
        self.scholar = scholar
        self.ocr = ocr

    @handler_boundary("search_library")
    async def search_library(self, args: SearchLibraryArgs, config: AgentConfig) -> ToolResult:
        filters = args.filters
        limit = min(args.limit, config.max_search_results)
        items = self.library.search(
            args.query,
            scope=config.library_scope,
            year_from=filters.year_from if filters else None,
            year_to=filters.year_to if filters else None,
            authors=filters.authors if filters else None,
            tags=filters.tags if filters else None,
            collection=filters.collection if filters else None,
            item_types=filters.item_types if filters else None,
        )

        results = []
        for item in items[:limit]:
            entry = item.summary()
            if config.include_content and item.abstract:
                entry["snippet"], _ = _truncate(item.abstract, SNIPPET_CHARS)
            results.append(entry)

        logger.debug(f"search_library '{args.query}' matched {len(items)} items")
        return ToolResult.ok(
            data={"results": results, "total": len(items)},
            summary=f'Found {len(items)} items matching "{args.query}", returning {len(results)}',
        )

    @handler_boundary("get_item_metadata")
    async def get_item_metadata(self, args: GetItemMetadataArgs, config: AgentConfig) -> ToolResult:
        item = self.library.get_item(args.item_id)
        if item is None:
            return ToolResult.fail(f"Item with ID {args.item_id} not found")

        metadata = item.to_dict()
        metadata["collection_names"] = [
            c.name for c in map(self.library.get_collection, item.collections) if c is not None
        ]
        metadata["notes"] = [n.id for n in self.library.notes(item.id)]
        metadata["attachments"] = [
            {"id": a.id, "title": a.title, "content_type": a.content_type, "has_text": bool(a.full_text)}
            for a in self.library.attachments(item.id)
        ]
        return ToolResult.ok(data=metadata, summary=f'Metadata for "{item.title or "Untitled"}"')

    async def _ocr_attachment(self, attachment: LibraryItem) -> str:
        """Run OCR over an attachment and keep the text on it."""
        if self.ocr is None or not self.ocr.is_configured():
            raise OcrError("OCR service is not configured")
        if attachment.file_path:
            pdf = Path(attachment.file_path).read_bytes()
        elif attachment.url:
            pdf = await self.ocr.download_pdf(attachment.url)
        else:
            raise OcrError(f"Attachment {attachment.id} has no file or URL")
        text = await self.ocr.convert_pdf(pdf, filename=Path(attachment.file_path or "document.pdf").name)
        attachment.full_text = text
        attachment.touch()
        return text

    @handler_boundary("read_item_content")
    async def read_item_content(self, args: ReadItemContentArgs, config: AgentConfig) -> ToolResult:
        item = self.library.get_item(args.item_id)
        if item is None:
            return ToolResult.fail(f"Item with ID {args.item_id} not found")

        sections: list[str] = []
        sources: list[str] = []
        if item.is_note:
            sections.append(strip_html(item.note_html))
            sources.append("note")
        elif item.is_attachment:
            if item.full_text:
                sections.append(item.full_text)
                sources.append("pdf")
        else:
            if item.abstract:
                sections.append(f"Abstract:\n{item.abstract}")
                sources.append("abstract")
            if args.include_notes:
                for note in self.library.notes(item.id):
                    sections.append(f"Note:\n{strip_html(note.note_html)}")
                if self.library.notes(item.id):
                    sources.append("notes")
            if args.include_pdf:
                pdfs = self.library.pdf_attachments(item.id)
                texts = [a.full_text for a in pdfs if a.full_text]
                if texts:
                    sections.extend(f"Full text:\n{text}" for text in texts)
                    sources.append("pdf")
                elif pdfs and (args.trigger_ocr or config.auto_ocr):
                    logger.info(f"No text for item {item.id}, running OCR on attachment {pdfs[0].id}")
                    text = await self._ocr_attachment(pdfs[0])
                    if text:
                        sections.append(f"Full text:\n{text}")
                        sources.append("ocr")

        content = "\n\n".join(s for s in sections if s)
        if not content:
            hint = " Try trigger_ocr=true." if self.library.pdf_attachments(item.id) else ""
            return ToolResult.fail(f"No readable content found for item {item.id}.{hint}")

        limit = args.max_length if args.max_length is not None else config.max_content_length
        content, truncated = _truncate(content, limit)
        summary = f'Read {len(content)} characters from "{item.title or "Untitled"}"'
        if truncated:
            summary += " (truncated)"
        return ToolResult.ok(
            data={
                "item_id": item.id,
                "title": item.title,
                "content": content,
                "sources": sources,
                "truncated": truncated,
            },
            summary=summary,
        )

    @handler_boundary("search_external")
    async def search_external(self, args: SearchExternalArgs, config: AgentConfig) -> ToolResult:
        response = await self.scholar.search_papers(
            args.query,
            limit=args.limit,
            year=args.year,
            open_access_pdf=bool(args.openAccessPdf),
        )

        papers = []
        for paper in response["data"]:
            doi = (paper.get("externalIds") or {}).get("DOI", "")
            abstract = paper.get("abstract") or ""
            papers.append({
                "paperId": paper.get("paperId"),
                "title": paper.get("title") or "Untitled",
                "authors": [a.get("name") for a in paper.get("authors") or [] if a.get("name")],
                "year": paper.get("year"),
                "venue": paper.get("venue") or "",
                "citationCount": paper.get("citationCount") or 0,
                "abstract": _truncate(abstract, ABSTRACT_PREVIEW_CHARS)[0],
                "has_pdf": bool((paper.get("openAccessPdf") or {}).get("url")),
                "in_library": self.library.find_by_doi(doi) is not None,
            })

        return ToolResult.ok(
            data={"papers": papers, "total": response["total"]},
            summary=f'Found {response["total"]} papers on Semantic Scholar for "{args.query}", returning {len(papers)}',
        )

    @handler_boundary("import_paper")
    async def import_paper(self, args: ImportPaperArgs, config: AgentConfig) -> ToolResult:
        collection = None
        if args.target_collection_id is not None:
            collection = self.library.get_collection(args.target_collection_id)
            if collection is None:
                return ToolResult.fail(f"Collection with ID {args.target_collection_id} not found")
        library_id = collection.library_id if collection else self.library.user_library_id

        paper = await self.scholar.get_paper(args.paper_id)
        doi = (paper.get("externalIds") or {}).get("DOI", "")
        existing = self.library.find_by_doi(doi, library_id=library_id)
        if existing is not None:
            if collection is not None:
                self.library.add_to_collection(existing.id, collection.id)
            return ToolResult.ok(
                data={"item_id": existing.id, "already_in_library": True},
                summary=f'"{existing.title}" is already in the library (ID: {existing.id})',
            )

        item = self.library.create_item(
            title=paper.get("title") or "Untitled",
            item_type=_item_type(paper),
            library_id=library_id,
            creators=_creators(paper.get("authors") or []),
            year=str(paper.get("year") or ""),
            abstract=paper.get("abstract") or "",
            doi=doi,
            url=paper.get("url") or "",
            venue=paper.get("venue") or "",
            collections=[collection.id] if collection else None,
            extra={"semantic_scholar_id": paper.get("paperId") or args.paper_id},
        )
        logger.info(f"Imported paper {args.paper_id} as item {item.id}")

        data: dict[str, Any] = {"item_id": item.id, "already_in_library": False}
        pdf_url = (paper.get("openAccessPdf") or {}).get("url")
        if pdf_url:
            attachment = self.library.create_attachment(item.id, "Full Text PDF", url=pdf_url)
            data["attachment_id"] = attachment.id
            run_ocr = args.trigger_ocr if args.trigger_ocr is not None else config.auto_ocr
            if run_ocr:
                try:
                    await self._ocr_attachment(attachment)
                    data["ocr"] = "complete"
                except (ServiceError, OSError) as e:
                    # The import itself succeeded
                    logger.warning(f"OCR after import of item {item.id} failed: {e}")
                    data["ocr"] = f"failed: {e}"

        summary = f'Imported "{item.title}" (ID: {item.id})'
        if collection is not None:
            summary += f' into collection "{collection.name}"'
        return ToolResult.ok(data=data, summary=summary)
