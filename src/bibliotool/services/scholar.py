"""
Semantic Scholar client.

Paper search, paper lookup and the citation graph (papers citing a paper,
papers a paper cites). Requests are spaced to stay under the API's rate
limit: about one per second with an API key, one every three seconds
without.
"""

import asyncio
import logging
import time
from typing import Any

import httpx

from bibliotool.config import ServiceConfig
from bibliotool.services.http import ServiceError, default_timeout, json_body, request_with_retry

logger = logging.getLogger(__name__)

PAPER_FIELDS = ",".join([
    "paperId",
    "corpusId",
    "title",
    "abstract",
    "year",
    "citationCount",
    "authors",
    "openAccessPdf",
    "url",
    "venue",
    "publicationTypes",
    "publicationDate",
    "externalIds",
    "fieldsOfStudy",
    "tldr",
])

GRAPH_FIELDS = ",".join([
    "paperId",
    "title",
    "authors",
    "year",
    "citationCount",
    "url",
    "openAccessPdf",
])

AUTHENTICATED_INTERVAL = 1.1
UNAUTHENTICATED_INTERVAL = 3.0


class ScholarError(ServiceError):
    """Error from the Semantic Scholar API."""
    pass


class SemanticScholarClient:
    """Async client for the Semantic Scholar Graph API."""

    def __init__(
        self,
        api_key: str = "",
        base_url: str = "https://api.semanticscholar.org/graph/v1",
        min_interval: float | None = None,
        client: httpx.AsyncClient | None = None,
        max_retries: int = 2,
        retry_delay: float = 2.0,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        if min_interval is None:
            min_interval = AUTHENTICATED_INTERVAL if api_key else UNAUTHENTICATED_INTERVAL
        self.min_interval = min_interval
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._client = client or httpx.AsyncClient(timeout=default_timeout())
        self._lock = asyncio.Lock()
        self._last_request = 0.0

    @classmethod
    def from_config(cls, config: ServiceConfig) -> "SemanticScholarClient":
        return cls(api_key=config.semantic_scholar_api_key, base_url=config.semantic_scholar_base_url)

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        async with self._lock:
            elapsed = time.monotonic() - self._last_request
            if elapsed < self.min_interval:
                await asyncio.sleep(self.min_interval - elapsed)
            self._last_request = time.monotonic()

        headers = {"x-api-key": self.api_key} if self.api_key else {}
        logger.debug(f"Semantic Scholar GET {path} {params}")
        response = await request_with_retry(
            self._client,
            "GET",
            f"{self.base_url}{path}",
            params=params,
            headers=headers,
            error_cls=ScholarError,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
        )
        return json_body(response, ScholarError)

    async def search_papers(
        self,
        query: str,
        limit: int = 10,
        year: str | None = None,
        open_access_pdf: bool = False,
        offset: int = 0,
    ) -> dict[str, Any]:
        """Relevance search. Returns ``{"total", "offset", "data"}``."""
        params: dict[str, Any] = {
            "query": query,
            "fields": PAPER_FIELDS,
            "limit": max(1, min(100, limit)),
        }
        if offset:
            params["offset"] = offset
        if year:
            params["year"] = year
        if open_access_pdf:
            params["openAccessPdf"] = ""
        data = await self._get("/paper/search", params)
        data.setdefault("data", [])
        data.setdefault("total", len(data["data"]))
        return data

    async def get_paper(self, paper_id: str) -> dict[str, Any]:
        return await self._get(f"/paper/{paper_id}", {"fields": PAPER_FIELDS})

    async def get_citations(self, paper_id: str, limit: int = 10) -> dict[str, Any]:
        """Papers citing paper_id. Each entry is the citing paper plus intents."""
        raw = await self._get(
            f"/paper/{paper_id}/citations",
            {"fields": f"{GRAPH_FIELDS},intents,isInfluential", "limit": limit},
        )
        papers = [
            {**(entry.get("citingPaper") or {}), "intents": entry.get("intents") or [],
             "isInfluential": bool(entry.get("isInfluential"))}
            for entry in raw.get("data") or []
        ]
        return {"total": raw.get("total", len(papers)), "data": papers}

    async def get_references(self, paper_id: str, limit: int = 10) -> dict[str, Any]:
        """Papers cited by paper_id."""
        raw = await self._get(
            f"/paper/{paper_id}/references",
            {"fields": f"{GRAPH_FIELDS},intents,isInfluential", "limit": limit},
        )
        papers = [
            {**(entry.get("citedPaper") or {}), "intents": entry.get("intents") or [],
             "isInfluential": bool(entry.get("isInfluential"))}
            for entry in raw.get("data") or []
        ]
        return {"total": raw.get("total", len(papers)), "data": papers}

    async def aclose(self) -> None:
        await self._client.aclose()
