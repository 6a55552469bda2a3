"""
Web search providers.

Two interchangeable backends, Firecrawl and Tavily, behind one interface:
search the web and read a page as markdown. Which one is active is a
configuration choice; an unconfigured provider reports itself as such
instead of failing on the first request.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from bibliotool.config import ServiceConfig
from bibliotool.services.http import ServiceError, default_timeout, json_body, request_with_retry

logger = logging.getLogger(__name__)


class WebSearchError(ServiceError):
    """Error from a web search provider."""
    pass


@dataclass
class WebSearchResult:
    title: str
    url: str
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "url": self.url, "description": self.description}


@dataclass
class ScrapedPage:
    url: str
    markdown: str
    title: str = ""


class WebSearchProvider(ABC):
    """Interface shared by the web search backends."""

    display_name = "Web search"

    def __init__(self, api_key: str, base_url: str, client: httpx.AsyncClient | None = None) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=default_timeout(read=90.0))

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = await request_with_retry(
            self._client,
            "POST",
            f"{self.base_url}{path}",
            json=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
            error_cls=WebSearchError,
        )
        return json_body(response, WebSearchError)

    @abstractmethod
    async def search(self, query: str, limit: int) -> list[WebSearchResult]:
        """Search the web."""
        pass

    @abstractmethod
    async def scrape(self, url: str) -> ScrapedPage | None:
        """Read a page as markdown. None if nothing could be extracted."""
        pass

    async def aclose(self) -> None:
        await self._client.aclose()


class FirecrawlProvider(WebSearchProvider):
    display_name = "Firecrawl"

    async def search(self, query: str, limit: int) -> list[WebSearchResult]:
        data = await self._post("/search", {"query": query, "limit": limit})
        return [
            WebSearchResult(
                title=entry.get("title") or "",
                url=entry.get("url") or "",
                description=entry.get("description") or "",
            )
            for entry in data.get("data") or []
        ]

    async def scrape(self, url: str) -> ScrapedPage | None:
        data = await self._post("/scrape", {"url": url, "formats": ["markdown"]})
        page = data.get("data") or {}
        markdown = page.get("markdown")
        if not markdown:
            return None
        metadata = page.get("metadata") or {}
        return ScrapedPage(
            url=metadata.get("sourceURL") or url,
            markdown=markdown,
            title=metadata.get("title") or "",
        )


class TavilyProvider(WebSearchProvider):
    display_name = "Tavily"

    async def search(self, query: str, limit: int) -> list[WebSearchResult]:
        data = await self._post("/search", {"query": query, "max_results": limit})
        return [
            WebSearchResult(
                title=entry.get("title") or "",
                url=entry.get("url") or "",
                description=entry.get("content") or "",
            )
            for entry in data.get("results") or []
        ]

    async def scrape(self, url: str) -> ScrapedPage | None:
        data = await self._post("/extract", {"urls": [url]})
        results = data.get("results") or []
        if not results or not results[0].get("raw_content"):
            return None
        first = results[0]
        return ScrapedPage(url=first.get("url") or url, markdown=first["raw_content"])


def create_web_provider(config: ServiceConfig) -> WebSearchProvider:
    """Build the configured provider (Firecrawl unless Tavily is selected)."""
    if config.web_search_provider.lower() == "tavily":
        return TavilyProvider(config.tavily_api_key, config.tavily_base_url)
    if config.web_search_provider.lower() != "firecrawl":
        logger.warning(f"Unknown web search provider '{config.web_search_provider}', using Firecrawl")
    return FirecrawlProvider(config.firecrawl_api_key, config.firecrawl_base_url)
