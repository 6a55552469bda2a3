"""
Web search and page reading through the configured provider.
"""

import logging

from bibliotool.config import AgentConfig
from bibliotool.handlers.base import handler_boundary
from bibliotool.schemas import ReadWebPageArgs, SearchWebArgs, WebArgs, WebRead, WebSearch
from bibliotool.services.web_search import WebSearchProvider
from bibliotool.types import ToolResult

logger = logging.getLogger(__name__)


class WebTools:
    """Handlers for the web tool and its legacy aliases."""

    def __init__(self, provider: WebSearchProvider) -> None:
        self.provider = provider

    @handler_boundary("web")
    async def run(self, args: WebArgs, config: AgentConfig) -> ToolResult:
        if isinstance(args, WebSearch):
            return await self.search(args.query, args.limit)
        if isinstance(args, WebRead):
            return await self.read(str(args.url))
        return ToolResult.fail(f"Unknown web action: {getattr(args, 'action', None)}")

    def _not_configured(self) -> ToolResult:
        return ToolResult.fail(
            f"{self.provider.display_name} API is not configured. Please set the API key in settings."
        )

    async def search(self, query: str, limit: int = 5) -> ToolResult:
        if not self.provider.is_configured():
            return self._not_configured()
        results = await self.provider.search(query, limit)
        logger.debug(f"Web search '{query}' returned {len(results)} results")
        return ToolResult.ok(
            data={"results": [r.to_dict() for r in results], "total": len(results)},
            summary=f'Found {len(results)} web results for "{query}"',
        )

    async def read(self, url: str) -> ToolResult:
        if not self.provider.is_configured():
            return self._not_configured()
        page = await self.provider.scrape(url)
        if page is None:
            return ToolResult.fail("Failed to scrape URL or no content returned.")
        return ToolResult.ok(
            data={"markdown": page.markdown, "title": page.title, "url": page.url},
            summary=f"Read {len(page.markdown)} characters from {page.title or page.url}",
        )

    # Legacy aliases

    @handler_boundary("search_web")
    async def search_web(self, args: SearchWebArgs, config: AgentConfig) -> ToolResult:
        return await self.search(args.query, args.limit)

    @handler_boundary("read_webpage")
    async def read_webpage(self, args: ReadWebPageArgs, config: AgentConfig) -> ToolResult:
        return await self.read(str(args.url))
