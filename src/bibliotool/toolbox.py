"""
Composition root.

Builds the stores, service clients, handlers, dispatch table and executor
once, and hands the conversation loop a single object to work with.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from bibliotool.catalog import get_schemas
from bibliotool.config import AgentConfig, ServiceConfig
from bibliotool.dispatch import build_dispatch_table
from bibliotool.executor import ToolExecutor
from bibliotool.handlers import (
    CitationTools,
    CollectionTools,
    ContextTools,
    Handler,
    LibraryTools,
    NoteTools,
    TableTools,
    TagTools,
    WebTools,
)
from bibliotool.safety import PermissionGate
from bibliotool.services import (
    CompletionClient,
    DatalabOcrClient,
    SemanticScholarClient,
    WebSearchProvider,
    create_web_provider,
)
from bibliotool.storage import ContextStore, LibraryStore, TableStore
from bibliotool.types import ToolCall, ToolResult

logger = logging.getLogger(__name__)


class Toolbox:
    """Everything the conversation loop needs to run tools."""

    def __init__(
        self,
        library: LibraryStore | None = None,
        tables: TableStore | None = None,
        context: ContextStore | None = None,
        scholar: SemanticScholarClient | None = None,
        web: WebSearchProvider | None = None,
        ocr: DatalabOcrClient | None = None,
        llm: CompletionClient | None = None,
        config: AgentConfig | None = None,
    ) -> None:
        services = ServiceConfig()
        self.library = library or LibraryStore()
        self.tables = tables or TableStore()
        self.context = context or ContextStore()
        self.scholar = scholar or SemanticScholarClient.from_config(services)
        self.web = web or create_web_provider(services)
        self.ocr = ocr or DatalabOcrClient.from_config(services)
        self.llm = llm or CompletionClient.from_config(services)
        self.config = config or AgentConfig()

        self.handlers: Mapping[str, Handler] = build_dispatch_table(
            library=LibraryTools(self.library, self.scholar, self.ocr),
            tags=TagTools(self.library, self.llm),
            context=ContextTools(self.context, self.library),
            collections=CollectionTools(self.library),
            tables=TableTools(self.tables, self.library, self.llm),
            notes=NoteTools(self.library),
            citations=CitationTools(self.scholar),
            web=WebTools(self.web),
        )
        self.executor = ToolExecutor(self.handlers, gate=PermissionGate())

    @classmethod
    def from_env(cls, **overrides: Any) -> "Toolbox":
        """Build a toolbox whose services and config come from the environment."""
        services = ServiceConfig.from_env()
        if "scholar" not in overrides:
            overrides["scholar"] = SemanticScholarClient.from_config(services)
        if "web" not in overrides:
            overrides["web"] = create_web_provider(services)
        if "ocr" not in overrides:
            overrides["ocr"] = DatalabOcrClient.from_config(services)
        if "llm" not in overrides:
            overrides["llm"] = CompletionClient.from_config(services)
        if "config" not in overrides:
            overrides["config"] = AgentConfig.from_env()
        return cls(**overrides)

    def tool_schemas(self, include_legacy: bool = True) -> list[dict[str, Any]]:
        """OpenAI-format schemas to send with each model request."""
        return get_schemas(include_legacy=include_legacy)

    async def execute_tool_call(
        self, tool_call: ToolCall, config: AgentConfig | None = None
    ) -> ToolResult:
        return await self.executor.execute_tool_call(tool_call, config or self.config)

    async def execute_tool_calls(
        self, tool_calls: Sequence[ToolCall], config: AgentConfig | None = None
    ) -> dict[str, ToolResult]:
        return await self.executor.execute_tool_calls(tool_calls, config or self.config)

    async def aclose(self) -> None:
        await self.scholar.aclose()
        await self.web.aclose()
        await self.ocr.aclose()
        await self.llm.aclose()
        logger.debug("Toolbox clients closed")
