"""
Configuration for tool execution.

All configuration is loaded from environment variables. AgentConfig is
request-scoped and read-only from a handler's point of view; ServiceConfig
carries the credentials and endpoints of the external services.
"""

import json
import logging
import os
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

logger = logging.getLogger(__name__)

PermissionHandler = Callable[[str, str], Awaitable[bool]]


class ScopeKind(str, Enum):
    """Which part of the reference library the agent may search."""
    USER = "user"
    GROUP = "group"
    COLLECTION = "collection"
    ALL = "all"


@dataclass(frozen=True)
class LibraryScope:
    """
    Search scope for library tools.

    Parsed from strings such as ``user``, ``all``, ``group:4``,
    ``collection:12`` or ``collection:1:12`` (library, collection).
    Anything unrecognized falls back to the user library.
    """
    kind: ScopeKind = ScopeKind.USER
    group_id: int | None = None
    collection_id: int | None = None
    library_id: int | None = None

    @classmethod
    def parse(cls, value: str | None) -> "LibraryScope":
        if not value or value == "user":
            return cls()
        if value == "all":
            return cls(kind=ScopeKind.ALL)

        parts = value.split(":")
        try:
            if parts[0] == "group" and len(parts) == 2:
                return cls(kind=ScopeKind.GROUP, group_id=int(parts[1]))
            if parts[0] == "collection" and len(parts) == 3:
                return cls(
                    kind=ScopeKind.COLLECTION,
                    library_id=int(parts[1]),
                    collection_id=int(parts[2]),
                )
            if parts[0] == "collection" and len(parts) == 2:
                return cls(kind=ScopeKind.COLLECTION, collection_id=int(parts[1]))
        except ValueError:
            pass

        logger.warning(f"Unrecognized library scope '{value}', using user library")
        return cls()


def _int_env(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}")
        return default
    if value < minimum:
        logger.warning(f"Ignoring {name}={value}, must be at least {minimum}")
        return default
    return value


def _float_env(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}")
        return default
    if value < minimum:
        logger.warning(f"Ignoring {name}={value}, must be at least {minimum}")
        return default
    return value


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _permissions(name: str) -> dict[str, str]:
    raw = os.getenv(name)
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Ignoring malformed {name}: {e}")
        return {}
    if not isinstance(parsed, dict):
        logger.warning(f"Ignoring {name}: expected a JSON object")
        return {}
    return {str(tool): str(policy) for tool, policy in parsed.items()}


@dataclass(frozen=True)
class AgentConfig:
    """
    Request-scoped configuration shared by every tool call of a turn.

    tool_permissions maps a tool name (or ``*``) to ``allow``, ``ask`` or
    ``deny`` and is consulted only for destructive tools. The
    permission_handler is the asynchronous approval channel used by
    ``ask``; without one, ``ask`` denies.
    """
    library_scope: LibraryScope = field(default_factory=LibraryScope)
    max_search_results: int = 20
    include_content: bool = True
    max_content_length: int = 50000
    max_agent_iterations: int = 1000
    max_tool_retries: int = 2
    auto_ocr: bool = False
    require_approval_for_destructive: bool = False
    tool_permissions: Mapping[str, str] = field(default_factory=dict)
    permission_handler: PermissionHandler | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "tool_permissions", MappingProxyType(dict(self.tool_permissions))
        )

    @classmethod
    def from_env(cls, permission_handler: PermissionHandler | None = None) -> "AgentConfig":
        """Load configuration from environment variables."""
        return cls(
            library_scope=LibraryScope.parse(os.getenv("BIBLIOTOOL_LIBRARY_SCOPE")),
            max_search_results=_int_env("BIBLIOTOOL_MAX_RESULTS", 20),
            include_content=_flag("BIBLIOTOOL_INCLUDE_CONTENT", True),
            max_content_length=_int_env("BIBLIOTOOL_MAX_CONTENT_LENGTH", 50000),
            max_agent_iterations=_int_env("BIBLIOTOOL_MAX_ITERATIONS", 1000),
            max_tool_retries=_int_env("BIBLIOTOOL_MAX_TOOL_RETRIES", 2, minimum=0),
            auto_ocr=_flag("BIBLIOTOOL_AUTO_OCR", False),
            require_approval_for_destructive=_flag(
                "BIBLIOTOOL_REQUIRE_APPROVAL_FOR_DESTRUCTIVE", False
            ),
            tool_permissions=_permissions("BIBLIOTOOL_TOOL_PERMISSIONS"),
            permission_handler=permission_handler,
        )


@dataclass
class ServiceConfig:
    """Endpoints and credentials for the external services."""
    semantic_scholar_api_key: str = ""
    semantic_scholar_base_url: str = "https://api.semanticscholar.org/graph/v1"
    web_search_provider: str = "firecrawl"
    firecrawl_api_key: str = ""
    firecrawl_base_url: str = "https://api.firecrawl.dev/v1"
    tavily_api_key: str = ""
    tavily_base_url: str = "https://api.tavily.com"
    datalab_api_key: str = ""
    datalab_base_url: str = "https://www.datalab.to/api/v1"
    ocr_poll_interval: float = 2.0
    ocr_max_polls: int = 300
    llm_base_url: str = "http://localhost:8000/v1"
    llm_api_key: str = ""
    llm_model: str = ""
    llm_temperature: float = 0.3

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        """Load configuration from environment variables."""
        return cls(
            semantic_scholar_api_key=os.getenv("SEMANTIC_SCHOLAR_API_KEY", ""),
            semantic_scholar_base_url=os.getenv(
                "SEMANTIC_SCHOLAR_BASE_URL", "https://api.semanticscholar.org/graph/v1"
            ),
            web_search_provider=os.getenv("WEB_SEARCH_PROVIDER", "firecrawl"),
            firecrawl_api_key=os.getenv("FIRECRAWL_API_KEY", ""),
            firecrawl_base_url=os.getenv("FIRECRAWL_BASE_URL", "https://api.firecrawl.dev/v1"),
            tavily_api_key=os.getenv("TAVILY_API_KEY", ""),
            tavily_base_url=os.getenv("TAVILY_BASE_URL", "https://api.tavily.com"),
            datalab_api_key=os.getenv("DATALAB_API_KEY", ""),
            datalab_base_url=os.getenv("DATALAB_BASE_URL", "https://www.datalab.to/api/v1"),
            ocr_poll_interval=_float_env("DATALAB_POLL_INTERVAL", 2.0),
            ocr_max_polls=_int_env("DATALAB_MAX_POLLS", 300),
            llm_base_url=os.getenv("LLM_BASE_URL", "http://localhost:8000/v1"),
            llm_api_key=os.getenv("LLM_API_KEY", ""),
            llm_model=os.getenv("LLM_MODEL", ""),
            llm_temperature=_float_env("LLM_TEMPERATURE", 0.3),
        )
