"""
Clients for the external services the tools call.
"""

from bibliotool.services.http import ServiceError
from bibliotool.services.llm import CompletionClient, LLMError
from bibliotool.services.ocr import DatalabOcrClient, OcrError
from bibliotool.services.scholar import ScholarError, SemanticScholarClient
from bibliotool.services.web_search import (
    FirecrawlProvider,
    ScrapedPage,
    TavilyProvider,
    WebSearchError,
    WebSearchProvider,
    WebSearchResult,
    create_web_provider,
)

__all__ = [
    "CompletionClient",
    "DatalabOcrClient",
    "FirecrawlProvider",
    "LLMError",
    "OcrError",
    "ScholarError",
    "ScrapedPage",
    "SemanticScholarClient",
    "ServiceError",
    "TavilyProvider",
    "WebSearchError",
    "WebSearchProvider",
    "WebSearchResult",
    "create_web_provider",
]
