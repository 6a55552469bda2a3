"""
Shared fixtures: a seeded in-memory library and a toolbox wired to mocked
external services.
"""

import json
from dataclasses import dataclass
from unittest.mock import AsyncMock, MagicMock

import pytest

from bibliotool.config import AgentConfig
from bibliotool.services import (
    CompletionClient,
    DatalabOcrClient,
    SemanticScholarClient,
    WebSearchProvider,
)
from bibliotool.storage import (
    Collection,
    ContextStore,
    Creator,
    Library,
    LibraryItem,
    LibraryStore,
    TableStore,
)
from bibliotool.toolbox import Toolbox
from bibliotool.types import ToolCall


@dataclass
class SeededLibrary:
    store: LibraryStore
    ml: Collection
    vision: Collection
    attention: LibraryItem
    resnet: LibraryItem
    attention_note: LibraryItem
    attention_pdf: LibraryItem
    group_library: Library
    group_collection: Collection
    group_paper: LibraryItem


@pytest.fixture
def seeded() -> SeededLibrary:
    """A user library with two papers and a group library with one."""
    store = LibraryStore()
    ml = store.create_collection("Machine Learning")
    vision = store.create_collection("Vision", parent_id=ml.id)

    attention = store.create_item(
        "Attention Is All You Need",
        creators=[Creator("Ashish", "Vaswani"), Creator("Noam", "Shazeer")],
        year="2017",
        abstract="We propose the Transformer, based solely on attention mechanisms.",
        doi="10.48550/arXiv.1706.03762",
        venue="NeurIPS",
        tags=["nlp"],
        collections=[ml.id],
    )
    resnet = store.create_item(
        "Deep Residual Learning for Image Recognition",
        item_type="conferencePaper",
        creators=[Creator("Kaiming", "He")],
        year="2016",
        abstract="Residual networks ease the training of very deep networks.",
        tags=["vision"],
        collections=[vision.id],
    )
    attention_note = store.create_note("<p>Key idea: self-attention</p>", parent_id=attention.id)
    attention_pdf = store.create_attachment(
        attention.id, "Full Text PDF", full_text="The dominant sequence transduction models..."
    )

    group_library = store.add_library("Lab Group", group_id=42)
    group_collection = store.create_collection("Lab Reading", library_id=group_library.id)
    group_paper = store.create_item(
        "Group Paper on Attention",
        library_id=group_library.id,
        year="2020",
        collections=[group_collection.id],
    )

    return SeededLibrary(
        store=store,
        ml=ml,
        vision=vision,
        attention=attention,
        resnet=resnet,
        attention_note=attention_note,
        attention_pdf=attention_pdf,
        group_library=group_library,
        group_collection=group_collection,
        group_paper=group_paper,
    )


@pytest.fixture
def scholar():
    return MagicMock(spec=SemanticScholarClient)


@pytest.fixture
def web():
    provider = MagicMock(spec=WebSearchProvider)
    provider.display_name = "Firecrawl"
    provider.is_configured.return_value = True
    return provider


@pytest.fixture
def ocr():
    client = MagicMock(spec=DatalabOcrClient)
    client.is_configured.return_value = True
    return client


@pytest.fixture
def llm():
    client = MagicMock(spec=CompletionClient)
    client.complete = AsyncMock(return_value="answer")
    return client


@pytest.fixture
def config() -> AgentConfig:
    return AgentConfig()


@pytest.fixture
def toolbox(seeded: SeededLibrary, scholar, web, ocr, llm, config: AgentConfig) -> Toolbox:
    return Toolbox(
        library=seeded.store,
        tables=TableStore(),
        context=ContextStore(),
        scholar=scholar,
        web=web,
        ocr=ocr,
        llm=llm,
        config=config,
    )


@pytest.fixture
def invoke(toolbox: Toolbox):
    """Run one tool call through the full executor pipeline."""

    async def run(name: str, /, **arguments):
        call = ToolCall(id=f"call_{name}", name=name, arguments=json.dumps(arguments))
        return await toolbox.execute_tool_call(call)

    return run
