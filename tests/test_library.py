"""
Tests for the core library tools: search, metadata, content and import.
"""

import json

import pytest
import respx
from httpx import Response

from bibliotool.config import AgentConfig, LibraryScope
from bibliotool.services.ocr import DatalabOcrClient, OcrError
from bibliotool.toolbox import Toolbox
from bibliotool.types import ToolCall


async def run_with(toolbox, config: AgentConfig, name: str, **arguments):
    call = ToolCall(id="call_1", name=name, arguments=json.dumps(arguments))
    return await toolbox.execute_tool_call(call, config)


class TestSearchLibrary:
    @pytest.mark.asyncio
    async def test_user_scope_by_default(self, invoke, seeded):
        result = await invoke("search_library", query="attention")

        assert [r["id"] for r in result.data["results"]] == [seeded.attention.id]
        entry = result.data["results"][0]
        assert entry["authors"] == ["Ashish Vaswani", "Noam Shazeer"]
        assert entry["snippet"].startswith("We propose the Transformer")

    @pytest.mark.asyncio
    async def test_all_scope_includes_group_libraries(self, toolbox, seeded):
        config = AgentConfig(library_scope=LibraryScope.parse("all"))
        result = await run_with(toolbox, config, "search_library", query="attention")

        ids = {r["id"] for r in result.data["results"]}
        assert ids == {seeded.attention.id, seeded.group_paper.id}

    @pytest.mark.asyncio
    async def test_collection_scope_includes_subcollections(self, toolbox, seeded):
        """A collection scope covers every collection nested beneath it."""
        config = AgentConfig(library_scope=LibraryScope.parse(f"collection:{seeded.ml.id}"))
        result = await run_with(toolbox, config, "search_library", query="")

        assert {r["id"] for r in result.data["results"]} == {seeded.attention.id, seeded.resnet.id}

    @pytest.mark.asyncio
    async def test_filters(self, invoke, seeded):
        by_year = await invoke("search_library", query="", filters={"year_from": 2017})
        by_type = await invoke("search_library", query="", filters={"item_types": ["conferencePaper"]})
        by_author = await invoke("search_library", query="", filters={"authors": ["shazeer"]})
        by_collection = await invoke("search_library", query="", filters={"collection": "vision"})

        assert [r["id"] for r in by_year.data["results"]] == [seeded.attention.id]
        assert [r["id"] for r in by_type.data["results"]] == [seeded.resnet.id]
        assert [r["id"] for r in by_author.data["results"]] == [seeded.attention.id]
        assert [r["id"] for r in by_collection.data["results"]] == [seeded.resnet.id]

    @pytest.mark.asyncio
    async def test_body_text_matches(self, invoke, seeded):
        result = await invoke("search_library", query="transduction")
        assert [r["id"] for r in result.data["results"]] == [seeded.attention.id]

    @pytest.mark.asyncio
    async def test_configured_maximum_caps_limit(self, toolbox):
        """The configured maximum wins over a larger requested limit."""
        config = AgentConfig(max_search_results=1, include_content=False)
        result = await run_with(toolbox, config, "search_library", query="", limit=10)

        assert result.data["total"] == 2
        assert len(result.data["results"]) == 1
        assert "snippet" not in result.data["results"][0]

    @pytest.mark.asyncio
    async def test_limit_out_of_range(self, invoke):
        result = await invoke("search_library", query="x", limit=51)
        assert result.error.startswith("Validation Error: limit: ")


class TestItemMetadata:
    @pytest.mark.asyncio
    async def test_metadata_includes_related_records(self, invoke, seeded):
        result = await invoke("get_item_metadata", item_id=seeded.attention.id)

        assert result.data["doi"] == "10.48550/arXiv.1706.03762"
        assert result.data["collection_names"] == ["Machine Learning"]
        assert result.data["notes"] == [seeded.attention_note.id]
        assert result.data["attachments"] == [{
            "id": seeded.attention_pdf.id,
            "title": "Full Text PDF",
            "content_type": "application/pdf",
            "has_text": True,
        }]

    @pytest.mark.asyncio
    async def test_missing_item(self, invoke):
        result = await invoke("get_item_metadata", item_id=999)
        assert result.error == "Item with ID 999 not found"


class TestReadItemContent:
    @pytest.mark.asyncio
    async def test_reads_every_source(self, invoke, seeded):
        result = await invoke("read_item_content", item_id=seeded.attention.id)

        assert result.data["sources"] == ["abstract", "notes", "pdf"]
        content = result.data["content"]
        assert content.startswith("Abstract:\nWe propose the Transformer")
        assert "Note:\nKey idea: self-attention" in content
        assert content.endswith("Full text:\nThe dominant sequence transduction models...")
        assert result.data["truncated"] is False

    @pytest.mark.asyncio
    async def test_sources_can_be_excluded(self, invoke, seeded):
        result = await invoke(
            "read_item_content", item_id=seeded.attention.id, include_notes=False, include_pdf=False
        )
        assert result.data["sources"] == ["abstract"]

    @pytest.mark.asyncio
    async def test_max_length_truncates(self, invoke, seeded):
        result = await invoke("read_item_content", item_id=seeded.attention.id, max_length=10)

        assert result.data["content"] == "Abstract:\n"
        assert result.data["truncated"] is True
        assert result.summary.endswith("(truncated)")

    @pytest.mark.asyncio
    async def test_reading_a_note_directly(self, invoke, seeded):
        result = await invoke("read_item_content", item_id=seeded.attention_note.id)

        assert result.data["content"] == "Key idea: self-attention"
        assert result.data["sources"] == ["note"]

    @pytest.mark.asyncio
    async def test_ocr_on_request(self, invoke, seeded, ocr):
        """With no extracted text, trigger_ocr downloads and converts the PDF."""
        pdf = seeded.store.create_attachment(seeded.resnet.id, "PDF", url="https://example.org/resnet.pdf")
        ocr.download_pdf.return_value = b"%PDF-1.7"
        ocr.convert_pdf.return_value = "Residual learning framework"

        result = await invoke("read_item_content", item_id=seeded.resnet.id, trigger_ocr=True)

        assert result.data["sources"] == ["abstract", "ocr"]
        assert "Residual learning framework" in result.data["content"]
        assert pdf.full_text == "Residual learning framework"
        ocr.download_pdf.assert_awaited_once_with("https://example.org/resnet.pdf")

    @pytest.mark.asyncio
    async def test_no_content(self, invoke, seeded, ocr):
        result = await invoke("read_item_content", item_id=seeded.group_paper.id)

        assert result.error == f"No readable content found for item {seeded.group_paper.id}."
        ocr.convert_pdf.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_content_hints_at_ocr(self, invoke, seeded):
        seeded.store.create_attachment(seeded.group_paper.id, "PDF", url="https://example.org/g.pdf")
        result = await invoke("read_item_content", item_id=seeded.group_paper.id)
        assert result.error.endswith("Try trigger_ocr=true.")


class TestSearchExternal:
    @pytest.mark.asyncio
    async def test_marks_papers_already_in_library(self, invoke, scholar):
        scholar.search_papers.return_value = {
            "total": 1,
            "data": [{
                "paperId": "204e3073870fae3d05bcbc2f6a8e263d9b72e776",
                "title": "Attention Is All You Need",
                "authors": [{"name": "Ashish Vaswani"}],
                "year": 2017,
                "externalIds": {"DOI": "10.48550/ARXIV.1706.03762"},
                "openAccessPdf": {"url": "https://arxiv.org/pdf/1706.03762"},
            }],
        }
        result = await invoke("search_external", query="transformer", year="2017-", openAccessPdf=True)

        paper = result.data["papers"][0]
        assert paper["in_library"] is True
        assert paper["has_pdf"] is True
        assert paper["citationCount"] == 0
        scholar.search_papers.assert_awaited_once_with(
            "transformer", limit=10, year="2017-", open_access_pdf=True
        )

    @pytest.mark.asyncio
    async def test_empty_query_rejected(self, invoke, scholar):
        result = await invoke("search_external", query="")

        assert result.error.startswith("Validation Error: query: ")
        scholar.search_papers.assert_not_awaited()


class TestImportPaper:
    PAPER = {
        "paperId": "p-1",
        "title": "Mask R-CNN",
        "authors": [{"name": "Kaiming He"}, {"name": "Georgia Gkioxari"}],
        "year": 2017,
        "abstract": "A framework for object instance segmentation.",
        "venue": "ICCV",
        "publicationTypes": ["Conference"],
        "externalIds": {"DOI": "10.1109/ICCV.2017.322"},
        "openAccessPdf": {"url": "https://example.org/maskrcnn.pdf"},
        "url": "https://www.semanticscholar.org/paper/p-1",
    }

    @pytest.mark.asyncio
    async def test_import_into_collection(self, invoke, seeded, scholar):
        scholar.get_paper.return_value = self.PAPER
        result = await invoke("import_paper", paper_id="p-1", target_collection_id=seeded.vision.id)

        item = seeded.store.get_item(result.data["item_id"])
        assert result.data["already_in_library"] is False
        assert item.item_type == "conferencePaper"
        assert item.year == "2017"
        assert [(c.first_name, c.last_name) for c in item.creators] == [
            ("Kaiming", "He"), ("Georgia", "Gkioxari"),
        ]
        assert item.collections == [seeded.vision.id]
        assert item.extra == {"semantic_scholar_id": "p-1"}
        attachment = seeded.store.get_item(result.data["attachment_id"])
        assert attachment.url == "https://example.org/maskrcnn.pdf"
        assert "ocr" not in result.data
        assert result.summary.endswith('into collection "Vision"')

    @pytest.mark.asyncio
    async def test_existing_doi_is_not_duplicated(self, invoke, seeded, scholar):
        scholar.get_paper.return_value = {
            "paperId": "p-2",
            "title": "Attention Is All You Need",
            "externalIds": {"DOI": "10.48550/arXiv.1706.03762"},
        }
        result = await invoke("import_paper", paper_id="p-2")

        assert result.data == {"item_id": seeded.attention.id, "already_in_library": True}

    @pytest.mark.asyncio
    async def test_ocr_failure_does_not_fail_import(self, invoke, seeded, scholar, ocr):
        """The paper is imported even when OCR of its PDF fails."""
        scholar.get_paper.return_value = self.PAPER
        ocr.download_pdf.side_effect = OcrError("HTTP 404: gone")
        result = await invoke("import_paper", paper_id="p-1", trigger_ocr=True)

        assert result.success
        assert result.data["ocr"] == "failed: HTTP 404: gone"
        assert seeded.store.get_item(result.data["item_id"]) is not None

    @pytest.mark.asyncio
    async def test_non_json_ocr_reply_does_not_fail_import(self, seeded, scholar, web, llm):
        """A gateway page in place of the OCR reply is recorded, and the import stands."""
        scholar.get_paper.return_value = self.PAPER
        ocr = DatalabOcrClient(api_key="dl-key", base_url="https://ocr.test/api/v1", poll_interval=0)
        toolbox = Toolbox(library=seeded.store, scholar=scholar, web=web, ocr=ocr, llm=llm)
        try:
            with respx.mock(assert_all_called=True) as respx_mock:
                respx_mock.get("https://example.org/maskrcnn.pdf").mock(
                    return_value=Response(200, content=b"%PDF-1.7")
                )
                respx_mock.post("https://ocr.test/api/v1/marker").mock(
                    return_value=Response(200, text="<html>gateway</html>")
                )
                result = await run_with(toolbox, AgentConfig(), "import_paper", paper_id="p-1", trigger_ocr=True)
        finally:
            await ocr.aclose()

        assert result.success
        assert result.data["ocr"] == "failed: Invalid JSON response (HTTP 200)"
        assert seeded.store.get_item(result.data["item_id"]).title == "Mask R-CNN"
        assert seeded.store.get_item(result.data["attachment_id"]).full_text == ""

    @pytest.mark.asyncio
    async def test_missing_collection_fails_before_lookup(self, invoke, scholar):
        """The target collection is checked before calling Semantic Scholar."""
        result = await invoke("import_paper", paper_id="p-1", target_collection_id=999)

        assert result.error == "Collection with ID 999 not found"
        scholar.get_paper.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_scholar_error_becomes_failure(self, invoke, scholar):
        scholar.get_paper.side_effect = RuntimeError("HTTP 404: Paper not found")
        result = await invoke("import_paper", paper_id="nope")
        assert result.error == "HTTP 404: Paper not found"


class TestGenerateItemTags:
    @pytest.mark.asyncio
    async def test_adds_new_tags(self, invoke, seeded, llm):
        llm.complete.return_value = "Transformers, NLP, - attention, nlp\nsequence models"
        result = await invoke("generate_item_tags", item_id=seeded.attention.id)

        assert result.data["suggested"] == ["Transformers", "NLP", "attention", "sequence models"]
        assert result.data["added"] == ["Transformers", "NLP", "attention", "sequence models"]
        assert seeded.attention.tags[0] == "nlp"
        prompt = llm.complete.await_args.args[0]
        assert "Existing tags: nlp" in prompt

    @pytest.mark.asyncio
    async def test_empty_reply(self, invoke, seeded, llm):
        llm.complete.return_value = " , \n"
        result = await invoke("generate_item_tags", item_id=seeded.attention.id)
        assert result.error == "The model did not suggest any tags"

    @pytest.mark.asyncio
    async def test_notes_cannot_be_tagged(self, invoke, seeded, llm):
        result = await invoke("generate_item_tags", item_id=seeded.attention_note.id)

        assert result.error == f"Item {seeded.attention_note.id} is not a regular item"
        llm.complete.assert_not_awaited()
