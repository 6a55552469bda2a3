"""
Tests for the Handler Dispatch Table and the Toolbox that builds it.
"""

import pytest

from bibliotool.schemas import SCHEMAS
from bibliotool.tool_names import LEGACY_TOOLS, ToolName


class TestDispatchTable:
    def test_every_tool_has_a_handler_and_a_schema(self, toolbox):
        names = {name.value for name in ToolName}
        assert set(toolbox.handlers) == names
        assert set(SCHEMAS) == names

    def test_table_is_read_only(self, toolbox):
        with pytest.raises(TypeError):
            toolbox.handlers["search_library"] = None

    def test_legacy_aliases_share_the_unified_handler_object(self, toolbox):
        """Legacy aliases are methods on the same handler instance as their unified tool."""
        assert toolbox.handlers["move_item"].__self__ is toolbox.handlers["collection"].__self__
        assert toolbox.handlers["edit_note"].__self__ is toolbox.handlers["note"].__self__
        assert toolbox.handlers["search_web"].__self__ is toolbox.handlers["web"].__self__

    def test_tool_schemas_without_legacy(self, toolbox):
        names = {s["function"]["name"] for s in toolbox.tool_schemas(include_legacy=False)}
        assert names.isdisjoint({name.value for name in LEGACY_TOOLS})


class TestLegacyEquivalence:
    """A legacy call and its unified action have the same effect."""

    @pytest.mark.asyncio
    async def test_move_item_and_collection_add_item(self, invoke, seeded):
        legacy = await invoke("move_item", item_id=seeded.resnet.id, target_collection_id=seeded.ml.id)
        assert legacy.success
        assert seeded.ml.id in seeded.resnet.collections

        seeded.store.remove_from_collection(seeded.resnet.id, seeded.ml.id)
        unified = await invoke(
            "collection", action="add_item", collection_id=seeded.ml.id, item_ids=[seeded.resnet.id]
        )
        assert unified.success
        assert seeded.ml.id in seeded.resnet.collections

    @pytest.mark.asyncio
    async def test_find_collection_and_collection_find(self, invoke):
        legacy = await invoke("find_collection", name="vision")
        unified = await invoke("collection", action="find", name="vision")
        assert legacy.data == unified.data

    @pytest.mark.asyncio
    async def test_get_citations_and_related_papers(self, invoke, scholar):
        scholar.get_citations.return_value = {"total": 0, "data": []}
        legacy = await invoke("get_citations", paper_id="abc")
        unified = await invoke("related_papers", action="citations", paper_id="abc")

        assert legacy.data == unified.data
        assert scholar.get_citations.await_count == 2
