"""
Tests for the context tool and its legacy aliases.
"""

import pytest


class TestAddToContext:
    @pytest.mark.asyncio
    async def test_add_resolves_papers_and_collections(self, invoke, seeded):
        result = await invoke(
            "context",
            action="add",
            items=[
                {"type": "paper", "id": seeded.attention.id},
                {"type": "collection", "name": "machine learning"},
                {"type": "tag", "name": "nlp"},
            ],
        )

        assert result.success
        assert result.data["added_count"] == 3
        assert result.data["added"] == [
            {"type": "paper", "id": seeded.attention.id, "name": "Attention Is All You Need"},
            {"type": "collection", "id": seeded.ml.id, "name": "Machine Learning"},
            {"type": "tag", "id": "nlp", "name": "nlp"},
        ]
        assert len(result.data["current_items"]) == 3

    @pytest.mark.asyncio
    async def test_unresolvable_entries_are_reported(self, invoke, seeded):
        result = await invoke(
            "add_to_context",
            items=[
                {"type": "paper", "id": 999},
                {"type": "author"},
                {"type": "collection", "name": "Nope"},
                {"type": "topic", "name": "transformers"},
            ],
        )

        assert result.success
        assert result.data["added_count"] == 1
        assert result.data["failures"] == [
            "Item with ID 999 not found",
            "Author requires a name",
            'Collection "Nope" not found',
        ]

    @pytest.mark.asyncio
    async def test_adding_twice_does_not_duplicate(self, invoke, toolbox, seeded):
        """Re-adding a pinned item counts as added but keeps one entry."""
        entry = {"type": "paper", "id": seeded.resnet.id}
        await invoke("context", action="add", items=[entry])
        result = await invoke("context", action="add", items=[entry])

        assert result.data["added_count"] == 1
        assert len(toolbox.context) == 1

    @pytest.mark.asyncio
    async def test_group_collection_needs_an_id(self, invoke, seeded):
        """Name lookup only searches the user library."""
        by_name = await invoke("context", action="add", items=[{"type": "collection", "name": "Lab Reading"}])
        by_id = await invoke(
            "context", action="add", items=[{"type": "collection", "id": seeded.group_collection.id}]
        )

        assert by_name.data["added_count"] == 0
        assert by_id.data["added_count"] == 1

    @pytest.mark.asyncio
    async def test_empty_items_rejected(self, invoke):
        result = await invoke("context", action="add", items=[])
        assert result.error.startswith("Validation Error: items: ")


class TestRemoveAndList:
    @pytest.mark.asyncio
    async def test_list_empty(self, invoke):
        result = await invoke("list_context")

        assert result.data == {"items": [], "count": 0}
        assert result.summary == "Context is empty"

    @pytest.mark.asyncio
    async def test_list_breakdown(self, invoke, seeded):
        await invoke(
            "context",
            action="add",
            items=[
                {"type": "paper", "id": seeded.attention.id},
                {"type": "paper", "id": seeded.resnet.id},
                {"type": "tag", "name": "nlp"},
            ],
        )
        result = await invoke("context", action="list")

        assert result.data["count"] == 3
        assert result.summary == "Context has 3 items: 2 paper(s), 1 tag(s)"

    @pytest.mark.asyncio
    async def test_remove_counts_actual_removals(self, invoke, seeded):
        """Only entries that were pinned count as removed."""
        await invoke("context", action="add", items=[{"type": "tag", "name": "nlp"}])
        result = await invoke(
            "context",
            action="remove",
            items=[{"type": "tag", "name": "nlp"}, {"type": "paper", "id": seeded.resnet.id}],
        )

        assert result.data["removed_count"] == 1
        assert result.data["failures"] == [f"paper {seeded.resnet.id} is not in context"]
        assert result.data["current_items"] == []

    @pytest.mark.asyncio
    async def test_legacy_remove(self, invoke, seeded):
        await invoke("add_to_context", items=[{"type": "paper", "id": seeded.attention.id}])
        result = await invoke("remove_from_context", items=[{"type": "paper", "id": seeded.attention.id}])

        assert result.data["removed_count"] == 1
        assert result.summary == "Removed 1 of 1 item(s) from context"
