"""Unit tests for result fusion and deduplication."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from agent_memory.fusion import dedupe_by_content, fuse_memories, recall
from agent_memory.models import Content, Memory


def mem(id, text=None) -> Memory:
    return Memory(
        id=id,
        entity_id="user",
        agent_id="agent",
        room_id="room",
        content=Content(text=text or id),
    )


class TestFuseMemories:
    """Relevance results first, recency remainder appended."""

    def test_merges_without_duplicates(self):
        a, b, c = mem("A"), mem("B"), mem("C")

        fused = fuse_memories([a, b], [b, c])

        assert [m.id for m in fused] == ["A", "B", "C"]

    def test_relevance_copy_wins(self):
        relevant = mem("B", "from search")
        recent = mem("B", "from recency")

        fused = fuse_memories([relevant], [recent])

        assert fused == [relevant]

    def test_never_resorts(self):
        fused = fuse_memories([mem("Z"), mem("A")], [mem("Y"), mem("B")])

        assert [m.id for m in fused] == ["Z", "A", "Y", "B"]

    def test_empty_inputs(self):
        assert fuse_memories([], []) == []
        assert [m.id for m in fuse_memories([], [mem("C")])] == ["C"]

    def test_dedupes_within_a_source(self):
        fused = fuse_memories([mem("A"), mem("A")], [])

        assert [m.id for m in fused] == ["A"]


class TestDedupeByContent:
    def test_keeps_first_of_each_content(self):
        memories = [mem("1", "x"), mem("2", "y"), mem("3", "x")]

        assert [m.id for m in dedupe_by_content(memories)] == ["1", "2"]

    def test_structured_content_counts(self):
        first = Memory(
            entity_id="u", agent_id="a", room_id="r", content=Content(text="x", source="a")
        )
        second = Memory(
            entity_id="u", agent_id="a", room_id="r", content=Content(text="x", source="b")
        )

        assert len(dedupe_by_content([first, second])) == 2


@pytest.mark.asyncio
class TestRecall:
    """Relevant + recent retrieval used by fact lookups."""

    async def test_recall_fuses_search_and_recency(self):
        manager = MagicMock()
        manager.search_memories = AsyncMock(return_value=[mem("A"), mem("B")])
        manager.get_memories = AsyncMock(return_value=[mem("B"), mem("C")])

        result = await recall(manager, embedding=[1.0], room_id="room", count=5, end=99)

        assert [m.id for m in result] == ["A", "B", "C"]
        manager.search_memories.assert_called_once_with(
            embedding=[1.0], room_id="room", agent_id=None, count=5
        )
        manager.get_memories.assert_called_once_with(
            room_id="room", agent_id=None, count=5, start=0, end=99
        )

    async def test_recall_defaults_end_to_now(self):
        manager = MagicMock()
        manager.search_memories = AsyncMock(return_value=[])
        manager.get_memories = AsyncMock(return_value=[])

        await recall(manager, embedding=[1.0], room_id="room")

        assert manager.get_memories.call_args.kwargs["end"] > 0

    async def test_recall_filters_each_query_separately(self):
        """Search can be scoped to one agent while recency reads the whole room."""
        manager = MagicMock()
        manager.search_memories = AsyncMock(return_value=[])
        manager.get_memories = AsyncMock(return_value=[])

        await recall(manager, embedding=[1.0], room_id="room", agent_id="agent-1", end=5)

        assert manager.search_memories.call_args.kwargs["agent_id"] == "agent-1"
        assert manager.get_memories.call_args.kwargs["agent_id"] is None

        await recall(
            manager,
            embedding=[1.0],
            room_id="room",
            agent_id="agent-1",
            recent_agent_id="agent-2",
            end=5,
        )

        assert manager.get_memories.call_args.kwargs["agent_id"] == "agent-2"
