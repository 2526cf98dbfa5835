"""Merging and deduplication of memory result sets."""

import asyncio
import json
from typing import TYPE_CHECKING, Iterable, Optional

from .models import Memory, now_ms

if TYPE_CHECKING:
    from .manager import MemoryManager


def fuse_memories(relevant: Iterable[Memory], recent: Iterable[Memory]) -> list[Memory]:
    """Merge relevance-ranked and recency-ranked results.

    Relevant results come first in their own order, followed by recent
    results whose id was not seen yet. Nothing is re-sorted.
    """
    seen: set[str] = set()
    fused = []
    for memory in [*relevant, *recent]:
        if memory.id in seen:
            continue
        seen.add(memory.id)
        fused.append(memory)
    return fused


def _content_key(memory: Memory) -> str:
    return json.dumps(memory.content.model_dump(), sort_keys=True, default=str)


def dedupe_by_content(memories: Iterable[Memory]) -> list[Memory]:
    """Keep the first memory for each distinct content, preserving order."""
    seen: set[str] = set()
    unique = []
    for memory in memories:
        key = _content_key(memory)
        if key in seen:
            continue
        seen.add(key)
        unique.append(memory)
    return unique


async def recall(
    manager: "MemoryManager",
    embedding: list[float],
    room_id: str,
    count: int = 10,
    agent_id: Optional[str] = None,
    recent_agent_id: Optional[str] = None,
    end: Optional[int] = None,
) -> list[Memory]:
    """Relevant memories followed by recent ones, deduplicated by id.

    Both queries run concurrently. `agent_id` filters the similarity search
    and `recent_agent_id` filters the recency read; each is forwarded as
    given, so a fact lookup can search one agent's memories while reading
    the whole room's recent ones. `end` defaults to now.
    """
    relevant, recent = await asyncio.gather(
        manager.search_memories(
            embedding=embedding, room_id=room_id, agent_id=agent_id, count=count
        ),
        manager.get_memories(
            room_id=room_id,
            agent_id=recent_agent_id,
            count=count,
            start=0,
            end=end if end is not None else now_ms(),
        ),
    )
    return fuse_memories(relevant, recent)
