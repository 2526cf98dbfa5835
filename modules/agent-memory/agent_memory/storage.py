"""Persistence collaborator contract and a Qdrant-backed implementation."""

import logging
import os
import re
from pathlib import Path
from typing import Optional, Protocol, Sequence

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchAny,
    MatchValue,
    PointIdsList,
    PointStruct,
    Range,
    VectorParams,
)

from .fusion import dedupe_by_content
from .models import Content, Memory

logger = logging.getLogger(__name__)

VECTOR_NAME = "embedding"


class DatabaseAdapter(Protocol):
    """Durable memory store, scoped per call by a logical table name."""

    async def get_memories(
        self,
        table_name: str,
        room_id: str,
        agent_id: Optional[str] = None,
        start: Optional[int] = None,
        end: Optional[int] = None,
        count: int = 10,
        unique: bool = True,
    ) -> list[Memory]: ...

    async def search_memories(
        self,
        table_name: str,
        room_id: str,
        embedding: list[float],
        agent_id: Optional[str] = None,
        count: Optional[int] = None,
    ) -> list[Memory]: ...

    async def get_memories_by_room_ids(
        self, table_name: str, room_ids: Sequence[str], agent_id: Optional[str] = None
    ) -> list[Memory]: ...

    async def get_memory_by_id(self, table_name: str, id: str) -> Optional[Memory]: ...

    async def count_memories(
        self, table_name: str, room_id: str, agent_id: Optional[str] = None
    ) -> int: ...

    async def create_memory(self, table_name: str, memory: Memory) -> Memory: ...

    async def remove_memory(self, table_name: str, id: str) -> None: ...

    async def remove_all_memories(self, table_name: str, room_id: str) -> None: ...

    async def get_cached_embeddings(
        self, table_name: str, text: str
    ) -> Optional[list[float]]: ...


class QdrantDatabaseAdapter:
    """Qdrant storage for memories.

    Design decisions:
    - Qdrant embedded mode (local file storage) or ":memory:"
    - One collection per table name, created on first use
    - Named "embedding" vector with cosine distance; memories without an
      embedding are stored without a vector and never match a search
    - The raw embedding also lives in the payload, since Qdrant normalizes
      cosine vectors and reads must return what was written
    - Recency queries page through every matching point before sorting
    """

    TABLE_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")

    def __init__(self, config: Optional[dict] = None):
        """Initialize storage.

        Args:
            config: Optional configuration:
                - location: Qdrant location, e.g. ":memory:" (overrides storage_root)
                - storage_root: Base directory (default: ~/.agent-memory/db)
                - embedding_dimensions: Vector size (default: 1536)
                - page_size: Points read per scroll request (default: 1000)
        """
        config = config or {}

        location = config.get("location")
        if location:
            self.client = AsyncQdrantClient(location=location)
        else:
            storage_root = config.get(
                "storage_root", os.path.expanduser("~/.agent-memory/db")
            )
            storage_path = Path(storage_root)
            storage_path.mkdir(parents=True, exist_ok=True)
            self.client = AsyncQdrantClient(path=str(storage_path / "qdrant.db"))

        self.dimensions = config.get("embedding_dimensions", 1536)
        self.page_size = config.get("page_size", 1000)
        self._collections: set[str] = set()

    async def _collection(self, table_name: str) -> str:
        """Return the collection for a table, creating it if needed."""
        if not self.TABLE_NAME_PATTERN.match(table_name):
            raise ValueError(
                f"Invalid table_name: {table_name}. "
                "Only alphanumeric, underscore, and hyphen allowed."
            )

        collection = f"memories_{table_name}"
        if collection in self._collections:
            return collection

        if not await self.client.collection_exists(collection):
            await self.client.create_collection(
                collection_name=collection,
                vectors_config={
                    VECTOR_NAME: VectorParams(
                        size=self.dimensions, distance=Distance.COSINE
                    )
                },
            )
        self._collections.add(collection)
        return collection

    @staticmethod
    def _scope_filter(
        room_ids: Sequence[str],
        agent_id: Optional[str] = None,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> Filter:
        if len(room_ids) == 1:
            conditions = [FieldCondition(key="room_id", match=MatchValue(value=room_ids[0]))]
        else:
            conditions = [FieldCondition(key="room_id", match=MatchAny(any=list(room_ids)))]

        if agent_id is not None:
            conditions.append(FieldCondition(key="agent_id", match=MatchValue(value=agent_id)))

        if start is not None or end is not None:
            conditions.append(FieldCondition(key="created_at", range=Range(gte=start, lte=end)))

        return Filter(must=conditions)

    @staticmethod
    def _to_memory(payload: dict, score: Optional[float] = None) -> Memory:
        return Memory(
            id=payload["id"],
            entity_id=payload["entity_id"],
            agent_id=payload["agent_id"],
            room_id=payload["room_id"],
            content=Content(**payload["content"]),
            embedding=payload.get("embedding"),
            created_at=payload["created_at"],
            similarity=score,
        )

    async def _scroll_all(self, collection: str, query_filter: Filter) -> list[dict]:
        """Payloads of every point matching the filter, across all pages."""
        payloads = []
        offset = None
        while True:
            points, offset = await self.client.scroll(
                collection_name=collection,
                scroll_filter=query_filter,
                limit=self.page_size,
                offset=offset,
                with_payload=True,
                with_vectors=False,
            )
            payloads.extend(point.payload for point in points)
            if offset is None:
                return payloads

    async def _recent(self, collection: str, query_filter: Filter) -> list[Memory]:
        memories = [
            self._to_memory(payload)
            for payload in await self._scroll_all(collection, query_filter)
        ]
        memories.sort(key=lambda m: m.created_at, reverse=True)
        return memories

    async def get_memories(
        self,
        table_name: str,
        room_id: str,
        agent_id: Optional[str] = None,
        start: Optional[int] = None,
        end: Optional[int] = None,
        count: int = 10,
        unique: bool = True,
    ) -> list[Memory]:
        """Most recent memories of a room, newest first."""
        collection = await self._collection(table_name)
        memories = await self._recent(
            collection, self._scope_filter([room_id], agent_id, start, end)
        )

        if unique:
            memories = dedupe_by_content(memories)

        return memories[:count]

    async def search_memories(
        self,
        table_name: str,
        room_id: str,
        embedding: list[float],
        agent_id: Optional[str] = None,
        count: Optional[int] = None,
    ) -> list[Memory]:
        """Memories of a room ranked by cosine similarity, best first."""
        collection = await self._collection(table_name)
        response = await self.client.query_points(
            collection_name=collection,
            query=embedding,
            using=VECTOR_NAME,
            query_filter=self._scope_filter([room_id], agent_id),
            limit=count or 10,
            with_payload=True,
        )

        return [self._to_memory(point.payload, point.score) for point in response.points]

    async def get_memories_by_room_ids(
        self, table_name: str, room_ids: Sequence[str], agent_id: Optional[str] = None
    ) -> list[Memory]:
        collection = await self._collection(table_name)
        return await self._recent(collection, self._scope_filter(room_ids, agent_id))

    async def get_memory_by_id(self, table_name: str, id: str) -> Optional[Memory]:
        """Get memory by ID.

        Returns:
            Memory if found, None otherwise
        """
        results = await self.client.retrieve(
            collection_name=await self._collection(table_name), ids=[id], with_payload=True
        )

        if not results:
            return None

        return self._to_memory(results[0].payload)

    async def count_memories(
        self, table_name: str, room_id: str, agent_id: Optional[str] = None
    ) -> int:
        result = await self.client.count(
            collection_name=await self._collection(table_name),
            count_filter=self._scope_filter([room_id], agent_id),
            exact=True,
        )
        return result.count

    async def create_memory(self, table_name: str, memory: Memory) -> Memory:
        """Upsert a memory. An existing id is overwritten."""
        vector = {VECTOR_NAME: memory.embedding} if memory.embedding else {}

        await self.client.upsert(
            collection_name=await self._collection(table_name),
            points=[
                PointStruct(
                    id=memory.id,
                    vector=vector,
                    payload=memory.dict_for_storage(),
                )
            ],
        )
        return memory

    async def remove_memory(self, table_name: str, id: str) -> None:
        await self.client.delete(
            collection_name=await self._collection(table_name),
            points_selector=PointIdsList(points=[id]),
        )

    async def remove_all_memories(self, table_name: str, room_id: str) -> None:
        await self.client.delete(
            collection_name=await self._collection(table_name),
            points_selector=FilterSelector(filter=self._scope_filter([room_id])),
        )

    async def get_cached_embeddings(
        self, table_name: str, text: str
    ) -> Optional[list[float]]:
        """Embedding of a stored memory with exactly this text, if any."""
        payloads = await self._scroll_all(
            await self._collection(table_name),
            Filter(must=[FieldCondition(key="content.text", match=MatchValue(value=text))]),
        )

        for payload in payloads:
            embedding = payload.get("embedding")
            if embedding:
                logger.debug("Found stored embedding for text in %s", table_name)
                return embedding
        return None
