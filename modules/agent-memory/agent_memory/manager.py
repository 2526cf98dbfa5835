"""Memory manager: one logical memory table on top of the runtime's collaborators."""

import hashlib
import logging
from typing import Optional, Sequence

from .errors import MemoryValidationError, best_effort
from .fusion import dedupe_by_content
from .models import Memory
from .runtime import MemoryRuntime

logger = logging.getLogger(__name__)


class MemoryManager:
    """Serves a single memory table (facts, messages, documents, ...).

    Design decisions:
    - table_name is fixed per instance and injected into every delegated call
    - agent_id filters are passed through as given, never defaulted to the
      runtime's own agent id
    - Only derived embedding vectors are cached, never whole memories
    - Cache failures are logged and swallowed; collaborator failures propagate
    """

    DEFAULT_COUNT = 10

    def __init__(self, table_name: str, runtime: MemoryRuntime):
        self._table_name = table_name
        self._runtime = runtime

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def agent_id(self) -> str:
        return self._runtime.agent_id

    @property
    def runtime(self) -> MemoryRuntime:
        return self._runtime

    def embedding_cache_key(self, text: str) -> str:
        """Cache key for the embedding of `text` in this table.

        Qualified by table and embedding model so that neither tables nor
        vector spaces share entries.
        """
        model = getattr(self._runtime.embedding_source, "model", None) or "default"
        digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
        return f"embeddings/{self._table_name}/{model}/{digest}"

    async def add_embedding_to_memory(self, memory: Memory) -> Memory:
        """Return the memory with an embedding.

        A memory that already has one is returned unchanged. Concurrent calls
        for the same text may each reach the embedding source before the
        cache is populated.

        Raises:
            MemoryValidationError: If the memory content text is empty
        """
        if memory.embedding is not None:
            return memory

        text = memory.content.text
        if not text:
            raise MemoryValidationError(
                "Cannot generate embedding: Memory content is empty"
            )

        cache = self._runtime.cache_manager
        key = self.embedding_cache_key(text)

        embedding = await best_effort(cache.get(key), "embedding cache read")
        if embedding is not None:
            logger.debug("Embedding cache hit for %s", key)
        else:
            logger.debug("Embedding cache miss for %s", key)
            embedding = await self._runtime.embedding_source.embed(text)
            await best_effort(cache.set(key, embedding), "embedding cache write")

        return memory.model_copy(update={"embedding": embedding})

    async def get_memories(
        self,
        room_id: str,
        agent_id: Optional[str] = None,
        start: Optional[int] = None,
        end: Optional[int] = None,
        count: int = DEFAULT_COUNT,
        unique: bool = True,
    ) -> list[Memory]:
        """Most recent memories of a room, newest first.

        Args:
            room_id: Room to read from
            agent_id: Optional agent filter, forwarded unchanged
            start: Inclusive lower bound on created_at
            end: Inclusive upper bound on created_at
            count: Max results to return (default 10)
            unique: Collapse memories with identical content (default True)

        Returns:
            At most `count` memories
        """
        memories = await self._runtime.database_adapter.get_memories(
            table_name=self._table_name,
            room_id=room_id,
            agent_id=agent_id,
            start=start,
            end=end,
            count=count,
            unique=unique,
        )

        if unique:
            memories = dedupe_by_content(memories)

        return memories[:count]

    async def search_memories(
        self,
        embedding: list[float],
        room_id: str,
        agent_id: Optional[str] = None,
        count: Optional[int] = None,
    ) -> list[Memory]:
        """Memories of a room ranked by similarity to `embedding`, best first."""
        memories = await self._runtime.database_adapter.search_memories(
            table_name=self._table_name,
            room_id=room_id,
            embedding=embedding,
            agent_id=agent_id,
            count=count,
        )

        if count is not None:
            memories = memories[:count]
        return memories

    async def get_memories_by_room_ids(
        self,
        room_ids: Sequence[str],
        agent_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Memory]:
        """Memories from several rooms in one round trip.

        Ordering is whatever the database adapter returns.

        Raises:
            MemoryValidationError: If room_ids is empty
        """
        if not room_ids:
            raise MemoryValidationError("room_ids cannot be empty")

        memories = await self._runtime.database_adapter.get_memories_by_room_ids(
            table_name=self._table_name,
            room_ids=list(room_ids),
            agent_id=agent_id,
        )

        if limit is not None:
            memories = memories[:limit]
        return memories

    async def get_memory_by_id(self, id: str) -> Optional[Memory]:
        return await self._runtime.database_adapter.get_memory_by_id(
            table_name=self._table_name, id=id
        )

    async def count_memories(self, room_id: str, agent_id: Optional[str] = None) -> int:
        return await self._runtime.database_adapter.count_memories(
            table_name=self._table_name, room_id=room_id, agent_id=agent_id
        )

    async def create_memory(self, memory: Memory) -> Memory:
        logger.debug("Creating memory %s in %s", memory.id, self._table_name)
        return await self._runtime.database_adapter.create_memory(
            table_name=self._table_name, memory=memory
        )

    async def remove_memory(self, id: str) -> None:
        logger.debug("Removing memory %s from %s", id, self._table_name)
        await self._runtime.database_adapter.remove_memory(
            table_name=self._table_name, id=id
        )

    async def remove_all_memories(self, room_id: str) -> None:
        logger.debug("Removing all memories of room %s from %s", room_id, self._table_name)
        await self._runtime.database_adapter.remove_all_memories(
            table_name=self._table_name, room_id=room_id
        )

    async def get_cached_embeddings(self, text: str) -> Optional[list[float]]:
        return await self._runtime.database_adapter.get_cached_embeddings(
            table_name=self._table_name, text=text
        )
