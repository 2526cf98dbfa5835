"""Runtime context shared by memory managers."""

import os
import re
from typing import TYPE_CHECKING, Optional

from .cache import CacheManager, FsCacheAdapter, MemoryCacheAdapter, TTLCacheAdapter

if TYPE_CHECKING:
    from .embeddings import EmbeddingSource
    from .storage import DatabaseAdapter

AGENT_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


class MemoryRuntime:
    """Collaborators and agent identity for one agent.

    Attributes are read-only for the lifetime of the runtime.
    """

    __slots__ = ("_agent_id", "_database_adapter", "_cache_manager", "_embedding_source")

    def __init__(
        self,
        agent_id: str,
        database_adapter: "DatabaseAdapter",
        cache_manager: CacheManager,
        embedding_source: "EmbeddingSource",
    ):
        self._agent_id = agent_id
        self._database_adapter = database_adapter
        self._cache_manager = cache_manager
        self._embedding_source = embedding_source

    @property
    def agent_id(self) -> str:
        return self._agent_id

    @property
    def database_adapter(self) -> "DatabaseAdapter":
        return self._database_adapter

    @property
    def cache_manager(self) -> CacheManager:
        return self._cache_manager

    @property
    def embedding_source(self) -> "EmbeddingSource":
        return self._embedding_source


def create_cache_manager(agent_id: str, config: dict) -> CacheManager:
    """Build the cache selected by config["cache"] ("memory", "ttl" or "fs")."""
    kind = config.get("cache", "memory")

    if kind == "memory":
        adapter = MemoryCacheAdapter()
    elif kind == "ttl":
        adapter = TTLCacheAdapter(
            maxsize=config.get("cache_maxsize", 1000),
            ttl=config.get("cache_ttl", 3600),
        )
    elif kind == "fs":
        cache_dir = config.get(
            "cache_dir", os.path.expanduser(f"~/.agent-memory/cache/{agent_id}")
        )
        adapter = FsCacheAdapter(cache_dir)
    else:
        raise ValueError(f"Unknown cache adapter: {kind}. Use memory, ttl or fs.")

    return CacheManager(adapter, namespace=config.get("cache_namespace", agent_id))


def create_runtime(
    agent_id: Optional[str] = None,
    config: Optional[dict] = None,
    database_adapter: Optional["DatabaseAdapter"] = None,
    embedding_source: Optional["EmbeddingSource"] = None,
) -> MemoryRuntime:
    """Build a runtime from configuration.

    Agent ID resolution order:
    1. agent_id argument
    2. config["agent_id"]
    3. "default-agent" (fallback)

    Args:
        agent_id: Agent identity
        config: Optional configuration:
            - cache: "memory" (default), "ttl" or "fs"
            - cache_ttl, cache_maxsize: TTL cache settings
            - cache_dir: fs cache directory (default: ~/.agent-memory/cache/<agent_id>)
            - storage_root: Qdrant directory (default: ~/.agent-memory/db/<agent_id>)
            - location: Qdrant location such as ":memory:"
            - embedding_model: OpenAI model (default: text-embedding-3-small)
            - embedding_dimensions: Vector size (default: 1536)
        database_adapter: Use this instead of a QdrantDatabaseAdapter
        embedding_source: Use this instead of an OpenAIEmbeddingSource

    Raises:
        ValueError: If agent_id is invalid or config names an unknown cache
    """
    config = config or {}
    agent_id = agent_id or config.get("agent_id") or "default-agent"

    if not AGENT_ID_PATTERN.match(agent_id):
        raise ValueError(
            f"Invalid agent_id: {agent_id}. "
            "Only alphanumeric, underscore, and hyphen allowed."
        )

    dimensions = config.get("embedding_dimensions", 1536)

    # Import here so callers bringing their own collaborators skip openai/qdrant
    if embedding_source is None:
        from .embeddings import OpenAIEmbeddingSource

        embedding_source = OpenAIEmbeddingSource(
            model=config.get("embedding_model", "text-embedding-3-small"),
            api_key=config.get("api_key"),
            dimensions=dimensions,
        )

    if database_adapter is None:
        from .storage import QdrantDatabaseAdapter

        storage_root = config.get(
            "storage_root", os.path.expanduser(f"~/.agent-memory/db/{agent_id}")
        )
        database_adapter = QdrantDatabaseAdapter(
            {**config, "storage_root": storage_root, "embedding_dimensions": dimensions}
        )

    return MemoryRuntime(
        agent_id=agent_id,
        database_adapter=database_adapter,
        cache_manager=create_cache_manager(agent_id, config),
        embedding_source=embedding_source,
    )
