"""Embedding-augmented memory store for agents."""

__version__ = "1.0.0"

from .models import Content, Memory
from .errors import AgentMemoryError, MemoryValidationError, best_effort
from .cache import (
    CacheAdapter,
    CacheManager,
    FsCacheAdapter,
    MemoryCacheAdapter,
    TTLCacheAdapter,
)
from .fusion import dedupe_by_content, fuse_memories, recall
from .runtime import MemoryRuntime, create_runtime
from .manager import MemoryManager

__all__ = [
    "Content",
    "Memory",
    "AgentMemoryError",
    "MemoryValidationError",
    "best_effort",
    "CacheAdapter",
    "CacheManager",
    "FsCacheAdapter",
    "MemoryCacheAdapter",
    "TTLCacheAdapter",
    "dedupe_by_content",
    "fuse_memories",
    "recall",
    "MemoryRuntime",
    "create_runtime",
    "MemoryManager",
]
