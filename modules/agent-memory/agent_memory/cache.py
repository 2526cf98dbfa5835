"""Pluggable key/value cache for derived values such as embeddings."""

import hashlib
import json
import logging
import tempfile
import time
from pathlib import Path
from typing import Any, Optional, Protocol

import aiofiles
import aiofiles.os
from cachetools import TTLCache

logger = logging.getLogger(__name__)


class CacheAdapter(Protocol):
    """Backing store for CacheManager. Keys and values are strings."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryCacheAdapter:
    """In-process dict adapter. Unbounded, no eviction."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


class TTLCacheAdapter:
    """In-process LRU cache with TTL.

    Entries are evicted after `ttl` seconds or when `maxsize` is exceeded.
    """

    def __init__(self, maxsize: int = 1000, ttl: int = 3600):
        """Initialize cache.

        Args:
            maxsize: Maximum number of entries (default 1000).
            ttl: Time-to-live in seconds (default 3600 = 1 hour).
        """
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)

    async def get(self, key: str) -> Optional[str]:
        return self._cache.get(key)

    async def set(self, key: str, value: str) -> None:
        self._cache[key] = value

    async def delete(self, key: str) -> None:
        self._cache.pop(key, None)


class FsCacheAdapter:
    """One file per key under a directory.

    Keys are hashed to filenames, so any key is safe to use. Writes go to a
    temp file that is renamed over the key file, so readers see either the
    old value or the new one, never a partial write.
    """

    def __init__(self, cache_dir: str | Path):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.cache_dir / hashlib.sha256(key.encode("utf-8")).hexdigest()

    async def get(self, key: str) -> Optional[str]:
        try:
            async with aiofiles.open(self._path(key), encoding="utf-8") as f:
                return await f.read()
        except FileNotFoundError:
            return None

    async def set(self, key: str, value: str) -> None:
        path = self._path(key)
        temp_fd, temp_path = tempfile.mkstemp(
            dir=self.cache_dir, prefix=f".{path.name[:16]}_", suffix=".tmp"
        )

        try:
            async with aiofiles.open(temp_fd, "w", encoding="utf-8") as f:
                await f.write(value)

            # Atomic rename
            Path(temp_path).replace(path)
        except Exception:
            Path(temp_path).unlink(missing_ok=True)
            raise

    async def delete(self, key: str) -> None:
        try:
            await aiofiles.os.remove(self._path(key))
        except FileNotFoundError:
            pass


class CacheManager:
    """Namespaced facade over exactly one CacheAdapter.

    Values are JSON-encoded together with an optional expiry (epoch ms).
    Expired or undecodable entries read as misses.
    """

    def __init__(self, adapter: CacheAdapter, namespace: str = "agent-memory"):
        self.adapter = adapter
        self.namespace = namespace

    def qualify(self, key: str) -> str:
        return f"{self.namespace}/{key}"

    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on a miss."""
        qualified = self.qualify(key)
        raw = await self.adapter.get(qualified)
        if raw is None:
            return None

        try:
            entry = json.loads(raw)
            value = entry["value"]
            expires = entry.get("expires")
        except (ValueError, TypeError, KeyError):
            logger.debug("Discarding undecodable cache entry %s", qualified)
            await self.adapter.delete(qualified)
            return None

        if expires is not None and expires < time.time() * 1000:
            logger.debug("Cache entry %s expired", qualified)
            await self.adapter.delete(qualified)
            return None

        return value

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Cache a JSON-serializable value.

        Args:
            key: Cache key (will be namespaced)
            value: Value to store
            ttl: Optional time-to-live in seconds
        """
        expires = int((time.time() + ttl) * 1000) if ttl is not None else None
        await self.adapter.set(
            self.qualify(key), json.dumps({"value": value, "expires": expires})
        )

    async def delete(self, key: str) -> None:
        await self.adapter.delete(self.qualify(key))
