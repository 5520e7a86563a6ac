"""
Shared in-memory TTL cache.

Used by the PubMed client and the translator to avoid redundant network/LLM
calls for repeated identical queries. Entries are keyed by a SHA-256 hash of
(namespace, params) and expire `ttl` seconds after being stored. Each cache
instance is owned by the component that created it; nothing is process-global.
"""

import asyncio
import hashlib
import json
import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


def cache_key(namespace: str, params: dict[str, Any]) -> str:
    """Return a deterministic hex digest for the given namespace and params."""
    raw = json.dumps({"ns": namespace, **params}, sort_keys=True, default=str)
    return hashlib.sha256(raw.encode()).hexdigest()


class MemoryCache:
    """Async-safe TTL cache.

    A ttl of 0 disables caching entirely. When `max_entries` is exceeded the
    oldest entry is evicted.
    """

    def __init__(
        self,
        ttl_seconds: int,
        *,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()
        self._lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self.ttl > 0

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, namespace: str, params: dict[str, Any]) -> Any | None:
        """Return cached data if present and unexpired, otherwise None."""
        if not self.enabled:
            return None
        key = cache_key(namespace, params)
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, data = entry
            if self._clock() >= expires_at:
                logger.debug("Cache expired for %s", namespace)
                del self._entries[key]
                return None
            logger.debug("Cache hit for %s", namespace)
            return data

    async def set(
        self,
        namespace: str,
        params: dict[str, Any],
        data: Any,
        ttl: int | None = None,
    ) -> None:
        """Store data under the given namespace and params."""
        if not self.enabled:
            return
        key = cache_key(namespace, params)
        expires_at = self._clock() + (ttl if ttl is not None else self.ttl)
        async with self._lock:
            self._entries[key] = (expires_at, data)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    async def invalidate(self, namespace: str, params: dict[str, Any]) -> None:
        async with self._lock:
            self._entries.pop(cache_key(namespace, params), None)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
