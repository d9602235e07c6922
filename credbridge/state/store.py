"""
TTL'd key-value storage for short-lived authorization state.

The only operation that matters for correctness is ``get_and_delete``: it
must read and remove a key in one step so that two concurrent callbacks
presenting the same state cannot both succeed.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as redis

from ..common.utils import get_current_time


logger = logging.getLogger(__name__)


class TTLStore(ABC):
    """Abstract key-value store with per-key expiry."""

    @abstractmethod
    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``."""
        pass

    @abstractmethod
    async def get_and_delete(self, key: str) -> Optional[str]:
        """Atomically read and remove ``key``; None when missing or expired."""
        pass

    async def close(self) -> None:
        """Release any resources held by the store."""
        return None


class MemoryTTLStore(TTLStore):
    """
    In-memory TTL store.

    Expired entries are dropped lazily on access.
    """

    def __init__(self, clock: Callable[[], datetime] = get_current_time):
        self._store: Dict[str, Tuple[str, datetime]] = {}
        self._lock = asyncio.Lock()
        self.clock = clock

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        async with self._lock:
            self._store[key] = (value, self.clock() + timedelta(seconds=ttl_seconds))

    async def get_and_delete(self, key: str) -> Optional[str]:
        async with self._lock:
            entry = self._store.pop(key, None)

        if entry is None:
            return None

        value, expires_at = entry
        if self.clock() >= expires_at:
            logger.debug(f"Discarded expired entry {key}")
            return None
        return value

    async def cleanup(self) -> int:
        """Remove expired entries, returning how many were removed."""
        async with self._lock:
            now = self.clock()
            expired = [key for key, (_, expires_at) in self._store.items() if now >= expires_at]
            for key in expired:
                del self._store[key]

        if expired:
            logger.debug(f"Cleaned up {len(expired)} expired entries")
        return len(expired)

    def __len__(self) -> int:
        return len(self._store)


class RedisTTLStore(TTLStore):
    """
    Redis-backed TTL store.

    ``get_and_delete`` maps onto a single ``GETDEL`` so the read and the
    removal happen in one round trip on the server.
    """

    def __init__(self, client: "redis.Redis"):
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisTTLStore":
        return cls(redis.from_url(url, decode_responses=True))

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(key, ttl_seconds, value)

    async def get_and_delete(self, key: str) -> Optional[str]:
        value = await self._redis.getdel(key)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def close(self) -> None:
        await self._redis.close()
        logger.info("Disconnected from Redis")
