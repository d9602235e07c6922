"""
Application session storage.

Sessions are owned by the embedding application; credbridge only reads them
and merges data (the business-registry token) into their ``data`` bag.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

import redis.asyncio as redis

from ..common.utils import (
    format_timestamp,
    generate_id,
    get_current_time,
    parse_iso_timestamp,
)


logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "session:"
DEFAULT_SESSION_TTL = 3600


@dataclass
class Session:
    """An authenticated application session."""

    session_id: str = field(default_factory=generate_id)
    user_id: str = ""
    email: str = ""
    created_at: datetime = field(default_factory=get_current_time)
    expires_at: Optional[datetime] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or get_current_time()) >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "email": self.email,
            "created_at": format_timestamp(self.created_at),
            "expires_at": format_timestamp(self.expires_at),
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        return cls(
            session_id=data["session_id"],
            user_id=data.get("user_id", ""),
            email=data.get("email", ""),
            created_at=parse_iso_timestamp(data.get("created_at")) or get_current_time(),
            expires_at=parse_iso_timestamp(data.get("expires_at")),
            data=data.get("data") or {},
        )


class SessionStore(ABC):
    """Abstract session store."""

    @abstractmethod
    async def get(self, session_id: str) -> Optional[Session]:
        """Return the session, or None when missing or expired."""
        pass

    @abstractmethod
    async def set(self, session: Session, ttl: Optional[int] = None) -> None:
        """Create or replace a session."""
        pass

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """Remove a session, returning whether it existed."""
        pass

    async def exists(self, session_id: str) -> bool:
        return await self.get(session_id) is not None

    async def close(self) -> None:
        return None


class MemorySessionStore(SessionStore):
    """In-memory session store for development and tests."""

    def __init__(self,
                 default_ttl: int = DEFAULT_SESSION_TTL,
                 clock: Callable[[], datetime] = get_current_time):
        self._store: Dict[str, Session] = {}
        self._lock = asyncio.Lock()
        self.default_ttl = default_ttl
        self.clock = clock

    async def get(self, session_id: str) -> Optional[Session]:
        async with self._lock:
            session = self._store.get(session_id)
            if session and session.is_expired(self.clock()):
                del self._store[session_id]
                logger.debug(f"Removed expired session {session_id}")
                return None
            return session

    async def set(self, session: Session, ttl: Optional[int] = None) -> None:
        ttl = ttl or self.default_ttl
        if session.expires_at is None:
            session.expires_at = self.clock() + timedelta(seconds=ttl)
        async with self._lock:
            self._store[session.session_id] = session

    async def delete(self, session_id: str) -> bool:
        async with self._lock:
            return self._store.pop(session_id, None) is not None


class RedisSessionStore(SessionStore):
    """Redis-backed session store; sessions are JSON under ``session:<id>``."""

    def __init__(self, client: "redis.Redis", default_ttl: int = DEFAULT_SESSION_TTL):
        self._redis = client
        self.default_ttl = default_ttl

    @classmethod
    def from_url(cls, url: str, default_ttl: int = DEFAULT_SESSION_TTL) -> "RedisSessionStore":
        return cls(redis.from_url(url, decode_responses=True), default_ttl=default_ttl)

    def _key(self, session_id: str) -> str:
        return f"{SESSION_KEY_PREFIX}{session_id}"

    async def get(self, session_id: str) -> Optional[Session]:
        raw = await self._redis.get(self._key(session_id))
        if raw is None:
            return None

        session = Session.from_dict(json.loads(raw))
        if session.is_expired():
            return None
        return session

    async def set(self, session: Session, ttl: Optional[int] = None) -> None:
        ttl = ttl or self.default_ttl
        if session.expires_at is not None:
            remaining = int((session.expires_at - get_current_time()).total_seconds())
            if remaining > 0:
                ttl = remaining
        await self._redis.setex(self._key(session.session_id), ttl, json.dumps(session.to_dict()))

    async def delete(self, session_id: str) -> bool:
        return bool(await self._redis.delete(self._key(session_id)))

    async def close(self) -> None:
        await self._redis.close()
