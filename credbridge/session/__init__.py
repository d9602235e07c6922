"""
Session storage for credbridge.
"""

from .store import (
    Session,
    SessionStore,
    MemorySessionStore,
    RedisSessionStore,
    SESSION_KEY_PREFIX,
    DEFAULT_SESSION_TTL,
)

__all__ = [
    "Session",
    "SessionStore",
    "MemorySessionStore",
    "RedisSessionStore",
    "SESSION_KEY_PREFIX",
    "DEFAULT_SESSION_TTL",
]
