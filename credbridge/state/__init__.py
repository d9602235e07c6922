"""
Authorization state storage for credbridge.
"""

from .store import TTLStore, MemoryTTLStore, RedisTTLStore
from .authorization import (
    AuthorizationState,
    AuthorizationStateStore,
    DEFAULT_STATE_TTL,
    STATE_KEY_PREFIX,
)

__all__ = [
    "TTLStore",
    "MemoryTTLStore",
    "RedisTTLStore",
    "AuthorizationState",
    "AuthorizationStateStore",
    "DEFAULT_STATE_TTL",
    "STATE_KEY_PREFIX",
]
