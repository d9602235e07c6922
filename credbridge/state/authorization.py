"""
Single-use authorization state for the authorization-code flow.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from .store import TTLStore
from ..common.utils import (
    format_timestamp,
    get_current_time,
    mask_sensitive_data,
    parse_iso_timestamp,
)
from ..errors import InvalidStateError


logger = logging.getLogger(__name__)

STATE_KEY_PREFIX = "oauth_state:"
DEFAULT_STATE_TTL = 600


@dataclass
class AuthorizationState:
    """Binds an opaque state value to the session that started the redirect."""

    state: str
    session_id: str
    expires_at: datetime

    def to_json(self) -> str:
        return json.dumps({
            "session_id": self.session_id,
            "expires_at": format_timestamp(self.expires_at),
        })

    @classmethod
    def from_json(cls, state: str, raw: str) -> "AuthorizationState":
        data = json.loads(raw)
        return cls(
            state=state,
            session_id=data["session_id"],
            expires_at=parse_iso_timestamp(data.get("expires_at")),
        )


class AuthorizationStateStore:
    """
    Stores authorization states with a TTL and consumes them exactly once.

    Args:
        store: TTL'd key-value collaborator
        ttl_seconds: Lifetime of an unused state
        clock: Time source, injectable for tests
    """

    def __init__(self,
                 store: TTLStore,
                 ttl_seconds: int = DEFAULT_STATE_TTL,
                 clock: Callable[[], datetime] = get_current_time):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def _key(self, state: str) -> str:
        return f"{STATE_KEY_PREFIX}{state}"

    async def put(self, state: str, session_id: str) -> AuthorizationState:
        """Record ``state`` as belonging to ``session_id``."""
        entry = AuthorizationState(
            state=state,
            session_id=session_id,
            expires_at=self.clock() + timedelta(seconds=self.ttl_seconds),
        )
        await self.store.set_with_ttl(self._key(state), entry.to_json(), self.ttl_seconds)
        logger.debug(f"Stored authorization state {mask_sensitive_data(state)} "
                     f"for session {session_id}")
        return entry

    async def consume(self, state: Optional[str]) -> AuthorizationState:
        """
        Look up and delete ``state`` in one step.

        Raises:
            InvalidStateError: The state is unknown, expired or was already used
        """
        if not state:
            raise InvalidStateError()

        raw = await self.store.get_and_delete(self._key(state))
        if raw is None:
            logger.warning(f"Rejected unknown or replayed state {mask_sensitive_data(state)}")
            raise InvalidStateError()

        entry = AuthorizationState.from_json(state, raw)
        if entry.expires_at is not None and self.clock() >= entry.expires_at:
            logger.warning(f"Rejected expired state {mask_sensitive_data(state)}")
            raise InvalidStateError()

        return entry

    async def discard(self, state: Optional[str]) -> bool:
        """Drop ``state`` without validating it; returns whether it was present."""
        if not state:
            return False
        return await self.store.get_and_delete(self._key(state)) is not None
