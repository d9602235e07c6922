"""
Token types for the two upstream OAuth grants.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from ..common.utils import format_timestamp, get_current_time, parse_iso_timestamp


DEFAULT_EXPIRES_IN = 3600


def parse_expires_in(value: Any, default: Optional[int] = DEFAULT_EXPIRES_IN) -> Optional[int]:
    """Read an ``expires_in`` field, falling back to ``default`` when absent or not numeric."""
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class CachedToken:
    """Service-to-service bearer token for the signing platform."""

    access_token: str
    expires_at: datetime

    def is_valid(self, now: datetime, safety_margin: timedelta) -> bool:
        """True while ``now`` is before ``expires_at`` minus the safety margin."""
        return now < self.expires_at - safety_margin


@dataclass
class UpstreamOAuthToken:
    """
    Business-registry token obtained through the authorization-code grant.

    Stored inside the application session's data bag, hence the
    ``to_session_data`` / ``from_session_data`` pair.
    """

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    token_type: str = "Bearer"

    @classmethod
    def from_response(cls, data: Dict[str, Any],
                      now: Optional[datetime] = None) -> "UpstreamOAuthToken":
        """Build from a token-endpoint response body."""
        now = now or get_current_time()
        expires_in = parse_expires_in(data.get("expires_in"), default=None)
        expires_at = None
        if expires_in:
            expires_at = now + timedelta(seconds=expires_in)

        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=expires_at,
            token_type=data.get("token_type") or "Bearer",
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or get_current_time()) >= self.expires_at

    def to_session_data(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": format_timestamp(self.expires_at),
            "token_type": self.token_type,
        }

    @classmethod
    def from_session_data(cls, data: Dict[str, Any]) -> "UpstreamOAuthToken":
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=parse_iso_timestamp(data.get("expires_at")),
            token_type=data.get("token_type") or "Bearer",
        )
