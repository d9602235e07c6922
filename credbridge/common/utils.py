"""
Common utilities and helper functions for credbridge.
"""

import secrets
import uuid
from datetime import datetime, timezone
from typing import Optional


def generate_id(prefix: str = "") -> str:
    """Generate a unique identifier with optional prefix."""
    unique_id = str(uuid.uuid4())
    return f"{prefix}{unique_id}" if prefix else unique_id


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure random token."""
    return secrets.token_urlsafe(length)


def get_current_time() -> datetime:
    """Get the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp, assuming UTC when no offset is given.

    Returns None for empty input.
    """
    if not timestamp_str:
        return None

    if timestamp_str.endswith("Z"):
        timestamp_str = timestamp_str[:-1] + "+00:00"

    parsed = datetime.fromisoformat(timestamp_str)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Format a datetime as ISO 8601, passing None through."""
    return value.isoformat() if value else None


def mask_sensitive_data(data: Optional[str], mask_char: str = "*", visible_chars: int = 4) -> str:
    """
    Mask sensitive data for logging, keeping a short prefix visible.

    Args:
        data: Secret value
        mask_char: Character used for masking
        visible_chars: Number of leading characters left visible

    Returns:
        Masked string ("MISSING" for empty input)
    """
    if not data:
        return "MISSING"

    if len(data) <= visible_chars:
        return mask_char * len(data)

    return data[:visible_chars] + mask_char * 3

