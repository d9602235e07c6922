"""
Common utilities shared across credbridge modules.
"""

from .utils import (
    generate_id,
    generate_secure_token,
    get_current_time,
    parse_iso_timestamp,
    format_timestamp,
    mask_sensitive_data,
)

__all__ = [
    "generate_id",
    "generate_secure_token",
    "get_current_time",
    "parse_iso_timestamp",
    "format_timestamp",
    "mask_sensitive_data",
]
