"""
HTTP plumbing for calls to the upstream authorities.
"""

from .client import (
    UpstreamClient,
    UpstreamResponse,
    raise_for_upstream_status,
    upstream_error_for,
)

__all__ = [
    "UpstreamClient",
    "UpstreamResponse",
    "raise_for_upstream_status",
    "upstream_error_for",
]
