"""
Upstream HTTP client for credbridge.

A thin wrapper around a lazily created ``aiohttp.ClientSession`` that applies
a bounded timeout to every call and translates transport failures into the
credbridge error taxonomy. Response status handling is left to the callers,
since each upstream has its own conventions.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp

from ..errors import ErrorSource, UpstreamAuthError, UpstreamError, UpstreamTimeoutError


logger = logging.getLogger(__name__)


@dataclass
class UpstreamResponse:
    """Buffered response from an upstream call."""

    status: int
    raw: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)
    content_type: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.raw.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON, returning None for an empty body."""
        if not self.raw:
            return None
        return json.loads(self.raw)

    def body(self) -> Any:
        """Best-effort body for error reporting: JSON when possible, else text."""
        try:
            return self.json()
        except ValueError:
            return self.text


class UpstreamClient:
    """
    HTTP client shared by the components that talk to one upstream authority.

    Args:
        timeout: Total timeout per request in seconds
        source: Error source recorded on raised errors
        session: Optional pre-built aiohttp session (not closed by ``close()``)
    """

    def __init__(self,
                 timeout: float = 30.0,
                 source: ErrorSource = ErrorSource.UPSTREAM,
                 session: Optional[aiohttp.ClientSession] = None):
        self.timeout = timeout
        self.source = source
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def request(self,
                      method: str,
                      url: str,
                      *,
                      params: Optional[Dict[str, str]] = None,
                      data: Any = None,
                      json_body: Any = None,
                      headers: Optional[Dict[str, str]] = None,
                      auth: Optional[aiohttp.BasicAuth] = None) -> UpstreamResponse:
        """
        Perform a request and buffer the response.

        Raises:
            UpstreamTimeoutError: The request exceeded ``timeout``
            UpstreamError: Connection-level failure
        """
        session = await self._get_session()
        logger.debug(f"Upstream request: {method} {url}")

        try:
            async with session.request(
                method,
                url,
                params=params,
                data=data,
                json=json_body,
                headers=headers,
                auth=auth,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                raw = await resp.read()
                response = UpstreamResponse(
                    status=resp.status,
                    raw=raw,
                    headers=dict(resp.headers),
                    content_type=resp.content_type,
                )
        except asyncio.TimeoutError as e:
            logger.error(f"Upstream request timed out after {self.timeout}s: {method} {url}")
            raise UpstreamTimeoutError(
                f"Request to {url} timed out",
                timeout=self.timeout,
                source=self.source,
                cause=e,
            )
        except aiohttp.ClientError as e:
            logger.error(f"Upstream request failed: {method} {url}: {e}")
            raise UpstreamError(
                f"Request to {url} failed: {e}",
                source=self.source,
                cause=e,
            )

        logger.debug(f"Upstream response: {response.status} {url}")
        return response

    async def close(self) -> None:
        """Close the underlying session if this client created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None


def upstream_error_for(response: UpstreamResponse,
                       message: str,
                       source: ErrorSource = ErrorSource.UPSTREAM) -> UpstreamError:
    """
    Build the matching upstream error for a non-2xx response.

    401 and 403 map to ``UpstreamAuthError``; anything else to ``UpstreamError``.
    """
    body = response.body()
    if response.status in (401, 403):
        return UpstreamAuthError(
            f"{message}: {response.status}",
            upstream_status=response.status,
            upstream_body=body,
            source=source,
        )
    return UpstreamError(
        f"{message}: {response.status}",
        upstream_status=response.status,
        upstream_body=body,
        source=source,
    )


def raise_for_upstream_status(response: UpstreamResponse,
                              message: str,
                              source: ErrorSource = ErrorSource.UPSTREAM) -> None:
    """Raise the matching upstream error unless the response is 2xx."""
    if not response.ok:
        raise upstream_error_for(response, message, source)
