"""
Client-credentials token broker for the credential-signing platform.

The platform's token endpoint normally accepts the client credentials in a
form-encoded body. Some tenants reject that with a 401 and only accept HTTP
Basic authentication, so a 401 triggers exactly one Basic-auth retry with the
same grant parameters. Tokens are cached in an explicit ``TokenCache`` owned by
the broker.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

import aiohttp
import jwt

from .types import DEFAULT_EXPIRES_IN, CachedToken, parse_expires_in
from ..common.utils import get_current_time, mask_sensitive_data
from ..errors import ConfigurationError, ErrorSource, UpstreamError
from ..http.client import UpstreamClient, UpstreamResponse, upstream_error_for


logger = logging.getLogger(__name__)

FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


class TokenCache:
    """
    Holds at most one bearer token with its expiry.

    Concurrent readers may both see an expired entry and both refresh it;
    token issuance is idempotent, so the cache takes no lock.
    """

    def __init__(self, safety_margin: timedelta = timedelta(seconds=60)):
        self.safety_margin = safety_margin
        self._token: Optional[CachedToken] = None

    def get(self, now: datetime) -> Optional[str]:
        """Return the cached token if it is valid for at least the safety margin."""
        if self._token and self._token.is_valid(now, self.safety_margin):
            return self._token.access_token
        return None

    def put(self, access_token: str, expires_at: datetime) -> None:
        self._token = CachedToken(access_token=access_token, expires_at=expires_at)

    def clear(self) -> None:
        self._token = None

    @property
    def token(self) -> Optional[CachedToken]:
        return self._token


class ClientCredentialsBroker:
    """
    Obtains and caches a service-to-service access token.

    Args:
        token_url: Token endpoint of the signing platform
        client_id: OAuth client id
        client_secret: OAuth client secret
        audience: Optional ``audience`` grant parameter
        http: Upstream HTTP client
        cache: Token cache (a fresh one by default)
        clock: Time source, injectable for tests
    """

    def __init__(self,
                 token_url: str,
                 client_id: str,
                 client_secret: str,
                 audience: str = "",
                 http: Optional[UpstreamClient] = None,
                 cache: Optional[TokenCache] = None,
                 clock: Callable[[], datetime] = get_current_time):
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.audience = audience
        self.http = http or UpstreamClient(source=ErrorSource.SIGNING_PLATFORM)
        self.cache = cache or TokenCache()
        self.clock = clock

    async def get_access_token(self) -> str:
        """
        Return a valid access token, fetching a new one when needed.

        Raises:
            ConfigurationError: Client id/secret or token URL missing
            UpstreamAuthError: Both authentication schemes were rejected
            UpstreamTimeoutError: The token endpoint timed out
            UpstreamError: Any other upstream failure
        """
        cached = self.cache.get(self.clock())
        if cached:
            logger.debug("Using cached signing platform access token")
            return cached

        if not self.client_id or not self.client_secret:
            raise ConfigurationError(
                "MATTR_CLIENT_ID and MATTR_CLIENT_SECRET are required",
                setting="platform.client_id",
            )
        if not self.token_url:
            raise ConfigurationError("Signing platform token URL is not configured",
                                     setting="platform.token_url")

        logger.info(f"Requesting new signing platform access token from {self.token_url} "
                    f"(client_id={mask_sensitive_data(self.client_id)})")

        response = await self._request_token()
        data = response.body()
        if not isinstance(data, dict):
            data = {}
        access_token = data.get("access_token")
        if not access_token:
            raise UpstreamError(
                "No access token received from signing platform",
                upstream_status=response.status,
                upstream_body=data,
                source=ErrorSource.SIGNING_PLATFORM,
            )

        expires_in = parse_expires_in(data.get("expires_in")) or DEFAULT_EXPIRES_IN
        self.cache.put(access_token, self.clock() + timedelta(seconds=expires_in))
        if data.get("scope"):
            logger.debug(f"Token scopes: {data['scope']}")
        self._log_token_claims(access_token)

        logger.info(f"Signing platform access token obtained, expires in {expires_in}s")
        return access_token

    def clear_cache(self) -> None:
        """Forcibly invalidate the cached token."""
        self.cache.clear()
        logger.debug("Cleared signing platform token cache")

    async def _request_token(self) -> UpstreamResponse:
        grant = self._grant_params()

        form_body = dict(grant)
        form_body["client_id"] = self.client_id
        form_body["client_secret"] = self.client_secret

        response = await self.http.request(
            "POST", self.token_url, data=form_body, headers=FORM_HEADERS
        )
        if response.ok:
            return response

        logger.error(f"Form-encoded token request failed: {response.status}")
        original = upstream_error_for(response, "Failed to obtain signing platform access token",
                                      ErrorSource.SIGNING_PLATFORM)
        if response.status != 401:
            raise original

        logger.warning("Form-encoded auth rejected with 401, retrying with Basic authentication")
        return await self._request_token_basic(grant, original)

    async def _request_token_basic(self, grant: Dict[str, str],
                                   original: UpstreamError) -> UpstreamResponse:
        try:
            response = await self.http.request(
                "POST",
                self.token_url,
                data=grant,
                headers=FORM_HEADERS,
                auth=aiohttp.BasicAuth(self.client_id, self.client_secret),
            )
        except UpstreamError as retry_error:
            logger.error(f"Basic authentication retry failed: {retry_error}")
            raise original from retry_error

        if not response.ok:
            logger.error(f"Basic authentication retry also failed: {response.status}")
            raise original

        logger.info("Basic authentication retry succeeded")
        return response

    def _grant_params(self) -> Dict[str, str]:
        params = {"grant_type": "client_credentials"}
        if self.audience:
            params["audience"] = self.audience
        return params

    @staticmethod
    def _log_token_claims(access_token: str) -> None:
        try:
            claims = jwt.decode(access_token, options={"verify_signature": False})
        except jwt.PyJWTError:
            logger.debug("Access token is not a decodable JWT")
            return

        scopes = claims.get("scope") or claims.get("scp")
        logger.debug(
            f"Access token claims: aud={claims.get('aud', 'N/A')} "
            f"iss={claims.get('iss', 'N/A')} exp={claims.get('exp', 'N/A')} scopes={scopes or 'N/A'}"
        )
