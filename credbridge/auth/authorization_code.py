"""
Authorization-code flow against the business-registry authority.

A browser redirect is bound to the application session through a random,
single-use ``state`` value. On the callback the state is consumed, then the
code is exchanged for tokens. The registry's token endpoint expects the code
exchange parameters in the query string with an empty body, while the refresh
grant takes a normal form body; both use HTTP Basic client authentication.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

import aiohttp

from .types import UpstreamOAuthToken
from ..common.utils import generate_secure_token, get_current_time, mask_sensitive_data
from ..errors import (
    ConfigurationError,
    ErrorSource,
    OAuthCallbackError,
    UpstreamError,
)
from ..http.client import UpstreamClient, UpstreamResponse, raise_for_upstream_status
from ..state import AuthorizationStateStore


logger = logging.getLogger(__name__)

FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


class FlowStage(Enum):
    """Stages of one authorization attempt."""

    INITIATED = "initiated"
    CODE_RECEIVED = "code_received"
    TOKEN_EXCHANGED = "token_exchanged"
    FAILED = "failed"


@dataclass
class CallbackResult:
    """Outcome of a successful callback: the bound session and its new token."""

    session_id: str
    token: UpstreamOAuthToken
    raw: Dict[str, Any] = field(default_factory=dict)
    stage: FlowStage = FlowStage.TOKEN_EXCHANGED


class AuthorizationFlowCoordinator:
    """
    Drives the three-legged OAuth flow for the business registry.

    Args:
        authorize_url: Authorization endpoint the browser is redirected to
        token_url: Token endpoint for code exchange and refresh
        client_id: OAuth client id
        client_secret: OAuth client secret
        redirect_uri: Registered callback URI
        scope: Requested scopes
        policy: Value of the ``p`` (user-flow policy) parameter
        state_store: Single-use state storage
        http: Upstream HTTP client
        clock: Time source, injectable for tests
    """

    def __init__(self,
                 authorize_url: str,
                 token_url: str,
                 client_id: str,
                 client_secret: str,
                 redirect_uri: str,
                 scope: str,
                 policy: str,
                 state_store: AuthorizationStateStore,
                 http: Optional[UpstreamClient] = None,
                 clock: Callable[[], datetime] = get_current_time):
        self.authorize_url = authorize_url
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scope = scope
        self.policy = policy
        self.state_store = state_store
        self.http = http or UpstreamClient(source=ErrorSource.BUSINESS_REGISTRY)
        self.clock = clock

    async def build_authorization_url(self, session_id: str) -> str:
        """
        Create a state bound to ``session_id`` and return the redirect URL.

        Raises:
            ConfigurationError: The client id is not configured
        """
        if not self.client_id:
            raise ConfigurationError("NZBN_OAUTH_CLIENT_ID is required",
                                     setting="registry.client_id")

        state = generate_secure_token(32)
        await self.state_store.put(state, session_id)

        params = {
            "p": self.policy,
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": self.scope,
            "state": state,
        }
        logger.info(f"Initiated authorization for session {session_id} "
                    f"with state {mask_sensitive_data(state)}")
        return f"{self.authorize_url}?{urlencode(params)}"

    async def handle_callback(self,
                              code: Optional[str],
                              state: Optional[str],
                              error: Optional[str] = None,
                              error_description: Optional[str] = None) -> CallbackResult:
        """
        Resolve a redirect back from the authorization server.

        Raises:
            OAuthCallbackError: The server returned an error, or code/state are missing
            InvalidStateError: The state is unknown, expired or already used
            UpstreamError: The code exchange failed
        """
        if error:
            logger.warning(f"Authorization server returned error: {error} {error_description or ''}")
            # the attempt is over either way
            await self.state_store.discard(state)
            raise OAuthCallbackError(error, error_description)

        if not code or not state:
            raise OAuthCallbackError("missing_parameters",
                                     "Authorization code and state are required")

        entry = await self.state_store.consume(state)
        logger.info(f"Authorization code received for session {entry.session_id}")

        data = await self.exchange_code(code)
        token = UpstreamOAuthToken.from_response(data, now=self.clock())
        logger.info(f"Authorization completed for session {entry.session_id}")
        return CallbackResult(session_id=entry.session_id, token=token, raw=data)

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        """Exchange an authorization code for a token-endpoint response body."""
        params = {
            "p": self.policy,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
        }
        logger.debug(f"Exchanging authorization code {mask_sensitive_data(code)}")

        response = await self.http.request(
            "POST",
            self.token_url,
            params=params,
            data=b"",
            headers=FORM_HEADERS,
            auth=self._basic_auth(),
        )
        return self._token_body(response, "Failed to exchange authorization code for token")

    async def refresh_token(self, refresh_token: str) -> UpstreamOAuthToken:
        """
        Obtain a new token with a refresh token.

        The registry may or may not rotate the refresh token; when it does not,
        the previous one is kept.
        """
        form_body = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "scope": self.scope,
        }
        logger.info("Refreshing business registry access token")

        response = await self.http.request(
            "POST",
            self.token_url,
            data=form_body,
            headers=FORM_HEADERS,
            auth=self._basic_auth(),
        )
        data = self._token_body(response, "Failed to refresh access token")
        token = UpstreamOAuthToken.from_response(data, now=self.clock())
        if not token.refresh_token:
            token.refresh_token = refresh_token
        return token

    def _basic_auth(self) -> aiohttp.BasicAuth:
        if not self.client_id or not self.client_secret:
            raise ConfigurationError(
                "NZBN_OAUTH_CLIENT_ID and NZBN_OAUTH_CLIENT_SECRET are required",
                setting="registry.client_secret",
            )
        return aiohttp.BasicAuth(self.client_id, self.client_secret)

    @staticmethod
    def _token_body(response: UpstreamResponse, message: str) -> Dict[str, Any]:
        if not response.ok:
            logger.error(f"{message}: {response.status}")
        raise_for_upstream_status(response, message, ErrorSource.BUSINESS_REGISTRY)

        data = response.body()
        if not isinstance(data, dict) or not data.get("access_token"):
            raise UpstreamError(
                f"{message}: no access token in response",
                upstream_status=response.status,
                upstream_body=data,
                source=ErrorSource.BUSINESS_REGISTRY,
            )
        return data
