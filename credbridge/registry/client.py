"""
Business-registry resource client.

Calls are made on behalf of a user: the registry token lives in the user's
application session, placed there when the authorization-code flow
completed. The registry expects the raw access token in ``Authorization``
with no ``Bearer`` prefix.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..auth.authorization_code import AuthorizationFlowCoordinator
from ..auth.types import UpstreamOAuthToken
from ..common.utils import get_current_time
from ..errors import (
    ErrorCode,
    ErrorSource,
    RegistryAuthorizationRequired,
    UpstreamError,
)
from ..http.client import UpstreamClient, raise_for_upstream_status
from ..session.store import SessionStore


logger = logging.getLogger(__name__)

SESSION_TOKEN_KEY = "registry_oauth_token"
ORGANISATION_PARTS_PATH = "/nzbn/v5/entities/{nzbn}/organisation-parts"


class RegistryClient:
    """
    Args:
        api_url: Registry resource API base URL
        subscription_key: API gateway subscription key
        session_store: Where user sessions (and their registry tokens) live
        coordinator: Used to refresh expired tokens
        http: Upstream HTTP client
        clock: Time source, injectable for tests
    """

    def __init__(self,
                 api_url: str,
                 subscription_key: str,
                 session_store: SessionStore,
                 coordinator: AuthorizationFlowCoordinator,
                 http: Optional[UpstreamClient] = None,
                 clock: Callable[[], datetime] = get_current_time):
        self.api_url = api_url.rstrip("/")
        self.subscription_key = subscription_key
        self.session_store = session_store
        self.coordinator = coordinator
        self.http = http or UpstreamClient(source=ErrorSource.BUSINESS_REGISTRY)
        self.clock = clock

    async def get_session_token(self, session_id: str) -> str:
        """
        Return a usable registry access token for ``session_id``.

        An expired token is refreshed when a refresh token is available and
        written back to the session.

        Raises:
            RegistryAuthorizationRequired: No session, no token, or an expired
                token that cannot be refreshed
        """
        session = await self.session_store.get(session_id)
        if session is None:
            logger.warning(f"Session not found for registry call: {session_id}")
            raise RegistryAuthorizationRequired(
                "NZBN OAuth token not found. Please connect your NZBN account."
            )

        stored = session.data.get(SESSION_TOKEN_KEY)
        if not stored or not stored.get("access_token"):
            logger.warning(f"No registry token in session {session_id}")
            raise RegistryAuthorizationRequired(
                "NZBN OAuth token not found. Please connect your NZBN account."
            )

        token = UpstreamOAuthToken.from_session_data(stored)
        if not token.is_expired(self.clock()):
            return token.access_token

        if not token.refresh_token:
            logger.warning(f"Registry token expired for session {session_id}")
            raise RegistryAuthorizationRequired(
                "NZBN OAuth token has expired. Please reconnect your NZBN account.",
                code=ErrorCode.OAUTH_TOKEN_EXPIRED,
            )

        logger.info(f"Registry token expired for session {session_id}, refreshing")
        try:
            token = await self.coordinator.refresh_token(token.refresh_token)
        except UpstreamError as e:
            logger.error(f"Registry token refresh failed for session {session_id}: {e}")
            raise RegistryAuthorizationRequired(
                "NZBN OAuth token has expired. Please reconnect your NZBN account.",
                code=ErrorCode.OAUTH_TOKEN_EXPIRED,
                cause=e,
            )

        session.data[SESSION_TOKEN_KEY] = token.to_session_data()
        await self.session_store.set(session)
        return token.access_token

    async def get_organisation_parts(self, nzbn: str, session_id: str) -> List[Dict[str, Any]]:
        """List the organisation parts registered under ``nzbn``."""
        data = await self._call("GET", nzbn, session_id, None,
                                "Failed to get organisation parts from NZBN API")
        items = data.get("items") if isinstance(data, dict) else None
        logger.info(f"Found {len(items or [])} organisation parts for NZBN {nzbn}")
        return items or []

    async def create_organisation_part(self, nzbn: str, session_id: str,
                                       part: Dict[str, Any]) -> Dict[str, Any]:
        """Create an organisation part under ``nzbn``."""
        data = await self._call("POST", nzbn, session_id, part,
                                "Failed to create organisation part in NZBN API")
        logger.info(f"Organisation part created for NZBN {nzbn}")
        return data if isinstance(data, dict) else {}

    async def _call(self, method: str, nzbn: str, session_id: str,
                    body: Optional[Dict[str, Any]], message: str) -> Any:
        token = await self.get_session_token(session_id)
        response = await self.http.request(
            method,
            f"{self.api_url}{ORGANISATION_PARTS_PATH.format(nzbn=nzbn)}",
            json_body=body,
            headers={
                "Authorization": token,
                "Ocp-Apim-Subscription-Key": self.subscription_key,
                "Accept": "application/json",
            },
        )
        if not response.ok:
            logger.error(f"{message}: {response.status}")
        raise_for_upstream_status(response, message, ErrorSource.BUSINESS_REGISTRY)
        return response.body()
