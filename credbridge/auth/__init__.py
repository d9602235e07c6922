"""
Upstream OAuth grants used by credbridge.

- Client credentials for the credential-signing platform
- Authorization code (with refresh) for the business registry
"""

from .types import CachedToken, UpstreamOAuthToken, DEFAULT_EXPIRES_IN
from .client_credentials import ClientCredentialsBroker, TokenCache
from .authorization_code import (
    AuthorizationFlowCoordinator,
    CallbackResult,
    FlowStage,
)

__all__ = [
    "CachedToken",
    "UpstreamOAuthToken",
    "DEFAULT_EXPIRES_IN",
    "ClientCredentialsBroker",
    "TokenCache",
    "AuthorizationFlowCoordinator",
    "CallbackResult",
    "FlowStage",
]
