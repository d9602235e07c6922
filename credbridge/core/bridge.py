"""
Composition root for credbridge.

``CredentialBridge.new()`` validates the configuration and wires the brokers,
stores and coordinators together. Storage collaborators are pluggable; by
default they are in memory, or Redis for the state and session stores when
``Config.redis_url`` is set.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Union

import aiohttp

from .config import Config
from ..audit.store import MemoryVerificationStore, VerificationStore
from ..auth.authorization_code import AuthorizationFlowCoordinator, CallbackResult
from ..auth.client_credentials import ClientCredentialsBroker, TokenCache
from ..auth.types import UpstreamOAuthToken
from ..common.utils import get_current_time
from ..credentials.identifiers import collection_id_generator, delivery_id_generator
from ..credentials.resolver import CredentialTypeResolver
from ..credentials.store import CredentialStore, MemoryCredentialStore
from ..credentials.types import CredentialType
from ..errors import ErrorSource, SessionNotFoundError
from ..http.client import UpstreamClient
from ..issuance.service import IssuanceService
from ..platform.client import SigningPlatformClient
from ..registry.client import SESSION_TOKEN_KEY, RegistryClient
from ..session.store import MemorySessionStore, RedisSessionStore, SessionStore
from ..state.authorization import AuthorizationStateStore
from ..state.store import MemoryTTLStore, RedisTTLStore, TTLStore
from ..verification.reconciler import VerificationOutcome, VerificationReconciler
from ..verification.revocation import RevocationCoordinator, RevocationResult
from ..verification.verifier import CredentialTrustVerifier, VerificationResult


logger = logging.getLogger(__name__)


class CredentialBridge:
    """
    Trust-bridging core between the signing platform and the business registry.
    Use ``CredentialBridge.new()`` to construct one.
    """

    def __init__(self,
                 config: Config,
                 ttl_store: Optional[TTLStore] = None,
                 session_store: Optional[SessionStore] = None,
                 verification_store: Optional[VerificationStore] = None,
                 collection_store: Optional[CredentialStore] = None,
                 delivery_store: Optional[CredentialStore] = None,
                 http_session: Optional[aiohttp.ClientSession] = None,
                 clock: Callable[[], datetime] = get_current_time):
        self.config = config
        self.clock = clock

        if config.redis_url:
            ttl_store = ttl_store or RedisTTLStore.from_url(config.redis_url)
            session_store = session_store or RedisSessionStore.from_url(
                config.redis_url, default_ttl=config.session_ttl
            )
        self.ttl_store = ttl_store or MemoryTTLStore(clock=clock)
        self.session_store = session_store or MemorySessionStore(config.session_ttl, clock=clock)
        self.verification_store = verification_store or MemoryVerificationStore()
        self.collection_store = collection_store or MemoryCredentialStore(CredentialType.COLLECTION)
        self.delivery_store = delivery_store or MemoryCredentialStore(CredentialType.DELIVERY)

        self.platform_http = UpstreamClient(config.http_timeout, ErrorSource.SIGNING_PLATFORM, http_session)
        self.registry_http = UpstreamClient(config.http_timeout, ErrorSource.BUSINESS_REGISTRY, http_session)

        platform = config.platform
        self.broker = ClientCredentialsBroker(
            token_url=platform.token_url,
            client_id=platform.client_id,
            client_secret=platform.client_secret,
            audience=platform.audience,
            http=self.platform_http,
            cache=TokenCache(timedelta(seconds=config.token_safety_margin)),
            clock=clock,
        )
        self.platform = SigningPlatformClient(platform.api_url, self.broker, self.platform_http)

        registry = config.registry
        self.state_store = AuthorizationStateStore(self.ttl_store, config.state_ttl, clock=clock)
        self.coordinator = AuthorizationFlowCoordinator(
            authorize_url=registry.authorize_url,
            token_url=registry.token_url,
            client_id=registry.client_id,
            client_secret=registry.client_secret,
            redirect_uri=registry.redirect_uri,
            scope=registry.scope,
            policy=registry.policy,
            state_store=self.state_store,
            http=self.registry_http,
            clock=clock,
        )
        self.registry = RegistryClient(
            api_url=registry.api_url,
            subscription_key=registry.subscription_key,
            session_store=self.session_store,
            coordinator=self.coordinator,
            http=self.registry_http,
            clock=clock,
        )

        self.resolver = CredentialTypeResolver()
        self.verifier = CredentialTrustVerifier(self.platform, platform.trusted_issuers)
        self.reconciler = VerificationReconciler(
            self.collection_store, self.delivery_store, self.verification_store, self.resolver
        )
        self.revocation = RevocationCoordinator(self.verifier, self.reconciler, self.platform)
        self.issuance = IssuanceService(
            platform=self.platform,
            collection_store=self.collection_store,
            delivery_store=self.delivery_store,
            collection_ids=collection_id_generator(clock),
            delivery_ids=delivery_id_generator(clock),
            collection_template_id=platform.collection_template_id,
            delivery_template_id=platform.delivery_template_id,
        )

    @classmethod
    def new(cls, config: Config, **collaborators: Any) -> "CredentialBridge":
        """
        Create a bridge from validated configuration.

        Args:
            config: credbridge configuration
            **collaborators: Optional ``ttl_store``, ``session_store``,
                ``verification_store``, ``collection_store``, ``delivery_store``,
                ``http_session`` and ``clock`` overrides

        Raises:
            ConfigurationError: If configuration is invalid

        Example:
            bridge = CredentialBridge.new(Config.from_env())
        """
        config.validate()
        return cls(config, **collaborators)

    async def get_access_token(self) -> str:
        return await self.broker.get_access_token()

    async def build_authorization_url(self, session_id: str) -> str:
        return await self.coordinator.build_authorization_url(session_id)

    async def handle_callback(self,
                              code: Optional[str],
                              state: Optional[str],
                              error: Optional[str] = None,
                              error_description: Optional[str] = None) -> CallbackResult:
        return await self.coordinator.handle_callback(code, state, error, error_description)

    async def complete_authorization(self,
                                     code: Optional[str],
                                     state: Optional[str],
                                     error: Optional[str] = None,
                                     error_description: Optional[str] = None) -> CallbackResult:
        """
        Handle the callback and store the registry token in the bound session.

        Raises:
            SessionNotFoundError: The session that started the flow is gone
        """
        result = await self.handle_callback(code, state, error, error_description)

        session = await self.session_store.get(result.session_id)
        if session is None:
            logger.warning(f"Session {result.session_id} expired before authorization completed")
            raise SessionNotFoundError(result.session_id)

        session.data[SESSION_TOKEN_KEY] = result.token.to_session_data()
        await self.session_store.set(session)
        logger.info(f"Registry token stored in session {result.session_id}")
        return result

    async def refresh_token(self, refresh_token: str) -> UpstreamOAuthToken:
        return await self.coordinator.refresh_token(refresh_token)

    async def verify(self, compact: str) -> VerificationResult:
        return await self.verifier.verify(compact)

    async def reconcile_and_record(self,
                                   claims: Optional[Dict[str, Any]],
                                   verified: bool,
                                   caller_type: Union[str, CredentialType, None] = None,
                                   user_id: Optional[str] = None,
                                   mobile_app_id: Optional[str] = None,
                                   validate_identifier: Optional[bool] = None) -> VerificationOutcome:
        if validate_identifier is None:
            validate_identifier = self.config.require_identifier_match
        return await self.reconciler.reconcile_and_record(
            claims, verified, caller_type, user_id, mobile_app_id, validate_identifier
        )

    async def verify_and_record(self,
                                compact: str,
                                caller_type: Union[str, CredentialType, None] = None,
                                user_id: Optional[str] = None,
                                mobile_app_id: Optional[str] = None,
                                validate_identifier: Optional[bool] = None) -> VerificationOutcome:
        """Verify a compact credential and reconcile the result in one call."""
        result = await self.verify(compact)
        return await self.reconcile_and_record(
            result.decoded_claims, result.verified, caller_type,
            user_id, mobile_app_id, validate_identifier,
        )

    async def revoke(self, compact: str,
                     caller_type: Union[str, CredentialType, None] = None) -> RevocationResult:
        return await self.revocation.revoke(compact, caller_type)

    async def close(self) -> None:
        """Release HTTP sessions and store connections."""
        await self.platform_http.close()
        await self.registry_http.close()
        await self.ttl_store.close()
        await self.session_store.close()
        await self.verification_store.close()
