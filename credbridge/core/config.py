"""
Configuration module for credbridge.

Settings are grouped per upstream authority. ``Config.from_env()`` reads the
same environment variables the deployment already uses for the signing
platform (``MATTR_*``) and the business registry (``NZBN_*``); core tuning
knobs use the ``CREDBRIDGE_`` prefix.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..errors import ConfigurationError
from ..util.config import (
    get_bool_config,
    get_float_config,
    get_int_config,
    get_list_config,
    get_str_config,
)


DEFAULT_ISSUER_DID = "did:web:nzbn-pre.vii.au01.mattr.global"
DEFAULT_REGISTRY_API_URL = "https://api.business.govt.nz/sandbox"
DEFAULT_AUTHORIZE_URL = "https://api.business.govt.nz/oauth2/v2.0/authorize"
DEFAULT_TOKEN_URL = "https://api.business.govt.nz/oauth2/v2.0/token"
DEFAULT_REDIRECT_URI = "http://localhost:3001/nzbn/oauth/callback"
DEFAULT_SCOPE = "https://api.business.govt.nz/sandbox/NZBNCO:manage offline_access"
DEFAULT_POLICY = "b2c_1a_api_consent_susi"


@dataclass
class SigningPlatformConfig:
    """Credential-signing platform settings"""
    api_url: str = ""
    token_url: str = ""
    client_id: str = ""
    client_secret: str = ""
    audience: str = ""
    trusted_issuers: List[str] = field(default_factory=lambda: [DEFAULT_ISSUER_DID])
    collection_template_id: str = "harvest-collection-v1"
    delivery_template_id: str = "delivery-v1"

    def __post_init__(self):
        self.api_url = self.api_url.rstrip("/")
        if not self.token_url and self.api_url:
            self.token_url = f"{self.api_url}/oauth/token"


@dataclass
class RegistryConfig:
    """Business-registry OAuth and resource API settings"""
    api_url: str = DEFAULT_REGISTRY_API_URL
    subscription_key: str = ""
    authorize_url: str = DEFAULT_AUTHORIZE_URL
    token_url: str = DEFAULT_TOKEN_URL
    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = DEFAULT_REDIRECT_URI
    scope: str = DEFAULT_SCOPE
    policy: str = DEFAULT_POLICY

    def __post_init__(self):
        self.api_url = self.api_url.rstrip("/")


@dataclass
class Config:
    """Configuration for the credbridge core"""
    platform: SigningPlatformConfig = field(default_factory=SigningPlatformConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    state_ttl: int = 600
    session_ttl: int = 3600
    http_timeout: float = 30.0
    token_safety_margin: int = 60
    require_identifier_match: bool = True
    redis_url: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables"""
        api_url = get_str_config("API_URL", env_prefix="MATTR_")
        issuer_did = get_str_config("ISSUER_DID", DEFAULT_ISSUER_DID, env_prefix="MATTR_")

        platform = SigningPlatformConfig(
            api_url=api_url,
            token_url=(
                get_str_config("OAUTH_URL", env_prefix="MATTR_")
                or get_str_config("TOKEN_URL", env_prefix="MATTR_")
            ),
            client_id=get_str_config("CLIENT_ID", env_prefix="MATTR_"),
            client_secret=get_str_config("CLIENT_SECRET", env_prefix="MATTR_"),
            audience=get_str_config("AUDIENCE", env_prefix="MATTR_"),
            trusted_issuers=get_list_config("TRUSTED_ISSUERS", [issuer_did], env_prefix="MATTR_"),
            collection_template_id=get_str_config(
                "COLLECTION_CREDENTIAL_TEMPLATE_ID", "harvest-collection-v1", env_prefix="MATTR_"
            ),
            delivery_template_id=get_str_config(
                "DELIVERY_CREDENTIAL_TEMPLATE_ID", "delivery-v1", env_prefix="MATTR_"
            ),
        )

        registry = RegistryConfig(
            api_url=get_str_config("API_URL", DEFAULT_REGISTRY_API_URL, env_prefix="NZBN_"),
            subscription_key=get_str_config("SUBSCRIPTION_KEY", env_prefix="NZBN_"),
            authorize_url=get_str_config("AUTHORIZE_URL", DEFAULT_AUTHORIZE_URL, env_prefix="NZBN_OAUTH_"),
            token_url=get_str_config("TOKEN_URL", DEFAULT_TOKEN_URL, env_prefix="NZBN_OAUTH_"),
            client_id=get_str_config("CLIENT_ID", env_prefix="NZBN_OAUTH_"),
            client_secret=get_str_config("CLIENT_SECRET", env_prefix="NZBN_OAUTH_"),
            redirect_uri=get_str_config("REDIRECT_URI", DEFAULT_REDIRECT_URI, env_prefix="NZBN_OAUTH_"),
            scope=get_str_config("SCOPE", DEFAULT_SCOPE, env_prefix="NZBN_OAUTH_"),
            policy=get_str_config("POLICY", DEFAULT_POLICY, env_prefix="NZBN_OAUTH_"),
        )

        return cls(
            platform=platform,
            registry=registry,
            state_ttl=get_int_config("STATE_TTL", 600),
            session_ttl=get_int_config("SESSION_TTL", 3600),
            http_timeout=get_float_config("HTTP_TIMEOUT", 30.0),
            token_safety_margin=get_int_config("TOKEN_SAFETY_MARGIN", 60),
            require_identifier_match=get_bool_config("REQUIRE_IDENTIFIER_MATCH", True),
            redis_url=get_str_config("REDIS_URL") or None,
            log_level=get_str_config("LOG_LEVEL", "INFO"),
        )

    def validate(self) -> bool:
        """
        Validate settings that must be present before any upstream call.

        Client ids and secrets are checked lazily by the brokers so that a
        deployment can run with only one authority configured.
        """
        if not self.platform.api_url:
            raise ConfigurationError("MATTR_API_URL is required", setting="platform.api_url")
        if not self.platform.token_url:
            raise ConfigurationError("MATTR token URL is required", setting="platform.token_url")
        if not self.registry.authorize_url or not self.registry.token_url:
            raise ConfigurationError("NZBN OAuth endpoints are required", setting="registry")
        if self.state_ttl <= 0:
            raise ConfigurationError("state_ttl must be positive", setting="state_ttl")
        if self.http_timeout <= 0:
            raise ConfigurationError("http_timeout must be positive", setting="http_timeout")
        return True


def configure_logging(level: str = "INFO") -> None:
    """Install a default log handler for applications embedding credbridge."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
