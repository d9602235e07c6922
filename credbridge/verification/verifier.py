"""
Credential verification through the signing platform.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import (
    ConfigurationError,
    CredentialDataError,
    UpstreamAuthError,
)
from ..platform.client import SigningPlatformClient, VerifyFlags


logger = logging.getLogger(__name__)


@dataclass
class VerificationResult:
    """What the external verifier concluded about a compact credential."""

    verified: bool
    decoded_claims: Optional[Dict[str, Any]] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "VerificationResult":
        claims = data.get("decoded")
        if claims is None:
            claims = data.get("payload")
        return cls(
            verified=bool(data.get("verified", False)),
            decoded_claims=claims if isinstance(claims, dict) else None,
            errors=_messages(data.get("errors")),
            warnings=_messages(data.get("warnings")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "verified": self.verified,
            "decoded": self.decoded_claims,
            "errors": self.errors,
            "warnings": self.warnings,
        }


def _messages(value: Any) -> List[str]:
    if not value:
        return []
    if not isinstance(value, list):
        return [str(value)]

    messages = []
    for item in value:
        if isinstance(item, dict):
            messages.append(str(item.get("message", item)))
        else:
            messages.append(str(item))
    return messages


class CredentialTrustVerifier:
    """
    Asks the platform to check signature, issuer, validity window and
    revocation status of a compact credential. Persists nothing.
    """

    def __init__(self, platform: SigningPlatformClient, trusted_issuers: List[str]):
        self.platform = platform
        self.trusted_issuers = [issuer for issuer in trusted_issuers if issuer]

    async def verify(self, compact: Optional[str]) -> VerificationResult:
        """
        Verify ``compact`` against the configured trusted issuers.

        Raises:
            CredentialDataError: The payload is empty
            ConfigurationError: No trusted issuers are configured
            UpstreamError: The platform call failed
        """
        if not compact or not compact.strip():
            raise CredentialDataError("Credential payload is required", field="payload")
        if not self.trusted_issuers:
            raise ConfigurationError("At least one trusted issuer is required",
                                     setting="platform.trusted_issuers")

        try:
            data = await self.platform.verify(compact.strip(), self.trusted_issuers, VerifyFlags())
        except UpstreamAuthError:
            # the platform client already cleared the cached token on 401
            logger.error("Signing platform rejected the access token during verification")
            raise

        result = VerificationResult.from_response(data)
        if result.verified:
            logger.info("Credential verified by signing platform")
        else:
            logger.warning(f"Credential failed verification: {'; '.join(result.errors) or 'no reason given'}")
        return result
