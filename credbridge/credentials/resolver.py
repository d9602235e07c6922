"""
Credential type detection and reconciliation.

The claims inside a verified credential are signed; a type string sent by
the caller alongside a verification request is not. Detection therefore
always wins over the caller's hint.
"""

import logging
from typing import Any, Optional, Union

from .types import CredentialType


logger = logging.getLogger(__name__)

CALLER_TYPE_ALIASES = {
    "delivery": CredentialType.DELIVERY,
    "deliverycredential": CredentialType.DELIVERY,
    "collection": CredentialType.COLLECTION,
    "collectioncredential": CredentialType.COLLECTION,
    "orgpartharvestcredential": CredentialType.COLLECTION,
}


class CredentialTypeResolver:
    """Detects and reconciles credential types. Stateless."""

    def detect_type(self, claims: Any) -> CredentialType:
        """Derive the type from decoded claims: ``deliveryId`` beats ``collectionId``."""
        if not isinstance(claims, dict):
            logger.debug("Decoded claims are not a mapping; type unknown")
            return CredentialType.UNKNOWN

        if claims.get("deliveryId"):
            return CredentialType.DELIVERY
        if claims.get("collectionId"):
            return CredentialType.COLLECTION

        logger.debug(f"No domain identifier in claims (keys: {', '.join(claims.keys())})")
        return CredentialType.UNKNOWN

    def normalize_hint(self, caller_provided: Union[str, CredentialType, None]) -> CredentialType:
        if caller_provided is None:
            return CredentialType.UNKNOWN
        if isinstance(caller_provided, CredentialType):
            return caller_provided
        return CALLER_TYPE_ALIASES.get(caller_provided.strip().lower(), CredentialType.UNKNOWN)

    def reconcile(self,
                  detected: CredentialType,
                  caller_provided: Union[str, CredentialType, None] = None) -> CredentialType:
        """Resolve the effective type from the detected type and an optional caller hint."""
        hint = self.normalize_hint(caller_provided)

        if detected.is_known:
            if hint.is_known and hint is not detected:
                logger.warning(f"Credential type mismatch: caller said {caller_provided}, "
                               f"claims say {detected.value}; using {detected.value}")
            return detected

        if caller_provided is not None and not hint.is_known:
            logger.warning(f"Unrecognised credential type hint: {caller_provided}")
        return hint

    def resolve(self, claims: Any,
                caller_provided: Union[str, CredentialType, None] = None) -> CredentialType:
        return self.reconcile(self.detect_type(claims), caller_provided)


def domain_identifier(claims: Any, credential_type: CredentialType) -> Optional[str]:
    """Domain identifier claim for ``credential_type``, as a string."""
    claim = credential_type.domain_id_claim
    if not claim or not isinstance(claims, dict):
        return None
    value = claims.get(claim)
    return str(value) if value else None


def fallback_credential_id(claims: Any) -> Optional[str]:
    """External id asserted by the claims themselves (``id`` or ``credentialId``)."""
    if not isinstance(claims, dict):
        return None
    value = claims.get("id") or claims.get("credentialId")
    return str(value) if value else None
