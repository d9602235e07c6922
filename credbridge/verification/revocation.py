"""
Credential revocation.

Revocation acts on the external credential id, but callers present the
compact credential. The credential is verified first, its domain identifier
resolved to the local record, and only then is the platform told to revoke.
"""

import logging
from dataclasses import dataclass
from typing import Union

from .reconciler import VerificationReconciler
from .verifier import CredentialTrustVerifier
from ..credentials.resolver import domain_identifier, fallback_credential_id
from ..credentials.types import CredentialStatus, CredentialType
from ..errors import AmbiguousCredentialError, CredentialDataError, CredentialNotFoundError
from ..platform.client import SigningPlatformClient


logger = logging.getLogger(__name__)


@dataclass
class RevocationResult:
    success: bool
    external_credential_id: str


class RevocationCoordinator:
    """Resolves and revokes credentials."""

    def __init__(self,
                 verifier: CredentialTrustVerifier,
                 reconciler: VerificationReconciler,
                 platform: SigningPlatformClient):
        self.verifier = verifier
        self.reconciler = reconciler
        self.platform = platform

    async def revoke(self, compact: str,
                     caller_type: Union[str, CredentialType, None] = None) -> RevocationResult:
        """
        Revoke the credential encoded in ``compact``.

        Raises:
            CredentialDataError: The credential does not decode, or lacks its domain identifier
            CredentialNotFoundError: The domain identifier is not registered locally
            AmbiguousCredentialError: Neither type nor credential id can be determined
            UpstreamError: Verification or the revocation call failed
        """
        result = await self.verifier.verify(compact)
        claims = result.decoded_claims
        if not claims:
            raise CredentialDataError("Could not decode credential data", field="payload")

        credential_type = self.reconciler.resolver.resolve(claims, caller_type)
        local = None

        if credential_type.is_known:
            domain_id = domain_identifier(claims, credential_type)
            if not domain_id:
                raise CredentialDataError(
                    f"{credential_type.value.capitalize()} credential is missing "
                    f"{credential_type.domain_id_claim}",
                    field=credential_type.domain_id_claim,
                )
            local = await self.reconciler.find_local(credential_type, domain_id)
            if local is None:
                raise CredentialNotFoundError(credential_type.value, domain_id)
            external_id = local.id
            logger.info(f"Resolved {domain_id} to credential {external_id}")
        else:
            external_id = fallback_credential_id(claims)
            if not external_id:
                raise AmbiguousCredentialError()

        await self.platform.set_revocation_status(external_id, True)

        if local is not None:
            store = self.reconciler.stores[credential_type]
            await store.update_status(external_id, CredentialStatus.REVOKED)

        logger.info(f"Revoked credential {external_id}")
        return RevocationResult(success=True, external_credential_id=external_id)
