"""
Cross-checks verified claims against local credential records and writes
the verification audit trail.

A credential can carry a valid signature and still name a collection or
delivery this system never issued. For recognized types the claimed domain
identifier must exist locally before the verification counts.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ..audit.store import VerificationStore
from ..credentials.resolver import (
    CredentialTypeResolver,
    domain_identifier,
    fallback_credential_id,
)
from ..credentials.store import CredentialRecord, CredentialStore
from ..credentials.types import CredentialType, VerificationRecord
from ..errors import CredentialDataError, CredentialNotFoundError


logger = logging.getLogger(__name__)


@dataclass
class VerificationOutcome:
    """Result of reconciling one verification."""

    verified: bool
    credential_type: CredentialType
    credential_id: Optional[str] = None
    domain_id: Optional[str] = None
    recorded: bool = False
    first_verification: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "verified": self.verified,
            "credentialType": self.credential_type.value,
            "credentialId": self.credential_id,
            "domainId": self.domain_id,
            "recorded": self.recorded,
            "firstVerification": self.first_verification,
        }


class VerificationReconciler:
    """
    Args:
        collection_store: Local collection credential records
        delivery_store: Local delivery credential records
        verification_store: Audit trail
        resolver: Credential type resolver
    """

    def __init__(self,
                 collection_store: CredentialStore,
                 delivery_store: CredentialStore,
                 verification_store: VerificationStore,
                 resolver: Optional[CredentialTypeResolver] = None):
        self.stores = {
            CredentialType.COLLECTION: collection_store,
            CredentialType.DELIVERY: delivery_store,
        }
        self.verification_store = verification_store
        self.resolver = resolver or CredentialTypeResolver()

    async def find_local(self, credential_type: CredentialType,
                         domain_id: str) -> Optional[CredentialRecord]:
        return await self.stores[credential_type].find_by_domain_id(domain_id)

    async def reconcile_and_record(self,
                                   claims: Optional[Dict[str, Any]],
                                   verified: bool,
                                   caller_type: Union[str, CredentialType, None] = None,
                                   user_id: Optional[str] = None,
                                   mobile_app_id: Optional[str] = None,
                                   validate_identifier: bool = True) -> VerificationOutcome:
        """
        Resolve the credential type, cross-validate the domain identifier and
        record the attempt.

        Raises:
            CredentialDataError: A recognized type without its domain identifier
                while ``validate_identifier`` is set
            CredentialNotFoundError: The identifier is unknown and ``validate_identifier`` is set
        """
        claims = claims if isinstance(claims, dict) else {}
        credential_type = self.resolver.resolve(claims, caller_type)
        fallback_id = fallback_credential_id(claims)

        if not credential_type.is_known:
            logger.warning("Could not determine credential type; recording without cross-validation")
            outcome = VerificationOutcome(verified=verified, credential_type=credential_type,
                                          credential_id=fallback_id)
            return await self._record(outcome, user_id, mobile_app_id)

        domain_id = domain_identifier(claims, credential_type)
        if not domain_id:
            if validate_identifier:
                raise CredentialDataError(
                    f"{credential_type.value.capitalize()} credential is missing "
                    f"{credential_type.domain_id_claim}",
                    field=credential_type.domain_id_claim,
                )

            logger.warning(f"{credential_type.value.capitalize()} credential has no "
                           f"{credential_type.domain_id_claim}; recording as unverified")
            outcome = VerificationOutcome(verified=False, credential_type=credential_type,
                                          credential_id=fallback_id)
            return await self._record(outcome, user_id, mobile_app_id)

        local = await self.find_local(credential_type, domain_id)
        if local is None:
            if validate_identifier:
                logger.warning(f"Rejected {credential_type.value} credential with unknown "
                               f"identifier {domain_id}")
                raise CredentialNotFoundError(credential_type.value, domain_id)

            logger.warning(f"{credential_type.value.capitalize()} credential {domain_id} not found "
                           f"locally; recording as unverified")
            outcome = VerificationOutcome(verified=False, credential_type=credential_type,
                                          credential_id=fallback_id, domain_id=domain_id)
            return await self._record(outcome, user_id, mobile_app_id)

        outcome = VerificationOutcome(verified=verified, credential_type=credential_type,
                                      credential_id=local.id, domain_id=domain_id)
        return await self._record(outcome, user_id, mobile_app_id)

    async def _record(self, outcome: VerificationOutcome,
                      user_id: Optional[str], mobile_app_id: Optional[str]) -> VerificationOutcome:
        if not outcome.credential_id:
            logger.warning(f"No credential id for {outcome.credential_type.value} credential; "
                           f"verification not recorded")
            return outcome

        record = VerificationRecord(
            credential_id=outcome.credential_id,
            credential_type=outcome.credential_type,
            verified=outcome.verified,
            user_id=user_id,
            mobile_application_id=mobile_app_id,
        )
        try:
            outcome.first_verification = await self.verification_store.is_first_verification(
                outcome.credential_id
            )
            await self.verification_store.insert(record)
        except Exception as e:
            # the audit trail must never fail a verification response
            logger.error(f"Failed to record verification for {outcome.credential_id}: {e}")
            outcome.first_verification = False
            return outcome

        outcome.recorded = True
        logger.info(f"Recorded {outcome.credential_type.value} verification for "
                    f"{outcome.credential_id} (verified={outcome.verified}, "
                    f"first={outcome.first_verification})")
        return outcome
