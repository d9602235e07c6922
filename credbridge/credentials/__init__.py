"""
Credential records, stores, identifiers and type resolution.
"""

from .types import (
    CredentialType,
    CredentialStatus,
    CollectionCredential,
    DeliveryCredential,
    QRCode,
    VerificationRecord,
)
from .store import CredentialRecord, CredentialStore, MemoryCredentialStore
from .identifiers import (
    IdentifierGenerator,
    COLLECTION_PREFIX,
    DELIVERY_PREFIX,
    collection_id_generator,
    delivery_id_generator,
)
from .resolver import CredentialTypeResolver, domain_identifier, fallback_credential_id

__all__ = [
    "CredentialType",
    "CredentialStatus",
    "CollectionCredential",
    "DeliveryCredential",
    "QRCode",
    "VerificationRecord",
    "CredentialRecord",
    "CredentialStore",
    "MemoryCredentialStore",
    "IdentifierGenerator",
    "COLLECTION_PREFIX",
    "DELIVERY_PREFIX",
    "collection_id_generator",
    "delivery_id_generator",
    "CredentialTypeResolver",
    "domain_identifier",
    "fallback_credential_id",
]
