"""
Credential issuance for credbridge.
"""

from .service import (
    IssuanceService,
    CollectionCredentialRequest,
    DeliveryCredentialRequest,
    COLLECTION_CREDENTIAL_TYPE,
    DELIVERY_CREDENTIAL_TYPE,
)

__all__ = [
    "IssuanceService",
    "CollectionCredentialRequest",
    "DeliveryCredentialRequest",
    "COLLECTION_CREDENTIAL_TYPE",
    "DELIVERY_CREDENTIAL_TYPE",
]
