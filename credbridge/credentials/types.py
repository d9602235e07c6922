"""
Credential types and records for credbridge.

Local records tie a domain identifier (``COL-…`` / ``DEL-…``) to the opaque
external id the signing platform assigned when the credential was signed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..common.utils import format_timestamp, generate_id, get_current_time, parse_iso_timestamp


class CredentialType(Enum):
    """Semantic credential type."""

    COLLECTION = "collection"
    DELIVERY = "delivery"
    UNKNOWN = "unknown"

    @property
    def is_known(self) -> bool:
        return self is not CredentialType.UNKNOWN

    @property
    def domain_id_claim(self) -> Optional[str]:
        """Claim carrying the domain identifier for this type."""
        return {
            CredentialType.COLLECTION: "collectionId",
            CredentialType.DELIVERY: "deliveryId",
        }.get(self)


class CredentialStatus(Enum):
    """Lifecycle status of a local credential record."""

    PENDING = "pending"
    ISSUED = "issued"
    FAILED = "failed"
    REVOKED = "revoked"


@dataclass
class QRCode:
    """QR code image for a compact credential, base64 encoded."""

    qrcode: str
    type: str = "image/png"


@dataclass
class CollectionCredential:
    """A harvest collection event."""

    id: str
    collection_id: str
    bin_identifier: str
    row_identifier: str
    harvest_start_datetime: str
    picker_id: str
    picker_name: str
    nzbn: str
    orchard_id: str
    harvest_end_datetime: Optional[str] = None
    recipient_did: Optional[str] = None
    recipient_email: Optional[str] = None
    status: CredentialStatus = CredentialStatus.PENDING
    encoded: Optional[str] = None
    qr_code: Optional[QRCode] = None
    created_at: datetime = field(default_factory=get_current_time)
    updated_at: datetime = field(default_factory=get_current_time)

    credential_type = CredentialType.COLLECTION

    @property
    def domain_id(self) -> str:
        return self.collection_id

    def claims(self) -> Dict[str, Any]:
        """Business claims signed into the credential."""
        claims = {
            "collectionId": self.collection_id,
            "binIdentifier": self.bin_identifier,
            "rowIdentifier": self.row_identifier,
            "harvestStartDatetime": self.harvest_start_datetime,
            "pickerId": self.picker_id,
            "pickerName": self.picker_name,
            "nzbn": self.nzbn,
            "orchardId": self.orchard_id,
        }
        if self.harvest_end_datetime:
            claims["harvestEndDatetime"] = self.harvest_end_datetime
        return claims

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id, **self.claims()}
        data.update(_record_fields(self))
        return data


@dataclass
class DeliveryCredential:
    """A delivery event, optionally linked to the collection it carries."""

    id: str
    delivery_id: str
    origin_address: str
    destination_address: str
    delivery_start_datetime: str
    driver_id: str
    driver_name: str
    vehicle_id: str
    nzbn: str
    delivery_end_datetime: Optional[str] = None
    collection_id: Optional[str] = None
    recipient_did: Optional[str] = None
    recipient_email: Optional[str] = None
    status: CredentialStatus = CredentialStatus.PENDING
    encoded: Optional[str] = None
    qr_code: Optional[QRCode] = None
    created_at: datetime = field(default_factory=get_current_time)
    updated_at: datetime = field(default_factory=get_current_time)

    credential_type = CredentialType.DELIVERY

    @property
    def domain_id(self) -> str:
        return self.delivery_id

    def claims(self) -> Dict[str, Any]:
        claims = {
            "deliveryId": self.delivery_id,
            "originAddress": self.origin_address,
            "destinationAddress": self.destination_address,
            "deliveryStartDatetime": self.delivery_start_datetime,
            "driverId": self.driver_id,
            "driverName": self.driver_name,
            "vehicleId": self.vehicle_id,
            "nzbn": self.nzbn,
        }
        if self.delivery_end_datetime:
            claims["deliveryEndDatetime"] = self.delivery_end_datetime
        if self.collection_id:
            claims["collectionId"] = self.collection_id
        return claims

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id, **self.claims()}
        data.update(_record_fields(self))
        return data


def _record_fields(record) -> Dict[str, Any]:
    return {
        "recipientDid": record.recipient_did,
        "recipientEmail": record.recipient_email,
        "status": record.status.value,
        "encoded": record.encoded,
        "qrCode": {"qrcode": record.qr_code.qrcode, "type": record.qr_code.type} if record.qr_code else None,
        "createdAt": format_timestamp(record.created_at),
        "updatedAt": format_timestamp(record.updated_at),
    }


@dataclass
class VerificationRecord:
    """One recorded verification attempt. Append-only."""

    credential_id: str
    credential_type: CredentialType
    verified: bool
    user_id: Optional[str] = None
    mobile_application_id: Optional[str] = None
    record_id: str = field(default_factory=generate_id)
    verified_at: datetime = field(default_factory=get_current_time)
    created_at: datetime = field(default_factory=get_current_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.record_id,
            "credentialId": self.credential_id,
            "credentialType": self.credential_type.value,
            "userId": self.user_id,
            "mobileApplicationId": self.mobile_application_id,
            "verified": self.verified,
            "verifiedAt": format_timestamp(self.verified_at),
            "createdAt": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerificationRecord":
        return cls(
            record_id=data["id"],
            credential_id=data["credentialId"],
            credential_type=CredentialType(data.get("credentialType", "unknown")),
            user_id=data.get("userId"),
            mobile_application_id=data.get("mobileApplicationId"),
            verified=bool(data.get("verified")),
            verified_at=parse_iso_timestamp(data.get("verifiedAt")) or get_current_time(),
            created_at=parse_iso_timestamp(data.get("createdAt")) or get_current_time(),
        )
