"""
Issuance of collection and delivery credentials.

Builds the signed payload from the business event, has the signing platform
sign it, attaches a QR code when one can be rendered, and stores the local
record that verification later cross-checks against.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..credentials.identifiers import IdentifierGenerator
from ..credentials.store import CredentialRecord, CredentialStore
from ..credentials.types import (
    CollectionCredential,
    CredentialStatus,
    DeliveryCredential,
    QRCode,
)
from ..common.utils import parse_iso_timestamp
from ..errors import CredBridgeError, CredentialDataError
from ..platform.client import SigningPlatformClient


logger = logging.getLogger(__name__)

COLLECTION_CREDENTIAL_TYPE = "CollectionCredential"
DELIVERY_CREDENTIAL_TYPE = "DeliveryCredential"


@dataclass
class CollectionCredentialRequest:
    bin_identifier: str
    row_identifier: str
    harvest_start_datetime: str
    picker_id: str
    picker_name: str
    nzbn: str
    orchard_id: str
    harvest_end_datetime: Optional[str] = None
    collection_id: Optional[str] = None
    recipient_did: Optional[str] = None
    recipient_email: Optional[str] = None


@dataclass
class DeliveryCredentialRequest:
    origin_address: str
    destination_address: str
    delivery_start_datetime: str
    driver_id: str
    driver_name: str
    vehicle_id: str
    nzbn: str
    delivery_end_datetime: Optional[str] = None
    collection_id: Optional[str] = None
    delivery_id: Optional[str] = None
    recipient_did: Optional[str] = None
    recipient_email: Optional[str] = None


def check_time_window(start: str, end: Optional[str], label: str) -> None:
    """Raise ``CredentialDataError`` unless ``end`` is after ``start``."""
    try:
        start_at = parse_iso_timestamp(start)
        end_at = parse_iso_timestamp(end)
    except ValueError:
        raise CredentialDataError(f"{label} datetimes must be ISO 8601", field=f"{label.lower()}_datetime")

    if start_at is None:
        raise CredentialDataError(f"{label} start datetime is required",
                                  field=f"{label.lower()}_start_datetime")
    if end_at is not None and end_at <= start_at:
        raise CredentialDataError(f"{label} end datetime must be after {label.lower()} start datetime",
                                  field=f"{label.lower()}_end_datetime")


class IssuanceService:
    """
    Args:
        platform: Signing platform client
        collection_store / delivery_store: Local credential records
        collection_ids / delivery_ids: Domain identifier generators
        collection_template_id / delivery_template_id: Platform template ids
    """

    def __init__(self,
                 platform: SigningPlatformClient,
                 collection_store: CredentialStore,
                 delivery_store: CredentialStore,
                 collection_ids: IdentifierGenerator,
                 delivery_ids: IdentifierGenerator,
                 collection_template_id: str = "harvest-collection-v1",
                 delivery_template_id: str = "delivery-v1"):
        self.platform = platform
        self.collection_store = collection_store
        self.delivery_store = delivery_store
        self.collection_ids = collection_ids
        self.delivery_ids = delivery_ids
        self.collection_template_id = collection_template_id
        self.delivery_template_id = delivery_template_id

    async def issue_collection_credential(self,
                                          request: CollectionCredentialRequest) -> CollectionCredential:
        """
        Issue a collection credential.

        Raises:
            CredentialDataError: Malformed collection id or an inverted harvest window
            UpstreamError: Signing failed
        """
        collection_id = self._domain_id(request.collection_id, self.collection_ids, "Collection")
        check_time_window(request.harvest_start_datetime, request.harvest_end_datetime, "Harvest")
        logger.info(f"Issuing collection credential {collection_id} for bin {request.bin_identifier}")

        record = CollectionCredential(
            id="",
            collection_id=collection_id,
            bin_identifier=request.bin_identifier,
            row_identifier=request.row_identifier,
            harvest_start_datetime=request.harvest_start_datetime,
            harvest_end_datetime=request.harvest_end_datetime,
            picker_id=request.picker_id,
            picker_name=request.picker_name,
            nzbn=request.nzbn,
            orchard_id=request.orchard_id,
            recipient_did=request.recipient_did,
            recipient_email=request.recipient_email,
        )
        return await self._sign_and_store(record, COLLECTION_CREDENTIAL_TYPE,
                                          self.collection_template_id, self.collection_store)

    async def issue_delivery_credential(self,
                                        request: DeliveryCredentialRequest) -> DeliveryCredential:
        """
        Issue a delivery credential.

        Raises:
            CredentialDataError: Malformed delivery id or an inverted delivery window
            UpstreamError: Signing failed
        """
        delivery_id = self._domain_id(request.delivery_id, self.delivery_ids, "Delivery")
        check_time_window(request.delivery_start_datetime, request.delivery_end_datetime, "Delivery")
        logger.info(f"Issuing delivery credential {delivery_id} for vehicle {request.vehicle_id}")

        record = DeliveryCredential(
            id="",
            delivery_id=delivery_id,
            origin_address=request.origin_address,
            destination_address=request.destination_address,
            delivery_start_datetime=request.delivery_start_datetime,
            delivery_end_datetime=request.delivery_end_datetime,
            driver_id=request.driver_id,
            driver_name=request.driver_name,
            vehicle_id=request.vehicle_id,
            collection_id=request.collection_id,
            nzbn=request.nzbn,
            recipient_did=request.recipient_did,
            recipient_email=request.recipient_email,
        )
        return await self._sign_and_store(record, DELIVERY_CREDENTIAL_TYPE,
                                          self.delivery_template_id, self.delivery_store)

    async def get_revocation_status(self, external_id: str) -> bool:
        return await self.platform.get_revocation_status(external_id)

    @staticmethod
    def _domain_id(provided: Optional[str], generator: IdentifierGenerator, label: str) -> str:
        if not provided:
            return generator.generate()
        if not generator.validate(provided):
            raise CredentialDataError(
                f"Invalid {label} ID format. Expected format: {generator.prefix}-YYYYMMDD-XXXXXX",
                field=f"{label.lower()}_id",
            )
        return provided

    async def _sign_and_store(self,
                              record: CredentialRecord,
                              type_name: str,
                              template_id: str,
                              store: CredentialStore) -> CredentialRecord:
        payload: Dict[str, Any] = {
            "type": type_name,
            "templateId": template_id,
            **record.claims(),
        }
        if record.recipient_did:
            payload["recipientDid"] = record.recipient_did
        if record.recipient_email:
            payload["recipientEmail"] = record.recipient_email

        signed = await self.platform.sign(payload)
        record.id = signed.id
        record.encoded = signed.encoded
        record.qr_code = await self._qr_code(signed.encoded)
        record.status = CredentialStatus.ISSUED

        await store.save(record)
        logger.info(f"{type_name} {record.domain_id} issued as {record.id}")
        return record

    async def _qr_code(self, encoded: str) -> Optional[QRCode]:
        try:
            image = await self.platform.qrcode(encoded)
        except CredBridgeError as e:
            logger.warning(f"Failed to generate QR code: {e}")
            return None
        return QRCode(qrcode=base64.b64encode(image).decode("ascii"))
