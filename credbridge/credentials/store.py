"""
Local credential record storage.

One store per credential type. Records are keyed by the external id the
signing platform assigned and looked up by domain identifier during
verification and revocation.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Union

from .types import (
    CollectionCredential,
    CredentialStatus,
    CredentialType,
    DeliveryCredential,
)
from ..common.utils import get_current_time


logger = logging.getLogger(__name__)

CredentialRecord = Union[CollectionCredential, DeliveryCredential]


class CredentialStore(ABC):
    """Abstract store for one credential type."""

    credential_type: CredentialType = CredentialType.UNKNOWN

    @abstractmethod
    async def save(self, record: CredentialRecord) -> CredentialRecord:
        """Create or replace a record."""
        pass

    @abstractmethod
    async def find_by_external_id(self, external_id: str) -> Optional[CredentialRecord]:
        pass

    @abstractmethod
    async def find_by_domain_id(self, domain_id: str) -> Optional[CredentialRecord]:
        pass

    @abstractmethod
    async def update_status(self, external_id: str, status: CredentialStatus) -> bool:
        """Set the status of a record, returning whether it existed."""
        pass

    @abstractmethod
    async def list(self, nzbn: Optional[str] = None,
                   status: Optional[CredentialStatus] = None) -> List[CredentialRecord]:
        """List records, newest first."""
        pass


class MemoryCredentialStore(CredentialStore):
    """In-memory credential store."""

    def __init__(self, credential_type: CredentialType):
        if not credential_type.is_known:
            raise ValueError("A credential store needs a concrete credential type")
        self.credential_type = credential_type
        self._records: Dict[str, CredentialRecord] = {}
        self._by_domain_id: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def save(self, record: CredentialRecord) -> CredentialRecord:
        if record.credential_type is not self.credential_type:
            raise ValueError(
                f"Cannot store {record.credential_type.value} record in "
                f"{self.credential_type.value} store"
            )
        async with self._lock:
            self._records[record.id] = record
            self._by_domain_id[record.domain_id] = record.id
        logger.debug(f"Stored {self.credential_type.value} credential {record.id} ({record.domain_id})")
        return record

    async def find_by_external_id(self, external_id: str) -> Optional[CredentialRecord]:
        async with self._lock:
            return self._records.get(external_id)

    async def find_by_domain_id(self, domain_id: str) -> Optional[CredentialRecord]:
        async with self._lock:
            external_id = self._by_domain_id.get(domain_id)
            return self._records.get(external_id) if external_id else None

    async def update_status(self, external_id: str, status: CredentialStatus) -> bool:
        async with self._lock:
            record = self._records.get(external_id)
            if record is None:
                return False
            record.status = status
            record.updated_at = get_current_time()
        logger.info(f"Credential {external_id} status set to {status.value}")
        return True

    async def list(self, nzbn: Optional[str] = None,
                   status: Optional[CredentialStatus] = None) -> List[CredentialRecord]:
        async with self._lock:
            records = list(self._records.values())

        if nzbn:
            records = [r for r in records if r.nzbn == nzbn]
        if status:
            records = [r for r in records if r.status is status]
        return sorted(records, key=lambda r: r.created_at, reverse=True)
