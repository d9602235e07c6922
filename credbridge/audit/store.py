"""
Verification audit trail.

An append-only log of verification attempts, one ``VerificationRecord`` per
recorded attempt.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import List, Optional

import aiofiles

from ..credentials.types import CredentialType, VerificationRecord


logger = logging.getLogger(__name__)


class VerificationStore(ABC):
    """Abstract base class for verification record storage"""

    @abstractmethod
    async def insert(self, record: VerificationRecord) -> None:
        """Append a verification record"""
        pass

    @abstractmethod
    async def get_records(
        self,
        credential_id: Optional[str] = None,
        credential_type: Optional[CredentialType] = None,
    ) -> List[VerificationRecord]:
        """Retrieve records with optional filtering"""
        pass

    async def is_first_verification(self, credential_id: str) -> bool:
        """True when no verification has been recorded for ``credential_id`` yet"""
        return not await self.get_records(credential_id=credential_id)

    async def close(self) -> None:
        pass


def _matches(record: VerificationRecord,
             credential_id: Optional[str],
             credential_type: Optional[CredentialType]) -> bool:
    if credential_id and record.credential_id != credential_id:
        return False
    if credential_type and record.credential_type is not credential_type:
        return False
    return True


class MemoryVerificationStore(VerificationStore):
    """In-memory verification store for development and testing"""

    def __init__(self, max_entries: Optional[int] = None):
        self.records: deque = deque(maxlen=max_entries)
        self._lock = asyncio.Lock()

    async def insert(self, record: VerificationRecord) -> None:
        async with self._lock:
            self.records.append(record)

    async def get_records(
        self,
        credential_id: Optional[str] = None,
        credential_type: Optional[CredentialType] = None,
    ) -> List[VerificationRecord]:
        async with self._lock:
            return [r for r in self.records if _matches(r, credential_id, credential_type)]


class FileVerificationStore(VerificationStore):
    """Verification store appending JSON lines to a file"""

    def __init__(self, file_path: str):
        self.file_path = file_path
        self._lock = asyncio.Lock()

    async def insert(self, record: VerificationRecord) -> None:
        async with self._lock:
            async with aiofiles.open(self.file_path, "a") as f:
                await f.write(json.dumps(record.to_dict()) + "\n")

    async def get_records(
        self,
        credential_id: Optional[str] = None,
        credential_type: Optional[CredentialType] = None,
    ) -> List[VerificationRecord]:
        records = []

        try:
            async with aiofiles.open(self.file_path, "r") as f:
                async for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        record = VerificationRecord.from_dict(json.loads(line))
                    except (ValueError, KeyError) as e:
                        logger.warning(f"Skipping malformed verification record: {e}")
                        continue
                    if _matches(record, credential_id, credential_type):
                        records.append(record)
        except FileNotFoundError:
            pass

        return records


def create_verification_store(store_type: str = "memory", **kwargs) -> VerificationStore:
    """
    Create a verification store.

    Args:
        store_type: "memory" or "file"
        **kwargs: ``max_entries`` for memory, ``file_path`` for file
    """
    if store_type == "memory":
        return MemoryVerificationStore(kwargs.get("max_entries"))
    elif store_type == "file":
        return FileVerificationStore(kwargs.get("file_path", "verifications.jsonl"))
    else:
        raise ValueError(f"Unknown verification store type: {store_type}")
