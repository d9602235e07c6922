"""
Verification audit trail for credbridge.
"""

from .store import (
    VerificationStore,
    MemoryVerificationStore,
    FileVerificationStore,
    create_verification_store,
)

__all__ = [
    "VerificationStore",
    "MemoryVerificationStore",
    "FileVerificationStore",
    "create_verification_store",
]
