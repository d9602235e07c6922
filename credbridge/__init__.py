"""
credbridge

Trust-bridging core for issuing, verifying and revoking signed supply-chain
credentials against a credential-signing platform and a business registry.
"""

__version__ = "0.1.0"

from .core.bridge import CredentialBridge
from .core.config import Config, configure_logging
from .credentials.types import CredentialType, CredentialStatus
from .verification.reconciler import VerificationOutcome
from .verification.revocation import RevocationResult
from .verification.verifier import VerificationResult

__all__ = [
    "CredentialBridge",
    "Config",
    "configure_logging",
    "CredentialType",
    "CredentialStatus",
    "VerificationOutcome",
    "RevocationResult",
    "VerificationResult",
]
