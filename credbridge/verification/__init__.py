"""
Verification, reconciliation and revocation of compact credentials.
"""

from .verifier import CredentialTrustVerifier, VerificationResult
from .reconciler import VerificationReconciler, VerificationOutcome
from .revocation import RevocationCoordinator, RevocationResult

__all__ = [
    "CredentialTrustVerifier",
    "VerificationResult",
    "VerificationReconciler",
    "VerificationOutcome",
    "RevocationCoordinator",
    "RevocationResult",
]
