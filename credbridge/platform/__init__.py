"""
Credential-signing platform client.
"""

from .client import SigningPlatformClient, SignedCredential, VerifyFlags

__all__ = ["SigningPlatformClient", "SignedCredential", "VerifyFlags"]
