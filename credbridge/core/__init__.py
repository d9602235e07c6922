"""
Core module initialization
"""

from .bridge import CredentialBridge
from .config import Config, RegistryConfig, SigningPlatformConfig, configure_logging

__all__ = [
    "CredentialBridge",
    "Config",
    "RegistryConfig",
    "SigningPlatformConfig",
    "configure_logging",
]
