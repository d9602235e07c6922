"""
Business-registry resource client.
"""

from .client import RegistryClient, SESSION_TOKEN_KEY

__all__ = ["RegistryClient", "SESSION_TOKEN_KEY"]
