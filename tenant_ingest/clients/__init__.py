"""
Clients for the remote services the pipeline talks to.
"""

from .auth import BearerToken, GoogleAuthTokenProvider, StaticTokenProvider, TokenProvider, TokenSupplier
from .discovery_engine import DiscoveryEngineClient
from .object_store import ObjectStoreUploader

__all__ = [
    "BearerToken",
    "TokenProvider",
    "StaticTokenProvider",
    "GoogleAuthTokenProvider",
    "TokenSupplier",
    "DiscoveryEngineClient",
    "ObjectStoreUploader",
]
