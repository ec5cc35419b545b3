"""
authnexus.client

Client-side token guardian.

Responsibilities:
- Own the local token cache.
- Attach access tokens, refresh them single-flight, replay requests rejected with 401.
- Expose an httpx-based request pipeline (`AuthClient`).
"""

from authnexus.client.guardian import RequestDescriptor, TokenGuardian
from authnexus.client.session import AuthClient
from authnexus.client.single_flight import SingleFlight
from authnexus.client.token_cache import CachedTokens, FileTokenCache, MemoryTokenCache, TokenCache

__all__ = [
    "AuthClient",
    "CachedTokens",
    "FileTokenCache",
    "MemoryTokenCache",
    "RequestDescriptor",
    "SingleFlight",
    "TokenCache",
    "TokenGuardian",
]
