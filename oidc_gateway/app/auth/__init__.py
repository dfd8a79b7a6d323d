"""
Token verification for gateway endpoints.

- discovery: OpenID Connect provider metadata and JWKS retrieval.
- verifier: bearer-header parsing and JWT validation for one provider/client.
- cache: shared single-flight verifiers keyed by AuthConfig.
"""

from .cache import VerifierCache, VerifierState
from .discovery import ProviderDiscovery, ProviderMetadata
from .verifier import BEARER_PREFIX, Claims, TokenVerifier, extract_bearer_token

__all__ = [
    "BEARER_PREFIX",
    "Claims",
    "ProviderDiscovery",
    "ProviderMetadata",
    "TokenVerifier",
    "VerifierCache",
    "VerifierState",
    "extract_bearer_token",
]
