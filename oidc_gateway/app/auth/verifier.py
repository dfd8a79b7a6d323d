"""
Bearer token verification against a discovered identity provider.
"""

from __future__ import annotations

import asyncio
import time
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional

from jose import jwt
from jose.exceptions import JOSEError

from shared.errors import (
    InvalidTokenError,
    MalformedCredentialsError,
    MissingCredentialsError,
    ProviderUnavailableError,
)
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..models import AuthConfig
from .discovery import ProviderDiscovery, ProviderMetadata

BEARER_PREFIX = "Bearer "
REQUIRED_CLAIMS = ("aud", "exp")
KEY_TYPES = {"RS": "RSA", "ES": "EC"}


class Claims(Mapping[str, Any]):
    """Read-only view of a verified token's claim set."""

    def __init__(self, claims: Mapping[str, Any]) -> None:
        self._claims = MappingProxyType(dict(claims))

    def __getitem__(self, name: str) -> Any:
        return self._claims[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._claims)

    def __len__(self) -> int:
        return len(self._claims)

    def __repr__(self) -> str:
        return f"Claims(sub={self.subject!r})"

    @property
    def subject(self) -> Optional[str]:
        return self._claims.get("sub")

    @property
    def email(self) -> Optional[str]:
        return self._claims.get("email")


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Return the token from an ``Authorization`` header value.

    The prefix is checked before it is sliced off, so short values such as
    ``"Short"`` are rejected instead of being truncated.
    """
    if not authorization:
        raise MissingCredentialsError()

    if not authorization.startswith(BEARER_PREFIX):
        raise MalformedCredentialsError()

    token = authorization[len(BEARER_PREFIX):]
    if not token.strip():
        raise MalformedCredentialsError("Authorization header contained empty bearer token")
    return token


class TokenVerifier:
    """A READY verifier: provider metadata plus signing keys for one AuthConfig."""

    def __init__(
        self,
        auth: AuthConfig,
        metadata: ProviderMetadata,
        keys: List[Dict[str, Any]],
        discovery: ProviderDiscovery,
        *,
        leeway: int = 0,
        refresh_interval: float = 60.0,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.auth = auth
        self.metadata = metadata
        self.leeway = leeway
        self.refresh_interval = refresh_interval
        self.metrics = metrics
        self.logger = get_logger("gateway.auth.verifier")

        self._discovery = discovery
        self._keys: List[Dict[str, Any]] = list(keys)
        self._last_refresh = time.monotonic()
        self._refresh_lock = asyncio.Lock()

    @property
    def audience(self) -> str:
        return self.auth.client_id

    @property
    def keys(self) -> List[Dict[str, Any]]:
        return list(self._keys)

    async def verify(self, authorization: Optional[str]) -> Claims:
        """Verify the raw ``Authorization`` header value and return its claims."""
        token = extract_bearer_token(authorization)
        return await self.verify_token(token)

    async def verify_token(self, token: str) -> Claims:
        """Validate signature, issuer, audience and expiry of ``token``."""
        try:
            header = jwt.get_unverified_header(token)
        except JOSEError as exc:
            raise InvalidTokenError("Malformed JWT", details={"error": str(exc)}) from exc

        algorithm = header.get("alg")
        if algorithm not in self.metadata.algorithms:
            raise InvalidTokenError("Unsupported signing algorithm", details={"alg": algorithm})

        key = await self._signing_key(header.get("kid"), algorithm)

        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=list(self.metadata.algorithms),
                audience=self.audience,
                issuer=self.metadata.issuer,
                options={"verify_at_hash": False, "leeway": self.leeway},
            )
        except JOSEError as exc:
            raise InvalidTokenError("JWT validation failed", details={"error": str(exc)}) from exc

        missing = [name for name in REQUIRED_CLAIMS if name not in claims]
        if missing:
            raise InvalidTokenError("JWT missing required claims", details={"missing": missing})

        return Claims(claims)

    async def _signing_key(self, kid: Optional[str], algorithm: str) -> Mapping[str, Any]:
        # Without a key id every signing key of the algorithm's type is a candidate.
        if kid is None:
            candidates = self._candidate_keys(algorithm)
            if not candidates:
                raise InvalidTokenError("No signing key matches token algorithm", details={"alg": algorithm})
            return {"keys": candidates}

        key = self._find_key(kid)
        if key is None and await self._refresh_keys(kid):
            key = self._find_key(kid)
        if key is None:
            raise InvalidTokenError("Signing key not found for token", details={"kid": kid})
        return key

    def _candidate_keys(self, algorithm: str) -> List[Dict[str, Any]]:
        key_type = KEY_TYPES.get(algorithm[:2])
        return [
            key for key in self._keys
            if key.get("kty") == key_type and key.get("use", "sig") == "sig"
        ]

    def _find_key(self, kid: str) -> Optional[Dict[str, Any]]:
        for key in self._keys:
            if key.get("kid") == kid:
                return key
        return None

    async def _refresh_keys(self, kid: str) -> bool:
        """Re-fetch the JWKS after a key rotation. Returns True if ``kid`` is now known."""
        async with self._refresh_lock:
            if self._find_key(kid) is not None:
                return True
            if time.monotonic() - self._last_refresh < self.refresh_interval:
                return False

            self._last_refresh = time.monotonic()
            try:
                keys = await self._discovery.fetch_jwks(self.metadata.jwks_uri)
            except ProviderUnavailableError as exc:
                self.logger.warning("JWKS refresh failed", issuer=self.metadata.issuer, error=exc.message)
                if self.metrics:
                    self.metrics.record_jwks_refresh("error")
                return False

            self._keys = keys
            if self.metrics:
                self.metrics.record_jwks_refresh("ok")
            self.logger.info("JWKS refreshed", issuer=self.metadata.issuer, keys_count=len(keys))
            return self._find_key(kid) is not None
