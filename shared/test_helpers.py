"""
Test helper functions and factory methods for the OIDC Gateway.
"""

import asyncio
import base64
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from jose import jwt

TEST_ISSUER = "https://idp.example.com"
TEST_CLIENT_ID = "gateway-client"


@dataclass
class TestSigningKey:
    """RSA key pair published by the fake identity provider."""

    __test__ = False

    kid: str
    private_pem: str
    public_jwk: Dict[str, Any]


def _int_to_b64(value: int) -> str:
    raw = value.to_bytes((value.bit_length() + 7) // 8, "big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def create_signing_key(kid: str = "test-key-1") -> TestSigningKey:
    """Generate an RS256 key pair and its public JWK."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")

    numbers = private_key.public_key().public_numbers()
    public_jwk = {
        "kty": "RSA",
        "kid": kid,
        "use": "sig",
        "alg": "RS256",
        "n": _int_to_b64(numbers.n),
        "e": _int_to_b64(numbers.e),
    }
    return TestSigningKey(kid=kid, private_pem=private_pem, public_jwk=public_jwk)


def create_ec_public_jwk(kid: str = "ec-key-1") -> Dict[str, Any]:
    """Generate a P-256 public JWK, as published next to RSA keys by many providers."""
    numbers = ec.generate_private_key(ec.SECP256R1()).public_key().public_numbers()
    return {
        "kty": "EC",
        "kid": kid,
        "use": "sig",
        "alg": "ES256",
        "crv": "P-256",
        "x": _int_to_b64(numbers.x),
        "y": _int_to_b64(numbers.y),
    }


def create_jwks(*keys: TestSigningKey) -> Dict[str, Any]:
    """Create a JWKS document for the given keys."""
    return {"keys": [key.public_jwk for key in keys]}


def create_discovery_document(issuer: str = TEST_ISSUER, jwks_uri: Optional[str] = None) -> Dict[str, Any]:
    """Create an OpenID Connect discovery document."""
    return {
        "issuer": issuer,
        "authorization_endpoint": f"{issuer}/protocol/openid-connect/auth",
        "token_endpoint": f"{issuer}/protocol/openid-connect/token",
        "jwks_uri": jwks_uri or f"{issuer}/protocol/openid-connect/certs",
        "response_types_supported": ["code"],
        "subject_types_supported": ["public"],
        "id_token_signing_alg_values_supported": ["RS256"],
    }


def create_id_token(
    key: TestSigningKey,
    *,
    issuer: str = TEST_ISSUER,
    audience: Optional[Any] = TEST_CLIENT_ID,
    subject: str = "user-123",
    email: Optional[str] = "alice@example.com",
    expires_in: int = 3600,
    include_kid: bool = True,
    **extra_claims: Any,
) -> str:
    """Create a signed ID token.

    Pass ``audience=None`` to omit the ``aud`` claim and a negative
    ``expires_in`` for an expired token.
    """
    now = int(time.time())
    claims: Dict[str, Any] = {
        "iss": issuer,
        "sub": subject,
        "iat": now,
        "exp": now + expires_in,
    }
    if audience is not None:
        claims["aud"] = audience
    if email is not None:
        claims["email"] = email
    claims.update(extra_claims)

    headers = {"kid": key.kid} if include_kid else None
    return jwt.encode(claims, key.private_pem, algorithm="RS256", headers=headers)


@dataclass
class FakeIdentityProvider:
    """In-memory OpenID provider served through ``httpx.MockTransport``."""

    issuer: str = TEST_ISSUER
    keys: List[TestSigningKey] = field(default_factory=list)
    latency: float = 0.0
    available: bool = True
    discovery_calls: int = 0
    jwks_calls: int = 0

    @property
    def discovery_url(self) -> str:
        return f"{self.issuer}/.well-known/openid-configuration"

    @property
    def jwks_uri(self) -> str:
        return f"{self.issuer}/protocol/openid-connect/certs"

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport())

    async def handle(self, request: httpx.Request) -> httpx.Response:
        if self.latency:
            await asyncio.sleep(self.latency)

        url = str(request.url)
        if url == self.discovery_url:
            self.discovery_calls += 1
            if not self.available:
                return httpx.Response(503, text="provider down for maintenance")
            return httpx.Response(200, json=create_discovery_document(self.issuer, self.jwks_uri))

        if url == self.jwks_uri:
            self.jwks_calls += 1
            if not self.available:
                return httpx.Response(503, text="provider down for maintenance")
            return httpx.Response(200, json=create_jwks(*self.keys))

        return httpx.Response(404, json={"error": "not found"})
