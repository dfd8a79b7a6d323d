"""
OpenID Connect provider discovery.

Fetches ``{issuer}/.well-known/openid-configuration`` and the JWKS it points
to. Every failure mode (transport error, bad status, malformed document,
issuer mismatch, timeout) surfaces as ``ProviderUnavailableError``.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import httpx

from shared.errors import ProviderUnavailableError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..models import AuthConfig

WELL_KNOWN_PATH = "/.well-known/openid-configuration"
DEFAULT_ALGORITHMS: Tuple[str, ...] = ("RS256",)
SUPPORTED_ALGORITHMS = frozenset({"RS256", "RS384", "RS512", "ES256", "ES384", "ES512"})


@dataclass(frozen=True)
class ProviderMetadata:
    """Validated subset of a provider's discovery document."""

    issuer: str
    jwks_uri: str
    algorithms: Tuple[str, ...] = DEFAULT_ALGORITHMS


class ProviderDiscovery:
    """Fetches provider metadata and signing keys over HTTP."""

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("gateway.auth.discovery")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def discover(self, auth: AuthConfig) -> Tuple[ProviderMetadata, List[Dict[str, Any]]]:
        """Return the provider metadata and current signing keys for ``auth``."""
        started = time.monotonic()
        try:
            result = await asyncio.wait_for(self._discover(auth), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            self._record("timeout", started)
            self.logger.error("Provider discovery timed out", issuer=auth.issuer, timeout=self.timeout)
            raise ProviderUnavailableError(
                "Provider discovery timed out",
                details={"issuer": auth.issuer},
            ) from exc
        except ProviderUnavailableError as exc:
            self._record("error", started)
            self.logger.error("Provider discovery failed", issuer=auth.issuer, error=exc.message, details=exc.details)
            raise

        self._record("ok", started)
        metadata, keys = result
        self.logger.info(
            "Provider discovered",
            issuer=metadata.issuer,
            jwks_uri=metadata.jwks_uri,
            keys_count=len(keys),
        )
        return result

    async def fetch_jwks(self, jwks_uri: str) -> List[Dict[str, Any]]:
        """Fetch the key set published at ``jwks_uri``."""
        try:
            payload = await asyncio.wait_for(self._get_json(jwks_uri), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise ProviderUnavailableError("JWKS fetch timed out", details={"jwks_uri": jwks_uri}) from exc

        keys = payload.get("keys") if isinstance(payload, dict) else None
        if not isinstance(keys, list):
            raise ProviderUnavailableError("JWKS response missing 'keys' array", details={"jwks_uri": jwks_uri})
        return [key for key in keys if isinstance(key, dict)]

    async def _discover(self, auth: AuthConfig) -> Tuple[ProviderMetadata, List[Dict[str, Any]]]:
        url = auth.issuer.rstrip("/") + WELL_KNOWN_PATH
        document = await self._get_json(url)
        metadata = self._parse_metadata(auth, document)
        keys = await self.fetch_jwks(metadata.jwks_uri)
        return metadata, keys

    def _parse_metadata(self, auth: AuthConfig, document: Any) -> ProviderMetadata:
        if not isinstance(document, dict):
            raise ProviderUnavailableError("Discovery document is not a JSON object", details={"issuer": auth.issuer})

        issuer = document.get("issuer")
        if not isinstance(issuer, str) or issuer.rstrip("/") != auth.issuer.rstrip("/"):
            raise ProviderUnavailableError(
                "Issuer did not match the issuer returned by the provider",
                details={"expected": auth.issuer, "actual": issuer},
            )

        jwks_uri = document.get("jwks_uri")
        if not isinstance(jwks_uri, str) or not jwks_uri:
            raise ProviderUnavailableError("Discovery document missing 'jwks_uri'", details={"issuer": auth.issuer})

        advertised = document.get("id_token_signing_alg_values_supported")
        algorithms = DEFAULT_ALGORITHMS
        if isinstance(advertised, list):
            usable = tuple(alg for alg in advertised if alg in SUPPORTED_ALGORITHMS)
            if usable:
                algorithms = usable

        return ProviderMetadata(issuer=issuer, jwks_uri=jwks_uri, algorithms=algorithms)

    async def _get_json(self, url: str) -> Any:
        try:
            response = await self._client.get(url, headers={"Accept": "application/json"})
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ProviderUnavailableError(
                f"Provider returned HTTP {exc.response.status_code}",
                details={"url": url},
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError("Provider request failed", details={"url": url, "error": str(exc)}) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderUnavailableError("Provider returned malformed JSON", details={"url": url}) from exc

    def _record(self, status: str, started: float) -> None:
        if self.metrics:
            self.metrics.record_discovery(status, time.monotonic() - started)
