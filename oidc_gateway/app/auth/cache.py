"""
Shared, lazily-initialised verifiers keyed by AuthConfig.

Discovery runs at most once per AuthConfig: concurrent first requests await
the same in-flight task. A failed discovery is not remembered, so the next
request starts a fresh attempt.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Dict, Iterable, Optional

from shared.errors import GatewayError, ProviderUnavailableError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..models import AuthConfig
from .discovery import ProviderDiscovery
from .verifier import TokenVerifier


class VerifierState(str, Enum):
    """Lifecycle of the verifier for one AuthConfig."""

    UNINITIALIZED = "uninitialized"
    DISCOVERING = "discovering"
    READY = "ready"
    FAILED = "failed"


class VerifierCache:
    """Single-flight memoization of ``TokenVerifier`` instances."""

    def __init__(
        self,
        discovery: ProviderDiscovery,
        *,
        leeway: int = 0,
        refresh_interval: float = 60.0,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.discovery = discovery
        self.leeway = leeway
        self.refresh_interval = refresh_interval
        self.metrics = metrics
        self.logger = get_logger("gateway.auth.cache")

        self._verifiers: Dict[AuthConfig, TokenVerifier] = {}
        self._inflight: Dict[AuthConfig, asyncio.Task] = {}
        self._failed: Dict[AuthConfig, ProviderUnavailableError] = {}

    def state(self, auth: AuthConfig) -> VerifierState:
        if auth in self._verifiers:
            return VerifierState.READY
        if auth in self._inflight:
            return VerifierState.DISCOVERING
        if auth in self._failed:
            return VerifierState.FAILED
        return VerifierState.UNINITIALIZED

    async def get(self, auth: AuthConfig) -> TokenVerifier:
        """Return the READY verifier for ``auth``, discovering it on first use."""
        verifier = self._verifiers.get(auth)
        if verifier is not None:
            return verifier

        task = self._inflight.get(auth)
        if task is None:
            task = asyncio.ensure_future(self._initialize(auth))
            self._inflight[auth] = task
            task.add_done_callback(lambda done, key=auth: self._discard(key, done))

        # Shield so a cancelled request does not abort discovery for the others.
        return await asyncio.shield(task)

    async def warmup(self, auths: Iterable[AuthConfig]) -> None:
        """Eagerly discover every AuthConfig so first requests do not pay the cost."""
        auths = list(auths)
        results = await asyncio.gather(*(self.get(auth) for auth in auths), return_exceptions=True)
        for auth, result in zip(auths, results):
            if isinstance(result, GatewayError):
                self.logger.warning(
                    "Verifier warmup failed", issuer=auth.issuer, error=result.message, details=result.details
                )
            elif isinstance(result, BaseException):
                self.logger.error(
                    "Verifier warmup failed", issuer=auth.issuer, error=str(result), exc_info=result
                )

    def invalidate(self, auth: AuthConfig) -> None:
        """Drop the cached verifier so the next request re-runs discovery."""
        self._verifiers.pop(auth, None)
        self._failed.pop(auth, None)

    async def close(self) -> None:
        for task in list(self._inflight.values()):
            task.cancel()
        await self.discovery.close()

    def _discard(self, auth: AuthConfig, task: asyncio.Task) -> None:
        if self._inflight.get(auth) is task:
            del self._inflight[auth]
        if not task.cancelled():
            # Mark the outcome retrieved; waiters re-raise it themselves.
            task.exception()

    async def _initialize(self, auth: AuthConfig) -> TokenVerifier:
        self._failed.pop(auth, None)
        try:
            metadata, keys = await self.discovery.discover(auth)
        except ProviderUnavailableError as exc:
            self._failed[auth] = exc
            raise

        verifier = TokenVerifier(
            auth,
            metadata,
            keys,
            self.discovery,
            leeway=self.leeway,
            refresh_interval=self.refresh_interval,
            metrics=self.metrics,
        )
        self._verifiers[auth] = verifier
        return verifier
