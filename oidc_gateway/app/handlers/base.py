"""
Request behaviors guarded by bearer-token verification.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from shared.errors import AuthenticationError, GatewayError, InvalidTokenError, ProviderUnavailableError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..auth import Claims, VerifierCache
from ..models import AuthConfig


class Behavior(ABC):
    """An authenticated request handler bound to one AuthConfig.

    Calling the behavior verifies the request's bearer token and only then
    runs ``respond``. Verification failures become 401/500 responses with a
    stable body; the handler logic never sees them.
    """

    def __init__(
        self,
        auth: AuthConfig,
        verifiers: VerifierCache,
        *,
        verification_timeout: float = 5.0,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.auth = auth
        self.verifiers = verifiers
        self.verification_timeout = verification_timeout
        self.metrics = metrics
        self.logger = get_logger(f"gateway.handlers.{type(self).__name__}")

    async def __call__(self, request: Request) -> Response:
        try:
            claims = await self.authenticate(request)
        except (AuthenticationError, ProviderUnavailableError) as exc:
            return self._reject(request, exc)

        return await self.respond(request, claims)

    async def authenticate(self, request: Request) -> Claims:
        """Verify the request's Authorization header against the bound provider."""
        verifier = await self.verifiers.get(self.auth)
        try:
            return await asyncio.wait_for(
                verifier.verify(request.headers.get("Authorization")),
                timeout=self.verification_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise InvalidTokenError("Token verification timed out") from exc

    @abstractmethod
    async def respond(self, request: Request, claims: Claims) -> Response:
        """Application logic, run only for verified requests."""

    def _reject(self, request: Request, exc: GatewayError) -> Response:
        self.logger.warning(
            "Request rejected",
            path=request.url.path,
            code=exc.code,
            error=exc.message,
            issuer=self.auth.issuer,
            details=exc.details,
        )
        if self.metrics:
            self.metrics.record_auth_failure(exc.code)

        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response().model_dump(),
            headers=headers,
        )
