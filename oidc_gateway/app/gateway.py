"""
Gateway server: owns the route table and serves declared endpoints.
"""

from __future__ import annotations

import asyncio
import socket
import time
from contextlib import asynccontextmanager
from typing import Dict, List, Mapping, Optional, Tuple

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.config import GatewaySettings
from shared.errors import ErrorResponse, GatewayStartupError, GatewayStateError
from shared.logging import clear_context, get_logger, set_request_id
from shared.metrics import MetricsCollector, get_metrics_collector

from .auth import ProviderDiscovery, VerifierCache
from .handlers import Behavior, HandlerRegistry
from .models import AuthConfig, EndpointSpec, GatewayConfig

RouteKey = Tuple[str, str]


class Gateway:
    """Declarative HTTP gateway.

    Endpoints are registered while the gateway is in its registration phase;
    once ``serve``/``start`` is called the route table is frozen.
    """

    def __init__(
        self,
        settings: Optional[GatewaySettings] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.settings = settings or GatewaySettings()
        self.logger = get_logger("gateway.server")
        self.metrics = metrics or get_metrics_collector(self.settings.service_name)

        self.discovery = ProviderDiscovery(
            timeout=self.settings.discovery_timeout,
            http_client=http_client,
            metrics=self.metrics,
        )
        self.verifiers = VerifierCache(
            self.discovery,
            leeway=self.settings.token_leeway,
            refresh_interval=self.settings.jwks_refresh_interval,
            metrics=self.metrics,
        )
        self.registry = HandlerRegistry(
            self.verifiers,
            verification_timeout=self.settings.verification_timeout,
            metrics=self.metrics,
        )

        self._routes: Dict[RouteKey, Behavior] = {}
        self._serving = False
        self.app = self._create_app()

    @property
    def routes(self) -> Mapping[RouteKey, Behavior]:
        return dict(self._routes)

    @property
    def serving(self) -> bool:
        return self._serving

    def auth_configs(self) -> List[AuthConfig]:
        """Distinct AuthConfigs of the registered routes, in registration order."""
        return list(dict.fromkeys(behavior.auth for behavior in self._routes.values()))

    def register_endpoint(self, spec: EndpointSpec) -> Behavior:
        """Resolve ``spec.handler`` and add the route.

        ``HandlerNotFoundError`` propagates to the caller; startup must stop.
        """
        if self._serving:
            raise GatewayStateError(
                "Cannot register endpoints after the gateway has started",
                details={"path": spec.path, "method": spec.method},
            )

        behavior = self.registry.resolve(spec.handler, spec.auth)

        key = (spec.path, spec.method)
        if key in self._routes:
            self.logger.warning(
                "Duplicate endpoint ignored, first registration wins",
                path=spec.path,
                method=spec.method,
                handler=spec.handler,
            )
            return self._routes[key]

        self._routes[key] = behavior

        async def endpoint(request: Request):
            return await behavior(request)

        self.app.add_api_route(
            spec.path,
            endpoint,
            methods=[spec.method],
            name=f"{spec.handler}:{spec.method}:{spec.path}",
            include_in_schema=False,
        )
        self.logger.info(
            "Endpoint registered",
            path=spec.path,
            method=spec.method,
            handler=spec.handler,
            issuer=spec.auth.issuer,
        )
        return behavior

    def register_all(self, config: GatewayConfig) -> None:
        """Register every endpoint in declaration order."""
        for spec in config.endpoints:
            self.register_endpoint(spec)

    def bind(self, host: str, port: int) -> socket.socket:
        """Open the listening socket, raising ``GatewayStartupError`` on failure."""
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        try:
            return socket.create_server((host, port), family=family)
        except OSError as exc:
            raise GatewayStartupError(
                f"Failed to bind {host}:{port}",
                details={"host": host, "port": port, "error": str(exc)},
            ) from exc

    async def serve(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        """Bind and serve until the process is terminated."""
        host = host or self.settings.host
        port = port if port is not None else self.settings.port

        sock = self.bind(host, port)
        self._serving = True
        self.logger.info("Listening", host=host, port=port, routes=len(self._routes))

        config = uvicorn.Config(
            self.app,
            log_config=None,
            log_level=self.settings.log_level.lower(),
            access_log=False,
        )
        server = uvicorn.Server(config)
        try:
            await server.serve(sockets=[sock])
        finally:
            sock.close()

    def start(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        """Blocking entry point around ``serve``."""
        asyncio.run(self.serve(host, port))

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        self._serving = True
        if self.settings.warm_verifiers:
            await self.verifiers.warmup(self.auth_configs())
        yield
        await self.verifiers.close()

    def _create_app(self) -> FastAPI:
        # Only declared endpoints are exposed: no docs or schema routes.
        app = FastAPI(
            title="OIDC Gateway",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=self._lifespan,
        )

        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            request_id = set_request_id(request.headers.get("X-Request-ID"))
            start_time = time.time()
            try:
                response = await call_next(request)
                duration = time.time() - start_time

                route = request.scope.get("route")
                endpoint = getattr(route, "path", "unmatched")
                self.metrics.record_http_request(
                    method=request.method,
                    endpoint=endpoint,
                    status_code=response.status_code,
                    duration=duration,
                )
                self.logger.info(
                    "HTTP request",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round(duration * 1000, 2),
                )
                response.headers["X-Request-ID"] = request_id
                return response
            finally:
                clear_context()

        @app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            self.logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=True)
            body = ErrorResponse(code="INTERNAL_ERROR", message="Internal server error")
            return JSONResponse(status_code=500, content=body.model_dump())

        return app
