"""
OIDC Gateway entry point.

Loads the endpoint configuration, registers every endpoint, and serves. Any
configuration, registration or bind failure is fatal: it is logged and the
process exits with status 1.
"""

import argparse
import sys
from typing import List, Optional

from fastapi import FastAPI

from shared.config import GatewaySettings, get_settings
from shared.errors import GatewayError, GatewayStartupError
from shared.logging import configure_logging, get_logger

from .config_loader import load_config
from .gateway import Gateway
from .handlers import HandlerRegistry
from .models import GatewayConfig


def build_gateway(settings: GatewaySettings, config: GatewayConfig) -> Gateway:
    """Create a gateway and register all declared endpoints."""
    gateway = Gateway(settings)
    gateway.register_all(config)
    return gateway


def create_app(settings: Optional[GatewaySettings] = None) -> FastAPI:
    """Create FastAPI application (for ``uvicorn --factory``)."""
    settings = settings or get_settings()
    configure_logging(settings.service_name, settings.log_level)
    gateway = build_gateway(settings, load_config(settings.config_file))
    return gateway.app


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Declarative OIDC-protected HTTP gateway")
    parser.add_argument("--config", dest="config_file", help="Path to the endpoint configuration YAML")
    parser.add_argument("--host", help="Address to bind")
    parser.add_argument("--port", type=int, help="Port to bind")
    parser.add_argument("--log-level", dest="log_level", help="Log level (debug, info, warning, error)")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = get_settings(
        config_file=args.config_file,
        host=args.host,
        port=args.port,
        log_level=args.log_level,
    )
    configure_logging(settings.service_name, settings.log_level)
    logger = get_logger("gateway.main")

    try:
        config = load_config(settings.config_file)
        gateway = build_gateway(settings, config)
        logger.info(
            "Gateway configured",
            endpoints=len(gateway.routes),
            known_handlers=HandlerRegistry.known_handlers(),
        )

        if settings.metrics_port:
            try:
                gateway.metrics.start_metrics_server(settings.metrics_port)
            except OSError as exc:
                raise GatewayStartupError(
                    f"Failed to start metrics listener on port {settings.metrics_port}",
                    details={"error": str(exc)},
                ) from exc

        gateway.start()
    except GatewayError as exc:
        logger.error("Gateway failed to start", code=exc.code, error=exc.message, details=exc.details)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
