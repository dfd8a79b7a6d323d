"""
OIDC Gateway application package.

The gateway reads declared endpoints (path, method, handler name, OIDC
provider binding) and serves each one behind bearer-token verification.

Structure:
- app.main: CLI entry point and FastAPI app factory.
- app.gateway: route table ownership and serving.
- app.handlers: closed handler registry and request behaviors.
- app.auth: provider discovery, token verification, verifier cache.
- app.models / app.config_loader: endpoint configuration.
"""
