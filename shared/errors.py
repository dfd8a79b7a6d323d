"""
Shared error handling for the OIDC Gateway.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str


class GatewayError(Exception):
    """Base exception for gateway errors."""

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to the client-facing error body.

        Only the stable public message is exposed; ``message`` and ``details``
        may carry provider output and stay in the logs.
        """
        return ErrorResponse(code=self.code, message=self.public_message)


class ConfigurationError(GatewayError):
    """Invalid or unreadable gateway configuration."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class HandlerNotFoundError(ConfigurationError):
    """An endpoint references a handler name outside the known set."""

    def __init__(self, handler_name: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"handler function not found: {handler_name}", details)
        self.code = "HANDLER_NOT_FOUND"
        self.handler_name = handler_name


class GatewayStartupError(GatewayError):
    """The gateway could not bind or start serving."""

    def __init__(self, message: str = "Gateway failed to start", details: Optional[Dict[str, Any]] = None):
        super().__init__("STARTUP_ERROR", message, details)


class GatewayStateError(GatewayError):
    """Operation not allowed in the gateway's current phase."""

    def __init__(self, message: str = "Invalid gateway state", details: Optional[Dict[str, Any]] = None):
        super().__init__("GATEWAY_STATE_ERROR", message, details)


class ProviderUnavailableError(GatewayError):
    """Identity provider discovery failed or timed out."""

    status_code = 500
    public_message = "Identity provider unavailable"

    def __init__(self, message: str = "Identity provider unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("PROVIDER_UNAVAILABLE", message, details)


class AuthenticationError(GatewayError):
    """Authentication-related errors."""

    status_code = 401
    public_message = "Authentication failed"

    def __init__(self, code: str = "AUTHENTICATION_ERROR", message: str = "Authentication failed",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(code, message, details)


class MissingCredentialsError(AuthenticationError):
    """No Authorization header was presented."""

    public_message = "Authorization header missing"

    def __init__(self, message: str = "Authorization header missing", details: Optional[Dict[str, Any]] = None):
        super().__init__("MISSING_CREDENTIALS", message, details)


class MalformedCredentialsError(AuthenticationError):
    """The Authorization header is not a usable bearer credential."""

    public_message = "Invalid authorization header format"

    def __init__(self, message: str = "Invalid authorization header format",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__("MALFORMED_CREDENTIALS", message, details)


class InvalidTokenError(AuthenticationError):
    """The bearer token failed signature, issuer, audience or expiry checks."""

    public_message = "Failed to verify ID token"

    def __init__(self, message: str = "Failed to verify ID token", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_TOKEN", message, details)
