"""
Configuration models for declared gateway endpoints.
"""

from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

HTTP_METHODS = frozenset({"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"})


class AuthConfig(BaseModel):
    """Identity provider binding for an endpoint.

    Instances are frozen and hashable; the verifier cache is keyed on them.
    ``client_secret`` is loaded for a future authorization-code flow and does
    not take part in token verification.
    """

    model_config = ConfigDict(frozen=True)

    issuer: str = Field(min_length=1)
    client_id: str = Field(min_length=1)
    client_secret: str = Field(default="", repr=False)


class EndpointSpec(BaseModel):
    """A single declared route."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path: str
    method: str
    handler: str
    auth: AuthConfig = Field(alias="oidc")

    @field_validator("path")
    @classmethod
    def _path_is_absolute(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("path must start with '/'")
        return value

    @field_validator("method")
    @classmethod
    def _method_is_http_verb(cls, value: str) -> str:
        method = value.strip().upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"unsupported HTTP method: {value}")
        return method


class GatewayConfig(BaseModel):
    """Ordered list of declared endpoints."""

    model_config = ConfigDict(frozen=True)

    endpoints: Tuple[EndpointSpec, ...] = ()

    def auth_configs(self) -> Tuple[AuthConfig, ...]:
        """Distinct auth configurations in declaration order."""
        return tuple(dict.fromkeys(endpoint.auth for endpoint in self.endpoints))
