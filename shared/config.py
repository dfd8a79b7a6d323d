"""
Process settings for the OIDC Gateway.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Observability
    metrics_port: Optional[int] = Field(default=None)


class GatewaySettings(BaseConfig):
    """Gateway-specific configuration."""

    service_name: str = "gateway"
    host: str = "0.0.0.0"
    port: int = 8080

    # Endpoint declarations
    config_file: str = Field(default="./config.yaml")

    # Identity provider interaction
    discovery_timeout: float = Field(default=10.0, gt=0)
    verification_timeout: float = Field(default=5.0, gt=0)
    jwks_refresh_interval: float = Field(default=60.0, ge=0)
    token_leeway: int = Field(default=0, ge=0)
    warm_verifiers: bool = Field(default=True)


def get_settings(**overrides) -> GatewaySettings:
    """Load gateway settings from the environment, applying explicit overrides."""
    return GatewaySettings(**{key: value for key, value in overrides.items() if value is not None})
