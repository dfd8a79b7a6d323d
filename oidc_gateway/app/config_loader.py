"""
YAML loader for the endpoint configuration file.
"""

from pathlib import Path
from typing import Any, Union

import yaml
from pydantic import ValidationError

from shared.errors import ConfigurationError
from shared.logging import get_logger

from .models import GatewayConfig

logger = get_logger("gateway.config_loader")


def parse_config(data: Any) -> GatewayConfig:
    """Validate an already-parsed YAML document."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration root must be a mapping")

    try:
        return GatewayConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(
            "Invalid endpoint configuration",
            details={"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        ) from exc


def load_config(path: Union[str, Path]) -> GatewayConfig:
    """Read and validate the endpoint configuration file."""
    config_path = Path(path)
    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigurationError(
            f"Cannot read configuration file: {config_path}",
            details={"error": str(exc)},
        ) from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            f"Invalid YAML in configuration file: {config_path}",
            details={"error": str(exc)},
        ) from exc

    config = parse_config(data)
    logger.info("Configuration loaded", path=str(config_path), endpoints=len(config.endpoints))
    return config
