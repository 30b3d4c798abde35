# Router Configuration

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, ValidationError, field_validator

from .errors import ConfigError

_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(b|kb|mb|gb)?\s*$", re.IGNORECASE)
_SIZE_UNITS = {"b": 1, "kb": 1024, "mb": 1024 ** 2, "gb": 1024 ** 3}

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def parse_size(value: Union[int, str, None]) -> Optional[int]:
    """Convert ``"64kb"``-style sizes to a byte count."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid size: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Invalid size: {value}")
        return value

    match = _SIZE_PATTERN.match(str(value))
    if not match:
        raise ValueError(f"Invalid size: {value!r}")

    number, unit = match.groups()
    return int(float(number) * _SIZE_UNITS[(unit or "b").lower()])


class RouterSettings(BaseModel):
    """Process-wide defaults for every router."""

    default_failure: int = 400
    json_limit: int = 1024 ** 2
    form_limit: int = 56 * 1024
    expose_error_details: bool = True
    debug: bool = False
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @field_validator("default_failure")
    @classmethod
    def check_failure(cls, v):
        """Failure status must be a client or server error code."""
        if not 400 <= v <= 599:
            raise ValueError("default_failure must be between 400-599")
        return v

    @field_validator("json_limit", "form_limit", mode="before")
    @classmethod
    def check_size(cls, v):
        return parse_size(v)

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, v):
        """Validate log level."""
        if v.upper() not in _LOG_LEVELS:
            raise ValueError("Invalid log level")
        return v.upper()


def _read_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    with open(path, "r") as f:
        if path.suffix == ".json":
            data = json.load(f)
        elif path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        else:
            raise ConfigError(f"Unsupported config format: {path.name}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    return data


def _read_env(prefix: str) -> Dict[str, Any]:
    env_config = {}
    for key, value in os.environ.items():
        if key.startswith(prefix):
            env_config[key[len(prefix):].lower()] = value
    return env_config


def load_settings(
    path: Optional[Union[str, Path]] = None,
    env_prefix: str = "SPEC_ROUTER_",
) -> RouterSettings:
    """
    Load router settings.

    Values from the optional YAML/JSON file are overridden by environment
    variables starting with ``env_prefix`` (``SPEC_ROUTER_JSON_LIMIT=2mb``).

    Args:
        path: Optional configuration file
        env_prefix: Prefix of environment variables to read

    Returns:
        Validated settings

    Raises:
        ConfigError: if the file is missing or a value is invalid
    """
    config: Dict[str, Any] = {}
    if path is not None:
        config.update(_read_file(Path(path)))
    config.update(_read_env(env_prefix))

    try:
        return RouterSettings(**config)
    except ValidationError as e:
        raise ConfigError(f"Invalid router settings: {e}") from e
