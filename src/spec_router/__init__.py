"""
Declarative request and response validation for Starlette/FastAPI routes.
"""

from .context import Context
from .errors import (
    ConfigError,
    HTTPError,
    InvalidRangeError,
    ParseError,
    RouterError,
    ValidationError,
)
from .input_validation import InputValidator
from .output_validation import OutputValidationRule, OutputValidator
from .router import Router
from .schemas import ValidationResult, identity_validator, pydantic_validator
from .settings import RouterSettings, load_settings
from .spec import RouteSpec, ValidateSpec
from .status_range import StatusRange, parse_range

__version__ = "1.0.0"

__all__ = [
    "Context",
    "ConfigError",
    "HTTPError",
    "InputValidator",
    "InvalidRangeError",
    "OutputValidationRule",
    "OutputValidator",
    "ParseError",
    "RouteSpec",
    "Router",
    "RouterError",
    "RouterSettings",
    "StatusRange",
    "ValidateSpec",
    "ValidationError",
    "ValidationResult",
    "identity_validator",
    "load_settings",
    "parse_range",
    "pydantic_validator",
]
