"""
Error types for the spec router.

Registration-time problems raise ConfigError and are never caught by the
router. Request-time problems raise HTTPError subclasses which carry the
status code used for the terminal response.
"""

import copy
import json
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError


class RouterError(Exception):
    """Base class for all spec router errors."""


class ConfigError(RouterError):
    """Invalid route spec, settings or output rule, detected at registration."""


class InvalidRangeError(ConfigError):
    """A status-code range token could not be parsed."""

    def __init__(self, token: str, message: Optional[str] = None):
        super().__init__(message or f"invalid status code: {token}")
        self.token = token


class HTTPError(RouterError):
    """Error that terminates a request with an HTTP status."""

    error_code = "HTTP_ERROR"

    def __init__(
        self,
        status: int,
        message: str,
        details: Optional[Any] = None,
        category: Optional[str] = None,
    ):
        super().__init__(message)
        self.status = status
        self.msg = message
        self.details = details
        self.category = category

    def to_dict(self, include_details: bool = True) -> Dict[str, Any]:
        """Convert error to the response envelope."""
        payload = {
            "success": False,
            "error_code": self.error_code,
            "message": self.msg,
            "timestamp": datetime.now().isoformat(),
        }
        if self.category:
            payload["category"] = self.category
        if include_details and self.details is not None:
            payload["details"] = self.details
        return payload

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(status={self.status}, msg={self.msg!r})"


class ParseError(HTTPError):
    """Request body could not be parsed or had the wrong content type."""

    error_code = "PARSE_ERROR"


class ValidationError(HTTPError):
    """A schema rejected request input or handler output."""

    error_code = "VALIDATION_ERROR"

    @classmethod
    def from_schema_error(
        cls, error: Any, status: int, category: Optional[str] = None
    ) -> "ValidationError":
        """Wrap whatever a validator reported into a ValidationError."""
        if isinstance(error, ValidationError):
            copied = copy.copy(error)
            copied.status = status
            copied.category = error.category or category
            return copied

        if isinstance(error, PydanticValidationError):
            details = json.loads(error.json(include_url=False))
            message = "; ".join(_describe(item) for item in details) or str(error)
            return cls(status, message, details=details, category=category)

        return cls(status, str(error), category=category)


def _describe(item: Dict[str, Any]) -> str:
    location = ".".join(str(part) for part in item.get("loc", ()))
    if location:
        return f"{location}: {item.get('msg')}"
    return str(item.get("msg"))
