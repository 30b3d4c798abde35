"""
Schema capability used by input and output validation.

A ValidatorBuilder turns a schema definition into an async validator. The
validator never raises for invalid data; it reports the problem in
``ValidationResult.error`` and returns the casted value otherwise.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic.errors import PydanticUserError
from typing_extensions import TypedDict

from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Outcome of running a validator over a value."""
    value: Any = None
    error: Optional[Any] = None
    warning: Optional[Any] = None


Validator = Callable[[Any], Awaitable[ValidationResult]]
ValidatorBuilder = Callable[[Any], Validator]


def identity_validator(schema: Any) -> Validator:
    """Use the schema itself as the validator.

    The schema must be a callable taking the value and returning a
    ValidationResult or a ``{"value", "error"}`` mapping, either directly
    or as an awaitable.
    """
    if not callable(schema):
        raise ConfigError(f"schema must be callable when using identity_validator: {schema!r}")

    async def validate(value: Any) -> ValidationResult:
        result = schema(value)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, ValidationResult):
            return result
        if isinstance(result, Mapping):
            return ValidationResult(
                value=result.get("value"),
                error=result.get("error"),
                warning=result.get("warning"),
            )
        raise TypeError(
            f"identity validator must return a ValidationResult or mapping, got {result!r}"
        )

    return validate


def compile_mapping(fields: Mapping[str, Any], name: str = "Schema") -> type:
    """Compile a ``{key: type}`` mapping into a TypedDict pydantic can adapt.

    Keys are used verbatim so header names like ``x-request-id`` or regex
    capture indexes like ``"0"`` work without aliases.
    """
    return TypedDict(name, {str(key): annotation for key, annotation in fields.items()})


def pydantic_validator(schema: Any) -> Validator:
    """
    Build a validator backed by a pydantic TypeAdapter.

    Args:
        schema: a BaseModel subclass, a mapping of field name to type, or
            any other type pydantic can validate

    Returns:
        Async validator returning plain Python values. Model instances are
        dumped by alias so the casted value can be merged back into mappings.

    Raises:
        ConfigError: if pydantic cannot build a schema for the definition
    """
    target = compile_mapping(schema) if isinstance(schema, Mapping) else schema

    try:
        adapter = TypeAdapter(target)
    except (PydanticUserError, TypeError) as e:
        raise ConfigError(f"unsupported schema {schema!r}: {e}") from e

    async def validate(value: Any) -> ValidationResult:
        try:
            casted = adapter.validate_python(value)
        except PydanticValidationError as e:
            return ValidationResult(error=e)

        if isinstance(casted, BaseModel):
            casted = casted.model_dump(by_alias=True)
        return ValidationResult(value=casted)

    logger.debug("Compiled pydantic validator for %r", schema)
    return validate
