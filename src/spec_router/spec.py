"""
Route spec normalization.

A route is declared as a plain mapping::

    {
        "method": "post",
        "path": "/users/:id",
        "handler": update_user,
        "pre": [authenticate],
        "validate": {
            "type": "json",
            "params": {"id": int},
            "body": UserUpdate,
            "output": {"200": {"body": User}},
        },
        "meta": {"desc": "Update a user"},
    }

normalize_spec checks it once and returns a frozen RouteSpec. Every problem is
reported as ConfigError so a bad route fails at startup.
"""

import copy
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Pattern, Tuple, Union

from .errors import ConfigError
from .settings import RouterSettings, parse_size

METHODS = ("get", "post", "put", "patch", "delete", "options", "head")

BODY_TYPES = ("json", "form", "multipart", "stream")

# camelCase spellings are accepted for route specs shared with JS tooling
_VALIDATE_ALIASES = {
    "headers": "header",
    "maxBody": "max_body",
    "continueOnError": "continue_on_error",
    "jsonOptions": "json_options",
    "formOptions": "form_options",
    "multipartOptions": "multipart_options",
}


@dataclass(frozen=True)
class ValidateSpec:
    """Validation options of a single route."""

    header: Any = None
    query: Any = None
    params: Any = None
    body: Any = None
    type: Optional[str] = None
    max_body: Optional[int] = None
    failure: int = 400
    continue_on_error: bool = False
    output: Optional[Mapping[Any, Mapping[str, Any]]] = None
    json_options: Mapping[str, Any] = field(default_factory=dict)
    form_options: Mapping[str, Any] = field(default_factory=dict)
    multipart_options: Mapping[str, Any] = field(default_factory=dict)


_VALIDATE_FIELDS = tuple(ValidateSpec.__dataclass_fields__)


@dataclass(frozen=True)
class RouteSpec:
    """Normalized, immutable route declaration exposed to handlers as ``ctx.spec``."""

    method: Tuple[str, ...]
    path: Union[str, Pattern]
    handler: Tuple[Callable, ...]
    pre: Tuple[Callable, ...] = ()
    validate: Optional[ValidateSpec] = None
    meta: Any = None


def flatten(items: Any) -> Tuple[Any, ...]:
    """Flatten arbitrarily nested lists and tuples of handlers."""
    if items is None:
        return ()
    if not isinstance(items, (list, tuple)):
        return (items,)

    result = []
    for item in items:
        result.extend(flatten(item))
    return tuple(result)


def _check_path(path: Any) -> Union[str, Pattern]:
    if isinstance(path, str) and path.startswith("/"):
        return path
    if isinstance(path, re.Pattern):
        return path
    raise ConfigError("invalid route path")


def _check_methods(method: Any) -> Tuple[str, ...]:
    if not method:
        raise ConfigError("missing route method")

    if isinstance(method, str):
        method = method.split()
    if not isinstance(method, (list, tuple)):
        raise ConfigError("route methods must be a list or string")
    if not method:
        raise ConfigError("missing route method")

    methods = []
    for item in method:
        if not isinstance(item, str):
            raise ConfigError("route method must be a string")
        item = item.lower()
        if item == "del":
            item = "delete"
        if item not in METHODS:
            raise ConfigError(f"unsupported route method: {item}")
        if item not in methods:
            methods.append(item)
    return tuple(methods)


def _check_handlers(handlers: Any, role: str) -> Tuple[Callable, ...]:
    flat = flatten(handlers)
    for handler in flat:
        if not callable(handler):
            raise ConfigError(f"{role} must be a function, got {handler!r}")
    return flat


def _check_validate(validate: Any, settings: RouterSettings) -> Optional[ValidateSpec]:
    if validate is None:
        return None
    if not isinstance(validate, Mapping):
        raise ConfigError("validate must be a mapping")

    options: Dict[str, Any] = {}
    for key, value in validate.items():
        name = _VALIDATE_ALIASES.get(key, key)
        if name not in _VALIDATE_FIELDS:
            raise ConfigError(f"unknown validate option: {key}")
        options[name] = value

    body_type = options.get("type")
    if options.get("body") is not None and body_type not in ("json", "form"):
        raise ConfigError("validate.type must be declared when using validate.body")
    if body_type is not None and body_type not in BODY_TYPES:
        raise ConfigError(f"unsupported body type: {body_type}")

    failure = options.get("failure")
    if failure is None:
        options["failure"] = settings.default_failure
    elif isinstance(failure, bool) or not isinstance(failure, int) or not 100 <= failure <= 599:
        raise ConfigError(f"validate.failure must be an HTTP status code, got {failure!r}")

    options["continue_on_error"] = bool(options.get("continue_on_error", False))

    if options.get("max_body") is not None:
        try:
            options["max_body"] = parse_size(options["max_body"])
        except ValueError as e:
            raise ConfigError(f"invalid validate.max_body: {e}") from e

    output = options.get("output")
    if output is not None and not isinstance(output, Mapping):
        raise ConfigError("validate.output must be a mapping of status to schemas")

    for name in ("json_options", "form_options", "multipart_options"):
        value = options.get(name)
        if value is None:
            options.pop(name, None)
        elif not isinstance(value, Mapping):
            raise ConfigError(f"validate.{name} must be a mapping")
        else:
            options[name] = MappingProxyType(dict(value))

    return ValidateSpec(**options)


def _freeze_meta(meta: Any) -> Any:
    snapshot = copy.deepcopy(meta)
    if isinstance(snapshot, dict):
        return MappingProxyType(snapshot)
    return snapshot


def normalize_spec(spec: Any, settings: Optional[RouterSettings] = None) -> RouteSpec:
    """
    Validate a route mapping and build its RouteSpec.

    Args:
        spec: route declaration, see module docstring
        settings: provides the default failure status

    Raises:
        ConfigError: on any invalid part of the declaration
    """
    if not spec:
        raise ConfigError("missing spec")
    if isinstance(spec, RouteSpec):
        return spec
    if not isinstance(spec, Mapping):
        raise ConfigError("route spec must be a mapping")

    settings = settings or RouterSettings()

    path = _check_path(spec.get("path"))
    handler = _check_handlers(spec.get("handler"), "route handler")
    if not handler:
        raise ConfigError("missing route handler")

    return RouteSpec(
        method=_check_methods(spec.get("method")),
        path=path,
        handler=handler,
        pre=_check_handlers(spec.get("pre"), "pre handler"),
        validate=_check_validate(spec.get("validate"), settings),
        meta=_freeze_meta(spec.get("meta")),
    )
