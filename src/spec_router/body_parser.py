"""
Request body parsing for routes declaring ``validate.type``.

Supported types:
- json: strict JSON object or array, size limited
- form: application/x-www-form-urlencoded, size limited
- multipart / stream: multipart/* uploads exposed as ``ctx.request.parts``
"""

import json
import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from starlette.datastructures import FormData, UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException
from starlette.requests import Request

from . import metrics
from .context import Context, multi_dict
from .errors import ConfigError, ParseError
from .input_validation import capture_error
from .settings import RouterSettings, parse_size
from .spec import BODY_TYPES

logger = logging.getLogger(__name__)

_EXPECTED = {
    "json": ("json", "expected json"),
    "form": ("urlencoded", "expected x-www-form-urlencoded"),
    "multipart": ("multipart/*", "expected multipart"),
    "stream": ("multipart/*", "expected multipart"),
}


class MultipartParts:
    """
    Parsed multipart payload.

    Iterating yields the uploaded files in arrival order; plain fields are
    collected in ``field``.
    """

    def __init__(self, form: FormData):
        self._form = form
        self.field: Dict[str, Any] = multi_dict(
            (key, value) for key, value in form.multi_items()
            if not isinstance(value, UploadFile)
        )
        self.files: List[UploadFile] = [
            value for _, value in form.multi_items() if isinstance(value, UploadFile)
        ]

    def __aiter__(self) -> AsyncIterator[UploadFile]:
        return self._iterate()

    async def _iterate(self):
        for upload in self.files:
            yield upload

    def __len__(self) -> int:
        return len(self.files)

    async def close(self):
        await self._form.close()


async def read_body(request: Request, limit: Optional[int]) -> bytes:
    """Read the raw request body, failing with 413 once it exceeds limit."""
    if limit is not None:
        declared = request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > limit:
            raise ParseError(413, "request entity too large")

    chunks = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if limit is not None and received > limit:
            raise ParseError(413, "request entity too large")
        chunks.append(chunk)
    return b"".join(chunks)


def parse_json(raw: bytes, encoding: str = "utf-8", strict: bool = True) -> Any:
    """
    Decode a JSON payload.

    An empty payload gives an empty object. In strict mode only objects and
    arrays are accepted.

    Raises:
        ValueError: if the payload is not valid JSON
    """
    text = raw.decode(encoding)
    if not text.strip():
        return {}

    if strict and text.lstrip()[0] not in "{[":
        raise ValueError("invalid JSON, only supports object and array")

    return json.loads(text)


async def parse_form(request: Request, raw: bytes) -> Dict[str, Any]:
    """Parse an urlencoded payload already read from request."""
    sent = False

    async def replay():
        nonlocal sent
        if sent:
            return {"type": "http.disconnect"}
        sent = True
        return {"type": "http.request", "body": raw, "more_body": False}

    form = await Request(request.scope, replay).form()
    return multi_dict(form.multi_items())


def _limit(options: Dict[str, Any], max_body, default: int) -> Optional[int]:
    if options.get("limit") is not None:
        return parse_size(options["limit"])
    if max_body is not None:
        return parse_size(max_body)
    return default


def _json_parser(validate, settings: RouterSettings) -> Callable:
    options = dict(validate.json_options or {})
    limit = _limit(options, validate.max_body, settings.json_limit)
    encoding = options.get("encoding", "utf-8")
    strict = options.get("strict", True)

    async def parse(ctx: Context):
        raw = await read_body(ctx.request.raw, limit)
        try:
            return parse_json(raw, encoding, strict)
        except (ValueError, UnicodeDecodeError, RecursionError) as e:
            raise ParseError(validate.failure, f"invalid JSON: {e}") from e

    return parse


def _form_parser(validate, settings: RouterSettings) -> Callable:
    options = dict(validate.form_options or {})
    limit = _limit(options, validate.max_body, settings.form_limit)

    async def parse(ctx: Context):
        raw = await read_body(ctx.request.raw, limit)
        try:
            return await parse_form(ctx.request.raw, raw)
        except (ValueError, UnicodeDecodeError) as e:
            raise ParseError(validate.failure, f"invalid form body: {e}") from e

    return parse


def _multipart_parser(validate, settings: RouterSettings) -> Callable:
    options = dict(validate.multipart_options or {})

    async def parse(ctx: Context):
        try:
            form = await ctx.request.raw.form(**options)
        except MultiPartException as e:
            raise ParseError(validate.failure, e.message) from e
        except StarletteHTTPException as e:
            raise ParseError(validate.failure, str(e.detail)) from e
        ctx.request.parts = MultipartParts(form)

    return parse


_PARSERS = {
    "json": _json_parser,
    "form": _form_parser,
    "multipart": _multipart_parser,
    "stream": _multipart_parser,
}


def make_body_parser(spec, settings: RouterSettings) -> Optional[Callable]:
    """
    Build the body parsing step of a route.

    Args:
        spec: normalized RouteSpec
        settings: router settings providing default size limits

    Returns:
        A ``(ctx, next)`` middleware, or None when the route declares no body type

    Raises:
        ConfigError: if the body type is not supported
    """
    validate = spec.validate
    if validate is None or validate.type is None:
        return None

    body_type = validate.type
    if body_type not in BODY_TYPES:
        raise ConfigError(f"unsupported body type: {body_type}")

    family, mismatch = _EXPECTED[body_type]
    parse = _PARSERS[body_type](validate, settings)
    multipart = body_type in ("multipart", "stream")

    async def parse_payload(ctx: Context, next):
        try:
            if not ctx.request.is_type(family):
                raise ParseError(400, mismatch)

            if multipart:
                await parse(ctx)
            elif ctx.request.body is None:
                ctx.request.body = await parse(ctx)
        except ParseError as e:
            e.category = "type"
            logger.info(f"{ctx.method} {ctx.path}: body parse failed: {e.msg}")
            metrics.record_validation_failure("parse", "type")
            capture_error(ctx, "type", e)
            if not validate.continue_on_error:
                raise

        await next()

    parse_payload.__name__ = f"parse_{body_type}_payload"
    return parse_payload
