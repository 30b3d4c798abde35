"""
Per-request state passed through the middleware chain.

The Starlette request is wrapped in a mutable view so that validators can
write casted values back: headers and query become plain dicts (lower-cased
header names), params are copied from the route match, and the body slot is
filled by the body parser.
"""

from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from fastapi.encoders import jsonable_encoder
from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response

from .errors import HTTPError


def multi_dict(items: Iterable[Tuple[str, Any]]) -> Dict[str, Any]:
    """Collapse repeated keys into lists, keep single keys as scalars."""
    result: Dict[str, Any] = {}
    for key, value in items:
        if key in result:
            existing = result[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                result[key] = [existing, value]
        else:
            result[key] = value
    return result


def merge_into(target: Dict[str, Any], values: Mapping[str, Any]):
    """Write values key by key, leaving other keys of target untouched."""
    for key, value in values.items():
        target[key] = value


class RequestView:
    """Mutable view of the incoming request."""

    def __init__(self, request: Request):
        self.raw = request
        self.method = request.method
        self.url = request.url
        self.path = request.url.path
        self.header: Dict[str, Any] = dict(request.headers.items())
        self.query: Dict[str, Any] = multi_dict(request.query_params.multi_items())
        self.body: Any = None
        self.parts: Any = None

    @property
    def headers(self) -> Dict[str, Any]:
        return self.header

    @property
    def content_type(self) -> str:
        return self.raw.headers.get("content-type", "")

    def is_type(self, family: str) -> bool:
        """
        Check the request content type against a type family.

        ``json`` matches ``application/json`` and ``+json`` suffixes,
        ``urlencoded`` matches form posts and ``multipart/*`` any multipart
        subtype. Any other value must match the mime type exactly.
        """
        mime = self.content_type.split(";", 1)[0].strip().lower()
        if not mime:
            return False
        if family == "json":
            return mime == "application/json" or mime.endswith("+json")
        if family == "urlencoded":
            return mime == "application/x-www-form-urlencoded"
        if family.endswith("/*"):
            return mime.startswith(family[:-1])
        return mime == family


class ResponseState:
    """Response under construction. Status defaults to 404 until a body or status is set."""

    def __init__(self):
        self.headers = MutableHeaders()
        self._status = 404
        self._explicit_status = False
        self._body: Any = None

    @property
    def status(self) -> int:
        return self._status

    @status.setter
    def status(self, value: int):
        if isinstance(value, bool) or not isinstance(value, int) or not 100 <= value <= 599:
            raise ValueError(f"invalid status code: {value!r}")
        self._status = value
        self._explicit_status = True

    @property
    def body(self) -> Any:
        return self._body

    @body.setter
    def body(self, value: Any):
        self._body = value
        if not self._explicit_status:
            self._status = 204 if value is None else 200

    @property
    def explicit_status(self) -> bool:
        return self._explicit_status

    def replace_body(self, value: Any):
        """Swap the body without touching the status."""
        self._body = value


class Context:
    """Request context handed to every middleware and handler."""

    def __init__(self, request: Request, spec: Any = None):
        self.request = RequestView(request)
        self.response = ResponseState()
        self.params: Dict[str, Any] = dict(request.path_params)
        self.spec = spec
        self.state: Dict[str, Any] = {}
        self.invalid: Dict[str, HTTPError] = {}

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def path(self) -> str:
        return self.request.path

    @property
    def status(self) -> int:
        return self.response.status

    @status.setter
    def status(self, value: int):
        self.response.status = value

    @property
    def body(self) -> Any:
        return self.response.body

    @body.setter
    def body(self, value: Any):
        self.response.body = value

    def get(self, field: str, default: Any = None) -> Any:
        """Read a request header (case-insensitive)."""
        return self.request.header.get(field.lower(), default)

    def set(self, field: Union[str, Mapping[str, Any]], value: Any = None):
        """Set one response header, or several from a mapping."""
        if isinstance(field, Mapping):
            for key, item in field.items():
                self.set(key, item)
            return

        if isinstance(value, (list, tuple)):
            del self.response.headers[field]
            for item in value:
                self.response.headers.append(field, str(item))
        else:
            self.response.headers[field] = str(value)

    def throw(self, status: int, message: str, details: Optional[Any] = None):
        """Abort the request with an HTTP error."""
        raise HTTPError(status, message, details=details)

    async def close(self):
        """Release per-request resources such as uploaded files."""
        parts = self.request.parts
        if parts is not None and hasattr(parts, "close"):
            await parts.close()

    def _with_headers(self, response: Response) -> Response:
        for key, value in self.response.headers.items():
            if key in ("content-type", "content-length"):
                response.headers[key] = value
            else:
                response.headers.append(key, value)
        return response

    def to_response(self) -> Response:
        """Render the response state into a Starlette response."""
        status = self.response.status
        body = self.response.body

        if isinstance(body, Response):
            return body

        if body is None or status in (204, 304):
            if status == 404 and not self.response.explicit_status:
                return self._with_headers(PlainTextResponse("Not Found", status_code=404))
            return self._with_headers(Response(status_code=status))

        if isinstance(body, (bytes, bytearray)):
            response = Response(
                bytes(body), status_code=status, media_type="application/octet-stream"
            )
        elif isinstance(body, str):
            media_type = "text/html" if body.lstrip().startswith("<") else "text/plain"
            response = Response(body, status_code=status, media_type=media_type)
        else:
            response = JSONResponse(jsonable_encoder(body), status_code=status)

        return self._with_headers(response)
