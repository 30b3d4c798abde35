"""
Shared fixtures for spec router tests.
"""

from typing import Dict, Optional

import pytest
from starlette.requests import Request

from spec_router.context import Context
from spec_router.settings import RouterSettings


def build_request(
    method: str = "GET",
    path: str = "/",
    headers: Optional[Dict[str, str]] = None,
    query_string: str = "",
    body: bytes = b"",
    path_params: Optional[Dict[str, str]] = None,
) -> Request:
    """Build a Starlette request without a server."""
    raw_headers = [
        (key.lower().encode("latin-1"), value.encode("latin-1"))
        for key, value in (headers or {}).items()
    ]
    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "root_path": "",
        "query_string": query_string.encode("latin-1"),
        "headers": raw_headers,
        "path_params": path_params or {},
        "server": ("testserver", 80),
        "client": ("testclient", 50000),
    }
    sent = False

    async def receive():
        nonlocal sent
        if sent:
            return {"type": "http.disconnect"}
        sent = True
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


@pytest.fixture
def make_context():
    """Factory creating a Context around a synthetic request."""
    def factory(**kwargs) -> Context:
        spec = kwargs.pop("spec", None)
        return Context(build_request(**kwargs), spec)

    return factory


@pytest.fixture
def settings():
    """Default router settings."""
    return RouterSettings()
