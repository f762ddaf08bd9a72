"""
Shared test fixtures and helpers for the declarest test suite.
"""

import pytest
from typing import List, Optional

from declarest.request import Request
from declarest.response import Response
from declarest.server import RestServer
from declarest.services.context import ServiceContext
from declarest.services.registry import MetadataRegistry


# ============================================================================
# Request Helpers
# ============================================================================


def make_scope(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
) -> dict:
    """Build a minimal ASGI HTTP scope."""
    raw_headers = []
    if headers:
        for name, value in headers:
            raw_headers.append(
                (name.encode("latin-1") if isinstance(name, str) else name,
                 value.encode("latin-1") if isinstance(value, str) else value)
            )
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": query_string.encode("utf-8") if isinstance(query_string, str) else query_string,
        "headers": raw_headers,
        "scheme": "http",
        "server": ("127.0.0.1", 8000),
        "client": ("127.0.0.1", 12345),
        "root_path": "",
    }


def make_receive(body: bytes = b"", *, chunks: Optional[List[bytes]] = None):
    """Create an ASGI receive callable from body bytes or chunked list."""
    if chunks:
        messages = [
            {"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1}
            for i, chunk in enumerate(chunks)
        ]
    else:
        messages = [{"type": "http.request", "body": body, "more_body": False}]

    idx = 0

    async def receive():
        nonlocal idx
        if idx < len(messages):
            msg = messages[idx]
            idx += 1
            return msg
        return {"type": "http.disconnect"}

    return receive


def make_request(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
    body: bytes = b"",
    **kwargs,
) -> Request:
    """Build a full Request object for testing."""
    scope = make_scope(method=method, path=path, query_string=query_string, headers=headers)
    return Request(scope, make_receive(body), **kwargs)


def make_context(request: Optional[Request] = None, **kwargs) -> ServiceContext:
    """Build a ServiceContext around a request and a fresh response sink."""
    return ServiceContext(request=request or make_request(), response=Response(), **kwargs)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def registry():
    """Isolated metadata registry."""
    reg = MetadataRegistry()
    yield reg
    reg.reset()


@pytest.fixture
def server(registry):
    """RestServer bound to the isolated registry."""
    return RestServer(registry=registry)
