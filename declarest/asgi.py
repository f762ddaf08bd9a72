"""
ASGI adapter - bridges the ASGI protocol to the service pipeline.

Per request: build a Request and a Response sink, match the route on the
host router, parse the body, run the matched handler and send whatever the
sink holds. Multipart bodies are left for the binder so uploads are only
parsed once negotiation has passed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from .request import Request
from .response import Response

if TYPE_CHECKING:
    from .server import RestServer


class ASGIAdapter:
    """
    ASGI application adapter.

    Routing failures (404/405) and body parsing failures go through the
    server's ErrorMapper like any pipeline failure.
    """

    __slots__ = ("server", "logger")

    def __init__(self, server: "RestServer"):
        self.server = server
        self.logger = logging.getLogger("declarest.asgi")

    async def __call__(self, scope: dict, receive: Callable, send: Callable):
        scope_type = scope["type"]
        if scope_type == "http":
            await self.handle_http(scope, receive, send)
        elif scope_type == "lifespan":
            await self.handle_lifespan(scope, receive, send)
        else:
            self.logger.warning(f"Unsupported ASGI scope type {scope_type!r}")

    async def handle_http(self, scope: dict, receive: Callable, send: Callable):
        """Handle one HTTP request."""
        config = self.server.config
        request = Request(
            scope,
            receive,
            max_body_size=config.max_body_size,
            max_file_size=config.max_file_size,
            form_memory_threshold=config.form_memory_threshold,
            upload_dir=config.upload_dir,
        )
        response = Response()

        try:
            match = self.server.router.match(request.method, request.path)
            request.path_params.update(match.params)
            await self.server.authenticate(request)
            if not request.is_multipart:
                await request.load()
            await match.handler(request, response)
        except Exception as exc:
            self.server.error_mapper.write(exc, response)
        finally:
            await request.cleanup()

        await response.send_asgi(send, head_only=request.method == "HEAD")

    async def handle_lifespan(self, scope: dict, receive: Callable, send: Callable):
        """Handle ASGI lifespan events."""
        while True:
            message = await receive()

            if message["type"] == "lifespan.startup":
                self.logger.debug(f"Startup with {len(self.server.get_paths())} path(s)")
                await send({"type": "lifespan.startup.complete"})

            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return
