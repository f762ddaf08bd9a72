"""
Route Builder - compiles registry metadata into handlers on a host router.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Protocol

from declarest.request import Request
from declarest.response import Response

from .context import ServiceContext
from .dispatcher import ServiceDispatcher
from .factory import DefaultServiceFactory, ServiceFactory
from .metadata import HttpVerb, ResolvedMethod
from .registry import MetadataRegistry, default_registry


logger = logging.getLogger("declarest.builder")

RouteHandler = Callable[[Request, Response], Awaitable[None]]


class Router(Protocol):
    """Host router: the only capability the builder needs."""

    def add_route(self, verb: str, path: str, handler: RouteHandler) -> None:
        ...


@dataclass(frozen=True)
class RouteEntry:
    """One (verb, path) registration emitted by a build."""
    verb: HttpVerb
    path: str
    target: Any
    method_name: str
    handler: RouteHandler

    @property
    def handler_name(self) -> str:
        owner = getattr(self.target, "__qualname__", repr(self.target))
        if callable(self.target) and not isinstance(self.target, type):
            return owner
        return f"{owner}.{self.method_name}"


def join_paths(*segments: Optional[str]) -> str:
    """
    Join path segments with single slashes.

    Example:
        >>> join_paths("/users/", "/{id}")
        '/users/{id}'
        >>> join_paths(None, "")
        '/'
    """
    parts = []
    for segment in segments:
        if not segment:
            continue
        parts.extend(piece for piece in segment.split("/") if piece)
    return "/" + "/".join(parts)


class RouteBuilder:
    """
    Emits one handler per routable method.

    A method is routable when its class declares a path or the method does.
    Builds are deterministic: ancestors' methods come first, then the class's
    own, each in definition order.
    """

    def __init__(
        self,
        registry: Optional[MetadataRegistry] = None,
        dispatcher: Optional[ServiceDispatcher] = None,
        factory: Optional[ServiceFactory] = None,
    ):
        self.registry = registry if registry is not None else default_registry
        self.dispatcher = dispatcher or ServiceDispatcher()
        self.factory = factory or DefaultServiceFactory()

    def build(self, router: Router, *targets: Any) -> List[RouteEntry]:
        """
        Register handlers for ``targets`` (service classes or decorated
        functions) on ``router``.

        Returns:
            Route entries in registration order
        """
        entries: List[RouteEntry] = []
        for target in targets:
            self.registry.collect(target)
            if isinstance(target, type):
                entries.extend(self._build_class(target))
            else:
                entry = self._build_function(target)
                if entry is not None:
                    entries.append(entry)

        for entry in entries:
            router.add_route(entry.verb.value, entry.path, entry.handler)
            logger.debug(f"Route {entry.verb.value} {entry.path} -> {entry.handler_name}")

        logger.info(f"Built {len(entries)} route(s) from {len(targets)} service(s)")
        return entries

    def _build_class(self, cls: type) -> List[RouteEntry]:
        service = self.registry.resolve(cls)
        entries = []
        for method in service.methods:
            if service.path is None and method.path is None:
                continue
            path = join_paths(service.path, method.path)
            entries.append(RouteEntry(method.verb, path, cls, method.name, self._handler(cls, method)))
        return entries

    def _build_function(self, func: Callable) -> Optional[RouteEntry]:
        method = self.registry.resolve_anonymous(func)
        if method.path is None:
            return None
        return RouteEntry(
            method.verb, join_paths(method.path), func, method.name, self._handler(None, method),
        )

    def _handler(self, target: Optional[type], method: ResolvedMethod) -> RouteHandler:
        dispatcher = self.dispatcher

        async def handler(request: Request, response: Response) -> None:
            context = ServiceContext(request=request, response=response, factory=self.factory)
            await dispatcher.dispatch(target, method, context)

        handler.__qualname__ = f"route:{method.verb.value}:{method.name}"
        return handler
