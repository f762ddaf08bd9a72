"""
Service factories - how service instances (and injected values) are made.
"""

from __future__ import annotations

from typing import Any, Awaitable, Optional, Protocol, Union, runtime_checkable

from declarest.di import Container, ProviderNotFoundError, autowirable

from .context import ServiceContext


@runtime_checkable
class ServiceFactory(Protocol):
    """
    Factory collaborator.

    ``create`` builds the service instance for one request; ``resolve``
    answers ``Inject`` parameters. Both may return awaitables. ``resolve``
    returns None for an ``optional`` token nothing can provide.
    """

    def create(self, service_class: type, context: Optional[ServiceContext]) -> Union[Any, Awaitable[Any]]:
        ...

    def resolve(
        self, token: Any, *, tag: Optional[str] = None, optional: bool = False,
    ) -> Union[Any, Awaitable[Any]]:
        ...


class DefaultServiceFactory:
    """Direct construction with no arguments."""

    def create(self, service_class: type, context: Optional[ServiceContext] = None) -> Any:
        return service_class()

    def resolve(self, token: Any, *, tag: Optional[str] = None, optional: bool = False) -> Any:
        # No registrations here, so tagged lookups cannot be answered
        if tag is None and autowirable(token):
            return token()
        if optional:
            return None
        raise ProviderNotFoundError(repr(token), tag)

    def __repr__(self) -> str:
        return "DefaultServiceFactory()"


class ContainerServiceFactory:
    """Delegates instantiation and lookups to a DI Container."""

    def __init__(self, container: Optional[Container] = None):
        self.container = container or Container()

    async def create(self, service_class: type, context: Optional[ServiceContext] = None) -> Any:
        return await self.container.resolve_async(service_class)

    async def resolve(self, token: Any, *, tag: Optional[str] = None, optional: bool = False) -> Any:
        return await self.container.resolve_async(token, tag=tag, optional=optional)

    def __repr__(self) -> str:
        return f"ContainerServiceFactory({self.container!r})"
