"""
RestServer - façade that wires registry, route builder, dispatcher,
error mapper, host router and ASGI adapter together.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type, Union

from .asgi import ASGIAdapter
from .config import ConfigLoader, ServerConfig, configure_logging
from .di import Container
from .faults import ErrorMapper, Fault
from .request import Request
from .router import PathRouter
from .services.binder import ParamConverter, ParameterBinder
from .services.builder import RouteBuilder, RouteEntry, Router
from .services.dispatcher import ServiceDispatcher
from .services.factory import ContainerServiceFactory, DefaultServiceFactory, ServiceFactory
from .services.metadata import HttpVerb
from .services.negotiation import NegotiationGuard
from .services.registry import MetadataRegistry, default_registry


Authenticator = Callable[[Request], Any]


class RestServer:
    """
    Declarative REST server.

    Example:
        ```python
        server = RestServer()
        server.use_ioc()
        server.build_services(UserService, OrderService)
        server.run(port=8080)
        ```

    The instance is itself an ASGI application (``uvicorn module:server``).
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        *,
        registry: Optional[MetadataRegistry] = None,
        router: Optional[PathRouter] = None,
    ):
        self.config = config or ServerConfig()
        self.registry = registry if registry is not None else default_registry
        self.router = router or PathRouter()
        self.logger = logging.getLogger("declarest.server")

        self.error_mapper = ErrorMapper(
            error_format=self.config.error_format,
            expose_errors=self.config.expose_errors,
        )
        self.factory: ServiceFactory = DefaultServiceFactory()
        self.binder = ParameterBinder(self.factory)
        self.dispatcher = ServiceDispatcher(self.binder, NegotiationGuard(), self.error_mapper)
        self.builder = RouteBuilder(self.registry, self.dispatcher, self.factory)
        self.app = ASGIAdapter(self)

        self._authenticator: Optional[Authenticator] = None
        self._entries: Dict[Tuple[HttpVerb, str], RouteEntry] = {}

    @classmethod
    def from_config(
        cls,
        paths: Optional[Iterable[str]] = None,
        *,
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
        **kwargs,
    ) -> "RestServer":
        """Create a server from config files, .env and DECLAREST_* variables."""
        loader = ConfigLoader.load(paths, env_file=env_file, overrides=overrides)
        return cls(loader.server_config(), **kwargs)

    async def __call__(self, scope: dict, receive: Callable, send: Callable):
        await self.app(scope, receive, send)

    # ========================================================================
    # Building
    # ========================================================================

    def build_services(self, *targets: Any, router: Optional[Router] = None) -> List[RouteEntry]:
        """
        Register routes for service classes (or decorated functions).

        Args:
            targets: Service classes or decorated functions
            router: Host router to register on (the server's own by default)

        Returns:
            Route entries created by this call
        """
        entries = self.builder.build(router or self.router, *targets)
        if router is None or router is self.router:
            for entry in entries:
                # Rebuilding a route replaces it, matching the router
                key = (entry.verb, entry.path)
                self._entries.pop(key, None)
                self._entries[key] = entry
        return entries

    def routes(self) -> List[RouteEntry]:
        """Route entries built on the server's router, in build order."""
        return list(self._entries.values())

    def get_paths(self) -> List[str]:
        """Distinct paths served, sorted."""
        return sorted({entry.path for entry in self._entries.values()})

    def get_http_methods(self, path: str) -> List[str]:
        """Verbs served for ``path`` (a template as returned by get_paths)."""
        return sorted({entry.verb.value for entry in self._entries.values() if entry.path == path})

    def reset(self) -> None:
        """Forget routes and registry metadata (tests / re-registration)."""
        self.registry.reset()
        self.router.clear()
        self._entries.clear()

    # ========================================================================
    # Collaborators
    # ========================================================================

    def set_param_converter(self, converter: ParamConverter) -> None:
        """Replace the converter applied to path/query/header/cookie/form values."""
        self.binder.param_converter = converter

    def register_service_factory(self, factory: ServiceFactory) -> None:
        """Use ``factory`` for service instances and Inject parameters."""
        self.factory = factory
        self.binder.factory = factory
        self.builder.factory = factory
        self.logger.debug(f"Service factory set to {factory!r}")

    def use_ioc(self, container: Optional[Container] = None) -> Container:
        """
        Instantiate services through a DI container.

        Returns:
            The container in use (a new autowiring one when not given)
        """
        factory = ContainerServiceFactory(container)
        self.register_service_factory(factory)
        return factory.container

    def register_authenticator(self, authenticator: Authenticator) -> None:
        """
        Attach a principal to each request before the pipeline runs.

        The authenticator receives the Request and may be sync or async. A
        non-None return value becomes ``request.principal``.
        """
        self._authenticator = authenticator

    async def authenticate(self, request: Request) -> None:
        if self._authenticator is None:
            return
        principal = self._authenticator(request)
        if inspect.isawaitable(principal):
            principal = await principal
        if principal is not None:
            request.principal = principal

    def map_exception(
        self,
        exception_type: Type[BaseException],
        fault: Union[Type[Fault], Callable[[BaseException], Fault]],
    ) -> None:
        """Answer ``exception_type`` with the status of ``fault``."""
        self.error_mapper.register(exception_type, fault)

    # ========================================================================
    # Serving
    # ========================================================================

    def run(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        log_level: Optional[str] = None,
    ) -> None:
        """
        Run the server with uvicorn.

        Args:
            host: Host to bind to (config.host by default)
            port: Port to bind to (config.port by default)
            log_level: Logging level (config.log_level by default)
        """
        import uvicorn

        host = host or self.config.host
        port = port or self.config.port
        log_level = log_level or self.config.log_level

        configure_logging(log_level)
        self.logger.info(f"Starting uvicorn server on {host}:{port}")
        uvicorn.run(self, host=host, port=port, log_level=log_level)
