"""
DI Core - Container and resolution context.

The container is deliberately small: it is the collaborator behind
``RestServer.use_ioc()`` and ``Inject`` parameters, not a general
application framework.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar, Union

from .errors import DependencyCycleError, ProviderNotFoundError
from .providers import ClassProvider, FactoryProvider, ValueProvider


logger = logging.getLogger("declarest.di")

T = TypeVar("T")
Token = Union[Type, str]

SCOPES = ("app", "singleton", "transient")


def autowirable(token: Any) -> bool:
    """Classes can be built on demand; builtins like ``str`` never are."""
    return isinstance(token, type) and token.__module__ != "builtins"


class ResolveCtx:
    """
    Resolution context for one top-level ``resolve_async`` call.

    Tracks the resolution stack for cycle detection.
    """

    __slots__ = ("container", "stack")

    def __init__(self, container: "Container"):
        self.container = container
        self.stack: List[str] = []

    async def resolve(self, dep_info: Dict[str, Any]) -> Any:
        return await self.container._resolve(
            dep_info["token"],
            tag=dep_info.get("tag"),
            optional=dep_info.get("optional", False),
            ctx=self,
        )


class Container:
    """
    DI Container - manages providers and cached instances.

    Scopes:
        - "app" / "singleton": one instance per container
        - "transient": a new instance per resolution

    Unregistered classes are autowired as transient providers when
    ``autowire`` is enabled (the default), so any service class can be
    resolved without explicit registration. Builtin types are never
    autowired.

    Example:
        ```python
        container = Container()
        container.bind(UserRepository, SqlUserRepository)
        container.register_instance(Settings, settings)
        repo = await container.resolve_async(UserRepository)
        ```
    """

    __slots__ = ("_providers", "_cache", "_autowire")

    def __init__(self, autowire: bool = True):
        self._providers: Dict[str, Any] = {}
        self._cache: Dict[str, Any] = {}
        self._autowire = autowire

    # ========================================================================
    # Registration
    # ========================================================================

    def register(self, provider: Any, tag: Optional[str] = None) -> None:
        """
        Register a provider.

        Raises:
            ValueError: If a different provider is registered for the same key
        """
        key = self._make_cache_key(provider.meta.token, tag)
        existing = self._providers.get(key)
        if existing is not None and existing is not provider:
            raise ValueError(
                f"Provider for {provider.meta.token} (tag={tag}) already registered: {existing.meta.name}"
            )
        self._providers[key] = provider
        logger.debug(f"Registered provider {provider.meta.name} for {key} ({provider.meta.scope})")

    def bind(self, interface: Token, implementation: Type, scope: str = "app", tag: Optional[str] = None) -> None:
        """
        Bind an interface to an implementation class.

        Example:
            container.bind(UserRepository, SqlUserRepository)
        """
        self._check_scope(scope)
        token = self._token_to_key(interface)
        provider = ClassProvider(implementation, scope=scope, token=token)
        key = self._make_cache_key(token, tag)
        self._providers[key] = provider
        self._cache.pop(key, None)

    def register_class(self, cls: Type, scope: str = "app", tag: Optional[str] = None) -> None:
        self._check_scope(scope)
        self.register(ClassProvider(cls, scope=scope), tag=tag)

    def register_factory(
        self,
        token: Token,
        factory: Callable[..., Any],
        scope: str = "app",
        tag: Optional[str] = None,
    ) -> None:
        self._check_scope(scope)
        self.register(FactoryProvider(factory, token=self._token_to_key(token), scope=scope), tag=tag)

    def register_instance(self, token: Token, instance: Any, tag: Optional[str] = None) -> None:
        """Register a pre-instantiated object."""
        self.register(ValueProvider(instance, token=self._token_to_key(token)), tag=tag)

    def is_registered(self, token: Token, tag: Optional[str] = None) -> bool:
        return self._make_cache_key(self._token_to_key(token), tag) in self._providers

    # ========================================================================
    # Resolution
    # ========================================================================

    async def resolve_async(self, token: Token, *, tag: Optional[str] = None, optional: bool = False) -> Any:
        """
        Resolve a dependency.

        Args:
            token: Type or string key
            tag: Optional tag for disambiguation
            optional: If True, return None if not found instead of raising

        Raises:
            ProviderNotFoundError: If provider not found and not optional
            DependencyCycleError: If providers depend on each other in a cycle
        """
        return await self._resolve(token, tag=tag, optional=optional, ctx=ResolveCtx(self))

    async def _resolve(self, token: Token, *, tag: Optional[str], optional: bool, ctx: ResolveCtx) -> Any:
        token_key = self._token_to_key(token)
        cache_key = self._make_cache_key(token_key, tag)

        if cache_key in self._cache:
            return self._cache[cache_key]

        provider = self._providers.get(cache_key)
        if provider is None and self._autowire and tag is None and autowirable(token):
            provider = ClassProvider(token, scope="transient")
        if provider is None:
            if optional:
                return None
            raise ProviderNotFoundError(token_key, tag)

        if cache_key in ctx.stack:
            raise DependencyCycleError(ctx.stack[ctx.stack.index(cache_key):] + [cache_key])

        ctx.stack.append(cache_key)
        try:
            instance = await provider.instantiate(ctx)
        finally:
            ctx.stack.pop()

        if provider.meta.scope in ("app", "singleton"):
            self._cache[cache_key] = instance
        return instance

    # ========================================================================
    # Helpers
    # ========================================================================

    @staticmethod
    def _check_scope(scope: str) -> None:
        if scope not in SCOPES:
            raise ValueError(f"Unknown scope {scope!r}; expected one of {SCOPES}")

    @staticmethod
    def _token_to_key(token: Token) -> str:
        if isinstance(token, str):
            return token
        if isinstance(token, type):
            return f"{token.__module__}.{token.__qualname__}"
        return repr(token)

    @staticmethod
    def _make_cache_key(token: str, tag: Optional[str]) -> str:
        return f"{token}#{tag}" if tag else token
