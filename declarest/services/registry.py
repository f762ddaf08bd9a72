"""
Metadata Registry

Store of ServiceClass / ServiceMethod entries keyed by class identity.

Entries are created lazily (get-or-create), filled in by registration calls,
read when routes are built and dropped only by ``reset()``. Population
happens before any request is served, so there is no locking.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from declarest.faults import InvalidMetadataError

from .decorators import ContextProperty, declaration_of
from .metadata import (
    HttpVerb,
    ParameterDescriptor,
    ResolvedMethod,
    ResolvedService,
    ServiceClass,
    ServiceMethod,
    ServiceProperty,
    effective_method,
)
from .params import describe_parameters


logger = logging.getLogger("declarest.registry")


class MetadataRegistry:
    """
    Registry of service metadata.

    Example:
        ```python
        registry = MetadataRegistry()
        registry.register_class(UserService, path="users", roles=["admin"])
        registry.register_method(UserService, "get", verb="GET", path="{id}",
                                 parameters=[ParameterDescriptor(0, ParamKind.PATH, "id", int)])
        service = registry.resolve(UserService)
        ```
    """

    def __init__(self):
        self._classes: Dict[type, ServiceClass] = {}
        self._anonymous: Dict[Callable, ServiceMethod] = {}
        self._collected: Set[Any] = set()

    def __contains__(self, target: Any) -> bool:
        return target in self._classes or target in self._anonymous

    def __len__(self) -> int:
        return len(self._classes)

    def __repr__(self) -> str:
        return f"<MetadataRegistry classes={len(self._classes)} anonymous={len(self._anonymous)}>"

    def services(self) -> List[ServiceClass]:
        """Registered service classes in registration order."""
        return list(self._classes.values())

    def reset(self) -> None:
        """Drop every entry (test isolation / re-registration)."""
        self._classes.clear()
        self._anonymous.clear()
        self._collected.clear()
        logger.debug("Registry reset")

    # ========================================================================
    # Get-or-create
    # ========================================================================

    def get_or_create_service_class(self, cls: type) -> ServiceClass:
        """Return the ServiceClass for ``cls``, creating it on first access."""
        if not isinstance(cls, type):
            raise InvalidMetadataError(f"Service target must be a class, got {cls!r}")
        service = self._classes.get(cls)
        if service is None:
            ancestors = tuple(base for base in cls.__mro__[1:] if base is not object)
            service = ServiceClass(target=cls, ancestors=ancestors)
            self._classes[cls] = service
            logger.debug(f"Registered service class {cls.__qualname__}")
        return service

    def get_or_create_service_method(self, cls: type, name: str) -> ServiceMethod:
        """Return the ServiceMethod ``name`` of ``cls``, registering both if absent."""
        service = self.get_or_create_service_class(cls)
        method = service.methods.get(name)
        if method is None:
            method = ServiceMethod(name=name)
            service.methods[name] = method
            logger.debug(f"Registered service method {cls.__qualname__}.{name}")
        return method

    # ========================================================================
    # Registration surface
    # ========================================================================

    def register_class(
        self,
        cls: type,
        *,
        path: Optional[str] = None,
        roles: Iterable[str] = (),
        languages: Iterable[str] = (),
        accepts: Iterable[str] = (),
        preprocessors: Iterable[Callable] = (),
        properties: Iterable[ServiceProperty] = (),
    ) -> ServiceClass:
        """Record class-level metadata; lists extend what is already there."""
        service = self.get_or_create_service_class(cls)
        if path is not None:
            service.path = path
        service.roles.extend(roles)
        service.languages.extend(languages)
        service.accepts.extend(accepts)
        service.preprocessors.extend(preprocessors)
        for prop in properties:
            service.properties[prop.name] = prop
        return service

    def register_method(
        self,
        cls: type,
        name: str,
        *,
        verb: Optional[HttpVerb | str] = None,
        path: Optional[str] = None,
        roles: Iterable[str] = (),
        languages: Iterable[str] = (),
        accepts: Iterable[str] = (),
        preprocessors: Iterable[Callable] = (),
        parameters: Iterable[ParameterDescriptor] = (),
        raw_response: Optional[bool] = None,
    ) -> ServiceMethod:
        """Record method-level metadata; lists extend what is already there."""
        method = self.get_or_create_service_method(cls, name)
        self._apply(method, verb, path, roles, languages, accepts, preprocessors, raw_response)
        for descriptor in parameters:
            method.set_parameter(descriptor)
        return method

    def register_parameter(self, cls: type, name: str, descriptor: ParameterDescriptor) -> None:
        """Record one parameter descriptor of ``cls.name``."""
        method = self.get_or_create_service_method(cls, name)
        if any(p.index == descriptor.index for p in method.parameters):
            raise InvalidMetadataError(
                f"Parameter {descriptor.index} of {cls.__qualname__}.{name} is already registered",
                method=name,
                index=descriptor.index,
            )
        method.set_parameter(descriptor)

    def register_anonymous_method(
        self,
        func: Callable,
        *,
        verb: Optional[HttpVerb | str] = None,
        path: Optional[str] = None,
        roles: Iterable[str] = (),
        languages: Iterable[str] = (),
        accepts: Iterable[str] = (),
        preprocessors: Iterable[Callable] = (),
        parameters: Optional[Iterable[ParameterDescriptor]] = None,
        raw_response: Optional[bool] = None,
    ) -> ServiceMethod:
        """
        Record a method with no owning class (a plain function endpoint).

        Its effective metadata is method-level only. Parameters default to
        the function's own signature.
        """
        method = self._anonymous.get(func)
        if method is None:
            method = ServiceMethod(name=func.__name__, func=func)
            self._anonymous[func] = method
            if parameters is None:
                parameters = describe_parameters(func, bound=False)
            logger.debug(f"Registered anonymous method {func.__qualname__}")
        self._apply(method, verb, path, roles, languages, accepts, preprocessors, raw_response)
        for descriptor in parameters or ():
            method.set_parameter(descriptor)
        return method

    @staticmethod
    def _apply(method, verb, path, roles, languages, accepts, preprocessors, raw_response) -> None:
        if verb is not None:
            method.verb = HttpVerb(verb.upper() if isinstance(verb, str) else verb)
        if path is not None:
            method.path = path
        method.roles.extend(roles)
        method.languages.extend(languages)
        method.accepts.extend(accepts)
        method.preprocessors.extend(preprocessors)
        if raw_response is not None:
            method.raw_response = raw_response

    # ========================================================================
    # Decorator declarations
    # ========================================================================

    def collect(self, target: Any) -> None:
        """
        Register the declarations recorded by decorators on ``target``.

        For a class this reads its own ``__dict__`` (class declarations,
        decorated functions, context properties) and then its ancestors.
        Each target is collected once until ``reset()``.
        """
        if target in self._collected:
            return
        self._collected.add(target)

        if not isinstance(target, type):
            self._collect_function(target)
            return

        for ancestor in reversed(target.__mro__[1:]):
            if ancestor is not object:
                self.collect(ancestor)

        declaration = declaration_of(target)
        if declaration is not None:
            self.register_class(
                target,
                path=declaration.path,
                roles=declaration.roles,
                languages=declaration.languages,
                accepts=declaration.accepts,
                preprocessors=declaration.preprocessors,
            )

        for attr_name, value in target.__dict__.items():
            if isinstance(value, ContextProperty):
                self.register_class(target, properties=[ServiceProperty(attr_name, value.kind)])
                continue
            if not inspect.isfunction(value):
                continue
            method_declaration = declaration_of(value)
            if method_declaration is None:
                continue
            method = self.register_method(
                target,
                attr_name,
                verb=method_declaration.verb,
                path=method_declaration.path,
                roles=method_declaration.roles,
                languages=method_declaration.languages,
                accepts=method_declaration.accepts,
                preprocessors=method_declaration.preprocessors,
                raw_response=method_declaration.raw_response,
            )
            if not method.parameters:
                for descriptor in describe_parameters(value):
                    self.register_parameter(target, attr_name, descriptor)

    def _collect_function(self, func: Callable) -> None:
        declaration = declaration_of(func)
        if declaration is None:
            raise InvalidMetadataError(f"{func!r} carries no service declarations")
        self.register_anonymous_method(
            func,
            verb=declaration.verb,
            path=declaration.path,
            roles=declaration.roles,
            languages=declaration.languages,
            accepts=declaration.accepts,
            preprocessors=declaration.preprocessors,
            raw_response=declaration.raw_response,
        )

    # ========================================================================
    # Resolution
    # ========================================================================

    def resolve(self, cls: type) -> ResolvedService:
        """
        Effective metadata of ``cls`` with inheritance applied.

        Walks the captured ancestor chain root first: for class-level fields
        the nearest class that declares them wins; method maps are merged
        with subclass entries winning by name.

        Raises:
            InvalidMetadataError: If a method's parameter positions have gaps
        """
        service = self.get_or_create_service_class(cls)
        chain = [self._classes[c] for c in reversed(service.ancestors) if c in self._classes]
        chain.append(service)

        path: Optional[str] = None
        roles: Tuple[str, ...] = ()
        languages: Tuple[str, ...] = ()
        accepts: Tuple[str, ...] = ()
        preprocessors: Tuple[Callable, ...] = ()
        properties: Dict[str, ServiceProperty] = {}
        methods: Dict[str, Tuple[ServiceClass, ServiceMethod]] = {}

        for entry in chain:
            if entry.path is not None:
                path = entry.path
            if entry.roles:
                roles = tuple(entry.roles)
            if entry.languages:
                languages = tuple(entry.languages)
            if entry.accepts:
                accepts = tuple(entry.accepts)
            if entry.preprocessors:
                preprocessors = tuple(entry.preprocessors)
            properties.update(entry.properties)
            for name, method in entry.methods.items():
                methods[name] = (entry, method)

        merged = ServiceClass(
            target=cls,
            path=path,
            roles=list(roles),
            languages=list(languages),
            accepts=list(accepts),
            preprocessors=list(preprocessors),
        )
        props = tuple(properties.values())

        resolved_methods = []
        for name, (owner, method) in methods.items():
            method.validate(owner.name)
            resolved_methods.append(effective_method(method, merged, props))

        return ResolvedService(
            target=cls,
            path=path,
            roles=roles,
            languages=languages,
            accepts=accepts,
            preprocessors=preprocessors,
            properties=props,
            methods=tuple(resolved_methods),
        )

    def resolve_anonymous(self, func: Callable) -> ResolvedMethod:
        """Effective metadata of a plain function endpoint (method-level only)."""
        method = self._anonymous.get(func)
        if method is None:
            raise InvalidMetadataError(f"{func!r} is not registered")
        method.validate(getattr(func, "__module__", "<anonymous>"))
        return effective_method(method)


default_registry = MetadataRegistry()
