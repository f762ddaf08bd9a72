"""
Service Metadata Model

In-memory descriptors for routable classes, their methods and parameters,
plus the rules that merge class-level and method-level declarations.

The model is independent of any declaration syntax: decorators, direct
registry calls or configuration loaders all end up producing the same
ServiceClass / ServiceMethod / ParameterDescriptor instances.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from declarest.faults import InvalidMetadataError


class HttpVerb(str, Enum):
    """Closed set of HTTP verbs a service method can answer."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    PATCH = "PATCH"


class ParamKind(str, Enum):
    """
    Where the binder takes an argument from.

    REQUEST, RESPONSE and CONTEXT hand over the pipeline objects themselves;
    PATH, QUERY, HEADER, COOKIE, FORM, PARAM, FILE and FILES look a name up
    in the request; BODY is the parsed request body; LANGUAGE and ACCEPT are
    the negotiated values; INJECT resolves a token through the service
    factory.
    """
    REQUEST = "request"
    RESPONSE = "response"
    CONTEXT = "context"
    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    COOKIE = "cookie"
    BODY = "body"
    FORM = "form"
    PARAM = "param"
    FILE = "file"
    FILES = "files"
    LANGUAGE = "language"
    ACCEPT = "accept"
    INJECT = "inject"


NAMED_KINDS = frozenset({
    ParamKind.PATH, ParamKind.QUERY, ParamKind.HEADER, ParamKind.COOKIE,
    ParamKind.FORM, ParamKind.PARAM, ParamKind.FILE, ParamKind.FILES,
})

# Kinds whose raw string value passes through the parameter converter
CONVERTIBLE_KINDS = frozenset({
    ParamKind.PATH, ParamKind.QUERY, ParamKind.HEADER, ParamKind.COOKIE,
    ParamKind.FORM, ParamKind.PARAM,
})


@dataclass
class ParameterDescriptor:
    """
    One formal argument of a service method.

    Attributes:
        index: Position in the argument list (dense, 0-based)
        kind: Binding kind
        name: Lookup name for named kinds; None for whole-object kinds
        type: Annotation used by the parameter converter (Any when unknown)
        token: IoC token for INJECT (defaults to ``type``)
        tag: IoC tag for INJECT
        optional: INJECT yields None (or the default) when nothing is registered
        default: Value used when the request lacks the name
    """
    index: int
    kind: ParamKind
    name: Optional[str] = None
    type: Any = Any
    token: Any = None
    tag: Optional[str] = None
    optional: bool = False
    default: Any = inspect.Parameter.empty

    @property
    def has_default(self) -> bool:
        return self.default is not inspect.Parameter.empty

    def __post_init__(self):
        self.kind = ParamKind(self.kind)
        if self.index < 0:
            raise InvalidMetadataError(f"Negative parameter index {self.index}")
        if self.kind in NAMED_KINDS and not self.name:
            raise InvalidMetadataError(
                f"Parameter {self.index} of kind '{self.kind.value}' needs a name"
            )


@dataclass
class ServiceProperty:
    """Instance attribute the dispatcher fills from the request context."""
    name: str
    kind: ParamKind
    type: Any = Any

    def __post_init__(self):
        self.kind = ParamKind(self.kind)


@dataclass
class ServiceMethod:
    """
    Routing metadata for one method of a service class.

    Attributes:
        name: Member name on the owning class
        verb: Declared HTTP verb (None until declared; GET is used then)
        path: Method-level path segment
        parameters: Parameter descriptors by position
        roles / languages / accepts / preprocessors: Method-level lists
        raw_response: Method writes to the response sink itself
        func: Function object for anonymous methods
    """
    name: str
    verb: Optional[HttpVerb] = None
    path: Optional[str] = None
    parameters: List[ParameterDescriptor] = field(default_factory=list)
    roles: List[str] = field(default_factory=list)
    languages: List[str] = field(default_factory=list)
    accepts: List[str] = field(default_factory=list)
    preprocessors: List[Callable] = field(default_factory=list)
    raw_response: bool = False
    func: Optional[Callable] = None

    @property
    def http_verb(self) -> HttpVerb:
        return self.verb or HttpVerb.GET

    def set_parameter(self, descriptor: ParameterDescriptor) -> None:
        """Insert or replace the descriptor at ``descriptor.index``."""
        self.parameters = [p for p in self.parameters if p.index != descriptor.index]
        self.parameters.append(descriptor)
        self.parameters.sort(key=lambda p: p.index)

    def validate(self, owner: str = "<anonymous>") -> None:
        """
        Check that parameter positions are dense.

        Raises:
            InvalidMetadataError: If positions have gaps
        """
        indexes = [p.index for p in self.parameters]
        if indexes != list(range(len(indexes))):
            raise InvalidMetadataError(
                f"Parameters of {owner}.{self.name} are not contiguous: {indexes}",
                method=self.name,
                indexes=indexes,
            )


@dataclass
class ServiceClass:
    """
    Routing metadata for a service class.

    ``ancestors`` is the MRO minus the class itself and ``object``, captured
    when the class is first registered; inheritance is resolved by walking
    it rather than by reflecting on the class at request time.
    """
    target: type
    path: Optional[str] = None
    roles: List[str] = field(default_factory=list)
    languages: List[str] = field(default_factory=list)
    accepts: List[str] = field(default_factory=list)
    preprocessors: List[Callable] = field(default_factory=list)
    properties: Dict[str, ServiceProperty] = field(default_factory=dict)
    methods: Dict[str, ServiceMethod] = field(default_factory=dict)
    ancestors: Tuple[type, ...] = ()

    @property
    def name(self) -> str:
        return self.target.__qualname__


# ============================================================================
# Resolved (effective) metadata
# ============================================================================

@dataclass(frozen=True)
class ResolvedMethod:
    """
    Effective metadata for one routable method.

    Lists are the concatenation of class-level then method-level values,
    except for anonymous methods which carry method-level values only.
    """
    name: str
    verb: HttpVerb
    path: Optional[str]
    parameters: Tuple[ParameterDescriptor, ...]
    roles: Tuple[str, ...]
    languages: Tuple[str, ...]
    accepts: Tuple[str, ...]
    preprocessors: Tuple[Callable, ...]
    raw_response: bool
    properties: Tuple[ServiceProperty, ...] = ()
    func: Optional[Callable] = None

    @property
    def is_anonymous(self) -> bool:
        return self.func is not None


@dataclass(frozen=True)
class ResolvedService:
    """A service class with inheritance applied."""
    target: type
    path: Optional[str]
    roles: Tuple[str, ...]
    languages: Tuple[str, ...]
    accepts: Tuple[str, ...]
    preprocessors: Tuple[Callable, ...]
    properties: Tuple[ServiceProperty, ...]
    methods: Tuple[ResolvedMethod, ...]

    def method(self, name: str) -> Optional[ResolvedMethod]:
        for resolved in self.methods:
            if resolved.name == name:
                return resolved
        return None


def effective_method(
    method: ServiceMethod,
    service: Optional[ServiceClass] = None,
    properties: Tuple[ServiceProperty, ...] = (),
) -> ResolvedMethod:
    """
    Merge class-level and method-level metadata.

    Args:
        method: Method metadata
        service: Class-level metadata, or None for anonymous methods

    Returns:
        ResolvedMethod with concatenated lists
    """
    if service is None:
        class_roles = class_languages = class_accepts = class_preprocessors = ()
    else:
        class_roles = tuple(service.roles)
        class_languages = tuple(service.languages)
        class_accepts = tuple(service.accepts)
        class_preprocessors = tuple(service.preprocessors)

    return ResolvedMethod(
        name=method.name,
        verb=method.http_verb,
        path=method.path,
        parameters=tuple(method.parameters),
        roles=class_roles + tuple(method.roles),
        languages=class_languages + tuple(method.languages),
        accepts=class_accepts + tuple(method.accepts),
        preprocessors=class_preprocessors + tuple(method.preprocessors),
        raw_response=method.raw_response,
        properties=properties,
        func=method.func,
    )
