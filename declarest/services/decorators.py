"""
Service Decorators

Declarative metadata for service classes and their methods.
Attach declarations without import-time side effects: every decorator only
records what it was given on the decorated object. ``MetadataRegistry.collect``
turns those declarations into registry entries when routes are built.

Example:
    ```python
    @Path("users")
    @Security("admin")
    class UserService:
        @GET
        @Path("{id}")
        def get(self, id: Annotated[int, PathParam()]):
            ...

        @POST
        @Preprocessor(validate_user)
        def create(self, body: dict):
            ...
    ```

Stacked decorators are recorded in reading order (top to bottom) even though
Python applies them bottom-up, so list-valued declarations prepend.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, TypeVar

from declarest.faults import DecoratorDeclarationError, InvalidMetadataError

from .metadata import HttpVerb, ParamKind


T = TypeVar("T")

DECLARATION_ATTR = "__declarest__"


@dataclass
class Declaration:
    """Raw declarations recorded on a class or function."""
    verb: Optional[HttpVerb] = None
    path: Optional[str] = None
    roles: List[str] = field(default_factory=list)
    languages: List[str] = field(default_factory=list)
    accepts: List[str] = field(default_factory=list)
    preprocessors: List[Callable] = field(default_factory=list)
    raw_response: bool = False


def declaration_of(target: Any) -> Optional[Declaration]:
    """
    Declarations recorded directly on ``target``.

    Classes are read from their own ``__dict__`` so a subclass never sees its
    parent's declarations as its own.
    """
    if isinstance(target, type):
        return target.__dict__.get(DECLARATION_ATTR)
    return getattr(target, DECLARATION_ATTR, None)


def _ensure_declaration(target: Any) -> Declaration:
    declaration = declaration_of(target)
    if declaration is None:
        declaration = Declaration()
        setattr(target, DECLARATION_ATTR, declaration)
    return declaration


def _is_class(target: Any) -> bool:
    return isinstance(target, type)


def _is_method(target: Any) -> bool:
    return inspect.isfunction(target)


def _flatten(values: Iterable[Any]) -> List[Any]:
    flat: List[Any] = []
    for value in values:
        if isinstance(value, (list, tuple, set, frozenset)):
            flat.extend(value)
        else:
            flat.append(value)
    return flat


# ============================================================================
# Path
# ============================================================================

def Path(path: str) -> Callable[[T], T]:
    """
    Declare a path segment on a service class or method.

    The class path prefixes every method path; leading/trailing slashes are
    normalized when routes are built.
    """
    if not isinstance(path, str):
        raise DecoratorDeclarationError("Path")

    def decorator(target: T) -> T:
        if not (_is_class(target) or _is_method(target)):
            raise DecoratorDeclarationError("Path")
        _ensure_declaration(target).path = path
        return target

    return decorator


# ============================================================================
# HTTP verbs
# ============================================================================

def _verb(verb: HttpVerb) -> Callable[[T], T]:
    def decorator(func: T) -> T:
        if not _is_method(func):
            raise DecoratorDeclarationError(verb.value)
        declaration = _ensure_declaration(func)
        if declaration.verb is not None and declaration.verb != verb:
            raise InvalidMetadataError(
                f"Method {func.__qualname__} is already annotated with @{declaration.verb.value}. "
                f"You can only map a method to one HTTP verb.",
                method=func.__qualname__,
            )
        declaration.verb = verb
        return func

    decorator.__name__ = verb.value
    decorator.__qualname__ = verb.value
    decorator.__doc__ = f"Map a service method to HTTP {verb.value}."
    return decorator


GET = _verb(HttpVerb.GET)
POST = _verb(HttpVerb.POST)
PUT = _verb(HttpVerb.PUT)
DELETE = _verb(HttpVerb.DELETE)
HEAD = _verb(HttpVerb.HEAD)
OPTIONS = _verb(HttpVerb.OPTIONS)
PATCH = _verb(HttpVerb.PATCH)


def RawResponse(func: T) -> T:
    """Mark a method as writing the response sink itself."""
    if not _is_method(func):
        raise DecoratorDeclarationError("RawResponse")
    _ensure_declaration(func).raw_response = True
    return func


# ============================================================================
# Security & negotiation
# ============================================================================

def Security(*roles: Any) -> Callable[[T], T]:
    """
    Require the caller to hold one of ``roles``.

    ``Security()``, ``Security("")`` and ``Security(None)`` accept any
    authenticated principal (registered as ``*``).
    """
    declared = [role for role in _flatten(roles) if role] or ["*"]

    def decorator(target: T) -> T:
        if not (_is_class(target) or _is_method(target)):
            raise DecoratorDeclarationError("Security")
        declaration = _ensure_declaration(target)
        declaration.roles = declared + declaration.roles
        return target

    return decorator


def _accepted(decorator_name: str, field_name: str, values: tuple) -> Callable[[T], T]:
    declared = [value for value in _flatten(values) if value]
    if not declared:
        raise DecoratorDeclarationError(decorator_name)

    def decorator(target: T) -> T:
        if not (_is_class(target) or _is_method(target)):
            raise DecoratorDeclarationError(decorator_name)
        declaration = _ensure_declaration(target)
        setattr(declaration, field_name, declared + getattr(declaration, field_name))
        return target

    return decorator


def AcceptLanguage(*languages: Any) -> Callable[[T], T]:
    """Restrict the languages a service answers in. Falsy values are ignored."""
    return _accepted("AcceptLanguage", "languages", languages)


def Accept(*media_types: Any) -> Callable[[T], T]:
    """Restrict the request content types a service accepts. Falsy values are ignored."""
    return _accepted("Accept", "accepts", media_types)


def Preprocessor(*preprocessors: Callable) -> Callable[[T], T]:
    """
    Run ``preprocessors`` against the request before the method is invoked.

    Each preprocessor receives the Request and may be sync or async; raising
    aborts the request.
    """
    if not preprocessors or any(p is None or not callable(p) for p in preprocessors):
        raise DecoratorDeclarationError("Preprocessor")
    declared = list(preprocessors)

    def decorator(target: T) -> T:
        if not (_is_class(target) or _is_method(target)):
            raise DecoratorDeclarationError("Preprocessor")
        declaration = _ensure_declaration(target)
        declaration.preprocessors = declared + declaration.preprocessors
        return target

    return decorator


# ============================================================================
# Context properties
# ============================================================================

class ContextProperty:
    """
    Class attribute filled from the request context before each call.

    Example:
        ```python
        class ReportService:
            context = context_property(ParamKind.CONTEXT)
            language = context_property(ParamKind.LANGUAGE)
        ```
    """

    ALLOWED = frozenset({
        ParamKind.REQUEST, ParamKind.RESPONSE, ParamKind.CONTEXT,
        ParamKind.LANGUAGE, ParamKind.ACCEPT,
    })

    def __init__(self, kind: ParamKind):
        kind = ParamKind(kind)
        if kind not in self.ALLOWED:
            raise DecoratorDeclarationError("Context")
        self.kind = kind
        self.name: Optional[str] = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Any, owner: type) -> Any:
        if instance is None:
            return self
        # Unbound until the dispatcher assigns the instance attribute
        return None

    def __repr__(self) -> str:
        return f"ContextProperty({self.kind.value!r}, name={self.name!r})"


def context_property(kind: ParamKind) -> Any:
    """Declare a class attribute bound to a context object per request."""
    return ContextProperty(kind)
