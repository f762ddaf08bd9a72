"""
Providers - how the container produces an instance for a token.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Type, TYPE_CHECKING, get_type_hints

from .decorators import find_inject, split_annotation
from .errors import DIError

if TYPE_CHECKING:
    from .core import ResolveCtx


@dataclass
class ProviderMeta:
    """Descriptive metadata for a provider."""
    name: str
    token: str
    scope: str = "app"


def _type_hints(obj: Any) -> Dict[str, Any]:
    try:
        return get_type_hints(obj, include_extras=True)
    except (NameError, TypeError):
        # Unresolvable forward references: fall back to raw annotations
        return dict(getattr(obj, "__annotations__", {}) or {})


def _dependency(annotation: Any, has_default: bool) -> Dict[str, Any]:
    base, _ = split_annotation(annotation)
    marker = find_inject(annotation)
    if marker is None:
        return {"token": base, "tag": None, "optional": has_default, "has_default": has_default}
    return {
        "token": marker.token if marker.token is not None else base,
        "tag": marker.tag,
        "optional": marker.optional or has_default,
        "has_default": has_default,
    }


class ClassProvider:
    """
    Provider that instantiates a class by resolving constructor dependencies.

    After construction, class-level attributes annotated with
    ``Annotated[T, Inject()]`` are resolved and assigned (property injection).
    Supports async initialization via the ``async_init()`` convention.
    """

    __slots__ = ("_meta", "_cls", "_dependencies", "_properties", "_has_async_init")

    def __init__(self, cls: Type, scope: str = "app", token: Optional[str] = None):
        self._cls = cls
        self._dependencies = self._extract_dependencies(cls)
        self._properties = self._extract_properties(cls)
        self._has_async_init = hasattr(cls, "async_init")
        self._meta = ProviderMeta(
            name=cls.__name__,
            token=token or f"{cls.__module__}.{cls.__qualname__}",
            scope=scope,
        )

    @property
    def meta(self) -> ProviderMeta:
        return self._meta

    async def instantiate(self, ctx: "ResolveCtx") -> Any:
        """Instantiate class by resolving dependencies."""
        resolved_deps = {}
        for dep_name, dep_info in self._dependencies.items():
            value = await ctx.resolve(dep_info)
            if value is None and dep_info["has_default"]:
                continue
            resolved_deps[dep_name] = value

        instance = self._cls(**resolved_deps)

        for attr_name, dep_info in self._properties.items():
            setattr(instance, attr_name, await ctx.resolve(dep_info))

        if self._has_async_init:
            await instance.async_init()

        return instance

    def _extract_dependencies(self, cls: Type) -> Dict[str, Dict[str, Any]]:
        """Extract dependencies from the ``__init__`` signature."""
        deps: Dict[str, Dict[str, Any]] = {}

        if cls.__init__ is object.__init__:
            return deps

        try:
            sig = inspect.signature(cls.__init__)
        except ValueError:
            return deps

        type_hints = _type_hints(cls.__init__)

        for param_name, param in sig.parameters.items():
            if param_name in ("self", "cls"):
                continue
            if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
                continue

            annotation = type_hints.get(param_name, param.annotation)
            has_default = param.default is not inspect.Parameter.empty

            if annotation is inspect.Parameter.empty:
                if has_default:
                    continue
                raise DIError(
                    f"Missing type annotation for parameter '{param_name}' "
                    f"in {cls.__qualname__}.__init__"
                )

            deps[param_name] = _dependency(annotation, has_default=has_default)

        return deps

    def _extract_properties(self, cls: Type) -> Dict[str, Dict[str, Any]]:
        """Class attributes declared as ``Annotated[T, Inject()]`` (own and inherited)."""
        props: Dict[str, Dict[str, Any]] = {}
        for attr_name, annotation in _type_hints(cls).items():
            if find_inject(annotation) is not None:
                props[attr_name] = _dependency(annotation, has_default=False)
        return props


class FactoryProvider:
    """Provider that calls a (sync or async) factory function."""

    __slots__ = ("_meta", "_factory", "_dependencies")

    def __init__(self, factory: Callable[..., Any], token: str, scope: str = "app"):
        self._factory = factory
        self._meta = ProviderMeta(name=getattr(factory, "__name__", repr(factory)), token=token, scope=scope)
        hints = _type_hints(factory)
        self._dependencies = {
            name: _dependency(hints[name], has_default=param.default is not inspect.Parameter.empty)
            for name, param in inspect.signature(factory).parameters.items()
            if name in hints and name != "return"
        }

    @property
    def meta(self) -> ProviderMeta:
        return self._meta

    async def instantiate(self, ctx: "ResolveCtx") -> Any:
        kwargs = {}
        for name, dep_info in self._dependencies.items():
            value = await ctx.resolve(dep_info)
            if value is None and dep_info["has_default"]:
                continue
            kwargs[name] = value
        result = self._factory(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result


class ValueProvider:
    """Provider for a pre-built instance."""

    __slots__ = ("_meta", "_value")

    def __init__(self, value: Any, token: str, name: Optional[str] = None):
        self._value = value
        self._meta = ProviderMeta(name=name or token, token=token, scope="singleton")

    @property
    def meta(self) -> ProviderMeta:
        return self._meta

    async def instantiate(self, ctx: "ResolveCtx") -> Any:
        return self._value
