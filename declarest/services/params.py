"""
Parameter markers

Service method parameters declare where their value comes from with
``typing.Annotated`` markers. Unmarked parameters are bound by annotation:
``Request``, ``Response`` and ``ServiceContext`` receive the pipeline
objects, ``UploadFile`` the upload of the same name, anything else the
request body.

Example:
    ```python
    @GET
    @Path("{id}")
    def get(
        self,
        id: Annotated[int, PathParam()],
        fields: Annotated[Optional[str], QueryParam("fields")] = None,
        token: Annotated[str, HeaderParam("x-token")] = "",
    ):
        ...
    ```
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, List, Optional, get_type_hints

from declarest._uploads import UploadFile
from declarest.di.decorators import Inject, split_annotation
from declarest.faults import InvalidMetadataError
from declarest.request import Request
from declarest.response import Response

from .context import ServiceContext
from .metadata import NAMED_KINDS, ParamKind, ParameterDescriptor


logger = logging.getLogger("declarest.params")


class ParamMarker:
    """Base marker; ``name`` defaults to the parameter's own name."""

    kind: ParamKind

    def __init__(self, name: Optional[str] = None):
        self.name = name

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})" if self.name else f"{type(self).__name__}()"


class PathParam(ParamMarker):
    kind = ParamKind.PATH


class QueryParam(ParamMarker):
    kind = ParamKind.QUERY


class HeaderParam(ParamMarker):
    kind = ParamKind.HEADER


class CookieParam(ParamMarker):
    kind = ParamKind.COOKIE


class FormParam(ParamMarker):
    kind = ParamKind.FORM


class Param(ParamMarker):
    """Query parameter, falling back to a form field of the same name."""
    kind = ParamKind.PARAM


class FileParam(ParamMarker):
    kind = ParamKind.FILE


class FilesParam(ParamMarker):
    kind = ParamKind.FILES


class _Unnamed(ParamMarker):
    def __init__(self):
        super().__init__(None)


class Body(_Unnamed):
    kind = ParamKind.BODY


class ContextRequest(_Unnamed):
    kind = ParamKind.REQUEST


class ContextResponse(_Unnamed):
    kind = ParamKind.RESPONSE


class ContextLanguage(_Unnamed):
    kind = ParamKind.LANGUAGE


class ContextAccept(_Unnamed):
    kind = ParamKind.ACCEPT


class Context(_Unnamed):
    kind = ParamKind.CONTEXT


_BY_ANNOTATION = (
    (ServiceContext, ParamKind.CONTEXT),
    (Request, ParamKind.REQUEST),
    (Response, ParamKind.RESPONSE),
)


def _hints(func: Callable) -> dict:
    try:
        return get_type_hints(func, include_extras=True)
    except (NameError, TypeError) as exc:
        logger.debug(f"Could not resolve annotations of {func.__qualname__}: {exc}")
        return {}


def describe_parameter(index: int, param: inspect.Parameter, annotation: Any) -> ParameterDescriptor:
    """Build the descriptor for one formal parameter."""
    base, markers = split_annotation(annotation)
    if base is inspect.Parameter.empty:
        base = Any

    for marker in markers:
        if isinstance(marker, ParamMarker):
            name = marker.name or (param.name if marker.kind in NAMED_KINDS else None)
            return ParameterDescriptor(index, marker.kind, name, base, default=param.default)
        if isinstance(marker, Inject):
            return ParameterDescriptor(
                index, ParamKind.INJECT, None, base,
                token=marker.token if marker.token is not None else base,
                tag=marker.tag,
                optional=marker.optional,
                default=param.default,
            )

    if isinstance(base, type):
        for cls, kind in _BY_ANNOTATION:
            if issubclass(base, cls):
                return ParameterDescriptor(index, kind, None, base)
        if issubclass(base, UploadFile):
            return ParameterDescriptor(index, ParamKind.FILE, param.name, base, default=param.default)

    return ParameterDescriptor(index, ParamKind.BODY, None, base, default=param.default)


def describe_parameters(func: Callable, *, bound: bool = True) -> List[ParameterDescriptor]:
    """
    Describe every formal parameter of ``func``.

    Args:
        func: Function to inspect
        bound: Skip the first parameter (``self``) of a method

    Raises:
        InvalidMetadataError: For ``*args`` / ``**kwargs`` parameters
    """
    params = list(inspect.signature(func).parameters.values())
    if bound and params:
        params = params[1:]

    hints = _hints(func)
    descriptors = []
    for index, param in enumerate(params):
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            raise InvalidMetadataError(
                f"{func.__qualname__}: variadic parameter '{param.name}' cannot be bound",
                method=func.__qualname__,
            )
        if param.kind is inspect.Parameter.KEYWORD_ONLY:
            raise InvalidMetadataError(
                f"{func.__qualname__}: keyword-only parameter '{param.name}' cannot be bound",
                method=func.__qualname__,
            )
        annotation = param.annotation
        if isinstance(annotation, str):
            annotation = hints.get(param.name, annotation)
        descriptors.append(describe_parameter(index, param, annotation))
    return descriptors
