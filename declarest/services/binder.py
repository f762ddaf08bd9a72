"""
Parameter Binder - resolves parameter descriptors into call arguments.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, List, Optional, Sequence, Union, get_args, get_origin

from declarest.faults import BadRequestFault, Fault, InternalServerErrorFault

from .context import ServiceContext
from .factory import DefaultServiceFactory, ServiceFactory
from .metadata import CONVERTIBLE_KINDS, ParamKind, ParameterDescriptor


logger = logging.getLogger("declarest.binder")

ParamConverter = Callable[[Any, Any], Any]

_TRUE = frozenset({"true", "1", "yes", "on"})
_FALSE = frozenset({"false", "0", "no", "off", ""})


def _unwrap_optional(annotation: Any) -> Any:
    if get_origin(annotation) is Union:
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _is_list(annotation: Any) -> bool:
    annotation = _unwrap_optional(annotation)
    return annotation is list or get_origin(annotation) in (list, List)


def _coerce(value: Any, annotation: Any) -> Any:
    if annotation is bool:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValueError(f"not a boolean: {value!r}")
    if annotation in (int, float, str):
        return annotation(value)
    return value


def default_param_converter(value: Any, annotation: Any) -> Any:
    """
    Coerce a raw request value to ``int``, ``float``, ``bool`` or ``str``.

    ``Optional[T]`` unwraps to ``T``; ``list[T]`` converts element-wise.
    Other annotations pass the value through.

    Raises:
        ValueError: If the value cannot be coerced
    """
    if value is None:
        return None
    annotation = _unwrap_optional(annotation)
    if _is_list(annotation):
        args = get_args(annotation)
        item_type = args[0] if args else Any
        values = value if isinstance(value, list) else [value]
        return [_coerce(item, item_type) for item in values]
    return _coerce(value, annotation)


class ParameterBinder:
    """
    Produce the argument list for a service method.

    Named kinds that are absent from the request bind to the descriptor's
    default (None when there is none); binding never fails for a missing
    value.
    """

    def __init__(
        self,
        factory: Optional[ServiceFactory] = None,
        param_converter: Optional[ParamConverter] = None,
    ):
        self.factory = factory or DefaultServiceFactory()
        self.param_converter = param_converter or default_param_converter

    async def bind(self, descriptors: Sequence[ParameterDescriptor], context: ServiceContext) -> List[Any]:
        """
        Bind every descriptor in position order.

        Raises:
            BadRequestFault: A present value cannot be converted
            InternalServerErrorFault: Unknown parameter kind
        """
        args = []
        for descriptor in sorted(descriptors, key=lambda d: d.index):
            value = await self.bind_one(descriptor, context)
            if value is None and descriptor.has_default:
                value = descriptor.default
            args.append(value)
        return args

    async def bind_one(self, descriptor: ParameterDescriptor, context: ServiceContext) -> Any:
        kind = descriptor.kind
        request = context.request

        if kind is ParamKind.REQUEST:
            return request
        if kind is ParamKind.RESPONSE:
            return context.response
        if kind is ParamKind.CONTEXT:
            return context
        if kind is ParamKind.LANGUAGE:
            return context.language
        if kind is ParamKind.ACCEPT:
            return context.accept
        if kind is ParamKind.BODY:
            return await request.load()
        if kind is ParamKind.INJECT:
            return await self._inject(descriptor, context)
        if kind is ParamKind.FILE:
            return (await request.form()).get_file(descriptor.name)
        if kind is ParamKind.FILES:
            return (await request.form()).get_all_files(descriptor.name)

        if kind in CONVERTIBLE_KINDS:
            raw = await self._lookup(descriptor, context)
            if raw is None or raw == []:
                return None
            return self._convert(descriptor, raw)

        raise InternalServerErrorFault(
            f"Unknown parameter kind {kind!r}",
            index=descriptor.index,
        )

    async def _lookup(self, descriptor: ParameterDescriptor, context: ServiceContext) -> Any:
        request = context.request
        name = descriptor.name
        multi = _is_list(descriptor.type)
        kind = descriptor.kind

        if kind is ParamKind.PATH:
            return request.path_params.get(name)
        if kind is ParamKind.HEADER:
            return request.headers.get_all(name) if multi else request.header(name)
        if kind is ParamKind.COOKIE:
            return request.cookie(name)
        if kind is ParamKind.QUERY:
            return request.query_params.get_all(name) if multi else request.query_param(name)

        if kind is ParamKind.PARAM and name in request.query_params:
            return request.query_params.get_all(name) if multi else request.query_param(name)
        fields = (await request.form()).fields
        return fields.get_all(name) if multi else fields.get(name)

    def _convert(self, descriptor: ParameterDescriptor, raw: Any) -> Any:
        try:
            return self.param_converter(raw, descriptor.type)
        except Fault:
            raise
        except (ValueError, TypeError) as exc:
            raise BadRequestFault(
                f"Invalid value for {descriptor.kind.value} parameter '{descriptor.name}': {raw!r}",
                parameter=descriptor.name,
            ) from exc

    async def _inject(self, descriptor: ParameterDescriptor, context: ServiceContext) -> Any:
        factory = context.factory or self.factory
        token = descriptor.token if descriptor.token is not None else descriptor.type
        optional = descriptor.optional or descriptor.has_default
        result = factory.resolve(token, tag=descriptor.tag, optional=optional)
        if inspect.isawaitable(result):
            result = await result
        if result is None and descriptor.has_default:
            return descriptor.default
        return result
