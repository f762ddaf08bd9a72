"""
Service Dispatcher - executes the per-request pipeline.

    preprocess -> authorize/negotiate -> bind -> invoke -> serialize

Any failure moves the request to FAILED and is handed to the ErrorMapper
exactly once; nothing is re-raised past the dispatcher.
"""

from __future__ import annotations

import dataclasses
import inspect
import logging
from typing import Any, Optional

from declarest.faults import ErrorMapper
from declarest.response import Response, dumps
from declarest.returns import ReturnValue

from .binder import ParameterBinder
from .context import DispatchStage, ServiceContext
from .negotiation import NegotiationGuard
from .preprocess import run_preprocessors
from .metadata import ResolvedMethod


logger = logging.getLogger("declarest.dispatcher")


class ServiceDispatcher:
    """
    Orchestrates one request through a resolved service method.

    Args:
        binder: Parameter binder
        guard: Negotiation guard
        error_mapper: Failure -> response mapping
    """

    def __init__(
        self,
        binder: Optional[ParameterBinder] = None,
        guard: Optional[NegotiationGuard] = None,
        error_mapper: Optional[ErrorMapper] = None,
    ):
        self.binder = binder or ParameterBinder()
        self.guard = guard or NegotiationGuard()
        self.error_mapper = error_mapper or ErrorMapper()

    async def dispatch(self, target: Optional[type], method: ResolvedMethod, context: ServiceContext) -> None:
        """
        Create the service instance through the context's factory and handle
        the request. Anonymous methods (``target`` None) need no instance.
        """
        instance = None
        if target is not None:
            try:
                factory = context.factory or self.binder.factory
                instance = factory.create(target, context)
                if inspect.isawaitable(instance):
                    instance = await instance
            except Exception as exc:
                self._fail(exc, context)
                return
        await self.handle(instance, method, context)

    async def handle(self, instance: Any, method: ResolvedMethod, context: ServiceContext) -> None:
        """Run the pipeline for ``method`` on ``instance``."""
        try:
            context.stage = DispatchStage.PREPROCESSING
            await run_preprocessors(method.preprocessors, context.request)

            context.stage = DispatchStage.AUTHORIZING
            self.guard.check(method, context)

            context.stage = DispatchStage.BINDING
            if instance is not None:
                self._bind_properties(instance, method, context)
            args = await self.binder.bind(method.parameters, context)

            context.stage = DispatchStage.INVOKING
            result = await self._invoke(instance, method, args)

            context.stage = DispatchStage.SERIALIZING
            if not method.raw_response:
                serialize(result, context.response)

            context.stage = DispatchStage.RESPONDED
        except Exception as exc:
            self._fail(exc, context)

    def _fail(self, exc: Exception, context: ServiceContext) -> None:
        logger.debug(f"Pipeline failed at stage {context.stage.value}: {exc!r}")
        context.stage = DispatchStage.FAILED
        context.error = exc
        self.error_mapper.write(exc, context.response)

    @staticmethod
    def _bind_properties(instance: Any, method: ResolvedMethod, context: ServiceContext) -> None:
        values = {
            "request": context.request,
            "response": context.response,
            "context": context,
            "language": context.language,
            "accept": context.accept,
        }
        for prop in method.properties:
            setattr(instance, prop.name, values[prop.kind.value])

    @staticmethod
    async def _invoke(instance: Any, method: ResolvedMethod, args: list) -> Any:
        func = method.func if instance is None else getattr(instance, method.name)
        result = func(*args)
        if inspect.isawaitable(result):
            result = await result
        return result


# ============================================================================
# Serialization
# ============================================================================

def serialize(result: Any, response: Response) -> None:
    """
    Write a service return value into the response sink.

    - Response: copied into the sink
    - ReturnValue helpers: applied to the sink
    - None: 204 with an empty body
    - bool / int / float: JSON text
    - str: text/html
    - bytes: application/octet-stream
    - dict / list / tuple / dataclass: JSON
    - iterators and async iterators: streamed
    """
    if response.finished:
        return

    if isinstance(result, Response):
        result.copy_to(response)
        return
    if isinstance(result, ReturnValue):
        result.apply(response)
        return

    if result is None:
        if response.status == 200:
            response.status = 204
    elif isinstance(result, (bool, int, float)):
        response.set_header("content-type", "application/json")
        response.write(dumps(result))
    elif isinstance(result, str):
        response.set_header("content-type", "text/html; charset=utf-8")
        response.write(result)
    elif isinstance(result, (bytes, bytearray, memoryview)):
        response.set_header("content-type", "application/octet-stream")
        response.write(bytes(result))
    elif isinstance(result, (dict, list, tuple)):
        response.set_header("content-type", "application/json")
        response.write(dumps(result))
    elif dataclasses.is_dataclass(result) and not isinstance(result, type):
        response.set_header("content-type", "application/json")
        response.write(dumps(dataclasses.asdict(result)))
    elif hasattr(result, "__aiter__") or inspect.isgenerator(result) or hasattr(result, "__next__"):
        if response.get_header("content-type") is None:
            response.set_header("content-type", "application/octet-stream")
        response.stream(result)
    else:
        response.set_header("content-type", "application/json")
        response.write(dumps(result))

    response.end()
