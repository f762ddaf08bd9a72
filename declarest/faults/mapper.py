"""
ErrorMapper - turns any exception raised in the request pipeline into a
response.

Maps:
- Fault subclasses -> their declared status
- Exception types registered with ``register`` -> the registered fault
- Everything else -> 500 with a generic message

Stack traces are never serialized; only public fault messages reach the
client unless ``expose_errors`` is enabled.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TYPE_CHECKING

from .core import Fault, Severity
from .domains import HTTPFault, InternalServerErrorFault

if TYPE_CHECKING:
    from declarest.response import Response


logger = logging.getLogger("declarest.faults")

FaultFactory = Callable[[BaseException], Fault]


@dataclass(frozen=True, slots=True)
class ErrorPayload:
    """Status, code and client-facing message for one failed request."""
    status: int
    code: str
    message: str
    headers: Tuple[Tuple[str, str], ...] = ()


@dataclass(frozen=True, slots=True)
class ExceptionMapping:
    """Maps an exception type to a Fault factory."""
    exception_type: Type[BaseException]
    fault_factory: FaultFactory


class ErrorMapper:
    """
    Map pipeline failures to HTTP responses.

    Usage:
        ```python
        mapper = ErrorMapper()
        mapper.register(KeyError, lambda e: NotFoundFault(str(e)))

        try:
            ...
        except Exception as exc:
            mapper.write(exc, response)
        ```
    """

    def __init__(self, error_format: str = "text", expose_errors: bool = False):
        if error_format not in ("text", "json"):
            raise ValueError(f"Unknown error format: {error_format!r}")
        self.error_format = error_format
        self.expose_errors = expose_errors
        self.mappings: List[ExceptionMapping] = []
        self._listeners: List[Callable[[BaseException, ErrorPayload], None]] = []

    def register(
        self,
        exception_type: Type[BaseException],
        fault: Type[Fault] | FaultFactory,
    ) -> None:
        """
        Map an exception type to a fault.

        Args:
            exception_type: Exception class to translate (subclasses match too)
            fault: Fault class (instantiated with ``str(exc)``) or factory
        """
        if isinstance(fault, type) and issubclass(fault, Fault):
            fault_cls = fault
            factory: FaultFactory = lambda exc: fault_cls(str(exc) or None)
        else:
            factory = fault
        # Most recent registration wins for overlapping types
        self.mappings.insert(0, ExceptionMapping(exception_type, factory))

    def on_error(self, listener: Callable[[BaseException, ErrorPayload], None]) -> None:
        """Register a listener called once per mapped failure."""
        self._listeners.append(listener)

    def to_fault(self, exc: BaseException) -> Fault:
        """Convert an arbitrary exception into a Fault."""
        if isinstance(exc, Fault):
            return exc
        for mapping in self.mappings:
            if isinstance(exc, mapping.exception_type):
                return mapping.fault_factory(exc)
        return InternalServerErrorFault(cause=type(exc).__name__)

    def map(self, exc: BaseException) -> ErrorPayload:
        """Compute the status/code/message for ``exc``."""
        fault = self.to_fault(exc)

        if fault.public or self.expose_errors:
            message = fault.message
            if self.expose_errors and fault is not exc and not isinstance(exc, Fault):
                message = str(exc) or fault.message
        else:
            message = InternalServerErrorFault.message

        headers = tuple(fault.response_headers().items()) if isinstance(fault, HTTPFault) else ()
        payload = ErrorPayload(status=fault.status, code=fault.code, message=message, headers=headers)
        self._log(exc, fault, payload)

        for listener in self._listeners:
            listener(exc, payload)

        return payload

    def write(self, exc: BaseException, response: "Response") -> ErrorPayload:
        """Map ``exc`` and write the result into the response sink."""
        payload = self.map(exc)

        response.reset()
        response.status = payload.status
        for name, value in payload.headers:
            response.set_header(name, value)
        if self.error_format == "json":
            response.set_header("content-type", "application/json")
            response.write(json.dumps({
                "error": {"code": payload.code, "message": payload.message},
            }))
        else:
            response.set_header("content-type", "text/plain; charset=utf-8")
            response.write(payload.message)
        response.end()
        return payload

    @staticmethod
    def _log(exc: BaseException, fault: Fault, payload: ErrorPayload) -> None:
        if payload.status >= 500:
            logger.error(
                f"Request failed with {payload.status} {payload.code}: {exc!r}",
                exc_info=(type(exc), exc, exc.__traceback__),
            )
        elif fault.severity == Severity.WARN:
            logger.warning(f"Request rejected with {payload.status} {payload.code}: {fault.message}")
        else:
            logger.info(f"Request rejected with {payload.status} {payload.code}: {fault.message}")
