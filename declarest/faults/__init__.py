"""
Faults - typed error signals for the request pipeline.

Every stage of the pipeline signals failure by raising a Fault (or any
exception); the dispatcher catches it once and the ErrorMapper turns it into
a response with a fixed status code.

Core exports:
- Fault, FaultDomain, Severity: base types
- HTTP faults: BadRequestFault (400) ... InternalServerErrorFault (500)
- Registry faults: DecoratorDeclarationError, InvalidMetadataError
- ErrorMapper: failure -> response mapping
"""

from .core import Fault, FaultDomain, Severity
from .domains import (
    HTTPFault,
    BadRequestFault,
    UnauthorizedFault,
    ForbiddenFault,
    NotFoundFault,
    MethodNotAllowedFault,
    NotAcceptableFault,
    UnsupportedMediaTypeFault,
    PayloadTooLargeFault,
    InternalServerErrorFault,
    RegistryFault,
    DecoratorDeclarationError,
    InvalidMetadataError,
)
from .mapper import ErrorMapper, ErrorPayload, ExceptionMapping

__all__ = [
    # Core types
    "Fault",
    "FaultDomain",
    "Severity",

    # HTTP faults
    "HTTPFault",
    "BadRequestFault",
    "UnauthorizedFault",
    "ForbiddenFault",
    "NotFoundFault",
    "MethodNotAllowedFault",
    "NotAcceptableFault",
    "UnsupportedMediaTypeFault",
    "PayloadTooLargeFault",
    "InternalServerErrorFault",

    # Registry faults
    "RegistryFault",
    "DecoratorDeclarationError",
    "InvalidMetadataError",

    # Mapping
    "ErrorMapper",
    "ErrorPayload",
    "ExceptionMapping",
]
