"""
declarest - declarative REST services on ASGI.

Annotate plain classes with routing, parameter binding, security, content
negotiation and preprocessing metadata; RestServer compiles that metadata
into routes and runs every request through a fixed pipeline:

    preprocess -> authorize/negotiate -> bind -> invoke -> serialize

Example:
    ```python
    from typing import Annotated
    from declarest import RestServer, Path, GET, PathParam

    @Path("hello")
    class HelloService:
        @GET
        @Path("{name}")
        def say_hello(self, name: Annotated[str, PathParam()]) -> str:
            return f"Hello {name}"

    server = RestServer()
    server.build_services(HelloService)
    ```
"""

__version__ = "1.0.0"

from .faults import (
    Fault,
    FaultDomain,
    Severity,
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
    DecoratorDeclarationError,
    InvalidMetadataError,
    ErrorMapper,
)
from .request import Request
from .response import Response
from ._uploads import UploadFile, FormData
from .returns import (
    ReturnValue,
    NewResource,
    RequestAccepted,
    MovedPermanently,
    MovedTemporarily,
    DownloadResource,
    DownloadBinaryData,
    NoResponse,
)
from .di import Container, Inject, inject
from .services import (
    HttpVerb,
    ParamKind,
    ParameterDescriptor,
    MetadataRegistry,
    default_registry,
    Path,
    GET,
    POST,
    PUT,
    DELETE,
    HEAD,
    OPTIONS,
    PATCH,
    RawResponse,
    Security,
    AcceptLanguage,
    Accept,
    Preprocessor,
    context_property,
    PathParam,
    QueryParam,
    HeaderParam,
    CookieParam,
    FormParam,
    Param,
    FileParam,
    FilesParam,
    Body,
    ContextRequest,
    ContextResponse,
    ContextLanguage,
    ContextAccept,
    Context,
    ServiceContext,
    ServiceFactory,
    DefaultServiceFactory,
    ContainerServiceFactory,
)
from .router import PathRouter
from .config import ConfigError, ConfigLoader, ServerConfig, configure_logging
from .server import RestServer

__all__ = [
    "__version__",

    # Server
    "RestServer",
    "PathRouter",
    "ServerConfig",
    "ConfigLoader",
    "ConfigError",
    "configure_logging",

    # Request / response
    "Request",
    "Response",
    "UploadFile",
    "FormData",
    "ReturnValue",
    "NewResource",
    "RequestAccepted",
    "MovedPermanently",
    "MovedTemporarily",
    "DownloadResource",
    "DownloadBinaryData",
    "NoResponse",

    # Services
    "HttpVerb",
    "ParamKind",
    "ParameterDescriptor",
    "MetadataRegistry",
    "default_registry",
    "Path",
    "GET",
    "POST",
    "PUT",
    "DELETE",
    "HEAD",
    "OPTIONS",
    "PATCH",
    "RawResponse",
    "Security",
    "AcceptLanguage",
    "Accept",
    "Preprocessor",
    "context_property",
    "PathParam",
    "QueryParam",
    "HeaderParam",
    "CookieParam",
    "FormParam",
    "Param",
    "FileParam",
    "FilesParam",
    "Body",
    "ContextRequest",
    "ContextResponse",
    "ContextLanguage",
    "ContextAccept",
    "Context",
    "ServiceContext",
    "ServiceFactory",
    "DefaultServiceFactory",
    "ContainerServiceFactory",

    # DI
    "Container",
    "Inject",
    "inject",

    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
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
    "DecoratorDeclarationError",
    "InvalidMetadataError",
    "ErrorMapper",
]
