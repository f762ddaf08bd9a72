"""
Services - declarative service metadata and the request pipeline.

Core exports:
- Decorators: Path, GET ... PATCH, Security, AcceptLanguage, Accept,
  Preprocessor, RawResponse, context_property
- Parameter markers: PathParam, QueryParam, HeaderParam, CookieParam,
  FormParam, Param, FileParam, FilesParam, Body, ContextRequest,
  ContextResponse, ContextLanguage, ContextAccept, Context
- MetadataRegistry: metadata store and inheritance resolution
- RouteBuilder / ServiceDispatcher: route compilation and execution
"""

from .metadata import (
    HttpVerb,
    ParamKind,
    ParameterDescriptor,
    ServiceProperty,
    ServiceClass,
    ServiceMethod,
    ResolvedMethod,
    ResolvedService,
)
from .registry import MetadataRegistry, default_registry
from .decorators import (
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
    ContextProperty,
    context_property,
)
from .params import (
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
)
from .context import DispatchStage, ServiceContext
from .binder import ParameterBinder, default_param_converter
from .preprocess import run_preprocessors
from .negotiation import (
    NegotiationGuard,
    authorize,
    negotiate_content_type,
    negotiate_language,
)
from .dispatcher import ServiceDispatcher, serialize
from .builder import RouteBuilder, RouteEntry, Router, join_paths
from .factory import ContainerServiceFactory, DefaultServiceFactory, ServiceFactory

__all__ = [
    # Metadata
    "HttpVerb",
    "ParamKind",
    "ParameterDescriptor",
    "ServiceProperty",
    "ServiceClass",
    "ServiceMethod",
    "ResolvedMethod",
    "ResolvedService",
    "MetadataRegistry",
    "default_registry",

    # Decorators
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
    "ContextProperty",
    "context_property",

    # Parameter markers
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

    # Pipeline
    "DispatchStage",
    "ServiceContext",
    "ParameterBinder",
    "default_param_converter",
    "run_preprocessors",
    "NegotiationGuard",
    "authorize",
    "negotiate_content_type",
    "negotiate_language",
    "ServiceDispatcher",
    "serialize",
    "RouteBuilder",
    "RouteEntry",
    "Router",
    "join_paths",
    "ServiceFactory",
    "DefaultServiceFactory",
    "ContainerServiceFactory",
]
