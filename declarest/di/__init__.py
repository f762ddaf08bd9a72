"""
Dependency injection for service classes.

Core exports:
- Container: providers, scopes and async resolution
- Inject / inject: Annotated markers for constructor, property and
  parameter injection
"""

from .core import Container, ResolveCtx, autowirable
from .decorators import Inject, inject
from .errors import DIError, DependencyCycleError, ProviderNotFoundError
from .providers import ClassProvider, FactoryProvider, ValueProvider

__all__ = [
    "Container",
    "ResolveCtx",
    "autowirable",
    "Inject",
    "inject",
    "DIError",
    "DependencyCycleError",
    "ProviderNotFoundError",
    "ClassProvider",
    "FactoryProvider",
    "ValueProvider",
]
