"""
DI errors.
"""

from typing import List, Optional

from declarest.faults import Fault, FaultDomain


class DIError(Fault):
    """Base class for dependency injection failures."""

    code = "DI_ERROR"
    message = "Dependency injection failed"
    domain = FaultDomain.DI

    def __init__(self, message: Optional[str] = None, **metadata):
        super().__init__(code=self.code, message=message or self.message, metadata=metadata)


class ProviderNotFoundError(DIError):
    """No provider registered for a token that cannot be autowired."""

    code = "PROVIDER_NOT_FOUND"

    def __init__(self, token: str, tag: Optional[str] = None):
        suffix = f" (tag={tag})" if tag else ""
        super().__init__(f"No provider registered for '{token}'{suffix}", token=token, tag=tag)
        self.token = token
        self.tag = tag


class DependencyCycleError(DIError):
    """Providers depend on each other in a cycle."""

    code = "DEPENDENCY_CYCLE"

    def __init__(self, trace: List[str]):
        super().__init__(f"Dependency cycle detected: {' -> '.join(trace)}", trace=trace)
        self.trace = trace
