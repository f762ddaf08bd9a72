"""
Fault domains - concrete fault classes.

HTTP faults carry the status code the error mapper answers with. Registry
faults are raised at declaration/build time and never reach a client.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from .core import Fault, FaultDomain, Severity


# ============================================================================
# HTTP Faults
# ============================================================================

class HTTPFault(Fault):
    """Base class for faults that map to a fixed HTTP status."""

    domain = FaultDomain.FLOW
    public = True

    def __init__(self, message: Optional[str] = None, **metadata: Any):
        super().__init__(
            code=self.code,
            message=message or self.message,
            metadata=metadata,
        )

    def response_headers(self) -> Dict[str, str]:
        """Extra headers the error response carries."""
        return {}


class BadRequestFault(HTTPFault):
    """Invalid input from the client (400)."""
    code = "BAD_REQUEST"
    message = "Bad Request"
    status = 400
    severity = Severity.INFO


class UnauthorizedFault(HTTPFault):
    """The request carries no authenticated principal (401)."""
    code = "UNAUTHORIZED"
    message = "Unauthorized"
    status = 401
    severity = Severity.INFO
    domain = FaultDomain.SECURITY


class ForbiddenFault(HTTPFault):
    """The principal lacks every role the service requires (403)."""
    code = "FORBIDDEN"
    message = "Forbidden"
    status = 403
    severity = Severity.INFO
    domain = FaultDomain.SECURITY


class NotFoundFault(HTTPFault):
    """No route matches the request path (404)."""
    code = "NOT_FOUND"
    message = "Not Found"
    status = 404
    severity = Severity.INFO
    domain = FaultDomain.ROUTING


class MethodNotAllowedFault(HTTPFault):
    """The path exists but not for this verb (405)."""
    code = "METHOD_NOT_ALLOWED"
    message = "Method Not Allowed"
    status = 405
    severity = Severity.INFO
    domain = FaultDomain.ROUTING

    def response_headers(self) -> Dict[str, str]:
        allowed = self.metadata.get("allowed")
        return {"allow": ", ".join(allowed)} if allowed else {}


class NotAcceptableFault(HTTPFault):
    """Language negotiation failed (406)."""
    code = "NOT_ACCEPTABLE"
    message = "Not Acceptable"
    status = 406
    severity = Severity.INFO


class UnsupportedMediaTypeFault(HTTPFault):
    """Request Content-Type is not accepted by the service (415)."""
    code = "UNSUPPORTED_MEDIA_TYPE"
    message = "Unsupported Media Type"
    status = 415
    severity = Severity.INFO


class PayloadTooLargeFault(HTTPFault):
    """Request body or upload exceeds configured limits (413)."""
    code = "PAYLOAD_TOO_LARGE"
    message = "Payload Too Large"
    status = 413
    severity = Severity.WARN


class InternalServerErrorFault(HTTPFault):
    """Uncaught handler failure or binder inconsistency (500)."""
    code = "INTERNAL_SERVER_ERROR"
    message = "Internal Server Error"
    status = 500
    severity = Severity.ERROR
    domain = FaultDomain.SYSTEM
    public = False


# ============================================================================
# Registry Faults
# ============================================================================

class RegistryFault(Fault):
    """Base class for metadata registry faults."""

    domain = FaultDomain.REGISTRY
    severity = Severity.FATAL

    def __init__(self, message: str, **metadata: Any):
        super().__init__(code=self.code, message=message, metadata=metadata)


class DecoratorDeclarationError(RegistryFault):
    """A decorator was applied to something it cannot describe."""
    code = "INVALID_DECORATOR"

    def __init__(self, decorator: str, **metadata: Any):
        super().__init__(f"Invalid @{decorator} Decorator declaration.", decorator=decorator, **metadata)
        self.decorator = decorator


class InvalidMetadataError(RegistryFault):
    """Registered metadata violates a model invariant."""
    code = "INVALID_METADATA"
