"""
Faults - Core types and fault taxonomy.

Defines:
- Fault base class (structured fault objects)
- FaultDomain (explicit fault domains)
- Severity levels
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


# ============================================================================
# Severity & Domain
# ============================================================================

class Severity(str, Enum):
    """
    Fault severity levels.

    Determines the logging level used when a fault reaches the error mapper.
    """
    INFO = "info"       # Client mistakes, expected in normal operation
    WARN = "warn"
    ERROR = "error"     # Server-side failure
    FATAL = "fatal"


class FaultDomain:
    """
    Fault domains (taxonomy).

    Identifies the functional area where a fault occurred.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.value = name
        self.description = description

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain(name='{self.name}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(self.name)


# Standard Domains
FaultDomain.REGISTRY = FaultDomain("registry", "Metadata registry errors")
FaultDomain.DI = FaultDomain("di", "Dependency injection errors")
FaultDomain.ROUTING = FaultDomain("routing", "Route matching errors")
FaultDomain.FLOW = FaultDomain("flow", "Request pipeline errors")
FaultDomain.SECURITY = FaultDomain("security", "Security and auth")
FaultDomain.SYSTEM = FaultDomain("system", "System level faults")


# ============================================================================
# Fault - Base Class
# ============================================================================

class Fault(Exception):
    """
    Base fault class - structured, typed fault object.

    Attributes:
        code: Stable machine-readable identifier (e.g., "BAD_REQUEST")
        message: Human-readable summary
        domain: Fault domain
        severity: Fault severity
        status: HTTP status the error mapper answers with
        public: Whether the message is safe to expose to the client
        metadata: Additional context data

    Subclasses usually declare ``code``, ``message``, ``domain`` and
    ``status`` as class attributes and accept an optional message override.

    Example:
        ```python
        raise Fault(
            code="QUOTA_EXCEEDED",
            message="Monthly quota exceeded",
            domain=FaultDomain.FLOW,
            status=429,
            public=True,
        )
        ```
    """

    status: int = 500
    severity: Severity = Severity.ERROR
    public: bool = False

    def __init__(
        self,
        code: Optional[str] = None,
        message: Optional[str] = None,
        *,
        domain: Optional[FaultDomain] = None,
        severity: Optional[Severity] = None,
        status: Optional[int] = None,
        public: Optional[bool] = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        # Fallback to class attributes if not provided
        self.code = code if code is not None else getattr(self, "code", None)
        self.message = message if message is not None else getattr(self, "message", None)
        self.domain = domain if domain is not None else getattr(self, "domain", None)

        if self.code is None or self.message is None or self.domain is None:
            raise TypeError(f"{self.__class__.__name__} missing required code, message, or domain")

        super().__init__(self.message)

        if severity is not None:
            self.severity = severity
        if status is not None:
            self.status = status
        if public is not None:
            self.public = public
        self.metadata = metadata or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(code={self.code!r}, status={self.status}, "
            f"domain={self.domain.value}, public={self.public})"
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize fault to dictionary.

        Returns:
            Dictionary representation suitable for logging/serialization
        """
        return {
            "code": self.code,
            "message": self.message,
            "status": self.status,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "public": self.public,
            "metadata": self.metadata,
        }
