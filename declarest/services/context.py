"""
ServiceContext - per-request bundle handed through the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, TYPE_CHECKING

from declarest.request import Request
from declarest.response import Response

if TYPE_CHECKING:
    from .factory import ServiceFactory


class DispatchStage(str, Enum):
    """Pipeline stage of one request; FAILED is reachable from any other."""
    IDLE = "idle"
    PREPROCESSING = "preprocessing"
    AUTHORIZING = "authorizing"
    BINDING = "binding"
    INVOKING = "invoking"
    SERIALIZING = "serializing"
    RESPONDED = "responded"
    FAILED = "failed"


@dataclass
class ServiceContext:
    """
    Request-scoped state shared by the pipeline stages.

    Attributes:
        request: Inbound request
        response: Response sink
        factory: Service factory used for instances and INJECT lookups
        language: Language chosen by negotiation (None when unrestricted)
        accept: Media type chosen by negotiation (None when unrestricted)
        stage: Current pipeline stage
        error: Exception that moved the pipeline to FAILED
    """
    request: Request
    response: Response
    factory: Optional["ServiceFactory"] = None
    language: Optional[str] = None
    accept: Optional[str] = None
    stage: DispatchStage = DispatchStage.IDLE
    error: Optional[BaseException] = None
    extras: Dict[str, Any] = field(default_factory=dict)
