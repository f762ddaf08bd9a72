"""
Injection markers for ergonomic DI usage.
"""

from dataclasses import dataclass
from typing import Annotated, Any, Optional, Type, Union, get_args, get_origin


@dataclass
class Inject:
    """
    Injection metadata marker.

    Usage:
        ```python
        class UserService:
            audit: Annotated[AuditLog, Inject()]          # property injection

            def __init__(self, repo: Annotated[UserRepo, Inject()]):
                ...

            @GET
            def list(self, cache: Annotated[Cache, Inject(tag="fast")]):
                ...
        ```
    """

    token: Optional[Union[Type, str]] = None
    tag: Optional[str] = None
    optional: bool = False


def inject(
    token: Optional[Union[Type, str]] = None,
    *,
    tag: Optional[str] = None,
    optional: bool = False,
) -> Inject:
    """
    Create injection metadata.

    Args:
        token: Optional explicit token (inferred from type hint if None)
        tag: Optional tag for disambiguation
        optional: If True, inject None if provider not found
    """
    return Inject(token=token, tag=tag, optional=optional)


def split_annotation(annotation: Any) -> tuple:
    """
    Split ``Annotated[T, *markers]`` into ``(T, markers)``.

    Plain annotations yield an empty marker tuple.
    """
    if get_origin(annotation) is Annotated:
        args = get_args(annotation)
        return args[0], tuple(args[1:])
    return annotation, ()


def find_inject(annotation: Any) -> Optional[Inject]:
    """Return the Inject marker carried by an annotation, if any."""
    _, markers = split_annotation(annotation)
    for marker in markers:
        if isinstance(marker, Inject):
            return marker
    return None
