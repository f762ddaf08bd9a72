"""
Negotiation Guard

Checks a request against declared security roles, accepted languages and
accepted content types. Runs after preprocessing and before binding, so a
rejected request never reaches upload parsing or the service itself.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from declarest._datastructures import (
    ParsedContentType, language_matches, media_type_matches, parse_accept,
)
from declarest.faults import (
    ForbiddenFault, NotAcceptableFault, UnauthorizedFault, UnsupportedMediaTypeFault,
)
from declarest.request import Request

from .context import ServiceContext
from .metadata import ResolvedMethod


logger = logging.getLogger("declarest.negotiation")

ANY_ROLE = "*"


def authorize(roles: Iterable[str], principal_roles: Optional[Iterable[str]]) -> bool:
    """
    Pure role check.

    Passes when ``roles`` is empty, contains ``*``, or shares a role with
    ``principal_roles``.
    """
    declared = set(roles)
    if not declared or ANY_ROLE in declared:
        return True
    return bool(declared.intersection(principal_roles or ()))


def negotiate_language(accepted: Sequence[str], request: Request) -> Optional[str]:
    """
    Pick the response language.

    Returns:
        None when ``accepted`` is empty; the first accepted tag when the
        request sends no Accept-Language; otherwise the accepted tag that
        best matches the header.

    Raises:
        NotAcceptableFault: If nothing in the header matches
    """
    if not accepted:
        return None

    header = request.header("accept-language")
    if not header:
        return accepted[0]

    for requested in parse_accept(header):
        for offered in accepted:
            if language_matches(requested.value, offered):
                return offered

    raise NotAcceptableFault(
        f"Accept-Language mismatch: expected one of {', '.join(accepted)}",
        accepted=list(accepted),
    )


def negotiate_content_type(accepted: Sequence[str], request: Request) -> Optional[str]:
    """
    Check the request Content-Type against the accepted media types.

    Returns:
        None when ``accepted`` is empty or the request has no Content-Type;
        otherwise the accepted entry that matched.

    Raises:
        UnsupportedMediaTypeFault: If no accepted entry matches
    """
    if not accepted:
        return None

    parsed = ParsedContentType.parse(request.content_type())
    if parsed is None:
        return None

    for pattern in accepted:
        if media_type_matches(pattern, parsed.media_type):
            return pattern

    raise UnsupportedMediaTypeFault(
        f"Content-Type {parsed.media_type} is not accepted",
        accepted=list(accepted),
    )


class NegotiationGuard:
    """Runs role, language and content-type checks for one method."""

    def check_roles(self, roles: Sequence[str], request: Request) -> None:
        """
        Raises:
            UnauthorizedFault: Roles are declared but no principal is attached
            ForbiddenFault: The principal holds none of the declared roles
        """
        if not roles:
            return
        principal_roles = request.principal_roles()
        if principal_roles is None:
            raise UnauthorizedFault()
        if not authorize(roles, principal_roles):
            logger.debug(f"Roles {principal_roles} do not satisfy {list(roles)} for {request!r}")
            raise ForbiddenFault()

    def check(self, method: ResolvedMethod, context: ServiceContext) -> None:
        """Run every check and store negotiated values on the context."""
        self.check_roles(method.roles, context.request)
        context.language = negotiate_language(method.languages, context.request)
        context.accept = negotiate_content_type(method.accepts, context.request)
