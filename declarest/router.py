"""
PathRouter - path-template router bundled as the default host router.

Performance:
- Static routes use O(1) dict lookup.
- Parameterized routes use compiled regex, tried in registration order.

Templates accept ``{name}`` and ``:name`` segments. Registering the same
(verb, path) twice replaces the earlier handler.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Pattern, Tuple

from .faults import MethodNotAllowedFault, NotFoundFault


Handler = Callable[..., Awaitable[None]]

_PARAM_RE = re.compile(r"^(?:\{(?P<brace>[A-Za-z_][A-Za-z0-9_]*)\}|:(?P<colon>[A-Za-z_][A-Za-z0-9_]*))$")


@dataclass
class RouteMatch:
    """Result of a successful route match."""
    handler: Handler
    params: Dict[str, str]
    template: str


@dataclass
class _Route:
    verb: str
    template: str
    handler: Handler
    pattern: Optional[Pattern[str]]


def _normalize(path: str) -> str:
    return "/" + "/".join(piece for piece in path.split("/") if piece)


def compile_template(template: str) -> Optional[Pattern[str]]:
    """
    Compile a path template to a regex; None for static paths.

    Example:
        >>> compile_template("/users/{id}").match("/users/7").groupdict()
        {'id': '7'}
    """
    pieces = [piece for piece in template.split("/") if piece]
    has_params = False
    regex = []
    for piece in pieces:
        match = _PARAM_RE.match(piece)
        if match:
            has_params = True
            name = match.group("brace") or match.group("colon")
            regex.append(f"(?P<{name}>[^/]+)")
        else:
            regex.append(re.escape(piece))
    if not has_params:
        return None
    return re.compile("^/" + "/".join(regex) + "$")


class PathRouter:
    """
    Minimal host router.

    Usage:
        ```python
        router = PathRouter()
        router.add_route("GET", "/users/{id}", handler)
        match = router.match("GET", "/users/7")   # match.params == {"id": "7"}
        ```
    """

    def __init__(self):
        self._routes: Dict[Tuple[str, str], _Route] = {}
        self._static: Dict[str, Dict[str, _Route]] = {}

    def add_route(self, verb: str, path: str, handler: Handler) -> None:
        verb = verb.upper()
        template = _normalize(path)
        route = _Route(verb, template, handler, compile_template(template))
        self._routes[(verb, template)] = route
        if route.pattern is None:
            self._static.setdefault(template, {})[verb] = route

    def clear(self) -> None:
        self._routes.clear()
        self._static.clear()

    def routes(self) -> List[Tuple[str, str]]:
        """Registered (verb, path) pairs in registration order."""
        return list(self._routes.keys())

    def match(self, verb: str, path: str) -> RouteMatch:
        """
        Find the handler for ``verb`` and ``path``.

        HEAD falls back to GET handlers.

        Raises:
            NotFoundFault: No template matches the path
            MethodNotAllowedFault: A template matches but not for this verb
        """
        verb = verb.upper()
        path = _normalize(path)
        allowed: List[str] = []

        static = self._static.get(path)
        if static:
            route = static.get(verb) or (static.get("GET") if verb == "HEAD" else None)
            if route is not None:
                return RouteMatch(route.handler, {}, route.template)
            allowed.extend(static)

        fallback: Optional[RouteMatch] = None
        for route in self._routes.values():
            if route.pattern is None:
                continue
            found = route.pattern.match(path)
            if found is None:
                continue
            if route.verb == verb:
                return RouteMatch(route.handler, found.groupdict(), route.template)
            if verb == "HEAD" and route.verb == "GET" and fallback is None:
                fallback = RouteMatch(route.handler, found.groupdict(), route.template)
            allowed.append(route.verb)

        if fallback is not None:
            return fallback
        if allowed:
            verbs = set(allowed)
            if "GET" in verbs:
                verbs.add("HEAD")
            raise MethodNotAllowedFault(allowed=sorted(verbs))
        raise NotFoundFault(path=path)

    def allowed_methods(self, path: str) -> List[str]:
        """Verbs registered for a path template or concrete path."""
        normalized = _normalize(path)
        verbs = [verb for (verb, template) in self._routes if template == normalized]
        if verbs:
            return verbs
        return [
            route.verb for route in self._routes.values()
            if route.pattern is not None and route.pattern.match(normalized)
        ]
