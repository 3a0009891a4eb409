"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) to a handler. Patterns are compiled to regexes:

    "/"                 ^/$
    "/packages/:id"     ^/packages/(?P<id>[^/]+)$
    "/*path"            ^/(?P<path>.*)$          wildcard, must be last segment

Routes are tried in registration order and the first match wins, so a
catch-all wildcard goes last.

When a path matches some route but not for the request's method, the
router answers 405 with an Allow header. When nothing matches, 404.
=============================================================================
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Pattern, Tuple

from .request import HTTPRequest
from .response import HTTPResponse, error, method_not_allowed
from .status_codes import HTTPStatus


Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """A registered route: pattern, optional method filter, handler."""
    path: str
    method: Optional[str]
    handler: Handler
    name: Optional[str] = None
    _pattern: Optional[Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)


@dataclass
class RouteMatch:
    route: Route
    params: Dict[str, str]


class Router:
    """
    Usage:
        router = Router()

        @router.get("/")
        def update_check(request):
            ...

        @router.get("/*path")
        def download(request):
            name = request.path_params["path"]
            ...

        response = router.handle(request)
    """

    def __init__(self):
        self._routes: List[Route] = []

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Route:
        pattern, param_names = self._compile_pattern(path)
        route = Route(
            path=path,
            method=method.upper() if method else None,
            handler=handler,
            name=name,
            _pattern=pattern,
            _param_names=param_names,
        )
        self._routes.append(route)
        return route

    @staticmethod
    def _compile_pattern(path: str) -> Tuple[Pattern, List[str]]:
        param_names: List[str] = []
        parts = ["^"]

        for segment in path.split("/"):
            if not segment:
                continue
            parts.append("/")
            if segment.startswith(":"):
                name = segment[1:]
                param_names.append(name)
                parts.append(f"(?P<{name}>[^/]+)")
            elif segment.startswith("*"):
                name = segment[1:] or "wildcard"
                param_names.append(name)
                parts.append(f"(?P<{name}>.*)")
                break
            else:
                parts.append(re.escape(segment))

        if len(parts) == 1:
            parts.append("/")
        parts.append("$")
        return re.compile("".join(parts)), param_names

    @staticmethod
    def _normalize(path: str) -> str:
        stripped = path.strip("/")
        return "/" + stripped if stripped else "/"

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """First route whose method and pattern both match, or None."""
        path = self._normalize(path)
        method = method.upper()

        for route in self._routes:
            if route.method and route.method != method:
                continue
            found = route._pattern.match(path)
            if found:
                return RouteMatch(route=route, params=found.groupdict())
        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        """Methods registered for any route matching `path`, for the Allow header."""
        path = self._normalize(path)
        return sorted({
            route.method
            for route in self._routes
            if route.method and route._pattern.match(path)
        })

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        found = self.match(request.method, request.path)
        if found:
            request.path_params = found.params
            return found.route.handler(request)

        allowed = self.get_allowed_methods(request.path)
        if allowed:
            return method_not_allowed(allowed)
        return error(HTTPStatus.NOT_FOUND, f"No route matches {request.path}")

    def route(self, path: str, method: Optional[str] = None,
              name: Optional[str] = None) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method, name)
            return handler
        return decorator

    def get(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, "GET", name)

    def routes(self) -> List[Route]:
        return list(self._routes)

    def describe(self) -> str:
        """One line per route, e.g. "GET      /*path", for startup logs."""
        return "\n".join(f"  {route.method or 'ANY':8} {route.path}" for route in self._routes)
