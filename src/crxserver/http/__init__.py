"""
=============================================================================
HTTP/1.1 PROTOCOL LAYER
=============================================================================

    RequestParser   raw bytes → HTTPRequest
    HTTPResponse    status + headers + buffered or streamed body → bytes
    Router          (method, path) → handler

    Request                           Response
    ───────                           ────────
    GET /?x=... HTTP/1.1\\r\\n          HTTP/1.1 200 OK\\r\\n
    Host: updates.example.com\\r\\n     Content-Type: text/xml; charset=utf-8\\r\\n
    \\r\\n                              Content-Length: 262\\r\\n
                                      \\r\\n
                                      <?xml version='1.0' ...
=============================================================================
"""

from .request import HTTPParseError, HTTPRequest, RequestParser, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    empty,
    error,
    format_http_date,
    internal_error,
    method_not_allowed,
    not_modified,
    ok,
)
from .router import Route, RouteMatch, Router
from .status_codes import HTTPStatus

__all__ = [
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",
    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "empty",
    "error",
    "not_modified",
    "method_not_allowed",
    "internal_error",
    "format_http_date",
    "Router",
    "Route",
    "RouteMatch",
    "HTTPStatus",
]
