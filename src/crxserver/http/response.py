"""
=============================================================================
HTTP RESPONSE
=============================================================================

A response is either fully buffered or streamed:

    buffered                               streamed
    ────────                               ────────
    HTTPResponse(body=b"<?xml ...")        HTTPResponse(stream=file_chunks(f),
                                                        headers={"Content-Length": "48211"})
        │                                      │
        ▼                                      ▼
    head + body in one sendall()           head, then one sendall() per chunk

Streamed responses must set Content-Length themselves. The head is
produced by head_bytes() in both cases, so Date/Server/Content-Length
defaults are applied identically.
=============================================================================
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from .status_codes import HTTPStatus


@dataclass
class HTTPResponse:
    """
    An HTTP response.

    Attributes:
        status: Status code.
        headers: Header name → value, names as they are sent.
        body: Buffered body. Ignored when `stream` is set.
        stream: Optional iterable of body chunks, consumed once when sent.
        version: Protocol version of the status line.
    """
    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    stream: Optional[Iterable[bytes]] = field(default=None, repr=False)
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status)} {HTTPStatus(self.status).phrase}"

    @property
    def is_streaming(self) -> bool:
        return self.stream is not None

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        self.stream = None
        return self

    def head_bytes(self, server_name: str = "CrxServer/1.0") -> bytes:
        """
        Serialize the status line and headers, including the blank line.

            HTTP/1.1 200 OK\\r\\n
            Content-Type: text/xml; charset=utf-8\\r\\n
            Content-Length: 262\\r\\n
            Date: Mon, 19 Oct 2026 12:00:00 GMT\\r\\n
            Server: CrxServer/1.0\\r\\n
            \\r\\n
        """
        headers = dict(self.headers)
        if not HTTPStatus(self.status).allows_body:
            headers.pop("Content-Length", None)
        elif "Content-Length" not in headers:
            if self.is_streaming:
                raise ValueError("streamed responses must set Content-Length")
            headers["Content-Length"] = str(len(self.body))
        headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        headers.setdefault("Server", server_name)

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")

    def iter_body(self) -> Iterator[bytes]:
        """Yield the body, chunk by chunk for streamed responses."""
        if not HTTPStatus(self.status).allows_body:
            return
        if self.is_streaming:
            yield from self.stream
        elif self.body:
            yield self.body

    def iter_bytes(self, server_name: str = "CrxServer/1.0") -> Iterator[bytes]:
        """Yield the head, then the body chunks."""
        yield self.head_bytes(server_name)
        yield from self.iter_body()

    def to_bytes(self, server_name: str = "CrxServer/1.0") -> bytes:
        """The whole response as one bytes object. Drains a stream."""
        return b"".join(self.iter_bytes(server_name))

    def close(self):
        """Release the stream's resources if it holds any (e.g. an open file)."""
        closer = getattr(self.stream, "close", None)
        if closer is not None:
            closer()


class ResponseBuilder:
    """
    Fluent construction of HTTPResponse objects.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .xml(document)
            .header("Cache-Control", "no-cache")
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""
        self._stream: Optional[Iterable[bytes]] = None

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    def xml(self, document: str, content_type: str = "text/xml; charset=utf-8") -> "ResponseBuilder":
        return self.text(document, content_type)

    def json(self, data: Any) -> "ResponseBuilder":
        self._body = json.dumps(data, ensure_ascii=False).encode("utf-8")
        self._headers["Content-Type"] = "application/json; charset=utf-8"
        return self

    def stream(self, chunks: Iterable[bytes], length: int) -> "ResponseBuilder":
        """Stream `length` bytes from `chunks` instead of a buffered body."""
        self._stream = chunks
        self._headers["Content-Length"] = str(length)
        return self

    def no_cache(self) -> "ResponseBuilder":
        self._headers["Cache-Control"] = "no-cache"
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
            stream=self._stream,
        )


_DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an RFC 7231 HTTP-date, always in GMT.

    Example: "Mon, 19 Oct 2026 12:00:00 GMT"
    """
    dt = dt.astimezone(timezone.utc) if dt.tzinfo else dt
    return (
        f"{_DAYS[dt.weekday()]}, {dt.day:02d} {_MONTHS[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE CONSTRUCTORS
# =============================================================================

def ok(body: Union[str, bytes] = b"", content_type: Optional[str] = None) -> HTTPResponse:
    """200 OK with an optional body."""
    builder = ResponseBuilder().body(body)
    if content_type:
        builder.content_type(content_type)
    return builder.build()


def empty(status: HTTPStatus = HTTPStatus.OK) -> HTTPResponse:
    """A response with no body at all, e.g. "no update available"."""
    return ResponseBuilder().status(status).build()


def not_modified(etag: str) -> HTTPResponse:
    return ResponseBuilder().status(HTTPStatus.NOT_MODIFIED).header("ETag", etag).build()


def error(status: HTTPStatus, message: Optional[str] = None) -> HTTPResponse:
    """A small JSON error document: {"error": "<phrase or message>"}."""
    return (ResponseBuilder()
        .status(status)
        .json({"error": message or status.phrase})
        .build())


def method_not_allowed(allowed_methods: List[str]) -> HTTPResponse:
    """405 with the Allow header listing what the resource accepts."""
    return (ResponseBuilder()
        .status(HTTPStatus.METHOD_NOT_ALLOWED)
        .header("Allow", ", ".join(allowed_methods))
        .json({"error": "Method Not Allowed", "allowed": allowed_methods})
        .build())


def internal_error() -> HTTPResponse:
    return error(HTTPStatus.INTERNAL_SERVER_ERROR)
