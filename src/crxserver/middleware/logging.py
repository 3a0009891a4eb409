"""
=============================================================================
ACCESS LOGGING
=============================================================================

One line per request on the "crxserver.access" logger, in either of two
formats.

text (Apache-like):

    10.0.0.5 - - [19/Oct/2026:12:00:00 +0000] "GET /?x=id%3Dabc" 200 262 1.84ms

json:

    {"request_id": "3f2a9c1d", "method": "GET", "path": "/", ...}

Update checks always answer 200, so whether a package was found shows up in
the byte count: an empty body means "no update".
=============================================================================
"""

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Iterable, Optional
from urllib.parse import urlencode

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from .base import Middleware, NextHandler


ACCESS_LOGGER_NAME = "crxserver.access"

logger = logging.getLogger(ACCESS_LOGGER_NAME)


@dataclass
class RequestLog:
    """One access log entry."""
    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        target = f"{self.path}?{self.query}" if self.query else self.path
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {target}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Times each request and writes an access log entry.

    Add it first so it also sees responses produced by later middleware.

        pipeline.add(LoggingMiddleware(log_format="json"))

    Args:
        log_format: "text" or "json".
        include_request_id: Echo the generated id as X-Request-ID.
        log_level: Level for the access entries.
        skip_paths: Paths that are served but not logged.
        log: Logger to write to. Defaults to "crxserver.access".
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or ())
        self.log = log or logger

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = uuid.uuid4().hex[:8]
        started = time.perf_counter()

        try:
            response = next(request)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            self.log.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({elapsed_ms:.2f}ms)"
            )
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000

        if self.include_request_id:
            response.headers["X-Request-ID"] = request_id

        if request.path in self.skip_paths:
            return response

        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query=urlencode(request.query_params, doseq=True),
            client_ip=request.client_address[0] or "-",
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=_response_length(response),
            duration_ms=elapsed_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            self.log.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            self.log.log(self.log_level, entry.to_text())

        return response


def _response_length(response: HTTPResponse) -> int:
    declared = response.headers.get("Content-Length")
    if declared is not None:
        try:
            return int(declared)
        except ValueError:
            pass
    return len(response.body)
