"""
=============================================================================
MIDDLEWARE PIPELINE
=============================================================================

Middleware wraps the router like layers of an onion. The first one added
is the outermost:

    pipeline.add(LoggingMiddleware())
    handler = pipeline.wrap(router.handle)

        ┌───────────────────────────────────────────┐
        │  LoggingMiddleware                        │
        │  ┌─────────────────────────────────────┐  │
        │  │          router.handle              │  │
        │  └─────────────────────────────────────┘  │
        └───────────────────────────────────────────┘

Requests flow inward, responses flow back out in reverse order.
=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Iterator, List

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Base class for middleware.

    Subclasses implement __call__(request, next) and either return
    next(request), possibly after adjusting it, or short-circuit with their
    own response.
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        ...

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """Ordered list of middleware that can wrap a final handler."""

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the call chain MW1 → MW2 → ... → handler.

        Wrapping happens in reverse so the first-added middleware ends up
        outermost.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._bind(middleware, current)
        return current

    @staticmethod
    def _bind(middleware: Middleware, next_handler: NextHandler) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._middleware)
