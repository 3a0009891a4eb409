"""
Middleware: cross-cutting request/response processing around the router.

    Middleware           base class, __call__(request, next) -> response
    MiddlewarePipeline   composes middleware around a final handler
    LoggingMiddleware    access log on the "crxserver.access" logger
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import ACCESS_LOGGER_NAME, LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "LoggingMiddleware",
    "RequestLog",
    "ACCESS_LOGGER_NAME",
]
