"""
=============================================================================
REQUEST ROUTING
=============================================================================

The server has exactly two kinds of request:

    path == "/"          UPDATE_QUERY   → UpdateHandler
    anything else        FILE_FETCH     → PackageFileHandler

They are registered on the HTTP router as:

    GET  /          update check
    GET  /*path     package download      (registered second, catch-all)

Any other method on either path gets the router's 405 with an Allow header.
=============================================================================
"""

from enum import Enum

from .handlers.files import PackageFileHandler
from .handlers.update import UpdateHandler
from .http.router import Router


class RequestKind(Enum):
    UPDATE_QUERY = "update_query"
    FILE_FETCH = "file_fetch"


UPDATE_PATH = "/"
FILE_PATTERN = "/*path"


def classify(path: str) -> RequestKind:
    """Which of the two request kinds `path` (without query string) is."""
    if not path.strip("/"):
        return RequestKind.UPDATE_QUERY
    return RequestKind.FILE_FETCH


def register_routes(
    router: Router,
    update_handler: UpdateHandler,
    file_handler: PackageFileHandler,
) -> Router:
    """Install the update and download routes, update check first."""
    router.add_route(UPDATE_PATH, update_handler.handle, method="GET",
                     name=RequestKind.UPDATE_QUERY.value)
    router.add_route(FILE_PATTERN, file_handler.handle, method="GET",
                     name=RequestKind.FILE_FETCH.value)
    return router
