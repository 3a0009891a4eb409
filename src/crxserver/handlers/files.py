"""
=============================================================================
PACKAGE DOWNLOADS
=============================================================================

Serves the raw bytes of files under the package directory:

    GET /abcdefghijklmnop.crx
        │
        ├── resolve files/abcdefghijklmnop.crx (following symlinks)
        ├── outside files/?          → 403, empty body
        ├── missing or a directory?  → 404, empty body
        ├── If-None-Match == ETag?   → 304
        └── 200 application/octet-stream, attachment, streamed in 64 KiB chunks

The file is opened before the response is built so that open errors map
to a status. The open handle travels with the response and is closed by the
server once the body has been written.
=============================================================================
"""

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, empty, format_http_date, not_modified
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


PACKAGE_CONTENT_TYPE = "application/octet-stream"
DEFAULT_CHUNK_SIZE = 64 * 1024

_SAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]")


class FileChunks:
    """Iterable over an open binary file, `chunk_size` bytes at a time."""

    def __init__(self, f: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self._file = f
        self.chunk_size = chunk_size

    def __iter__(self) -> Iterator[bytes]:
        try:
            while True:
                chunk = self._file.read(self.chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            self.close()

    def close(self):
        self._file.close()


class PackageFileHandler:
    """
    Streams files from the package directory as downloads.

    Usage:
        files = PackageFileHandler("files")
        router.get("/*path")(files.handle)
    """

    def __init__(
        self,
        package_dir: Union[str, Path],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        log: Optional[logging.Logger] = None,
    ):
        self.package_dir = Path(package_dir).resolve()
        self.chunk_size = chunk_size
        self.log = log or logger

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        relative = request.path_params.get("path", request.path).lstrip("/")
        if not relative:
            self.log.info("File fetch without a file name")
            return empty(HTTPStatus.NOT_FOUND)

        resolved = self.resolve(relative)
        if resolved is None:
            self.log.warning(f"Refusing path outside {self.package_dir}: {relative!r}")
            return empty(HTTPStatus.FORBIDDEN)

        if not resolved.is_file():
            self.log.info(f"Package file not found: {resolved}")
            return empty(HTTPStatus.NOT_FOUND)

        return self._serve(resolved, request)

    def resolve(self, relative: str) -> Optional[Path]:
        """Absolute path for `relative`, or None if it escapes the package directory."""
        candidate = (self.package_dir / relative).resolve()
        try:
            candidate.relative_to(self.package_dir)
        except ValueError:
            return None
        return candidate

    def _serve(self, path: Path, request: HTTPRequest) -> HTTPResponse:
        try:
            stat = path.stat()
            etag = f'"{int(stat.st_mtime)}-{stat.st_size}"'
            if request.get_header("if-none-match") == etag:
                return not_modified(etag)
            f = path.open("rb")
        except PermissionError:
            self.log.warning(f"Permission denied reading {path}")
            return empty(HTTPStatus.FORBIDDEN)
        except OSError as e:
            self.log.warning(f"Cannot open {path}: {e}")
            return empty(HTTPStatus.NOT_FOUND)

        modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        self.log.debug(f"Sending {path} ({stat.st_size} bytes)")

        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_type(PACKAGE_CONTENT_TYPE)
            .header("Content-Disposition", f'attachment; filename="{attachment_name(path.name)}"')
            .header("ETag", etag)
            .header("Last-Modified", format_http_date(modified))
            .stream(FileChunks(f, self.chunk_size), stat.st_size)
            .build())


def attachment_name(name: str) -> str:
    """File name safe for a quoted Content-Disposition value."""
    return _SAFE_FILENAME.sub("_", name) or "download"
