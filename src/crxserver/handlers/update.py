"""
=============================================================================
UPDATE CHECKS
=============================================================================

Answers GET /?x=<encoded id=...&v=...>:

    parse_update_query(request.query_params)     QueryMalformed?  ─┐
        │                                                          │
        ▼                                                          │
    files/<id>.crx exists?                       no  ─────────────┤
        │                                                          │
        ▼                                                          │
    PackageParser.parse_file()                   PackageError?  ──┤
        │                                                          │
        ▼                                                          │
    ManifestExtractor.extract_version()          ManifestError? ──┤
        │                                                          │
        ▼                                                          ▼
    UpdateResponseBuilder.build()                        200, empty body
        │                                                ("no update")
        ▼
    200, text/xml gupdate document

Update clients treat any non-200 as a server fault and back off, so every
failure is logged here and turned into the empty-body 200. Package errors
are logged with their kind and context, anything unexpected with its
traceback.
=============================================================================
"""

import logging
from pathlib import Path
from typing import Optional, Union

from ..crx.container import PackageParser
from ..crx.manifest import ManifestExtractor
from ..errors import CrxError, QueryMalformedError
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, empty
from ..update.query import UpdateQuery, parse_update_query
from ..update.response import UPDATE_XML_CONTENT_TYPE, UpdateResponseBuilder


logger = logging.getLogger(__name__)


class UpdateHandler:
    """
    Handler for update-protocol queries.

    Args:
        package_dir: Directory holding "<id>.crx" files.
        public_base_url: Fixed base for download URLs. When None the
                         request's Host header is used.
        fallback_base_url: Base used when there is no Host header either.
        parser, extractor, builder: Collaborators, mostly for tests.
        log: Logger for misses and package errors.
    """

    def __init__(
        self,
        package_dir: Union[str, Path],
        public_base_url: Optional[str] = None,
        fallback_base_url: str = "http://127.0.0.1:8080",
        parser: Optional[PackageParser] = None,
        extractor: Optional[ManifestExtractor] = None,
        builder: Optional[UpdateResponseBuilder] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.package_dir = Path(package_dir)
        self.public_base_url = public_base_url
        self.fallback_base_url = fallback_base_url
        self.log = log or logger
        self.parser = parser or PackageParser(log=self.log)
        self.extractor = extractor or ManifestExtractor(log=self.log)
        self.builder = builder or UpdateResponseBuilder()

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        try:
            query = parse_update_query(request.query_params)
        except QueryMalformedError as e:
            self.log.info(f"Ignoring update check: {e.describe()}")
            return self.no_update()

        package_path = self.package_dir / query.package_filename
        try:
            if not package_path.is_file():
                self.log.info(
                    f"No package for {query.extension_id} "
                    f"(client has {query.installed_version or 'unknown'}), looked for {package_path}"
                )
                return self.no_update()

            document = self.render(query, package_path, self.base_url(request))
        except CrxError as e:
            self.log.warning(f"Cannot offer {package_path}: {e.describe()}")
            return self.no_update()
        except OSError as e:
            self.log.warning(f"Cannot read {package_path}: {e}")
            return self.no_update()
        except Exception:
            self.log.exception(f"Unexpected failure offering {package_path}")
            return self.no_update()

        return (ResponseBuilder()
            .xml(document, UPDATE_XML_CONTENT_TYPE)
            .no_cache()
            .build())

    def render(self, query: UpdateQuery, package_path: Path, base_url: str) -> str:
        """
        Build the gupdate document for one package.

        Raises:
            PackageError, ManifestError: The package cannot be offered.
            OSError: The package cannot be read.
        """
        package = self.parser.parse_file(package_path)
        version = self.extractor.extract_version(package.archive, source=package.source)
        download_url = self.builder.package_url(base_url, query.extension_id)

        self.log.info(
            f"Offering {query.extension_id} {version} "
            f"(client has {query.installed_version or 'unknown'})"
        )
        return self.builder.build(query.extension_id, download_url, version)

    def base_url(self, request: HTTPRequest) -> str:
        """Scheme, host and port that download URLs are built on."""
        if self.public_base_url:
            return self.public_base_url.rstrip("/")
        if request.host:
            return f"http://{request.host}"
        return self.fallback_base_url

    @staticmethod
    def no_update() -> HTTPResponse:
        return empty()
