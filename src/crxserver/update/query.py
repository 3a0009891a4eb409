"""
=============================================================================
UPDATE QUERY PARSING
=============================================================================

Extension clients poll with a nested query string. The outer query has one
parameter per extension, `x`, whose value is itself a url-encoded query:

    GET /?x=id%3Dabcdefgh%26v%3D1.0%26uc HTTP/1.1
           └──────────────┬──────────────┘
                          │  unquote
                          ▼
              id=abcdefgh&v=1.0&uc
              └────┬────┘ └─┬─┘
              extension id  installed version

Only the first `x` parameter is honoured.
=============================================================================
"""

from dataclasses import dataclass
from typing import Dict, List, Optional
from urllib.parse import parse_qs

from ..errors import QueryMalformedError


QUERY_KEY = "x"
ID_KEY = "id"
VERSION_KEY = "v"


@dataclass
class UpdateQuery:
    """One extension's update check."""
    extension_id: str
    installed_version: Optional[str] = None
    raw: str = ""

    @property
    def package_filename(self) -> str:
        """Name of the package file on disk: "<id>.crx"."""
        return f"{self.extension_id}.crx"


def parse_update_query(query_params: Dict[str, List[str]]) -> UpdateQuery:
    """
    Build an UpdateQuery from already-decoded outer query parameters.

    Args:
        query_params: Outer query as produced by urllib.parse.parse_qs
                      (HTTPRequest.query_params).

    Raises:
        QueryMalformedError: `x` is missing, `id` is missing or empty, or
                             the id could escape the package directory.
    """
    values = query_params.get(QUERY_KEY) or []
    if not values:
        raise QueryMalformedError(f"missing '{QUERY_KEY}' parameter", query=_render(query_params))

    raw = values[0]
    inner = parse_qs(raw, keep_blank_values=True)

    ids = inner.get(ID_KEY) or []
    if not ids or not ids[0]:
        raise QueryMalformedError(f"missing '{ID_KEY}' in '{QUERY_KEY}'", query=raw)

    extension_id = ids[0]
    if not is_safe_extension_id(extension_id):
        raise QueryMalformedError(f"unusable extension id {extension_id!r}", query=raw)

    versions = inner.get(VERSION_KEY) or [None]
    return UpdateQuery(extension_id=extension_id, installed_version=versions[0], raw=raw)


def is_safe_extension_id(extension_id: str) -> bool:
    """True if the id can be used as a file name inside the package directory."""
    if extension_id in (".", ".."):
        return False
    return not any(bad in extension_id for bad in ("/", "\\", "\x00", ".."))


def _render(query_params: Dict[str, List[str]]) -> str:
    return "&".join(f"{k}={v}" for k, vs in query_params.items() for v in vs)
