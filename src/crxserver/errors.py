"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every way a package or an update query can be rejected has its own
exception class and its own ErrorKind value:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  CrxError                                                            │
    │  ├── PackageError            (container parsing)                     │
    │  │   ├── BadMagicError              BadMagic                         │
    │  │   ├── UnsupportedVersionError    UnsupportedVersion               │
    │  │   ├── BadArchiveMagicError       BadArchiveMagic                  │
    │  │   └── TruncatedError             Truncated                        │
    │  ├── ManifestError           (manifest extraction)                   │
    │  │   ├── ArchiveCorruptError        ArchiveCorrupt                   │
    │  │   ├── ManifestMissingError       ManifestMissing                  │
    │  │   ├── ManifestMalformedError     ManifestMalformed                │
    │  │   └── VersionFieldInvalidError   VersionFieldInvalid              │
    │  └── QueryMalformedError     (routing)  QueryMalformed               │
    └─────────────────────────────────────────────────────────────────────┘

None of these ever reach an update client as a distinct response. The
update handler logs `kind` and `context` and answers with the empty-body
200 that means "no update available".
=============================================================================
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    """Loggable identifier for each failure condition."""
    BAD_MAGIC = "BadMagic"
    UNSUPPORTED_VERSION = "UnsupportedVersion"
    BAD_ARCHIVE_MAGIC = "BadArchiveMagic"
    TRUNCATED = "Truncated"
    ARCHIVE_CORRUPT = "ArchiveCorrupt"
    MANIFEST_MISSING = "ManifestMissing"
    MANIFEST_MALFORMED = "ManifestMalformed"
    VERSION_FIELD_INVALID = "VersionFieldInvalid"
    QUERY_MALFORMED = "QueryMalformed"


class CrxError(Exception):
    """
    Base class for package and query failures.

    Attributes:
        kind: The ErrorKind for this failure.
        context: Extra details for the log line (file name, expected and
                 actual bytes, field names...).
    """

    kind: ErrorKind

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context: Dict[str, Any] = context

    def describe(self) -> str:
        """One-line summary used in log messages."""
        details = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        if details:
            return f"{self.kind.value}: {self} ({details})"
        return f"{self.kind.value}: {self}"


# ─────────────────────────────────────────────────────────────────────────
# CONTAINER PARSING
# ─────────────────────────────────────────────────────────────────────────

class PackageError(CrxError):
    """The binary container is not a valid version 2 package."""


class BadMagicError(PackageError):
    kind = ErrorKind.BAD_MAGIC

    def __init__(self, source: str, expected: bytes, actual: bytes):
        super().__init__(
            f"{source} has a bad magic number, was: {list(actual)}",
            source=source, expected=expected, actual=actual,
        )
        self.expected = expected
        self.actual = actual


class UnsupportedVersionError(PackageError):
    kind = ErrorKind.UNSUPPORTED_VERSION

    def __init__(self, source: str, version: int, supported: int):
        super().__init__(
            f"{source} has format version {version} (only {supported} is supported)",
            source=source, version=version, supported=supported,
        )
        self.version = version
        self.supported = supported


class BadArchiveMagicError(PackageError):
    kind = ErrorKind.BAD_ARCHIVE_MAGIC

    def __init__(self, source: str, expected: bytes, actual: bytes):
        super().__init__(
            f"{source} has a bad zip magic number, was: {list(actual)}",
            source=source, expected=expected, actual=actual,
        )
        self.expected = expected
        self.actual = actual


class TruncatedError(PackageError):
    kind = ErrorKind.TRUNCATED

    def __init__(self, source: str, field: str, wanted: int, available: int):
        super().__init__(
            f"{source} is truncated while reading {field}: "
            f"wanted {wanted} bytes, {available} available",
            source=source, field=field, wanted=wanted, available=available,
        )
        self.field = field
        self.wanted = wanted
        self.available = available


# ─────────────────────────────────────────────────────────────────────────
# MANIFEST EXTRACTION
# ─────────────────────────────────────────────────────────────────────────

class ManifestError(CrxError):
    """The archive payload does not yield a usable manifest version."""


class ArchiveCorruptError(ManifestError):
    kind = ErrorKind.ARCHIVE_CORRUPT


class ManifestMissingError(ManifestError):
    kind = ErrorKind.MANIFEST_MISSING


class ManifestMalformedError(ManifestError):
    kind = ErrorKind.MANIFEST_MALFORMED


class VersionFieldInvalidError(ManifestError):
    kind = ErrorKind.VERSION_FIELD_INVALID


# ─────────────────────────────────────────────────────────────────────────
# ROUTING
# ─────────────────────────────────────────────────────────────────────────

class QueryMalformedError(CrxError):
    """The update query has no usable `x` / `id` parameter."""

    kind = ErrorKind.QUERY_MALFORMED

    def __init__(self, message: str, query: Optional[str] = None, **context: Any):
        super().__init__(message, query=query, **context)
