"""
=============================================================================
MANIFEST EXTRACTION
=============================================================================

The zip payload of a package carries a `manifest.json` at its root. The
update endpoint only needs one value from it, the extension version:

    {
        "manifest_version": 2,
        "name": "My Extension",
        "version": "1.2.3",        ◄── this one
        ...
    }

Lookup rules:
- The entry name is compared case-insensitively ("MANIFEST.JSON" matches).
- The whole entry name must match, so "sub/manifest.json" does not.
- The first matching entry in archive order wins.
- A UTF-8 byte order mark in front of the JSON is tolerated.

Each failure has its own exception so the log says exactly what was wrong
with the package.
=============================================================================
"""

import io
import json
import logging
import zipfile
import zlib
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ..errors import (
    ArchiveCorruptError,
    ManifestMalformedError,
    ManifestMissingError,
    VersionFieldInvalidError,
)


logger = logging.getLogger(__name__)


MANIFEST_NAME = "manifest.json"


@dataclass
class ExtensionManifest:
    """The parsed manifest of a package."""
    version: str
    entry_name: str = MANIFEST_NAME
    data: Dict[str, Any] = field(default_factory=dict, repr=False)


class ManifestExtractor:
    """
    Reads the manifest out of a zip payload.

    Usage:
        extractor = ManifestExtractor()
        extractor.extract_version(package.archive)   # "1.2.3"
    """

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def extract_version(self, archive: bytes, source: str = "<archive>") -> str:
        """
        Return the manifest's "version" string.

        Raises:
            ArchiveCorruptError: The payload is not a readable zip archive.
            ManifestMissingError: No manifest.json entry.
            ManifestMalformedError: The entry is not a JSON object.
            VersionFieldInvalidError: "version" is missing or not a string.
        """
        return self.read_manifest(archive, source).version

    def read_manifest(self, archive: bytes, source: str = "<archive>") -> ExtensionManifest:
        """Return the whole manifest, validated the same way as extract_version()."""
        entry_name, raw = self._read_manifest_entry(archive, source)

        try:
            text = raw.decode("utf-8-sig")
            data = json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as e:
            raise ManifestMalformedError(
                f"{entry_name} in {source} is not valid JSON: {e}",
                source=source, entry=entry_name,
            ) from e

        if not isinstance(data, dict):
            raise ManifestMalformedError(
                f"{entry_name} in {source} is not a JSON object",
                source=source, entry=entry_name, actual_type=type(data).__name__,
            )

        if "version" not in data:
            raise VersionFieldInvalidError(
                f"{entry_name} in {source} has no version field",
                source=source, entry=entry_name,
            )

        version = data["version"]
        if not isinstance(version, str):
            raise VersionFieldInvalidError(
                f"{entry_name} in {source} has a non-string version",
                source=source, entry=entry_name, actual=version,
            )

        self.log.debug(f"{source}: manifest {entry_name} declares version {version}")
        return ExtensionManifest(version=version, entry_name=entry_name, data=data)

    def _read_manifest_entry(self, archive: bytes, source: str) -> Tuple[str, bytes]:
        try:
            with zipfile.ZipFile(io.BytesIO(archive)) as zf:
                entry = self._find_manifest(zf)
                if entry is None:
                    raise ManifestMissingError(
                        f"{source} has no {MANIFEST_NAME}",
                        source=source, entries=len(zf.infolist()),
                    )
                return entry.filename, zf.read(entry)
        except zipfile.BadZipFile as e:
            raise ArchiveCorruptError(
                f"{source} is not a readable zip archive: {e}", source=source,
            ) from e
        except (zipfile.LargeZipFile, zlib.error, NotImplementedError, EOFError, ValueError,
                RuntimeError) as e:
            # unsupported compression, truncated entry data, zip64 oddities, encrypted entry
            raise ArchiveCorruptError(
                f"{source}: cannot decompress {MANIFEST_NAME}: {e}", source=source,
            ) from e

    @staticmethod
    def _find_manifest(zf: zipfile.ZipFile) -> Optional[zipfile.ZipInfo]:
        for info in zf.infolist():
            if info.filename.lower() == MANIFEST_NAME:
                return info
        return None


def extract_version(archive: bytes) -> str:
    """Convenience wrapper around ManifestExtractor().extract_version()."""
    return ManifestExtractor().extract_version(archive)
