"""
=============================================================================
CRX CONTAINER PARSING
=============================================================================

A packaged extension is a small binary envelope wrapped around a zip
archive. Version 2 of the format is laid out like this:

    ┌──────────────┬─────────────────────────────────────────────────────┐
    │ Offset       │ Field                                               │
    ├──────────────┼─────────────────────────────────────────────────────┤
    │ 0            │ magic            4 bytes   b"Cr24"                  │
    │ 4            │ format version   uint32 LE must be 2                │
    │ 8            │ key length (L1)  uint32 LE                          │
    │ 12           │ sig length (L2)  uint32 LE                          │
    │ 16           │ public key       L1 bytes                           │
    │ 16+L1        │ signature        L2 bytes                           │
    │ 16+L1+L2     │ zip archive      rest of file, starts b"PK\\x03\\x04" │
    └──────────────┴─────────────────────────────────────────────────────┘

All integers are little-endian regardless of the host, so they are always
decoded with an explicit "<I" struct format.

The public key and signature are carried through untouched. Nothing here
verifies them.

=============================================================================
READ ORDER
=============================================================================

Fields are read strictly in order and every check short-circuits:

    1. magic          mismatch  → BadMagicError
    2. version        != 2      → UnsupportedVersionError
    3. lengths, key, signature  → TruncatedError if the input runs out
    4. archive magic  mismatch  → BadArchiveMagicError

=============================================================================
"""

import io
import logging
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Optional, Union

from ..errors import (
    BadArchiveMagicError,
    BadMagicError,
    TruncatedError,
    UnsupportedVersionError,
)


logger = logging.getLogger(__name__)


CRX_MAGIC = b"Cr24"
CRX_VERSION = 2
ZIP_LOCAL_HEADER_MAGIC = b"PK\x03\x04"

# Little-endian unsigned 32-bit integer
_UINT32 = struct.Struct("<I")


@dataclass
class CrxPackage:
    """
    A decoded version 2 container.

    Attributes:
        public_key: The embedded public key bytes.
        signature: The embedded signature bytes.
        archive: The zip payload (everything after the signature).
        format_version: Always CRX_VERSION for a successful parse.
        magic: Always CRX_MAGIC for a successful parse.
        source: Where the bytes came from, for log messages.
    """
    public_key: bytes
    signature: bytes
    archive: bytes = field(repr=False)
    format_version: int = CRX_VERSION
    magic: bytes = CRX_MAGIC
    source: str = "<bytes>"

    @property
    def public_key_length(self) -> int:
        return len(self.public_key)

    @property
    def signature_length(self) -> int:
        return len(self.signature)

    @property
    def header_size(self) -> int:
        """Number of bytes in front of the archive payload."""
        return 16 + self.public_key_length + self.signature_length


class PackageParser:
    """
    Decodes container bytes into a CrxPackage.

    Usage:
        parser = PackageParser()
        package = parser.parse_file("files/abcdef.crx")
        package.archive[:4]   # b"PK\\x03\\x04"

    The parser holds no per-call state, so one instance can be shared by
    every worker thread.
    """

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def parse(self, data: bytes, source: str = "<bytes>") -> CrxPackage:
        """
        Parse a complete container held in memory.

        Args:
            data: The whole package file.
            source: Name used in error messages (usually the file path).

        Returns:
            The decoded package.

        Raises:
            BadMagicError, UnsupportedVersionError, TruncatedError,
            BadArchiveMagicError
        """
        return self.parse_stream(io.BytesIO(data), source)

    def parse_file(self, path: Union[str, Path]) -> CrxPackage:
        """
        Parse a package straight from disk.

        Raises:
            OSError: If the file cannot be opened or read.
            PackageError subclasses: If the contents are invalid.
        """
        path = Path(path)
        with path.open("rb") as f:
            return self.parse_stream(f, str(path))

    def parse_stream(self, stream: BinaryIO, source: str = "<stream>") -> CrxPackage:
        """Parse a container from a binary file object positioned at its start."""
        # ─────────────────────────────────────────────────────────────────
        # MAGIC
        # ─────────────────────────────────────────────────────────────────
        # Anything that does not start with "Cr24" is rejected as bad magic,
        # including inputs shorter than four bytes.
        magic = stream.read(len(CRX_MAGIC))
        if magic != CRX_MAGIC:
            raise BadMagicError(source, expected=CRX_MAGIC, actual=magic)

        # ─────────────────────────────────────────────────────────────────
        # FORMAT VERSION
        # ─────────────────────────────────────────────────────────────────
        version = self._read_uint32(stream, source, "format version")
        if version != CRX_VERSION:
            raise UnsupportedVersionError(source, version=version, supported=CRX_VERSION)

        # ─────────────────────────────────────────────────────────────────
        # VARIABLE-LENGTH FIELDS
        # ─────────────────────────────────────────────────────────────────
        key_length = self._read_uint32(stream, source, "public key length")
        sig_length = self._read_uint32(stream, source, "signature length")
        public_key = self._read_exact(stream, key_length, source, "public key")
        signature = self._read_exact(stream, sig_length, source, "signature")

        # ─────────────────────────────────────────────────────────────────
        # ARCHIVE PAYLOAD
        # ─────────────────────────────────────────────────────────────────
        archive = stream.read()
        archive_magic = archive[:len(ZIP_LOCAL_HEADER_MAGIC)]
        if archive_magic != ZIP_LOCAL_HEADER_MAGIC:
            raise BadArchiveMagicError(
                source, expected=ZIP_LOCAL_HEADER_MAGIC, actual=archive_magic
            )

        self.log.debug(
            f"Parsed {source}: key={key_length}B signature={sig_length}B "
            f"archive={len(archive)}B"
        )

        return CrxPackage(
            public_key=public_key,
            signature=signature,
            archive=archive,
            format_version=version,
            magic=magic,
            source=source,
        )

    def _read_exact(self, stream: BinaryIO, size: int, source: str, field_name: str) -> bytes:
        data = stream.read(size)
        if len(data) < size:
            raise TruncatedError(source, field=field_name, wanted=size, available=len(data))
        return data

    def _read_uint32(self, stream: BinaryIO, source: str, field_name: str) -> int:
        raw = self._read_exact(stream, _UINT32.size, source, field_name)
        return _UINT32.unpack(raw)[0]


def pack_crx(
    public_key: bytes,
    signature: bytes,
    archive: bytes,
    version: int = CRX_VERSION,
    magic: bytes = CRX_MAGIC,
) -> bytes:
    """
    Build container bytes from their parts.

    The inverse of PackageParser.parse for valid inputs. `version` and
    `magic` can be overridden to produce deliberately invalid packages.
    """
    return b"".join([
        magic,
        _UINT32.pack(version),
        _UINT32.pack(len(public_key)),
        _UINT32.pack(len(signature)),
        public_key,
        signature,
        archive,
    ])


def parse_crx(data: bytes, source: str = "<bytes>") -> CrxPackage:
    """Convenience wrapper around PackageParser().parse()."""
    return PackageParser().parse(data, source)
