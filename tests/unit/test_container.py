"""
Unit tests for CRX container parsing.
"""

import io
import struct

import pytest

from crxserver.crx.container import (
    CRX_MAGIC,
    ZIP_LOCAL_HEADER_MAGIC,
    PackageParser,
    pack_crx,
    parse_crx,
)
from crxserver.errors import (
    BadArchiveMagicError,
    BadMagicError,
    ErrorKind,
    PackageError,
    TruncatedError,
    UnsupportedVersionError,
)

from conftest import make_crx, make_zip


ARCHIVE = ZIP_LOCAL_HEADER_MAGIC + b"rest-of-zip"


class TestPackageParser:
    """Tests for PackageParser.parse()."""

    def test_parse_valid_package(self):
        """Test that key, signature and archive are split correctly."""
        data = pack_crx(b"K" * 5, b"S" * 3, ARCHIVE)
        package = PackageParser().parse(data)

        assert package.magic == CRX_MAGIC
        assert package.format_version == 2
        assert package.public_key == b"KKKKK"
        assert package.signature == b"SSS"
        assert package.archive == ARCHIVE
        assert package.header_size == 16 + 5 + 3

    def test_header_is_little_endian(self):
        """Test that lengths are read as little-endian regardless of host."""
        data = (
            b"Cr24"
            + b"\x02\x00\x00\x00"
            + b"\x01\x00\x00\x00"
            + b"\x02\x00\x00\x00"
            + b"K" + b"SS" + ARCHIVE
        )
        package = parse_crx(data)

        assert package.public_key_length == 1
        assert package.signature_length == 2
        assert package.archive == ARCHIVE

    def test_empty_key_and_signature(self):
        """Test zero-length key and signature."""
        package = parse_crx(pack_crx(b"", b"", ARCHIVE))

        assert package.public_key == b""
        assert package.signature == b""
        assert package.archive == ARCHIVE

    def test_bad_magic(self):
        """Test that a wrong leading tag is rejected."""
        data = b"Cr25" + pack_crx(b"", b"", ARCHIVE)[4:]

        with pytest.raises(BadMagicError) as exc_info:
            parse_crx(data, source="x.crx")

        assert exc_info.value.kind == ErrorKind.BAD_MAGIC
        assert exc_info.value.actual == b"Cr25"
        assert "x.crx" in str(exc_info.value)

    @pytest.mark.parametrize("data", [b"", b"C", b"Cr2"])
    def test_short_input_is_bad_magic(self, data):
        """Test that inputs shorter than the magic report bad magic."""
        with pytest.raises(BadMagicError):
            parse_crx(data)

    def test_unsupported_version(self):
        """Test that only format version 2 is accepted."""
        data = pack_crx(b"K", b"S", ARCHIVE, version=3)

        with pytest.raises(UnsupportedVersionError) as exc_info:
            parse_crx(data)

        assert exc_info.value.version == 3
        assert exc_info.value.kind == ErrorKind.UNSUPPORTED_VERSION

    def test_magic_checked_before_version(self):
        """Test that a bad magic wins over a bad version."""
        data = pack_crx(b"", b"", ARCHIVE, version=7, magic=b"XXXX")

        with pytest.raises(BadMagicError):
            parse_crx(data)

    def test_version_checked_before_lengths(self):
        """Test that a bad version is reported even if nothing follows it."""
        data = b"Cr24" + struct.pack("<I", 1)

        with pytest.raises(UnsupportedVersionError):
            parse_crx(data)

    def test_truncated_version(self):
        """Test input ending inside the version field."""
        with pytest.raises(TruncatedError) as exc_info:
            parse_crx(b"Cr24\x02\x00")

        assert exc_info.value.field == "format version"
        assert exc_info.value.wanted == 4
        assert exc_info.value.available == 2

    def test_truncated_lengths(self):
        """Test input ending inside the length fields."""
        with pytest.raises(TruncatedError):
            parse_crx(b"Cr24" + struct.pack("<I", 2) + struct.pack("<I", 5))

    def test_truncated_public_key(self):
        """Test a key length larger than the remaining input."""
        data = b"Cr24" + struct.pack("<III", 2, 100, 0) + b"short"

        with pytest.raises(TruncatedError) as exc_info:
            parse_crx(data)

        assert exc_info.value.kind == ErrorKind.TRUNCATED
        assert exc_info.value.field == "public key"
        assert exc_info.value.wanted == 100
        assert exc_info.value.available == 5

    def test_truncated_signature(self):
        """Test a signature length larger than the remaining input."""
        data = b"Cr24" + struct.pack("<III", 2, 1, 50) + b"K" + b"sig"

        with pytest.raises(TruncatedError) as exc_info:
            parse_crx(data)

        assert exc_info.value.field == "signature"

    def test_bad_archive_magic(self):
        """Test a payload that is not a zip archive."""
        data = pack_crx(b"K", b"S", b"NOTAZIP")

        with pytest.raises(BadArchiveMagicError) as exc_info:
            parse_crx(data)

        assert exc_info.value.actual == b"NOTA"
        assert exc_info.value.kind == ErrorKind.BAD_ARCHIVE_MAGIC

    def test_missing_archive(self):
        """Test a package that ends right after the signature."""
        with pytest.raises(BadArchiveMagicError):
            parse_crx(pack_crx(b"K", b"S", b""))

    def test_all_errors_are_package_errors(self):
        """Test the shared base class callers catch."""
        for data in (b"nope", pack_crx(b"", b"", b"", version=9), pack_crx(b"", b"", b"xx")):
            with pytest.raises(PackageError):
                parse_crx(data)

    def test_describe_includes_kind(self):
        """Test the log summary of an error."""
        with pytest.raises(UnsupportedVersionError) as exc_info:
            parse_crx(pack_crx(b"", b"", ARCHIVE, version=3), source="pkg.crx")

        summary = exc_info.value.describe()
        assert summary.startswith("UnsupportedVersion:")
        assert "version=3" in summary


class TestPackageSources:
    """Tests for parsing from files and streams."""

    def test_parse_file(self, tmp_path):
        """Test parsing straight from disk."""
        path = tmp_path / "ext.crx"
        path.write_bytes(make_crx("2.0"))

        package = PackageParser().parse_file(path)

        assert package.source == str(path)
        assert package.archive.startswith(ZIP_LOCAL_HEADER_MAGIC)

    def test_parse_missing_file(self, tmp_path):
        """Test that a missing file raises OSError, not a package error."""
        with pytest.raises(OSError):
            PackageParser().parse_file(tmp_path / "missing.crx")

    def test_parse_stream(self):
        """Test parsing from a file object."""
        archive = make_zip({"manifest.json": b"{}"})
        stream = io.BytesIO(pack_crx(b"key", b"sig", archive))

        package = PackageParser().parse_stream(stream, "stream")

        assert package.public_key == b"key"
        assert package.signature == b"sig"
        assert package.archive == archive
