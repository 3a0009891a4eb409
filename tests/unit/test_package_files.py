"""
Unit tests for package downloads.
"""

import os

from crxserver.handlers.files import FileChunks, PackageFileHandler, attachment_name
from crxserver.http.request import HTTPRequest
from crxserver.http.response import HTTPResponse
from crxserver.http.status_codes import HTTPStatus


def fetch(handler: PackageFileHandler, name: str, headers=None) -> HTTPResponse:
    request = HTTPRequest(
        method="GET",
        path="/" + name,
        headers=headers or {},
        path_params={"path": name},
    )
    return handler.handle(request)


class TestPackageFileHandler:
    """Tests for PackageFileHandler.handle()."""

    def test_serves_file(self, package_dir):
        """Test a download with its headers."""
        (package_dir / "abc.crx").write_bytes(b"package-bytes")
        response = fetch(PackageFileHandler(package_dir), "abc.crx")

        try:
            assert response.status == HTTPStatus.OK
            assert response.headers["Content-Type"] == "application/octet-stream"
            assert response.headers["Content-Length"] == "13"
            assert response.headers["Content-Disposition"] == 'attachment; filename="abc.crx"'
            assert "ETag" in response.headers
            assert "Last-Modified" in response.headers
            assert response.is_streaming
            assert b"".join(response.iter_body()) == b"package-bytes"
        finally:
            response.close()

    def test_large_file_is_chunked(self, package_dir):
        """Test that bodies are produced in chunk_size pieces."""
        data = os.urandom(10_000)
        (package_dir / "big.crx").write_bytes(data)
        response = fetch(PackageFileHandler(package_dir, chunk_size=4096), "big.crx")

        chunks = list(response.iter_body())

        assert [len(c) for c in chunks] == [4096, 4096, 1808]
        assert b"".join(chunks) == data

    def test_any_file_type_is_served(self, package_dir):
        """Test that non-package files are served too."""
        (package_dir / "notes.txt").write_bytes(b"hello")
        response = fetch(PackageFileHandler(package_dir), "notes.txt")

        assert response.status == HTTPStatus.OK
        assert response.headers["Content-Type"] == "application/octet-stream"
        response.close()

    def test_subdirectory_file(self, package_dir):
        """Test a file below the package directory."""
        (package_dir / "beta").mkdir()
        (package_dir / "beta" / "x.crx").write_bytes(b"x")
        response = fetch(PackageFileHandler(package_dir), "beta/x.crx")

        assert response.status == HTTPStatus.OK
        assert b"".join(response.iter_body()) == b"x"

    def test_missing_file(self, package_dir):
        """Test a 404 with an empty body."""
        response = fetch(PackageFileHandler(package_dir), "nope.crx")

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == b""

    def test_directory_is_not_found(self, package_dir):
        """Test that directories are not served."""
        (package_dir / "sub").mkdir()
        response = fetch(PackageFileHandler(package_dir), "sub")

        assert response.status == HTTPStatus.NOT_FOUND

    def test_empty_name_is_not_found(self, package_dir):
        """Test a fetch with no file name."""
        response = fetch(PackageFileHandler(package_dir), "")
        assert response.status == HTTPStatus.NOT_FOUND

    def test_traversal_is_forbidden(self, package_dir):
        """Test that paths outside the package directory are refused."""
        (package_dir.parent / "secret.txt").write_bytes(b"secret")
        response = fetch(PackageFileHandler(package_dir), "../secret.txt")

        assert response.status == HTTPStatus.FORBIDDEN
        assert response.body == b""

    def test_symlink_out_is_forbidden(self, package_dir):
        """Test a symlink pointing outside the package directory."""
        target = package_dir.parent / "outside.crx"
        target.write_bytes(b"outside")
        (package_dir / "link.crx").symlink_to(target)

        response = fetch(PackageFileHandler(package_dir), "link.crx")

        assert response.status == HTTPStatus.FORBIDDEN

    def test_etag_not_modified(self, package_dir):
        """Test a conditional request with a matching ETag."""
        (package_dir / "abc.crx").write_bytes(b"data")
        handler = PackageFileHandler(package_dir)

        first = fetch(handler, "abc.crx")
        first.close()
        etag = first.headers["ETag"]

        second = fetch(handler, "abc.crx", headers={"if-none-match": etag})

        assert second.status == HTTPStatus.NOT_MODIFIED
        assert second.headers["ETag"] == etag
        assert b"".join(second.iter_body()) == b""

    def test_etag_mismatch_sends_file(self, package_dir):
        """Test a conditional request with a stale ETag."""
        (package_dir / "abc.crx").write_bytes(b"data")
        response = fetch(PackageFileHandler(package_dir), "abc.crx",
                         headers={"if-none-match": '"0-0"'})

        assert response.status == HTTPStatus.OK
        response.close()


class TestFileChunks:
    """Tests for FileChunks."""

    def test_closes_file_after_iteration(self, tmp_path):
        """Test that the file is closed once drained."""
        path = tmp_path / "f.bin"
        path.write_bytes(b"abcdef")
        f = path.open("rb")

        assert list(FileChunks(f, chunk_size=4)) == [b"abcd", b"ef"]
        assert f.closed

    def test_close_without_iterating(self, tmp_path):
        """Test closing an unsent body."""
        path = tmp_path / "f.bin"
        path.write_bytes(b"abc")
        chunks = FileChunks(path.open("rb"))

        chunks.close()

        assert chunks._file.closed


class TestAttachmentName:
    """Tests for attachment_name()."""

    def test_plain_name(self):
        assert attachment_name("abc.crx") == "abc.crx"

    def test_quotes_and_spaces_replaced(self):
        assert attachment_name('a "b".crx') == "a__b_.crx"

    def test_empty_name(self):
        assert attachment_name("") == "download"
