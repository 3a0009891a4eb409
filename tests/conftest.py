"""
pytest configuration and fixtures.
"""

import io
import json
import socket
import zipfile
from pathlib import Path
from typing import Dict, Generator, Optional, Tuple

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from crxserver import HTTPServer, ServerConfig, create_app
from crxserver.crx import pack_crx
from crxserver.server import serve_in_thread


EXTENSION_ID = "abcdefghijklmnopabcdefghijklmnop"


# =============================================================================
# PACKAGE BUILDERS
# =============================================================================

def make_zip(entries: Dict[str, bytes]) -> bytes:
    """Build a zip archive in memory from name → content."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def mark_encrypted(archive: bytes) -> bytes:
    """Set the encrypted flag on a single-entry archive, in both headers."""
    data = bytearray(archive)
    data[data.find(b"PK\x03\x04") + 6] |= 0x01
    data[data.rfind(b"PK\x01\x02") + 8] |= 0x01
    return bytes(data)


def make_manifest(version: Optional[str] = "1.2.3", **fields) -> bytes:
    data = {"manifest_version": 2, "name": "Test Extension", **fields}
    if version is not None:
        data["version"] = version
    return json.dumps(data).encode("utf-8")


def make_crx(
    version: str = "1.2.3",
    public_key: bytes = b"PUBLIC-KEY",
    signature: bytes = b"SIGNATURE",
    extra_entries: Optional[Dict[str, bytes]] = None,
) -> bytes:
    """A valid version 2 package whose manifest declares `version`."""
    entries = {"manifest.json": make_manifest(version)}
    entries.update(extra_entries or {})
    return pack_crx(public_key, signature, make_zip(entries))


@pytest.fixture
def package_dir(tmp_path: Path) -> Path:
    """Empty package directory."""
    directory = tmp_path / "files"
    directory.mkdir()
    return directory


@pytest.fixture
def crx_file(package_dir: Path) -> Path:
    """A valid package for EXTENSION_ID at version 1.2.3."""
    path = package_dir / f"{EXTENSION_ID}.crx"
    path.write_bytes(make_crx("1.2.3"))
    return path


# =============================================================================
# RAW REQUESTS
# =============================================================================

@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET update check."""
    return (
        b"GET /?x=id%3Dabc%26v%3D1.0&lang=en HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: */*\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_download_request() -> bytes:
    """Sample conditional package download."""
    return (
        b"GET /" + EXTENSION_ID.encode() + b".crx HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b'If-None-Match: "10-1700000000"\r\n'
        b"Connection: close\r\n"
        b"\r\n"
    )


@pytest.fixture
def config(package_dir: Path) -> ServerConfig:
    """Test server configuration on an ephemeral port."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=1.0,
        request_timeout=5.0,
        package_dir=str(package_dir),
        log_level="WARNING",
    )


# =============================================================================
# RUNNING SERVER
# =============================================================================

class RunningServer:
    """A server on a background thread plus a tiny raw-socket client."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread = None

    def start(self) -> "RunningServer":
        self._thread = serve_in_thread(self.server)
        return self

    def stop(self):
        self.server.shutdown(timeout=5.0)
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    @property
    def address(self) -> Tuple[str, int]:
        return self.server.address

    def request(self, method: str, target: str, headers: Optional[Dict[str, str]] = None,
                timeout: float = 5.0) -> Tuple[int, Dict[str, str], bytes]:
        """Send one request with Connection: close and read the whole response."""
        host, port = self.address
        lines = [f"{method} {target} HTTP/1.1", f"Host: {host}:{port}", "Connection: close"]
        lines.extend(f"{name}: {value}" for name, value in (headers or {}).items())
        raw = ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")

        with socket.create_connection((host, port), timeout=timeout) as sock:
            sock.sendall(raw)
            chunks = []
            while True:
                chunk = sock.recv(65536)
                if not chunk:
                    break
                chunks.append(chunk)
        return parse_response(b"".join(chunks))


def parse_response(data: bytes) -> Tuple[int, Dict[str, str], bytes]:
    head, _, body = data.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    status = int(lines[0].split(" ", 2)[1])
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()
    return status, headers, body


@pytest.fixture
def running_server(config: ServerConfig) -> Generator[RunningServer, None, None]:
    """The full update application on an ephemeral port."""
    running = RunningServer(create_app(config)).start()
    yield running
    running.stop()
