"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All runtime settings live in one dataclass.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m crxserver --port 3000                            │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── CRX_PORT=3000 python -m crxserver                          │
    │                                                                      │
    │   3. Defaults below                                                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

validate() runs when the server is constructed so a bad value fails at
startup rather than on the first request.
=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the update server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK     host, port, backlog, buffer_size, timeout
    HTTP        keep_alive, keep_alive_timeout, max_request_size,
                request_timeout
    THREADING   min_workers, max_workers, queue_size
    PACKAGES    package_dir, public_base_url
    LOGGING     log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind. "0.0.0.0" listens on every interface."""

    port: int = 8080
    """Port to listen on. 0 picks a free ephemeral port."""

    backlog: int = 128
    """Pending connections the kernel queues before refusing."""

    buffer_size: int = 8192
    """Bytes read per recv() call."""

    timeout: Optional[float] = 30.0
    """Idle limit for a single socket read or write, in seconds."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True

    keep_alive_timeout: float = 5.0
    """How long an idle kept-alive connection waits for its next request."""

    max_request_size: int = 64 * 1024
    """
    Upper bound on a request (headers plus body). The server only answers
    GETs, so this stays small.
    """

    request_timeout: Optional[float] = 60.0
    """
    Deadline for one request, from its first byte until the response has
    been written. None disables it.
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16

    queue_size: int = 64
    """Connections allowed to wait for a worker. Beyond this the server answers 503."""

    # ─────────────────────────────────────────────────────────────────────
    # PACKAGES
    # ─────────────────────────────────────────────────────────────────────

    package_dir: str = "files"
    """Directory holding <extension id>.crx files. Relative to the working directory."""

    public_base_url: Optional[str] = None
    """
    Base of the download URLs written into update responses, e.g.
    "https://updates.example.com". When unset the request's Host header is
    used, and failing that http://host:port.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"

    log_format: str = "text"
    """Access log format: "text" (Apache-style) or "json"."""

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "CrxServer/1.0"

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        CRX_HOST             Bind address (default: 127.0.0.1)
        CRX_PORT             Port (default: 8080)
        CRX_PACKAGE_DIR      Package directory (default: files)
        CRX_PUBLIC_BASE_URL  Base of download URLs (default: from request)
        CRX_WORKERS          Max worker threads (default: 16)
        CRX_QUEUE_SIZE       Waiting connections before 503 (default: 64)
        CRX_TIMEOUT          Socket idle timeout in seconds (default: 30)
        CRX_REQUEST_TIMEOUT  Per-request deadline in seconds (default: 60)
        CRX_LOG_LEVEL        Logging level (default: INFO)
        CRX_LOG_FORMAT       text or json (default: text)

        =====================================================================
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        max_workers = int(env.get("CRX_WORKERS", defaults.max_workers))

        return cls(
            host=env.get("CRX_HOST", defaults.host),
            port=int(env.get("CRX_PORT", defaults.port)),
            package_dir=env.get("CRX_PACKAGE_DIR", defaults.package_dir),
            public_base_url=env.get("CRX_PUBLIC_BASE_URL") or None,
            max_workers=max_workers,
            min_workers=min(defaults.min_workers, max_workers),
            queue_size=int(env.get("CRX_QUEUE_SIZE", defaults.queue_size)),
            timeout=float(env.get("CRX_TIMEOUT", defaults.timeout)),
            request_timeout=float(env.get("CRX_REQUEST_TIMEOUT", defaults.request_timeout)),
            log_level=env.get("CRX_LOG_LEVEL", defaults.log_level),
            log_format=env.get("CRX_LOG_FORMAT", defaults.log_format),
        )

    def validate(self) -> None:
        """Raise ValueError on the first invalid setting."""
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")

        if not self.package_dir:
            raise ValueError("package_dir must not be empty")

        if self.public_base_url is not None and not self.public_base_url.startswith(
            ("http://", "https://")
        ):
            raise ValueError(f"public_base_url must be an http(s) URL: {self.public_base_url!r}")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")
