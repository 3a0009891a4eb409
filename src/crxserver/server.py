"""
=============================================================================
UPDATE SERVER
=============================================================================

Ties the networking core to the update application:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer ──accept──► Connection ──submit──► ThreadPool         │
    │   (one thread)                          │          (max_workers)     │
    │                                         │ full                       │
    │                                         ▼                            │
    │                                   503, close                         │
    │                                                                      │
    │   worker:  read_request ► RequestParser ► LoggingMiddleware          │
    │                                              │                       │
    │                                              ▼                       │
    │                                           Router                     │
    │                                    ┌─────────┴─────────┐             │
    │                                    ▼                   ▼             │
    │                              UpdateHandler     PackageFileHandler    │
    │                                    │                   │             │
    │                                    └────────┬──────────┘             │
    │                                             ▼                        │
    │                              send head + body (deadline-bound)       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Failure boundaries, innermost first:

    UpdateHandler        package/query errors    → 200, empty body
    _process_connection  any handler exception   → 500, connection kept
                         parse error             → 400/405/413/505, close
                         deadline or idle expiry → 408, close
    Worker               anything left           → logged, worker survives
    SocketServer         hand-off failure        → logged, socket closed
=============================================================================
"""

import logging
import threading
from pathlib import Path
from typing import Callable, Optional, Tuple

from .config import ServerConfig
from .core import Connection, ConnectionState, RequestTooLarge, SocketServer, ThreadPool
from .handlers import PackageFileHandler, UpdateHandler
from .http import (
    HTTPParseError,
    HTTPRequest,
    HTTPResponse,
    HTTPStatus,
    RequestParser,
    ResponseBuilder,
    Router,
    internal_error,
)
from .middleware import LoggingMiddleware, Middleware, MiddlewarePipeline
from .routing import register_routes


logger = logging.getLogger(__name__)


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class HTTPServer:
    """
    Thread-pooled HTTP/1.1 server.

    Usage:
        server = HTTPServer(ServerConfig(port=8080))
        server.get("/")(handler)
        server.use(LoggingMiddleware())
        server.run()           # blocks until SIGINT/SIGTERM

    Tests run it on a background thread with serve() and stop it with
    shutdown().
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        self._router = Router()
        self._middleware = MiddlewarePipeline()

        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware; the first added is outermost."""
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    def get(self, path: str, **kwargs):
        """Decorator registering a GET route."""
        return self._router.get(path, **kwargs)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port). With port 0 this is only meaningful once ready."""
        return self._socket_server.address

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """Configure logging and serve until interrupted."""
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._setup_logging()
        self._log_startup()
        self.serve()

    def serve(self):
        """Start workers and run the accept loop. Blocks until shutdown()."""
        self._handler = self._middleware.wrap(self._router.handle)
        self._thread_pool.start()
        self._running = True

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._stop_workers()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the listening socket is bound. False on timeout."""
        return self._socket_server.wait_until_ready(timeout)

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Stop accepting connections and wait for the accept loop to exit.

        Returns:
            True if the server stopped within `timeout`.
        """
        self._socket_server.shutdown()
        return self._socket_server.wait_for_shutdown(timeout)

    def _stop_workers(self):
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=self.config.request_timeout or 30.0)
        logger.info("Server stopped")

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
        logging.getLogger("crxserver").setLevel(level)

    def _log_startup(self):
        logger.info(
            f"{self.config.server_name} serving {Path(self.config.package_dir).resolve()} "
            f"on http://{self.config.host}:{self.config.port} "
            f"({self.config.min_workers}-{self.config.max_workers} workers, "
            f"queue {self.config.queue_size})"
        )
        logger.info("Routes:\n" + self._router.describe())

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Queue a freshly accepted connection, shedding it with 503 when full."""
        try:
            accepted = self._thread_pool.submit(self._process_connection, args=(conn,))
        except RuntimeError as e:
            logger.warning(f"[{conn.id}] Rejecting connection: {e}")
            accepted = False

        if not accepted:
            logger.warning(f"[{conn.id}] Worker pool saturated, answering 503")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE)
            conn.close()

    def _process_connection(self, conn: Connection):
        """Keep-alive loop for one connection. Runs on a worker thread."""
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                except TimeoutError as e:
                    logger.info(f"[{conn.id}] {e}")
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)
                    break
                except RequestTooLarge as e:
                    logger.warning(f"[{conn.id}] {e}")
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE)
                    break

                if raw_request is None:
                    break

                try:
                    request = self._parser.parse(raw_request, conn.address)
                except HTTPParseError as e:
                    logger.info(f"[{conn.id}] Bad request: {e}")
                    self._send_error(conn, HTTPStatus(e.status_code), str(e))
                    break

                conn.state = ConnectionState.PROCESSING
                response = self._dispatch(conn, request)

                keep_alive = request.is_keep_alive and self.config.keep_alive
                if keep_alive:
                    response.headers.setdefault("Connection", "keep-alive")
                    response.headers.setdefault(
                        "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
                    )
                else:
                    response.headers["Connection"] = "close"

                try:
                    sent = conn.send_stream(response.iter_bytes(self.config.server_name))
                finally:
                    response.close()

                if not sent or not keep_alive:
                    break
                conn.set_keep_alive()

    def _dispatch(self, conn: Connection, request: HTTPRequest) -> HTTPResponse:
        try:
            return self._handler(request)
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error for {request.method} {request.path}: {e}")
            return internal_error()

    def _send_error(self, conn: Connection, status: HTTPStatus, message: Optional[str] = None):
        # The error goes out even when the request deadline is what expired.
        conn.clear_deadline()
        response = (ResponseBuilder()
            .status(status)
            .json({"error": message or status.phrase})
            .close_connection()
            .build())
        conn.send_response(response.to_bytes(self.config.server_name))


def create_app(config: Optional[ServerConfig] = None) -> HTTPServer:
    """
    Build the update server: access logging plus the update and download routes.

        app = create_app(ServerConfig(package_dir="/srv/crx"))
        app.run()
    """
    config = config or ServerConfig()
    server = HTTPServer(config)

    package_dir = Path(config.package_dir)
    if not package_dir.is_dir():
        logger.warning(f"Package directory {package_dir.resolve()} does not exist yet")

    update_handler = UpdateHandler(
        package_dir,
        public_base_url=config.public_base_url,
        fallback_base_url=f"http://{config.host}:{config.port}",
    )
    file_handler = PackageFileHandler(package_dir)

    server.use(LoggingMiddleware(log_format=config.log_format))
    register_routes(server.router, update_handler, file_handler)
    return server


def serve_in_thread(server: HTTPServer, timeout: float = 5.0) -> threading.Thread:
    """Run server.serve() on a daemon thread and wait until it is listening."""
    thread = threading.Thread(target=server.serve, name="crx-server", daemon=True)
    thread.start()
    if not server.wait_until_ready(timeout):
        server.shutdown(timeout)
        raise RuntimeError("Server failed to start")
    return thread
