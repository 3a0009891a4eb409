"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted socket: buffered request reads, response writes, and the
timeouts that keep a slow client from pinning a worker.

=============================================================================
TIMEOUTS
=============================================================================

Three clocks apply to a connection:

    ┌──────────────────────┬──────────────────────────────────────────────┐
    │ timeout              │ idle limit for any single recv()/send()     │
    │ keep_alive_timeout   │ wait for the first byte of a follow-up      │
    │                      │ request on a kept-alive connection          │
    │ request_timeout      │ deadline for one whole request: from its    │
    │                      │ first byte until the response is written    │
    └──────────────────────┴──────────────────────────────────────────────┘

Every socket operation while a request is in flight uses
min(timeout, time left before the deadline). A client trickling one byte
per second therefore cannot hold a worker past request_timeout.

    first byte arrives
        │◄──────────────────── request_timeout ─────────────────────►│
        │  read headers + body │ handler runs │ send head + body       │
                                                                   deadline

=============================================================================
"""

import logging
import socket
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Tuple


logger = logging.getLogger(__name__)


HEADER_TERMINATOR = b"\r\n\r\n"


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


class RequestTooLarge(ValueError):
    """The request grew past max_request_size before it was complete."""


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client (ip, port).
        id: Short random id used to correlate log lines.
        requests_handled: Requests read so far on this connection.
    """

    socket: socket.socket
    address: Tuple[str, int]

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    request_timeout: Optional[float] = 60.0
    max_request_size: int = 64 * 1024

    _buffer: bytes = field(default=b"", repr=False)
    _deadline: Optional[float] = field(default=None, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def age(self) -> float:
        return time.time() - self.created_at

    # =========================================================================
    # DEADLINE
    # =========================================================================

    def start_deadline(self):
        """Start the per-request clock. Called when a request's first byte arrives."""
        if self.request_timeout:
            self._deadline = time.monotonic() + self.request_timeout
        else:
            self._deadline = None

    def clear_deadline(self):
        self._deadline = None

    @property
    def time_remaining(self) -> Optional[float]:
        """Seconds left before the request deadline, or None without one."""
        if self._deadline is None:
            return None
        return self._deadline - time.monotonic()

    def _arm_timeout(self, base: Optional[float]):
        """Set the socket timeout to the tighter of `base` and the deadline."""
        remaining = self.time_remaining
        if remaining is not None:
            if remaining <= 0:
                raise TimeoutError(f"[{self.id}] request deadline exceeded")
            base = remaining if base is None else min(base, remaining)
        self.socket.settimeout(base)

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete request (headers plus Content-Length body).

        Returns:
            The raw request bytes, or None if the client closed the
            connection or an idle keep-alive connection timed out.

        Raises:
            TimeoutError: The first request never arrived, or the request
                          deadline passed while reading.
            RequestTooLarge: More than max_request_size bytes arrived.
        """
        self.state = ConnectionState.READING
        self.clear_deadline()

        try:
            if not self._buffer:
                wait = self.keep_alive_timeout if self.requests_handled else self.timeout
                self.socket.settimeout(wait)
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
        except socket.timeout:
            if self.requests_handled:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError(f"[{self.id}] no request received") from None

        self.start_deadline()

        try:
            while HEADER_TERMINATOR not in self._buffer:
                if not self._fill():
                    return None

            header_end = self._buffer.index(HEADER_TERMINATOR)
            body_start = header_end + len(HEADER_TERMINATOR)
            content_length = self._parse_content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                if not self._fill():
                    break
        except socket.timeout:
            raise TimeoutError(f"[{self.id}] request read timed out") from None

        request_end = body_start + content_length
        request_data = self._buffer[:request_end]
        self._buffer = self._buffer[request_end:]
        self.requests_handled += 1
        return request_data

    def _fill(self) -> bool:
        self._check_size()
        self._arm_timeout(self.timeout)
        chunk = self._recv()
        if not chunk:
            return False
        self._buffer += chunk
        self._check_size()
        return True

    def _check_size(self):
        if len(self._buffer) > self.max_request_size:
            raise RequestTooLarge(f"Request too large: {len(self._buffer)} bytes")

    def _recv(self) -> bytes:
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    @staticmethod
    def _parse_content_length(headers: bytes) -> int:
        for line in headers.split(b"\r\n")[1:]:
            name, sep, value = line.partition(b":")
            if sep and name.strip().lower() == b"content-length":
                try:
                    return max(int(value.strip()), 0)
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """Send bytes within the request deadline. False if the client is gone."""
        return self.send_stream((data,))

    def send_stream(self, chunks: Iterable[bytes]) -> bool:
        """
        Send a sequence of byte chunks (head first, then body pieces).

        Returns:
            True if everything was written, False if the client went away
            or the deadline passed mid-write.
        """
        self.state = ConnectionState.WRITING
        try:
            for chunk in chunks:
                if not chunk:
                    continue
                self._arm_timeout(self.timeout)
                self.socket.sendall(chunk)
            return True
        except (socket.timeout, TimeoutError) as e:
            logger.warning(f"[{self.id}] Send timed out: {e}")
            return False
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False
        finally:
            self.socket.settimeout(self.timeout)

    # =========================================================================
    # CLOSING
    # =========================================================================

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE
        self.clear_deadline()

    def close(self):
        """Half-close, drain briefly, then release the socket. Idempotent."""
        if self.state == ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
