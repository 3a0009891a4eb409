"""
=============================================================================
CORE NETWORKING
=============================================================================

    SocketServer   listening socket + accept loop
    Connection     one client socket: buffered reads, deadline-bound writes
    ThreadPool     bounded worker threads that process connections

The accept loop never does request work itself. It wraps the socket in a
Connection and hands it to the pool. When the pool is saturated the
connection is answered with 503 by the caller.
=============================================================================
"""

from .connection import Connection, ConnectionState, RequestTooLarge
from .socket_server import SocketServer
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "RequestTooLarge",
    "ThreadPool",
]
