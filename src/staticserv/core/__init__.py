"""
=============================================================================
CORE MODULE
=============================================================================

Networking and concurrency underneath the HTTP layer.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ socket_server.py  bind / listen / accept, optional TLS wrapping     │
    │ connection.py     buffered reads, response + file stream writes     │
    │ thread_pool.py    bounded worker pool, one connection per task      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer, create_ssl_context
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "create_ssl_context",
    "Connection",
    "ConnectionState",
    "ThreadPool",
]
