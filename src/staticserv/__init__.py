"""
=============================================================================
STATICSERV
=============================================================================

A static file server for local development, built on raw sockets and a
thread pool.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ core/        SocketServer, Connection, ThreadPool                   │
    │ http/        request parsing, responses, conditional requests,      │
    │              byte ranges, file streams                              │
    │ handlers/    path resolution, directory listings, static handler    │
    │ middleware/  access logging, gzip compression                       │
    │ config.py    ServerConfig                                           │
    │ errors.py    ServeError hierarchy                                   │
    │ server.py    HTTPServer                                             │
    └─────────────────────────────────────────────────────────────────────┘

Quick start:

    from staticserv import HTTPServer, ServerConfig

    HTTPServer(ServerConfig(root_dir="./public", listing=True)).run()

=============================================================================
"""

__version__ = "1.0.0"

from .server import HTTPServer, create_server
from .config import ServerConfig, DotfilePolicy

__all__ = ["HTTPServer", "create_server", "ServerConfig", "DotfilePolicy", "__version__"]
