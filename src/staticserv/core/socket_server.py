"""
=============================================================================
SOCKET SERVER
=============================================================================

The TCP listener: bind, listen, accept, and hand each connection off.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  start(handler)                                                     │
    │     ├──► _create_socket()   SO_REUSEADDR, TCP_NODELAY, 1s timeout   │
    │     ├──► bind() + listen()                                          │
    │     ├──► _setup_signals()   SIGINT / SIGTERM → shutdown()           │
    │     └──► _accept_loop()                                             │
    │             accept() → [TLS wrap] → Connection → handler(conn)      │
    │                                                                     │
    │  shutdown()   clear the running flag; the loop exits within 1s      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
TLS
=============================================================================

With an ssl.SSLContext, accepted sockets are wrapped before they become
Connections. The handshake itself is deferred to the worker thread
(do_handshake_on_connect=False); doing it here would let one slow client
block every other accept().

=============================================================================
"""

import socket
import signal
import ssl
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection

logger = logging.getLogger(__name__)


def create_ssl_context(certfile: str, keyfile: str) -> ssl.SSLContext:
    """
    Server-side TLS context for HTTP/1.1.

    Only "http/1.1" is offered through ALPN, so clients that would prefer
    h2 settle on HTTP/1.1 during the handshake.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.load_cert_chain(certfile=certfile, keyfile=keyfile)
    context.set_alpn_protocols(["http/1.1"])
    return context


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        server = SocketServer(config, ssl_context=None)
        server.start(handle_connection)   # blocks until shutdown()
    """

    def __init__(self, config: ServerConfig, ssl_context: Optional[ssl.SSLContext] = None):
        self.config = config
        self.ssl_context = ssl_context

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._shutdown_event = threading.Event()
        self._ready_event = threading.Event()
        self._original_handlers: dict = {}
        self._bound_address: Optional[Tuple[str, int]] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        The address actually bound, once listening.

        With port 0 the OS picks a free port; this reports which one.
        """
        if self._bound_address is not None:
            return self._bound_address
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.config.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)

        # Restart without waiting for TIME_WAIT sockets to expire
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Headers and small bodies go out immediately instead of being
        # held back by Nagle's algorithm
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # accept() wakes up every second to check the running flag
        sock.settimeout(1.0)
        return sock

    def _setup_signals(self):
        """
        Install SIGTERM/SIGINT handlers that trigger a graceful shutdown.

        Python only allows this from the main thread. Tests and embedding
        applications run the server in a worker thread and stop it by
        calling shutdown() instead.
        """
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            logger.info("Received %s, initiating shutdown...", signal.Signals(signum).name)
            self.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self):
        while self._original_handlers:
            signal.signal(*self._original_handlers.popitem())

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and accept connections until shutdown() is called.

        Raises:
            OSError: The address could not be bound (in use, no permission).
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error("Failed to bind to %s:%s: %s", self.config.host, self.config.port, e)
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)
        self._bound_address = self._socket.getsockname()[:2]

        self._running = True
        self._shutdown_event.clear()
        self._setup_signals()

        host, port = self.address
        logger.info("Server listening on %s:%s", host, port)
        self._ready_event.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error("Accept error: %s", e)
                break

            logger.debug("Accepted connection from %s:%s", client_address[0], client_address[1])

            if self.ssl_context is not None:
                try:
                    client_socket = self.ssl_context.wrap_socket(
                        client_socket,
                        server_side=True,
                        do_handshake_on_connect=False,
                    )
                except (ssl.SSLError, OSError) as e:
                    logger.debug("TLS wrap failed for %s: %s", client_address[0], e)
                    client_socket.close()
                    continue

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def shutdown(self):
        """Stop accepting connections. Safe to call repeatedly and from any thread."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False
        self._shutdown_event.set()

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._ready_event.clear()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. Returns False on timeout."""
        return self._ready_event.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        return self._shutdown_event.wait(timeout)
