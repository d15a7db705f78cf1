"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the pieces together into a runnable static file server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                           HTTPServer                                │
    │                                                                     │
    │   SocketServer ──accept──▶ ThreadPool ──▶ _process_connection()     │
    │                                              │                      │
    │                          ┌───────────────────┘                      │
    │                          ▼                                          │
    │        read_request ─▶ RequestParser ─▶ middleware ─▶ handler       │
    │                                                          │          │
    │        send (head + body or stream) ◀────── HTTPResponse ┘          │
    │                          │                                          │
    │                keep-alive? loop : close                             │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PIPELINE
=============================================================================

    LoggingMiddleware              always
    CompressionMiddleware          with --compress
    StaticFileHandler.handle       serve_static(config)

=============================================================================
"""

import logging
import threading
from typing import Callable, Optional, Tuple

from .config import ServerConfig
from .core import SocketServer, Connection, ThreadPool, create_ssl_context
from .handlers import serve_static
from .http import HTTPRequest, HTTPResponse, RequestParser, HTTPParseError, HTTPStatus
from .http.response import internal_error, method_not_allowed, text_error
from .middleware import CompressionMiddleware, LoggingMiddleware, Middleware, MiddlewarePipeline

logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Multi-threaded HTTP/1.1 static file server.

    Usage:
        server = HTTPServer(ServerConfig(root_dir="./public", listing=True))
        server.run()                     # blocks until Ctrl+C / SIGTERM

    From another thread (tests, embedding):
        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        server.wait_until_ready(5)
        ...
        server.stop()
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Args:
            config: Server configuration. Validated here, so a bad root or
                missing certificate fails before any socket is opened.

        Raises:
            ValueError: The configuration is invalid.
        """
        self.config = (config or ServerConfig()).resolved()
        self.config.validate()

        ssl_context = None
        if self.config.secure:
            ssl_context = create_ssl_context(self.config.certfile, self.config.keyfile)

        self._socket_server = SocketServer(self.config, ssl_context=ssl_context)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._static = serve_static(self.config)

        self._middleware = MiddlewarePipeline()
        self._middleware.add(LoggingMiddleware(log_format=self.config.log_format))
        if self.config.compress:
            self._middleware.add(CompressionMiddleware())

        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware inside the built-in ones. Call before run()."""
        self._middleware.add(middleware)
        return self

    @property
    def address(self) -> Tuple[str, int]:
        return self._socket_server.address

    @property
    def url(self) -> str:
        host, port = self.address
        if ":" in host:
            host = f"[{host}]"
        return f"{self.config.scheme}://{host}:{port}"

    def run(self, setup_logging: bool = True, banner: bool = True):
        """
        Start serving (blocking).

        Args:
            setup_logging: Configure the root logger from the config.
            banner: Print the startup summary once listening.
        """
        if setup_logging:
            self._setup_logging()

        if self.config.http2:
            logger.warning("HTTP/2 is not available; serving HTTP/1.1 instead")

        self._running = True
        self._handler = self._middleware.compose(self._static.handle)
        self._thread_pool.start()

        logger.info("Serving %s on %s:%s",
                    self.config.root_dir, self.config.host, self.config.port)

        if banner:
            # start() blocks in the accept loop, so the banner is printed by
            # a helper thread once the socket is bound and the port is known
            threading.Thread(target=self._announce, name="banner", daemon=True).start()

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def _announce(self):
        if self._socket_server.wait_until_ready(10):
            self._print_startup_banner()

    def stop(self):
        """Stop accepting connections; run() returns once workers finish."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def _print_startup_banner(self):
        flags = []
        if self.config.listing:
            flags.append("listing")
        if self.config.compress:
            flags.append("gzip")
        if self.config.custom_404:
            flags.append("custom 404")
        flags.append(f"dotfiles={self.config.dotfiles.value}")

        print()
        print("╔══════════════════════════════════════════════════════════════╗")
        print(f"  {self.config.server_name} serving {self.config.root_dir}")
        print(f"  📍 {self.url}")
        print(f"  👷 Workers: {self.config.min_workers}-{self.config.max_workers} threads")
        print(f"  ⚙  {', '.join(flags)}")
        print("  Press Ctrl+C to stop")
        print("╚══════════════════════════════════════════════════════════════╝")
        print()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("staticserv").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.close(timeout=self.config.keep_alive_timeout + 1)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Queue a connection for a worker; answer 503 when the queue is full."""
        submitted = self._thread_pool.try_submit(self._process_connection, conn)

        if not submitted:
            logger.warning("[%s] Thread pool full, rejecting connection", conn.id)
            if conn.tls_handshake():
                self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """
        Keep-alive loop for one connection (runs in a worker thread).

            read ─▶ parse ─▶ handle ─▶ send ─▶ keep alive? ─┐
             ▲                                              │
             └──────────────────────────────────────────────┘
        """
        with conn:
            if not conn.tls_handshake():
                return

            while self._running:
                try:
                    raw_request = conn.read_request()
                    if raw_request is None:
                        break

                    try:
                        request = self._parser.parse(raw_request, conn.address)
                    except HTTPParseError as e:
                        logger.info("[%s] Bad request: %s", conn.id, e)
                        if e.status_code == HTTPStatus.METHOD_NOT_ALLOWED:
                            response = method_not_allowed()
                            response.headers["Connection"] = "close"
                            conn.send_response(response.to_bytes(self.config.server_name))
                        else:
                            self._send_error(conn, HTTPStatus(e.status_code), str(e))
                        break

                    if not self._respond(conn, request):
                        break

                    conn.set_keep_alive()

                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break
                except ValueError as e:
                    logger.info("[%s] %s", conn.id, e)
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, "Request too large")
                    break
                except Exception:
                    logger.exception("[%s] Connection error", conn.id)
                    break

    def _respond(self, conn: Connection, request: HTTPRequest) -> bool:
        """
        Run one request through the pipeline and write the response.

        Returns:
            True if the connection may serve another request.
        """
        try:
            response = self._handler(request)
        except Exception:
            logger.exception("[%s] Handler error", conn.id)
            response = internal_error()

        try:
            keep_alive = (
                self.config.keep_alive
                and request.is_keep_alive
                and response.headers.get("Connection") != "close"
            )
            if keep_alive:
                response.headers.setdefault("Connection", "keep-alive")
                response.headers.setdefault(
                    "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
                )
            else:
                response.headers["Connection"] = "close"

            if request.method == "HEAD":
                response.strip_body()

            if response.stream is not None and response.status.allows_body:
                sent = conn.send_stream(response.head_bytes(self.config.server_name), response.stream)
            else:
                sent = conn.send_response(response.to_bytes(self.config.server_name))

            return sent and keep_alive
        finally:
            response.close()

    def _send_error(self, conn: Connection, status: HTTPStatus, message: str):
        """Error for failures before a request reaches the handler."""
        response = text_error(status, message)
        conn.send_response(response.to_bytes(self.config.server_name))


def create_server(config: Optional[ServerConfig] = None) -> HTTPServer:
    """
    Create a static file server.

    Example:
        create_server(ServerConfig(root_dir="site", port=3000)).run()
    """
    return HTTPServer(config)
