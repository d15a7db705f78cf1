"""
=============================================================================
CONNECTION
=============================================================================

Wraps one accepted client socket (plain TCP or TLS) with buffered request
reading, response writing and a clean shutdown.

=============================================================================
CONNECTION LIFECYCLE
=============================================================================

    NEW ──▶ READING ──▶ PROCESSING ──▶ WRITING ──▶ KEEP_ALIVE ──┐
             ▲                                                  │
             └────────────────── next request ──────────────────┘
                                     │ idle timeout / Connection: close
                                     ▼
                                  CLOSING ──▶ CLOSED

=============================================================================
SENDING FILES
=============================================================================

Small bodies (listings, error pages) go out in a single sendall().
Files go out as head + chunks:

    send_response(response.head_bytes())     status line + headers
    for chunk in FileStream:                 64 KiB at a time
        sendall(chunk)

Once the head is on the wire the status can no longer change. If the
file cannot be read to the end, or the client goes away, send_stream()
returns False and the connection is closed: the client sees a short
body and knows the transfer failed.

=============================================================================
"""

import logging
import re
import socket
import ssl
import time
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid

from ..errors import InternalError
from ..http.streams import FileStream

logger = logging.getLogger(__name__)

_HEAD_END = b"\r\n\r\n"
_CONTENT_LENGTH = re.compile(rb"^content-length[ \t]*:[ \t]*(\d+)[ \t]*\r?$", re.IGNORECASE | re.MULTILINE)


def _content_length(head: bytes) -> int:
    """Content-Length from raw header bytes, 0 if absent or not a number."""
    match = _CONTENT_LENGTH.search(head)
    return int(match.group(1)) if match else 0


class ConnectionState(Enum):
    NEW = "new"
    HANDSHAKE = "handshake"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The client socket, possibly an ssl.SSLSocket.
        address: Client's (ip, port) tuple.
        id: Short identifier used in log lines.
        requests_handled: Requests read so far on this connection.
    """

    socket: socket.socket
    address: tuple
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0            # first request
    keep_alive_timeout: float = 5.0           # every later request
    max_request_size: int = 64 * 1024

    _buffer: bytearray = field(default_factory=bytearray, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def is_tls(self) -> bool:
        return isinstance(self.socket, ssl.SSLSocket)

    @property
    def age(self) -> float:
        return time.time() - self.created_at

    def tls_handshake(self) -> bool:
        """
        Complete the TLS handshake on a wrapped socket.

        The listener wraps accepted sockets with do_handshake_on_connect
        disabled so a slow or broken client stalls a worker, never the
        accept loop.

        Returns:
            True when the connection is ready for HTTP (or is plain TCP).
        """
        if not self.is_tls:
            return True

        self.state = ConnectionState.HANDSHAKE
        try:
            self.socket.do_handshake()
        except (ssl.SSLError, OSError) as e:
            logger.debug("[%s] TLS handshake failed: %s", self.id, e)
            return False

        logger.debug("[%s] TLS %s, ALPN %s", self.id,
                     self.socket.version(), self.socket.selected_alpn_protocol())
        return True

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete request (head plus Content-Length body).

        Bytes past the end of the request stay buffered for the next call,
        so pipelined requests are handled in order.

        Returns:
            The request bytes, or None when the client closed the
            connection or an idle keep-alive connection timed out.

        Raises:
            TimeoutError: The first request did not arrive in time.
            ValueError: The request exceeds max_request_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()
        idle = self.requests_handled > 0
        if idle:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            if self._fill(lambda: _HEAD_END in self._buffer) < 0:
                return None
            head_len = self._buffer.find(_HEAD_END) + len(_HEAD_END)
            wanted = head_len + _content_length(self._buffer[:head_len])

            # A short body is passed on as-is; the peer closed mid-upload
            self._fill(lambda: len(self._buffer) >= wanted)
        except socket.timeout:
            if idle:
                logger.debug("[%s] Keep-alive timeout", self.id)
                return None
            raise TimeoutError("Request read timeout")
        finally:
            if self.state != ConnectionState.CLOSED:
                self.socket.settimeout(self.timeout)

        data = bytes(self._buffer[:wanted])
        del self._buffer[:wanted]

        self.requests_handled += 1
        self.state = ConnectionState.PROCESSING
        return data

    def _fill(self, done) -> int:
        """
        recv() into the buffer until done() holds.

        Returns the buffer length, or -1 if the peer hung up first.
        """
        while not done():
            try:
                chunk = self.socket.recv(self.buffer_size)
            except (ConnectionResetError, BrokenPipeError, ssl.SSLError):
                chunk = b""
            if not chunk:
                return -1
            self._buffer += chunk
            self.last_activity = time.time()
            if len(self._buffer) > self.max_request_size:
                raise ValueError(f"Request too large: {len(self._buffer)} bytes")
        return len(self._buffer)

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send bytes to the client with sendall().

        Returns:
            True if everything was sent, False if the connection is gone.
        """
        self.state = ConnectionState.WRITING
        self.last_activity = time.time()

        try:
            self.socket.sendall(data)
            self.last_activity = time.time()
            return True
        except OSError as e:
            logger.warning("[%s] Send failed: %s", self.id, e)
            return False

    def send_stream(self, head: bytes, stream: FileStream) -> bool:
        """
        Send a response head followed by a file body, chunk by chunk.

        The stream is closed in every outcome.

        Returns:
            True if the whole body was sent. False if the client went away
            or the file could not be read to the end; the connection must
            not be reused then.
        """
        try:
            if not self.send_response(head):
                return False
            for chunk in stream:
                self.socket.sendall(chunk)
                self.last_activity = time.time()
            return True
        except InternalError as e:
            logger.error("[%s] Aborting body: %s", self.id, e)
            return False
        except OSError as e:
            logger.warning("[%s] Stream failed: %s", self.id, e)
            return False
        finally:
            stream.close()

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection: shutdown(SHUT_WR), drain, close().

        Draining what the client still sends keeps the kernel from
        answering our FIN with a RST, which could destroy the tail of the
        last response before the client has read it.
        """
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
        except (OSError, ValueError):
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug("[%s] Connection closed after %d requests", self.id, self.requests_handled)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
