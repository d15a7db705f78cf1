"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses and serializes them for the socket.

=============================================================================
TWO KINDS OF BODY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  IN-MEMORY BODY (listings, error pages)                             │
    │                                                                     │
    │    HTTPResponse(body=b"<!DOCTYPE html>...")                         │
    │    to_bytes()  →  status line + headers + CRLF + body               │
    ├─────────────────────────────────────────────────────────────────────┤
    │  STREAMED BODY (files)                                              │
    │                                                                     │
    │    HTTPResponse(stream=FileStream(...),                             │
    │                 headers={"Content-Length": "1028", ...})            │
    │    head_bytes()  →  status line + headers + CRLF                    │
    │    then the connection iterates the stream chunk by chunk           │
    └─────────────────────────────────────────────────────────────────────┘

Content-Length is filled in automatically for in-memory bodies. For
streamed bodies the handler sets it, because only the handler knows the
size of the byte window it opened. Responses whose status forbids a body
(204, 304) are never framed with Content-Length.

=============================================================================
BUILDER PATTERN
=============================================================================

    (ResponseBuilder()
        .status(HTTPStatus.PARTIAL_CONTENT)
        .header("Content-Range", "bytes 540-761/1028")
        .header("Content-Length", "222")
        .stream(FileStream(path, 540, 222))
        .build())

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import formatdate
from typing import TYPE_CHECKING, Dict, Optional, Union

from .status_codes import HTTPStatus

if TYPE_CHECKING:
    from .streams import FileStream


NO_CACHE = "no-cache"


@dataclass
class HTTPResponse:
    """
    An HTTP response ready to be written to a client.

    Use ResponseBuilder to construct one; the dataclass itself is a plain
    container that middleware is free to modify on the way out.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"
    stream: Optional["FileStream"] = field(default=None, repr=False)

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def content_length(self) -> int:
        """
        Number of body bytes this response announces.

        The explicit header wins (HEAD responses and streams rely on it);
        otherwise it is the size of the in-memory body.
        """
        declared = self.headers.get("Content-Length")
        if declared is not None:
            try:
                return int(declared)
            except ValueError:
                pass
        if self.stream is not None:
            return self.stream.length
        return len(self.body)

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Replace the body, dropping any stream. Strings are UTF-8 encoded."""
        self.close()
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def strip_body(self) -> "HTTPResponse":
        """
        Remove the body but keep the headers a GET would have sent.

        Used for HEAD: Content-Length is pinned to the size the body would
        have had before the bytes are discarded.
        """
        if self.status.allows_body and "Content-Length" not in self.headers:
            self.headers["Content-Length"] = str(self.content_length)
        self.close()
        self.body = b""
        return self

    def close(self) -> None:
        """Release the body stream, if any. Safe to call repeatedly."""
        if self.stream is not None:
            self.stream.close()
            self.stream = None

    def head_bytes(self, server_name: str = "staticserv/1.0") -> bytes:
        """
        Serialize the status line and headers, including the blank line.

        =====================================================================
        AUTO-ADDED HEADERS
        =====================================================================

            Content-Length   in-memory bodies only, never for 204/304
            Date             RFC 9110 requires it from origin servers
            Server           identifies the software

        =====================================================================
        """
        response_headers = dict(self.headers)

        if self.status.allows_body:
            if "Content-Length" not in response_headers:
                response_headers["Content-Length"] = str(self.content_length)
        else:
            response_headers.pop("Content-Length", None)

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        return "\r\n".join(lines).encode("latin-1", errors="replace") + b"\r\n"

    def to_bytes(self, server_name: str = "staticserv/1.0") -> bytes:
        """
        Serialize head and in-memory body in one buffer.

        A streamed body is not included; send it with Connection.send_stream.
        """
        body = self.body if self.status.allows_body else b""
        return self.head_bytes(server_name) + body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

    Each method returns self so calls can be chained; build() returns the
    finished response. A fresh builder starts with no staged headers,
    which is what error paths rely on to discard everything a failed
    attempt had prepared.
    """

    def __init__(self, server_name: str = "staticserv/1.0"):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""
        self._stream: Optional["FileStream"] = None
        self._server_name = server_name

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    # =========================================================================
    # HEADERS
    # =========================================================================

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def no_cache(self) -> "ResponseBuilder":
        """Cache-Control for listings and errors: always revalidate."""
        return self.header("Cache-Control", NO_CACHE)

    def cache(self, max_age: int = 31536000) -> "ResponseBuilder":
        return self.header("Cache-Control", f"public, max-age={max_age}")

    def close_connection(self) -> "ResponseBuilder":
        return self.header("Connection", "close")

    # =========================================================================
    # BODY
    # =========================================================================

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    def html(self, html: Union[str, bytes]) -> "ResponseBuilder":
        self._body = html.encode("utf-8") if isinstance(html, str) else html
        self._headers["Content-Type"] = "text/html; charset=utf-8"
        return self

    def stream(self, stream: "FileStream") -> "ResponseBuilder":
        """Send the body from a FileStream. Content-Length must be set by the caller."""
        self._stream = stream
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
            stream=self._stream,
        )

    def to_bytes(self) -> bytes:
        return self.build().to_bytes(self._server_name)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(value: Union[datetime, float]) -> str:
    """
    Format a datetime or POSIX timestamp as an IMF-fixdate.

        >>> format_http_date(784111777)
        'Sun, 06 Nov 1994 08:49:37 GMT'

    HTTP dates are always GMT and have one-second resolution.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.timestamp()
    return formatdate(int(value), usegmt=True)


def text_error(status: HTTPStatus, message: Optional[str] = None) -> HTTPResponse:
    """Small plain-text error used by the transport layer (400, 408, 503...)."""
    return (ResponseBuilder()
        .status(status)
        .text(f"{message or status.phrase}\n")
        .no_cache()
        .close_connection()
        .build())


def method_not_allowed(allowed: str = "GET, HEAD") -> HTTPResponse:
    """405 with the Allow header and an empty body."""
    return (ResponseBuilder()
        .status(HTTPStatus.METHOD_NOT_ALLOWED)
        .header("Allow", allowed)
        .header("Content-Length", "0")
        .no_cache()
        .build())


def internal_error() -> HTTPResponse:
    """Generic 500 built from scratch so no staged header can leak."""
    return (ResponseBuilder()
        .status(HTTPStatus.INTERNAL_SERVER_ERROR)
        .text("Internal Server Error\n")
        .no_cache()
        .build())
