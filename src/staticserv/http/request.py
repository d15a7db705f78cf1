"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses the raw bytes of one HTTP/1.1 request head into an HTTPRequest.

=============================================================================
REQUEST ANATOMY
=============================================================================

    GET /docs/guide%20v2.pdf?download=1 HTTP/1.1\r\n       ← request line
    Host: localhost:8080\r\n                               ┐
    Range: bytes=0-1023\r\n                                │ headers
    If-None-Match: "400-17a3c2b1e9f"\r\n                   ┘
    \r\n                                                   ← end of head

    ┌───────────────┬─────────────────────────────────────────────────────┐
    │ target        │ /docs/guide%20v2.pdf?download=1   (raw, as sent)    │
    │ path          │ /docs/guide v2.pdf                (decoded, no query)│
    │ query_params  │ {"download": ["1"]}                                 │
    │ headers       │ {"host": ..., "range": ..., "if-none-match": ...}   │
    └───────────────┴─────────────────────────────────────────────────────┘

The raw target is kept because path resolution must do its own decoding
and normalization; the decoded path is what logs and error pages show.

Traversal segments ("..") are NOT rejected here. Whether a path escapes
the served root can only be decided after normalization against that
root, and the answer to such a request is a plain 404 from the handler.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import parse_qs, unquote, urlsplit
import re


class HTTPParseError(Exception):
    """
    Raised when a request head cannot be parsed.

    Carries the status the client should receive:

        400 Bad Request                 malformed request line
        405 Method Not Allowed          unknown method token
        413 Payload Too Large           head exceeds max_request_size
        505 HTTP Version Not Supported  anything but HTTP/1.0 and 1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Header names are stored lowercase; HTTP header names are
    case-insensitive and normalizing once at parse time keeps lookups
    simple everywhere else.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    target: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list] = field(default_factory=dict)
    body: bytes = b""
    client_address: tuple = ("", 0)

    def __post_init__(self):
        if not self.target:
            self.target = self.path

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the client wants the connection kept open.

            HTTP/1.1: keep alive unless "Connection: close"
            HTTP/1.0: close unless "Connection: keep-alive"
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return "close" not in connection
        return "keep-alive" in connection

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses raw request bytes into HTTPRequest objects.

    ==========================================================================
    PARSER STEPS
    ==========================================================================

        1. Size check            too large?       → 413
        2. Split head / body     no \\r\\n\\r\\n?   → 400
        3. Request line          METHOD SP TARGET SP VERSION
                                 bad syntax?      → 400
                                 unknown method?  → 405
                                 bad version?     → 505
        4. Headers               "Name: value", names lowercased,
                                 repeats joined with ", "
        5. Body                  exactly Content-Length bytes

    ==========================================================================
    """

    # Every method the static handler may see. Known but unsupported ones
    # reach the handler and get a 405 with an Allow header from there.
    VALID_METHODS = {
        "GET", "HEAD", "POST", "PUT", "DELETE",
        "PATCH", "OPTIONS", "TRACE", "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 64 * 1024):
        self.max_request_size = max_request_size

    def parse(self, data: bytes, client_address: tuple = ("", 0)) -> HTTPRequest:
        """
        Parse one complete request.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes", status_code=413)

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        # latin-1 maps every byte, so no head can fail to decode here
        header_section = data[:header_end].decode("latin-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, target, version = self._parse_request_line(lines[0])
        target = self._decode_target(target)
        headers = self._parse_headers(lines[1:])

        path, query_params = self._split_target(target)

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            target=target,
            headers=headers,
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> tuple:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        return method, target, version

    @staticmethod
    def _decode_target(target: str) -> str:
        """
        Undo the latin-1 decoding for the request target.

        Clients such as curl send non-ASCII paths as raw UTF-8 instead of
        percent-escapes; those bytes are read back as UTF-8 so "/café.txt"
        and "/caf%C3%A9.txt" name the same file. Invalid sequences become
        U+FFFD, as they do inside unquote().
        """
        return target.encode("latin-1").decode("utf-8", "replace")

    @staticmethod
    def _split_target(target: str) -> tuple:
        """
        Split a request target into decoded path and query parameters.

        Absolute-form targets ("http://host/path") are reduced to their
        path; origin-form targets are split by hand so that a leading
        "//" is never mistaken for a network location.
        """
        if target.startswith(("http://", "https://")):
            parts = urlsplit(target)
            raw_path, query = parts.path or "/", parts.query
        else:
            raw_path, _, query = target.partition("?")
            raw_path = raw_path.partition("#")[0]

        path = unquote(raw_path) or "/"
        return path, parse_qs(query, keep_blank_values=True)

    def _parse_headers(self, lines: list) -> Dict[str, str]:
        """
        Parse header lines.

        Obsolete line folding (a line starting with whitespace continues
        the previous header) is accepted. Lines without a colon are
        skipped rather than failing the whole request.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(data: bytes, client_address: tuple = ("", 0),
                  max_size: int = 64 * 1024) -> HTTPRequest:
    """Parse a request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
