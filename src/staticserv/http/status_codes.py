"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes a static file server actually emits, with their reason
phrases (RFC 9110).

=============================================================================
WHERE EACH CODE COMES FROM
=============================================================================

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  200   │ Full file, index file or directory listing                │
    │  206   │ Satisfiable byte range                                    │
    │  304   │ Client cache is fresh (If-None-Match / If-Modified-Since) │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  400   │ Malformed request line or headers                         │
    │  404   │ Missing path, traversal attempt, no index + no listing    │
    │  405   │ Any method other than GET / HEAD                          │
    │  408   │ Client connected but never finished a request             │
    │  412   │ If-Match / If-Unmodified-Since precondition failed        │
    │  413   │ Request head larger than max_request_size                 │
    │  416   │ Malformed or out of bounds Range header                   │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  500   │ Unexpected I/O error before headers were sent             │
    │  503   │ Worker queue is full                                      │
    │  505   │ Anything but HTTP/1.0 or HTTP/1.1                         │
    └────────┴───────────────────────────────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum members compare equal to plain integers:

        >>> HTTPStatus.PARTIAL_CONTENT == 206
        True
        >>> HTTPStatus.PARTIAL_CONTENT.phrase
        'Partial Content'
    """

    # 2xx SUCCESS
    OK = 200
    NO_CONTENT = 204
    PARTIAL_CONTENT = 206                # Range request fulfilled

    # 3xx REDIRECTION
    MOVED_PERMANENTLY = 301
    FOUND = 302
    NOT_MODIFIED = 304                   # Cached copy still valid

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PRECONDITION_FAILED = 412            # If-Match / If-Unmodified-Since
    PAYLOAD_TOO_LARGE = 413
    URI_TOO_LONG = 414
    RANGE_NOT_SATISFIABLE = 416
    REQUEST_HEADER_FIELDS_TOO_LARGE = 431

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    SERVICE_UNAVAILABLE = 503            # Worker queue full
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """
        Reason phrase for the status line.

            HTTP/1.1 206 Partial Content
                     ─── ───────────────
                      │         │
                      │         └── phrase
                      └──────────── status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_client_error(self) -> bool:
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self < 600

    @property
    def is_error(self) -> bool:
        return self >= 400

    @property
    def allows_body(self) -> bool:
        """
        Whether a response with this status may carry a body.

        RFC 9110: 1xx, 204 and 304 responses never have content, and
        they must not be framed with Content-Length either.
        """
        return self >= 200 and self not in (HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED)


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.PARTIAL_CONTENT: "Partial Content",

    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.NOT_MODIFIED: "Not Modified",

    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PRECONDITION_FAILED: "Precondition Failed",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.URI_TOO_LONG: "URI Too Long",
    HTTPStatus.RANGE_NOT_SATISFIABLE: "Range Not Satisfiable",
    HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE: "Request Header Fields Too Large",

    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
