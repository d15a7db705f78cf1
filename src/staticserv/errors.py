"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every failure the static handler can report is one of these exceptions.
Each carries the HTTP status it maps to, the same way HTTPParseError
carries a status code for malformed requests.

    ┌──────────────────────────┬────────┬─────────────────────────────────┐
    │ Exception                │ Status │ Raised when                      │
    ├──────────────────────────┼────────┼─────────────────────────────────┤
    │ NotFound                 │  404   │ missing path, no index and no    │
    │   └── PathTraversal      │  404   │ listing, path escaping the root  │
    │ MethodNotAllowed         │  405   │ anything but GET / HEAD          │
    │ PreconditionFailed       │  412   │ If-Match / If-Unmodified-Since   │
    │ RangeNotSatisfiable      │  416   │ malformed or out of bounds Range │
    │ InternalError            │  500   │ unexpected I/O failure           │
    └──────────────────────────┴────────┴─────────────────────────────────┘

The handler catches these at its boundary and turns them into responses.
Clients never see a traceback or a filesystem path.

=============================================================================
"""

from typing import Dict, Iterable, Optional

from .http.status_codes import HTTPStatus


class ServeError(Exception):
    """Base class for errors that translate directly into an HTTP status."""

    status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "", status: Optional[HTTPStatus] = None):
        super().__init__(message or self.status.phrase)
        if status is not None:
            self.status = status


class NotFound(ServeError):
    status = HTTPStatus.NOT_FOUND

    def __init__(self, path: str = ""):
        super().__init__(f"Not found: {path}" if path else "")
        self.path = path


class PathTraversal(NotFound):
    """
    The canonical form of the requested path lies outside the served root.

    It is a NotFound on purpose: the client learns nothing about what
    exists beyond the root.
    """


class MethodNotAllowed(ServeError):
    status = HTTPStatus.METHOD_NOT_ALLOWED

    def __init__(self, method: str, allowed: Iterable[str] = ("GET", "HEAD")):
        super().__init__(f"Method not allowed: {method}")
        self.method = method
        self.allowed = tuple(allowed)

    @property
    def allow_header(self) -> str:
        return ", ".join(self.allowed)


class PreconditionFailed(ServeError):
    """
    If-Match or If-Unmodified-Since did not hold.

    `validators` are the resource's current ETag and Last-Modified, which
    the 412 response still reports.
    """

    status = HTTPStatus.PRECONDITION_FAILED

    def __init__(self, path: str = "", validators: Optional[Dict[str, str]] = None):
        super().__init__(f"Precondition failed: {path}" if path else "")
        self.path = path
        self.validators = dict(validators or {})


class RangeNotSatisfiable(ServeError):
    status = HTTPStatus.RANGE_NOT_SATISFIABLE

    def __init__(self, size: int, header: str = ""):
        super().__init__(f"Range not satisfiable: {header!r} for {size} bytes")
        self.size = size
        self.header = header

    @property
    def content_range(self) -> str:
        return f"bytes */{self.size}"


class InternalError(ServeError):
    status = HTTPStatus.INTERNAL_SERVER_ERROR
