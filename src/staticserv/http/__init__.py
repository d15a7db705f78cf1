"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py       raw bytes → HTTPRequest (method, target, headers)  │
    │ response.py      HTTPResponse + ResponseBuilder → bytes             │
    │ status_codes.py  HTTPStatus enum with reason phrases                │
    │ mime_types.py    file extension → Content-Type                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │ conditional.py   ETag / Last-Modified validators, 304 / 412 logic   │
    │ ranges.py        Range header → RangeSpec, 206 / 416 logic          │
    │ streams.py       FileStream: a lazily read byte window of a file    │
    └─────────────────────────────────────────────────────────────────────┘

The last three depend on staticserv.errors and are imported from their
modules directly.

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import HTTPResponse, ResponseBuilder, format_http_date
from .status_codes import HTTPStatus
from .mime_types import get_mime_type, get_content_type

__all__ = [
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "HTTPResponse",
    "ResponseBuilder",
    "format_http_date",
    "HTTPStatus",
    "get_mime_type",
    "get_content_type",
]
