"""
=============================================================================
COMPRESSION MIDDLEWARE
=============================================================================

gzip-compresses text responses for clients that accept it.

    Without compression:           With compression:
    ┌────────────────────┐         ┌────────────────────┐
    │ app.js   180 KB    │   ──▶   │ app.js    48 KB    │
    └────────────────────┘         │ Content-Encoding:  │
                                   │   gzip             │
                                   │ Vary:              │
                                   │   Accept-Encoding  │
                                   └────────────────────┘

=============================================================================
WHAT GETS COMPRESSED
=============================================================================

    ┌──────────────────────────────────────┬───────────────────────────────┐
    │ 204 / 206 / 304 / 412 / 416          │ never (ranges and validators  │
    │                                      │ refer to the identity bytes)  │
    │ listing / error page (in memory)     │ if >= min_size                │
    │ 200 file stream                      │ if min_size <= size <= max_size│
    │ image/png, application/zip ...       │ never (already compressed)    │
    └──────────────────────────────────────┴───────────────────────────────┘

A compressed file response is a different representation than the one
its strong ETag names, so the ETag is weakened to W/"...". Conditional
requests compare If-None-Match weakly, so 304s keep working.

HEAD responses are compressed exactly like the matching GET, so both
report the same Content-Encoding, Content-Length, Vary and ETag. The
connection discards the HEAD body afterwards.

=============================================================================
"""

import gzip
import logging
from typing import Optional, Set

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from ..http.status_codes import HTTPStatus

logger = logging.getLogger(__name__)


def accepts_gzip(accept_encoding: str) -> bool:
    """
    Whether an Accept-Encoding value allows gzip.

        >>> accepts_gzip("gzip, deflate, br")
        True
        >>> accepts_gzip("gzip;q=0, identity")
        False
    """
    for item in accept_encoding.split(","):
        coding, _, params = item.strip().partition(";")
        if coding.strip().lower() not in ("gzip", "*"):
            continue
        params = params.replace(" ", "").lower()
        if params.startswith("q="):
            try:
                return float(params[2:]) > 0
            except ValueError:
                return False
        return True
    return False


class CompressionMiddleware(Middleware):
    """
    Response compression middleware.

    Usage:
        pipeline.add(LoggingMiddleware())
        pipeline.add(CompressionMiddleware(min_size=512, level=6))
    """

    COMPRESSIBLE_TYPES: Set[str] = {
        "text/html",
        "text/css",
        "text/plain",
        "text/xml",
        "text/csv",
        "text/markdown",
        "text/javascript",
        "application/json",
        "application/javascript",
        "application/manifest+json",
        "application/xml",
        "application/xhtml+xml",
        "image/svg+xml",
    }

    SKIP_STATUSES = frozenset({
        HTTPStatus.NO_CONTENT,
        HTTPStatus.PARTIAL_CONTENT,
        HTTPStatus.NOT_MODIFIED,
        HTTPStatus.PRECONDITION_FAILED,
        HTTPStatus.RANGE_NOT_SATISFIABLE,
    })

    def __init__(
        self,
        min_size: int = 1024,
        max_size: int = 10 * 1024 * 1024,
        level: int = 6,
        compressible_types: Optional[Set[str]] = None,
    ):
        """
        Args:
            min_size: Smallest body worth compressing, in bytes.
            max_size: Largest file read into memory for compression.
                Bigger files are streamed uncompressed.
            level: gzip level, 1 (fastest) to 9 (smallest).
            compressible_types: Base content types eligible for gzip.
        """
        self.min_size = min_size
        self.max_size = max_size
        self.level = level
        self.compressible_types = compressible_types or self.COMPRESSIBLE_TYPES

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        wants_gzip = accepts_gzip(request.headers.get("accept-encoding", ""))

        response = next(request)

        # HEAD goes through the same steps so its headers match the GET
        if not wants_gzip or not self._should_compress(response):
            return response

        if response.stream is not None:
            # read_all() closes the stream; the body lives in memory from here on
            original = response.stream.read_all()
            response.stream = None
        else:
            original = response.body

        compressed = gzip.compress(original, compresslevel=self.level)
        if len(compressed) >= len(original):
            response.body = original
            return response

        response.body = compressed
        response.headers["Content-Encoding"] = "gzip"
        response.headers["Content-Length"] = str(len(compressed))

        etag = response.headers.get("ETag")
        if etag and not etag.startswith("W/"):
            response.headers["ETag"] = "W/" + etag

        vary = response.headers.get("Vary", "")
        if "Accept-Encoding" not in vary:
            response.headers["Vary"] = f"{vary}, Accept-Encoding".lstrip(", ")

        logger.debug("gzip %s: %d -> %d bytes", request.path, len(original), len(compressed))
        return response

    def _should_compress(self, response: HTTPResponse) -> bool:
        if response.status in self.SKIP_STATUSES or not response.status.allows_body:
            return False

        if "Content-Encoding" in response.headers:
            return False

        # "text/css; charset=utf-8" → "text/css"
        content_type = response.headers.get("Content-Type", "")
        base_type = content_type.split(";")[0].strip().lower()
        if base_type not in self.compressible_types:
            return False

        if response.stream is not None:
            if response.status != HTTPStatus.OK:
                return False
            size = response.stream.length
            return self.min_size <= size <= self.max_size

        return len(response.body) >= self.min_size


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. Only full 200 bodies are compressed, for GET and HEAD alike
# 2. Files are buffered up to max_size; larger ones stream as-is
# 3. Content-Length, Vary and a weakened ETag describe the gzip bytes
# =============================================================================
