"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

Writes one access log line per request to the "staticserv.access" logger.

=============================================================================
LOG FORMATS
=============================================================================

    TEXT (default, Apache style):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 127.0.0.1 - - [14/Oct/2025:09:12:44 +0000] "GET /subdir/garble.txt" │
    │ 206 222 0.41ms                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    JSON (--log-format json):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"request_id": "a1b2c3d4", "method": "GET",                         │
    │  "path": "/subdir/garble.txt", "status_code": 206,                  │
    │  "content_length": 222, "range": "bytes=540-761", ...}              │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LOG LEVEL BY STATUS
=============================================================================

    5xx  → ERROR
    4xx  → WARNING
    else → INFO

So "--log-level warning" keeps only failed requests in the output.

The logged size is the announced Content-Length, which for a streamed
file is known before a single byte has been read from disk.

=============================================================================
"""

import time
import json
import uuid
import logging
from dataclasses import dataclass, asdict

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


# Configure separately from the package logger, e.g.
#   logging.getLogger("staticserv.access").addHandler(file_handler)
logger = logging.getLogger("staticserv.access")


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


@dataclass
class RequestLog:
    """One access log record."""

    request_id: str
    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str
    range: str = ""

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Access logging with timing and request IDs.

    Add it first so it times and logs everything the other layers do,
    compression included:

        pipeline.add(LoggingMiddleware(log_format="json"))
        pipeline.add(CompressionMiddleware())
    """

    def __init__(self, log_format: str = "text", include_request_id: bool = True):
        """
        Args:
            log_format: "text" (Apache style) or "json".
            include_request_id: Add an X-Request-ID header to each response.
        """
        self.log_format = log_format
        self.include_request_id = include_request_id

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = str(uuid.uuid4())[:8]
        start_time = time.perf_counter()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "Request failed: %s %s - %s: %s (%.2fms)",
                request.method, request.target, type(e).__name__, e, duration_ms,
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000

        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.target,
            client_ip=request.client_address[0],
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=response.content_length if response.status.allows_body else 0,
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
            range=request.headers.get("range", ""),
        )

        level = level_for_status(entry.status_code)
        if self.log_format == "json":
            logger.log(level, json.dumps(entry.to_dict()))
        else:
            logger.log(level, entry.to_text())

        if self.include_request_id:
            response.headers["X-Request-ID"] = request_id

        return response


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. RequestLog is the structured record, rendered as text or JSON
# 2. The level follows the status so failures stand out
# 3. X-Request-ID ties a client report to its log line
# =============================================================================
