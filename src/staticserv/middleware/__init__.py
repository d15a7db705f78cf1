"""
=============================================================================
MIDDLEWARE MODULE
=============================================================================

Layers wrapped around the static handler:

    LoggingMiddleware       access log line + X-Request-ID
    CompressionMiddleware   gzip for text bodies (--compress)

Order matters; the first middleware added is the outermost:

    pipeline = MiddlewarePipeline()
    pipeline.add(LoggingMiddleware())
    pipeline.add(CompressionMiddleware())
    handler = pipeline.compose(static.handle)

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline, function_middleware
from .logging import LoggingMiddleware
from .compression import CompressionMiddleware

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "function_middleware",
    "LoggingMiddleware",
    "CompressionMiddleware",
]
