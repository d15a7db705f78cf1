"""
=============================================================================
MIDDLEWARE INTERFACE
=============================================================================

Middleware wraps the static handler with cross-cutting behaviour: access
logging and gzip compression. Each layer sees the request on the way in
and the response on the way out.

    Request ─────────────────────────────────────────────────────►

    ┌───────────┐     ┌─────────────┐     ┌───────────────────┐
    │  Logging  │ ──▶ │ Compression │ ──▶ │ StaticFileHandler │
    └───────────┘     └─────────────┘     └───────────────────┘
     start timer       read Accept-         resolve, stat,
     ...               Encoding ...         build response
     log line,         gzip body,
     X-Request-ID      Vary header

    ◄───────────────────────────────────────────────────── Response

A layer is any callable `layer(request, next) -> HTTPResponse`. It either
calls `next(request)` and adjusts the result, or answers by itself.

=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from functools import partial
from typing import Callable, Iterator, List, Optional

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse

logger = logging.getLogger(__name__)

# The rest of the chain as seen from one layer
NextHandler = Callable[[HTTPRequest], HTTPResponse]
LayerFunc = Callable[[HTTPRequest, NextHandler], HTTPResponse]


class Middleware(ABC):
    """
    Base class for middleware layers.

        class ServerTiming(Middleware):
            def __call__(self, request, next):
                started = time.perf_counter()
                response = next(request)
                elapsed = (time.perf_counter() - started) * 1000
                response.set_header("Server-Timing", f"total;dur={elapsed:.1f}")
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        ...

    @property
    def name(self) -> str:
        return type(self).__name__


class _FunctionLayer(Middleware):
    """Adapter that lets a plain `(request, next)` function sit in a pipeline."""

    def __init__(self, func: LayerFunc, name: Optional[str] = None):
        self._func = func
        self._label = name or getattr(func, "__name__", "layer")

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        return self._func(request, next)

    @property
    def name(self) -> str:
        return self._label


def function_middleware(func: Optional[LayerFunc] = None, *, name: Optional[str] = None):
    """
    Turn a `(request, next) -> response` function into a Middleware.

        @function_middleware
        def no_sniff(request, next):
            response = next(request)
            response.set_header("X-Content-Type-Options", "nosniff")
            return response

        @function_middleware(name="csp")
        def content_security_policy(request, next):
            ...
    """
    if func is None:
        return partial(function_middleware, name=name)
    return _FunctionLayer(func, name)


class MiddlewarePipeline:
    """
    Ordered list of layers composed around a final handler.

    The first layer added is the outermost:

        pipeline = MiddlewarePipeline(LoggingMiddleware(), CompressionMiddleware())
        handler = pipeline.compose(static.handle)

        handler(request)  ==  Logging(Compression(static.handle))(request)
    """

    def __init__(self, *layers: Middleware):
        self._layers: List[Middleware] = list(layers)

    def add(self, layer: Middleware) -> "MiddlewarePipeline":
        self._layers.append(layer)
        logger.debug("Middleware added: %s", layer.name)
        return self

    def compose(self, handler: NextHandler) -> NextHandler:
        """Bind every layer to the one inside it; returns the outermost callable."""
        for layer in reversed(self._layers):
            handler = partial(layer, next=handler)
        return handler

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._layers)
