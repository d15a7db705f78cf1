"""
=============================================================================
STATIC FILE HANDLER
=============================================================================

Answers GET and HEAD requests from a directory on disk.

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    ┌─────────┐     ┌──────────┐     ┌────────────┐     ┌─────────┐
    │  START  │ ──▶ │ RESOLVE  │ ──▶ │ FOUND_FILE │ ──▶ │ RESPOND │
    └─────────┘     └────┬─────┘     ├────────────┤     └─────────┘
         │               │           │ FOUND_DIR  │ ──▶ index.html / index.htm
         │ not GET/HEAD  │           ├────────────┤     or listing or 404
         ▼               │           │ NOT_FOUND  │ ──▶ 404
        405              │           └────────────┘
                         └── traversal → 404, I/O error → 500

=============================================================================
FOUND_FILE
=============================================================================

    stat ──▶ Validators(ETag, Last-Modified)
               │
               ▼
    conditional headers ──┬── precondition failed → 412  (no body)
                          ├── client copy fresh   → 304  (no body)
                          ▼
                        HEAD? ─────────────────── → 200  (whole file, body dropped on send)
                          │
                          ▼
    Range / If-Range ─────┬── unsatisfiable       → 416  (whole file)
                          ├── one range           → 206  (that window)
                          └── none                → 200  (whole file)

Every file response carries:

    ETag, Last-Modified, Content-Type, Content-Length,
    Accept-Ranges: bytes
    Cache-Control: public, max-age=31536000

Listings and error pages carry Cache-Control: no-cache instead.

=============================================================================
ERROR BOUNDARY
=============================================================================

handle() is the only public entry point and never raises for expected
failures. ServeError subclasses map to their status; any OSError that
reaches the boundary is logged with its traceback and answered with a
bare 500 built from a fresh ResponseBuilder. The client never sees a
filesystem path.

=============================================================================
"""

import html
import logging
import os

from ..config import DotfilePolicy, ServerConfig
from ..errors import (
    MethodNotAllowed,
    NotFound,
    PreconditionFailed,
    RangeNotSatisfiable,
    ServeError,
)
from ..http.conditional import ConditionalResult, Validators, evaluate, if_range_allows
from ..http.mime_types import get_content_type
from ..http.ranges import parse_range
from ..http.request import HTTPRequest
from ..http.response import (
    HTTPResponse,
    ResponseBuilder,
    internal_error,
    method_not_allowed,
)
from ..http.status_codes import HTTPStatus
from ..http.streams import FileStream
from .listing import DirectoryLister
from .resolver import MISSING_ERRNOS, ResolvedTarget, is_within, resolve, stat_path

logger = logging.getLogger(__name__)


class StaticFileHandler:
    """
    Serves files below one root directory.

    The handler keeps no per-request state, so one instance is shared by
    every worker thread.

    Usage:
        handler = StaticFileHandler(ServerConfig(root_dir="./public", listing=True))
        response = handler.handle(request)
    """

    ALLOWED_METHODS = ("GET", "HEAD")
    INDEX_FILES = ("index.html", "index.htm")

    def __init__(self, config: ServerConfig):
        self.config = config
        self.root_dir = os.path.realpath(config.root_dir)
        self.lister = DirectoryLister(self.root_dir, config.dotfiles)

        if not os.path.isdir(self.root_dir):
            raise ValueError(f"Static root directory does not exist: {config.root_dir}")

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Handle one request. Always returns a response.

        Args:
            request: Parsed request; `target` is resolved, `path` is shown.
        """
        try:
            return self._respond(request)
        except MethodNotAllowed as e:
            return method_not_allowed(e.allow_header)
        except NotFound:
            return self._not_found(request.path)
        except PreconditionFailed as e:
            return self._precondition_failed(e)
        except (ServeError, OSError):
            logger.exception("Error serving %s %s", request.method, request.path)
            return internal_error()

    # =========================================================================
    # STATE MACHINE
    # =========================================================================

    def _respond(self, request: HTTPRequest) -> HTTPResponse:
        if request.method not in self.ALLOWED_METHODS:
            raise MethodNotAllowed(request.method, self.ALLOWED_METHODS)

        if self.config.dotfiles is DotfilePolicy.DENY and self._has_dot_segment(request.path):
            raise NotFound(request.path)

        # ─────────────────────────────────────────────────────────────────
        # RESOLVE
        # ─────────────────────────────────────────────────────────────────
        target = resolve(self.root_dir, request.target)

        if target.is_missing:
            raise NotFound(request.path)

        # ─────────────────────────────────────────────────────────────────
        # FOUND_DIR
        # ─────────────────────────────────────────────────────────────────
        if target.is_directory:
            index = self._find_index(target.path)
            if index is not None:
                return self._serve_file(index, request)
            if self.config.listing:
                return self._listing(request.path, target.path)
            raise NotFound(request.path)

        # ─────────────────────────────────────────────────────────────────
        # FOUND_FILE
        # ─────────────────────────────────────────────────────────────────
        return self._serve_file(target, request)

    @staticmethod
    def _has_dot_segment(path: str) -> bool:
        return any(segment.startswith(".") for segment in path.split("/") if segment)

    def _find_index(self, directory: str):
        """First index file present in `directory`, or None."""
        for name in self.INDEX_FILES:
            candidate = os.path.realpath(os.path.join(directory, name))
            if not is_within(self.root_dir, candidate):
                continue
            found = stat_path(candidate)
            if found.is_file:
                return found
        return None

    # =========================================================================
    # FILES
    # =========================================================================

    def _serve_file(self, target: ResolvedTarget, request: HTTPRequest) -> HTTPResponse:
        validators = Validators.from_stat(target.size, target.mtime_ns)

        builder = (ResponseBuilder(self.config.server_name)
            .headers(validators.as_headers())
            .cache(self.config.cache_max_age)
            .header("Accept-Ranges", "bytes"))

        outcome = evaluate(request.headers, validators)
        if outcome is ConditionalResult.PRECONDITION_FAILED:
            raise PreconditionFailed(request.path, validators.as_headers())
        if outcome is ConditionalResult.FRESH:
            return builder.status(HTTPStatus.NOT_MODIFIED).build()

        builder.content_type(get_content_type(target.path))

        # HEAD carries the full-file response a plain GET would get; the
        # connection drops the body after every layer has set its headers
        if request.method == "HEAD":
            return self._whole_file(builder, target)

        # ─────────────────────────────────────────────────────────────────
        # RANGES (GET only)
        # ─────────────────────────────────────────────────────────────────
        byte_range = None
        if if_range_allows(request.headers, validators):
            try:
                byte_range = parse_range(target.size, request.headers.get("range"))
            except RangeNotSatisfiable as e:
                logger.debug("%s", e)
                return (builder
                    .status(HTTPStatus.RANGE_NOT_SATISFIABLE)
                    .header("Content-Range", e.content_range)
                    .header("Content-Length", str(target.size))
                    .stream(FileStream(target.path, 0, target.size))
                    .build())

        if byte_range is not None:
            return (builder
                .status(HTTPStatus.PARTIAL_CONTENT)
                .header("Content-Range", byte_range.content_range(target.size))
                .header("Content-Length", str(byte_range.length))
                .stream(FileStream(target.path, byte_range.start, byte_range.length))
                .build())

        return self._whole_file(builder, target)

    @staticmethod
    def _whole_file(builder: ResponseBuilder, target: ResolvedTarget) -> HTTPResponse:
        return (builder
            .status(HTTPStatus.OK)
            .header("Content-Length", str(target.size))
            .stream(FileStream(target.path, 0, target.size))
            .build())

    # =========================================================================
    # LISTINGS AND ERROR PAGES
    # =========================================================================

    def _listing(self, url_path: str, directory: str) -> HTTPResponse:
        try:
            page = self.lister.render(url_path, directory)
        except OSError as e:
            if e.errno in MISSING_ERRNOS:
                raise NotFound(url_path) from e
            raise

        return (ResponseBuilder(self.config.server_name)
            .status(HTTPStatus.OK)
            .html(page)
            .no_cache()
            .build())

    def _precondition_failed(self, error: PreconditionFailed) -> HTTPResponse:
        return (ResponseBuilder(self.config.server_name)
            .status(HTTPStatus.PRECONDITION_FAILED)
            .headers(error.validators)
            .header("Content-Length", "0")
            .build())

    def _not_found(self, url_path: str) -> HTTPResponse:
        body = None
        if self.config.custom_404:
            body = self._read_custom_404()
        if body is None:
            body = f"<em><code>{html.escape(url_path)}</code></em> not found"

        return (ResponseBuilder(self.config.server_name)
            .status(HTTPStatus.NOT_FOUND)
            .html(body)
            .no_cache()
            .build())

    def _read_custom_404(self):
        path = os.path.join(self.root_dir, "404.html")
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as e:
            logger.warning("custom 404 page unavailable: %s", e)
            return None


def serve_static(config: ServerConfig) -> StaticFileHandler:
    """
    Create a static file handler from a configuration.

    Example:
        handler = serve_static(ServerConfig(root_dir="./public"))
        pipeline.compose(handler.handle)
    """
    return StaticFileHandler(config)
