"""
=============================================================================
HANDLERS MODULE
=============================================================================

Turns a parsed request into a response by looking at the filesystem.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ resolver.py   request target → ResolvedTarget (file / dir / missing)│
    │ listing.py    directory → HTML index page                           │
    │ static.py     StaticFileHandler: the GET/HEAD state machine         │
    └─────────────────────────────────────────────────────────────────────┘

Usage:
    from staticserv.handlers import serve_static

    handler = serve_static(ServerConfig(root_dir="./public"))
    response = handler.handle(request)

=============================================================================
"""

from .resolver import ResolvedTarget, TargetKind, resolve
from .listing import DirectoryLister
from .static import StaticFileHandler, serve_static

__all__ = [
    "ResolvedTarget",
    "TargetKind",
    "resolve",
    "DirectoryLister",
    "StaticFileHandler",
    "serve_static",
]
