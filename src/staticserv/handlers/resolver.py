"""
=============================================================================
PATH RESOLVER
=============================================================================

Maps a request target to a filesystem path inside the served root.

=============================================================================
RESOLUTION STEPS
=============================================================================

    target:  /docs/../img/%6Cogo.png?v=3#top
                │
                ▼  strip query and fragment
             /docs/../img/%6Cogo.png
                │
                ▼  percent-decode
             /docs/../img/logo.png
                │
                ▼  join with root, collapse "." and ".."
             /srv/site/img/logo.png          ── outside root? → PathTraversal
                │
                ▼  realpath (follows symlinks)
             /srv/site/img/logo.png          ── outside root? → PathTraversal
                │
                ▼  stat
             ResolvedTarget(kind=FILE, size=..., mtime_ns=...)

=============================================================================
SECURITY: PATH TRAVERSAL
=============================================================================

    GET /../../etc/passwd
    GET /%2e%2e/%2e%2e/etc/passwd
    GET /link-to-slash/etc/passwd        (symlink pointing outside)

All three produce a canonical path outside the root and raise
PathTraversal, which the handler answers with a plain 404.

Containment is checked with os.path.commonpath, never with a string
prefix test: "/srv/site-private" starts with "/srv/site" but is not
inside it.

=============================================================================
STAT OUTCOMES
=============================================================================

    regular file         → FILE
    directory            → DIRECTORY  (index substitution is the caller's call)
    ENOENT / ENOTDIR /
    ENAMETOOLONG         → MISSING
    FIFO, socket, device → MISSING    (never opened, reading could block)
    anything else        → OSError propagates (permission, I/O → 500)

=============================================================================
"""

import errno
import logging
import os
import stat as stat_module
from dataclasses import dataclass
from enum import Enum
from urllib.parse import unquote, urlsplit

from ..errors import PathTraversal

logger = logging.getLogger(__name__)


MISSING_ERRNOS = frozenset({errno.ENOENT, errno.ENOTDIR, errno.ENAMETOOLONG})


class TargetKind(Enum):
    FILE = "file"
    DIRECTORY = "directory"
    MISSING = "missing"


@dataclass(frozen=True)
class ResolvedTarget:
    """Where a request landed on disk, plus the stat fields the handler needs."""

    path: str
    kind: TargetKind
    size: int = 0
    mtime_ns: int = 0

    @property
    def is_file(self) -> bool:
        return self.kind is TargetKind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind is TargetKind.DIRECTORY

    @property
    def is_missing(self) -> bool:
        return self.kind is TargetKind.MISSING

    @property
    def mtime(self) -> float:
        return self.mtime_ns / 1_000_000_000


def decode_url_path(target: str) -> str:
    """
    Strip query string and fragment from a request target and percent-decode it.

        >>> decode_url_path("/a%20b/c.txt?x=1#frag")
        '/a b/c.txt'
    """
    if target.startswith(("http://", "https://")):
        raw_path = urlsplit(target).path
    else:
        raw_path = target.partition("?")[0].partition("#")[0]
    return unquote(raw_path) or "/"


def is_within(root: str, path: str) -> bool:
    """Whether `path` equals `root` or lies below it (both absolute)."""
    try:
        return os.path.commonpath([root, path]) == root
    except ValueError:
        return False


def stat_path(path: str) -> ResolvedTarget:
    """
    Stat an absolute path and classify it.

    Raises:
        OSError: For any failure other than "does not exist".
    """
    try:
        st = os.stat(path)
    except OSError as exc:
        if exc.errno in MISSING_ERRNOS:
            return ResolvedTarget(path, TargetKind.MISSING)
        raise
    except ValueError:
        # Embedded NUL or similar unrepresentable path
        return ResolvedTarget(path, TargetKind.MISSING)

    if stat_module.S_ISDIR(st.st_mode):
        return ResolvedTarget(path, TargetKind.DIRECTORY, st.st_size, st.st_mtime_ns)
    if stat_module.S_ISREG(st.st_mode):
        return ResolvedTarget(path, TargetKind.FILE, st.st_size, st.st_mtime_ns)
    return ResolvedTarget(path, TargetKind.MISSING)


def resolve(root_dir: str, url_path: str) -> ResolvedTarget:
    """
    Resolve a request target against the served root.

    Args:
        root_dir: Served root. Canonicalized here as well, so callers may
            pass a relative path.
        url_path: Raw request target or already decoded path.

    Returns:
        The resolved target. A missing file is a normal result, not an error.

    Raises:
        PathTraversal: The canonical path lies outside root_dir.
        OSError: stat failed for a reason other than non-existence.
    """
    root = os.path.realpath(root_dir)
    decoded = decode_url_path(url_path)

    if "\x00" in decoded:
        return ResolvedTarget(root, TargetKind.MISSING)

    relative = decoded.replace("\\", "/").lstrip("/")
    candidate = os.path.normpath(os.path.join(root, relative))
    if not is_within(root, candidate):
        logger.warning("Path traversal attempt: %s", url_path)
        raise PathTraversal(decoded)

    real = os.path.realpath(candidate)
    if not is_within(root, real):
        logger.warning("Symlink escapes served root: %s -> %s", decoded, real)
        raise PathTraversal(decoded)

    return stat_path(real)
