"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

One dataclass holds every knob the static server understands. The CLI,
the environment and tests all build a ServerConfig; nothing else in the
package reads options from anywhere else.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌──────────────────────┐     ┌──────────────────────┐
    │  argparse (CLI)      │     │  SERV_* environment  │
    │  python -m staticserv│     │  ServerConfig.       │
    │  --dir ./public -l   │     │      from_env()      │
    └──────────┬───────────┘     └──────────┬───────────┘
               │                            │
               └─────────────┬──────────────┘
                             ▼
                   ┌───────────────────┐
                   │   ServerConfig    │ ── validate()  (fail fast)
                   │                   │ ── resolved()  (canonical root)
                   └─────────┬─────────┘
                             ▼
              HTTPServer / StaticFileHandler
              (read only, never mutated per request)

=============================================================================
DOTFILE POLICY
=============================================================================

    ALLOW   Dotfiles are served and listed.
    IGNORE  Dotfiles are served, but platform artifacts (.DS_Store, .git)
            are hidden from directory listings. This is the default.
    DENY    Any path segment starting with "." answers 404 and every dot
            entry is hidden from listings.

=============================================================================
"""

import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class DotfilePolicy(str, Enum):
    """How requests for and listings of dotfiles are treated."""

    ALLOW = "allow"
    IGNORE = "ignore"
    DENY = "deny"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ServerConfig:
    """
    Configuration for the static file server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout

    HTTP SETTINGS
    - keep_alive, keep_alive_timeout, max_request_size

    THREADING SETTINGS
    - min_workers, max_workers

    STATIC FILES
    - root_dir, listing, compress, dotfiles, custom_404, cache_max_age

    TLS
    - secure, certfile, keyfile, http2

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind. Use 0.0.0.0 to expose the server on the LAN."""

    port: int = 8080
    """TCP port to listen on. 0 lets the OS pick a free one (see HTTPServer.address)."""

    backlog: int = 128
    """Maximum number of queued, not yet accepted connections."""

    buffer_size: int = 8192
    """Bytes read from the socket per recv() call."""

    timeout: Optional[float] = 30.0
    """Socket timeout in seconds while waiting for the first request."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """Reuse connections for several requests (HTTP/1.1 persistent)."""

    keep_alive_timeout: float = 5.0
    """Idle seconds before a kept-alive connection is closed."""

    max_request_size: int = 64 * 1024
    """Largest request head accepted. Static serving never needs bodies."""

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16

    # ─────────────────────────────────────────────────────────────────────
    # STATIC FILES
    # ─────────────────────────────────────────────────────────────────────

    root_dir: str = "."
    """
    Directory served at "/".

    Call resolved() to obtain a copy whose root is absolute and has all
    symlinks resolved. Containment checks compare against that form.
    """

    listing: bool = False
    """Render an HTML index for directories without index.html/index.htm."""

    compress: bool = False
    """gzip text responses for clients that send Accept-Encoding: gzip."""

    dotfiles: DotfilePolicy = DotfilePolicy.IGNORE

    custom_404: bool = False
    """Serve <root>/404.html as the body of 404 responses when it exists."""

    cache_max_age: int = 31536000
    """max-age sent with file responses (one year)."""

    # ─────────────────────────────────────────────────────────────────────
    # TLS
    # ─────────────────────────────────────────────────────────────────────

    secure: bool = False
    """Serve HTTPS. Requires certfile and keyfile."""

    certfile: Optional[str] = None
    keyfile: Optional[str] = None

    http2: bool = False
    """
    Requested HTTP/2. The standard library only speaks HTTP/1.1, so the
    server logs a warning and keeps serving HTTP/1.1.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """Access log format: 'text' (Apache style) or 'json'."""

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "staticserv/1.0"

    def __post_init__(self):
        if not isinstance(self.dotfiles, DotfilePolicy):
            self.dotfiles = DotfilePolicy(str(self.dotfiles).lower())

    @property
    def scheme(self) -> str:
        return "https" if self.secure else "http"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        SERV_HOST        Bind address (default: 127.0.0.1)
        SERV_PORT        Port (default: 8080)
        SERV_DIR         Served directory (default: .)
        SERV_LISTING     Enable directory listing (default: off)
        SERV_COMPRESS    Enable gzip (default: off)
        SERV_DOTFILES    allow | ignore | deny (default: ignore)
        SERV_CUSTOM_404  Use <root>/404.html for 404 bodies (default: off)
        SERV_CERT        TLS certificate; setting it with SERV_KEY enables HTTPS
        SERV_KEY         TLS private key
        SERV_WORKERS     Max worker threads (default: 16)
        SERV_LOG_LEVEL   Logging level (default: INFO)
        SERV_LOG_FORMAT  text | json (default: text)

        =====================================================================
        """
        certfile = os.getenv("SERV_CERT")
        keyfile = os.getenv("SERV_KEY")
        workers = int(os.getenv("SERV_WORKERS", "16"))
        return cls(
            host=os.getenv("SERV_HOST", "127.0.0.1"),
            port=int(os.getenv("SERV_PORT", "8080")),
            root_dir=os.getenv("SERV_DIR", "."),
            listing=_env_flag("SERV_LISTING"),
            compress=_env_flag("SERV_COMPRESS"),
            dotfiles=DotfilePolicy(os.getenv("SERV_DOTFILES", "ignore").lower()),
            custom_404=_env_flag("SERV_CUSTOM_404"),
            secure=bool(certfile and keyfile),
            certfile=certfile,
            keyfile=keyfile,
            min_workers=max(1, min(4, workers)),
            max_workers=workers,
            log_level=os.getenv("SERV_LOG_LEVEL", "INFO"),
            log_format=os.getenv("SERV_LOG_FORMAT", "text"),
        )

    def resolved(self) -> "ServerConfig":
        """Return a copy whose root_dir is absolute and canonical."""
        return replace(self, root_dir=os.path.realpath(os.path.abspath(self.root_dir)))

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises ValueError with a readable message on the first problem,
        so a bad flag stops the server before it binds a socket.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if not os.path.isdir(self.root_dir):
            raise ValueError(f"Root directory does not exist: {self.root_dir}")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {self.log_format!r}")

        if self.secure:
            if not (self.certfile and self.keyfile):
                raise ValueError("secure mode needs both a certificate and a key file")
            for path in (self.certfile, self.keyfile):
                if not os.path.isfile(path):
                    raise ValueError(f"TLS file not found: {path}")


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. ServerConfig is the single source of options for the whole server
# 2. from_env() follows 12-factor style with SERV_* variables
# 3. validate() fails fast, resolved() canonicalizes the served root
# 4. DotfilePolicy decides how ".name" paths are served and listed
# =============================================================================
