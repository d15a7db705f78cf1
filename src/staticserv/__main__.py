"""
=============================================================================
COMMAND LINE INTERFACE
=============================================================================

    python -m staticserv [options]
    staticserv [options]

Examples:
    staticserv                                  # serve . on 127.0.0.1:8080
    staticserv -d ./public -p 3000 -l           # with directory listings
    staticserv -d dist -c --dotfiles deny       # gzip, hide dotfiles
    staticserv -s --cert cert.pem --key key.pem # HTTPS

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import DotfilePolicy, ServerConfig
from .server import HTTPServer


def build_parser(defaults: Optional[ServerConfig] = None) -> argparse.ArgumentParser:
    """
    Args:
        defaults: Values used for options not given on the command line.
            main() passes ServerConfig.from_env(), so SERV_* variables
            sit between the built-in defaults and the flags.
    """
    defaults = defaults or ServerConfig()

    parser = argparse.ArgumentParser(
        prog="staticserv",
        description="Static file server for local development",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  staticserv -d ./public                 Serve ./public on port 8080
  staticserv -d . -l -p 3000             Directory listings on port 3000
  staticserv -c --dotfiles deny          gzip text, 404 for dotfiles
  staticserv -s --cert c.pem --key k.pem HTTPS

Every option also reads a SERV_* environment variable (SERV_PORT, ...).
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", default=defaults.host,
                        help="Address to bind (default: %(default)s)")
    parser.add_argument("--port", "-p", type=int, default=defaults.port,
                        help="Port to listen on (default: %(default)s)")

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--dir", "-d", dest="root_dir", default=defaults.root_dir,
                        help="Directory to serve (default: %(default)s)")
    parser.add_argument("--listing", "-l", action="store_true", default=defaults.listing,
                        help="List directories that have no index.html")
    parser.add_argument("--compress", "-c", action="store_true", default=defaults.compress,
                        help="gzip text responses")
    parser.add_argument("--dotfiles", choices=[p.value for p in DotfilePolicy],
                        default=defaults.dotfiles.value,
                        help="How to treat files starting with '.' (default: %(default)s)")
    parser.add_argument("--custom-404", action="store_true", default=defaults.custom_404,
                        help="Use <dir>/404.html as the 404 page")

    # ─────────────────────────────────────────────────────────────────────
    # TLS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--secure", "-s", action="store_true", default=defaults.secure,
                        help="Serve HTTPS (needs --cert and --key)")
    parser.add_argument("--cert", default=defaults.certfile, help="TLS certificate (PEM)")
    parser.add_argument("--key", default=defaults.keyfile, help="TLS private key (PEM)")
    parser.add_argument("--http2", action="store_true", default=defaults.http2,
                        help="Request HTTP/2 (falls back to HTTP/1.1)")

    # ─────────────────────────────────────────────────────────────────────
    # RUNTIME
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--workers", "-w", type=int, default=defaults.max_workers,
                        help="Maximum worker threads (default: %(default)s)")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        default=defaults.log_level.upper(), type=str.upper,
                        help="Logging level (default: %(default)s)")
    parser.add_argument("--log-format", choices=["text", "json"], default=defaults.log_format,
                        help="Access log format (default: %(default)s)")
    parser.add_argument("--version", "-v", action="version",
                        version=f"staticserv {__version__}")

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Translate parsed arguments into a ServerConfig."""
    return ServerConfig(
        host=args.host,
        port=args.port,
        root_dir=args.root_dir,
        listing=args.listing,
        compress=args.compress,
        dotfiles=DotfilePolicy(args.dotfiles),
        custom_404=args.custom_404,
        secure=args.secure,
        certfile=args.cert,
        keyfile=args.key,
        http2=args.http2,
        min_workers=max(1, min(4, args.workers)),
        max_workers=args.workers,
        log_level=args.log_level,
        log_format=args.log_format,
    )


def main(argv: Optional[List[str]] = None) -> int:
    try:
        env = ServerConfig.from_env()
    except ValueError as e:
        print(f"staticserv: bad SERV_* setting: {e}", file=sys.stderr)
        return 2

    args = build_parser(env).parse_args(argv)

    try:
        server = HTTPServer(config_from_args(args))
    except ValueError as e:
        print(f"staticserv: {e}", file=sys.stderr)
        return 2

    try:
        server.run()
    except OSError as e:
        print(f"staticserv: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
