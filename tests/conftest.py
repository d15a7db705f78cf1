"""
pytest configuration and fixtures.
"""

import os
import threading
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, Generator, Optional
from urllib.parse import unquote

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from staticserv import HTTPServer, ServerConfig
from staticserv.http import HTTPRequest


# ─────────────────────────────────────────────────────────────────────────
# SAMPLE TREE
# ─────────────────────────────────────────────────────────────────────────

INDEX_HTML = (
    b"<!DOCTYPE html>\n"
    b"<html>\n"
    b"<head><title>staticserv fixture</title></head>\n"
    b"<body>\n"
    b"<h1>It works</h1>\n"
    b"<p>Served from the test tree.</p>\n"
    b"</body>\n"
    b"</html>\n"
).ljust(219, b" ")

GARBLE = bytes((i * 7 + 3) % 256 for i in range(1028))

APP_CSS = b"body { color: #333; }\n" * 200

# Fixed mtime so ETags and Last-Modified are predictable
FIXED_MTIME = 1_700_000_000


@pytest.fixture
def site_root(tmp_path: Path) -> Path:
    """
    A small served tree:

        index.html            219 bytes
        subdir/garble.txt     1028 bytes, binary
        assets/app.css        4400 bytes, compressible
        empty/                no index
        .hidden               dotfile
        .DS_Store             platform artifact
    """
    root = tmp_path / "site"
    root.mkdir()

    (root / "index.html").write_bytes(INDEX_HTML)
    (root / "subdir").mkdir()
    (root / "subdir" / "garble.txt").write_bytes(GARBLE)
    (root / "assets").mkdir()
    (root / "assets" / "app.css").write_bytes(APP_CSS)
    (root / "empty").mkdir()
    (root / ".hidden").write_bytes(b"secret\n")
    (root / ".DS_Store").write_bytes(b"\x00\x00\x00\x01Bud1")

    for path in (root / "index.html", root / "subdir" / "garble.txt", root / "assets" / "app.css"):
        os.utime(path, (FIXED_MTIME, FIXED_MTIME))

    assert len(INDEX_HTML) == 219
    assert len(GARBLE) == 1028
    return root


@pytest.fixture
def make_request() -> Callable[..., HTTPRequest]:
    """Build an HTTPRequest without going through the parser."""

    def build(method: str = "GET", target: str = "/",
              headers: Optional[Dict[str, str]] = None) -> HTTPRequest:
        path = target.partition("?")[0]
        return HTTPRequest(
            method=method,
            path=unquote(path),
            target=target,
            headers={k.lower(): v for k, v in (headers or {}).items()},
            client_address=("127.0.0.1", 50000),
        )

    return build


@pytest.fixture
def config(site_root: Path) -> ServerConfig:
    """Default test configuration serving the sample tree."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        root_dir=str(site_root),
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=1.0,
        log_level="WARNING",
    )


# ─────────────────────────────────────────────────────────────────────────
# LIVE SERVER
# ─────────────────────────────────────────────────────────────────────────

class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False  # not a test class, despite the name

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def host(self) -> str:
        return self.server.address[0]

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"setup_logging": False, "banner": False},
            daemon=True,
        )
        self._thread.start()

        if not self.server.wait_until_ready(5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def server_factory(config: ServerConfig) -> Generator[Callable[..., TestServer], None, None]:
    """
    Start live servers with config overrides and extra middleware; all
    are stopped at teardown.
    """
    started = []

    def start(*middleware, **overrides) -> TestServer:
        server = HTTPServer(replace(config, **overrides))
        for layer in middleware:
            server.use(layer)
        test_srv = TestServer(server)
        test_srv.start()
        started.append(test_srv)
        return test_srv

    yield start

    for test_srv in started:
        test_srv.stop()


@pytest.fixture
def test_server(server_factory) -> TestServer:
    """A live server with default settings."""
    return server_factory()
