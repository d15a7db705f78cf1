"""
Integration tests against a live server on an ephemeral port.
"""

import gzip
import http.client
import logging
import socket

import pytest

from staticserv import HTTPServer, ServerConfig
from staticserv.config import DotfilePolicy
from staticserv.middleware import function_middleware


def fetch(server, method="GET", path="/", headers=None):
    """One request on a fresh connection. Returns (response, body)."""
    conn = http.client.HTTPConnection(server.host, server.port, timeout=5)
    try:
        conn.request(method, path, headers=headers or {})
        response = conn.getresponse()
        return response, response.read()
    finally:
        conn.close()


def wire_headers(response) -> dict:
    """Response headers minus the ones that differ on every request."""
    return {
        name: value for name, value in response.getheaders()
        if name not in ("Date", "X-Request-ID")
    }


def raw_exchange(server, data: bytes) -> bytes:
    """Send raw bytes and read until the server closes the connection."""
    with socket.create_connection((server.host, server.port), timeout=5) as sock:
        sock.sendall(data)
        chunks = []
        while True:
            chunk = sock.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


class TestBasicServing:

    def test_binds_ephemeral_port(self, test_server):
        assert test_server.port != 0
        assert test_server.server.url == f"http://127.0.0.1:{test_server.port}"

    def test_index(self, test_server, site_root):
        response, body = fetch(test_server, "GET", "/")

        assert response.status == 200
        assert response.getheader("Content-Length") == "219"
        assert response.getheader("Content-Type") == "text/html; charset=utf-8"
        assert response.getheader("Accept-Ranges") == "bytes"
        assert response.getheader("Server") == "staticserv/1.0"
        assert response.getheader("Date") is not None
        assert body == (site_root / "index.html").read_bytes()

    def test_range(self, test_server, site_root):
        response, body = fetch(test_server, "GET", "/subdir/garble.txt",
                               {"Range": "bytes=540-761"})

        assert response.status == 206
        assert response.getheader("Content-Range") == "bytes 540-761/1028"
        assert response.getheader("Content-Length") == "222"
        assert body == (site_root / "subdir" / "garble.txt").read_bytes()[540:762]

    def test_unsatisfiable_range(self, test_server):
        response, body = fetch(test_server, "GET", "/subdir/garble.txt",
                               {"Range": "bytes=2000-"})

        assert response.status == 416
        assert response.getheader("Content-Range") == "bytes */1028"
        assert len(body) == 1028

    def test_not_modified(self, test_server):
        first, _ = fetch(test_server, "GET", "/index.html")
        etag = first.getheader("ETag")

        response, body = fetch(test_server, "GET", "/index.html", {"If-None-Match": etag})

        assert response.status == 304
        assert response.getheader("ETag") == etag
        assert response.getheader("Content-Length") is None
        assert body == b""

    def test_precondition_failed(self, test_server):
        response, body = fetch(test_server, "GET", "/index.html", {"If-Match": '"nope"'})
        assert response.status == 412
        assert body == b""

    def test_head(self, test_server):
        response, body = fetch(test_server, "HEAD", "/subdir/garble.txt")

        assert response.status == 200
        assert response.getheader("Content-Length") == "1028"
        assert body == b""

    @pytest.mark.parametrize("compress", [False, True])
    @pytest.mark.parametrize("path", ["/index.html", "/assets/app.css", "/missing"])
    def test_head_headers_match_get(self, server_factory, compress, path):
        server = server_factory(compress=compress)
        headers = {"Accept-Encoding": "gzip"}

        get, get_body = fetch(server, "GET", path, headers)
        head, head_body = fetch(server, "HEAD", path, headers)

        assert head.status == get.status
        assert wire_headers(head) == wire_headers(get)
        assert head_body == b""
        assert int(get.getheader("Content-Length")) == len(get_body)

    def test_method_not_allowed(self, test_server):
        response, body = fetch(test_server, "POST", "/index.html")

        assert response.status == 405
        assert response.getheader("Allow") == "GET, HEAD"
        assert body == b""

    def test_not_found(self, test_server):
        response, body = fetch(test_server, "GET", "/missing.txt")

        assert response.status == 404
        assert response.getheader("Cache-Control") == "no-cache"
        assert b"not found" in body

    def test_traversal(self, test_server):
        raw = raw_exchange(
            test_server,
            b"GET /../../etc/passwd HTTP/1.1\r\nHost: x\r\nConnection: close\r\n\r\n",
        )
        assert raw.startswith(b"HTTP/1.1 404 ")
        assert b"root:" not in raw

    def test_raw_utf8_path(self, test_server, site_root):
        (site_root / "café.txt").write_bytes(b"espresso")
        raw = raw_exchange(
            test_server,
            "GET /café.txt HTTP/1.1\r\nHost: x\r\nConnection: close\r\n\r\n".encode("utf-8"),
        )

        assert raw.startswith(b"HTTP/1.1 200 ")
        assert raw.endswith(b"\r\n\r\nespresso")


class TestConnections:

    def test_keep_alive_reuses_socket(self, test_server):
        conn = http.client.HTTPConnection(test_server.host, test_server.port, timeout=5)
        try:
            conn.request("GET", "/index.html")
            first = conn.getresponse()
            first.read()
            sock = conn.sock

            conn.request("GET", "/subdir/garble.txt")
            second = conn.getresponse()
            second.read()

            assert first.getheader("Connection") == "keep-alive"
            assert second.status == 200
            assert conn.sock is sock
        finally:
            conn.close()

    def test_pipelined_requests(self, test_server):
        raw = raw_exchange(
            test_server,
            b"GET /index.html HTTP/1.1\r\nHost: x\r\n\r\n"
            b"GET /nope HTTP/1.1\r\nHost: x\r\nConnection: close\r\n\r\n",
        )
        assert raw.startswith(b"HTTP/1.1 200 ")
        assert b"HTTP/1.1 404 " in raw

    def test_http10_closes(self, test_server):
        raw = raw_exchange(test_server, b"GET /index.html HTTP/1.0\r\n\r\n")

        assert raw.startswith(b"HTTP/1.1 200 ")
        assert b"Connection: close\r\n" in raw

    def test_malformed_request(self, test_server):
        raw = raw_exchange(test_server, b"garbage\r\n\r\n")

        assert raw.startswith(b"HTTP/1.1 400 ")
        assert b"Connection: close\r\n" in raw

    def test_unknown_method(self, test_server):
        raw = raw_exchange(test_server, b"BREW /pot HTTP/1.1\r\nHost: x\r\n\r\n")

        assert raw.startswith(b"HTTP/1.1 405 ")
        assert b"Allow: GET, HEAD\r\n" in raw

    def test_unsupported_version(self, test_server):
        raw = raw_exchange(test_server, b"GET / HTTP/2.0\r\n\r\n")
        assert raw.startswith(b"HTTP/1.1 505 ")

    def test_oversized_request(self, server_factory):
        server = server_factory(max_request_size=1024)
        raw = raw_exchange(server, b"GET / HTTP/1.1\r\nX-Pad: " + b"a" * 4096 + b"\r\n\r\n")
        assert raw.startswith(b"HTTP/1.1 413 ")


class TestOptions:

    def test_listing(self, server_factory):
        server = server_factory(listing=True)
        response, body = fetch(server, "GET", "/subdir/")

        assert response.status == 200
        assert b'<a href="/subdir/garble.txt">garble.txt</a>' in body

    def test_listing_disabled(self, test_server):
        response, _ = fetch(test_server, "GET", "/subdir/")
        assert response.status == 404

    def test_gzip(self, server_factory, site_root):
        server = server_factory(compress=True)
        response, body = fetch(server, "GET", "/assets/app.css", {"Accept-Encoding": "gzip"})

        assert response.status == 200
        assert response.getheader("Content-Encoding") == "gzip"
        assert response.getheader("ETag").startswith("W/")
        assert gzip.decompress(body) == (site_root / "assets" / "app.css").read_bytes()

    def test_deny_dotfiles(self, server_factory):
        server = server_factory(dotfiles=DotfilePolicy.DENY)
        response, _ = fetch(server, "GET", "/.hidden")
        assert response.status == 404

    def test_custom_404(self, server_factory, site_root):
        (site_root / "404.html").write_bytes(b"<h1>Lost</h1>")
        server = server_factory(custom_404=True)

        response, body = fetch(server, "GET", "/missing")
        assert response.status == 404
        assert body == b"<h1>Lost</h1>"

    def test_extra_middleware(self, server_factory):
        @function_middleware
        def no_sniff(request, next):
            response = next(request)
            response.set_header("X-Content-Type-Options", "nosniff")
            return response

        server = server_factory(no_sniff)
        response, _ = fetch(server, "GET", "/index.html")

        assert response.status == 200
        assert response.getheader("X-Content-Type-Options") == "nosniff"


class TestAccessLog:

    def test_one_line_per_request(self, test_server, caplog):
        with caplog.at_level(logging.INFO, logger="staticserv.access"):
            fetch(test_server, "GET", "/missing.txt")

        records = [r for r in caplog.records if r.name == "staticserv.access"]
        assert len(records) == 1
        assert records[0].levelno == logging.WARNING
        assert '"GET /missing.txt" 404' in records[0].getMessage()


def test_bad_root_fails_before_binding(tmp_path):
    with pytest.raises(ValueError):
        HTTPServer(ServerConfig(root_dir=str(tmp_path / "none"), port=0))
