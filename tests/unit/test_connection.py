"""
Unit tests for Connection over a local socket pair.
"""

import socket

import pytest

from staticserv.core.connection import Connection, ConnectionState
from staticserv.http.streams import FileStream


@pytest.fixture
def pair():
    server_side, client_side = socket.socketpair()
    yield server_side, client_side
    client_side.close()
    server_side.close()


def make_conn(sock, **kwargs):
    kwargs.setdefault("timeout", 2.0)
    return Connection(socket=sock, address=("127.0.0.1", 50000), **kwargs)


def recv_all(sock) -> bytes:
    chunks = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


class TestReadRequest:

    def test_reads_head(self, pair):
        server_side, client_side = pair
        client_side.sendall(b"GET / HTTP/1.1\r\nHost: x\r\n\r\n")

        conn = make_conn(server_side)
        assert conn.read_request() == b"GET / HTTP/1.1\r\nHost: x\r\n\r\n"
        assert conn.requests_handled == 1
        assert conn.state == ConnectionState.PROCESSING

    def test_pipelined_requests_stay_buffered(self, pair):
        server_side, client_side = pair
        client_side.sendall(
            b"POST /a HTTP/1.1\r\nContent-Length: 5\r\n\r\nhello"
            b"GET /b HTTP/1.1\r\n\r\n"
        )

        conn = make_conn(server_side)
        assert conn.read_request().endswith(b"\r\n\r\nhello")
        assert conn.read_request() == b"GET /b HTTP/1.1\r\n\r\n"

    def test_body_split_across_packets(self, pair):
        server_side, client_side = pair
        client_side.sendall(b"POST / HTTP/1.1\r\ncontent-length:  4\r\n\r\nab")
        conn = make_conn(server_side)
        client_side.sendall(b"cd")

        assert conn.read_request().endswith(b"abcd")

    def test_peer_closed(self, pair):
        server_side, client_side = pair
        client_side.close()
        assert make_conn(server_side).read_request() is None

    def test_too_large(self, pair):
        server_side, client_side = pair
        client_side.sendall(b"GET / HTTP/1.1\r\nX-Pad: " + b"a" * 2048)

        conn = make_conn(server_side, max_request_size=1024, buffer_size=512)
        with pytest.raises(ValueError):
            conn.read_request()

    def test_first_request_timeout(self, pair):
        server_side, _ = pair
        with pytest.raises(TimeoutError):
            make_conn(server_side, timeout=0.1).read_request()

    def test_idle_keep_alive_returns_none(self, pair):
        server_side, _ = pair
        conn = make_conn(server_side, keep_alive_timeout=0.1)
        conn.requests_handled = 1

        assert conn.read_request() is None


class TestWriting:

    def test_send_stream(self, pair, site_root):
        server_side, client_side = pair
        path = site_root / "subdir" / "garble.txt"
        stream = FileStream(str(path), 0, 1028, chunk_size=300)

        conn = make_conn(server_side)
        assert conn.send_stream(b"HEAD\r\n\r\n", stream) is True
        assert stream.closed

        conn.close()
        assert recv_all(client_side) == b"HEAD\r\n\r\n" + path.read_bytes()

    def test_short_file_aborts(self, pair, site_root):
        server_side, _ = pair
        path = site_root / "subdir" / "garble.txt"
        stream = FileStream(str(path), 0, 2000)

        assert make_conn(server_side).send_stream(b"HEAD\r\n\r\n", stream) is False
        assert stream.closed

    def test_close_is_idempotent(self, pair):
        server_side, _ = pair
        conn = make_conn(server_side)
        conn.close()
        conn.close()
        assert conn.state == ConnectionState.CLOSED
