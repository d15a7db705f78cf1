"""
Unit tests for FileStream.
"""

import pytest

from staticserv.errors import InternalError
from staticserv.http.streams import FileStream


@pytest.fixture
def garble(site_root):
    path = site_root / "subdir" / "garble.txt"
    return str(path), path.read_bytes()


class TestFileStream:

    def test_whole_file(self, garble):
        path, data = garble
        assert FileStream(path, 0, len(data)).read_all() == data

    def test_window(self, garble):
        path, data = garble
        assert FileStream(path, 540, 222).read_all() == data[540:762]

    def test_chunking(self, garble):
        path, data = garble
        chunks = list(FileStream(path, 0, 1028, chunk_size=500))

        assert [len(c) for c in chunks] == [500, 500, 28]
        assert b"".join(chunks) == data

    def test_default_chunk_is_64k(self):
        assert FileStream.CHUNK_SIZE == 65536

    def test_closes_after_iteration(self, garble):
        path, _ = garble
        stream = FileStream(path, 0, 10)
        list(stream)
        assert stream.closed

    def test_closes_when_abandoned(self, garble):
        path, _ = garble
        stream = FileStream(path, 0, 1028, chunk_size=100)
        iterator = iter(stream)
        next(iterator)
        iterator.close()
        assert stream.closed

    def test_iterating_closed_stream(self, garble):
        path, _ = garble
        stream = FileStream(path, 0, 10)
        stream.close()
        with pytest.raises(ValueError):
            list(stream)

    def test_context_manager(self, garble):
        path, _ = garble
        with FileStream(path, 0, 10) as stream:
            assert not stream.closed
        assert stream.closed

    def test_zero_length(self, garble):
        path, _ = garble
        assert FileStream(path, 0, 0).read_all() == b""

    def test_short_file_raises(self, tmp_path):
        path = tmp_path / "shrunk.bin"
        path.write_bytes(b"x" * 10)
        stream = FileStream(str(path), 0, 100)

        with pytest.raises(InternalError):
            stream.read_all()
        assert stream.closed

    def test_missing_file_raises_at_open(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            FileStream(str(tmp_path / "nope"), 0, 1)
