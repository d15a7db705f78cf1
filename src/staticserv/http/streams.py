"""
=============================================================================
FILE BODY STREAMS
=============================================================================

File responses never load the whole file into memory. The handler
returns an HTTPResponse whose body is a FileStream; the connection pulls
64 KiB chunks from it while writing to the socket.

    handler (worker thread)                 connection
    ───────────────────────                 ──────────
    FileStream(path, start, length)
        │  open() happens HERE, so a
        │  permission error is still a 500
        ▼
    HTTPResponse(stream=...)  ───────────►  send headers
                                            for chunk in stream:
                                                sendall(chunk)
                                            stream.close()   ◄── always

=============================================================================
RESOURCE RULES
=============================================================================

- One open file descriptor per in-flight file response.
- The descriptor is released when the last byte has been read, when the
  client disconnects mid-body, or when the response is discarded
  without being sent (close() is idempotent).
- If the file shrinks while it is being sent, iteration raises
  InternalError. The status line is already on the wire by then, so the
  only thing the connection can do is drop the socket.

=============================================================================
"""

import logging
from typing import BinaryIO, Iterator, Optional

from ..errors import InternalError

logger = logging.getLogger(__name__)


class FileStream:
    """
    A byte window [start, start + length) of a file, read lazily.

    Usage:
        with FileStream("/srv/site/video.mp4", start=540, length=222) as stream:
            for chunk in stream:
                sock.sendall(chunk)
    """

    CHUNK_SIZE = 64 * 1024

    def __init__(self, path: str, start: int = 0, length: int = 0, chunk_size: Optional[int] = None):
        self.path = path
        self.start = start
        self.length = length
        self.chunk_size = chunk_size or self.CHUNK_SIZE

        self._file: Optional[BinaryIO] = open(path, "rb")
        try:
            if start:
                self._file.seek(start)
        except OSError:
            self.close()
            raise

    @property
    def closed(self) -> bool:
        return self._file is None

    def __iter__(self) -> Iterator[bytes]:
        if self._file is None:
            raise ValueError("I/O operation on closed stream")

        remaining = self.length
        try:
            while remaining > 0:
                chunk = self._file.read(min(self.chunk_size, remaining))
                if not chunk:
                    raise InternalError(
                        f"{self.path} ended {remaining} bytes early"
                    )
                remaining -= len(chunk)
                yield chunk
        finally:
            self.close()

    def read_all(self) -> bytes:
        """Drain the whole window into memory (used by compression)."""
        return b"".join(self)

    def close(self) -> None:
        if self._file is not None:
            try:
                self._file.close()
            finally:
                self._file = None

    def __enter__(self) -> "FileStream":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"FileStream({self.path!r}, start={self.start}, length={self.length}, {state})"
