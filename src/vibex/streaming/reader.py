"""
Async line reader for standard input.

This module provides:
- Line extraction from chunked async reads
- Partial line handling (a final line without newline is still yielded)
- Opening stdin as an async stream whether it is a pipe, a tty or a file
"""

import asyncio
import os
import stat
import sys
from collections import deque
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Deque, Optional, Protocol

import aiofiles

from ..utils.logging import get_logger
from ..utils.errors import InputError

logger = get_logger("vibex.streaming.reader")


class ChunkSource(Protocol):
    async def read(self, n: int = -1) -> bytes: ...


class LineReader:
    """Buffers chunked reads and extracts complete lines."""

    def __init__(self, stream: ChunkSource, chunk_size: int = 64 * 1024, encoding: str = "utf-8"):
        """
        Initialize line reader.

        Args:
            stream: Async source with a ``read(n)`` coroutine returning bytes
            chunk_size: Size of each read
            encoding: Text encoding of the stream
        """
        self.stream = stream
        self.chunk_size = chunk_size
        self.encoding = encoding

        self._buffer = bytearray()
        self._lines: Deque[str] = deque()
        self._eof = False

        # Stats
        self.total_bytes = 0
        self.total_lines = 0

    def _decode(self, raw: bytes) -> str:
        line = raw.decode(self.encoding, errors="replace")
        return line[:-1] if line.endswith("\r") else line

    def _extract_lines(self) -> None:
        """Move every complete line from the byte buffer to the line queue."""
        while True:
            line_end = self._buffer.find(b"\n")
            if line_end < 0:
                break
            raw = bytes(self._buffer[:line_end])
            del self._buffer[:line_end + 1]
            self._lines.append(self._decode(raw))
            self.total_lines += 1

    async def _fill(self) -> bool:
        """Read one chunk. Returns False at end of stream."""
        try:
            chunk = await self.stream.read(self.chunk_size)
        except (OSError, ValueError) as e:
            logger.error("stdin_read_error", error=str(e))
            raise InputError(f"Failed to read standard input: {e}", cause=e) from e

        if not chunk:
            self._eof = True
            if self._buffer:
                self._lines.append(self._decode(bytes(self._buffer)))
                self._buffer.clear()
                self.total_lines += 1
            return False

        self.total_bytes += len(chunk)
        self._buffer.extend(chunk)
        self._extract_lines()
        return True

    async def readline(self) -> Optional[str]:
        """Next line without its terminator, or None at end of stream."""
        while not self._lines:
            if self._eof or not await self._fill():
                break
        if self._lines:
            return self._lines.popleft()
        return None

    def __aiter__(self) -> "LineReader":
        return self

    async def __anext__(self) -> str:
        line = await self.readline()
        if line is None:
            raise StopAsyncIteration
        return line


@asynccontextmanager
async def open_stdin(stdin: Any = None) -> AsyncIterator[ChunkSource]:
    """
    Open standard input as an async chunk source.

    Pipes, ttys and sockets go through the event loop; a redirected regular
    file, which the loop cannot watch, is read through aiofiles.
    """
    stdin = stdin or sys.stdin
    try:
        fd = stdin.fileno()
        mode = os.fstat(fd).st_mode
    except (OSError, ValueError, AttributeError) as e:
        raise InputError(f"Standard input is not available: {e}", cause=e) from e

    if stat.S_ISREG(mode):
        async with aiofiles.open(fd, mode="rb", closefd=False) as f:
            yield f
        return

    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    try:
        transport, _ = await loop.connect_read_pipe(lambda: protocol, stdin)
    except (OSError, ValueError) as e:
        raise InputError(f"Cannot watch standard input: {e}", cause=e) from e

    try:
        yield reader
    finally:
        transport.close()


__all__ = ["LineReader", "ChunkSource", "open_stdin"]
