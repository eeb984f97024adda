"""Buffered reading of newline-terminated lines from a file descriptor."""

from __future__ import annotations

import os
from typing import Iterator

BUFFER_SIZE = 255


class LineReader:
    """Read lines from ``fd``, ``buffer_size`` bytes per system read.

    Lines keep their trailing newline; the last line of the input may lack
    one. End of input and read errors both yield None.
    """

    def __init__(self, fd: int, buffer_size: int = BUFFER_SIZE, encoding: str = "utf-8"):
        if fd < 0:
            raise ValueError(f"invalid file descriptor: {fd}")
        if buffer_size <= 0:
            raise ValueError(f"buffer size must be positive: {buffer_size}")
        self.fd = fd
        self.buffer_size = buffer_size
        self.encoding = encoding
        self._pending = b""

    def _decode(self, data: bytes) -> str:
        return data.decode(self.encoding, errors="surrogateescape")

    def readline(self) -> str | None:
        """Return the next line, or None at end of input or on a read error."""
        while b"\n" not in self._pending:
            try:
                chunk = os.read(self.fd, self.buffer_size)
            except OSError:
                self._pending = b""
                return None
            if not chunk:
                line, self._pending = self._pending, b""
                return self._decode(line) if line else None
            self._pending += chunk
        line, _, self._pending = self._pending.partition(b"\n")
        return self._decode(line + b"\n")

    def __iter__(self) -> Iterator[str]:
        while (line := self.readline()) is not None:
            yield line