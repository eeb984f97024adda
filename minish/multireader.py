"""Line reading from several file descriptors at once, one buffer per descriptor."""

from __future__ import annotations

from minish.linereader import LineReader

BUFFER_SIZE = 5
FD_MAX = 128


class MultiLineReader:
    """Keep a separate read buffer for every descriptor below ``fd_max``."""

    def __init__(self, buffer_size: int = BUFFER_SIZE, fd_max: int = FD_MAX,
                 encoding: str = "utf-8"):
        if buffer_size <= 0:
            raise ValueError(f"buffer size must be positive: {buffer_size}")
        self.buffer_size = buffer_size
        self.fd_max = fd_max
        self.encoding = encoding
        self._readers: dict[int, LineReader] = {}

    def readline(self, fd: int) -> str | None:
        """Return the next line of ``fd``; None at end of input, on error,
        or when ``fd`` is out of range."""
        if fd < 0 or fd >= self.fd_max:
            return None
        reader = self._readers.get(fd)
        if reader is None:
            reader = LineReader(fd, self.buffer_size, self.encoding)
            self._readers[fd] = reader
        return reader.readline()