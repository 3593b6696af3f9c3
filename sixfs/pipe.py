"""A bounded in-memory byte pipe with blocking reads and writes."""

from __future__ import annotations

import errno
import threading

PIPESIZE = 512


class PipeClosedError(BrokenPipeError):
    """A write to a pipe whose read end is closed."""

    def __init__(self, message: str = "pipe read end closed") -> None:
        super().__init__(errno.EPIPE, message)


class Pipe:
    """A pipe with one read end and one write end."""

    def __init__(self, size: int = PIPESIZE) -> None:
        self.size = size
        self._cond = threading.Condition()
        self._buf = bytearray()
        self.readopen = True
        self.writeopen = True

    def write(self, data) -> int:
        """Write all of ``data``, blocking while the pipe is full."""
        data = bytes(data)
        with self._cond:
            i = 0
            while i < len(data):
                while len(self._buf) >= self.size:
                    if not self.readopen:
                        raise PipeClosedError()
                    self._cond.notify_all()
                    self._cond.wait()
                take = min(self.size - len(self._buf), len(data) - i)
                self._buf += data[i : i + take]
                i += take
            self._cond.notify_all()
        return len(data)

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes, blocking while empty and the write end is open."""
        with self._cond:
            while not self._buf and self.writeopen:
                self._cond.wait()
            chunk = bytes(self._buf[:n])
            del self._buf[:n]
            self._cond.notify_all()
            return chunk

    def close(self, writable: bool) -> None:
        """Close the write end if ``writable``, otherwise the read end."""
        with self._cond:
            if writable:
                self.writeopen = False
            else:
                self.readopen = False
            self._cond.notify_all()