"""Buffer cache: cached copies of disk blocks with per-buffer locks."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

from .disk import DiskError, MemoryDisk
from .layout import BSIZE, NBUF, PanicError


class _SleepLock:
    """A non-reentrant lock that knows which thread holds it."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._owner: int | None = None

    def acquire(self) -> None:
        self._lock.acquire()
        self._owner = threading.get_ident()

    def release(self) -> None:
        self._owner = None
        self._lock.release()

    def held(self) -> bool:
        return self._lock.locked() and self._owner == threading.get_ident()


@dataclass(eq=False)
class Buffer:
    """A cached disk block."""

    dev: int = -1
    blockno: int = -1
    valid: bool = False
    dirty: bool = False
    refcnt: int = 0
    data: bytearray = field(default_factory=lambda: bytearray(BSIZE), repr=False)
    lock: _SleepLock = field(default_factory=_SleepLock, repr=False)

    @property
    def locked(self) -> bool:
        """Whether the calling thread holds this buffer."""
        return self.lock.held()


class BufferCache:
    """A fixed pool of buffers kept in most-recently-used order."""

    def __init__(self, disk: MemoryDisk, nbuf: int = NBUF) -> None:
        self.disk = disk
        self._lock = threading.Lock()
        # Index 0 is the most recently used buffer.
        self._buffers = [Buffer() for _ in range(nbuf)]

    def _get(self, dev: int, blockno: int) -> Buffer:
        with self._lock:
            for b in self._buffers:
                if b.dev == dev and b.blockno == blockno:
                    b.refcnt += 1
                    break
            else:
                # A dirty buffer is still in use by the log even when unreferenced.
                for b in reversed(self._buffers):
                    if b.refcnt == 0 and not b.dirty:
                        b.dev = dev
                        b.blockno = blockno
                        b.valid = False
                        b.dirty = False
                        b.refcnt = 1
                        break
                else:
                    raise PanicError("bget: no buffers")
        b.lock.acquire()
        return b

    def _sync(self, buf: Buffer) -> None:
        if not buf.lock.held():
            raise PanicError("iderw: buf not locked")
        if buf.valid and not buf.dirty:
            raise PanicError("iderw: nothing to do")
        if buf.dev != self.disk.dev:
            raise DiskError(f"iderw: request not for disk {self.disk.dev}")
        if buf.dirty:
            self.disk.write_block(buf.blockno, buf.data)
            buf.dirty = False
        else:
            buf.data[:] = self.disk.read_block(buf.blockno)
        buf.valid = True

    def read(self, dev: int, blockno: int) -> Buffer:
        """Return a locked buffer holding the block's contents."""
        buf = self._get(dev, blockno)
        if not buf.valid:
            try:
                self._sync(buf)
            except Exception:
                self.release(buf)
                raise
        return buf

    def write(self, buf: Buffer) -> None:
        """Write a locked buffer's contents to disk."""
        if not buf.lock.held():
            raise PanicError("bwrite")
        buf.dirty = True
        self._sync(buf)

    def release(self, buf: Buffer) -> None:
        """Unlock a buffer and move it to the front of the MRU order."""
        if not buf.lock.held():
            raise PanicError("brelse")
        buf.lock.release()
        with self._lock:
            buf.refcnt -= 1
            if buf.refcnt == 0:
                self._buffers.remove(buf)
                self._buffers.insert(0, buf)

    @contextmanager
    def block(self, dev: int, blockno: int) -> Iterator[Buffer]:
        """Read a block for the duration of a ``with`` statement."""
        buf = self.read(dev, blockno)
        try:
            yield buf
        finally:
            self.release(buf)