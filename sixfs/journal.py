"""Write-ahead redo log grouping file-system operations into transactions."""

from __future__ import annotations

import struct
import threading
from contextlib import contextmanager
from typing import Iterator

from .bcache import Buffer, BufferCache
from .layout import BSIZE, LOGSIZE, MAXOPBLOCKS, ROOTDEV, PanicError, SuperBlock

_COUNT = struct.Struct("<i")


def read_superblock(cache: BufferCache, dev: int) -> SuperBlock:
    """Read the super block of a device."""
    with cache.block(dev, 1) as buf:
        return SuperBlock.unpack(buf.data)


class Journal:
    """The on-disk log: a header block followed by copies of logged blocks."""

    def __init__(
        self,
        cache: BufferCache,
        dev: int = ROOTDEV,
        *,
        logsize: int = LOGSIZE,
        maxopblocks: int = MAXOPBLOCKS,
    ) -> None:
        if _COUNT.size * (1 + logsize) >= BSIZE:
            raise PanicError("initlog: too big logheader")
        self._cache = cache
        self.dev = dev
        self.logsize = logsize
        self.maxopblocks = maxopblocks
        self._cond = threading.Condition()
        self.outstanding = 0
        self.committing = False
        self._blocks: list[int] = []
        sb = read_superblock(cache, dev)
        self.start = sb.logstart
        self.size = sb.nlog
        self.recover()

    @property
    def pending_blocks(self) -> tuple[int, ...]:
        """Block numbers logged in the current transaction."""
        return tuple(self._blocks)

    def _read_head(self) -> None:
        with self._cache.block(self.dev, self.start) as buf:
            (n,) = _COUNT.unpack_from(buf.data)
            if not 0 <= n <= self.logsize:
                raise PanicError(f"log header holds {n} blocks")
            self._blocks = list(struct.unpack_from(f"<{n}i", buf.data, _COUNT.size))

    def _write_head(self) -> None:
        with self._cache.block(self.dev, self.start) as buf:
            n = len(self._blocks)
            struct.pack_into(f"<i{n}i", buf.data, 0, n, *self._blocks)
            self._cache.write(buf)

    def _install_trans(self) -> None:
        for tail, blockno in enumerate(self._blocks):
            with self._cache.block(self.dev, self.start + tail + 1) as lbuf:
                with self._cache.block(self.dev, blockno) as dbuf:
                    dbuf.data[:] = lbuf.data
                    self._cache.write(dbuf)

    def _write_log(self) -> None:
        for tail, blockno in enumerate(self._blocks):
            with self._cache.block(self.dev, self.start + tail + 1) as to:
                with self._cache.block(self.dev, blockno) as frm:
                    to.data[:] = frm.data
                    self._cache.write(to)

    def _commit(self) -> None:
        if self._blocks:
            self._write_log()
            self._write_head()  # the real commit point
            self._install_trans()
            self._blocks = []
            self._write_head()

    def recover(self) -> None:
        """Install any committed transaction found on disk, then clear the log."""
        self._read_head()
        self._install_trans()
        self._blocks = []
        self._write_head()

    def begin_op(self) -> None:
        """Start a file-system operation, waiting while the log is busy or full."""
        with self._cond:
            while self.committing or (
                len(self._blocks) + (self.outstanding + 1) * self.maxopblocks > self.logsize
            ):
                self._cond.wait()
            self.outstanding += 1

    def end_op(self) -> None:
        """Finish an operation; the last one to finish commits."""
        do_commit = False
        with self._cond:
            self.outstanding -= 1
            if self.committing:
                raise PanicError("log.committing")
            if self.outstanding == 0:
                do_commit = True
                self.committing = True
            else:
                self._cond.notify_all()
        if do_commit:
            try:
                self._commit()
            finally:
                with self._cond:
                    self.committing = False
                    self._cond.notify_all()

    @contextmanager
    def transaction(self) -> Iterator[Journal]:
        """Run the body as one file-system operation."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()

    def log_write(self, buf: Buffer) -> None:
        """Record a modified buffer in the transaction and pin it in the cache."""
        if len(self._blocks) >= self.logsize or len(self._blocks) >= self.size - 1:
            raise PanicError("too big a transaction")
        if self.outstanding < 1:
            raise PanicError("log_write outside of trans")
        with self._cond:
            if buf.blockno not in self._blocks:
                self._blocks.append(buf.blockno)
            buf.dirty = True