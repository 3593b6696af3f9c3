"""Open files: a table of reference-counted handles on pipes and inodes."""

from __future__ import annotations

import enum
import errno
import threading
from dataclasses import dataclass

from .fs import FileSystem, Inode, Stat
from .layout import BSIZE, PanicError
from .pipe import Pipe

NFILE = 100


class FileType(enum.Enum):
    NONE = 0
    PIPE = 1
    INODE = 2


@dataclass(eq=False)
class OpenFile:
    """An open file: a pipe end or an inode with an offset."""

    type: FileType = FileType.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Pipe | None = None
    ip: Inode | None = None
    off: int = 0


class FileTable:
    """A fixed table of open files shared by the whole system."""

    def __init__(self, fs: FileSystem | None = None, *, nfile: int = NFILE) -> None:
        self.fs = fs
        self._lock = threading.Lock()
        self._files = [OpenFile() for _ in range(nfile)]

    def alloc(self) -> OpenFile:
        """Take a free entry with one reference."""
        with self._lock:
            for f in self._files:
                if f.ref == 0:
                    f.ref = 1
                    f.type = FileType.NONE
                    f.readable = f.writable = False
                    f.pipe = None
                    f.ip = None
                    f.off = 0
                    return f
        raise OSError(errno.ENFILE, "file table full")

    def dup(self, f: OpenFile) -> OpenFile:
        with self._lock:
            if f.ref < 1:
                raise PanicError("filedup")
            f.ref += 1
        return f

    def close(self, f: OpenFile) -> None:
        """Drop a reference; release the pipe end or inode with the last one."""
        with self._lock:
            if f.ref < 1:
                raise PanicError("fileclose")
            f.ref -= 1
            if f.ref > 0:
                return
            kind, pipe, ip, writable = f.type, f.pipe, f.ip, f.writable
            f.type = FileType.NONE
            f.pipe = None
            f.ip = None
        if kind is FileType.PIPE:
            pipe.close(writable)
        elif kind is FileType.INODE:
            with self.fs.journal.transaction():
                self.fs.iput(ip)

    def stat(self, f: OpenFile) -> Stat:
        if f.type is not FileType.INODE:
            raise OSError(errno.EINVAL, "not an inode")
        self.fs.ilock(f.ip)
        try:
            return self.fs.stati(f.ip)
        finally:
            self.fs.iunlock(f.ip)

    def read(self, f: OpenFile, n: int) -> bytes:
        if not f.readable:
            raise OSError(errno.EBADF, "file not open for reading")
        if f.type is FileType.PIPE:
            return f.pipe.read(n)
        if f.type is FileType.INODE:
            self.fs.ilock(f.ip)
            try:
                data = self.fs.readi(f.ip, f.off, n)
                f.off += len(data)
            finally:
                self.fs.iunlock(f.ip)
            return data
        raise PanicError("fileread")

    def write(self, f: OpenFile, data) -> int:
        if not f.writable:
            raise OSError(errno.EBADF, "file not open for writing")
        if f.type is FileType.PIPE:
            return f.pipe.write(data)
        if f.type is FileType.INODE:
            data = bytes(data)
            # A few blocks at a time, to stay within one log transaction:
            # the inode, an indirect block, allocation blocks and slop.
            limit = ((self.fs.journal.maxopblocks - 1 - 1 - 2) // 2) * BSIZE
            i = 0
            while i < len(data):
                chunk = data[i : i + limit]
                with self.fs.journal.transaction():
                    self.fs.ilock(f.ip)
                    try:
                        r = self.fs.writei(f.ip, chunk, f.off)
                        f.off += r
                    finally:
                        self.fs.iunlock(f.ip)
                if r != len(chunk):
                    raise PanicError("short filewrite")
                i += r
            return len(data)
        raise PanicError("filewrite")

    def open_pipe(self) -> tuple[OpenFile, OpenFile]:
        """Create a pipe and return its read end and write end."""
        rf = self.alloc()
        try:
            wf = self.alloc()
        except OSError:
            self.close(rf)
            raise
        p = Pipe()
        rf.type, rf.readable, rf.writable, rf.pipe = FileType.PIPE, True, False, p
        wf.type, wf.readable, wf.writable, wf.pipe = FileType.PIPE, False, True, p
        return rf, wf

    def open_inode(self, ip: Inode, readable: bool, writable: bool) -> OpenFile:
        """Open a referenced inode; the file takes over that reference."""
        f = self.alloc()
        f.type = FileType.INODE
        f.ip = ip
        f.off = 0
        f.readable = bool(readable)
        f.writable = bool(writable)
        return f