"""Inodes, file contents, directories and path names on top of the log."""

from __future__ import annotations

import errno
import os
import struct
import threading
from dataclasses import dataclass, field
from typing import Any, Mapping

from .bcache import BufferCache, _SleepLock
from .journal import Journal, read_superblock
from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    DIRENT_SIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DirEntry,
    DiskInode,
    InodeType,
    PanicError,
    bitmap_block,
    inode_block,
)

NINODE = 50
_ADDR = struct.Struct("<I")


@dataclass(frozen=True)
class Stat:
    """Metadata about an inode."""

    dev: int
    ino: int
    type: int
    nlink: int
    size: int


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode, shared by everyone who references it."""

    dev: int = 0
    inum: int = 0
    ref: int = 0
    valid: bool = False
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))
    lock: _SleepLock = field(default_factory=_SleepLock, repr=False)

    @property
    def locked(self) -> bool:
        """Whether the calling thread holds this inode's lock."""
        return self.lock.held()


def _as_bytes(s) -> bytes:
    return s.encode() if isinstance(s, str) else bytes(s)


def skipelem(path):
    """Split off the first element of ``path``.

    Returns ``(name, rest)`` where ``rest`` has no leading slashes and
    ``name`` is cut to DIRSIZ characters, or ``None`` if there is no element.
    """
    sep = "/" if isinstance(path, str) else b"/"
    path = path.lstrip(sep)
    if not path:
        return None
    head, _, rest = path.partition(sep)
    return head[:DIRSIZ], rest.lstrip(sep)


def namecmp(s, t) -> int:
    """Compare two directory names over at most DIRSIZ bytes, like strncmp."""
    a = _as_bytes(s).split(b"\0", 1)[0][:DIRSIZ]
    b = _as_bytes(t).split(b"\0", 1)[0][:DIRSIZ]
    return (a > b) - (a < b)


class FileSystem:
    """Inode layer of one device: allocation, contents, directories and names."""

    def __init__(
        self,
        cache: BufferCache,
        journal: Journal,
        dev: int | None = None,
        *,
        ninode: int = NINODE,
        devices: Mapping[int, Any] | None = None,
    ) -> None:
        self._cache = cache
        self.journal = journal
        self.dev = journal.dev if dev is None else dev
        self.devices: dict[int, Any] = dict(devices or {})
        self._icache_lock = threading.Lock()
        self._inodes = [Inode() for _ in range(ninode)]
        self.sb = read_superblock(cache, self.dev)

    # Blocks.

    def _bzero(self, bno: int) -> None:
        with self._cache.block(self.dev, bno) as bp:
            bp.data[:] = bytes(BSIZE)
            self.journal.log_write(bp)

    def _balloc(self) -> int:
        for b in range(0, self.sb.size, BPB):
            found = None
            with self._cache.block(self.dev, bitmap_block(b, self.sb)) as bp:
                for bi in range(min(BPB, self.sb.size - b)):
                    m = 1 << (bi % 8)
                    if not bp.data[bi // 8] & m:
                        bp.data[bi // 8] |= m
                        self.journal.log_write(bp)
                        found = b + bi
                        break
            if found is not None:
                self._bzero(found)
                return found
        raise PanicError("balloc: out of blocks")

    def _bfree(self, b: int) -> None:
        with self._cache.block(self.dev, bitmap_block(b, self.sb)) as bp:
            bi = b % BPB
            m = 1 << (bi % 8)
            if not bp.data[bi // 8] & m:
                raise PanicError("freeing free block")
            bp.data[bi // 8] &= ~m & 0xFF
            self.journal.log_write(bp)

    # Inodes.

    def _dinode_slot(self, inum: int) -> slice:
        off = (inum % IPB) * DINODE_SIZE
        return slice(off, off + DINODE_SIZE)

    def ialloc(self, type_) -> Inode:
        """Allocate a free on-disk inode of the given type; return it referenced."""
        for inum in range(1, self.sb.ninodes):
            slot = self._dinode_slot(inum)
            with self._cache.block(self.dev, inode_block(inum, self.sb)) as bp:
                din = DiskInode.unpack(bp.data[slot])
                if din.type != InodeType.FREE:
                    continue
                bp.data[slot] = DiskInode(type=int(type_)).pack()
                self.journal.log_write(bp)
            return self.iget(inum)
        raise PanicError("ialloc: no inodes")

    def iupdate(self, ip: Inode) -> None:
        """Copy a modified in-memory inode to disk."""
        slot = self._dinode_slot(ip.inum)
        with self._cache.block(ip.dev, inode_block(ip.inum, self.sb)) as bp:
            bp.data[slot] = DiskInode(
                ip.type, ip.major, ip.minor, ip.nlink, ip.size, list(ip.addrs)
            ).pack()
            self.journal.log_write(bp)

    def iget(self, inum: int) -> Inode:
        """Return the cached inode ``inum``, referenced but neither locked nor read."""
        with self._icache_lock:
            empty = None
            for ip in self._inodes:
                if ip.ref > 0 and ip.dev == self.dev and ip.inum == inum:
                    ip.ref += 1
                    return ip
                if empty is None and ip.ref == 0:
                    empty = ip
            if empty is None:
                raise PanicError("iget: no inodes")
            empty.dev = self.dev
            empty.inum = inum
            empty.ref = 1
            empty.valid = False
            return empty

    def idup(self, ip: Inode) -> Inode:
        """Take another reference to ``ip``."""
        with self._icache_lock:
            ip.ref += 1
        return ip

    def ilock(self, ip: Inode) -> None:
        """Lock an inode, reading it from disk if needed."""
        if ip is None or ip.ref < 1:
            raise PanicError("ilock")
        ip.lock.acquire()
        if not ip.valid:
            slot = self._dinode_slot(ip.inum)
            with self._cache.block(ip.dev, inode_block(ip.inum, self.sb)) as bp:
                din = DiskInode.unpack(bp.data[slot])
            ip.type = din.type
            ip.major = din.major
            ip.minor = din.minor
            ip.nlink = din.nlink
            ip.size = din.size
            ip.addrs = list(din.addrs)
            ip.valid = True
            if ip.type == InodeType.FREE:
                ip.lock.release()
                raise PanicError("ilock: no type")

    def iunlock(self, ip: Inode) -> None:
        if ip is None or not ip.lock.held() or ip.ref < 1:
            raise PanicError("iunlock")
        ip.lock.release()

    def iput(self, ip: Inode) -> None:
        """Drop a reference; free the inode on disk if it was the last and unlinked."""
        ip.lock.acquire()
        try:
            if ip.valid and ip.nlink == 0:
                with self._icache_lock:
                    r = ip.ref
                if r == 1:
                    self._itrunc(ip)
                    ip.type = InodeType.FREE
                    self.iupdate(ip)
                    ip.valid = False
        finally:
            ip.lock.release()
        with self._icache_lock:
            ip.ref -= 1

    def iunlockput(self, ip: Inode) -> None:
        self.iunlock(ip)
        self.iput(ip)

    # Contents.

    def _bmap(self, ip: Inode, bn: int) -> int:
        if bn < NDIRECT:
            if ip.addrs[bn] == 0:
                ip.addrs[bn] = self._balloc()
            return ip.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if ip.addrs[NDIRECT] == 0:
                ip.addrs[NDIRECT] = self._balloc()
            with self._cache.block(ip.dev, ip.addrs[NDIRECT]) as bp:
                off = bn * _ADDR.size
                (addr,) = _ADDR.unpack_from(bp.data, off)
                if addr == 0:
                    addr = self._balloc()
                    _ADDR.pack_into(bp.data, off, addr)
                    self.journal.log_write(bp)
            return addr
        raise PanicError("bmap: out of range")

    def _itrunc(self, ip: Inode) -> None:
        for i in range(NDIRECT):
            if ip.addrs[i]:
                self._bfree(ip.addrs[i])
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            with self._cache.block(ip.dev, ip.addrs[NDIRECT]) as bp:
                addrs = struct.unpack_from(f"<{NINDIRECT}I", bp.data)
            for a in addrs:
                if a:
                    self._bfree(a)
            self._bfree(ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.iupdate(ip)

    def stati(self, ip: Inode) -> Stat:
        return Stat(dev=ip.dev, ino=ip.inum, type=ip.type, nlink=ip.nlink, size=ip.size)

    def _device(self, ip: Inode, op: str):
        fn = getattr(self.devices.get(ip.major), op, None)
        if fn is None:
            raise OSError(errno.ENODEV, f"no {op} handler for device {ip.major}")
        return fn

    def readi(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to ``n`` bytes at ``off``; the inode must be locked."""
        if ip.type == InodeType.DEV:
            return self._device(ip, "read")(n)
        if off < 0 or n < 0 or off > ip.size:
            raise ValueError(f"read of {n} bytes at {off} outside file of {ip.size}")
        n = min(n, ip.size - off)
        out = bytearray()
        while len(out) < n:
            pos = off + len(out)
            start = pos % BSIZE
            m = min(n - len(out), BSIZE - start)
            with self._cache.block(ip.dev, self._bmap(ip, pos // BSIZE)) as bp:
                out += bp.data[start : start + m]
        return bytes(out)

    def writei(self, ip: Inode, data, off: int) -> int:
        """Write ``data`` at ``off``; the inode must be locked, inside a transaction."""
        if ip.type == InodeType.DEV:
            return self._device(ip, "write")(data)
        n = len(data)
        if off < 0 or off > ip.size:
            raise ValueError(f"write at {off} beyond end of file of {ip.size}")
        if off + n > MAXFILE * BSIZE:
            raise ValueError(f"write would exceed maximum file size {MAXFILE * BSIZE}")
        tot = 0
        while tot < n:
            pos = off + tot
            start = pos % BSIZE
            m = min(n - tot, BSIZE - start)
            with self._cache.block(ip.dev, self._bmap(ip, pos // BSIZE)) as bp:
                bp.data[start : start + m] = data[tot : tot + m]
                self.journal.log_write(bp)
            tot += m
        if n > 0 and off + n > ip.size:
            ip.size = off + n
            self.iupdate(ip)
        return n

    # Directories.

    def _entries(self, dp: Inode, what: str):
        for off in range(0, dp.size, DIRENT_SIZE):
            raw = self.readi(dp, off, DIRENT_SIZE)
            if len(raw) != DIRENT_SIZE:
                raise PanicError(f"{what} read")
            yield off, DirEntry.unpack(raw)

    def dirlookup(self, dp: Inode, name):
        """Find ``name`` in directory ``dp``: ``(inode, offset)`` or ``None``."""
        if dp.type != InodeType.DIR:
            raise PanicError("dirlookup not DIR")
        for off, de in self._entries(dp, "dirlookup"):
            if de.inum and namecmp(name, de.name) == 0:
                return self.iget(de.inum), off
        return None

    def dirlink(self, dp: Inode, name, inum: int) -> None:
        """Add the entry ``(name, inum)`` to directory ``dp``."""
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FileExistsError(errno.EEXIST, "entry exists", os.fsdecode(_as_bytes(name)))
        off = next((o for o, de in self._entries(dp, "dirlink") if de.inum == 0), dp.size)
        if self.writei(dp, DirEntry(inum, _as_bytes(name)).pack(), off) != DIRENT_SIZE:
            raise PanicError("dirlink")

    # Paths.

    def _namex(self, path, cwd: Inode | None, parent: bool):
        raw = _as_bytes(path)
        if raw.startswith(b"/") or cwd is None:
            ip = self.iget(ROOTINO)
        else:
            ip = self.idup(cwd)
        rest = raw
        while (elem := skipelem(rest)) is not None:
            name, rest = elem
            self.ilock(ip)
            if ip.type != InodeType.DIR:
                self.iunlockput(ip)
                raise NotADirectoryError(errno.ENOTDIR, "not a directory", os.fsdecode(raw))
            if parent and not rest:
                self.iunlock(ip)
                return ip, name
            found = self.dirlookup(ip, name)
            self.iunlockput(ip)
            if found is None:
                raise FileNotFoundError(errno.ENOENT, "no such file or directory", os.fsdecode(raw))
            ip = found[0]
        if parent:
            self.iput(ip)
            raise FileNotFoundError(errno.ENOENT, "path has no final element", os.fsdecode(raw))
        return ip, b""

    def namei(self, path, cwd: Inode | None = None) -> Inode:
        """Look up a path and return its inode, referenced and unlocked."""
        return self._namex(path, cwd, False)[0]

    def nameiparent(self, path, cwd: Inode | None = None) -> tuple[Inode, bytes]:
        """Return the inode of the parent directory and the final path element."""
        return self._namex(path, cwd, True)