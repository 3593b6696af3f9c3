"""Build an initial file-system image holding a root directory and some files."""

from __future__ import annotations

import struct
import sys
from pathlib import Path
from typing import Iterable, Mapping

from .disk import MemoryDisk
from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    FSSIZE,
    IPB,
    LOGSIZE,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DirEntry,
    DiskInode,
    InodeType,
    SuperBlock,
    inode_block,
)

NINODES = 200
_ADDR = struct.Struct("<I")


class ImageBuilder:
    """Lays out a fresh image: boot block, super block, log, inodes, bitmap, data."""

    def __init__(
        self, fssize: int = FSSIZE, ninodes: int = NINODES, nlog: int = LOGSIZE
    ) -> None:
        self.fssize = fssize
        self.ninodes = ninodes
        self.nlog = nlog
        self.nbitmap = fssize // (BSIZE * 8) + 1
        self.ninodeblocks = ninodes // IPB + 1
        self.nmeta = 2 + nlog + self.ninodeblocks + self.nbitmap
        self.nblocks = fssize - self.nmeta
        self.sb = SuperBlock(
            size=fssize,
            nblocks=self.nblocks,
            ninodes=ninodes,
            nlog=nlog,
            logstart=2,
            inodestart=2 + nlog,
            bmapstart=2 + nlog + self.ninodeblocks,
        )
        self.disk = MemoryDisk(nblocks=fssize)
        self.freeinode = 1
        self.freeblock = self.nmeta  # the first block that can be allocated

        block = bytearray(BSIZE)
        packed = self.sb.pack()
        block[: len(packed)] = packed
        self.disk.write_block(1, block)

        self.rootino = self.ialloc(InodeType.DIR)
        if self.rootino != ROOTINO:
            raise AssertionError("root inode is not the first inode")
        self.iappend(self.rootino, DirEntry(self.rootino, b".").pack())
        self.iappend(self.rootino, DirEntry(self.rootino, b"..").pack())

    def _alloc_block(self) -> int:
        b = self.freeblock
        self.freeblock += 1
        return b

    def _inode_slot(self, inum: int) -> tuple[int, slice]:
        off = (inum % IPB) * DINODE_SIZE
        return inode_block(inum, self.sb), slice(off, off + DINODE_SIZE)

    def read_inode(self, inum: int) -> DiskInode:
        bn, slot = self._inode_slot(inum)
        return DiskInode.unpack(self.disk.read_block(bn)[slot])

    def write_inode(self, inum: int, din: DiskInode) -> None:
        bn, slot = self._inode_slot(inum)
        block = bytearray(self.disk.read_block(bn))
        block[slot] = din.pack()
        self.disk.write_block(bn, block)

    def ialloc(self, type_) -> int:
        """Allocate the next inode with one link and return its number."""
        inum = self.freeinode
        if inum >= self.ninodes:
            raise ValueError(f"out of inodes: at most {self.ninodes - 1}")
        self.freeinode += 1
        self.write_inode(inum, DiskInode(type=int(type_), nlink=1, size=0))
        return inum

    def iappend(self, inum: int, data) -> None:
        """Append ``data`` to the contents of inode ``inum``."""
        view = memoryview(bytes(data))
        din = self.read_inode(inum)
        off = din.size
        while view:
            fbn = off // BSIZE
            if fbn >= MAXFILE:
                raise ValueError(f"file exceeds the maximum of {MAXFILE} blocks")
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._alloc_block()
                x = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._alloc_block()
                ind = bytearray(self.disk.read_block(din.addrs[NDIRECT]))
                pos = (fbn - NDIRECT) * _ADDR.size
                (x,) = _ADDR.unpack_from(ind, pos)
                if x == 0:
                    x = self._alloc_block()
                    _ADDR.pack_into(ind, pos, x)
                    self.disk.write_block(din.addrs[NDIRECT], ind)
            n1 = min(len(view), (fbn + 1) * BSIZE - off)
            block = bytearray(self.disk.read_block(x))
            start = off - fbn * BSIZE
            block[start : start + n1] = view[:n1]
            self.disk.write_block(x, block)
            view = view[n1:]
            off += n1
        din.size = off
        self.write_inode(inum, din)

    def add_file(self, name, data) -> int:
        """Add a file to the root directory; a leading ``_`` is dropped from its name."""
        raw = name.encode() if isinstance(name, str) else bytes(name)
        if b"/" in raw:
            raise ValueError(f"file name must not contain '/': {raw!r}")
        if raw.startswith(b"_"):
            raw = raw[1:]
        inum = self.ialloc(InodeType.FILE)
        self.iappend(self.rootino, DirEntry(inum, raw).pack())
        self.iappend(inum, data)
        return inum

    def _write_bitmap(self, used: int) -> None:
        if used >= BPB:
            raise ValueError(f"{used} used blocks do not fit in one bitmap block")
        bitmap = bytearray(BSIZE)
        for i in range(used):
            bitmap[i // 8] |= 1 << (i % 8)
        self.disk.write_block(self.sb.bmapstart, bitmap)

    def finish(self) -> bytes:
        """Round the root directory up to whole blocks, write the bitmap, return the image."""
        din = self.read_inode(self.rootino)
        din.size = (din.size // BSIZE + 1) * BSIZE
        self.write_inode(self.rootino, din)
        self._write_bitmap(self.freeblock)
        return self.disk.image()


def build_image(files: Mapping | Iterable = ()) -> bytes:
    """Build an image holding ``files``, given as a mapping or ``(name, data)`` pairs."""
    items = files.items() if isinstance(files, Mapping) else files
    builder = ImageBuilder()
    for name, data in items:
        builder.add_file(name, data)
    return builder.finish()


def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print("Usage: mkfs fs.img files...", file=sys.stderr)
        return 1
    image_path, *names = args
    builder = ImageBuilder()
    print(
        f"nmeta {builder.nmeta} (boot, super, log blocks {builder.nlog} inode blocks "
        f"{builder.ninodeblocks}, bitmap blocks {builder.nbitmap}) blocks "
        f"{builder.nblocks} total {builder.fssize}"
    )
    for name in names:
        try:
            data = Path(name).read_bytes()
        except OSError as exc:
            print(f"{name}: {exc.strerror}", file=sys.stderr)
            return 1
        try:
            builder.add_file(name, data)
        except ValueError as exc:
            print(f"mkfs: {exc}", file=sys.stderr)
            return 1
    print(f"balloc: first {builder.freeblock} blocks have been allocated")
    print(f"balloc: write bitmap block at sector {builder.sb.bmapstart}")
    try:
        image = builder.finish()
        Path(image_path).write_bytes(image)
    except (OSError, ValueError) as exc:
        print(f"{image_path}: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())