"""A disk whose blocks are kept in memory."""

from __future__ import annotations

from pathlib import Path

from .layout import BSIZE, ROOTDEV, PanicError


class DiskError(PanicError):
    """A request the disk cannot serve."""


class MemoryDisk:
    """A block device backed by a byte array."""

    def __init__(self, data=None, *, nblocks: int = 0, dev: int = ROOTDEV) -> None:
        if data is None:
            data = bytes(nblocks * BSIZE)
        self.dev = dev
        self._data = bytearray(data)
        self.nblocks = len(self._data) // BSIZE

    def _offset(self, blockno: int) -> int:
        if not 0 <= blockno < self.nblocks:
            raise DiskError(f"iderw: block out of range: {blockno}")
        return blockno * BSIZE

    def read_block(self, blockno: int) -> bytes:
        off = self._offset(blockno)
        return bytes(self._data[off : off + BSIZE])

    def write_block(self, blockno: int, data) -> None:
        if len(data) != BSIZE:
            raise ValueError(f"a block is {BSIZE} bytes, got {len(data)}")
        off = self._offset(blockno)
        self._data[off : off + BSIZE] = data

    def image(self) -> bytes:
        """The whole disk contents."""
        return bytes(self._data)

    @classmethod
    def from_file(cls, path, dev: int = ROOTDEV) -> MemoryDisk:
        return cls(Path(path).read_bytes(), dev=dev)