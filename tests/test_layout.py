import pytest

from sixfs.layout import (
    BPB,
    BSIZE,
    DIRENT_SIZE,
    DIRSIZ,
    DINODE_SIZE,
    IPB,
    NDIRECT,
    DirEntry,
    DiskInode,
    InodeType,
    SuperBlock,
    bitmap_block,
    inode_block,
)


def _sb():
    return SuperBlock(
        size=1000, nblocks=941, ninodes=200, nlog=30, logstart=2, inodestart=32, bmapstart=58
    )


def test_records_fit_blocks_evenly():
    dinode_len = len(DiskInode().pack())
    dirent_len = len(DirEntry(0, b"").pack())
    assert dinode_len == DINODE_SIZE
    assert dirent_len == DIRENT_SIZE
    assert IPB * dinode_len == BSIZE
    assert BSIZE % dirent_len == 0


def test_superblock_round_trip():
    sb = _sb()
    assert SuperBlock.unpack(sb.pack()) == sb


def test_superblock_is_little_endian():
    sb = _sb()
    assert sb.pack()[:4] == sb.size.to_bytes(4, "little")


def test_superblock_unpack_ignores_trailing_bytes():
    sb = _sb()
    assert SuperBlock.unpack(sb.pack().ljust(BSIZE, b"\0")) == sb


def test_dinode_round_trip():
    addrs = list(range(100, 100 + NDIRECT + 1))
    din = DiskInode(type=InodeType.DEV, major=1, minor=-1, nlink=2, size=4096, addrs=addrs)
    back = DiskInode.unpack(din.pack())
    assert back == din
    assert back.type == InodeType.DEV


def test_dinode_packed_size():
    assert len(DiskInode().pack()) == DINODE_SIZE


def test_dinode_rejects_wrong_address_count():
    with pytest.raises(ValueError):
        DiskInode(addrs=[0] * NDIRECT).pack()


def test_dirent_wire_bytes():
    assert DirEntry(1, b".").pack() == (1).to_bytes(2, "little") + b".".ljust(DIRSIZ, b"\0")


def test_dirent_round_trip_and_str_name():
    de = DirEntry(7, "README")
    assert de.name == b"README"
    assert DirEntry.unpack(de.pack()) == de


def test_dirent_name_truncated_to_dirsiz():
    de = DirEntry(5, b"a" * (DIRSIZ + 6))
    assert DirEntry.unpack(de.pack()).name == b"a" * DIRSIZ


def test_inode_block_boundaries():
    sb = _sb()
    assert inode_block(0, sb) == sb.inodestart
    assert inode_block(IPB - 1, sb) == sb.inodestart
    assert inode_block(IPB, sb) == sb.inodestart + 1


def test_bitmap_block_boundaries():
    sb = _sb()
    assert bitmap_block(0, sb) == sb.bmapstart
    assert bitmap_block(BPB - 1, sb) == sb.bmapstart
    assert bitmap_block(BPB, sb) == sb.bmapstart + 1