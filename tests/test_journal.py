import struct
import threading

import pytest

from sixfs.bcache import BufferCache
from sixfs.disk import MemoryDisk
from sixfs.journal import Journal, read_superblock
from sixfs.layout import BSIZE, PanicError, SuperBlock

NLOG = 30
NBLOCKS = 100


def _superblock():
    return SuperBlock(
        size=NBLOCKS,
        nblocks=NBLOCKS - (2 + NLOG + 2),
        ninodes=16,
        nlog=NLOG,
        logstart=2,
        inodestart=2 + NLOG,
        bmapstart=2 + NLOG + 1,
    )


def _disk():
    disk = MemoryDisk(nblocks=NBLOCKS, dev=1)
    disk.write_block(1, _superblock().pack().ljust(BSIZE, b"\0"))
    return disk


def _header_count(disk):
    return struct.unpack_from("<i", disk.read_block(2))[0]


def test_read_superblock():
    cache = BufferCache(_disk())
    assert read_superblock(cache, 1) == _superblock()


def test_journal_takes_layout_from_superblock():
    journal = Journal(BufferCache(_disk()), 1)
    assert journal.start == _superblock().logstart
    assert journal.size == NLOG
    assert journal.pending_blocks == ()


def test_transaction_commits_to_home_location():
    disk = _disk()
    cache = BufferCache(disk)
    journal = Journal(cache, 1)
    with journal.transaction():
        with cache.block(1, 50) as buf:
            buf.data[:5] = b"hello"
            journal.log_write(buf)
        assert disk.read_block(50) == bytes(BSIZE)
        assert journal.pending_blocks == (50,)
    assert disk.read_block(50)[:5] == b"hello"
    assert journal.pending_blocks == ()
    assert _header_count(disk) == 0


def test_log_absorption():
    cache = BufferCache(_disk())
    journal = Journal(cache, 1)
    journal.begin_op()
    for _ in range(3):
        with cache.block(1, 60) as buf:
            journal.log_write(buf)
    assert journal.pending_blocks == (60,)
    journal.end_op()


def test_recovery_installs_committed_blocks():
    disk = _disk()
    disk.write_block(2, struct.pack("<ii", 1, 60).ljust(BSIZE, b"\0"))
    disk.write_block(3, b"logged".ljust(BSIZE, b"\0"))
    Journal(BufferCache(disk), 1)
    assert disk.read_block(60)[:6] == b"logged"
    assert _header_count(disk) == 0


def test_log_write_outside_transaction():
    cache = BufferCache(_disk())
    journal = Journal(cache, 1)
    with cache.block(1, 50) as buf:
        with pytest.raises(PanicError, match="outside of trans"):
            journal.log_write(buf)


def test_header_too_big():
    with pytest.raises(PanicError, match="too big logheader"):
        Journal(BufferCache(_disk()), 1, logsize=BSIZE)


def test_transaction_too_big():
    cache = BufferCache(_disk(), nbuf=40)
    journal = Journal(cache, 1)
    journal.begin_op()
    for blockno in range(50, 50 + NLOG - 1):
        with cache.block(1, blockno) as buf:
            journal.log_write(buf)
    with cache.block(1, 50 + NLOG) as buf:
        with pytest.raises(PanicError, match="too big a transaction"):
            journal.log_write(buf)


def test_end_op_while_committing_panics():
    journal = Journal(BufferCache(_disk()), 1)
    journal.begin_op()
    journal.begin_op()
    journal.committing = True
    with pytest.raises(PanicError, match="log.committing"):
        journal.end_op()


def test_concurrent_transactions():
    disk = _disk()
    cache = BufferCache(disk)
    journal = Journal(cache, 1)

    def work(i):
        with journal.transaction():
            with cache.block(1, 60 + i) as buf:
                buf.data[:] = bytes([i + 1]) * BSIZE
                journal.log_write(buf)

    threads = [threading.Thread(target=work, args=(i,)) for i in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    for i in range(5):
        assert disk.read_block(60 + i) == bytes([i + 1]) * BSIZE
    assert journal.outstanding == 0
    assert _header_count(disk) == 0