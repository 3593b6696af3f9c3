import errno

import pytest

from sixfs.bcache import BufferCache
from sixfs.disk import MemoryDisk
from sixfs.file import FileTable, FileType
from sixfs.fs import FileSystem
from sixfs.journal import Journal
from sixfs.layout import ROOTDEV, InodeType, PanicError
from sixfs.mkfs import build_image

README = b"the quick brown fox\n"


@pytest.fixture
def fs():
    cache = BufferCache(MemoryDisk(build_image({"README": README}), dev=ROOTDEV))
    return FileSystem(cache, Journal(cache, ROOTDEV))


@pytest.fixture
def table(fs):
    return FileTable(fs)


def _new_file(fs):
    with fs.journal.transaction():
        ip = fs.ialloc(InodeType.FILE)
        fs.ilock(ip)
        ip.nlink = 1
        fs.iupdate(ip)
        fs.iunlock(ip)
    return ip


def test_alloc_exhaustion():
    t = FileTable(nfile=2)
    t.alloc()
    t.alloc()
    with pytest.raises(OSError) as exc:
        t.alloc()
    assert exc.value.errno == errno.ENFILE


def test_dup_and_close_counts():
    t = FileTable(nfile=1)
    f = t.alloc()
    assert t.dup(f).ref == 2
    t.close(f)
    assert f.ref == 1
    t.close(f)
    assert f.ref == 0
    assert f.type is FileType.NONE
    with pytest.raises(PanicError):
        t.close(f)
    with pytest.raises(PanicError):
        t.dup(f)


def test_pipe_through_table():
    t = FileTable()
    r, w = t.open_pipe()
    assert t.write(w, b"data") == 4
    assert t.read(r, 10) == b"data"
    t.close(w)
    assert t.read(r, 10) == b""
    with pytest.raises(OSError) as exc:
        t.read(w, 1)
    assert exc.value.errno == errno.EBADF
    with pytest.raises(OSError):
        t.write(r, b"x")


def test_open_pipe_full_table_releases_first():
    t = FileTable(nfile=1)
    with pytest.raises(OSError):
        t.open_pipe()
    assert t.alloc().ref == 1


def test_stat_of_pipe_fails():
    t = FileTable()
    r, _ = t.open_pipe()
    with pytest.raises(OSError):
        t.stat(r)


def test_read_inode_advances_offset(fs, table):
    f = table.open_inode(fs.namei("/README"), readable=True, writable=False)
    assert table.read(f, 4) == README[:4]
    assert f.off == 4
    assert table.read(f, 100) == README[4:]
    assert table.read(f, 100) == b""
    assert table.stat(f).size == len(README)
    with pytest.raises(OSError):
        table.write(f, b"x")


def test_write_large_and_read_back(fs, table):
    data = bytes(range(256)) * 12
    ip = _new_file(fs)
    wf = table.open_inode(fs.idup(ip), readable=False, writable=True)
    assert table.write(wf, data) == len(data)
    assert wf.off == len(data)
    rf = table.open_inode(fs.idup(ip), readable=True, writable=False)
    assert table.read(rf, len(data) + 10) == data
    st = table.stat(rf)
    assert st.size == len(data)
    assert st.ino == ip.inum


def test_write_preserves_other_files(fs, table):
    ip = _new_file(fs)
    f = table.open_inode(ip, readable=True, writable=True)
    table.write(f, b"y" * 2000)
    rf = table.open_inode(fs.namei("/README"), readable=True, writable=False)
    assert table.read(rf, 100) == README


def test_close_inode_drops_reference(fs, table):
    ip = fs.namei("/README")
    held = fs.idup(ip)
    before = held.ref
    f = table.open_inode(ip, readable=True, writable=False)
    table.close(f)
    assert held.ref == before - 1
    assert f.ip is None