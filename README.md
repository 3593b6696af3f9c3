# sixfs

sixfs is a small Unix-style file system written in plain Python, with no
dependencies outside the standard library. It covers the whole stack of a
classic teaching file system, from raw blocks up to path names, along with a
few text tools.

## What is in it

- **`sixfs.layout`**: the on-disk formats. `SuperBlock`, `DiskInode` and
  `DirEntry` pack to and unpack from little-endian bytes. `InodeType` names the
  inode types (`FREE`, `DIR`, `FILE`, `DEV`). `inode_block` and `bitmap_block`
  find the block holding an inode or a free-map bit. `PanicError` is raised for
  unrecoverable inconsistencies.
- **`sixfs.disk`**: `MemoryDisk` keeps a whole image in memory, reads and writes
  512-byte blocks with `read_block` and `write_block`, returns the whole image
  with `image()`, and loads a file with `MemoryDisk.from_file`. A block number
  out of range raises `DiskError`.
- **`sixfs.bcache`**: `BufferCache` holds a fixed number of `Buffer`s. `read`
  returns a locked buffer, `write` writes it to disk, and `release` unlocks it
  and marks it most recently used. When a block is not cached, the least
  recently used buffer that is unreferenced and not dirty is recycled; if there
  is none, `PanicError` is raised. `block` is a context manager that reads and
  releases a buffer.
- **`sixfs.journal`**: `Journal` is a physical redo log. Updates are recorded
  with `log_write` inside `begin_op`/`end_op`, or the `transaction()` context
  manager, and are committed together when the last running operation ends.
  Creating a `Journal` calls `recover`, which installs a transaction that was
  committed to the log but not yet copied home, then clears the log.
  `read_superblock` reads a device's super block.
- **`sixfs.fs`**: `FileSystem` allocates inodes (`ialloc`), caches and
  references them (`iget`, `idup`, `iput`), locks them (`ilock`, `iunlock`),
  reads and writes their contents (`readi`, `writei`), looks up and adds
  directory entries (`dirlookup`, `dirlink`) and resolves paths (`namei`,
  `nameiparent`). Dropping the last reference to an inode with no links frees
  its blocks and the inode on disk. Inodes of type `DEV` are served by the
  objects in `FileSystem.devices`, keyed by major number, through their
  `read` and `write` methods. `skipelem` and `namecmp` are the path helpers.
- **`sixfs.file`** and **`sixfs.pipe`**: `FileTable` is a fixed table of
  reference-counted `OpenFile`s (`alloc`, `dup`, `close`, `stat`, `read`,
  `write`), opened on an inode with `open_inode` or as the two ends of a `Pipe`
  with `open_pipe`. Writes to inodes are split into chunks that each fit in one
  journal transaction. `Pipe` is a bounded buffer whose `write` and `read` block;
  writing after the read end is closed raises `PipeClosedError`.
- **`sixfs.mkfs`**: `ImageBuilder` lays out a fresh image (boot block, super
  block, log, inode blocks, free bitmap, data) with a root directory holding
  `.` and `..`. `add_file` puts a file in the root directory, `finish` writes
  the bitmap and returns the image bytes. `build_image` does it in one call.
- **`sixfs.console`**: `Console` is a line discipline. `interrupt` takes typed
  characters and handles backspace, Control-U (kill line), Control-D (end of
  file) and Control-P (process listing callback), echoing to an output sink;
  `read` returns committed input up to a newline; `write` echoes bytes.
- **`sixfs.kbd`**: `Keyboard` turns PC scan codes into character codes,
  tracking Shift, Control, Caps Lock and E0-prefixed keys.
- **`sixfs.formatting`**: `format_int`, `format_user` (`%d %x %p %s %c %%`,
  upper-case hex) and `format_console` (`%d %x %p %s %%`, lower-case hex).
- **`sixfs.grep`** and **`sixfs.tools`**: `match` and `grep` understand the
  `^ . * $` operators; `cat`, `echo`, `fmtname` and `ls` mirror the classic
  tools, with `ls` listing a path on a `FileSystem`.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Command line

Build a file system image from files on the host. The first argument is the
image to write; every file after it is placed in the root directory, with a
leading `_` dropped from its name.

```
sixfs-mkfs fs.img README _cat _ls
```

Print the lines of some files that match a pattern. With no files, standard
input is read.

```
sixfs-grep '^ab*c$' notes.txt
```

## Using the library

Build an image, mount it, read a file and list the root directory:

```python
from sixfs.bcache import BufferCache
from sixfs.disk import MemoryDisk
from sixfs.fs import FileSystem
from sixfs.journal import Journal
from sixfs.mkfs import build_image
from sixfs.tools import ls

disk = MemoryDisk(build_image({"hello.txt": b"hi\n"}))
cache = BufferCache(disk)
journal = Journal(cache)
fs = FileSystem(cache, journal)

with journal.transaction():
    ip = fs.namei("/hello.txt")
    fs.ilock(ip)
    data = fs.readi(ip, 0, ip.size)   # b"hi\n"
    fs.iunlockput(ip)

for line in ls(fs, "/"):
    print(line)                       # name, type, inode number, size
```

Writes go through `writei` on a locked inode inside a transaction, or through
`FileTable.write` on a file opened with `open_inode`. The image can be taken
back out with `disk.image()`.

Smaller pieces:

```python
from sixfs.formatting import format_user
from sixfs.grep import match
from sixfs.kbd import Keyboard
from sixfs.tools import echo

match("^ab*c$", "abbbc")             # True
match("x.z", "axyz")                 # True: matches anywhere in the line
echo(["hello", "world"])             # "hello world\n"
format_user("%d %x", -5, 255)        # "-5 FF"
Keyboard().decode([0x23, 0x17])      # [ord("h"), ord("i")]
```

## Errors

Conditions that would stop the machine, such as running out of buffers,
blocks or inodes, or freeing a free block, raise `PanicError`. A disk request
out of range raises `DiskError`. A missing path raises `FileNotFoundError`, a
path through a non-directory raises `NotADirectoryError`, and linking a name
that already exists raises `FileExistsError`. Reads and writes at offsets past
the end of a file, or writes beyond the maximum file size, raise `ValueError`.

## What it does not do

sixfs is a library, not an operating system. There are no processes, no
system calls and no shell: nothing creates directories, removes or renames
entries, or makes hard links by path, though `dirlink` and `ialloc` are the
pieces such operations would be built from. The only commands are
`sixfs-mkfs` and `sixfs-grep`; `cat`, `echo` and `ls` are functions. Disks
live in memory and are saved only by writing `MemoryDisk.image()` out
yourself. The console and keyboard work on characters and scan codes you pass
in; they do not talk to a terminal or to hardware.