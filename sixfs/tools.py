"""Small user tools: cat, echo and ls."""

from __future__ import annotations

import os
from typing import BinaryIO, Iterable

from .fs import FileSystem, Inode, Stat
from .layout import DIRENT_SIZE, DIRSIZ, DirEntry, InodeType

_CHUNK = 512
_PATHBUF = 512


def cat(streams: Iterable[BinaryIO], out: BinaryIO) -> None:
    """Copy each stream in turn to ``out``."""
    for stream in streams:
        while chunk := stream.read(_CHUNK):
            written = out.write(chunk)
            if written is not None and written != len(chunk):
                raise OSError("cat: write error")


def echo(args: Iterable[str]) -> str:
    """Arguments separated by spaces, ending in a newline; empty without arguments."""
    args = list(args)
    return " ".join(args) + "\n" if args else ""


def fmtname(path: str) -> str:
    """The last element of ``path``, blank-padded to DIRSIZ characters."""
    name = path.rsplit("/", 1)[-1]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def _stat(fs: FileSystem, path: str, cwd: Inode | None) -> Stat:
    with fs.journal.transaction():
        ip = fs.namei(path, cwd)
    try:
        fs.ilock(ip)
        try:
            return fs.stati(ip)
        finally:
            fs.iunlock(ip)
    finally:
        with fs.journal.transaction():
            fs.iput(ip)


def _line(path: str, st: Stat) -> str:
    return f"{fmtname(path)} {int(st.type)} {st.ino} {st.size}"


def ls(fs: FileSystem, path: str = ".", cwd: Inode | None = None) -> list[str]:
    """List a file or the entries of a directory, one line per entry."""
    with fs.journal.transaction():
        ip = fs.namei(path, cwd)
    try:
        fs.ilock(ip)
        try:
            st = fs.stati(ip)
            raw = fs.readi(ip, 0, ip.size) if st.type == InodeType.DIR else b""
        finally:
            fs.iunlock(ip)
    finally:
        with fs.journal.transaction():
            fs.iput(ip)

    if st.type == InodeType.FILE:
        return [_line(path, st)]
    if st.type != InodeType.DIR:
        return []
    if len(path) + 1 + DIRSIZ + 1 > _PATHBUF:
        return ["ls: path too long"]
    lines = []
    for off in range(0, len(raw) - DIRENT_SIZE + 1, DIRENT_SIZE):
        de = DirEntry.unpack(raw[off : off + DIRENT_SIZE])
        if de.inum == 0:
            continue
        child = f"{path}/{os.fsdecode(de.name)}"
        try:
            cst = _stat(fs, child, cwd)
        except OSError:
            lines.append(f"ls: cannot stat {child}")
            continue
        lines.append(_line(child, cst))
    return lines