"""A small grep supporting only the ``^ . * $`` operators."""

from __future__ import annotations

import sys
from typing import BinaryIO

_BUFSIZE = 1024
_CARET = ord("^")
_DOT = ord(".")
_STAR = ord("*")
_DOLLAR = ord("$")


def _to_bytes(s) -> bytes:
    return s.encode() if isinstance(s, str) else bytes(s)


def _matchhere(re: bytes, r: int, text: bytes, t: int) -> bool:
    while True:
        if r == len(re):
            return True
        if r + 1 < len(re) and re[r + 1] == _STAR:
            return _matchstar(re[r], re, r + 2, text, t)
        if re[r] == _DOLLAR and r + 1 == len(re):
            return t == len(text)
        if t < len(text) and (re[r] == _DOT or re[r] == text[t]):
            r += 1
            t += 1
            continue
        return False


def _matchstar(c: int, re: bytes, r: int, text: bytes, t: int) -> bool:
    while True:
        if _matchhere(re, r, text, t):
            return True
        if t < len(text) and (text[t] == c or c == _DOT):
            t += 1
        else:
            return False


def match(re, text) -> bool:
    """Whether the pattern ``re`` matches anywhere in ``text``."""
    pattern = _to_bytes(re)
    line = _to_bytes(text)
    if pattern[:1] == b"^":
        return _matchhere(pattern, 1, line, 0)
    return any(_matchhere(pattern, 0, line, t) for t in range(len(line) + 1))


def grep(pattern, stream: BinaryIO, out: BinaryIO) -> int:
    """Copy the newline-terminated lines of ``stream`` that match to ``out``.

    Returns the number of lines written.
    """
    buf = bytearray()
    count = 0
    while True:
        chunk = stream.read(_BUFSIZE - len(buf) - 1)
        if not chunk:
            break
        buf += chunk
        start = 0
        while (q := buf.find(b"\n", start)) >= 0:
            line = bytes(buf[start:q])
            if match(pattern, line):
                out.write(line + b"\n")
                count += 1
            start = q + 1
        if start == 0:
            # A full buffer without a newline is dropped.
            buf.clear()
        else:
            del buf[:start]
    return count


def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write("usage: grep pattern [file ...]\n")
        return 1
    pattern, *paths = args
    out = sys.stdout.buffer
    if not paths:
        grep(pattern, sys.stdin.buffer, out)
        out.flush()
        return 0
    for path in paths:
        try:
            f = open(path, "rb")
        except OSError:
            out.write(f"grep: cannot open {path}\n".encode())
            out.flush()
            return 1
        with f:
            grep(pattern, f, out)
    out.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())