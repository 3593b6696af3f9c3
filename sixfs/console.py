"""Console line discipline: line editing of typed input and echoing output."""

from __future__ import annotations

import threading
from typing import Callable, Iterable

INPUT_BUF = 128
BACKSPACE = 0x100


def _ctrl(ch: str) -> int:
    return ord(ch) - ord("@")


_CTRL_D = _ctrl("D")
_CTRL_H = _ctrl("H")
_CTRL_P = _ctrl("P")
_CTRL_U = _ctrl("U")
_DEL = 0x7F


class Console:
    """An input ring with line editing, and an output sink for echoed bytes."""

    def __init__(
        self,
        sink: Callable[[bytes], object] | None = None,
        on_procdump: Callable[[], object] | None = None,
    ) -> None:
        self.output = bytearray()
        self._sink = sink if sink is not None else self.output.extend
        self._on_procdump = on_procdump
        self._cond = threading.Condition(threading.RLock())
        self._buf = bytearray(INPUT_BUF)
        self.r = 0  # read index
        self.w = 0  # write index
        self.e = 0  # edit index

    def putc(self, c: int) -> None:
        """Emit one character; BACKSPACE erases the previous one."""
        if c == BACKSPACE:
            self._sink(b"\b \b")
        else:
            self._sink(bytes([c & 0xFF]))

    def interrupt(self, chars: Iterable) -> bool:
        """Process typed characters; returns whether a process listing was asked for."""
        if isinstance(chars, str):
            chars = map(ord, chars)
        doprocdump = False
        with self._cond:
            for c in chars:
                if c == _CTRL_P:
                    doprocdump = True
                elif c == _CTRL_U:
                    while self.e != self.w and self._buf[(self.e - 1) % INPUT_BUF] != ord("\n"):
                        self.e -= 1
                        self.putc(BACKSPACE)
                elif c in (_CTRL_H, _DEL):
                    if self.e != self.w:
                        self.e -= 1
                        self.putc(BACKSPACE)
                elif c != 0 and self.e - self.r < INPUT_BUF:
                    if c == ord("\r"):
                        c = ord("\n")
                    self._buf[self.e % INPUT_BUF] = c & 0xFF
                    self.e += 1
                    self.putc(c)
                    if c == ord("\n") or c == _CTRL_D or self.e == self.r + INPUT_BUF:
                        self.w = self.e
                        self._cond.notify_all()
        if doprocdump and self._on_procdump is not None:
            self._on_procdump()
        return doprocdump

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes of committed input, stopping after a newline.

        Blocks until input is available. Control-D marks end of file.
        """
        target = n
        out = bytearray()
        with self._cond:
            while n > 0:
                while self.r == self.w:
                    self._cond.wait()
                c = self._buf[self.r % INPUT_BUF]
                self.r += 1
                if c == _CTRL_D:
                    if n < target:
                        # Keep ^D so the next read returns nothing.
                        self.r -= 1
                    break
                out.append(c)
                n -= 1
                if c == ord("\n"):
                    break
        return bytes(out)

    def write(self, data) -> int:
        """Write bytes to the console."""
        if isinstance(data, str):
            data = data.encode()
        with self._cond:
            for b in bytes(data):
                self.putc(b & 0xFF)
        return len(data)