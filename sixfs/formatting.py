"""Minimal printf-style formatting for the user library and the console."""

from __future__ import annotations

from typing import Any, Iterator

from .layout import PanicError

UPPER_DIGITS = "0123456789ABCDEF"
LOWER_DIGITS = "0123456789abcdef"

_MASK = 0xFFFFFFFF
_SIGN = 0x80000000


def format_int(value: int, base: int = 10, signed: bool = True, digits: str = UPPER_DIGITS) -> str:
    """Render a 32-bit integer in ``base``; ``signed`` treats it as two's complement."""
    if not 2 <= base <= len(digits):
        raise ValueError(f"base must be between 2 and {len(digits)}, got {base}")
    x = int(value) & _MASK
    neg = bool(signed and x & _SIGN)
    if neg:
        x = (-x) & _MASK
    out = []
    while True:
        out.append(digits[x % base])
        x //= base
        if x == 0:
            break
    if neg:
        out.append("-")
    return "".join(reversed(out))


def _next(args: Iterator[Any]) -> Any:
    try:
        return next(args)
    except StopIteration:
        raise TypeError("not enough arguments for format string") from None


def _text(s: Any) -> str:
    if s is None:
        return "(null)"
    if isinstance(s, (bytes, bytearray)):
        s = bytes(s).decode("latin-1")
    return str(s).split("\0", 1)[0]


def _char(c: Any) -> str:
    if isinstance(c, str):
        return c[:1]
    if isinstance(c, (bytes, bytearray)):
        return chr(c[0]) if c else ""
    return chr(int(c) & 0xFF)


def format_user(fmt: str, *args: Any) -> str:
    """Format like the user-level printf: ``%d %x %p %s %c %%``."""
    it = iter(args)
    out = []
    pending = False
    for c in fmt.split("\0", 1)[0]:
        if not pending:
            if c == "%":
                pending = True
            else:
                out.append(c)
            continue
        pending = False
        if c == "d":
            out.append(format_int(_next(it), 10, True, UPPER_DIGITS))
        elif c in "xp":
            out.append(format_int(_next(it), 16, False, UPPER_DIGITS))
        elif c == "s":
            out.append(_text(_next(it)))
        elif c == "c":
            out.append(_char(_next(it)))
        elif c == "%":
            out.append("%")
        else:
            # Unknown sequence: print it to draw attention.
            out.append("%" + c)
    return "".join(out)


def format_console(fmt: str, *args: Any) -> str:
    """Format like the kernel console printf: ``%d %x %p %s %%``."""
    if fmt is None:
        raise PanicError("null fmt")
    it = iter(args)
    out = []
    chars = iter(fmt.split("\0", 1)[0])
    for c in chars:
        if c != "%":
            out.append(c)
            continue
        c = next(chars, "")
        if not c:
            break
        if c == "d":
            out.append(format_int(_next(it), 10, True, LOWER_DIGITS))
        elif c in "xp":
            out.append(format_int(_next(it), 16, False, LOWER_DIGITS))
        elif c == "s":
            out.append(_text(_next(it)))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
    return "".join(out)