"""PC keyboard scan-code decoding."""

from __future__ import annotations

from typing import Iterable

NO = 0

SHIFT = 1 << 0
CTL = 1 << 1
ALT = 1 << 2
CAPSLOCK = 1 << 3
NUMLOCK = 1 << 4
SCROLLLOCK = 1 << 5
E0ESC = 1 << 6

KEY_HOME = 0xE0
KEY_END = 0xE1
KEY_UP = 0xE2
KEY_DN = 0xE3
KEY_LF = 0xE4
KEY_RT = 0xE5
KEY_PGUP = 0xE6
KEY_PGDN = 0xE7
KEY_INS = 0xE8
KEY_DEL = 0xE9


def _ctrl(ch: str) -> int:
    return (ord(ch) - ord("@")) & 0xFF


def _table(base: Iterable[int], extras: dict[int, int]) -> tuple[int, ...]:
    table = [NO] * 256
    for i, c in enumerate(base):
        table[i] = c
    for k, v in extras.items():
        table[k] = v
    return tuple(table)


_SPECIAL = {
    0xC8: KEY_UP,
    0xD0: KEY_DN,
    0xC9: KEY_PGUP,
    0xD1: KEY_PGDN,
    0xCB: KEY_LF,
    0xCD: KEY_RT,
    0x97: KEY_HOME,
    0xCF: KEY_END,
    0xD2: KEY_INS,
    0xD3: KEY_DEL,
}

_KEYPAD = "\0" * 7 + "789-456+1" + "230." + "\0" * 4

_NORMAL = (
    "\0\x1b1234567890-=\b\t"
    "qwertyuiop[]\n\0as"
    "dfghjkl;'`\0\\zxcv"
    "bnm,./\0*\0 " + "\0" * 6 + _KEYPAD
)

_SHIFTED = (
    "\0\x1b!@#$%^&*()_+\b\t"
    "QWERTYUIOP{}\n\0AS"
    'DFGHJKL:"~\0|ZXCV'
    "BNM<>?\0*\0 " + "\0" * 6 + _KEYPAD
)

_CONTROL = "\0" * 16 + "QWERTYUIOP\0\0\r\0AS" + "DFGHJKL\0" + "\0\0\0\\ZXCV" + "BNM\0\0/\0\0"

normalmap = _table(map(ord, _NORMAL), {0x9C: ord("\n"), 0xB5: ord("/"), **_SPECIAL})
shiftmap = _table(map(ord, _SHIFTED), {0x9C: ord("\n"), 0xB5: ord("/"), **_SPECIAL})
ctlmap = _table(
    (0 if ch == "\0" else ord(ch) if ch == "\r" else _ctrl(ch) for ch in _CONTROL),
    {0x9C: ord("\r"), 0xB5: _ctrl("/"), **_SPECIAL},
)

shiftcode = _table((), {0x1D: CTL, 0x2A: SHIFT, 0x36: SHIFT, 0x38: ALT, 0x9D: CTL, 0xB8: ALT})
togglecode = _table((), {0x3A: CAPSLOCK, 0x45: NUMLOCK, 0x46: SCROLLLOCK})

_CHARCODE = (normalmap, shiftmap, ctlmap, ctlmap)


class Keyboard:
    """Tracks modifier state and turns scan codes into character codes."""

    def __init__(self) -> None:
        self.shift = 0

    def feed(self, data: int) -> int:
        """Process one scan code; return a character code, or 0 if none results."""
        if not 0 <= data <= 0xFF:
            raise ValueError(f"scan code out of range: {data}")
        if data == 0xE0:
            self.shift |= E0ESC
            return 0
        if data & 0x80:
            # Key released.
            data = data if self.shift & E0ESC else data & 0x7F
            self.shift &= ~(shiftcode[data] | E0ESC)
            return 0
        if self.shift & E0ESC:
            # Last code was an E0 escape.
            data |= 0x80
            self.shift &= ~E0ESC
        self.shift |= shiftcode[data]
        self.shift ^= togglecode[data]
        c = _CHARCODE[self.shift & (CTL | SHIFT)][data]
        if self.shift & CAPSLOCK:
            if ord("a") <= c <= ord("z"):
                c += ord("A") - ord("a")
            elif ord("A") <= c <= ord("Z"):
                c += ord("a") - ord("A")
        return c

    def decode(self, scancodes: Iterable[int]) -> list[int]:
        """Feed a sequence of scan codes and return the characters produced."""
        return [c for c in map(self.feed, scancodes) if c]