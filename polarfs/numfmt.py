"""Output sinks and integer rendering for the printf formatter."""

from __future__ import annotations

from enum import IntFlag
from typing import Callable, Optional, Sequence

INTEGER_BUFFER_SIZE = 32
DECIMAL_BUFFER_SIZE = 32
MAX_POSSIBLE_BUFFER_SIZE = 2**31 - 1

BASE_BINARY = 2
BASE_OCTAL = 8
BASE_DECIMAL = 10
BASE_HEX = 16


class Flags(IntFlag):
    """Conversion flags gathered while parsing a format specifier."""

    ZEROPAD = 1 << 0
    LEFT = 1 << 1
    PLUS = 1 << 2
    SPACE = 1 << 3
    HASH = 1 << 4
    UPPERCASE = 1 << 5
    CHAR = 1 << 6
    SHORT = 1 << 7
    INT = 1 << 8
    LONG = 1 << 9
    LONG_LONG = 1 << 10
    PRECISION = 1 << 11
    ADAPT_EXP = 1 << 12
    POINTER = 1 << 13
    SIGNED = 1 << 14
    LONG_DOUBLE = 1 << 15


class Output:
    """A character sink that counts every character offered to it.

    Characters go either to ``function`` or into an internal buffer of at
    most ``max_chars`` places; ``pos`` keeps counting past that limit so the
    caller learns how long the full output would have been.
    """

    def __init__(
        self,
        max_chars: int = MAX_POSSIBLE_BUFFER_SIZE,
        function: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.max_chars = min(max(max_chars, 0), MAX_POSSIBLE_BUFFER_SIZE)
        self.function = function
        self.pos = 0
        self._chars: list[str] = []

    def put(self, c: str) -> None:
        write_pos = self.pos
        self.pos += 1
        if write_pos >= self.max_chars:
            return
        if self.function is not None:
            self.function(c)
        else:
            self._chars.append(c)

    def text(self) -> str:
        """The buffered string as a terminated buffer of ``max_chars`` holds it."""
        if self.function is not None or self.max_chars == 0:
            return ""
        end = min(self.pos, self.max_chars - 1)
        return "".join(self._chars[:end])


def out_rev(output: Output, buf: Sequence[str], width: int, flags: Flags) -> None:
    """Emit ``buf``, which holds characters in reverse order, padded to ``width``."""
    start_pos = output.pos
    length = len(buf)

    if not flags & Flags.LEFT and not flags & Flags.ZEROPAD:
        for _ in range(length, width):
            output.put(" ")

    for c in reversed(buf):
        output.put(c)

    if flags & Flags.LEFT:
        while output.pos - start_pos < width:
            output.put(" ")


def _finalize_integer(
    output: Output,
    buf: list[str],
    negative: bool,
    base: int,
    precision: int,
    width: int,
    flags: Flags,
) -> None:
    unpadded_len = len(buf)

    if not flags & Flags.LEFT:
        if width and flags & Flags.ZEROPAD and (negative or flags & (Flags.PLUS | Flags.SPACE)):
            width -= 1
        while flags & Flags.ZEROPAD and len(buf) < width and len(buf) < INTEGER_BUFFER_SIZE:
            buf.append("0")

    while len(buf) < precision and len(buf) < INTEGER_BUFFER_SIZE:
        buf.append("0")

    if base == BASE_OCTAL and len(buf) > unpadded_len:
        flags &= ~Flags.HASH

    if flags & (Flags.HASH | Flags.POINTER):
        if not flags & Flags.PRECISION and buf and (len(buf) == precision or len(buf) == width):
            # Give back padding digits to make room for the prefix.
            if unpadded_len < len(buf):
                buf.pop()
            if buf and base in (BASE_HEX, BASE_BINARY) and unpadded_len < len(buf):
                buf.pop()
        if len(buf) < INTEGER_BUFFER_SIZE:
            if base == BASE_HEX:
                buf.append("X" if flags & Flags.UPPERCASE else "x")
            elif base == BASE_BINARY:
                buf.append("b")
        if len(buf) < INTEGER_BUFFER_SIZE:
            buf.append("0")

    if len(buf) < INTEGER_BUFFER_SIZE:
        if negative:
            buf.append("-")
        elif flags & Flags.PLUS:
            buf.append("+")
        elif flags & Flags.SPACE:
            buf.append(" ")

    out_rev(output, buf, width, flags)


def print_integer(
    output: Output,
    value: int,
    negative: bool,
    base: int,
    precision: int,
    width: int,
    flags: Flags,
) -> None:
    """Render the magnitude ``value`` in ``base`` with sign, prefix and padding."""
    flags = Flags(flags)
    buf: list[str] = []

    if not value:
        if not flags & Flags.PRECISION:
            buf.append("0")
            flags &= ~Flags.HASH
        elif base == BASE_HEX:
            flags &= ~Flags.HASH
    else:
        letter = ord("A") if flags & Flags.UPPERCASE else ord("a")
        while True:
            value, digit = divmod(value, base)
            buf.append(chr(ord("0") + digit) if digit < 10 else chr(letter + digit - 10))
            if not value or len(buf) >= INTEGER_BUFFER_SIZE:
                break

    _finalize_integer(output, buf, negative, base, precision, width, flags)