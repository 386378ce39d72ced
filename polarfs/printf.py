"""printf-style formatting driven by a format string and Python arguments."""

from __future__ import annotations

import operator
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

from polarfs.floatfmt import print_floating_point
from polarfs.numfmt import (
    BASE_BINARY,
    BASE_DECIMAL,
    BASE_HEX,
    BASE_OCTAL,
    Flags,
    Output,
    out_rev,
    print_integer,
)

_DIGITS = "0123456789"
_FLAG_CHARS = {
    "0": Flags.ZEROPAD,
    "-": Flags.LEFT,
    "+": Flags.PLUS,
    " ": Flags.SPACE,
    "#": Flags.HASH,
}
_POINTER_WIDTH = 8 * 2 + 2


@dataclass
class WriteBack:
    """Receives the number of characters produced so far through ``%n``."""

    value: int = 0


def _wrap_signed(value: int, bits: int) -> int:
    mask = (1 << bits) - 1
    value &= mask
    if value >> (bits - 1):
        value -= 1 << bits
    return value


class _Arguments:
    def __init__(self, args: tuple) -> None:
        self._it: Iterator[Any] = iter(args)

    def next(self) -> Any:
        try:
            return next(self._it)
        except StopIteration:
            raise TypeError("not enough arguments for format string") from None

    def integer(self) -> int:
        return operator.index(self.next())

    def real(self) -> float:
        arg = self.next()
        if not isinstance(arg, (int, float)):
            raise TypeError(f"a real number is required, not {type(arg).__name__}")
        return float(arg)


def _read_number(fmt: str, i: int) -> tuple[int, int]:
    value = 0
    while i < len(fmt) and fmt[i] in _DIGITS:
        value = value * 10 + ord(fmt[i]) - ord("0")
        i += 1
    return value, i


def _print_signed(output: Output, args: _Arguments, base: int, precision: int,
                  width: int, flags: Flags) -> None:
    raw = args.integer()
    if flags & (Flags.LONG_LONG | Flags.LONG):
        value = _wrap_signed(raw, 64)
    elif flags & Flags.CHAR:
        value = _wrap_signed(raw, 8)
    elif flags & Flags.SHORT:
        value = _wrap_signed(raw, 16)
    else:
        value = _wrap_signed(raw, 32)
    print_integer(output, abs(value), value < 0, base, precision, width, flags)


def _print_unsigned(output: Output, args: _Arguments, base: int, precision: int,
                    width: int, flags: Flags) -> None:
    raw = args.integer()
    if flags & (Flags.LONG_LONG | Flags.LONG):
        bits = 64
    elif flags & Flags.CHAR:
        bits = 8
    elif flags & Flags.SHORT:
        bits = 16
    else:
        bits = 32
    print_integer(output, raw & ((1 << bits) - 1), False, base, precision, width, flags)


def _print_char(output: Output, args: _Arguments, width: int, flags: Flags) -> None:
    arg = args.next()
    if isinstance(arg, str):
        if len(arg) != 1:
            raise TypeError("%c requires an integer or a single character")
        char = arg
    else:
        char = chr(operator.index(arg) & 0xFF)
    if not flags & Flags.LEFT:
        for _ in range(1, width):
            output.put(" ")
    output.put(char)
    if flags & Flags.LEFT:
        for _ in range(1, width):
            output.put(" ")


def _print_string(output: Output, args: _Arguments, precision: int, width: int,
                  flags: Flags) -> None:
    arg = args.next()
    if arg is None:
        out_rev(output, ")llun(", width, flags)
        return
    if isinstance(arg, (bytes, bytearray)):
        arg = bytes(arg).decode("latin-1")
    if not isinstance(arg, str):
        raise TypeError(f"%s requires a string, not {type(arg).__name__}")
    text = arg.split("\0", 1)[0]
    if flags & Flags.PRECISION:
        text = text[:precision]
    if not flags & Flags.LEFT:
        for _ in range(len(text), width):
            output.put(" ")
    for c in text:
        output.put(c)
    if flags & Flags.LEFT:
        for _ in range(len(text), width):
            output.put(" ")


def _print_pointer(output: Output, args: _Arguments, precision: int, flags: Flags) -> None:
    arg = args.next()
    flags |= Flags.ZEROPAD | Flags.POINTER
    value = 0 if arg is None else operator.index(arg) & ((1 << 64) - 1)
    if value == 0:
        out_rev(output, ")lin(", _POINTER_WIDTH, flags)
    else:
        print_integer(output, value, False, BASE_HEX, precision, _POINTER_WIDTH, flags)


def _write_back(output: Output, args: _Arguments, flags: Flags) -> None:
    target = args.next()
    if not isinstance(target, WriteBack):
        raise TypeError("%n requires a WriteBack argument")
    if flags & Flags.CHAR:
        target.value = _wrap_signed(output.pos, 8)
    elif flags & Flags.SHORT:
        target.value = _wrap_signed(output.pos, 16)
    elif flags & (Flags.LONG | Flags.LONG_LONG):
        target.value = output.pos
    else:
        target.value = _wrap_signed(output.pos, 32)


def _format_loop(output: Output, fmt: str, args: _Arguments) -> None:
    n = len(fmt)
    i = 0
    while i < n:
        c = fmt[i]
        if c != "%":
            output.put(c)
            i += 1
            continue
        i += 1
        if i >= n:
            return

        flags = Flags(0)
        while i < n and fmt[i] in _FLAG_CHARS:
            flags |= _FLAG_CHARS[fmt[i]]
            i += 1

        width = 0
        if i < n and fmt[i] in _DIGITS:
            width, i = _read_number(fmt, i)
        elif i < n and fmt[i] == "*":
            w = _wrap_signed(args.integer(), 32)
            if w < 0:
                flags |= Flags.LEFT
                width = -w
            else:
                width = w
            i += 1
            if i >= n:
                return

        precision = 0
        if i < n and fmt[i] == ".":
            flags |= Flags.PRECISION
            i += 1
            if i >= n:
                return
            if fmt[i] in _DIGITS:
                precision, i = _read_number(fmt, i)
            elif fmt[i] == "*":
                p = _wrap_signed(args.integer(), 32)
                precision = p if p > 0 else 0
                i += 1
                if i >= n:
                    return

        if i < n:
            length = fmt[i]
            if length == "l":
                flags |= Flags.LONG
                i += 1
                if i < n and fmt[i] == "l":
                    flags |= Flags.LONG_LONG
                    i += 1
            elif length == "L":
                flags |= Flags.LONG_DOUBLE
                i += 1
            elif length == "h":
                flags |= Flags.SHORT
                i += 1
                if i < n and fmt[i] == "h":
                    flags |= Flags.CHAR
                    i += 1
            elif length in "tjz":
                flags |= Flags.LONG
                i += 1

        if i >= n:
            return
        spec = fmt[i]
        i += 1

        if spec in "diuxXob":
            if spec in "di":
                flags |= Flags.SIGNED
            if spec in "xX":
                base = BASE_HEX
            elif spec == "o":
                base = BASE_OCTAL
            elif spec == "b":
                base = BASE_BINARY
            else:
                base = BASE_DECIMAL
                flags &= ~Flags.HASH
            if spec == "X":
                flags |= Flags.UPPERCASE
            if flags & Flags.PRECISION:
                flags &= ~Flags.ZEROPAD
            if flags & Flags.SIGNED:
                _print_signed(output, args, base, precision, width, flags)
            else:
                flags &= ~(Flags.PLUS | Flags.SPACE)
                _print_unsigned(output, args, base, precision, width, flags)
        elif spec in "fF":
            value = args.real()
            if spec == "F":
                flags |= Flags.UPPERCASE
            print_floating_point(output, value, precision, width, flags, False)
        elif spec in "eEgG":
            value = args.real()
            if spec in "gG":
                flags |= Flags.ADAPT_EXP
            if spec in "EG":
                flags |= Flags.UPPERCASE
            print_floating_point(output, value, precision, width, flags, True)
        elif spec == "c":
            _print_char(output, args, width, flags)
        elif spec == "s":
            _print_string(output, args, precision, width, flags)
        elif spec == "p":
            _print_pointer(output, args, precision, flags)
        elif spec == "%":
            output.put("%")
        elif spec == "n":
            _write_back(output, args, flags)
        else:
            output.put(spec)


def format_into(output: Output, fmt: str, *args: Any) -> int:
    """Format ``args`` by ``fmt`` into ``output``; return the characters counted."""
    _format_loop(output, fmt, _Arguments(args))
    return output.pos


def sprintf(fmt: str, *args: Any) -> str:
    """Return the formatted string."""
    output = Output()
    format_into(output, fmt, *args)
    return output.text()


def snprintf(size: int, fmt: str, *args: Any) -> tuple[str, int]:
    """Format into a buffer of ``size`` places including the terminator.

    Returns the text that fits and the length the full output would have had.
    """
    output = Output(max_chars=size)
    count = format_into(output, fmt, *args)
    return output.text(), count


def fctprintf(out: Optional[Callable[[str], None]], fmt: str, *args: Any) -> int:
    """Send each formatted character to ``out``; return how many were sent."""
    if out is None:
        return 0
    return format_into(Output(function=out), fmt, *args)