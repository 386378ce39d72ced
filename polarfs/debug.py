"""Kernel log output to a serial line and a framebuffer, and panics."""

from __future__ import annotations

import sys
import threading
from typing import Any, Callable, Optional

from polarfs.printf import fctprintf, sprintf

_PANIC_PREFIX = "*** PANIC:\t"


class KernelPanic(RuntimeError):
    """Raised where the kernel would halt after a panic."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class KernelLog:
    """Writes log text to a serial sink and, while enabled, a framebuffer sink."""

    def __init__(
        self,
        serial: Optional[Callable[[str], Any]] = None,
        framebuffer: Optional[Callable[[str], Any]] = None,
        timer: Optional[Callable[[], int]] = None,
        print_now: bool = False,
    ) -> None:
        self.serial = serial if serial is not None else sys.stderr.write
        self.framebuffer = framebuffer
        self.timer = timer
        self.print_now = print_now
        self.put_to_fb = True
        self.in_panic = False
        self.disable_prefix = False
        self._lock = threading.Lock()

    def kputchar(self, c: str) -> None:
        if c == "\n":
            self.kputchar("\r")
        self.serial(c)
        if self.put_to_fb and self.framebuffer is not None:
            self.framebuffer(c)

    def kputs(self, string: str) -> None:
        self.serial(string)
        if self.put_to_fb and self.framebuffer is not None:
            self.framebuffer(string)

    def _vprintf(self, fmt: str, *args: Any) -> int:
        return fctprintf(self.kputchar, fmt, *args)

    def _kprintffos(self, fos: bool, fmt: str, *args: Any) -> None:
        with self._lock:
            if not fos:
                self.put_to_fb = False
            if not self.print_now:
                return
            if not self.disable_prefix:
                if self.in_panic:
                    self.kputs(_PANIC_PREFIX)
                else:
                    tick = self.timer() if self.timer is not None else 0
                    self.kputs("[")
                    self.kputs(str(tick))
                    self.kputs("] ")
            self._vprintf(fmt, *args)

    def kprintf(self, fmt: str, *args: Any) -> None:
        """Log a formatted line with a tick prefix, if printing is on."""
        self._kprintffos(self.put_to_fb, fmt, *args)

    def hex_dump(self, data: bytes) -> None:
        """Log ``data`` as rows of 16 hex bytes followed by their printable text.

        Like every call that bypasses the framebuffer, this turns
        framebuffer output off for good.
        """
        size = len(data)
        ascii_cols = ["."] * 16
        self.disable_prefix = True
        try:
            for i, byte in enumerate(data):
                self._kprintffos(False, "%02X ", byte)
                ascii_cols[i % 16] = chr(byte) if 0x20 <= byte <= 0x7E else "."
                done = i + 1
                if done % 8 == 0 or done == size:
                    self._kprintffos(False, " ")
                    if done % 16 == 0:
                        self._kprintffos(False, "|  %s \n", "".join(ascii_cols))
                    elif done == size:
                        used = done % 16
                        if used <= 8:
                            self._kprintffos(False, " ")
                        for _ in range(used, 16):
                            self._kprintffos(False, "   ")
                        self._kprintffos(False, "|  %s \n", "".join(ascii_cols[:used]))
        finally:
            self.disable_prefix = False

    def panic(self, fmt: str, *args: Any) -> None:
        """Print the panic message everywhere and raise KernelPanic."""
        self.put_to_fb = True
        message = sprintf(fmt, *args)
        if self.in_panic:
            self.kprintf("Pretty bad kernel panic here\n")
            self.kputs(_PANIC_PREFIX)
            self._vprintf(fmt, *args)
            raise KernelPanic(message)
        self.in_panic = True
        self.kputs(_PANIC_PREFIX)
        self._vprintf(fmt, *args)
        raise KernelPanic(message)