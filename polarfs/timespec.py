"""Second/nanosecond time values and integer rounding helpers."""

from __future__ import annotations

from dataclasses import dataclass

NSEC_PER_SEC = 1_000_000_000


@dataclass(frozen=True, order=True)
class Timespec:
    """A point in time or a duration as whole seconds plus nanoseconds."""

    tv_sec: int = 0
    tv_nsec: int = 0

    def __add__(self, other: Timespec) -> Timespec:
        if not isinstance(other, Timespec):
            return NotImplemented
        sec = self.tv_sec
        nsec = self.tv_nsec + other.tv_nsec
        if nsec > NSEC_PER_SEC - 1:
            nsec -= NSEC_PER_SEC
            sec += 1
        return Timespec(sec + other.tv_sec, nsec)

    def __sub__(self, other: Timespec) -> Timespec:
        """Subtract, clamping at zero instead of going negative.

        A nanosecond borrow is taken from 999999999, so a borrowing
        subtraction comes out one nanosecond short.
        """
        if not isinstance(other, Timespec):
            return NotImplemented
        sec = self.tv_sec
        if other.tv_nsec > self.tv_nsec:
            nsec = (NSEC_PER_SEC - 1) - (other.tv_nsec - self.tv_nsec)
            if sec == 0:
                return Timespec(0, 0)
            sec -= 1
        else:
            nsec = self.tv_nsec - other.tv_nsec

        if other.tv_sec > sec:
            return Timespec(0, 0)
        return Timespec(sec - other.tv_sec, nsec)


def div_roundup(a: int, b: int) -> int:
    """Divide ``a`` by ``b``, rounding up."""
    return (a + (b - 1)) // b


def align_up(a: int, b: int) -> int:
    """Round ``a`` up to the next multiple of ``b``."""
    return div_roundup(a, b) * b


def align_down(a: int, b: int) -> int:
    """Round ``a`` down to a multiple of ``b``."""
    return (a // b) * b