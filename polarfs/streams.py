"""The /dev/null, /dev/full and /dev/zero character devices."""

from __future__ import annotations

import errno
import itertools
import os
import stat as _stat
from typing import Union

from polarfs.tmpfs import Devtmpfs
from polarfs.vfs import Resource

_dev_ids = itertools.count(1)

_Bytes = Union[bytes, bytearray, memoryview]


class _CharDevice(Resource):
    def __init__(self) -> None:
        super().__init__()
        st = self.stat
        st.st_size = 0
        st.st_blocks = 0
        st.st_blksize = 4096
        st.st_rdev = next(_dev_ids)
        st.st_mode = 0o666 | _stat.S_IFCHR


class NullDevice(_CharDevice):
    """Reads nothing; swallows every write."""

    def read(self, offset: int, count: int) -> bytes:
        return b""

    def write(self, offset: int, data: _Bytes) -> int:
        return len(data)


class FullDevice(_CharDevice):
    """Reads zeros; every write fails with ENOSPC."""

    def read(self, offset: int, count: int) -> bytes:
        return bytes(count)

    def write(self, offset: int, data: _Bytes) -> int:
        raise OSError(errno.ENOSPC, os.strerror(errno.ENOSPC))


class ZeroDevice(_CharDevice):
    """Reads zeros; swallows every write."""

    def read(self, offset: int, count: int) -> bytes:
        return bytes(count)

    def write(self, offset: int, data: _Bytes) -> int:
        return len(data)


def streams_init(devtmpfs: Devtmpfs) -> dict[str, Resource]:
    """Publish the null, full and zero devices; return them by name."""
    devices: dict[str, Resource] = {
        "null": NullDevice(),
        "full": FullDevice(),
        "zero": ZeroDevice(),
    }
    for name, device in devices.items():
        devtmpfs.add_device(device, name)
    return devices