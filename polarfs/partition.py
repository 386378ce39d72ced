"""Finding GPT and MBR partitions on a disk and publishing them as devices."""

from __future__ import annotations

import errno
import itertools
import logging
import os
import struct
from dataclasses import dataclass
from typing import Optional, Union

from polarfs.tmpfs import Devtmpfs
from polarfs.vfs import Resource

log = logging.getLogger(__name__)

MBR_MAGIC = 0xAA55
MBR_ENTRY_OFFSET = 510

GPT_IMPORTANT = 1
GPT_DONT_MOUNT = 2
GPT_LEGACY = 4

_GPT_HEADER = struct.Struct("<8sIIIIQQQQ2QQIII")
_GPT_ENTRY = struct.Struct("<QQQQQQQ36H")
_MBR_ENTRY = struct.Struct("<B3sB3sII")

_dev_ids = itertools.count(1)

_Bytes = Union[bytes, bytearray, memoryview]


def _error(code: int) -> OSError:
    return OSError(code, os.strerror(code))


def _unpack(layout: struct.Struct, data: _Bytes, what: str) -> tuple:
    data = bytes(data)
    if len(data) < layout.size:
        raise ValueError(f"{what} needs {layout.size} bytes, got {len(data)}")
    return layout.unpack_from(data)


@dataclass(frozen=True)
class GptHeader:
    """The GUID partition table header found at LBA 1."""

    signature: bytes
    revision: int
    size: int
    crc32: int
    reserved: int
    header_lba: int
    alternate_lba: int
    first_usable: int
    last_usable: int
    guid: tuple[int, int]
    entry_array_lba_start: int
    entry_count: int
    entry_byte_size: int
    entry_array_crc32: int

    SIZE = _GPT_HEADER.size

    @classmethod
    def from_bytes(cls, data: _Bytes) -> GptHeader:
        f = _unpack(_GPT_HEADER, data, "GPT header")
        return cls(f[0], f[1], f[2], f[3], f[4], f[5], f[6], f[7], f[8],
                   (f[9], f[10]), f[11], f[12], f[13], f[14])


@dataclass(frozen=True)
class GptEntry:
    """One entry of the GPT partition array."""

    type_low: int
    type_hi: int
    uni_low: int
    uni_hi: int
    start: int
    end: int
    attr: int
    name: tuple[int, ...]

    SIZE = _GPT_ENTRY.size

    @classmethod
    def from_bytes(cls, data: _Bytes) -> GptEntry:
        f = _unpack(_GPT_ENTRY, data, "GPT entry")
        return cls(f[0], f[1], f[2], f[3], f[4], f[5], f[6], tuple(f[7:]))


@dataclass(frozen=True)
class MbrEntry:
    """One of the four primary partition slots of an MBR."""

    status: int
    start: bytes
    type: int
    end: bytes
    lba_start: int
    lba_size: int

    SIZE = _MBR_ENTRY.size

    @classmethod
    def from_bytes(cls, data: _Bytes) -> MbrEntry:
        return cls(*_unpack(_MBR_ENTRY, data, "MBR entry"))


class PartitionDevice(Resource):
    """A window onto a range of sectors of an underlying disk."""

    def __init__(self, root: Resource, start: int, sectors: int, lba_size: int) -> None:
        super().__init__()
        self.root = root
        self.start = start
        self.sectors = sectors
        self.lba_size = lba_size
        self.can_mmap = False
        self.stat.st_blksize = lba_size
        self.stat.st_rdev = next(_dev_ids)

    def _check(self, offset: int) -> None:
        if offset < 0 or offset >= self.sectors * self.lba_size:
            raise _error(errno.EINVAL)

    def read(self, offset: int, count: int) -> bytes:
        self._check(offset)
        return self.root.read(offset + self.start * self.lba_size, count)

    def write(self, offset: int, data: _Bytes) -> int:
        self._check(offset)
        return self.root.write(offset + self.start * self.lba_size, data)


def _read_exact(res: Resource, offset: int, count: int) -> bytes:
    return bytes(res.read(offset, count)).ljust(count, b"\0")[:count]


def _publish(devtmpfs: Devtmpfs, device: PartitionDevice, name: str) -> None:
    try:
        devtmpfs.add_device(device, name)
    except OSError as exc:
        log.warning("%s: could not add device: %s", name, exc)


def _enumerate_gpt(devtmpfs: Devtmpfs, res: Resource, root_name: str) -> bool:
    block_size = res.stat.st_blksize & 0xFFFF
    header = GptHeader.from_bytes(_read_exact(res, 512, GptHeader.SIZE))
    if header.signature != b"EFI PART":
        return False
    if header.size < 92:
        return False
    if header.size > res.stat.st_size:
        return False
    if header.header_lba != 1:
        return False
    if header.first_usable > header.last_usable:
        log.warning("wtf?")
        return False

    loc = header.entry_array_lba_start * 512
    for i in range(header.entry_count):
        entry = GptEntry.from_bytes(_read_exact(res, loc, GptEntry.SIZE))
        loc += GptEntry.SIZE
        if entry.uni_low == 0 and entry.uni_hi == 0:
            continue
        if entry.attr & (GPT_DONT_MOUNT | GPT_LEGACY):
            continue
        sectors = entry.end - entry.start
        device = PartitionDevice(res, entry.start, sectors, block_size)
        device.stat.st_size = sectors
        device.stat.st_blocks = sectors // block_size
        name = f"{root_name[:32]}p{i + 1}"
        log.info("%s: Starting from %d to %d", name, entry.start, entry.end)
        _publish(devtmpfs, device, name)
    return True


def _enumerate_mbr(devtmpfs: Devtmpfs, res: Resource, root_name: str) -> bool:
    block_size = res.stat.st_blksize & 0xFFFF
    (magic,) = struct.unpack("<H", _read_exact(res, 510, 2))
    if magic != MBR_MAGIC:
        return False
    table = _read_exact(res, MBR_ENTRY_OFFSET, MbrEntry.SIZE * 4)
    for i in range(4):
        entry = MbrEntry.from_bytes(table[i * MbrEntry.SIZE:(i + 1) * MbrEntry.SIZE])
        if entry.type == 0:
            continue
        device = PartitionDevice(res, entry.lba_start, entry.lba_size, block_size)
        device.stat.st_size = entry.lba_size * block_size
        device.stat.st_blocks = entry.lba_size
        name = f"{root_name[:32]}p{i}"
        log.info("%s: Starting from %d to %d", name, device.start, device.start + device.sectors)
        _publish(devtmpfs, device, name)
    return True


def partition_enumerate(devtmpfs: Devtmpfs, res: Optional[Resource],
                        root_name: Optional[str]) -> Optional[str]:
    """Publish the partitions of ``res``; return "gpt", "mbr", or None if neither."""
    if res is None or root_name is None:
        return None
    if _enumerate_gpt(devtmpfs, res, root_name):
        log.info("%s is a GPT drive!", root_name)
        return "gpt"
    if _enumerate_mbr(devtmpfs, res, root_name):
        log.info("%s is a MBR drive!", root_name)
        return "mbr"
    log.info("Lost cause: %s", root_name)
    return None