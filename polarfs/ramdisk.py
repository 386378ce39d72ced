"""Unpacking a ustar archive image into the directory tree."""

from __future__ import annotations

import logging
import stat as _stat
from typing import Union

from polarfs.timespec import align_up
from polarfs.vfs import VFS

log = logging.getLogger(__name__)

HEADER_SIZE = 512

USTAR_REGULAR = 0
USTAR_NORMAL = ord("0")
USTAR_HARD_LINK = ord("1")
USTAR_SYM_LINK = ord("2")
USTAR_CHAR_DEV = ord("3")
USTAR_BLOCK_DEV = ord("4")
USTAR_DIRECTORY = ord("5")
USTAR_FIFO = ord("6")
USTAR_CONTIGOUS = ord("7")
USTAR_GNU_LONG_PATH = ord("L")

_NAME = slice(0, 100)
_MODE = slice(100, 108)
_SIZE = slice(124, 136)
_TYPE = 156
_LINKNAME = slice(157, 257)
_SIGNATURE = slice(257, 262)

_UINT64_MASK = (1 << 64) - 1


def octal_to_int(field: bytes) -> int:
    """Read the octal digits of a NUL-terminated header field."""
    ret = 0
    for byte in field:
        if byte == 0:
            break
        ret = (ret * 8 + byte - ord("0")) & _UINT64_MASK
    return ret


def _cstr(field: bytes) -> str:
    return field.split(b"\0", 1)[0].decode("utf-8", "surrogateescape")


def ramdisk_install(vfs: VFS, image: Union[bytes, bytearray, memoryview]) -> None:
    """Create the files, directories and symlinks of ``image`` under the root."""
    image = bytes(image)
    pos = 0
    name_override = None

    while pos + HEADER_SIZE <= len(image) and image[pos:][_SIGNATURE] == b"ustar":
        header = image[pos : pos + HEADER_SIZE]
        name = _cstr(header[_NAME])
        if name_override is not None:
            name = name_override
            name_override = None

        mode = octal_to_int(header[_MODE])
        size = octal_to_int(header[_SIZE])
        typeflag = header[_TYPE]
        body = image[pos + HEADER_SIZE : pos + HEADER_SIZE + size]
        pos += HEADER_SIZE + align_up(size, HEADER_SIZE)

        if name == "./":
            continue

        try:
            if typeflag in (USTAR_REGULAR, USTAR_NORMAL, USTAR_CONTIGOUS):
                node = vfs.create(vfs.root, name, mode | _stat.S_IFREG)
                node.resource.write(0, body)
            elif typeflag == USTAR_SYM_LINK:
                vfs.symlink(vfs.root, _cstr(header[_LINKNAME]), name)
            elif typeflag == USTAR_DIRECTORY:
                vfs.create(vfs.root, name, mode | _stat.S_IFDIR)
            elif typeflag == USTAR_GNU_LONG_PATH:
                name_override = _cstr(body)
        except OSError as exc:
            log.debug("ramdisk: skipping %r: %s", name, exc)

    log.info("VFS: Loaded ramdisk of size %d", len(image))