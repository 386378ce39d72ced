"""In-memory filesystems: tmpfs and the device filesystem."""

from __future__ import annotations

import errno
import os
import stat as _stat
import time
from typing import Optional, Union

from polarfs.timespec import Timespec, div_roundup
from polarfs.vfs import VFS, Filesystem, Node, Resource

PAGE_SIZE = 4096
MAP_SHARED = 0x01
INITIAL_CAPACITY = 4096
BLOCK_SIZE = 512


def _error(code: int, path: Optional[str] = None) -> OSError:
    return OSError(code, os.strerror(code), path)


def _now() -> Timespec:
    sec, nsec = divmod(time.time_ns(), 1_000_000_000)
    return Timespec(sec, nsec)


class MemoryResource(Resource):
    """A resource whose contents live in a growable in-memory buffer.

    Regular files start with a 4096-byte buffer that doubles as needed;
    other kinds start empty.
    """

    def __init__(self, mode: int) -> None:
        super().__init__()
        self.stat.st_mode = mode
        self.stat.st_blksize = BLOCK_SIZE
        if _stat.S_ISREG(mode):
            self.capacity = INITIAL_CAPACITY
            self.can_mmap = True
        else:
            self.capacity = 0
        self._data = bytearray(self.capacity)

    def _grow_to(self, new_capacity: int) -> None:
        # Always a fresh buffer, so pages handed out by mmap stay valid.
        new_data = bytearray(new_capacity)
        new_data[: len(self._data)] = self._data
        self._data = new_data
        self.capacity = new_capacity

    def _update_size(self, size: int) -> None:
        self.stat.st_size = size
        self.stat.st_blocks = div_roundup(size, self.stat.st_blksize)

    def read(self, offset: int, count: int) -> bytes:
        if offset < 0 or count < 0:
            raise _error(errno.EINVAL)
        with self.lock:
            size = self.stat.st_size
            if offset >= size:
                return b""
            end = min(offset + count, size)
            return bytes(self._data[offset:end])

    def write(self, offset: int, data: Union[bytes, bytearray, memoryview]) -> int:
        if offset < 0:
            raise _error(errno.EINVAL)
        data = bytes(data)
        count = len(data)
        end = offset + count
        with self.lock:
            if end >= self.capacity:
                new_capacity = self.capacity or 1
                while end >= new_capacity:
                    new_capacity *= 2
                self._grow_to(new_capacity)
            self._data[offset:end] = data
            if end >= self.stat.st_size:
                self._update_size(end)
            return count

    def truncate(self, length: int) -> None:
        if length < 0:
            raise _error(errno.EINVAL)
        with self.lock:
            if length > self.capacity:
                new_capacity = self.capacity or 1
                while new_capacity < length:
                    new_capacity *= 2
                self._grow_to(new_capacity)
            self._update_size(length)

    def mmap(self, file_page: int, flags: int) -> Union[memoryview, bytearray]:
        """Map one page: a live view if shared, otherwise a private copy."""
        start = file_page * PAGE_SIZE
        if file_page < 0 or start >= self.capacity:
            raise _error(errno.ENXIO)
        with self.lock:
            if flags & MAP_SHARED:
                return memoryview(self._data)[start : start + PAGE_SIZE]
            page = bytearray(PAGE_SIZE)
            chunk = self._data[start : start + PAGE_SIZE]
            page[: len(chunk)] = chunk
            return page


class Tmpfs(Filesystem):
    """A filesystem whose files are kept in memory."""

    def _new_resource(self, mode: int) -> Resource:
        resource = MemoryResource(mode)
        self._init_stat(resource, mode)
        return resource

    def create(self, parent: Optional[Node], name: str, mode: int) -> Node:
        return super().create(parent, name, mode)

    def symlink(self, parent: Optional[Node], name: str, target: str) -> Node:
        return super().symlink(parent, name, target)

    def link(self, parent: Optional[Node], name: str, node: Node) -> Node:
        return super().link(parent, name, node)


class Devtmpfs(Tmpfs):
    """The single device filesystem; every mount shows the same root."""

    def __init__(self, vfs: VFS, dev_id: int = 0) -> None:
        super().__init__(vfs, dev_id)
        self.root = self.create(None, "", 0o755 | _stat.S_IFDIR)

    def add_device(self, device: Resource, name: str) -> Node:
        """Publish ``device`` under ``name`` in the root; raise EEXIST if taken."""
        try:
            self.vfs.get_node(self.root, name, False)
        except OSError:
            pass
        else:
            raise _error(errno.EEXIST, name)

        node = self.vfs.create_node(self, self.root, name, False)
        node.resource = device

        st = device.stat
        st.st_dev = self.dev_id
        st.st_ino = self.inode_counter
        self.inode_counter += 1
        st.st_nlink = 1
        now = _now()
        st.st_atim = now
        st.st_ctim = now
        st.st_mtim = now

        with self.vfs.lock:
            if self.root.children is None:
                self.root.children = {}
            self.root.children[name] = node
        return node


def tmpfs_init(vfs: VFS) -> None:
    """Register "tmpfs"; each mount gets a fresh instance."""

    def _mount(parent: Optional[Node], name: Optional[str], source: Optional[Node]) -> Node:
        fs = Tmpfs(vfs)
        return fs.create(parent, name or "", 0o644 | _stat.S_IFDIR)

    vfs.add_filesystem("tmpfs", _mount)


def devtmpfs_init(vfs: VFS) -> Devtmpfs:
    """Create the device filesystem and register it as "devtmpfs"."""
    fs = Devtmpfs(vfs)

    def _mount(parent: Optional[Node], name: Optional[str], source: Optional[Node]) -> Node:
        return fs.root

    vfs.add_filesystem("devtmpfs", _mount)
    return fs