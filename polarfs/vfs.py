"""Virtual filesystem tree: nodes, mounts, symlinks and path resolution."""

from __future__ import annotations

import errno
import logging
import os
import stat as _stat
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, NamedTuple, Optional

from polarfs.timespec import Timespec

log = logging.getLogger(__name__)

PATH_MAX = 4096


def _now() -> Timespec:
    sec, nsec = divmod(time.time_ns(), 1_000_000_000)
    return Timespec(sec, nsec)


def _error(code: int, path: Optional[str] = None) -> OSError:
    return OSError(code, os.strerror(code), path)


@dataclass
class Stat:
    """File status as kept by every resource."""

    st_dev: int = 0
    st_ino: int = 0
    st_mode: int = 0
    st_nlink: int = 0
    st_uid: int = 0
    st_gid: int = 0
    st_rdev: int = 0
    st_size: int = 0
    st_blksize: int = 0
    st_blocks: int = 0
    st_atim: Timespec = field(default_factory=Timespec)
    st_mtim: Timespec = field(default_factory=Timespec)
    st_ctim: Timespec = field(default_factory=Timespec)


class Resource:
    """Something a node refers to: a file, a directory or a device.

    The base resource holds no data; reading, writing and truncating it fail
    with EINVAL. Filesystems and devices supply subclasses that do the work.
    """

    def __init__(self, stat: Optional[Stat] = None) -> None:
        self.stat = stat if stat is not None else Stat()
        self.refcount = 0
        self.can_mmap = False
        self.status = 0
        self.lock = threading.Lock()

    def read(self, offset: int, count: int) -> bytes:
        raise _error(errno.EINVAL)

    def write(self, offset: int, data: bytes) -> int:
        raise _error(errno.EINVAL)

    def truncate(self, length: int) -> None:
        raise _error(errno.EINVAL)

    def unref(self) -> bool:
        """Drop one reference; return whether the resource may be let go."""
        self.refcount -= 1
        return True


@dataclass(eq=False)
class Node:
    """An entry in the directory tree."""

    name: str
    parent: Optional[Node]
    filesystem: Optional[Filesystem]
    resource: Optional[Resource] = None
    children: Optional[dict[str, Node]] = None
    mountpoint: Optional[Node] = None
    redir: Optional[Node] = None
    symlink_target: Optional[str] = None
    populated: bool = False


MountFunction = Callable[[Optional[Node], Optional[str], Optional[Node]], Optional[Node]]


def _is_dir(node: Node) -> bool:
    return node.resource is not None and _stat.S_ISDIR(node.resource.stat.st_mode)


def _is_link(node: Node) -> bool:
    return node.resource is not None and _stat.S_ISLNK(node.resource.stat.st_mode)


def _insert_child(parent: Node, name: str, child: Node) -> None:
    if parent.children is None:
        parent.children = {}
    parent.children[name] = child


class Filesystem:
    """A filesystem that creates nodes backed by plain resources."""

    def __init__(self, vfs: VFS, dev_id: int = 0) -> None:
        self.vfs = vfs
        self.dev_id = dev_id
        self.inode_counter = 0

    def _init_stat(self, resource: Resource, mode: int) -> None:
        st = resource.stat
        st.st_size = 0
        st.st_blocks = 0
        st.st_blksize = 512
        st.st_dev = self.dev_id
        st.st_ino = self.inode_counter
        self.inode_counter += 1
        st.st_mode = mode
        st.st_nlink = 1
        now = _now()
        st.st_atim = now
        st.st_ctim = now
        st.st_mtim = now

    def _new_resource(self, mode: int) -> Resource:
        resource = Resource()
        self._init_stat(resource, mode)
        return resource

    def _populate(self, node: Node) -> None:
        node.populated = True

    def create(self, parent: Optional[Node], name: str, mode: int) -> Node:
        node = self.vfs.create_node(self, parent, name, _stat.S_ISDIR(mode))
        node.resource = self._new_resource(mode)
        return node

    def symlink(self, parent: Optional[Node], name: str, target: str) -> Node:
        node = self.vfs.create_node(self, parent, name, False)
        node.resource = self._new_resource(0o777 | _stat.S_IFLNK)
        node.symlink_target = target
        return node

    def link(self, parent: Optional[Node], name: str, node: Node) -> Node:
        if _is_dir(node):
            raise _error(errno.EISDIR, name)
        new_node = self.vfs.create_node(self, parent, name, False)
        new_node.resource = node.resource
        return new_node


class _Lookup(NamedTuple):
    target_parent: Optional[Node]
    target: Optional[Node]
    basename: Optional[str]
    error: int


_FAILED_NOENT = _Lookup(None, None, None, errno.ENOENT)


class VFS:
    """The directory tree, its registered filesystems and its mounts."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.filesystems: dict[str, MountFunction] = {}
        self.root = self.create_node(None, None, "", False)

    def create_node(
        self, fs: Optional[Filesystem], parent: Optional[Node], name: str, is_dir: bool
    ) -> Node:
        return Node(name=name, parent=parent, filesystem=fs, children={} if is_dir else None)

    def create_dotentries(self, node: Node, parent: Optional[Node]) -> None:
        dot = self.create_node(node.filesystem, node, ".", False)
        dotdot = self.create_node(node.filesystem, node, "..", False)
        dot.redir = node
        dotdot.redir = parent
        _insert_child(node, ".", dot)
        _insert_child(node, "..", dotdot)

    def add_filesystem(self, identifier: str, mount: MountFunction) -> None:
        with self.lock:
            self.filesystems[identifier] = mount

    def _populate(self, node: Node) -> bool:
        fs = node.filesystem
        if fs is not None and not node.populated and _is_dir(node):
            fs._populate(node)
            return node.populated
        return True

    def _reduce_node(self, node: Node, follow_symlinks: bool) -> Optional[Node]:
        while True:
            if node.redir is not None:
                node = node.redir
            elif node.mountpoint is not None:
                node = node.mountpoint
            elif node.symlink_target is not None and follow_symlinks:
                r = self._path2node(node.parent, node.symlink_target)
                if r.target is None:
                    return None
                node = r.target
            else:
                return node

    def _path2node(self, parent: Optional[Node], path: Optional[str]) -> _Lookup:
        if not path:
            return _FAILED_NOENT

        path_len = len(path)
        ask_for_dir = path.endswith("/")
        index = 0
        current = self._reduce_node(parent if parent is not None else self.root, False)
        if not self._populate(current):
            return _Lookup(None, None, None, errno.EIO)

        if path[0] == "/":
            current = self._reduce_node(self.root, False)
            while path[index] == "/":
                if index == path_len - 1:
                    return _Lookup(current, current, "/", 0)
                index += 1

        while True:
            start = index
            while index < path_len and path[index] != "/":
                index += 1
            elem = path[start:index]
            while index < path_len and path[index] == "/":
                index += 1
            last = index == path_len

            current = self._reduce_node(current, False)
            found = (current.children or {}).get(elem)
            if found is None:
                if last:
                    return _Lookup(current, None, elem, errno.ENOENT)
                return _FAILED_NOENT

            new_node = self._reduce_node(found, False)
            if not self._populate(new_node):
                return _Lookup(None, None, None, errno.EIO)

            if last:
                if ask_for_dir and not _is_dir(new_node):
                    return _Lookup(current, None, elem, errno.ENOTDIR)
                return _Lookup(current, new_node, elem, 0)

            current = new_node
            if _is_link(current):
                r = self._path2node(current.parent, current.symlink_target)
                if r.target is None:
                    return _Lookup(None, None, None, r.error or errno.ENOENT)
                current = r.target

            if not _is_dir(current):
                return _Lookup(None, None, None, errno.ENOTDIR)

    def get_node(self, parent: Optional[Node], path: str, follow_links: bool) -> Node:
        """Resolve ``path`` from ``parent``; raise OSError if it does not exist."""
        with self.lock:
            r = self._path2node(parent, path)
            if r.target is None:
                raise _error(r.error or errno.ENOENT, path)
            if follow_links:
                node = self._reduce_node(r.target, True)
                if node is None:
                    raise _error(errno.ENOENT, path)
                return node
            return r.target

    def mount(
        self,
        parent: Optional[Node],
        source: Optional[str],
        target: str,
        fs_name: str,
    ) -> Node:
        """Mount filesystem ``fs_name`` on ``target``; return the new root node."""
        with self.lock:
            fs_mount = self.filesystems.get(fs_name)
            if fs_mount is None:
                raise _error(errno.ENODEV, fs_name)

            source_node = None
            if source:
                rs = self._path2node(parent, source)
                source_node = rs.target
                if source_node is None:
                    raise _error(rs.error or errno.ENOENT, source)
                if _is_dir(source_node):
                    raise _error(errno.EISDIR, source)

            r = self._path2node(parent, target)
            mounting_root = r.target is self.root
            if r.target is None:
                raise _error(r.error or errno.ENOENT, target)
            if not mounting_root and not _is_dir(r.target):
                raise _error(errno.EISDIR, target)

            mount_node = fs_mount(r.target_parent, r.basename, source_node)
            if mount_node is None:
                raise _error(errno.EINVAL, target)
            r.target.mountpoint = mount_node
            self.create_dotentries(mount_node, r.target_parent)

            if source:
                log.info("VFS: Mounted '%s' on '%s' with filesystem '%s'", source, target, fs_name)
            else:
                log.info("VFS: Mounted %s on '%s'", fs_name, target)
            return mount_node

    def _filesystem_of(self, node: Node, path: str) -> Filesystem:
        if node.filesystem is None:
            raise _error(errno.ENODEV, path)
        return node.filesystem

    def symlink(self, parent: Optional[Node], dest: str, target: str) -> Node:
        """Create at ``target`` a symbolic link pointing to ``dest``."""
        with self.lock:
            r = self._path2node(parent, target)
            if r.target_parent is None:
                raise _error(r.error or errno.ENOENT, target)
            if r.target is not None:
                raise _error(errno.EEXIST, target)
            fs = self._filesystem_of(r.target_parent, target)
            node = fs.symlink(r.target_parent, r.basename, dest)
            _insert_child(r.target_parent, r.basename, node)
            return node

    def unlink(self, parent: Optional[Node], path: str) -> None:
        """Remove the entry at ``path``."""
        with self.lock:
            r = self._path2node(parent, path)
            if r.target_parent is None or r.target is None:
                raise _error(r.error or errno.ENOENT, path)
            if r.target.mountpoint is not None:
                raise _error(errno.EBUSY, path)
            children = r.target_parent.children
            if not children or r.basename not in children:
                raise _error(errno.ENOENT, path)
            del children[r.basename]
            if r.target.resource is not None and not r.target.resource.unref():
                raise _error(errno.EBUSY, path)
            if _is_dir(r.target):
                r.target.children = None

    def create(self, parent: Optional[Node], name: str, mode: int) -> Node:
        """Create a node of ``mode`` at ``name``; directories get dot entries."""
        with self.lock:
            r = self._path2node(parent, name)
            if r.target_parent is None:
                raise _error(r.error or errno.ENOENT, name)
            if r.target is not None:
                raise _error(errno.EEXIST, name)
            fs = self._filesystem_of(r.target_parent, name)
            node = fs.create(r.target_parent, r.basename, mode)
            _insert_child(r.target_parent, r.basename, node)
            if _is_dir(node):
                self.create_dotentries(node, r.target_parent)
            return node

    def pathname(self, node: Node) -> str:
        """The absolute path of ``node`` (the root itself gives the empty string)."""
        prefix = ""
        if node.parent is not self.root and node.parent is not None:
            parent = self._reduce_node(node.parent, False)
            if parent is not self.root and parent is not None:
                prefix = self.pathname(parent) + "/"
        if node.name != "/":
            return prefix + node.name
        return prefix