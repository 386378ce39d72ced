import errno
import stat

import pytest

from polarfs.vfs import VFS, Filesystem, Node, Resource

DIR = stat.S_IFDIR | 0o755
REG = stat.S_IFREG | 0o644


@pytest.fixture
def vfs():
    v = VFS()
    v.add_filesystem(
        "memfs",
        lambda parent, name, source: Filesystem(v).create(parent, name, DIR),
    )
    v.mount(v.root, None, "/", "memfs")
    return v


def test_create_then_lookup_returns_same_node(vfs):
    node = vfs.create(vfs.root, "/file", REG)
    assert vfs.get_node(vfs.root, "/file", False) is node
    assert node.resource.stat.st_mode == REG


def test_create_existing_raises_eexist(vfs):
    vfs.create(vfs.root, "/file", REG)
    with pytest.raises(OSError) as exc:
        vfs.create(vfs.root, "/file", REG)
    assert exc.value.errno == errno.EEXIST


def test_missing_paths_raise_enoent(vfs):
    with pytest.raises(OSError) as exc:
        vfs.get_node(vfs.root, "/nothing", False)
    assert exc.value.errno == errno.ENOENT
    with pytest.raises(OSError) as exc:
        vfs.get_node(vfs.root, "/no/such/thing", False)
    assert exc.value.errno == errno.ENOENT
    with pytest.raises(OSError) as exc:
        vfs.get_node(vfs.root, "", False)
    assert exc.value.errno == errno.ENOENT


def test_walking_through_a_file_raises_enotdir(vfs):
    vfs.create(vfs.root, "/file", REG)
    with pytest.raises(OSError) as exc:
        vfs.get_node(vfs.root, "/file/x", False)
    assert exc.value.errno == errno.ENOTDIR
    with pytest.raises(OSError) as exc:
        vfs.get_node(vfs.root, "/file/", False)
    assert exc.value.errno == errno.ENOTDIR


def test_directories_get_dot_entries(vfs):
    d = vfs.create(vfs.root, "/d", DIR)
    assert set(d.children) == {".", ".."}
    assert vfs.get_node(vfs.root, "/d/.", False) is d
    assert vfs.get_node(vfs.root, "/d/..", False) is vfs.get_node(vfs.root, "/", False)


def test_relative_lookup_and_pathname(vfs):
    d = vfs.create(vfs.root, "/d", DIR)
    f = vfs.create(d, "f", REG)
    assert vfs.get_node(vfs.root, "/d//f", False) is f
    assert vfs.get_node(d, "../d/f", False) is f
    assert vfs.pathname(f) == "/d/f"
    assert vfs.pathname(d) == "/d"


def test_symlink_resolution(vfs):
    d = vfs.create(vfs.root, "/d", DIR)
    f = vfs.create(vfs.root, "/d/f", REG)
    link = vfs.symlink(vfs.root, "/d", "/l")
    assert link.symlink_target == "/d"
    assert stat.S_ISLNK(link.resource.stat.st_mode)
    assert vfs.get_node(vfs.root, "/l", False) is link
    assert vfs.get_node(vfs.root, "/l", True) is d
    assert vfs.get_node(vfs.root, "/l/f", False) is f


def test_symlink_over_existing_raises(vfs):
    vfs.create(vfs.root, "/f", REG)
    with pytest.raises(OSError) as exc:
        vfs.symlink(vfs.root, "/x", "/f")
    assert exc.value.errno == errno.EEXIST


def test_dangling_symlink_follow_raises(vfs):
    vfs.symlink(vfs.root, "/missing", "/l")
    with pytest.raises(OSError) as exc:
        vfs.get_node(vfs.root, "/l", True)
    assert exc.value.errno == errno.ENOENT


def test_unlink_removes_entry(vfs):
    vfs.create(vfs.root, "/f", REG)
    vfs.unlink(vfs.root, "/f")
    with pytest.raises(OSError) as exc:
        vfs.get_node(vfs.root, "/f", False)
    assert exc.value.errno == errno.ENOENT
    with pytest.raises(OSError) as exc:
        vfs.unlink(vfs.root, "/f")
    assert exc.value.errno == errno.ENOENT


def test_mount_unknown_filesystem(vfs):
    vfs.create(vfs.root, "/mnt", DIR)
    with pytest.raises(OSError) as exc:
        vfs.mount(vfs.root, None, "/mnt", "nofs")
    assert exc.value.errno == errno.ENODEV


def test_mount_on_file_raises(vfs):
    vfs.create(vfs.root, "/f", REG)
    with pytest.raises(OSError) as exc:
        vfs.mount(vfs.root, None, "/f", "memfs")
    assert exc.value.errno == errno.EISDIR


def test_mount_on_directory_redirects(vfs):
    mnt = vfs.create(vfs.root, "/mnt", DIR)
    mounted = vfs.mount(vfs.root, None, "/mnt", "memfs")
    assert mnt.mountpoint is mounted
    assert vfs.get_node(vfs.root, "/mnt", False) is mounted
    x = vfs.create(vfs.root, "/mnt/x", REG)
    assert "x" in mounted.children
    assert "x" not in mnt.children
    assert vfs.pathname(x) == "/mnt/x"


def test_mount_passes_source_node(vfs):
    seen = []

    def mount(parent, name, source):
        seen.append(source)
        return Filesystem(vfs).create(parent, name, DIR)

    vfs.add_filesystem("recorder", mount)
    disk = vfs.create(vfs.root, "/disk", REG)
    vfs.create(vfs.root, "/mnt", DIR)
    vfs.mount(vfs.root, "/disk", "/mnt", "recorder")
    assert seen == [disk]


def test_mount_with_directory_source_raises(vfs):
    vfs.create(vfs.root, "/src", DIR)
    vfs.create(vfs.root, "/mnt", DIR)
    with pytest.raises(OSError) as exc:
        vfs.mount(vfs.root, "/src", "/mnt", "memfs")
    assert exc.value.errno == errno.EISDIR


def test_link_shares_resource(vfs):
    d = vfs.create(vfs.root, "/d", DIR)
    f = vfs.create(vfs.root, "/f", REG)
    fs = d.filesystem
    hard = fs.link(d, "g", f)
    assert hard.resource is f.resource
    assert hard.name == "g"
    with pytest.raises(OSError) as exc:
        fs.link(d, "h", d)
    assert exc.value.errno == errno.EISDIR


def test_inode_numbers_increase(vfs):
    fs = vfs.get_node(vfs.root, "/", False).filesystem
    a = vfs.create(vfs.root, "/a", REG)
    b = vfs.create(vfs.root, "/b", REG)
    assert b.resource.stat.st_ino == a.resource.stat.st_ino + 1
    assert fs.inode_counter == b.resource.stat.st_ino + 1


def test_plain_resource_rejects_io():
    res = Resource()
    with pytest.raises(OSError) as exc:
        res.read(0, 4)
    assert exc.value.errno == errno.EINVAL
    with pytest.raises(OSError) as exc:
        res.write(0, b"x")
    assert exc.value.errno == errno.EINVAL


def test_create_node_directory_flag():
    v = VFS()
    d = v.create_node(None, None, "d", True)
    f = v.create_node(None, d, "f", False)
    assert d.children == {}
    assert f.children is None
    assert isinstance(f, Node) and f.parent is d