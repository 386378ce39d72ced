import io
import stat
import tarfile

from polarfs.ramdisk import octal_to_int, ramdisk_install
from polarfs.tmpfs import tmpfs_init
from polarfs.vfs import VFS


def make_vfs():
    vfs = VFS()
    tmpfs_init(vfs)
    vfs.mount(None, None, "/", "tmpfs")
    return vfs


def build_tar(members, fmt=tarfile.USTAR_FORMAT):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=fmt) as tar:
        for info, content in members:
            if content is not None:
                info.size = len(content)
                tar.addfile(info, io.BytesIO(content))
            else:
                tar.addfile(info)
    return buf.getvalue()


def dir_info(name, mode=0o755):
    info = tarfile.TarInfo(name)
    info.type = tarfile.DIRTYPE
    info.mode = mode
    return info


def file_info(name, mode=0o644):
    info = tarfile.TarInfo(name)
    info.mode = mode
    return info


def link_info(name, target):
    info = tarfile.TarInfo(name)
    info.type = tarfile.SYMTYPE
    info.linkname = target
    return info


def test_octal_to_int_stops_at_nul():
    assert octal_to_int(b"0000644\0") == 0o644
    assert octal_to_int(b"17\0junk") == 15
    assert octal_to_int(b"") == 0


def test_install_files_dirs_and_links():
    image = build_tar(
        [
            (dir_info("."), None),
            (dir_info("etc"), None),
            (file_info("etc/hostname"), b"polaris\n"),
            (link_info("etc/host", "/etc/hostname"), None),
        ]
    )
    vfs = make_vfs()
    ramdisk_install(vfs, image)

    etc = vfs.get_node(vfs.root, "/etc", False)
    assert stat.S_ISDIR(etc.resource.stat.st_mode)
    assert stat.S_IMODE(etc.resource.stat.st_mode) == 0o755

    f = vfs.get_node(vfs.root, "/etc/hostname", False)
    assert f.resource.stat.st_mode == stat.S_IFREG | 0o644
    assert f.resource.read(0, 100) == b"polaris\n"

    link = vfs.get_node(vfs.root, "/etc/host", False)
    assert link.symlink_target == "/etc/hostname"
    assert vfs.get_node(vfs.root, "/etc/host", True) is f


def test_install_large_file_spans_blocks():
    content = bytes(range(256)) * 9
    image = build_tar([(file_info("big"), content), (file_info("after"), b"x")])
    vfs = make_vfs()
    ramdisk_install(vfs, image)
    big = vfs.get_node(vfs.root, "/big", False)
    assert big.resource.read(0, len(content) + 10) == content
    assert vfs.get_node(vfs.root, "/after", False).resource.read(0, 5) == b"x"


def test_gnu_long_name():
    long_name = "d/" + "n" * 120
    image = build_tar(
        [(dir_info("d"), None), (file_info(long_name), b"long")],
        fmt=tarfile.GNU_FORMAT,
    )
    vfs = make_vfs()
    ramdisk_install(vfs, image)
    node = vfs.get_node(vfs.root, "/" + long_name, False)
    assert node.resource.read(0, 10) == b"long"
    assert "n" * 120 in vfs.get_node(vfs.root, "/d", False).children


def test_non_archive_image_creates_nothing():
    vfs = make_vfs()
    before = set(vfs.get_node(vfs.root, "/", False).children)
    ramdisk_install(vfs, bytes(2048))
    after = set(vfs.get_node(vfs.root, "/", False).children)
    assert after == before


def test_entry_in_missing_directory_is_skipped():
    image = build_tar([(file_info("missing/file"), b"a"), (file_info("ok"), b"b")])
    vfs = make_vfs()
    ramdisk_install(vfs, image)
    assert vfs.get_node(vfs.root, "/ok", False).resource.read(0, 1) == b"b"
    assert "missing" not in vfs.get_node(vfs.root, "/", False).children