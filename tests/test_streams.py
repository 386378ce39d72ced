import errno
import stat

import pytest

from polarfs.streams import FullDevice, NullDevice, ZeroDevice, streams_init
from polarfs.tmpfs import devtmpfs_init
from polarfs.vfs import VFS


def test_null_device():
    dev = NullDevice()
    assert dev.read(0, 10) == b""
    assert dev.write(0, b"abcd") == 4


def test_full_device():
    dev = FullDevice()
    assert dev.read(0, 5) == bytes(5)
    with pytest.raises(OSError) as exc:
        dev.write(0, b"x")
    assert exc.value.errno == errno.ENOSPC


def test_zero_device():
    dev = ZeroDevice()
    assert dev.read(3, 8) == bytes(8)
    assert dev.write(0, b"xyz") == 3


def test_device_stat():
    for dev in (NullDevice(), FullDevice(), ZeroDevice()):
        assert stat.S_ISCHR(dev.stat.st_mode)
        assert stat.S_IMODE(dev.stat.st_mode) == 0o666
        assert dev.stat.st_blksize == 4096


def test_streams_init_registers_devices():
    vfs = VFS()
    devfs = devtmpfs_init(vfs)
    devices = streams_init(devfs)
    assert sorted(devices) == ["full", "null", "zero"]
    for name, dev in devices.items():
        assert vfs.get_node(devfs.root, name, False).resource is dev
    rdevs = {dev.stat.st_rdev for dev in devices.values()}
    assert len(rdevs) == 3


def test_streams_init_twice_fails():
    vfs = VFS()
    devfs = devtmpfs_init(vfs)
    streams_init(devfs)
    with pytest.raises(OSError) as exc:
        streams_init(devfs)
    assert exc.value.errno == errno.EEXIST