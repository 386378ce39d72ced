# polarfs

An in-memory virtual filesystem in the style of a small kernel's storage
layer, together with a self-contained printf engine.

- `polarfs.vfs` – `VFS`, `Node`, `Resource`, `Stat` and `Filesystem`: the
  node tree, path resolution (with `.`/`..` entries, symlinks and mount
  points), `create`, `symlink`, `unlink`, `mount`, `get_node` and `pathname`.
- `polarfs.tmpfs` – `Tmpfs` and `Devtmpfs` filesystems backed by
  `MemoryResource` byte stores (with `read`, `write`, `truncate` and `mmap`),
  plus `tmpfs_init` and `devtmpfs_init`, which register them as `"tmpfs"` and
  `"devtmpfs"`.
- `polarfs.streams` – `NullDevice`, `FullDevice` and `ZeroDevice`, published
  as `null`, `full` and `zero` by `streams_init`.
- `polarfs.ramdisk` – `ramdisk_install`, which unpacks a ustar archive image
  (regular files, directories, symlinks, GNU long names) under the root.
- `polarfs.partition` – `GptHeader`, `GptEntry`, `MbrEntry`, and
  `partition_enumerate`, which adds a `PartitionDevice` named `<disk>p<n>` for
  each partition found and returns `"gpt"`, `"mbr"` or `None`.
- `polarfs.printf` – `sprintf`, `snprintf`, `fctprintf` and `format_into`,
  with C-style integer, character, string, pointer, `%n` (via `WriteBack`) and
  `%f`/`%e`/`%g` conversions. The lower layers live in `polarfs.numfmt` and
  `polarfs.floatfmt`.
- `polarfs.debug` – `KernelLog`, which writes tick-prefixed log lines and hex
  dumps to a serial sink and an optional framebuffer sink, and whose `panic`
  raises `KernelPanic`.
- `polarfs.timespec` – `Timespec` with clamped addition and subtraction, and
  the `div_roundup`, `align_up` and `align_down` helpers.

Errors are raised as `OSError` with the matching `errno` value (`ENOENT`,
`EEXIST`, `ENOTDIR`, `EISDIR`, `ENODEV`, `ENOSPC`, …).

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## A short tour

The bare root belongs to no filesystem, so mount one on it before creating
anything:

```python
import stat

from polarfs.vfs import VFS
from polarfs.tmpfs import tmpfs_init, devtmpfs_init
from polarfs.streams import streams_init

vfs = VFS()
tmpfs_init(vfs)
devtmpfs = devtmpfs_init(vfs)
streams_init(devtmpfs)

vfs.mount(vfs.root, None, "/", "tmpfs")
vfs.create(vfs.root, "/dev", 0o755 | stat.S_IFDIR)
vfs.mount(vfs.root, None, "/dev", "devtmpfs")

hello = vfs.create(vfs.root, "/hello.txt", 0o644 | stat.S_IFREG)
hello.resource.write(0, b"hi")
hello.resource.read(0, 10)                         # b'hi'

zero = vfs.get_node(vfs.root, "/dev/zero", False)
zero.resource.read(0, 4)                           # b'\x00\x00\x00\x00'
```

Formatting works without any of the filesystem parts:

```python
from polarfs.printf import sprintf, snprintf

sprintf("%-6s|%05.1f|%#x", "ab", 3.14159, 255)   # 'ab    |003.1|0xff'
snprintf(4, "%d", 123456)                        # ('123', 6)
```

## What it does not do

- There is no process layer: no file descriptors, open flags, working
  directory or system-call style functions such as `openat`, `readdir` or
  `mkdirat`. Work with `VFS` and the resources of its nodes directly.
- Everything lives in memory; nothing is written to or read back from disk
  except what you hand in as bytes (an archive image or a disk `Resource`).
- There is no command-line tool.