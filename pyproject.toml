[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "polarfs"
version = "0.1.0"
description = "An in-memory virtual filesystem with tmpfs, devtmpfs, stream devices, ustar ramdisks, partition tables and a small printf engine"
requires-python = ">=3.10"
dependencies = []
keywords = ["vfs", "tmpfs", "devtmpfs", "ustar", "gpt", "mbr", "printf", "filesystem"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["polarfs"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
