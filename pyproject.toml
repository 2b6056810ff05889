[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pufu"
version = "0.5.2"
description = "Node runtime building blocks: syscall handlers, IPC, swappable CPU sockets, a software framebuffer and a vector-shape rasterizer"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "virtual-machine",
    "emulator",
    "syscalls",
    "ipc",
    "rasterizer",
    "svg",
    "software-rendering",
]
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
    "Topic :: System :: Emulators",
    "Topic :: Multimedia :: Graphics",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["pufu"]

[tool.hatch.build.targets.sdist]
include = ["pufu", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
