import io
import subprocess
from unittest import mock

import pytest

from pufu.loader import LoaderError, SocketLoader, download
from pufu.sockets import API_VERSION, ArmSocket, NetSocket


class _FutureSocket(ArmSocket):
    api_version = API_VERSION + 1


class _BrokenSocket(ArmSocket):
    def init(self):
        raise RuntimeError("no hardware")


@pytest.fixture
def out():
    return io.StringIO()


@pytest.fixture
def loader(out):
    registry = {
        "v1.so": lambda: ArmSocket(out=out),
        "v2.so": lambda: NetSocket(out=out),
        "future.so": lambda: _FutureSocket(out=out),
        "broken.so": lambda: _BrokenSocket(out=out),
        "empty.so": lambda: None,
    }
    return SocketLoader(registry)


def test_initially_empty(loader):
    assert loader.current() is None


def test_load_sets_current(loader, out):
    socket = loader.load("v1.so")
    assert loader.current() is socket
    assert "Initializing ARM socket" in out.getvalue()


def test_load_unknown_path(loader):
    with pytest.raises(LoaderError):
        loader.load("missing.so")
    assert loader.current() is None


def test_load_factory_returns_none(loader):
    with pytest.raises(LoaderError):
        loader.load("empty.so")


def test_load_init_failure_keeps_current(loader):
    first = loader.load("v1.so")
    with pytest.raises(LoaderError):
        loader.load("broken.so")
    assert loader.current() is first


def test_load_replaces_and_cleans_previous(loader, out):
    loader.load("v1.so")
    second = loader.load("v2.so")
    assert loader.current() is second
    assert "Cleaning up ARM socket" in out.getvalue()


def test_reload_migrates_state(loader):
    old = loader.load("v1.so")
    old.syscall(1)
    old.syscall(1)
    saved = old.save_state()
    new = loader.reload("v2.so")
    assert loader.current() is new
    assert new.save_state() == saved


def test_reload_version_mismatch(loader):
    first = loader.load("v1.so")
    with pytest.raises(LoaderError):
        loader.reload("future.so")
    assert loader.current() is first


def test_reload_init_failure(loader):
    first = loader.load("v1.so")
    with pytest.raises(LoaderError):
        loader.reload("broken.so")
    assert loader.current() is first


def test_reload_without_current(loader):
    socket = loader.reload("v1.so")
    assert loader.current() is socket


def test_cleanup(loader, out):
    loader.load("v2.so")
    loader.cleanup()
    assert loader.current() is None
    assert "Disconnected" in out.getvalue()


def test_download_success(tmp_path):
    dest = tmp_path / "update.so"
    done = subprocess.CompletedProcess(args=[], returncode=0)
    with mock.patch("pufu.loader.subprocess.run", return_value=done) as run:
        download("https://updates.example.com/socket.so", dest)
    assert run.call_args.args[0] == [
        "curl", "-s", "-L", "-o", str(dest), "https://updates.example.com/socket.so",
    ]


def test_download_failure(tmp_path):
    failed = subprocess.CompletedProcess(args=[], returncode=6)
    with mock.patch("pufu.loader.subprocess.run", return_value=failed):
        with pytest.raises(LoaderError):
            download("https://updates.example.com/socket.so", tmp_path / "x.so")