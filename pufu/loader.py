"""Loading and hot-swapping architecture sockets."""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Callable, Mapping, Union

from .sockets import API_VERSION, Socket

log = logging.getLogger(__name__)

SocketFactory = Callable[[], Union[Socket, None]]
PathLike = Union[str, "os.PathLike[str]"]


class LoaderError(Exception):
    """A socket could not be loaded, swapped in or downloaded."""


class SocketLoader:
    """Keeps the current socket and swaps in new ones from a registry of drivers."""

    def __init__(self, registry: Mapping[str, SocketFactory]) -> None:
        self._registry = registry
        self._current: Socket | None = None

    def _create(self, path: PathLike) -> Socket:
        key = os.fspath(path)
        factory = self._registry.get(key)
        if factory is None:
            raise LoaderError(f"no socket driver at {key}")
        socket = factory()
        if socket is None:
            raise LoaderError(f"driver {key} returned no socket")
        return socket

    @staticmethod
    def _init(socket: Socket) -> None:
        try:
            socket.init()
        except Exception as exc:
            raise LoaderError("socket init failed") from exc

    def load(self, path: PathLike) -> Socket:
        """Load and initialise the socket at ``path``, replacing the current one."""
        log.info("Loading dynamic socket: %s", os.fspath(path))
        socket = self._create(path)
        self._init(socket)
        if self._current is not None:
            log.info("Closing previous socket...")
            self._current.cleanup()
        self._current = socket
        log.info("Socket loaded.")
        return socket

    def reload(self, path: PathLike) -> Socket:
        """Hot-swap to the socket at ``path``, carrying state over from the current one."""
        log.info("Starting hot swap with: %s", os.fspath(path))
        socket = self._create(path)

        if socket.api_version != API_VERSION:
            raise LoaderError(
                f"version mismatch: kernel {API_VERSION}, driver {socket.api_version}")

        state: bytes | None = None
        if self._current is not None:
            try:
                state = self._current.save_state()
            except (ValueError, NotImplementedError):
                log.warning("Failed to save state.")
                state = None

        self._init(socket)

        if state:
            try:
                socket.restore_state(state)
            except (ValueError, NotImplementedError):
                log.warning("Failed to restore state (version/size mismatch likely).")
            else:
                log.info("State migration successful (%d bytes).", len(state))

        if self._current is not None:
            self._current.cleanup()
        self._current = socket
        log.info("Hot swap complete.")
        return socket

    def current(self) -> Socket | None:
        """Return the active socket, if any."""
        return self._current

    def cleanup(self) -> None:
        """Clean up and forget the active socket."""
        if self._current is not None:
            self._current.cleanup()
            self._current = None


def download(url: str, dest: PathLike) -> None:
    """Fetch ``url`` into ``dest`` with curl; raises LoaderError on failure."""
    log.info("Downloading update: %s -> %s", url, os.fspath(dest))
    result = subprocess.run(["curl", "-s", "-L", "-o", os.fspath(dest), url], check=False)
    if result.returncode != 0:
        raise LoaderError(f"download failed (exit code {result.returncode})")
    log.info("Download successful.")