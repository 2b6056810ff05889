"""A synchronous inter-process signal bus."""

from __future__ import annotations

import sys
from collections import deque
from dataclasses import dataclass
from typing import TextIO


@dataclass(frozen=True)
class _Signal:
    signal_id: int
    data: bytes


class VirtualBus:
    """Carries signals between nodes; signals are handled as soon as they are sent."""

    def __init__(self, out: TextIO | None = None) -> None:
        self._out = out
        self._queue: deque[_Signal] = deque()
        self._print("VirtualBus (IPC) Initialized.")

    def _print(self, text: str) -> None:
        (self._out if self._out is not None else sys.stdout).write(text + "\n")

    @property
    def queue_size(self) -> int:
        """Number of signals waiting to be handled."""
        return len(self._queue)

    def send(self, signal_id: int, data: bytes = b"") -> None:
        """Send a signal with a 16-bit id and at most 65535 bytes of payload."""
        if not 0 <= signal_id <= 0xFFFF:
            raise ValueError("signal id must fit in 16 bits")
        if len(data) > 0xFFFF:
            raise ValueError("signal payload must be at most 65535 bytes")
        self._queue.append(_Signal(signal_id, bytes(data)))
        self.process()

    def process(self) -> int:
        """Handle every queued signal; return how many were handled."""
        handled = 0
        while self._queue:
            signal = self._queue.popleft()
            self._print(
                f"VirtualBus: Signal Received [ID: 0x{signal.signal_id:04X}, "
                f"Size: {len(signal.data)}]")
            handled += 1
        return handled