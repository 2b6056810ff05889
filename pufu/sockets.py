"""Architecture sockets: pluggable CPU back ends that execute Pufu instructions."""

from __future__ import annotations

import random
import struct
import sys
import time
from abc import ABC, abstractmethod
from typing import Callable, TextIO

API_VERSION = 1

WELCOME_MESSAGES: tuple[str, ...] = (
    "                              x",
    "    ▓         ▓               0",
    "    ▓ ▓     ▓ ▓               1",
    "  ▓ ▓ ▓ ▓ ▓ ▓ ▓ ▓     ▓ ▓ ▓   2",
    "  ▓ ▓ ▓ ▓ ▓ ▓ ▓ ▓   ▓ ▓ ▓ ▓ ▓ 3",
    "  ▓     ▓ ▓     ▓   ▓ ▓   ▓ ▓ 4",
    "  ▓     ▓ ▓     ▓   ▓ ▓       5",
    "  ▓ ▓ ▓ ▓ ▓ ▓ ▓ ▓   ▓ ▓ ▓ ▓   6",
    "  ▓ ▓ ▓ ▓ ▓ ▓ ▓ ▓     ▓ ▓ ▓   7",
    "        ▓ ▓             ▓ ▓   8",
    "      ▓ ▓ ▓ ▓ ▓ ▓ ▓ ▓ ▓ ▓ ▓   9",
    "      ▓ ▓ ▓ ▓ ▓ ▓ ▓ ▓ ▓ ▓     A",
    "      ▓     ▓   ▓ ▓   ▓ ▓     B",
    "      ▓     ▓   ▓ ▓   ▓ ▓     C",
    "      ▓     ▓     ▓     ▓     D",
    "                              E",
    "            PUFU!             F",
    "Pardum Felidum Operating System",
)

_STATE = struct.Struct("<i")


class SocketExit(Exception):
    """Raised when a socket asks the whole system to terminate."""

    def __init__(self, code: int = 0) -> None:
        super().__init__(code)
        self.code = code


def _atoi(text: str) -> int:
    """Parse a leading integer the way C's ``atoi`` does; 0 when there is none."""
    s = text.lstrip(" \t\n\r\v\f")
    sign = 1
    if s[:1] in ("+", "-"):
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    digits = ""
    for ch in s:
        if not ch.isdigit():
            break
        digits += ch
    return sign * int(digits) if digits else 0


def _cdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _cmp(a: int, b: int) -> int:
    return -1 if a < b else (1 if a > b else 0)


def _take_token(text: str, limit: int) -> tuple[str, str]:
    """Split off the leading run of non-space characters, at most ``limit`` long."""
    end = text.find(" ")
    if end == -1:
        end = len(text)
    end = min(end, limit)
    return text[:end], text[end:]


class Socket(ABC):
    """The interface every architecture socket provides to the kernel."""

    api_version: int = API_VERSION
    arch_name: str = ""
    word_size: int = 32

    @abstractmethod
    def init(self) -> None:
        """Prepare the socket; raise if it cannot be used."""

    @abstractmethod
    def execute(self, code: str) -> None:
        """Execute one line of Pufu code."""

    @abstractmethod
    def load_file(self, filename: str) -> None:
        """Load a Pufu file."""

    @abstractmethod
    def alu_add(self, a: int, b: int) -> int: ...

    @abstractmethod
    def alu_sub(self, a: int, b: int) -> int: ...

    @abstractmethod
    def alu_mul(self, a: int, b: int) -> int: ...

    @abstractmethod
    def alu_div(self, a: int, b: int) -> int: ...

    @abstractmethod
    def alu_cmp(self, a: int, b: int) -> int: ...

    @abstractmethod
    def cleanup(self) -> None:
        """Release the socket's resources."""

    def syscall(self, syscall_id: int, args: object = None) -> None:
        """Notify the socket of a kernel syscall."""

    def save_state(self) -> bytes | None:
        """Return the state to carry over on a hot swap, or None when there is none."""
        return None

    def restore_state(self, state: bytes) -> None:
        """Take over state saved by a previous socket."""
        raise NotImplementedError(f"{type(self).__name__} keeps no state")


class ArmSocket(Socket):
    """The reference ARM socket: interprets syscalls and simple arithmetic."""

    arch_name = "ARM"
    word_size = 32

    def __init__(self, key_source: Callable[[], int] | None = None,
                 out: TextIO | None = None) -> None:
        self._key_source = key_source or (lambda: 0)
        self._out = out
        self._counter = 0
        self._start_time: float | None = None

    @property
    def out(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    def _print(self, text: str, end: str = "\n") -> None:
        self.out.write(text + end)

    def init(self) -> None:
        self._print("Initializing ARM socket...")

    def load_file(self, filename: str) -> None:
        """Print the contents of ``filename``; raises OSError when it cannot be read."""
        self._print(f"Loading file on ARM: {filename}")
        try:
            with open(filename, encoding="utf-8", errors="replace") as handle:
                for line in handle:
                    self.out.write(line)
        except OSError:
            self._print(f"Error: could not open file {filename}")
            raise

    def alu_add(self, a: int, b: int) -> int:
        return a + b

    def alu_sub(self, a: int, b: int) -> int:
        return a - b

    def alu_mul(self, a: int, b: int) -> int:
        return a * b

    def alu_div(self, a: int, b: int) -> int:
        return _cdiv(a, b) if b != 0 else 0

    def alu_cmp(self, a: int, b: int) -> int:
        return _cmp(a, b)

    def handle_syscall(self, name: str, string_arg: str | None, value: int) -> None:
        """Run a named syscall such as ``(write)`` or ``(sleep)``."""
        if name == "(write)":
            if string_arg:
                self._print(string_arg)
                return
            if not 0 <= value < len(WELCOME_MESSAGES):
                raise ValueError(f"no predefined message {value}")
            self._print(WELCOME_MESSAGES[value])
            return
        if name == "(stats)":
            cpu = random.randrange(20) + 5
            ram = 128 + random.randrange(16)
            if self._start_time is None:
                self._start_time = time.time()
            uptime = int(time.time() - self._start_time)
            self._print(f"\r[CPU: {cpu:2d}%] [RAM: {ram:3d} MB] [NODES: 1] "
                        f"[UPTIME: {uptime:3d}s] (Press Ctrl+C to exit)", end="")
            self.out.flush()
            return
        if name == "(sleep)":
            ms = _atoi(string_arg) if string_arg else 0
            if ms > 0:
                time.sleep(ms / 1000.0)
            return
        if name == "(exit_if_key)":
            key = self._key_source()
            if key > 0:
                target = "q" if string_arg is None else (string_arg[:1] or "\0")
                if key == ord(target):
                    self._print("\nExiting...")
                    raise SocketExit(0)
            return
        if name == "(exit)":
            raise SocketExit(0)
        if name in ("(load_file)", "(read_file)"):
            if string_arg:
                self.load_file(string_arg)
            elif name == "(load_file)":
                self.load_file("char.pufu")
            else:
                self.load_file("welcome.pufu")
            return
        raise ValueError(f"unknown syscall {name!r}")

    def execute(self, code: str) -> None:
        """Execute ``syscall <name> ["text"|num=N]`` or ``add|sub|mul|div a b``."""
        op, rest = _take_token(code.lstrip(" "), 31)
        if op == "syscall":
            name, rest = _take_token(rest.lstrip(" "), 63)
            rest = rest.lstrip(" ")
            string_arg = ""
            value = -1
            if rest.startswith('"'):
                body = rest[1:]
                end = body.find('"')
                if end == -1:
                    end = len(body)
                string_arg = body[:min(end, 255)]
            elif rest.startswith("num="):
                value = _atoi(rest[4:])
            self.handle_syscall(name, string_arg, value)
            return
        if op in ("add", "sub", "mul", "div"):
            rest = rest.lstrip(" ")
            v1 = _atoi(rest)
            gap = rest.find(" ")
            rest = "" if gap == -1 else rest[gap:].lstrip(" ")
            v2 = _atoi(rest)
            if op == "mul":
                self._print(f"Paw MUL: {v1} * {v2} = {v1 * v2}")
            elif op == "add":
                self._print(f"Paw ADD: {v1} + {v2} = {v1 + v2}")
            elif op == "sub":
                self._print(f"Paw SUB: {v1} - {v2} = {v1 - v2}")
            else:
                if v2 == 0:
                    self._print("Paw DIV: Error (Division by zero)")
                    raise ZeroDivisionError("Paw DIV: division by zero")
                self._print(f"Paw DIV: {v1} / {v2} = {_cdiv(v1, v2)}")

    def syscall(self, syscall_id: int, args: object = None) -> None:
        self._counter += 1

    def save_state(self) -> bytes:
        self._print(f"[ARM-V1] State Saved: Counter={self._counter}")
        return _STATE.pack(self._counter)

    def restore_state(self, state: bytes) -> None:
        if len(state) < _STATE.size:
            raise ValueError("state buffer too small")
        (self._counter,) = _STATE.unpack_from(state)
        self._print(f"[ARM-V1] State Restored: Counter={self._counter}")

    def cleanup(self) -> None:
        self._print("Cleaning up ARM socket resources...")


class NetSocket(Socket):
    """A networked ARM socket whose arithmetic is reported as cloud work."""

    arch_name = "ARM Cortex-A72 (Networked)"
    word_size = 32

    def __init__(self, out: TextIO | None = None) -> None:
        self._out = out
        self._counter = -1

    @property
    def out(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    def _print(self, text: str) -> None:
        self.out.write(text + "\n")

    def init(self) -> None:
        self._print("\n=== [V2] PufuNet Socket Initialized ===")
        self._print(">> Connected to Pufu Cloud (Mock)")
        self._print(">> Latency: 5ms")

    def execute(self, code: str) -> None:
        """Accept code without running it; this socket only serves the ALU."""

    def load_file(self, filename: str) -> None:
        """Accept a file without loading it."""

    def alu_add(self, a: int, b: int) -> int:
        self._print(f"[NET-V2] Cloud Add: {a} + {b}")
        return a + b

    def alu_sub(self, a: int, b: int) -> int:
        self._print(f"[NET-V2] Cloud Sub: {a} - {b}")
        return a - b

    def alu_mul(self, a: int, b: int) -> int:
        return a * b

    def alu_div(self, a: int, b: int) -> int:
        return _cdiv(a, b) if b != 0 else 0

    def alu_cmp(self, a: int, b: int) -> int:
        return _cmp(a, b)

    def syscall(self, syscall_id: int, args: object = None) -> None:
        self._counter += 1
        self._print(f"[NET-V2] Syscall Executed. Counter now: {self._counter}")

    def save_state(self) -> bytes:
        self._print(f"[NET-V2] State Saved: Counter={self._counter}")
        return _STATE.pack(self._counter)

    def restore_state(self, state: bytes) -> None:
        if len(state) < _STATE.size:
            raise ValueError("state buffer too small")
        (self._counter,) = _STATE.unpack_from(state)
        self._print(f"[NET-V2] State Restored: Counter={self._counter}")

    def cleanup(self) -> None:
        self._print("[V2] PufuNet Socket Disconnected.")