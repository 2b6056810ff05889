"""Pufu processes (nodes), their instructions and the system that runs them."""

from __future__ import annotations

import re
import sys
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, TextIO

from .loader import SocketLoader

NUM_REGISTERS = 8
IPC_QUEUE_SIZE = 32
MAX_INPUT = 255
MAX_STRING_ARG = 255
MAX_SENDER = 63
MAX_CONTENT = 191

MSG_DIRECT = 0
MSG_BROADCAST = 2

_INT = re.compile(r"\s*([+-]?\d+)")


def clean_string_arg(src: str) -> str:
    """Strip surrounding double quotes from an operand and limit it to 255 characters."""
    if src.startswith('"'):
        text = src[1:MAX_STRING_ARG + 1]
        if text.endswith('"'):
            text = text[:-1]
        return text
    return src[:MAX_STRING_ARG]


def reg_index(name: str) -> int | None:
    """Return the register number for ``r0``..``r7``, or None for anything else."""
    if len(name) >= 2 and name[0] == "r" and "0" <= name[1] <= "7":
        return int(name[1])
    return None


@dataclass
class Instruction:
    """One decoded instruction of a node program."""

    opcode: str = ""
    syscall_id: int = 0
    reg1: str = ""
    reg2: str = ""


@dataclass
class IpcMessage:
    """A message waiting in a node's IPC queue."""

    sender: str
    content: str
    type: int = MSG_DIRECT


@dataclass
class Node:
    """A running Pufu program with its registers, input buffer and mailbox."""

    filename: str
    instructions: list[Instruction] = field(default_factory=list)
    ip: int = 0
    registers: list[int] = field(default_factory=lambda: [0] * NUM_REGISTERS)
    input_buffer: str = ""
    args: str = ""
    tws_id: int = 0
    active: bool = True
    wake_time: int = 0
    ipc_queue: deque[IpcMessage] = field(default_factory=deque)

    def value_of(self, operand: str) -> int:
        """Return a register's value or the integer literal the operand starts with."""
        reg = reg_index(operand)
        if reg is not None:
            return self.registers[reg]
        match = _INT.match(operand)
        return int(match.group(1)) if match else 0


def _no_program(filename: str) -> list[Instruction]:
    return []


def _no_key() -> int:
    return 0


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


@dataclass
class NodeSystem:
    """The set of nodes together with the console and services syscalls use."""

    nodes: list[Node] = field(default_factory=list)
    program_loader: Callable[[str], list[Instruction]] = _no_program
    socket_loader: SocketLoader | None = None
    key_source: Callable[[], int] = _no_key
    out: TextIO | None = None
    clock: Callable[[], int] = _monotonic_ms
    config_path: str = "user_config.pufu"
    update_path: str = "/tmp/pufu_update.so"
    prompt: str = ""
    terminal_buffer: str = ""
    running: bool = True
    logs: list[tuple[int, str]] = field(default_factory=list)

    def find(self, filename: str) -> Node | None:
        """Return the first node running ``filename``."""
        return next((n for n in self.nodes if n.filename == filename), None)

    def load(self, filename: str) -> Node:
        """Start a new node for ``filename``; the program loader may raise OSError."""
        node = Node(filename, list(self.program_loader(filename)))
        self.nodes.append(node)
        return node

    def write(self, text: str) -> None:
        """Write raw text to the console."""
        stream = self.out if self.out is not None else sys.stdout
        stream.write(text)
        stream.flush()

    def log(self, message: str, tws_id: int = 0) -> None:
        """Record a log line for a workspace and show it on the console."""
        self.logs.append((tws_id, message))
        self.write(message + "\n")

    def read_key(self) -> int:
        """Return the pending key code, or 0 when none is waiting."""
        return self.key_source()

    def clear_screen(self) -> None:
        """Clear the console."""
        self.write("\033[2J\033[H")