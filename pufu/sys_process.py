"""Process syscalls: starting, chaining, stopping and pausing nodes."""

from __future__ import annotations

import functools
import re
from enum import IntEnum
from typing import Callable

from .node import Instruction, Node, NodeSystem, clean_string_arg, reg_index

Handler = Callable[[NodeSystem, Node, Instruction], None]

_INT = re.compile(r"\s*([+-]?\d+)")

CMD_NONE = 0
CMD_INIT = 1
CMD_STOP = 2
CMD_COMMAND = 3
CMD_SHUTDOWN = 4

# Prefixes checked in order; the ones marked True are cut from the buffer.
_COMMANDS: tuple[tuple[str, int, bool], ...] = (
    ("init ", CMD_INIT, True),
    ("stop ", CMD_STOP, True),
    ("command ", CMD_COMMAND, True),
    ("shutdown", CMD_SHUTDOWN, False),
    ("tws ", CMD_SHUTDOWN, False),
)


class ProcessSyscall(IntEnum):
    SPAWN = 20
    EXEC = 21
    KILL = 22
    EXIT = 23
    SHUTDOWN = 24
    SLEEP = 25
    SPAWN_FROM_BUFFER = 26
    KILL_FROM_BUFFER = 27
    PARSE_COMMAND = 28


def _atoi(text: str) -> int:
    match = _INT.match(text)
    return int(match.group(1)) if match else 0


def _advance(fn: Handler) -> Handler:
    """Move the node to its next instruction once the syscall has run."""
    @functools.wraps(fn)
    def wrapper(system: NodeSystem, node: Node, inst: Instruction) -> None:
        fn(system, node, inst)
        node.ip += 1
    return wrapper


def _start_child(system: NodeSystem, node: Node, filename: str) -> Node | None:
    try:
        child = system.load(filename)
    except OSError:
        return None
    child.tws_id = node.tws_id
    return child


def _stop_all(system: NodeSystem, filename: str) -> None:
    for target in system.nodes:
        if target.filename == filename:
            target.active = False


@_advance
def sys_spawn(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Start the program named by the operand in the caller's workspace."""
    filename = clean_string_arg(inst.reg1)
    system.log(f"Syscall (spawn): Starting {filename}...", node.tws_id)
    _start_child(system, node, filename)


@_advance
def sys_exec(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Start the named program and stop the caller."""
    filename = clean_string_arg(inst.reg1)
    system.log(f"Syscall (exec): Chain loading {filename}...", node.tws_id)
    _start_child(system, node, filename)
    node.active = False


@_advance
def sys_kill(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Stop every node running the program named by the operand."""
    filename = clean_string_arg(inst.reg1)
    system.log(f"Syscall (kill): Stopping {filename}...", node.tws_id)
    _stop_all(system, filename)


@_advance
def sys_exit(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Stop the calling node."""
    system.log("Syscall (exit): Terminating.", node.tws_id)
    node.active = False


def sys_shutdown(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Ask the whole system to stop; the caller does not advance."""
    system.log("Syscall: Shutdown requested.", node.tws_id)
    system.running = False


@_advance
def sys_sleep(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Put the node to sleep for the operand's number of milliseconds."""
    node.wake_time = system.clock() + _atoi(inst.reg1)


@_advance
def sys_spawn_from_buffer(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Start the program named in the input buffer."""
    filename = node.input_buffer
    system.log(f"Syscall (spawn): Starting {filename}...", node.tws_id)
    _start_child(system, node, filename)


@_advance
def sys_kill_from_buffer(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Stop every node running the program named in the input buffer."""
    filename = node.input_buffer
    system.log(f"Syscall (kill): Stopping {filename}...")
    _stop_all(system, filename)


@_advance
def sys_parse_command(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Classify the buffer's command word into the register and cut off its prefix."""
    reg = reg_index(inst.reg1)
    if reg is None:
        return
    for prefix, code, strip in _COMMANDS:
        if node.input_buffer.startswith(prefix):
            if strip:
                node.input_buffer = node.input_buffer[len(prefix):]
            node.registers[reg] = code
            return
    node.registers[reg] = CMD_NONE


_HANDLERS: dict[ProcessSyscall, Handler] = {
    ProcessSyscall.SPAWN: sys_spawn,
    ProcessSyscall.EXEC: sys_exec,
    ProcessSyscall.KILL: sys_kill,
    ProcessSyscall.EXIT: sys_exit,
    ProcessSyscall.SHUTDOWN: sys_shutdown,
    ProcessSyscall.SLEEP: sys_sleep,
    ProcessSyscall.SPAWN_FROM_BUFFER: sys_spawn_from_buffer,
    ProcessSyscall.KILL_FROM_BUFFER: sys_kill_from_buffer,
    ProcessSyscall.PARSE_COMMAND: sys_parse_command,
}


def dispatch_process(system: NodeSystem, node: Node, inst: Instruction) -> bool:
    """Run a process syscall; return False when the id is not a process syscall."""
    try:
        handler = _HANDLERS[ProcessSyscall(inst.syscall_id)]
    except ValueError:
        return False
    handler(system, node, inst)
    return True