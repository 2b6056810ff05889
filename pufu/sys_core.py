"""Core console, string and update syscalls."""

from __future__ import annotations

import functools
import logging
from enum import IntEnum
from typing import Callable

from .loader import LoaderError, download
from .node import MAX_INPUT, Instruction, Node, NodeSystem, clean_string_arg, reg_index

log = logging.getLogger(__name__)

VERSION = "0.5.2 (Peking Duck)"

ENTER_KEYS = (10, 13)
BACKSPACE = 127

Handler = Callable[[NodeSystem, Node, Instruction], None]


class CoreSyscall(IntEnum):
    WRITE = 1
    READ_CHAR = 2
    CONSOLE_INPUT = 3
    PRINT_CHAR = 4
    CLEAR_BUFFER = 5
    SET_BUFFER = 6
    LOG_BUFFER = 7
    STRING_CMP = 8
    CONSOLE_CLEAR = 9
    SET_PROMPT = 10
    CAT = 11
    CONFIG_GET = 12
    PREPEND_STRING = 13
    APPEND_STRING = 14
    ITOA = 15
    GET_VERSION = 16
    SYSTEM_UPDATE = 17
    DOWNLOAD_UPDATE = 18


def _advance(fn: Handler) -> Handler:
    """Move the node to its next instruction once the syscall has run."""
    @functools.wraps(fn)
    def wrapper(system: NodeSystem, node: Node, inst: Instruction) -> None:
        fn(system, node, inst)
        node.ip += 1
    return wrapper


@_advance
def sys_write(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Log the operand string to the node's workspace."""
    system.log(clean_string_arg(inst.reg1), node.tws_id)


@_advance
def sys_read_char(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Store the pending key (or 0) in the named register."""
    reg = reg_index(inst.reg1)
    if reg is not None:
        ch = system.read_key()
        node.registers[reg] = ch if ch > 0 else 0


@_advance
def sys_console_input(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Line editing: the register becomes 1 once Enter completes the line."""
    reg = reg_index(inst.reg1) if inst.reg1 else 0
    done = 0
    ch = system.read_key()
    if ch in ENTER_KEYS:
        system.write("\r\n")
        system.terminal_buffer = ""
        done = 1
    elif ch == BACKSPACE:
        if node.input_buffer:
            node.input_buffer = node.input_buffer[:-1]
            system.write("\b \b")
            system.terminal_buffer = node.input_buffer
    elif ch > 0 and len(node.input_buffer) < MAX_INPUT:
        char = chr(ch)
        node.input_buffer += char
        system.write(char)
        system.terminal_buffer = node.input_buffer
    if reg is not None:
        node.registers[reg] = done


@_advance
def sys_print_char(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Write the operand's value as one character."""
    system.write(chr(node.value_of(inst.reg1) & 0xFF))


@_advance
def sys_clear_buffer(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Empty the node's input buffer."""
    node.input_buffer = ""


@_advance
def sys_set_buffer(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Replace the input buffer with the operand string."""
    node.input_buffer = clean_string_arg(inst.reg1)[:MAX_INPUT]


@_advance
def sys_log_buffer(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Log the input buffer to the node's workspace."""
    system.log(node.input_buffer, node.tws_id)


@_advance
def sys_string_cmp(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Cut the buffer at its first line break and set r0 to 1 if it equals the operand."""
    target = clean_string_arg(inst.reg1)
    node.input_buffer = node.input_buffer.split("\n", 1)[0].split("\r", 1)[0]
    node.registers[0] = 1 if node.input_buffer == target else 0


@_advance
def sys_console_clear(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Clear the console."""
    system.clear_screen()


@_advance
def sys_set_prompt(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Set the console prompt."""
    system.prompt = clean_string_arg(inst.reg1)


@_advance
def sys_cat(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Log every line of the named file."""
    filename = clean_string_arg(inst.reg1)
    try:
        with open(filename, encoding="utf-8", errors="replace") as handle:
            for line in handle:
                system.log(line.split("\n", 1)[0])
    except OSError:
        system.log(f"Error: Could not open file {filename}")


@_advance
def sys_config_get(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Load the value for ``key: value`` from the config file into the buffer."""
    key = clean_string_arg(inst.reg1)
    node.input_buffer = ""
    try:
        with open(system.config_path, encoding="utf-8", errors="replace") as handle:
            for line in handle:
                name, sep, value = line.partition(":")
                if not sep or name.lstrip(" ") != key:
                    continue
                value = value.lstrip(" ").split("\n", 1)[0].split("\r", 1)[0]
                node.input_buffer = value[:MAX_INPUT]
                break
    except OSError:
        log.debug("Failed to open %s", system.config_path)


@_advance
def sys_prepend_string(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Put the operand string in front of the buffer."""
    node.input_buffer = (clean_string_arg(inst.reg1) + node.input_buffer)[:MAX_INPUT]


@_advance
def sys_append_string(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Add the operand string after the buffer."""
    node.input_buffer = (node.input_buffer + clean_string_arg(inst.reg1))[:MAX_INPUT]


@_advance
def sys_itoa(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Write r1 as decimal text into the buffer."""
    node.input_buffer = str(node.registers[1])[:MAX_INPUT - 1]


@_advance
def sys_get_version(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Notify the current socket and put the system version in the buffer."""
    socket = system.socket_loader.current() if system.socket_loader else None
    if socket is not None:
        socket.syscall(CoreSyscall.GET_VERSION, None)
    node.input_buffer = VERSION


@_advance
def sys_system_update(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Hot-swap the socket named by the operand; r0 is 1 on success, 0 on failure."""
    path = clean_string_arg(inst.reg1)
    log.info("Requesting system update -> %s", path)
    if system.socket_loader is None:
        node.registers[0] = 0
        return
    try:
        system.socket_loader.reload(path)
    except LoaderError:
        node.registers[0] = 0
    else:
        node.registers[0] = 1


@_advance
def sys_download_update(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Download the operand URL to the update path; r0 is 1 on success, 0 on failure."""
    url = clean_string_arg(inst.reg1)
    try:
        download(url, system.update_path)
    except (LoaderError, OSError):
        node.registers[0] = 0
    else:
        node.registers[0] = 1


_HANDLERS: dict[CoreSyscall, Handler] = {
    CoreSyscall.WRITE: sys_write,
    CoreSyscall.READ_CHAR: sys_read_char,
    CoreSyscall.CONSOLE_INPUT: sys_console_input,
    CoreSyscall.PRINT_CHAR: sys_print_char,
    CoreSyscall.CLEAR_BUFFER: sys_clear_buffer,
    CoreSyscall.SET_BUFFER: sys_set_buffer,
    CoreSyscall.LOG_BUFFER: sys_log_buffer,
    CoreSyscall.STRING_CMP: sys_string_cmp,
    CoreSyscall.CONSOLE_CLEAR: sys_console_clear,
    CoreSyscall.SET_PROMPT: sys_set_prompt,
    CoreSyscall.CAT: sys_cat,
    CoreSyscall.CONFIG_GET: sys_config_get,
    CoreSyscall.PREPEND_STRING: sys_prepend_string,
    CoreSyscall.APPEND_STRING: sys_append_string,
    CoreSyscall.ITOA: sys_itoa,
    CoreSyscall.GET_VERSION: sys_get_version,
    CoreSyscall.SYSTEM_UPDATE: sys_system_update,
    CoreSyscall.DOWNLOAD_UPDATE: sys_download_update,
}


def dispatch_core(system: NodeSystem, node: Node, inst: Instruction) -> bool:
    """Run a core syscall; return False when the id is not a core syscall."""
    try:
        handler = _HANDLERS[CoreSyscall(inst.syscall_id)]
    except ValueError:
        return False
    handler(system, node, inst)
    return True