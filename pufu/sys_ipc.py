"""Inter-node messaging syscalls."""

from __future__ import annotations

import functools
from enum import IntEnum
from typing import Callable

from .node import (
    IPC_QUEUE_SIZE,
    MAX_CONTENT,
    MAX_INPUT,
    MAX_SENDER,
    MSG_BROADCAST,
    MSG_DIRECT,
    Instruction,
    IpcMessage,
    Node,
    NodeSystem,
    reg_index,
)

Handler = Callable[[NodeSystem, Node, Instruction], None]


class IpcSyscall(IntEnum):
    SEND = 40
    READ = 41
    BROADCAST = 42


def _advance(fn: Handler) -> Handler:
    """Move the node to its next instruction once the syscall has run."""
    @functools.wraps(fn)
    def wrapper(system: NodeSystem, node: Node, inst: Instruction) -> None:
        fn(system, node, inst)
        node.ip += 1
    return wrapper


def _deliver(target: Node, sender: Node, content: str, kind: int) -> bool:
    """Queue a message for ``target``; a full mailbox drops it."""
    if len(target.ipc_queue) >= IPC_QUEUE_SIZE:
        return False
    target.ipc_queue.append(
        IpcMessage(sender.filename[:MAX_SENDER], content[:MAX_CONTENT], kind))
    return True


@_advance
def sys_ipc_send(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Send ``target:message`` from the input buffer; the buffer keeps the target name."""
    target_name, sep, message = node.input_buffer.partition(":")
    if not sep:
        return
    node.input_buffer = target_name
    target = system.find(target_name)
    if target is not None:
        _deliver(target, node, message.lstrip(" "), MSG_DIRECT)


@_advance
def sys_ipc_read(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Move the oldest message into the buffer; the register is 1 if one was read."""
    reg = reg_index(inst.reg1)
    got = 0
    if node.ipc_queue:
        message = node.ipc_queue.popleft()
        node.input_buffer = message.content[:MAX_INPUT]
        got = 1
    if reg is not None:
        node.registers[reg] = got


@_advance
def sys_ipc_broadcast(system: NodeSystem, node: Node, inst: Instruction) -> None:
    """Send the input buffer to every other active node."""
    for target in system.nodes:
        if target is not node and target.active:
            _deliver(target, node, node.input_buffer, MSG_BROADCAST)


_HANDLERS: dict[IpcSyscall, Handler] = {
    IpcSyscall.SEND: sys_ipc_send,
    IpcSyscall.READ: sys_ipc_read,
    IpcSyscall.BROADCAST: sys_ipc_broadcast,
}


def dispatch_ipc(system: NodeSystem, node: Node, inst: Instruction) -> bool:
    """Run an IPC syscall; return False when the id is not an IPC syscall."""
    try:
        handler = _HANDLERS[IpcSyscall(inst.syscall_id)]
    except ValueError:
        return False
    handler(system, node, inst)
    return True