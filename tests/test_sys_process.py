import io

import pytest

from pufu.node import Instruction, NodeSystem
from pufu.sys_process import (
    ProcessSyscall,
    dispatch_process,
    sys_exec,
    sys_exit,
    sys_kill,
    sys_kill_from_buffer,
    sys_parse_command,
    sys_shutdown,
    sys_sleep,
    sys_spawn,
    sys_spawn_from_buffer,
)


def _loader(filename):
    if filename == "missing.pufu":
        raise OSError("no such file")
    return [Instruction(opcode="nop")]


@pytest.fixture
def system():
    return NodeSystem(program_loader=_loader, out=io.StringIO(), clock=lambda: 1000)


@pytest.fixture
def caller(system):
    node = system.load("shell.pufu")
    node.tws_id = 3
    return node


def test_spawn_starts_child_in_same_workspace(system, caller):
    sys_spawn(system, caller, Instruction(reg1='"app.pufu"'))
    child = system.find("app.pufu")
    assert child is not None
    assert child.tws_id == 3
    assert caller.ip == 1
    assert caller.active
    assert (3, "Syscall (spawn): Starting app.pufu...") in system.logs


def test_spawn_of_missing_program_only_advances(system, caller):
    sys_spawn(system, caller, Instruction(reg1="missing.pufu"))
    assert system.find("missing.pufu") is None
    assert caller.ip == 1


def test_exec_chains_and_stops_caller(system, caller):
    sys_exec(system, caller, Instruction(reg1='"next.pufu"'))
    assert system.find("next.pufu").tws_id == 3
    assert caller.active is False
    assert caller.ip == 1
    assert (3, "Syscall (exec): Chain loading next.pufu...") in system.logs


def test_kill_stops_every_matching_node(system, caller):
    a = system.load("app.pufu")
    b = system.load("app.pufu")
    other = system.load("other.pufu")
    sys_kill(system, caller, Instruction(reg1='"app.pufu"'))
    assert [a.active, b.active, other.active] == [False, False, True]
    assert caller.ip == 1


def test_exit_deactivates_caller(system, caller):
    sys_exit(system, caller, Instruction())
    assert caller.active is False
    assert caller.ip == 1
    assert system.logs[-1] == (3, "Syscall (exit): Terminating.")


def test_shutdown_stops_system_without_advancing(system, caller):
    sys_shutdown(system, caller, Instruction())
    assert system.running is False
    assert caller.ip == 0


def test_sleep_sets_wake_time_from_clock(system, caller):
    sys_sleep(system, caller, Instruction(reg1="250"))
    assert caller.wake_time == system.clock() + 250
    assert caller.ip == 1


def test_sleep_with_non_numeric_operand_wakes_now(system, caller):
    sys_sleep(system, caller, Instruction(reg1="soon"))
    assert caller.wake_time == system.clock()


def test_spawn_from_buffer(system, caller):
    caller.input_buffer = "app.pufu"
    sys_spawn_from_buffer(system, caller, Instruction())
    assert system.find("app.pufu").tws_id == caller.tws_id
    assert caller.ip == 1


def test_kill_from_buffer(system, caller):
    target = system.load("app.pufu")
    caller.input_buffer = "app.pufu"
    sys_kill_from_buffer(system, caller, Instruction())
    assert target.active is False
    assert system.logs[-1] == (0, "Syscall (kill): Stopping app.pufu...")


@pytest.mark.parametrize(
    "buffer, code, rest",
    [
        ("init app.pufu", 1, "app.pufu"),
        ("stop app.pufu", 2, "app.pufu"),
        ("command ls", 3, "ls"),
        ("shutdown now", 4, "shutdown now"),
        ("tws 2", 4, "tws 2"),
        ("hello", 0, "hello"),
    ],
)
def test_parse_command(system, caller, buffer, code, rest):
    caller.input_buffer = buffer
    sys_parse_command(system, caller, Instruction(reg1="r2"))
    assert caller.registers[2] == code
    assert caller.input_buffer == rest
    assert caller.ip == 1


def test_parse_command_without_register_leaves_buffer(system, caller):
    caller.input_buffer = "init app.pufu"
    sys_parse_command(system, caller, Instruction(reg1="r9"))
    assert caller.input_buffer == "init app.pufu"
    assert caller.registers == [0] * len(caller.registers)
    assert caller.ip == 1


def test_dispatch_runs_known_syscall(system, caller):
    handled = dispatch_process(system, caller, Instruction(syscall_id=ProcessSyscall.EXIT))
    assert handled is True
    assert caller.active is False


def test_dispatch_rejects_unknown_id(system, caller):
    assert dispatch_process(system, caller, Instruction(syscall_id=9999)) is False
    assert caller.ip == 0