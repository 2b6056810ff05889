import io
import re

import pytest

from pufu.sockets import (
    API_VERSION,
    WELCOME_MESSAGES,
    ArmSocket,
    NetSocket,
    SocketExit,
)


@pytest.fixture
def out():
    return io.StringIO()


def test_write_string(out):
    arm = ArmSocket(out=out)
    arm.execute('syscall (write) "hello world"')
    assert out.getvalue() == "hello world\n"


def test_write_predefined_message(out):
    arm = ArmSocket(out=out)
    arm.execute("syscall (write) num=17")
    assert out.getvalue() == "Pardum Felidum Operating System\n"
    assert WELCOME_MESSAGES[17] == "Pardum Felidum Operating System"


def test_write_message_out_of_range(out):
    arm = ArmSocket(out=out)
    with pytest.raises(ValueError):
        arm.execute("syscall (write)")
    with pytest.raises(ValueError):
        arm.execute(f"syscall (write) num={len(WELCOME_MESSAGES)}")


def test_arithmetic_mul(out):
    ArmSocket(out=out).execute("mul 6 7")
    assert out.getvalue() == "Paw MUL: 6 * 7 = 42\n"


def test_arithmetic_div_truncates(out):
    ArmSocket(out=out).execute("div -7 2")
    assert out.getvalue() == "Paw DIV: -7 / 2 = -3\n"


def test_division_by_zero(out):
    arm = ArmSocket(out=out)
    with pytest.raises(ZeroDivisionError):
        arm.execute("div 4 0")
    assert "Division by zero" in out.getvalue()


def test_unknown_op_is_ignored(out):
    ArmSocket(out=out).execute("nop 1 2")
    assert out.getvalue() == ""


def test_unknown_syscall(out):
    with pytest.raises(ValueError):
        ArmSocket(out=out).execute("syscall (nope)")


def test_exit_raises(out):
    with pytest.raises(SocketExit) as info:
        ArmSocket(out=out).execute("syscall (exit)")
    assert info.value.code == 0


def test_exit_if_key_matches(out):
    arm = ArmSocket(key_source=lambda: ord("x"), out=out)
    with pytest.raises(SocketExit):
        arm.execute('syscall (exit_if_key) "x"')
    assert "Exiting..." in out.getvalue()


def test_exit_if_key_other_key(out):
    arm = ArmSocket(key_source=lambda: ord("a"), out=out)
    arm.execute('syscall (exit_if_key) "x"')
    assert out.getvalue() == ""


def test_exit_if_key_default_target(out):
    arm = ArmSocket(key_source=lambda: ord("q"), out=out)
    with pytest.raises(SocketExit):
        arm.handle_syscall("(exit_if_key)", None, -1)


def test_stats_line(out):
    ArmSocket(out=out).execute("syscall (stats)")
    match = re.match(
        r"\r\[CPU: +(\d+)%\] \[RAM: +(\d+) MB\] \[NODES: (\d+)\]", out.getvalue()
    )
    assert match is not None
    cpu, ram, nodes = (int(group) for group in match.groups())
    assert 5 <= cpu < 25
    assert 128 <= ram < 144
    assert nodes == 1


def test_sleep_zero(out):
    ArmSocket(out=out).execute('syscall (sleep) "0"')
    assert out.getvalue() == ""


def test_load_file(tmp_path, out):
    path = tmp_path / "demo.pufu"
    path.write_text("line one\nline two\n", encoding="utf-8")
    ArmSocket(out=out).execute(f'syscall (load_file) "{path}"')
    assert out.getvalue().endswith("line one\nline two\n")


def test_load_missing_file(tmp_path, out):
    with pytest.raises(OSError):
        ArmSocket(out=out).load_file(str(tmp_path / "missing.pufu"))
    assert "could not open" in out.getvalue()


def test_alu(out):
    arm = ArmSocket(out=out)
    assert arm.alu_add(2, 3) == arm.alu_sub(10, 5)
    assert arm.alu_div(5, 0) == 0
    assert arm.alu_div(-9, 4) == -(9 // 4)
    assert [arm.alu_cmp(1, 2), arm.alu_cmp(2, 2), arm.alu_cmp(3, 2)] == [-1, 0, 1]


def test_arch_info():
    assert ArmSocket().arch_name == "ARM"
    assert NetSocket().arch_name == "ARM Cortex-A72 (Networked)"
    assert ArmSocket().api_version == NetSocket().api_version == API_VERSION


def test_state_round_trip_between_versions(out):
    arm = ArmSocket(out=out)
    for _ in range(3):
        arm.syscall(1)
    state = arm.save_state()
    net = NetSocket(out=out)
    net.restore_state(state)
    assert net.save_state() == state


def test_net_counter_starts_below_arm(out):
    arm, net = ArmSocket(out=out), NetSocket(out=out)
    net.syscall(1)
    assert net.save_state() == arm.save_state()


def test_restore_short_state(out):
    with pytest.raises(ValueError):
        ArmSocket(out=out).restore_state(b"\x01")
    with pytest.raises(ValueError):
        NetSocket(out=out).restore_state(b"")


def test_net_alu_reports(out):
    net = NetSocket(out=out)
    assert net.alu_add(2, 3) == 5
    assert "[NET-V2] Cloud Add: 2 + 3" in out.getvalue()
    assert net.alu_div(1, 0) == 0
    assert net.alu_cmp(4, 4) == 0