import io

import pytest

from pufu.virtual_bus import VirtualBus


@pytest.fixture
def out():
    return io.StringIO()


def test_init_announces(out):
    VirtualBus(out=out)
    assert out.getvalue() == "VirtualBus (IPC) Initialized.\n"


def test_send_reports_signal(out):
    bus = VirtualBus(out=out)
    bus.send(0x1100, b"abc")
    assert out.getvalue().endswith("VirtualBus: Signal Received [ID: 0x1100, Size: 3]\n")


def test_send_is_synchronous(out):
    bus = VirtualBus(out=out)
    bus.send(1)
    assert bus.queue_size == 0
    assert bus.process() == 0


def test_send_without_payload(out):
    bus = VirtualBus(out=out)
    bus.send(0xFFFF)
    assert "[ID: 0xFFFF, Size: 0]" in out.getvalue()


@pytest.mark.parametrize("signal_id", [-1, 0x10000])
def test_send_rejects_bad_id(out, signal_id):
    bus = VirtualBus(out=out)
    with pytest.raises(ValueError):
        bus.send(signal_id)


def test_send_rejects_oversized_payload(out):
    bus = VirtualBus(out=out)
    with pytest.raises(ValueError):
        bus.send(1, bytes(0x10000))
    assert "Signal Received" not in out.getvalue()