import socket

import pytest

from e1line.defs import TS0_RX_ALARM, TS0_RX_CRC4_ERR, DaemonEvent, LineMode, TsMode
from e1line.model import SUPERCHAN_TS_ID, Daemon, DuplicateError


@pytest.fixture
def line():
    daemon = Daemon()
    intf = daemon.new_intf()
    return intf.new_line()


def test_auto_interface_ids_follow_last():
    daemon = Daemon()
    a = daemon.new_intf()
    b = daemon.new_intf()
    c = daemon.new_intf(7)
    d = daemon.new_intf()
    assert [a.id, b.id, c.id, d.id] == [0, 1, 7, 8]
    assert daemon.find_intf(7) is c
    assert daemon.find_intf(3) is None


def test_duplicate_interface_rejected():
    daemon = Daemon()
    daemon.new_intf(2)
    with pytest.raises(DuplicateError):
        daemon.new_intf(2)
    assert len(daemon.interfaces) == 1


def test_find_by_serial_and_trunkdev_name():
    daemon = Daemon()
    a = daemon.new_intf()
    b = daemon.new_intf()
    a.usb_serial = "serial-a"
    b.trunkdev_name = "trunk-b"
    assert daemon.find_intf_by_usb_serial("serial-a") is a
    assert daemon.find_intf_by_usb_serial("other") is None
    assert daemon.find_intf_by_usb_serial(None) is None
    assert daemon.find_intf_by_trunkdev_name("trunk-b") is b
    assert daemon.find_intf_by_trunkdev_name(None) is None


def test_lines_auto_ids_and_duplicates():
    intf = Daemon().new_intf()
    first = intf.new_line()
    second = intf.new_line()
    assert (first.id, second.id) == (0, 1)
    with pytest.raises(DuplicateError):
        intf.new_line(1)
    assert intf.find_line(1) is second
    assert intf.find_line(5) is None


def test_line_defaults(line):
    assert line.mode == LineMode.CHANNELIZED
    assert line.tx_frame == 0xFF
    assert line.rx_frame == 0xFF
    assert line.name == "I0:L0"
    assert all(ts.fd_free if False else ts.sock is None for ts in line.ts)


def test_get_ts(line):
    assert line.get_ts(0) is None
    assert line.get_ts(1) is line.ts[1]
    assert line.get_ts(31) is line.ts[31]
    assert line.get_ts(32) is None
    assert line.get_ts(SUPERCHAN_TS_ID) is line.superchan


def test_raw_start_passes_data(line):
    ts = line.ts[3]
    peer = ts.start(TsMode.RAW, 40)
    try:
        assert ts.mode == TsMode.RAW
        assert ts.raw_rx_buf_size == 40
        peer.sendall(b"abc")
        assert ts.sock.recv(16) == b"abc"
        ts.sock.send(b"xyz")
        assert peer.recv(16) == b"xyz"
    finally:
        peer.close()
        ts.stop()


def test_hdlc_start_is_packet_socket(line):
    ts = line.ts[4]
    peer = ts.start(TsMode.HDLCFCS, 10)
    try:
        assert ts.sock.type == socket.SOCK_SEQPACKET
        peer.send(b"one")
        peer.send(b"two")
        assert ts.sock.recv(64) == b"one"
        assert ts.sock.recv(64) == b"two"
    finally:
        peer.close()
        ts.stop()


def test_start_rejects_off_mode_and_reopen(line):
    ts = line.ts[5]
    with pytest.raises(ValueError):
        ts.start(TsMode.OFF, 10)
    assert ts.sock is None
    peer = ts.start(TsMode.RAW, 10)
    with pytest.raises(RuntimeError):
        ts.start(TsMode.RAW, 10)
    peer.close()
    ts.stop()


def test_stop_closes_and_resets(line):
    ts = line.ts[6]
    peer = ts.start(TsMode.RAW, 16)
    ts.raw_tx_started = True
    ts.raw_rx_buf.extend(b"\x01\x02")
    ts.stop()
    assert ts.mode == TsMode.OFF
    assert ts.sock is None
    assert ts.raw_rx_buf_size == 0
    assert ts.raw_rx_buf == bytearray()
    assert ts.raw_tx_started is False
    assert peer.recv(16) == b""
    peer.close()


def test_ts0_tick_clears_crc_but_keeps_alarm(line):
    line.cur_errmask = TS0_RX_CRC4_ERR | TS0_RX_ALARM
    line.ts0_tick()
    assert line.prev_errmask == TS0_RX_CRC4_ERR | TS0_RX_ALARM
    assert line.cur_errmask == TS0_RX_ALARM
    line.ts0_tick()
    assert line.prev_errmask == TS0_RX_ALARM


def test_watchdog_tick(line):
    line.watchdog_rx_bytes = 262144
    assert line.watchdog_tick() is True
    assert line.watchdog_rx_bytes == 0
    line.watchdog_rx_bytes = 100
    assert line.watchdog_tick() is False
    assert line.watchdog_tick() is False


def test_line_destroy_stops_timeslots(line):
    intf = line.intf
    peer = line.ts[2].start(TsMode.RAW, 8)
    line.destroy()
    assert intf.find_line(0) is None
    assert line.ts[2].sock is None
    assert peer.recv(8) == b""
    peer.close()


def test_interface_destroy_removes_lines():
    daemon = Daemon()
    intf = daemon.new_intf()
    intf.new_line()
    intf.new_line()
    intf.destroy()
    assert intf.lines == []
    assert daemon.find_intf(0) is None


def test_emit_reaches_listeners():
    daemon = Daemon()
    seen = []
    daemon.listeners.append(lambda *args: seen.append(args))
    daemon.emit(DaemonEvent.SABITS, 1, 2, 0, b"\x10")
    assert seen == [(DaemonEvent.SABITS, 1, 2, 0, b"\x10")]


def test_activate_e1oip_attaches_peer():
    peer = object()
    daemon = Daemon(peer_provider=lambda line: peer)
    line = daemon.new_intf().new_line()
    line.mode = LineMode.E1OIP
    line.activate()
    assert line.active is True
    assert line.octoi_peer is peer
    with pytest.raises(RuntimeError):
        line.activate()


def test_activate_channelized_ignores_provider():
    daemon = Daemon(peer_provider=lambda line: object())
    line = daemon.new_intf().new_line()
    line.activate()
    assert line.active is True
    assert line.octoi_peer is None