"""Multiplexing of timeslot data into E1 frames and back out of them."""

import logging
from typing import Optional, Protocol

from .defs import (
    NOTICE,
    TS0_RX_ALARM,
    TS0_RX_CRC4_ERR,
    DaemonEvent,
    LineCounter,
    LineMode,
    LogCategory,
    TsMode,
    get_logger,
)
from .hdlc import HdlcError
from .model import HDLC_MAX_SIZE, NUM_TIMESLOTS, Daemon, Line, Timeslot

_FRAME_SIZE = 32
_SC_BYTES = _FRAME_SIZE - 1
_RECV_LIMIT = 65536

_log = get_logger(LogCategory.DE1D)
_xfr_log = get_logger(LogCategory.DXFR)


class _Peer(Protocol):
    def e1o_in(self, data: bytes, frames: int) -> object: ...

    def e1t_out(self, frames: int) -> bytes: ...


class _SocketClosed(Exception):
    """The client end of a timeslot socket went away."""


def _require_mode(line: Line, mode: LineMode) -> None:
    if line.mode != mode:
        raise ValueError(f"{line.prefix} line is in mode {line.mode.name}, not {mode.name}")


# application -> line

def _tx_raw(ts: Timeslot, length: int) -> bytes:
    try:
        data = ts.sock.recv(length)
    except BlockingIOError:
        if not ts.raw_tx_started:
            # fake idle data until the client sends something
            return b"\xff" * length
        return b""
    ts.raw_tx_started = True
    if not data:
        raise _SocketClosed("end of stream")
    return data


def _tx_hdlc(ts: Timeslot, length: int) -> bytes:
    if ts.hdlc_tx.pending == 0:
        try:
            message = ts.sock.recv(_RECV_LIMIT)
        except BlockingIOError:
            message = None
        else:
            if not message:
                raise _SocketClosed("end of stream")
            if len(message) > HDLC_MAX_SIZE:
                _xfr_log.error(
                    "%s Truncated message: Client tried to send %d bytes but our "
                    "buffer is limited to %d", ts.prefix, len(message), HDLC_MAX_SIZE)
                message = message[:HDLC_MAX_SIZE]
            _xfr_log.debug("%s TX Message: %d [ %s]", ts.prefix, len(message), message.hex(" "))
            ts.hdlc_tx.push(message)
    return ts.hdlc_tx.pull(length)


def _ts_read(ts: Timeslot, length: int) -> bytes:
    """Read up to ``length`` octets a client wants sent on the timeslot."""
    if ts.mode == TsMode.RAW:
        reader = _tx_raw
    elif ts.mode == TsMode.HDLCFCS:
        reader = _tx_hdlc
    else:
        raise ValueError(f"{ts.prefix} timeslot is not open")
    try:
        data = reader(ts, length)
    except (_SocketClosed, OSError) as exc:
        _log.error("%s dead socket during read: %s", ts.prefix, exc)
        ts.stop()
        return b""
    if len(data) < length:
        _log.log(NOTICE, "%s TS read underflow: We had %d bytes to read, "
                 "but socket returned only %d", ts.prefix, length, len(data))
    return data


def _mux_channelized(line: Line, buf: bytearray, fts: int) -> None:
    _require_mode(line, LineMode.CHANNELIZED)
    buf[0::_FRAME_SIZE] = bytes([line.tx_frame]) * fts
    for tsn in range(1, NUM_TIMESLOTS):
        ts = line.ts[tsn]
        if ts.mode == TsMode.OFF:
            continue
        data = _ts_read(ts, fts)
        if data:
            buf[tsn:tsn + _FRAME_SIZE * len(data):_FRAME_SIZE] = data


def _mux_superchan(line: Line, buf: bytearray, fts: int) -> None:
    _require_mode(line, LineMode.SUPERCHANNEL)
    ts = line.superchan
    if ts.mode == TsMode.OFF:
        return
    data = _ts_read(ts, _SC_BYTES * fts)
    if not data:
        return
    data = data.ljust(_SC_BYTES * fts, b"\xff")
    for i in range(fts):
        start = i * _FRAME_SIZE + 1
        buf[start:start + _SC_BYTES] = data[i * _SC_BYTES:(i + 1) * _SC_BYTES]


def e1oip_mux_out(line: Line, fts: int) -> bytes:
    """Fetch ``fts`` frames for the line from its E1-over-IP peer."""
    _require_mode(line, LineMode.E1OIP)
    if line.octoi_peer is None:
        raise ConnectionError(f"{line.prefix} line has no E1oIP peer")
    return bytes(line.octoi_peer.e1t_out(fts))


def mux_out(line: Line, fts: int) -> bytes:
    """Generate ``fts`` multiplexed E1 frames (32 octets each) for the line."""
    if fts < 0:
        raise ValueError("number of frames must not be negative")
    size = _FRAME_SIZE * fts
    buf = bytearray(b"\xff" * size)

    if line.mode == LineMode.CHANNELIZED:
        _mux_channelized(line, buf, fts)
    elif line.mode == LineMode.SUPERCHANNEL:
        _mux_superchan(line, buf, fts)
    elif line.mode == LineMode.E1OIP:
        try:
            data = e1oip_mux_out(line, fts)
        except ConnectionError:
            pass
        else:
            buf[:len(data[:size])] = data[:size]
    else:
        raise ValueError(f"unknown line mode {line.mode!r}")

    line.counters[LineCounter.FRAMES_MUXED_E1T] += fts
    return bytes(buf)


# line -> application

def _rx_raw(ts: Timeslot, data: bytes) -> None:
    if ts.raw_rx_buf_size <= 0:
        raise ValueError(f"{ts.prefix} timeslot has no receive buffer")
    appended = 0
    while appended < len(data):
        room = ts.raw_rx_buf_size - len(ts.raw_rx_buf)
        chunk = data[appended:appended + room]
        ts.raw_rx_buf += chunk
        appended += len(chunk)
        if len(ts.raw_rx_buf) >= ts.raw_rx_buf_size:
            ts.sock.send(bytes(ts.raw_rx_buf))
            ts.raw_rx_buf.clear()


def _rx_hdlc(ts: Timeslot, data: bytes) -> None:
    for result in ts.hdlc_rx.feed(data):
        if isinstance(result, HdlcError):
            _xfr_log.debug("%s ERR RX: %s", ts.prefix, result)
            continue
        _xfr_log.debug("%s RX Message: %d [ %s]", ts.prefix, len(result), result.hex(" "))
        if ts.sock.send(result) <= 0:
            raise _SocketClosed("write returned nothing")


def _ts_write(ts: Timeslot, data: bytes) -> None:
    """Hand octets received on the line to the timeslot's client."""
    if ts.mode == TsMode.RAW:
        writer = _rx_raw
    elif ts.mode == TsMode.HDLCFCS:
        writer = _rx_hdlc
    else:
        raise ValueError(f"{ts.prefix} timeslot is not open")
    try:
        writer(ts, data)
    except BlockingIOError:
        _log.log(NOTICE, "%s TS write overflow: We had %d bytes to send, "
                 "but the socket would block", ts.prefix, len(data))
    except (_SocketClosed, OSError) as exc:
        _log.error("%s dead socket during write: %s", ts.prefix, exc)
        ts.stop()


def _demux_channelized(line: Line, data: bytes) -> None:
    _require_mode(line, LineMode.CHANNELIZED)
    for tsn in range(1, NUM_TIMESLOTS):
        ts = line.ts[tsn]
        if ts.mode == TsMode.OFF:
            continue
        _ts_write(ts, data[tsn::_FRAME_SIZE])


def _demux_superchan(line: Line, data: bytes, ftr: int) -> None:
    _require_mode(line, LineMode.SUPERCHANNEL)
    ts = line.superchan
    if ts.mode == TsMode.OFF:
        return
    payload = b"".join(
        data[i * _FRAME_SIZE + 1:(i + 1) * _FRAME_SIZE] for i in range(ftr)
    )
    _ts_write(ts, payload)


def _sa_bits(ts0: int) -> int:
    return (
        ((ts0 & 0x01) << 7)    # Sa8 -> bit 7
        | ((ts0 & 0x02) << 5)  # Sa7 -> bit 6
        | ((ts0 & 0x04) >> 2)  # Sa6 -> bit 0
        | ((ts0 & 0x08) << 2)  # Sa5 -> bit 5
        | (ts0 & 0x10)         # Sa4 -> bit 4
    )


def _demux_ts0(line: Line, data: bytes, ftr: int, frame_base: int) -> None:
    daemon = line.intf.daemon
    intf_id = line.intf.id
    for i in range(ftr):
        ts0 = data[i * _FRAME_SIZE]
        frame_nr = (frame_base + i) & 0xF

        if frame_nr % 2:
            # the A bit is present in each odd frame
            if ts0 & 0x20:
                if not line.cur_errmask & TS0_RX_ALARM:
                    line.cur_errmask |= TS0_RX_ALARM
                    line.counters[LineCounter.RX_REMOTE_A] += 1
                    daemon.emit(DaemonEvent.RAI_ON, intf_id, line.id, 0, b"")
            elif line.cur_errmask & TS0_RX_ALARM:
                line.cur_errmask &= ~TS0_RX_ALARM
                daemon.emit(DaemonEvent.RAI_OFF, intf_id, line.id, 0, b"")

            if line.rx_frame != ts0 | 0xE0:
                line.rx_frame = ts0 | 0xE0
                daemon.emit(DaemonEvent.SABITS, intf_id, line.id, 0, bytes([_sa_bits(ts0)]))

        # E bits are carried in frames 13 and 15
        if frame_nr == 13:
            line.e_bits = 2 if ts0 & 0x80 else 0
        if frame_nr == 15:
            line.e_bits |= 1 if ts0 & 0x80 else 0
            if line.e_bits != 3:
                line.cur_errmask |= TS0_RX_CRC4_ERR
                line.counters[LineCounter.RX_REMOTE_E] += 1


def e1oip_demux_in(line: Line, data: bytes) -> None:
    """Pass received frames of the line to its E1-over-IP peer."""
    _require_mode(line, LineMode.E1OIP)
    if line.octoi_peer is None:
        raise ConnectionError(f"{line.prefix} line has no E1oIP peer")
    line.octoi_peer.e1o_in(bytes(data), len(data) // _FRAME_SIZE)


def demux_in(line: Line, data: bytes, frame_base: Optional[int] = None) -> None:
    """Split frame-aligned E1 data into the line's timeslots.

    ``frame_base`` is the multiframe number of the first frame; None or a
    negative number skips the TS0 evaluation.
    """
    data = bytes(data)
    if not data:
        _xfr_log.error("%s IN ERROR: %d", line.prefix, len(data))
        raise ValueError("no data to demultiplex")
    if len(data) % _FRAME_SIZE:
        raise ValueError(f"data length {len(data)} is not a multiple of {_FRAME_SIZE}")

    line.watchdog_rx_bytes += len(data)
    ftr = len(data) // _FRAME_SIZE

    if frame_base is not None and frame_base >= 0:
        _demux_ts0(line, data, ftr, frame_base)

    line.counters[LineCounter.FRAMES_DEMUXED_E1O] += ftr

    if line.mode == LineMode.CHANNELIZED:
        _demux_channelized(line, data)
    elif line.mode == LineMode.SUPERCHANNEL:
        _demux_superchan(line, data, ftr)
    elif line.mode == LineMode.E1OIP:
        e1oip_demux_in(line, data)
    else:
        raise ValueError(f"unknown line mode {line.mode!r}")


def peer_disconnected(daemon: Daemon, peer: object) -> Optional[Line]:
    """Forget ``peer`` on the line that uses it; return that line, if any."""
    for intf in daemon.interfaces:
        for line in intf.lines:
            if line.octoi_peer is peer:
                _log.log(NOTICE, "%s Peer disconnected", line.prefix)
                line.octoi_peer = None
                return line
    return None