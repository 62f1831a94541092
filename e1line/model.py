"""Interfaces, lines and timeslots managed by the E1 daemon."""

import logging
import socket
from collections.abc import Callable
from typing import Any, Optional

from .defs import (
    NOTICE,
    TS0_RX_ALARM,
    TS0_RX_CRC4_ERR,
    DaemonEvent,
    Driver,
    FramingMode,
    LineCounter,
    LineMode,
    LineStat,
    LogCategory,
    TsMode,
    get_logger,
    intf_prefix,
    line_prefix,
    ts_prefix,
)
from .hdlc import HdlcDecoder, HdlcEncoder

NUM_TIMESLOTS = 32
SUPERCHAN_TS_ID = 0xFE
HDLC_MAX_SIZE = 264
WATCHDOG_MIN_BYTES = 240000

_log = get_logger(LogCategory.DE1D)

EventListener = Callable[[DaemonEvent, int, int, int, bytes], Any]
PeerProvider = Callable[["Line"], Any]


class DuplicateError(ValueError):
    """An interface or line with the requested number already exists."""


class Timeslot:
    """A 64 kbit/s timeslot (or the superchannel) of a line."""

    def __init__(self, line: "Line", ts_id: int):
        self.line = line
        self.id = ts_id
        self.mode = TsMode.OFF
        self.sock: Optional[socket.socket] = None
        self.hdlc_tx = HdlcEncoder(bitreverse=True)
        self.hdlc_rx = HdlcDecoder(bitreverse=True, max_size=HDLC_MAX_SIZE)
        self.raw_rx_buf = bytearray()
        self.raw_rx_buf_size = 0
        self.raw_tx_started = False

    @property
    def is_open(self) -> bool:
        """Whether a client socket is attached."""
        return self.sock is not None

    @property
    def prefix(self) -> str:
        return ts_prefix(self.line.intf.id, self.line.id, self.id)

    def _log(self, level: int, msg: str, *args: Any) -> None:
        _log.log(level, "%s " + msg, self.prefix, *args)

    def start(self, mode: TsMode, bufsize: int) -> socket.socket:
        """Open the timeslot in ``mode``; return the client end of the socket pair."""
        mode = TsMode(mode)
        if self.is_open:
            raise RuntimeError(f"{self.prefix} timeslot is already open")
        self._log(logging.INFO, "Starting in mode %s", mode.name)

        if mode == TsMode.HDLCFCS:
            sock_type = socket.SOCK_SEQPACKET
        elif mode == TsMode.RAW:
            if bufsize < 1:
                raise ValueError(f"invalid buffer size {bufsize}")
            sock_type = socket.SOCK_STREAM
            self.raw_rx_buf = bytearray()
            self.raw_rx_buf_size = bufsize
        else:
            raise ValueError(f"cannot start a timeslot in mode {mode.name}")

        ours, theirs = socket.socketpair(socket.AF_UNIX, sock_type)
        try:
            ours.setblocking(False)
        except OSError:
            ours.close()
            theirs.close()
            self.mode = TsMode.OFF
            raise

        self.sock = ours
        self.mode = mode
        if mode == TsMode.HDLCFCS:
            self.hdlc_tx = HdlcEncoder(bitreverse=True)
            self.hdlc_rx = HdlcDecoder(bitreverse=True, max_size=HDLC_MAX_SIZE)
        return theirs

    def stop(self) -> None:
        """Close the client socket and drop buffered data."""
        self._log(logging.INFO, "Stopping")
        self.mode = TsMode.OFF
        if self.sock is not None:
            self.sock.close()
            self.sock = None
        self.raw_rx_buf = bytearray()
        self.raw_rx_buf_size = 0
        self.raw_tx_started = False


class Line:
    """One E1 line of an interface."""

    def __init__(self, intf: "Interface", line_id: int, drv_data: Any = None):
        self.intf = intf
        self.id = line_id
        self.drv_data = drv_data
        self.mode = LineMode.CHANNELIZED
        self.counters = {counter: 0 for counter in LineCounter}
        self.stats = {stat: 0 for stat in LineStat}
        self.ts = [Timeslot(self, n) for n in range(NUM_TIMESLOTS)]
        self.superchan = Timeslot(self, SUPERCHAN_TS_ID)
        self.octoi_peer: Any = None
        self.e_bits = 0
        self.cur_errmask = 0
        self.prev_errmask = 0
        self.tx_frame = 0xFF
        self.rx_frame = 0xFF
        self.watchdog_rx_bytes = 0
        self.active = False
        self.framing_tx = FramingMode.CRC4
        self.framing_rx = FramingMode.CRC4
        self.e1gen_priv: Any = None

    @property
    def name(self) -> str:
        return f"I{self.intf.id}:L{self.id}"

    @property
    def prefix(self) -> str:
        return line_prefix(self.intf.id, self.id)

    def _log(self, level: int, msg: str, *args: Any) -> None:
        _log.log(level, "%s " + msg, self.prefix, *args)

    def get_ts(self, ts_id: int) -> Optional[Timeslot]:
        """Return timeslot 1..31 or the superchannel, or None for any other id."""
        if 0 < ts_id < NUM_TIMESLOTS:
            return self.ts[ts_id]
        if ts_id == SUPERCHAN_TS_ID:
            return self.superchan
        return None

    def activate(self) -> None:
        """Mark the line active; in E1oIP mode attach the peer of its client."""
        self._log(NOTICE, "Activated")
        self.active = True
        if self.mode != LineMode.E1OIP:
            return
        if self.octoi_peer is not None:
            raise RuntimeError(f"{self.prefix} line already has a peer")
        provider = self.intf.daemon.peer_provider
        if provider is None:
            return
        peer = provider(self)
        if peer is not None:
            self.octoi_peer = peer

    def ts0_tick(self) -> None:
        """Once-a-second update of the remote error/alarm state."""
        changed = self.cur_errmask ^ self.prev_errmask
        if changed & TS0_RX_CRC4_ERR:
            self._log(NOTICE, "Remote CRC4 Error report %s",
                      "STARTED" if self.cur_errmask & TS0_RX_CRC4_ERR else "CEASED")
        if changed & TS0_RX_ALARM:
            self._log(NOTICE, "Remote ALARM condition %s",
                      "STARTED" if self.cur_errmask & TS0_RX_ALARM else "CEASED")
        self.prev_errmask = self.cur_errmask
        self.cur_errmask &= ~TS0_RX_CRC4_ERR

    def watchdog_tick(self) -> bool:
        """Once-a-second check of received data; return whether the line looks alive."""
        alive = self.watchdog_rx_bytes >= WATCHDOG_MIN_BYTES
        if not alive:
            self._log(logging.ERROR,
                      "Received Only %u bytes/s (expected: 262144): Line dead?",
                      self.watchdog_rx_bytes)
        self.watchdog_rx_bytes = 0
        return alive

    def destroy(self) -> None:
        """Close all timeslots and remove the line from its interface."""
        self._log(NOTICE, "Destroying")
        self.active = False
        for ts in self.ts:
            ts.stop()
        if self in self.intf.lines:
            self.intf.lines.remove(self)


class Interface:
    """An E1 interface holding one or more lines."""

    def __init__(self, daemon: "Daemon", intf_id: int, drv_data: Any = None):
        self.daemon = daemon
        self.id = intf_id
        self.drv_data = drv_data
        self.usb_serial: Optional[str] = None
        self.gpsdo_manual = False
        self.gpsdo_coarse = 0
        self.gpsdo_fine = 0
        self.trunkdev_name: Optional[str] = None
        self.vty_created = False
        self.driver = Driver.USB
        self.lines: list[Line] = []

    @property
    def prefix(self) -> str:
        return intf_prefix(self.id)

    def find_line(self, line_id: int) -> Optional[Line]:
        """Return the line with number ``line_id``, if any."""
        return next((line for line in self.lines if line.id == line_id), None)

    def new_line(self, line_id: Optional[int] = None, drv_data: Any = None) -> Line:
        """Create a line; ``line_id`` None picks the number after the last line."""
        if line_id is not None:
            if self.find_line(line_id) is not None:
                raise DuplicateError(f"{self.prefix} cannot create duplicate line {line_id}")
        else:
            line_id = self.lines[-1].id + 1 if self.lines else 0
        line = Line(self, line_id, drv_data)
        self.lines.append(line)
        line._log(NOTICE, "Created")
        return line

    def destroy(self) -> None:
        """Destroy all lines and remove the interface from the daemon."""
        _log.log(NOTICE, "%s Destroying", self.prefix)
        for line in list(self.lines):
            line.destroy()
        if self in self.daemon.interfaces:
            self.daemon.interfaces.remove(self)


class Daemon:
    """Top-level registry of interfaces."""

    def __init__(self, peer_provider: Optional[PeerProvider] = None):
        self.interfaces: list[Interface] = []
        self.listeners: list[EventListener] = []
        self.peer_provider = peer_provider

    def find_intf(self, intf_id: int) -> Optional[Interface]:
        return next((i for i in self.interfaces if i.id == intf_id), None)

    def find_intf_by_usb_serial(self, serial: Optional[str]) -> Optional[Interface]:
        if not serial:
            return None
        return next((i for i in self.interfaces if i.usb_serial == serial), None)

    def find_intf_by_trunkdev_name(self, name: Optional[str]) -> Optional[Interface]:
        if not name:
            return None
        return next((i for i in self.interfaces if i.trunkdev_name == name), None)

    def new_intf(self, intf_id: Optional[int] = None, drv_data: Any = None) -> Interface:
        """Create an interface; ``intf_id`` None picks the number after the last one."""
        if intf_id is not None:
            if self.find_intf(intf_id) is not None:
                raise DuplicateError(f"cannot create duplicate interface {intf_id}")
        else:
            intf_id = self.interfaces[-1].id + 1 if self.interfaces else 0
        intf = Interface(self, intf_id, drv_data)
        self.interfaces.append(intf)
        _log.log(NOTICE, "%s Created", intf.prefix)
        return intf

    def emit(self, event: DaemonEvent, intf_id: int, line_id: int, ts_id: int,
             data: bytes = b"") -> None:
        """Report an event to every registered listener."""
        for listener in list(self.listeners):
            listener(event, intf_id, line_id, ts_id, bytes(data))