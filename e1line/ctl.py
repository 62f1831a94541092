"""Control requests of the E1 daemon: queries, line configuration and timeslot opening."""

import logging
import socket
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from .defs import NOTICE, LineMode, LogCategory, TsMode, get_logger, intf_prefix
from .model import NUM_TIMESLOTS, Daemon, Interface, Line, Timeslot

OPEN_STATUS = 0xA5

_log = get_logger(LogCategory.DE1D)


class ProtoLineMode(IntEnum):
    """Line modes as seen by control clients."""

    CHANNELIZED = 0
    SUPERCHANNEL = 1
    E1OIP = 2


class ProtoTsMode(IntEnum):
    """Timeslot modes as seen by control clients."""

    OFF = 0
    RAW = 1
    HDLCFCS = 2


_LINE_MODE_TO_PROTO = {
    LineMode.CHANNELIZED: ProtoLineMode.CHANNELIZED,
    LineMode.SUPERCHANNEL: ProtoLineMode.SUPERCHANNEL,
    LineMode.E1OIP: ProtoLineMode.E1OIP,
}

_CONFIGURABLE_LINE_MODES = {
    ProtoLineMode.CHANNELIZED: LineMode.CHANNELIZED,
    ProtoLineMode.SUPERCHANNEL: LineMode.SUPERCHANNEL,
}

_TS_MODE_TO_PROTO = {
    TsMode.RAW: ProtoTsMode.RAW,
    TsMode.HDLCFCS: ProtoTsMode.HDLCFCS,
    TsMode.OFF: ProtoTsMode.OFF,
}

_OPENABLE_TS_MODES = {
    ProtoTsMode.RAW: TsMode.RAW,
    ProtoTsMode.HDLCFCS: TsMode.HDLCFCS,
}


@dataclass(frozen=True)
class IntfInfo:
    """Summary of one interface."""

    id: int
    n_lines: int


@dataclass(frozen=True)
class LineInfo:
    """Summary of one line."""

    id: int
    mode: ProtoLineMode
    status: int = 0


@dataclass(frozen=True)
class TsInfo:
    """Summary of one timeslot."""

    id: int
    mode: ProtoTsMode
    status: int = 0


def _intf_info(intf: Interface) -> IntfInfo:
    return IntfInfo(id=intf.id, n_lines=len(intf.lines))


def _line_info(line: Line) -> LineInfo:
    return LineInfo(id=line.id, mode=_LINE_MODE_TO_PROTO[LineMode(line.mode)], status=0)


def _ts_info(ts: Timeslot) -> TsInfo:
    mode = _TS_MODE_TO_PROTO.get(ts.mode)
    if mode is None:
        _log.log(NOTICE, "%s TS in unknown mode %r", ts.prefix, ts.mode)
        mode = ProtoTsMode.OFF
    return TsInfo(id=ts.id, mode=mode, status=0)


def _proto_enum(enum_type, value):
    try:
        return enum_type(value)
    except ValueError:
        return None


class ControlHandler:
    """Answers control requests against a daemon's interfaces and lines."""

    def __init__(self, daemon: Daemon):
        self.daemon = daemon

    def _line(self, intf: int, line: int) -> Optional[Line]:
        found = self.daemon.find_intf(intf)
        if found is None:
            _log.log(NOTICE, "Client request for non-existent Interface %s", intf)
            return None
        result = found.find_line(line)
        if result is None:
            _log.log(NOTICE, "%s Client request for non-existent line %s",
                     intf_prefix(found.id), line)
        return result

    def query_interfaces(self, intf: Optional[int] = None) -> list[IntfInfo]:
        """Describe interface ``intf``, or every interface when it is None."""
        if intf is not None:
            found = self.daemon.find_intf(intf)
            return [_intf_info(found)] if found is not None else []
        return [_intf_info(i) for i in self.daemon.interfaces]

    def query_lines(self, intf: int, line: Optional[int] = None) -> list[LineInfo]:
        """Describe line ``line`` of an interface, or all its lines when it is None."""
        found = self.daemon.find_intf(intf)
        if found is None:
            return []
        if line is not None:
            result = found.find_line(line)
            return [_line_info(result)] if result is not None else []
        return [_line_info(entry) for entry in found.lines]

    def query_timeslots(self, intf: int, line: int, ts: Optional[int] = None) -> list[TsInfo]:
        """Describe timeslot ``ts`` of a line, or all 32 when it is None."""
        found = self._line(intf, line)
        if found is None:
            return []
        if ts is None:
            return [_ts_info(entry) for entry in found.ts]
        if 0 <= ts < NUM_TIMESLOTS - 1:
            return [_ts_info(found.ts[ts])]
        return []

    def configure_line(self, intf: int, line: int, mode: int) -> Optional[LineInfo]:
        """Switch a line to channelized or superchannel mode; None if refused."""
        found = self._line(intf, line)
        if found is None:
            return None
        proto_mode = _proto_enum(ProtoLineMode, mode)
        _log.log(NOTICE, "%s Setting line mode from %s to %s", found.prefix,
                 LineMode(found.mode).name, proto_mode.name if proto_mode is not None else mode)
        new_mode = _CONFIGURABLE_LINE_MODES.get(proto_mode)
        if new_mode is None:
            return None
        found.mode = new_mode
        return _line_info(found)

    def open_timeslot(
        self,
        intf: int,
        line: int,
        ts: int,
        mode: int,
        read_bufsize: int,
        force: bool = False,
    ) -> Optional[tuple[TsInfo, socket.socket]]:
        """Open a timeslot for a client.

        Returns the reply and the client's end of the timeslot socket, or None
        when the request is refused. Errors while creating the socket are raised.
        """
        found = self._line(intf, line)
        if found is None:
            return None
        timeslot = found.get_ts(ts)
        if timeslot is None:
            _log.log(NOTICE, "%s Client request for non-existent ts %s", found.prefix, ts)
            return None

        proto_mode = _proto_enum(ProtoTsMode, mode)
        ts_mode = _OPENABLE_TS_MODES.get(proto_mode)
        if ts_mode is None:
            _log.log(NOTICE, "%s Client request for unknown mode %s", timeslot.prefix, mode)
            return None

        if read_bufsize == 0:
            _log.log(NOTICE, "%s Client request for invalid bufsize %s",
                     timeslot.prefix, read_bufsize)
            return None

        if timeslot.is_open:
            if not force:
                _log.error("%s Timeslot already open, rejecting re-open without force",
                           timeslot.prefix)
                return None
            timeslot.stop()

        try:
            client = timeslot.start(ts_mode, read_bufsize)
        except (OSError, ValueError) as exc:
            _log.error("%s Unable to start timeslot: %s", timeslot.prefix, exc)
            raise

        return TsInfo(id=ts, mode=proto_mode, status=OPEN_STATUS), client

    def set_sa_bits(self, intf: int, line: int, sa_bits: int) -> bool:
        """Set the Sa bits sent in TS0 of a line; False if the line is unknown."""
        found = self._line(intf, line)
        if found is None:
            return False
        found.tx_frame = (
            ((sa_bits & 0x80) >> 7)    # bit 7 -> Sa8
            | ((sa_bits & 0x40) >> 5)  # bit 6 -> Sa7
            | ((sa_bits & 0x01) << 2)  # bit 0 -> Sa6
            | ((sa_bits & 0x20) >> 2)  # bit 5 -> Sa5
            | (sa_bits & 0x10)         # bit 4 -> Sa4
            | 0xE0
        )
        logging.getLogger(__name__).debug("%s tx_frame %#04x", found.prefix, found.tx_frame)
        return True