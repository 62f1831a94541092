"""E1 framer after ITU-T G.704 / G.706.

It produces transmit frames with the frame alignment signal and the CRC-4
multiframe, and it aligns to received frames and watches them for errors.
"""

import logging
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Optional

from .crc4 import crc4_init, crc4_update
from .hdlc import HdlcDecoder, HdlcEncoder, HdlcError

FRAME_SIZE = 32
NUM_TIMESLOTS = 32
FAS = 0x1B
DEFAULT_GRANULARITY = 256
MFRAME_SEARCH_LIMIT = 64

_log = logging.getLogger(__name__)


class NotifyEvent(IntEnum):
    ALIGN_FRAME = 0
    ALIGN_CRC_MFRAME = 1
    CRC_ERROR = 2
    REMOTE_CRC_ERROR = 3
    REMOTE_ALARM = 4


_EVENT_NAMES = {
    NotifyEvent.ALIGN_FRAME: "Aligned to Frame",
    NotifyEvent.ALIGN_CRC_MFRAME: "Aligned to CRC4-Multiframe",
    NotifyEvent.CRC_ERROR: "CRC Error detected (local)",
    NotifyEvent.REMOTE_CRC_ERROR: "CRC Error reported (remote)",
    NotifyEvent.REMOTE_ALARM: "Remote Alarm condition reported",
}


def notify_event_name(event: NotifyEvent) -> str:
    """Return a readable description of a notification event."""
    return _EVENT_NAMES[NotifyEvent(event)]


class FramerTsMode(IntEnum):
    RAW = 0
    HDLC_CRC = 1


class AlignState(IntEnum):
    """Receiver alignment states of ITU-T G.706 Figure 2."""

    SEARCH_FRAME = 0
    SEARCH_CRC_MFRAME = 1
    ALIGNED_CRC_MFRAME = 2
    ALIGNED_BASIC = 3


def _is_fas(octet: int) -> bool:
    return (octet & 0x7F) == FAS


def _frame_crc4(crc: int, frame: bytes) -> int:
    ts0 = frame[0] & 0x7F if _is_fas(frame[0]) else frame[0]
    crc = crc4_update(crc, (ts0,))
    return crc4_update(crc, frame[1:NUM_TIMESLOTS])


@dataclass
class TxState:
    remote_alarm: bool = False
    crc4_error: bool = False
    ais: bool = False
    sa4_sa8: int = 0x1F
    frame_nr: int = 0
    crc4_last_smf: int = 0
    crc4: int = 0


@dataclass
class RxState:
    frame_nr: int = 0
    ts0_history: list[int] = field(default_factory=lambda: [0] * 16)
    ts0_hist_len: int = 0
    remote_alarm: bool = False
    remote_crc4_error: bool = False
    num_ts0_in_mframe_search: int = 0
    crc4_last_smf: int = 0
    crc4: int = 0


DataCallback = Callable[["FramerTimeslot", bytes], Any]
NotifyCallback = Callable[["E1Framer", NotifyEvent, bool], Any]


class FramerTimeslot:
    """One of the timeslots 1..31 of a framer."""

    def __init__(self, framer: "E1Framer", ts_nr: int):
        self.framer = framer
        self.ts_nr = ts_nr
        self.mode = FramerTsMode.RAW
        self.priv: Any = None
        self.callback: Optional[DataCallback] = None
        self.enabled = False
        self.granularity = DEFAULT_GRANULARITY
        self.underruns = 0
        self._queue: deque[bytes] = deque()
        self._offset = 0
        self._rx_buf = bytearray()
        self.decoder = HdlcDecoder(bitreverse=True, max_size=self.granularity)
        self.encoder = HdlcEncoder(bitreverse=False)

    def reset(self) -> None:
        """Stop receiving and drop all pending transmit and receive data."""
        self.underruns = 0
        self._queue.clear()
        self._offset = 0
        self.enabled = False
        self._rx_buf.clear()
        self.decoder = HdlcDecoder(bitreverse=True, max_size=self.granularity)
        self.encoder.reset()

    def configure(
        self,
        callback: Optional[DataCallback],
        granularity: int,
        enable: bool,
        mode: FramerTsMode,
    ) -> None:
        """Set the receive callback, buffer size, enable flag and mode."""
        if granularity < 1:
            raise ValueError("granularity must be at least 1")
        self.callback = callback
        self.enabled = enable
        self.granularity = granularity
        self.mode = FramerTsMode(mode)
        self.decoder.max_size = granularity

    def enqueue(self, data: Iterable[int]) -> None:
        """Queue octets for transmission on this timeslot."""
        self._queue.append(bytes(data))

    def _pull_octet(self) -> int:
        while self._queue:
            head = self._queue[0]
            if self._offset < len(head):
                octet = head[self._offset]
                self._offset += 1
                return octet
            self._queue.popleft()
            self._offset = 0
        self.underruns += 1
        return 0xFF

    def _rx_octet(self, octet: int) -> None:
        if not self.enabled:
            return
        if self.mode == FramerTsMode.RAW:
            self._rx_buf.append(octet)
            if len(self._rx_buf) >= self.granularity:
                data = bytes(self._rx_buf)
                self._rx_buf.clear()
                self._deliver(data)
            return
        for result in self.decoder.feed((octet,)):
            if isinstance(result, HdlcError):
                _log.info("TS%d: %s", self.ts_nr, result)
            else:
                self._deliver(result)

    def _deliver(self, data: bytes) -> None:
        if self.callback is not None:
            self.callback(self, data)


class E1Framer:
    """Generates and receives E1 frames of 32 octets."""

    def __init__(
        self,
        name: str = "e1",
        notify: Optional[NotifyCallback] = None,
        crc4_enabled: bool = True,
        priv: Any = None,
    ):
        self.name = name
        self.notify = notify
        self.crc4_enabled = crc4_enabled
        self.priv = priv
        self.tx = TxState()
        self.rx = RxState()
        self.state = AlignState.SEARCH_FRAME
        self._timeslots = tuple(FramerTimeslot(self, n) for n in range(1, NUM_TIMESLOTS))
        self._handlers = {
            AlignState.SEARCH_FRAME: self._search_frame,
            AlignState.SEARCH_CRC_MFRAME: self._search_crc_mframe,
            AlignState.ALIGNED_CRC_MFRAME: self._aligned_crc_mframe,
            AlignState.ALIGNED_BASIC: self._aligned_basic,
        }
        self.reset()

    @property
    def timeslots(self) -> tuple[FramerTimeslot, ...]:
        return self._timeslots

    def reset(self) -> None:
        """Restart alignment and reset all timeslots."""
        self.rx.num_ts0_in_mframe_search = 0
        self._set_state(AlignState.SEARCH_FRAME)

        self.tx.remote_alarm = False
        self.tx.crc4_error = False
        self.tx.frame_nr = 0
        self.tx.crc4_last_smf = 0
        self.tx.crc4 = crc4_init()

        self.rx.frame_nr = 0
        self.rx.ts0_history = [0] * 16
        self.rx.ts0_hist_len = 0
        self.rx.remote_alarm = False
        self.rx.remote_crc4_error = False
        self.rx.num_ts0_in_mframe_search = 0

        for ts in self._timeslots:
            ts.reset()

    def timeslot(self, ts_nr: int) -> FramerTimeslot:
        """Return timeslot ``ts_nr`` (1..31)."""
        if not 1 <= ts_nr < NUM_TIMESLOTS:
            raise ValueError(f"no timeslot {ts_nr}; valid are 1..{NUM_TIMESLOTS - 1}")
        return self._timeslots[ts_nr - 1]

    def _notify(self, event: NotifyEvent, present: bool) -> None:
        if self.notify is not None:
            self.notify(self, event, present)

    def _set_state(self, state: AlignState) -> None:
        if state != self.state:
            _log.debug("%s: %s -> %s", self.name, self.state.name, state.name)
        self.state = state

    # transmit side

    def _crc4_bit(self) -> int:
        if not self.crc4_enabled:
            return 1
        shift = {0: 3, 2: 2, 4: 1, 6: 0}[self.tx.frame_nr % 8]
        return (self.tx.crc4_last_smf >> shift) & 1

    def _pull_ts0(self) -> int:
        tx = self.tx
        if tx.frame_nr in (0, 8):
            tx.crc4_last_smf = tx.crc4
            tx.crc4 = 0

        if tx.frame_nr % 2 == 0:
            octet = FAS | (self._crc4_bit() << 7)
        else:
            if tx.frame_nr in (1, 3, 7):
                octet = 0x40
            elif tx.frame_nr in (5, 9, 11):
                octet = 0xC0
            else:
                octet = 0x40 if tx.crc4_error else 0xC0
            octet |= tx.sa4_sa8
            if tx.remote_alarm:
                octet |= 0x20

        tx.frame_nr = (tx.frame_nr + 1) % 16
        return octet & 0xFF

    def pull_tx_frame(self) -> bytes:
        """Generate the next 32-octet frame to transmit."""
        if self.tx.ais:
            return b"\xff" * FRAME_SIZE
        frame = bytes([self._pull_ts0()] + [ts._pull_octet() for ts in self._timeslots])
        self.tx.crc4 = _frame_crc4(self.tx.crc4, frame)
        return frame

    # receive side

    def _hist(self, delta: int) -> int:
        return self.rx.ts0_history[(self.rx.frame_nr + 16 - delta) % 16]

    def _frame_alignment_lost(self) -> bool:
        if self.rx.frame_nr % 2:
            return False
        return not any(_is_fas(self._hist(d)) for d in (0, 2, 4))

    def _frame_alignment_recovered(self) -> bool:
        return (
            _is_fas(self._hist(0))
            and not _is_fas(self._hist(1))
            and _is_fas(self._hist(2))
        )

    def _crc_mframe_alignment_achieved(self) -> bool:
        if _is_fas(self._hist(0)):
            return False
        expected = {0: 1, 2: 1, 4: 0, 6: 1, 8: 0, 10: 0}
        return all(self._hist(d) >> 7 == bit for d, bit in expected.items())

    def _crc4_from_history(self, smf2: bool) -> int:
        offset = 8 if smf2 else 0
        hist = self.rx.ts0_history
        crc = 0
        for shift, index in zip((3, 2, 1, 0), (0, 2, 4, 6)):
            crc |= (hist[index + offset] >> 7) << shift
        return crc

    def _search_frame(self) -> None:
        if self._frame_alignment_recovered():
            self.rx.frame_nr = 2
            self._notify(NotifyEvent.ALIGN_FRAME, True)
            self._set_state(AlignState.SEARCH_CRC_MFRAME)

    def _search_crc_mframe(self) -> None:
        if self._crc_mframe_alignment_achieved():
            self.rx.frame_nr = 11
            self._notify(NotifyEvent.ALIGN_CRC_MFRAME, True)
            self._set_state(AlignState.ALIGNED_CRC_MFRAME)
            return
        if self.rx.num_ts0_in_mframe_search >= MFRAME_SEARCH_LIMIT:
            self.rx.num_ts0_in_mframe_search = 0
            self._set_state(AlignState.SEARCH_FRAME)
        self.rx.num_ts0_in_mframe_search += 1

    def _aligned_common(self) -> None:
        inb = self._hist(0)
        if _is_fas(inb & 0x7F):
            return
        old_alarm = self.rx.remote_alarm
        self.rx.remote_alarm = bool(inb & 0x20)
        if old_alarm != self.rx.remote_alarm:
            self._notify(NotifyEvent.REMOTE_ALARM, self.rx.remote_alarm)

    def _aligned_crc_mframe(self) -> None:
        if self._frame_alignment_lost():
            self._set_state(AlignState.SEARCH_FRAME)
            return

        if self.crc4_enabled:
            frame_nr = self.rx.frame_nr
            if frame_nr in (7, 15):
                crc_rx = self._crc4_from_history(frame_nr == 15)
                crc4_error = crc_rx != self.rx.crc4_last_smf
                if crc4_error != self.tx.crc4_error:
                    self._notify(NotifyEvent.CRC_ERROR, crc4_error)
                    self.tx.crc4_error = crc4_error
                self.rx.crc4_last_smf = self.rx.crc4
                self.rx.crc4 = crc4_init()

            if frame_nr in (13, 15):
                remote_error = (self._hist(0) >> 7) == 0
                if remote_error != self.rx.remote_crc4_error:
                    self._notify(NotifyEvent.REMOTE_CRC_ERROR, remote_error)
                    self.rx.remote_crc4_error = remote_error

        self._aligned_common()

    def _aligned_basic(self) -> None:
        if self._frame_alignment_lost():
            self._set_state(AlignState.SEARCH_FRAME)
            return
        self._aligned_common()

    def _rx_ts0(self, octet: int) -> None:
        self.rx.ts0_history[self.rx.frame_nr] = octet
        if self.rx.ts0_hist_len < 16:
            self.rx.ts0_hist_len += 1
        self._handlers[self.state]()
        self.rx.frame_nr = (self.rx.frame_nr + 1) % 16

    def rx_frame(self, frame: Iterable[int]) -> None:
        """Process one received, octet-aligned frame of 32 octets."""
        frame = bytes(frame)
        if len(frame) != FRAME_SIZE:
            raise ValueError(f"an E1 frame has {FRAME_SIZE} octets, got {len(frame)}")
        self.rx.crc4 = _frame_crc4(self.rx.crc4, frame)
        self._rx_ts0(frame[0])
        for ts, octet in zip(self._timeslots, frame[1:]):
            ts._rx_octet(octet)