"""HDLC framing with bit stuffing and FCS-16 over a synchronous bit stream."""

from collections import deque
from collections.abc import Iterable, Iterator

FLAG = 0x7E


def fcs16(data: Iterable[int]) -> int:
    """Return the HDLC frame check sequence (CRC-16/X.25) of ``data``."""
    crc = 0xFFFF
    for octet in data:
        crc ^= octet
        for _ in range(8):
            crc = (crc >> 1) ^ 0x8408 if crc & 1 else crc >> 1
    return crc ^ 0xFFFF


def _octet_bits(octet: int) -> list[int]:
    return [(octet >> i) & 1 for i in range(8)]


_FLAG_BITS = tuple(_octet_bits(FLAG))


def _pack(bits: list[int], msb_first: bool) -> bytes:
    out = bytearray()
    for chunk in zip(*[iter(bits)] * 8):
        if msb_first:
            out.append(sum(bit << (7 - i) for i, bit in enumerate(chunk)))
        else:
            out.append(sum(bit << i for i, bit in enumerate(chunk)))
    return bytes(out)


def _unpack(data: Iterable[int], msb_first: bool) -> Iterator[int]:
    order = range(7, -1, -1) if msb_first else range(8)
    for octet in data:
        for i in order:
            yield (octet >> i) & 1


class HdlcError(Exception):
    """A frame that could not be decoded; ``kind`` says why."""

    FRAMING = "framing"
    CRC = "crc"
    LENGTH = "length"

    def __init__(self, kind: str, message: str | None = None):
        super().__init__(message or f"HDLC {kind} error")
        self.kind = kind


class HdlcEncoder:
    """Turns queued frames into a flag-filled, bit-stuffed octet stream."""

    def __init__(self, bitreverse: bool = False):
        self.bitreverse = bitreverse
        self._frames: deque[bytes] = deque()
        self._bits: deque[int] = deque()

    def reset(self) -> None:
        """Drop queued frames and any partly sent bits."""
        self._frames.clear()
        self._bits.clear()

    @property
    def pending(self) -> int:
        """Number of frames not yet started."""
        return len(self._frames)

    def push(self, frame: bytes) -> None:
        """Queue a frame for transmission."""
        self._frames.append(bytes(frame))

    @staticmethod
    def _stuffed(payload: bytes) -> Iterator[int]:
        ones = 0
        for octet in payload:
            for bit in _octet_bits(octet):
                yield bit
                if bit:
                    ones += 1
                    if ones == 5:
                        yield 0
                        ones = 0
                else:
                    ones = 0

    def _refill(self) -> None:
        if not self._frames:
            self._bits.extend(_FLAG_BITS)
            return
        frame = self._frames.popleft()
        trailer = fcs16(frame).to_bytes(2, "little")
        self._bits.extend(_FLAG_BITS)
        self._bits.extend(self._stuffed(frame + trailer))
        self._bits.extend(_FLAG_BITS)

    def pull(self, size: int) -> bytes:
        """Return exactly ``size`` octets of encoded bit stream."""
        if size < 0:
            raise ValueError("size must not be negative")
        needed = size * 8
        while len(self._bits) < needed:
            self._refill()
        bits = [self._bits.popleft() for _ in range(needed)]
        return _pack(bits, self.bitreverse)


class HdlcDecoder:
    """Recovers frames from an HDLC octet stream."""

    def __init__(self, bitreverse: bool, max_size: int):
        self.bitreverse = bitreverse
        self.max_size = max_size
        self.reset()

    def reset(self) -> None:
        """Return to flag hunting, discarding any partial frame."""
        self._ones = 0
        self._in_frame = False
        self._discard = False
        self._lead_zero = False
        self._bits: list[int] = []

    def feed(self, data: Iterable[int]) -> list["bytes | HdlcError"]:
        """Decode ``data`` and return good frames and errors in stream order."""
        results: list[bytes | HdlcError] = []
        for bit in _unpack(data, self.bitreverse):
            self._bit(bit, results)
        return results

    def _bit(self, bit: int, out: list) -> None:
        if bit:
            self._ones += 1
            if self._ones == 7:
                self._abort(out)
            return
        ones, self._ones = self._ones, 0
        if ones >= 7:
            return
        if ones == 6:
            self._flag(out)
            return
        if not self._in_frame or self._discard:
            return
        self._bits.extend([1] * ones)
        if ones == 5:
            self._lead_zero = False
        else:
            self._bits.append(0)
            self._lead_zero = True
        if len(self._bits) > (self.max_size + 2) * 8 + 1:
            out.append(HdlcError(HdlcError.LENGTH, "frame exceeds maximum size"))
            self._discard = True
            self._bits = []

    def _abort(self, out: list) -> None:
        if self._in_frame and not self._discard and self._bits:
            out.append(HdlcError(HdlcError.FRAMING, "frame aborted"))
        self._in_frame = False
        self._bits = []

    def _flag(self, out: list) -> None:
        if self._in_frame and not self._discard:
            if self._lead_zero and self._bits:
                self._bits.pop()
            if self._bits:
                out.append(self._close(self._bits))
        self._in_frame = True
        self._discard = False
        self._lead_zero = False
        self._bits = []

    @staticmethod
    def _close(bits: list[int]) -> "bytes | HdlcError":
        if len(bits) % 8 or len(bits) < 24:
            return HdlcError(HdlcError.FRAMING, "frame is not a whole number of octets")
        data = _pack(bits, msb_first=False)
        payload, trailer = data[:-2], data[-2:]
        if fcs16(payload) != int.from_bytes(trailer, "little"):
            return HdlcError(HdlcError.CRC, "frame check sequence mismatch")
        return payload