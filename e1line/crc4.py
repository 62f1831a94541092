"""CRC-4 as used by the ITU-T G.704 E1 CRC multiframe (polynomial x^4 + x + 1)."""

from collections.abc import Iterable

_POLY = 0x3


def _table_entry(index: int) -> int:
    reg = index
    for _ in range(8):
        if reg & 0x80:
            reg = ((reg << 1) ^ (_POLY << 4)) & 0xFF
        else:
            reg = (reg << 1) & 0xFF
    return reg >> 4


_TABLE = tuple(_table_entry(i) for i in range(256))


def crc4_init() -> int:
    """Return the initial CRC-4 register value."""
    return 0x0


def crc4_update(crc: int, data: Iterable[int]) -> int:
    """Feed the octets of ``data`` into the CRC-4 register ``crc``."""
    crc &= 0xF
    for octet in data:
        crc = _TABLE[((crc << 4) ^ octet) & 0xFF]
    return crc & 0xF


def crc4_finalize(crc: int) -> int:
    """Return the final CRC-4 value (no output XOR is applied)."""
    return crc & 0xF