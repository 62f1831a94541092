import random

from e1line.crc4 import crc4_finalize, crc4_init, crc4_update


def test_init_and_empty_update():
    assert crc4_init() == 0
    assert crc4_update(crc4_init(), b"") == crc4_init()


def test_single_octets_match_table():
    assert crc4_update(0, bytes([0x01])) == 0x03
    assert crc4_update(0, bytes([0x08])) == 0x0B


def test_finalize_is_identity_on_nibbles():
    assert [crc4_finalize(v) for v in range(16)] == list(range(16))


def test_incremental_equals_whole():
    rng = random.Random(1)
    a = bytes(rng.randrange(256) for _ in range(40))
    b = bytes(rng.randrange(256) for _ in range(23))
    assert crc4_update(crc4_update(0, a), b) == crc4_update(0, a + b)


def test_result_is_four_bits():
    rng = random.Random(2)
    for _ in range(50):
        data = bytes(rng.randrange(256) for _ in range(rng.randrange(1, 40)))
        assert 0 <= crc4_update(crc4_init(), data) < 16


def test_linearity_with_zero_init():
    rng = random.Random(3)
    a = bytes(rng.randrange(256) for _ in range(31))
    b = bytes(rng.randrange(256) for _ in range(31))
    xored = bytes(x ^ y for x, y in zip(a, b))
    assert crc4_update(0, xored) == crc4_update(0, a) ^ crc4_update(0, b)


def test_accepts_any_octet_iterable():
    data = [0x1B, 0x40, 0xFF, 0x00]
    assert crc4_update(0, data) == crc4_update(0, bytes(data))
    assert crc4_update(0, bytearray(data)) == crc4_update(0, bytes(data))