import random

import pytest

from e1line.hdlc import FLAG, HdlcDecoder, HdlcEncoder, HdlcError, fcs16


def _encode(frames, bitreverse=False):
    enc = HdlcEncoder(bitreverse)
    for frame in frames:
        enc.push(frame)
    size = sum(len(f) + 4 for f in frames) * 2 + 8
    stream = enc.pull(size)
    assert enc.pending == 0
    return stream


def test_fcs16_check_value():
    assert fcs16(b"123456789") == 0x906E


def test_idle_is_flags():
    enc = HdlcEncoder()
    assert enc.pull(4) == bytes([FLAG]) * 4


def test_pull_returns_requested_size():
    enc = HdlcEncoder(True)
    enc.push(b"\xff" * 20)
    assert [len(enc.pull(n)) for n in (0, 1, 7, 33)] == [0, 1, 7, 33]


def test_pull_negative_rejected():
    with pytest.raises(ValueError):
        HdlcEncoder().pull(-1)


@pytest.mark.parametrize("bitreverse", [False, True])
def test_round_trip(bitreverse):
    frames = [b"hello", b"\x7e\x7e\xff\xff\x7d", bytes(range(256))]
    stream = _encode(frames, bitreverse)
    assert HdlcDecoder(bitreverse, 512).feed(stream) == frames


def test_round_trip_random_frames_bytewise():
    rng = random.Random(7)
    frames = [bytes(rng.randrange(256) for _ in range(rng.randrange(1, 60))) for _ in range(10)]
    stream = _encode(frames)
    dec = HdlcDecoder(False, 100)
    results = []
    for octet in stream:
        results.extend(dec.feed(bytes([octet])))
    assert results == frames


def test_crc_error():
    enc = HdlcEncoder()
    enc.push(b"\x00" * 8)
    stream = bytearray(enc.pull(30))
    stream[3] ^= 0x01
    results = HdlcDecoder(False, 64).feed(stream)
    assert len(results) == 1
    assert isinstance(results[0], HdlcError)
    assert results[0].kind == HdlcError.CRC


def test_length_error_then_recovery():
    stream = _encode([b"\x00" * 10, b"ok!"])
    results = HdlcDecoder(False, 4).feed(stream)
    assert len(results) == 2
    assert results[0].kind == HdlcError.LENGTH
    assert results[1] == b"ok!"


def test_too_short_frame_is_framing_error():
    results = HdlcDecoder(False, 64).feed(_encode([b""]))
    assert [r.kind for r in results] == [HdlcError.FRAMING]


def test_abort_inside_frame():
    enc = HdlcEncoder()
    enc.push(b"\x00" * 6)
    head = enc.pull(4)
    results = HdlcDecoder(False, 64).feed(head + b"\xff\xff")
    assert [r.kind for r in results] == [HdlcError.FRAMING]


def test_mismatched_bit_order_yields_no_frames():
    stream = _encode([b"\x01\x02\x03\x04"], bitreverse=True)
    results = HdlcDecoder(False, 64).feed(stream)
    assert b"\x01\x02\x03\x04" not in results


def test_decoder_reset_drops_partial_frame():
    stream = _encode([b"abcdef"])
    dec = HdlcDecoder(False, 64)
    dec.feed(stream[:4])
    dec.reset()
    assert dec.feed(stream[4:]) == []
    assert dec.feed(_encode([b"xyz"])) == [b"xyz"]


def test_encoder_reset_drops_queue():
    enc = HdlcEncoder()
    enc.push(b"payload")
    enc.reset()
    assert enc.pending == 0
    assert enc.pull(3) == bytes([FLAG]) * 3