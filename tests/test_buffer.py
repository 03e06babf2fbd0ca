import socket

import pytest

from tinymqtt.buffer import BUFFER_CHUNK_MIN, Buffer


def test_append_then_read_round_trip():
    buf = Buffer()
    buf.append(b"hello")
    buf.append(b" world")
    assert len(buf) == 11
    assert buf.read(11) == b"hello world"
    assert len(buf) == 0


def test_large_append_spans_chunks():
    buf = Buffer()
    payload = bytes(range(256)) * 10
    buf.append(payload[:300])
    buf.append(payload[300:])
    assert buf.chunks == 2
    assert buf.read(len(payload)) == payload
    assert buf.chunks == 0


def test_append_reuses_space_after_read():
    buf = Buffer()
    buf.append(b"a" * BUFFER_CHUNK_MIN)
    buf.read(100)
    buf.append(b"b" * 50)
    assert buf.chunks == 1
    assert buf.read(len(buf)) == b"a" * (BUFFER_CHUNK_MIN - 100) + b"b" * 50


def test_peek_does_not_consume():
    buf = Buffer()
    buf.append(b"abcdef")
    assert buf.peek(3) == b"abc"
    assert len(buf) == 6
    assert buf.read(6) == b"abcdef"


def test_read_clamps_to_available():
    buf = Buffer()
    buf.append(b"xyz")
    assert buf.read(100) == b"xyz"
    assert buf.read(5) == b""


def test_remove_discards_front():
    buf = Buffer()
    buf.append(b"0123456789")
    buf.remove(4)
    assert buf.peek(len(buf)) == b"456789"
    buf.remove(50)
    assert len(buf) == 0


def test_prepend_into_empty_buffer():
    buf = Buffer()
    buf.prepend(b"head")
    assert buf.read(4) == b"head"


def test_prepend_uses_space_freed_by_read():
    buf = Buffer()
    buf.append(b"1234567890")
    buf.read(5)
    buf.prepend(b"ab")
    assert buf.chunks == 1
    assert buf.read(len(buf)) == b"ab67890"


def test_prepend_larger_than_free_front():
    buf = Buffer()
    buf.append(b"tail-data")
    buf.read(2)
    buf.prepend(b"front-")
    assert len(buf) == 13
    assert buf.read(len(buf)) == b"front-il-data"


@pytest.mark.parametrize(
    "data, method, expected",
    [
        (b"\x01\x02", "peek16", 0x0102),
        (b"\x01\x02\x03\x04", "peek32", 0x01020304),
        (b"\x00\x00\x00\x00\x00\x00\x01\x00", "peek64", 256),
    ],
)
def test_peek_integers_are_big_endian(data, method, expected):
    buf = Buffer()
    buf.append(data)
    assert getattr(buf, method)() == expected
    assert len(buf) == len(data)


def test_read_integers_consume():
    buf = Buffer()
    buf.append(b"\x12\x34" + b"\x00\x00\x00\x07" + b"\x00" * 7 + b"\x09" + b"!")
    assert buf.read16() == 0x1234
    assert buf.read32() == 7
    assert buf.read64() == 9
    assert buf.read(1) == b"!"


def test_integer_read_with_too_little_data_raises():
    buf = Buffer()
    buf.append(b"\x01")
    with pytest.raises(ValueError):
        buf.read16()
    assert len(buf) == 1


def test_socket_round_trip():
    left, right = socket.socketpair()
    with left, right:
        out = Buffer()
        out.append(b"ping" * 200)
        sent = out.write_fd(left)
        assert sent == 800
        assert len(out) == 0
        incoming = Buffer()
        received = 0
        while received < 800:
            received += incoming.read_fd(right, 0)
        assert incoming.read(800) == b"ping" * 200


def test_read_fd_respects_max():
    left, right = socket.socketpair()
    with left, right:
        left.sendall(b"abcdefgh")
        buf = Buffer()
        assert buf.read_fd(right, 3) == 3
        assert buf.read(3) == b"abc"


def test_read_fd_returns_zero_on_close():
    left, right = socket.socketpair()
    with right:
        left.close()
        assert Buffer().read_fd(right, 0) == 0


def test_debug_reports_state():
    buf = Buffer()
    buf.append(b"abc")
    report = buf.debug()
    assert "readable bytes=[3]" in report
    assert f"chunk size=[{BUFFER_CHUNK_MIN}]" in report
    assert "total 1 chunk in use" in report