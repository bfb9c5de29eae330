import pytest

from ucoresim.cstring import (
    memcmp,
    memmove,
    memset,
    strchr,
    strcmp,
    strfind,
    strlen,
    strncmp,
    strncpy,
    strnlen,
    strtol,
)


def test_strlen_stops_at_nul():
    assert strlen("hello") == len("hello")
    assert strlen("ab\0cd") == len("ab")
    assert strlen("") == 0


def test_strnlen_limits():
    assert strnlen("hello", 3) == 3
    assert strnlen("hi", 10) == len("hi")
    with pytest.raises(ValueError):
        strnlen("x", -1)


def test_strncpy_pads_and_truncates():
    assert strncpy("abc", 5) == "abc\0\0"
    assert strncpy("abcdef", 3) == "abc"
    assert len(strncpy("a\0bc", 4)) == 4
    assert strncpy("a\0bc", 4) == "a\0\0\0"


def test_strcmp_ordering():
    assert strcmp("abc", "abc") == 0
    assert strcmp("a", "b") < 0
    assert strcmp("b", "a") > 0
    assert strcmp("abc", "ab") == ord("c")
    assert strcmp("ab", "abc") == -ord("c")


def test_strncmp():
    assert strncmp("abcd", "abce", 3) == 0
    assert strncmp("abcd", "abce", 4) < 0
    assert strncmp("x", "y", 0) == 0
    assert strncmp("ab", "ab", 10) == 0


def test_strchr_and_strfind():
    assert strchr("hello", "l") == 2
    assert strchr("hello", "z") is None
    assert strchr("hello", "\0") is None
    assert strfind("hello", "e") == 1
    assert strfind("hello", "z") == len("hello")


@pytest.mark.parametrize(
    "text, base, expected",
    [
        ("123", 10, (123, 3)),
        ("  -42x", 0, (-42, 5)),
        ("0x1f", 0, (int("1f", 16), 4)),
        ("0x1f", 16, (int("1f", 16), 4)),
        ("017", 0, (int("17", 8), 3)),
        ("0X1f", 0, (0, 1)),
        ("+zz", 36, (int("zz", 36), 3)),
        ("\t99", 10, (99, 3)),
        ("abc", 10, (0, 0)),
    ],
)
def test_strtol(text, base, expected):
    assert strtol(text, base) == expected


def test_strtol_wraps_to_int64():
    value, end = strtol("ffffffffffffffff", 16)
    assert value == -1
    assert end == 16


def test_memset():
    buf = bytearray(b"abcdef")
    result = memset(buf, 1, 0x1FF, 3)
    assert result is buf
    assert buf == bytearray(b"a\xff\xff\xffef")
    with pytest.raises(IndexError):
        memset(buf, 4, 0, 3)


def test_memmove_overlapping_forward_and_backward():
    buf = bytearray(b"123456")
    memmove(buf, 2, 0, 4)
    assert buf == bytearray(b"121234")
    buf = bytearray(b"123456")
    memmove(buf, 0, 2, 4)
    assert buf == bytearray(b"345656")
    with pytest.raises(IndexError):
        memmove(buf, 0, 4, 3)


def test_memcmp():
    assert memcmp(b"abc", b"abc", 3) == 0
    assert memcmp(b"abd", b"abc", 3) == 1
    assert memcmp(b"\x00", b"\xff", 1) == -255
    assert memcmp(b"abX", b"abY", 2) == 0
    with pytest.raises(IndexError):
        memcmp(b"ab", b"abc", 3)