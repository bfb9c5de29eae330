"""C-style string and memory helpers working on NUL-terminated text and byte buffers."""

from __future__ import annotations

_INT64_MASK = (1 << 64) - 1


def _cstr(s: str) -> str:
    """The part of ``s`` before its first NUL."""
    return s.split("\0", 1)[0]


def strlen(s: str) -> int:
    """Length of ``s`` up to, not including, the first NUL."""
    return len(_cstr(s))


def strnlen(s: str, maxlen: int) -> int:
    """Like :func:`strlen`, but never more than ``maxlen``."""
    if maxlen < 0:
        raise ValueError("maxlen must not be negative")
    return min(strlen(s), maxlen)


def strncpy(src: str, length: int) -> str:
    """Copy at most ``length`` characters of ``src``, padding with NULs to ``length``."""
    if length < 0:
        raise ValueError("length must not be negative")
    text = _cstr(src)[:length]
    return text + "\0" * (length - len(text))


def strcmp(s1: str, s2: str) -> int:
    """Compare two strings; the sign of the result orders them."""
    for x, y in zip(_cstr(s1) + "\0", _cstr(s2) + "\0"):
        if x != y or x == "\0":
            return ord(x) - ord(y)
    return 0


def strncmp(s1: str, s2: str, n: int) -> int:
    """Compare at most ``n`` characters of two strings."""
    for index, (x, y) in enumerate(zip(_cstr(s1) + "\0", _cstr(s2) + "\0")):
        if index == n:
            return 0
        if x != y or x == "\0":
            return ord(x) - ord(y)
    return 0


def strchr(s: str, c: str) -> int | None:
    """Index of the first ``c`` before the terminator, or None."""
    index = _cstr(s).find(c)
    return None if index < 0 else index


def strfind(s: str, c: str) -> int:
    """Index of the first ``c``, or of the terminator when ``c`` is absent."""
    text = _cstr(s)
    index = text.find(c)
    return len(text) if index < 0 else index


def _digit(ch: str) -> int | None:
    if "0" <= ch <= "9":
        return ord(ch) - ord("0")
    if "a" <= ch <= "z":
        return ord(ch) - ord("a") + 10
    if "A" <= ch <= "Z":
        return ord(ch) - ord("A") + 10
    return None


def strtol(s: str, base: int) -> tuple[int, int]:
    """Parse a long integer from ``s``.

    Returns the value, wrapped to a signed 64-bit word, and the index of the
    first character after the number.
    """
    text = _cstr(s)

    def at(i: int) -> str:
        return text[i] if i < len(text) else ""

    pos = 0
    while at(pos) in (" ", "\t") and at(pos):
        pos += 1

    negative = False
    if at(pos) == "+":
        pos += 1
    elif at(pos) == "-":
        pos += 1
        negative = True

    if base in (0, 16) and at(pos) == "0" and at(pos + 1) == "x":
        pos += 2
        base = 16
    elif base == 0 and at(pos) == "0":
        pos += 1
        base = 8
    elif base == 0:
        base = 10

    value = 0
    while True:
        dig = _digit(at(pos)) if at(pos) else None
        if dig is None or dig >= base:
            break
        pos += 1
        value = value * base + dig

    if negative:
        value = -value
    value &= _INT64_MASK
    if value >> 63:
        value -= 1 << 64
    return value, pos


def _check_range(buf_len: int, start: int, n: int) -> None:
    if n < 0 or start < 0 or start + n > buf_len:
        raise IndexError("memory range out of bounds")


def memset(buf: bytearray, offset: int, value: int, n: int) -> bytearray:
    """Set ``n`` bytes of ``buf`` from ``offset`` to ``value``; return ``buf``."""
    _check_range(len(buf), offset, n)
    buf[offset:offset + n] = bytes([value & 0xFF]) * n
    return buf


def memmove(buf: bytearray, dst: int, src: int, n: int) -> bytearray:
    """Copy ``n`` bytes within ``buf`` from ``src`` to ``dst``; ranges may overlap."""
    _check_range(len(buf), dst, n)
    _check_range(len(buf), src, n)
    buf[dst:dst + n] = buf[src:src + n]
    return buf


def memcmp(a: bytes, b: bytes, n: int) -> int:
    """Compare the first ``n`` bytes of two buffers as unsigned values."""
    if n < 0 or n > len(a) or n > len(b):
        raise IndexError("memory range out of bounds")
    for x, y in zip(a[:n], b[:n]):
        if x != y:
            return x - y
    return 0