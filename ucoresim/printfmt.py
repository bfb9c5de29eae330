"""The kernel's printf engine: a small subset of C formatting."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import Any

from .errors import error_string

Putch = Callable[[str], Any]

_DIGITS = "0123456789abcdef"


def _take(args: Iterator[Any]) -> Any:
    try:
        return next(args)
    except StopIteration:
        raise TypeError("not enough arguments for format string") from None


def _wrap(value: Any, bits: int, signed: bool) -> int:
    """Reduce an integer to a machine word of the given width."""
    word = int(value) & ((1 << bits) - 1)
    if signed and word >> (bits - 1):
        word -= 1 << bits
    return word


def _get_int(args: Iterator[Any], lflag: int, signed: bool) -> int:
    return _wrap(_take(args), 64 if lflag else 32, signed)


def _print_num(putch: Putch, num: int, base: int, width: int, padc: str) -> None:
    digits = []
    while True:
        digits.append(_DIGITS[num % base])
        num //= base
        if not num:
            break
    for _ in range(width - len(digits)):
        putch(padc)
    for digit in reversed(digits):
        putch(digit)


def _print_str(putch: Putch, value: Any, width: int, precision: int,
               padc: str, altflag: bool) -> None:
    text = "(null)" if value is None else str(value).split("\0", 1)[0]
    if width > 0 and padc != "-":
        width -= len(text) if precision < 0 else min(len(text), precision)
        for _ in range(width):
            putch(padc)
    for ch in text:
        if precision >= 0:
            precision -= 1
            if precision < 0:
                break
        putch("?" if altflag and not " " <= ch <= "~" else ch)
        width -= 1
    for _ in range(width):
        putch(" ")


def vprintfmt(putch: Putch, fmt: str, args: Iterable[Any]) -> None:
    """Format ``fmt`` with ``args``, passing each output character to ``putch``."""
    args = iter(args)
    text = fmt.split("\0", 1)[0]
    end = len(text)
    pos = 0
    while pos < end:
        ch = text[pos]
        pos += 1
        if ch != "%":
            putch(ch)
            continue

        escape_start = pos
        padc = " "
        width = precision = -1
        lflag = 0
        altflag = False
        while True:
            ch = text[pos] if pos < end else ""
            pos += 1
            if ch == "-":
                padc = "-"
            elif ch == "0":
                padc = "0"
            elif "1" <= ch <= "9":
                precision = 0
                pos -= 1
                while pos < end and "0" <= text[pos] <= "9":
                    precision = precision * 10 + ord(text[pos]) - ord("0")
                    pos += 1
                if width < 0:
                    width, precision = precision, -1
            elif ch == "*":
                precision = _wrap(_take(args), 32, True)
                if width < 0:
                    width, precision = precision, -1
            elif ch == ".":
                if width < 0:
                    width = 0
            elif ch == "#":
                altflag = True
            elif ch == "l":
                lflag += 1
            else:
                break

        if ch == "c":
            value = _take(args)
            putch(value if isinstance(value, str) else chr(int(value)))
        elif ch == "e":
            for out in error_string(_wrap(_take(args), 32, True)):
                putch(out)
        elif ch == "s":
            _print_str(putch, _take(args), width, precision, padc, altflag)
        elif ch == "d":
            num = _get_int(args, lflag, True)
            if num < 0:
                putch("-")
                num = -num
            _print_num(putch, num, 10, width, padc)
        elif ch == "u":
            _print_num(putch, _get_int(args, lflag, False), 10, width, padc)
        elif ch == "o":
            _print_num(putch, _get_int(args, lflag, False), 8, width, padc)
        elif ch == "p":
            putch("0")
            putch("x")
            _print_num(putch, _wrap(_take(args), 64, False), 16, width, padc)
        elif ch == "x":
            _print_num(putch, _get_int(args, lflag, False), 16, width, padc)
        elif ch == "%":
            putch("%")
        else:
            # Unknown escape: print it literally, starting again after the '%'.
            putch("%")
            pos = escape_start


def printfmt(putch: Putch, fmt: str, *args: Any) -> None:
    """Format with positional arguments, passing each character to ``putch``."""
    vprintfmt(putch, fmt, args)


def format_string(fmt: str, *args: Any) -> str:
    """Return the whole formatted text."""
    out: list[str] = []
    vprintfmt(out.append, fmt, args)
    return "".join(out)


def vsnprintf(size: int, fmt: str, args: Iterable[Any]) -> tuple[str, int]:
    """Format into a buffer of ``size`` bytes including the terminator.

    Returns the text that fits and the length the full output would have.
    """
    if size < 1:
        raise ValueError("buffer size must be at least 1")
    out: list[str] = []
    vprintfmt(out.append, fmt, args)
    text = "".join(out)
    return text[: size - 1], len(text)


def snprintf(size: int, fmt: str, *args: Any) -> tuple[str, int]:
    """Positional-argument form of :func:`vsnprintf`."""
    return vsnprintf(size, fmt, args)