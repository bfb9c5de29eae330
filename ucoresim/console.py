"""Console input and output, line reading, warnings and panics."""

from __future__ import annotations

import sys
from collections.abc import Iterable
from typing import Any, TextIO

from .errors import KernelPanic
from .printfmt import format_string, vprintfmt

_BUFSIZE = 1024


class Console:
    """A character console backed by text streams."""

    def __init__(self, output: TextIO | None = None, input: TextIO | None = None) -> None:
        self.output = sys.stdout if output is None else output
        self.input = sys.stdin if input is None else input
        self.panicked = False

    def putc(self, c: str | int) -> None:
        """Write one character to the console device."""
        self.output.write(c if isinstance(c, str) else chr(c & 0xFF))

    def getc(self) -> str:
        """Return the next input character, or '' when no input remains."""
        return self.input.read(1)

    def cputchar(self, c: str | int) -> None:
        """Write a single character."""
        self.putc(c)

    def vcprintf(self, fmt: str, args: Iterable[Any]) -> int:
        """Format to the console; return the number of characters written."""
        count = 0

        def put(ch: str) -> None:
            nonlocal count
            self.putc(ch)
            count += 1

        vprintfmt(put, fmt, args)
        return count

    def cprintf(self, fmt: str, *args: Any) -> int:
        """Positional-argument form of :meth:`vcprintf`."""
        return self.vcprintf(fmt, args)

    def cputs(self, text: str) -> int:
        """Write ``text`` followed by a newline; return the characters written."""
        body = text.split("\0", 1)[0]
        for ch in body:
            self.putc(ch)
        self.putc("\n")
        return len(body) + 1

    def getchar(self) -> str:
        """Read the next non-NUL character, or '' when no input remains."""
        while (c := self.getc()) == "\0":
            pass
        return c

    def readline(self, prompt: str | None = None) -> str:
        """Read and echo a line, honouring backspace; raise EOFError at end of input."""
        if prompt is not None:
            self.cprintf("%s", prompt)
        buf: list[str] = []
        while True:
            c = self.getchar()
            if not c:
                raise EOFError("console input exhausted")
            if c >= " " and len(buf) < _BUFSIZE - 1:
                self.cputchar(c)
                buf.append(c)
            elif c == "\b" and buf:
                self.cputchar(c)
                buf.pop()
            elif c in ("\n", "\r"):
                self.cputchar(c)
                return "".join(buf)

    def warn(self, file: str, line: int, fmt: str, *args: Any) -> None:
        """Print a kernel warning."""
        self.cprintf("kernel warning at %s:%d:\n    ", file, line)
        self.vcprintf(fmt, args)
        self.cprintf("\n")

    def panic(self, file: str, line: int, fmt: str, *args: Any) -> None:
        """Print a panic message (first time only) and raise KernelPanic."""
        message = format_string(fmt, *args)
        if not self.panicked:
            self.panicked = True
            self.cprintf("kernel panic at %s:%d:\n    ", file, line)
            self.vcprintf(fmt, args)
            self.cprintf("\n")
        raise KernelPanic(file, line, message)