"""Kernel error codes and the exception raised on a kernel panic."""

from __future__ import annotations

from enum import IntEnum


class ErrorCode(IntEnum):
    """Kernel error codes; functions report them negated."""

    E_UNSPECIFIED = 1
    E_BAD_PROC = 2
    E_INVAL = 3
    E_NO_MEM = 4
    E_NO_FREE_PROC = 5
    E_FAULT = 6


MAXERROR = max(ErrorCode)

_DESCRIPTIONS = {
    ErrorCode.E_UNSPECIFIED: "unspecified error",
    ErrorCode.E_BAD_PROC: "bad process",
    ErrorCode.E_INVAL: "invalid parameter",
    ErrorCode.E_NO_MEM: "out of memory",
    ErrorCode.E_NO_FREE_PROC: "out of processes",
    ErrorCode.E_FAULT: "segmentation fault",
}


def error_string(code: int) -> str:
    """Describe an error code; negative and positive codes are equivalent."""
    err = abs(int(code))
    description = _DESCRIPTIONS.get(err)
    if description is None:
        return f"error {err}"
    return description


class KernelPanic(Exception):
    """Raised when the kernel hits an unrecoverable error."""

    def __init__(self, file: str, line: int, message: str) -> None:
        super().__init__(f"kernel panic at {file}:{line}: {message}")
        self.file = file
        self.line = line
        self.message = message