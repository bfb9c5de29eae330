"""Flattened device tree parsing: find the physical memory range."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .console import Console

FDT_MAGIC = 0xD00DFEED

FDT_BEGIN_NODE = 0x00000001
FDT_END_NODE = 0x00000002
FDT_PROP = 0x00000003
FDT_NOP = 0x00000004
FDT_END = 0x00000009

_HEADER = struct.Struct(">10I")


@dataclass(frozen=True)
class FdtHeader:
    """The fixed header at the start of a device tree blob."""

    magic: int
    totalsize: int
    off_dt_struct: int
    off_dt_strings: int
    off_mem_rsvmap: int
    version: int
    last_comp_version: int
    boot_cpuid_phys: int
    size_dt_strings: int
    size_dt_struct: int

    @classmethod
    def parse(cls, blob: bytes) -> FdtHeader:
        """Decode the big-endian header from the start of ``blob``."""
        if len(blob) < _HEADER.size:
            raise ValueError("device tree blob too short for header")
        return cls(*_HEADER.unpack_from(blob, 0))


@dataclass(frozen=True)
class MemoryInfo:
    """A physical memory range taken from the device tree."""

    base: int
    size: int

    @property
    def end(self) -> int:
        """Address of the last byte in the range."""
        return self.base + self.size - 1


def _u32(blob: bytes, pos: int) -> int:
    if pos < 0 or pos + 4 > len(blob):
        raise ValueError("device tree structure truncated")
    return struct.unpack_from(">I", blob, pos)[0]


def _cstring(blob: bytes, pos: int) -> bytes:
    if pos < 0 or pos > len(blob):
        raise ValueError("device tree string out of range")
    end = blob.find(b"\0", pos)
    if end < 0:
        raise ValueError("unterminated device tree string")
    return blob[pos:end]


def extract_memory_info(blob: bytes) -> MemoryInfo | None:
    """Return the ``reg`` of the first memory node, or None if none is found."""
    header = FdtHeader.parse(blob)
    strings_base = header.off_dt_strings
    pos = header.off_dt_struct
    in_memory_node = False

    while True:
        token = _u32(blob, pos)
        pos += 4
        if token == FDT_BEGIN_NODE:
            name = _cstring(blob, pos)
            if name[:6] == b"memory":
                in_memory_node = True
            pos = (pos + len(name) + 4) & ~3
        elif token == FDT_END_NODE:
            in_memory_node = False
        elif token == FDT_PROP:
            prop_len = _u32(blob, pos)
            prop_nameoff = _u32(blob, pos + 4)
            pos += 8
            prop_name = _cstring(blob, strings_base + prop_nameoff)
            if in_memory_node and prop_name == b"reg" and prop_len >= 16:
                if pos + 16 > len(blob):
                    raise ValueError("device tree structure truncated")
                base, size = struct.unpack_from(">QQ", blob, pos)
                return MemoryInfo(base, size)
            pos = (pos + prop_len + 3) & ~3
        elif token == FDT_NOP:
            continue
        else:
            # FDT_END or an unknown token: nothing found.
            return None


def dtb_init(blob: bytes | None, hartid: int, console: Console) -> MemoryInfo | None:
    """Report the boot hart and the memory range from ``blob`` on ``console``."""
    console.cprintf("DTB Init\n")
    console.cprintf("HartID: %ld\n", hartid)

    if not blob:
        console.cprintf("Error: DTB address is null\n")
        return None

    header = FdtHeader.parse(blob)
    if header.magic != FDT_MAGIC:
        console.cprintf("Error: Invalid DTB magic number: 0x%x\n", header.magic)
        return None

    info = extract_memory_info(blob)
    if info is not None:
        console.cprintf("Physical Memory from DTB:\n")
        console.cprintf("  Base: 0x%016lx\n", info.base)
        console.cprintf("  Size: 0x%016lx (%ld MB)\n", info.size, info.size // (1024 * 1024))
        console.cprintf("  End:  0x%016lx\n", info.end)
    else:
        console.cprintf("Warning: Could not extract memory info from DTB\n")
    console.cprintf("DTB init completed\n")
    return info