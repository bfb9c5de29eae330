"""Kernel start-up: device tree, console banner, kernel symbols and memory."""

from __future__ import annotations

import argparse
import struct
import sys
from collections.abc import Sequence

from .bestfit import BestFitManager
from .buddy import BuddyManager
from .console import Console
from .dtb import (
    FDT_BEGIN_NODE,
    FDT_END,
    FDT_END_NODE,
    FDT_MAGIC,
    FDT_PROP,
    dtb_init,
)
from .errors import KernelPanic
from .firstfit import FirstFitManager
from .memlayout import DRAM_BASE, KERNEL_BEGIN_VADDR
from .pmm import ManagerFactory, PhysicalMemory

# Addresses of the kernel image symbols.
_KERNEL_ENTRY = KERNEL_BEGIN_VADDR
_ETEXT = KERNEL_BEGIN_VADDR + 0x2000
_EDATA = KERNEL_BEGIN_VADDR + 0x3000
_END = KERNEL_BEGIN_VADDR + 0x8000

_DEFAULT_MEMORY_SIZE = 0x8000000

_BANNER = "(THU.CST) os is loading ..."


def print_kerninfo(console: Console, entry: int, etext: int, edata: int, end: int) -> None:
    """Print the kernel symbol addresses and the image footprint."""
    console.cprintf("Special kernel symbols:\n")
    console.cprintf("  entry  0x%016lx (virtual)\n", entry)
    console.cprintf("  etext  0x%016lx (virtual)\n", etext)
    console.cprintf("  edata  0x%016lx (virtual)\n", edata)
    console.cprintf("  end    0x%016lx (virtual)\n", end)
    console.cprintf("Kernel executable memory footprint: %dKB\n",
                    (end - entry + 1023) // 1024)


def kern_init(dtb_blob: bytes | None, console: Console | None = None, hartid: int = 0,
              manager: ManagerFactory | None = None) -> PhysicalMemory:
    """Boot the kernel up to physical memory management and return it."""
    console = Console() if console is None else console
    info = dtb_init(dtb_blob, hartid, console)
    console.cputs(_BANNER)
    print_kerninfo(console, _KERNEL_ENTRY, _ETEXT, _EDATA, _END)

    pmm = PhysicalMemory(manager, console)
    base, size = (info.base, info.size) if info is not None else (0, 0)
    pmm.init(base, size, _END)
    return pmm


def _padded(data: bytes) -> bytes:
    return data + b"\0" * (-len(data) % 4)


def _build_dtb(base: int, size: int) -> bytes:
    """A minimal device tree holding one memory node."""
    strings = b"reg\0"
    body = (
        struct.pack(">I", FDT_BEGIN_NODE) + _padded(b"\0")
        + struct.pack(">I", FDT_BEGIN_NODE) + _padded(f"memory@{base:x}".encode() + b"\0")
        + struct.pack(">III", FDT_PROP, 16, 0) + struct.pack(">QQ", base, size)
        + struct.pack(">III", FDT_END_NODE, FDT_END_NODE, FDT_END)
    )
    off_rsvmap = 40
    off_struct = off_rsvmap + 16
    off_strings = off_struct + len(body)
    header = struct.pack(">10I", FDT_MAGIC, off_strings + len(strings), off_struct,
                         off_strings, off_rsvmap, 17, 16, 0, len(strings), len(body))
    return header + bytes(16) + body + strings


def main(argv: Sequence[str] | None = None) -> int:
    """Boot the simulated kernel; return 1 if it panics."""
    parser = argparse.ArgumentParser(description="Boot the kernel memory manager.")
    parser.add_argument("--dtb", help="device tree blob to boot with")
    parser.add_argument("--hartid", type=lambda s: int(s, 0), default=0)
    parser.add_argument("--manager", choices=("buddy", "first-fit", "best-fit"),
                        default="buddy")
    parser.add_argument("--memory-base", type=lambda s: int(s, 0), default=DRAM_BASE,
                        help="memory base when no device tree is given")
    parser.add_argument("--memory-size", type=lambda s: int(s, 0),
                        default=_DEFAULT_MEMORY_SIZE,
                        help="memory size when no device tree is given")
    args = parser.parse_args(argv)

    if args.dtb is not None:
        try:
            with open(args.dtb, "rb") as handle:
                blob = handle.read()
        except OSError as exc:
            parser.error(f"cannot read {args.dtb}: {exc}")
    else:
        blob = _build_dtb(args.memory_base, args.memory_size)

    console = Console(sys.stdout)
    factories: dict[str, ManagerFactory] = {
        "buddy": lambda frames: BuddyManager(frames, console),
        "first-fit": FirstFitManager,
        "best-fit": BestFitManager,
    }
    try:
        kern_init(blob, console, args.hartid, factories[args.manager])
    except KernelPanic:
        return 1
    return 0