"""Physical memory layout, Sv39 address helpers and page frame descriptors."""

from __future__ import annotations

from collections.abc import Iterator
from enum import IntFlag
from typing import overload

MASK64 = (1 << 64) - 1

# Page geometry.
PGSIZE = 4096
PGSHIFT = 12

# Kernel address space: all of physical memory is mapped at a fixed offset.
KERNBASE = 0xFFFFFFFFC0200000
KMEMSIZE = 0x7E00000
KERNTOP = KERNBASE + KMEMSIZE

PHYSICAL_MEMORY_END = 0x88000000
PHYSICAL_MEMORY_OFFSET = 0xFFFFFFFF40000000
KERNEL_BEGIN_PADDR = 0x80200000
KERNEL_BEGIN_VADDR = 0xFFFFFFFFC0200000

KSTACKPAGE = 2
KSTACKSIZE = KSTACKPAGE * PGSIZE

# Physical memory starts here on the target machine.
DRAM_BASE = 0x80000000
NBASE = DRAM_BASE // PGSIZE

# Sv39 page table geometry.
SV39_NENTRY = 512
SV39_PGSIZE = 4096
SV39_PGSHIFT = 12
SV39_PTSIZE = PGSIZE * SV39_NENTRY
SV39_PTSHIFT = 21
SV39_VPN0SHIFT = 12
SV39_VPN1SHIFT = 21
SV39_VPN2SHIFT = 30
SV39_PTE_PPN_SHIFT = 10

SV39_PT0 = 0
SV39_PT1 = 1
SV39_PT2 = 2

# Page table entry fields.
PTE_V = 0x001
PTE_R = 0x002
PTE_W = 0x004
PTE_X = 0x008
PTE_U = 0x010
PTE_G = 0x020
PTE_A = 0x040
PTE_D = 0x080
PTE_SOFT = 0x300

PAGE_TABLE_DIR = PTE_V
READ_ONLY = PTE_R | PTE_V
READ_WRITE = PTE_R | PTE_W | PTE_V
EXEC_ONLY = PTE_X | PTE_V
READ_EXEC = PTE_R | PTE_X | PTE_V
READ_WRITE_EXEC = PTE_R | PTE_W | PTE_X | PTE_V
PTE_USER = PTE_R | PTE_W | PTE_X | PTE_U | PTE_V


def round_down(a: int, n: int) -> int:
    """Round ``a`` down to the nearest multiple of ``n``."""
    if n <= 0:
        raise ValueError("rounding unit must be positive")
    return a - a % n


def round_up(a: int, n: int) -> int:
    """Round ``a`` up to the nearest multiple of ``n``."""
    if n <= 0:
        raise ValueError("rounding unit must be positive")
    return round_down(a + n - 1, n)


def ppn(la: int) -> int:
    """Page number of an address."""
    return (la & MASK64) >> PGSHIFT


def sv39_vpn(la: int, n: int) -> int:
    """The ``n``-th 9-bit virtual page number field of an Sv39 address."""
    if n not in (SV39_PT0, SV39_PT1, SV39_PT2):
        raise ValueError("Sv39 has three page table levels")
    return ((la & MASK64) >> PGSHIFT >> (9 * n)) & 0x1FF


def sv39_pgaddr(v2: int, v1: int, v0: int, offset: int) -> int:
    """Build an Sv39 address from its three indexes and a page offset."""
    return (
        v2 << SV39_VPN2SHIFT
        | v1 << SV39_VPN1SHIFT
        | v0 << SV39_VPN0SHIFT
        | offset
    ) & MASK64


def sv39_pte_addr(pte: int) -> int:
    """Address held in a page table or page directory entry."""
    return (((pte & MASK64) & ~0x1FF) << 3) & MASK64


class PageFlag(IntFlag):
    """State bits of a page frame."""

    RESERVED = 1 << 0
    PROPERTY = 1 << 1


class Page:
    """Descriptor of one physical page frame.

    ``property`` holds the number of pages in the free block this page heads;
    pages compare by their position in the frame table, and ``page + n``
    yields the page ``n`` frames further on.
    """

    __slots__ = ("_frames", "index", "ref", "flags", "property")

    def __init__(self, frames: FrameTable, index: int) -> None:
        self._frames = frames
        self.index = index
        self.ref = 0
        self.flags = PageFlag(0)
        self.property = 0

    @property
    def frames(self) -> FrameTable:
        """The frame table this page belongs to."""
        return self._frames

    @property
    def reserved(self) -> bool:
        """True when the kernel reserves the page."""
        return bool(self.flags & PageFlag.RESERVED)

    @reserved.setter
    def reserved(self, value: bool) -> None:
        if value:
            self.flags |= PageFlag.RESERVED
        else:
            self.flags &= ~PageFlag.RESERVED

    @property
    def free_head(self) -> bool:
        """True when the page heads a free block of ``property`` pages."""
        return bool(self.flags & PageFlag.PROPERTY)

    @free_head.setter
    def free_head(self, value: bool) -> None:
        if value:
            self.flags |= PageFlag.PROPERTY
        else:
            self.flags &= ~PageFlag.PROPERTY

    def __add__(self, n: int) -> Page:
        if not isinstance(n, int):
            return NotImplemented
        return self._frames[self.index + n]

    @overload
    def __sub__(self, other: Page) -> int: ...

    @overload
    def __sub__(self, other: int) -> Page: ...

    def __sub__(self, other):
        if isinstance(other, Page):
            if other._frames is not self._frames:
                raise ValueError("pages belong to different frame tables")
            return self.index - other.index
        if isinstance(other, int):
            return self._frames[self.index - other]
        return NotImplemented

    def _key(self, other: object) -> int:
        if not isinstance(other, Page):
            raise TypeError("pages compare only with pages")
        if other._frames is not self._frames:
            raise ValueError("pages belong to different frame tables")
        return other.index

    def __lt__(self, other: Page) -> bool:
        return self.index < self._key(other)

    def __le__(self, other: Page) -> bool:
        return self.index <= self._key(other)

    def __gt__(self, other: Page) -> bool:
        return self.index > self._key(other)

    def __ge__(self, other: Page) -> bool:
        return self.index >= self._key(other)

    def __repr__(self) -> str:
        return (
            f"Page(index={self.index}, ref={self.ref}, "
            f"flags={int(self.flags):#x}, property={self.property})"
        )


class FrameTable:
    """The array of page descriptors covering physical memory from ``base_ppn``."""

    def __init__(self, count: int, base_ppn: int = NBASE) -> None:
        if count < 0:
            raise ValueError("frame count must not be negative")
        if base_ppn < 0:
            raise ValueError("base page number must not be negative")
        self.base_ppn = base_ppn
        self._pages = [Page(self, index) for index in range(count)]

    @property
    def npage(self) -> int:
        """Number of the first page past the end of the table."""
        return self.base_ppn + len(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def __iter__(self) -> Iterator[Page]:
        return iter(self._pages)

    def __getitem__(self, index: int) -> Page:
        if not isinstance(index, int):
            raise TypeError("frame index must be an integer")
        if not 0 <= index < len(self._pages):
            raise IndexError("frame index out of range")
        return self._pages[index]

    def _own(self, page: Page) -> Page:
        if page.frames is not self:
            raise ValueError("page does not belong to this frame table")
        return page

    def page2ppn(self, page: Page) -> int:
        """Physical page number of ``page``."""
        return self._own(page).index + self.base_ppn

    def page2pa(self, page: Page) -> int:
        """Physical address of ``page``."""
        return self.page2ppn(page) << PGSHIFT

    def pa2page(self, pa: int) -> Page:
        """The page holding physical address ``pa``."""
        number = ppn(pa)
        if not self.base_ppn <= number < self.npage:
            raise ValueError(f"pa2page called with invalid pa {pa:#x}")
        return self._pages[number - self.base_ppn]