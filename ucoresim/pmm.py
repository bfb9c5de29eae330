"""Physical memory setup: frame table, reserved pages and the page allocator."""

from __future__ import annotations

import inspect
import os
from collections.abc import Callable
from typing import Any

from .buddy import BuddyManager
from .console import Console
from .manager import PmmManager
from .memlayout import (
    KERNBASE,
    KERNTOP,
    NBASE,
    PGSIZE,
    PHYSICAL_MEMORY_OFFSET,
    FrameTable,
    Page,
    round_down,
    round_up,
)

# Size of one page descriptor in the kernel image.
PAGE_DESCRIPTOR_SIZE = 40

ManagerFactory = Callable[[FrameTable], PmmManager]


def _frame_count(memory_base: int, memory_size: int) -> int:
    maxpa = min(memory_base + memory_size, KERNTOP)
    return max(0, maxpa // PGSIZE - NBASE)


class PhysicalMemory:
    """Builds the frame table and hands the free memory to a page allocator."""

    def __init__(self, manager_factory: ManagerFactory | None = None,
                 console: Console | None = None) -> None:
        self.console = Console() if console is None else console
        if manager_factory is None:
            def manager_factory(frames: FrameTable) -> PmmManager:
                return BuddyManager(frames, self.console)
        self._factory = manager_factory
        self.frames: FrameTable | None = None
        self.manager: PmmManager | None = None
        self.va_pa_offset = PHYSICAL_MEMORY_OFFSET
        self.pages_kva: int | None = None

    def _panic(self, fmt: str, *args: Any) -> None:
        frame = inspect.currentframe().f_back
        self.console.panic(os.path.basename(frame.f_code.co_filename),
                           frame.f_lineno, fmt, *args)

    def init(self, memory_base: int, memory_size: int, kernel_end: int) -> None:
        """Set up the allocator, give it the free memory and run its self-check."""
        self.frames = FrameTable(_frame_count(memory_base, memory_size), NBASE)
        self.manager = self._factory(self.frames)
        self.console.cprintf("memory management: %s\n", self.manager.name)
        self.manager.init()

        self.page_init(memory_base, memory_size, kernel_end)

        self.manager.check()
        self.console.cprintf("check_alloc_page() succeeded!\n")

    def page_init(self, memory_base: int, memory_size: int, kernel_end: int) -> None:
        """Reserve every frame, then free the memory after the descriptor array."""
        if self.manager is None or self.frames is None:
            raise RuntimeError("page allocator not set up")
        self.va_pa_offset = PHYSICAL_MEMORY_OFFSET

        if memory_size == 0:
            self._panic("DTB memory info not available")
        mem_begin = memory_base
        mem_end = memory_base + memory_size

        self.console.cprintf("physcial memory map:\n")
        self.console.cprintf("  memory: 0x%016lx, [0x%016lx, 0x%016lx].\n",
                             memory_size, mem_begin, mem_end - 1)

        count = _frame_count(memory_base, memory_size)
        if len(self.frames) != count:
            raise ValueError("memory layout does not match the frame table")

        # The descriptor array sits right after the kernel image.
        self.pages_kva = round_up(kernel_end, PGSIZE)
        for page in self.frames:
            page.reserved = True

        freemem = self.paddr(self.pages_kva + PAGE_DESCRIPTOR_SIZE * count)
        mem_begin = round_up(freemem, PGSIZE)
        mem_end = round_down(mem_end, PGSIZE)
        if freemem < mem_end:
            self.manager.init_memmap(self.frames.pa2page(mem_begin),
                                     (mem_end - mem_begin) // PGSIZE)

    def _require_manager(self) -> PmmManager:
        if self.manager is None:
            raise RuntimeError("page allocator not set up")
        return self.manager

    def alloc_pages(self, n: int) -> Page | None:
        """Allocate ``n`` contiguous pages."""
        return self._require_manager().alloc_pages(n)

    def free_pages(self, base: Page, n: int) -> None:
        """Free ``n`` pages starting at ``base``."""
        self._require_manager().free_pages(base, n)

    def nr_free_pages(self) -> int:
        """Number of free pages."""
        return self._require_manager().nr_free_pages()

    def paddr(self, kva: int) -> int:
        """Physical address of a kernel virtual address; panics below KERNBASE."""
        if kva < KERNBASE:
            self._panic("PADDR called with invalid kva %08lx", kva)
        return kva - self.va_pa_offset