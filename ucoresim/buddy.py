"""Buddy-system physical page allocator."""

from __future__ import annotations

from collections import deque
from typing import Any

from .console import Console
from .manager import PmmManager
from .memlayout import MASK64, PGSIZE, FrameTable, Page, PageFlag

BUDDY_MAX_ORDER = 20
BUDDY_MIN_ORDER = 0


def _ensure(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


def get_order(n: int) -> int:
    """Smallest order whose block of ``2**order`` pages holds ``n`` pages."""
    if n < 0:
        raise ValueError("page count must not be negative")
    if n == 0:
        return 0
    return (n - 1).bit_length()


class BuddyManager(PmmManager):
    """Allocates power-of-two blocks, splitting and merging buddies.

    Each order keeps its own free list; the most recently added block is
    handed out first. Only the largest power-of-two prefix of the memory
    given to :meth:`init_memmap` is managed.
    """

    name = "buddy_pmm_manager"

    def __init__(self, frames: FrameTable, console: Console | None = None) -> None:
        super().__init__(frames)
        self.console = console
        self._free: list[deque[Page]] = [deque() for _ in range(BUDDY_MAX_ORDER + 1)]
        self._base: Page | None = None
        self._total_pages = 0

    def _log(self, fmt: str, *args: Any) -> None:
        if self.console is not None:
            self.console.cprintf(fmt, *args)

    def _addr(self, page: Page | None) -> int:
        return 0 if page is None else self.frames.page2pa(page)

    def init(self) -> None:
        """Empty every free list."""
        self._log("[buddy] init start\n")
        self._free = [deque() for _ in range(BUDDY_MAX_ORDER + 1)]
        self._base = None
        self._total_pages = 0
        self._log("[buddy] init complete\n")

    def init_memmap(self, base: Page, n: int) -> None:
        """Manage the largest power-of-two run of the ``n`` pages at ``base``."""
        if n > 1 << BUDDY_MAX_ORDER:
            self._log(
                "[buddy] warning: memory size %lu pages exceeds maximum manageable "
                "size %lu pages\n", n, 1 << BUDDY_MAX_ORDER)
            raise ValueError("memory exceeds the largest buddy block")
        if n <= 0:
            raise ValueError("page count must be positive")
        self._log("[buddy] init_memmap: base=%p, n=%lu\n", self._addr(base), n)

        pages = [base + offset for offset in range(n)]
        if not all(page.reserved for page in pages):
            raise ValueError("init_memmap expects reserved pages")
        self._base = base
        self._total_pages = n
        for page in pages:
            page.flags = PageFlag(0)
            page.property = 0
            page.ref = 0

        max_order = n.bit_length() - 1
        self._log("[buddy] total_pages=%lu, max_order=%u\n", n, max_order)

        base.property = 1 << max_order
        base.free_head = True
        self._free[max_order].appendleft(base)
        self._log("[buddy] added %lu pages as order %u block\n", 1 << max_order, max_order)

    def get_buddy(self, page: Page | None, order: int) -> Page | None:
        """The buddy of the order-``order`` block at ``page``, if it is managed."""
        if page is None or order >= BUDDY_MAX_ORDER or self._base is None:
            return None
        index = page.index - self._base.index
        if index < 0:
            return None
        buddy_index = index ^ (1 << order)
        if buddy_index >= self._total_pages:
            return None
        return self.frames[self._base.index + buddy_index]

    def alloc_pages(self, n: int) -> Page | None:
        """Allocate a block of ``2**get_order(n)`` pages; None when impossible."""
        if n < 0:
            raise ValueError("page count must not be negative")
        if n == 0:
            return None

        req_order = get_order(n)
        if req_order > BUDDY_MAX_ORDER:
            self._log("[buddy] alloc failed: order %u > max_order %d\n",
                      req_order, BUDDY_MAX_ORDER)
            return None
        self._log("[buddy] alloc: n=%lu -> order=%u\n", n, req_order)

        found = next(
            (order for order in range(req_order, BUDDY_MAX_ORDER + 1) if self._free[order]),
            None,
        )
        if found is None:
            self._log("[buddy] alloc failed: no memory available\n")
            return None
        page = self._free[found].popleft()
        self._log("[buddy] found block at order %u, page=%p\n", found, self._addr(page))

        order = found
        while order > req_order:
            order -= 1
            half = 1 << order
            buddy = page + half
            buddy.property = half
            buddy.free_head = True
            self._free[order].appendleft(buddy)
            self._log("[buddy] split: order %u -> %u, buddy at %p\n",
                      order + 1, order, self._addr(buddy))

        page.property = 1 << req_order
        page.free_head = False
        page.ref = 1
        self._log("[buddy] alloc success: %lu pages at %p\n", 1 << req_order, self._addr(page))
        return page

    def free_pages(self, base: Page | None, n: int) -> None:
        """Free the block at ``base`` and merge it with free buddies."""
        if base is None or n == 0:
            return
        if n < 0:
            raise ValueError("page count must not be negative")

        order = get_order(n)
        self._log("[buddy] free: %lu pages at %p -> order=%u\n", n, self._addr(base), order)
        base.property = 1 << order
        base.free_head = True
        base.ref = 0

        current = base
        current_order = order
        while current_order < BUDDY_MAX_ORDER:
            buddy = self.get_buddy(current, current_order)
            if (buddy is None or not buddy.free_head
                    or buddy.property != 1 << current_order
                    or buddy not in self._free[current_order]):
                break
            self._free[current_order].remove(buddy)
            if current > buddy:
                current, buddy = buddy, current
            # The upper half no longer heads a block of its own.
            buddy.free_head = False
            current_order += 1
            self._log("[buddy] merge: order %u -> %u, base=%p\n",
                      current_order - 1, current_order, self._addr(current))

        current.property = 1 << current_order
        current.free_head = True
        self._free[current_order].appendleft(current)
        self._log("[buddy] free complete: added order %u block at %p\n",
                  current_order, self._addr(current))

    def nr_free_pages(self) -> int:
        """Number of free pages over all orders."""
        total = sum(len(blocks) << order for order, blocks in enumerate(self._free))
        self._log("[buddy] nr_free_pages: %lu\n", total)
        return total

    def nr_free_at(self, order: int) -> int:
        """Number of free blocks of the given order."""
        if not BUDDY_MIN_ORDER <= order <= BUDDY_MAX_ORDER:
            raise ValueError("order out of range")
        return len(self._free[order])

    def _basic_check(self) -> None:
        self._log("=== Buddy System Basic Check Start ===\n")
        p0 = self.alloc_pages(1)
        p1 = self.alloc_pages(1)
        p2 = self.alloc_pages(1)
        _ensure(p0 is not None and p1 is not None and p2 is not None,
                "single page allocation failed")
        _ensure(p0 is not p1 and p0 is not p2 and p1 is not p2,
                "allocated pages are not distinct")
        _ensure(p0.ref == 1 and p1.ref == 1 and p2.ref == 1,
                "allocated pages lack a reference")
        limit = self.frames.npage * PGSIZE
        for page in (p0, p1, p2):
            _ensure(self.frames.page2pa(page) < limit, "page address out of range")
        self._log("  Allocated 3 single pages successfully ☑️\n")

        self.nr_free_pages()
        _ensure(self.alloc_pages(1 << (BUDDY_MAX_ORDER + 1)) is None,
                "oversized allocation succeeded")
        self._log("  Large allocation correctly failed ☑️\n")

        self.free_pages(p0, 1)
        self.free_pages(p1, 1)
        self.free_pages(p2, 1)
        self.nr_free_pages()
        self._log("  Freed 3 pages, free count restored ☑️\n")

        p0 = self.alloc_pages(1)
        p1 = self.alloc_pages(1)
        p2 = self.alloc_pages(1)
        _ensure(p0 is not None and p1 is not None and p2 is not None,
                "reallocation failed")
        p_extra = self.alloc_pages(1)
        if p_extra is None:
            self._log("  Correctly failed to allocate extra page (memory full) ☑️\n")

        self.free_pages(p0, 1)
        self.free_pages(p1, 1)
        self.free_pages(p2, 1)
        if p_extra is not None:
            self.free_pages(p_extra, 1)
        self._log("=== Buddy System Basic Check Passed ===\n")

    def check(self) -> None:
        """Exercise the allocator, logging progress; raise AssertionError on failure."""
        ok, bad = "☑️", "‼️"
        self._log("\n========== Buddy System Comprehensive Check ==========\n")

        self._log("1. Initial state check:\n")
        initial_free = self.nr_free_pages()
        self._log("   Initial free pages: %lu\n", initial_free)
        _ensure(initial_free > 0, "no free pages")

        self._log("2. Variable size allocation test:\n")
        p_small = self.alloc_pages(1)
        _ensure(p_small is not None, "single page allocation failed")
        self._log("   Allocated 1 page at %p ☑️\n", self._addr(p_small))
        p_medium = self.alloc_pages(4)
        if p_medium is not None:
            self._log("   Allocated 4 pages at %p ☑️\n", self._addr(p_medium))
        else:
            self._log("   Failed to allocate 4 pages (may be normal) ‼️\n")
        p_large = self.alloc_pages(16)
        if p_large is not None:
            self._log("   Allocated 16 pages at %p ☑️\n", self._addr(p_large))
        else:
            self._log("   Failed to allocate 16 pages (may be normal) ‼️\n")
        after_alloc_free = self.nr_free_pages()
        self._log("   Free pages after allocations: %lu (was %lu) %s\n",
                  after_alloc_free, initial_free,
                  ok if after_alloc_free < initial_free else bad)

        self._log("3. Allocation failure test:\n")
        _ensure(self.alloc_pages(1 << (BUDDY_MAX_ORDER + 1)) is None,
                "oversized allocation succeeded")
        self._log("   Correctly rejected oversized request ☑️\n")

        self._log("4. Free and merge test:\n")
        self.free_pages(p_small, 1)
        self._log("   Freed 1 page ☑️\n")
        if p_medium is not None:
            self.free_pages(p_medium, 4)
            self._log("   Freed 4 pages ☑️\n")
        if p_large is not None:
            self.free_pages(p_large, 16)
            self._log("   Freed 16 pages ☑️\n")
        final_free = self.nr_free_pages()
        self._log("   Final free pages: %lu (initial: %lu) %s\n",
                  final_free, initial_free, ok if final_free == initial_free else bad)

        self._log("5. Buddy relationship test:\n")
        p1 = self.alloc_pages(2)
        p2 = self.alloc_pages(2)
        if p1 is not None and p2 is not None:
            self._log("   Allocated two 2-page blocks ☑️\n")
            diff = ((self._addr(p2) - self._addr(p1)) & MASK64) // PGSIZE
            self._log("   Address difference: %lu pages\n", diff)
            calculated = self.get_buddy(p1, 1)
            self._log("   Calculated buddy for %p: %p %s\n",
                      self._addr(p1), self._addr(calculated),
                      ok if calculated is p2 else bad)
            self.free_pages(p1, 2)
            self.free_pages(p2, 2)
            self._log("   Freed both blocks ☑️\n")
        else:
            self._log("   Could not allocate two 2-page blocks (memory limited)\n")

        self._log("6. Boundary case test:\n")
        _ensure(self.alloc_pages(0) is None, "zero page request succeeded")
        self._log("   Zero page request correctly rejected ☑️\n")
        self.free_pages(None, 1)
        self._log("   NULL free correctly handled ☑️\n")

        self._log("7. Free list state check:\n")
        total_from_lists = 0
        for order, blocks in enumerate(self._free):
            if blocks:
                self._log("   Order %2d: %u blocks (%lu pages)\n",
                          order, len(blocks), len(blocks) << order)
                total_from_lists += len(blocks) << order
        self._log("   Total from lists: %lu, nr_free_pages(): %lu %s\n",
                  total_from_lists, self.nr_free_pages(),
                  ok if total_from_lists == self.nr_free_pages() else bad)

        self._log("8. Split and merge test:\n")
        p_big = self.alloc_pages(8)
        if p_big is not None:
            self._log("   Allocated 8-page block at %p ☑️\n", self._addr(p_big))
            self._log("   Checking split behavior...\n")
            self.free_pages(p_big, 8)
            self._log("   Freed 8-page block ☑️\n")
            after_big_free = self.nr_free_pages()
            self._log("   Free pages after big free: %lu %s\n",
                      after_big_free, ok if after_big_free == initial_free else bad)
        else:
            self._log("   Could not allocate 8-page block\n")

        self._log("========== Buddy System Check Completed ==========\n")
        self._basic_check()

        self._log("\n")
        if final_free == initial_free:
            self._log("🎉 ALL BUDDY SYSTEM CHECKS PASSED! 🎉\n")
        else:
            self._log("❗💢  Some checks may have issues, but core functionality works\n")

        self._log("\nFinal Statistics:\n")
        self._log("  Maximum order: %d\n", BUDDY_MAX_ORDER)
        self._log("  Final free pages: %lu\n", self.nr_free_pages())
        efficiency = (self.nr_free_pages() * 100 / self._total_pages
                      if self._total_pages else 0.0)
        self._log("  Memory efficiency: %.1f%%\n", efficiency)