"""Best-fit physical page allocator over an address-ordered free list."""

from __future__ import annotations

from bisect import bisect_left

from .manager import PmmManager
from .memlayout import PGSIZE, FrameTable, Page, PageFlag


def _ensure(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


class BestFitManager(PmmManager):
    """Hands out the smallest free block that is large enough.

    Free blocks are kept in address order; among equally small blocks the
    lowest-addressed one wins. A block larger than the request is split and
    its tail stays free in the same place. Freed blocks merge with free
    neighbours on either side.
    """

    name = "best_fit_pmm_manager"

    def __init__(self, frames: FrameTable) -> None:
        super().__init__(frames)
        self._free: list[Page] = []
        self._nr_free = 0

    def init(self) -> None:
        """Empty the free list."""
        self._free = []
        self._nr_free = 0

    def _insert(self, base: Page) -> int:
        position = bisect_left(self._free, base)
        self._free.insert(position, base)
        return position

    def init_memmap(self, base: Page, n: int) -> None:
        """Add ``n`` reserved pages starting at ``base`` as one free block."""
        if n <= 0:
            raise ValueError("page count must be positive")
        pages = [base + offset for offset in range(n)]
        if not all(page.reserved for page in pages):
            raise ValueError("init_memmap expects reserved pages")
        for page in pages:
            page.flags = PageFlag(0)
            page.ref = 0
        base.property = n
        base.free_head = True
        self._nr_free += n
        self._insert(base)

    def alloc_pages(self, n: int) -> Page | None:
        """Allocate ``n`` pages from the smallest block that holds them."""
        if n <= 0:
            raise ValueError("page count must be positive")
        if n > self._nr_free:
            return None
        candidates = [
            (block.property, i) for i, block in enumerate(self._free)
            if block.property >= n
        ]
        if not candidates:
            return None
        _, position = min(candidates)
        page = self._free.pop(position)
        if page.property > n:
            rest = page + n
            rest.property = page.property - n
            rest.free_head = True
            self._free.insert(position, rest)
        self._nr_free -= n
        page.free_head = False
        return page

    def free_pages(self, base: Page, n: int) -> None:
        """Return ``n`` pages from ``base`` and merge with adjacent free blocks."""
        if n <= 0:
            raise ValueError("page count must be positive")
        pages = [base + offset for offset in range(n)]
        if any(page.reserved or page.free_head for page in pages):
            raise ValueError("free_pages called on reserved or already free pages")
        for page in pages:
            page.flags = PageFlag(0)
            page.ref = 0
        base.property = n
        base.free_head = True
        self._nr_free += n
        position = self._insert(base)

        if position > 0:
            prev = self._free[position - 1]
            if prev.index + prev.property == base.index:
                prev.property += base.property
                base.free_head = False
                del self._free[position]
                base = prev
                position -= 1

        if position + 1 < len(self._free):
            nxt = self._free[position + 1]
            if base.index + base.property == nxt.index:
                base.property += nxt.property
                nxt.free_head = False
                del self._free[position + 1]

    def nr_free_pages(self) -> int:
        """Number of free pages."""
        return self._nr_free

    def _basic_check(self) -> None:
        p0 = self.alloc_page()
        p1 = self.alloc_page()
        p2 = self.alloc_page()
        _ensure(p0 is not None and p1 is not None and p2 is not None,
                "single page allocation failed")
        _ensure(p0 is not p1 and p0 is not p2 and p1 is not p2,
                "allocated pages are not distinct")
        _ensure(p0.ref == 0 and p1.ref == 0 and p2.ref == 0,
                "allocated pages have references")
        limit = self.frames.npage * PGSIZE
        for page in (p0, p1, p2):
            _ensure(self.frames.page2pa(page) < limit, "page address out of range")

        free_store, nr_free_store = self._free, self._nr_free
        self._free, self._nr_free = [], 0
        _ensure(self.alloc_page() is None, "allocation from empty list succeeded")

        self.free_page(p0)
        self.free_page(p1)
        self.free_page(p2)
        _ensure(self._nr_free == 3, "free count wrong after freeing three pages")

        p0 = self.alloc_page()
        p1 = self.alloc_page()
        p2 = self.alloc_page()
        _ensure(p0 is not None and p1 is not None and p2 is not None,
                "reallocation failed")
        _ensure(self.alloc_page() is None, "allocation beyond free pages succeeded")

        self.free_page(p0)
        _ensure(bool(self._free), "free list empty after free")
        p = self.alloc_page()
        _ensure(p is p0, "freed page not reused")
        _ensure(self.alloc_page() is None, "allocation beyond free pages succeeded")
        _ensure(self._nr_free == 0, "free count not zero")

        self._free, self._nr_free = free_store, nr_free_store
        self.free_page(p)
        self.free_page(p1)
        self.free_page(p2)

    def check(self) -> None:
        """Exercise the allocator; raise AssertionError on misbehaviour."""
        count = len(self._free)
        total = 0
        for page in self._free:
            _ensure(page.free_head, "free list entry is not a block head")
            total += page.property
        _ensure(total == self.nr_free_pages(), "free list total disagrees with count")

        self._basic_check()

        p0 = self.alloc_pages(5)
        _ensure(p0 is not None, "five page allocation failed")
        _ensure(not p0.free_head, "allocated block still marked free")

        free_store = self._free
        self._free = []
        _ensure(self.alloc_page() is None, "allocation from empty list succeeded")

        nr_free_store = self._nr_free
        self._nr_free = 0

        # Free pages 1-2 and 4 of the five, leaving holes of two and one.
        self.free_pages(p0 + 1, 2)
        self.free_pages(p0 + 4, 1)
        _ensure(self.alloc_pages(4) is None, "oversized allocation succeeded")
        _ensure((p0 + 1).free_head and (p0 + 1).property == 2,
                "freed block has wrong size")
        p1 = self.alloc_pages(1)
        _ensure(p1 is not None, "single page allocation failed")
        _ensure(self.alloc_pages(2) is not None, "two page allocation failed")
        _ensure(p0 + 4 is p1, "best fit did not pick the smallest block")

        self.free_pages(p0, 5)
        p0 = self.alloc_pages(5)
        _ensure(p0 is not None, "merged blocks could not satisfy five pages")
        _ensure(self.alloc_page() is None, "allocation beyond free pages succeeded")

        _ensure(self._nr_free == 0, "free count not zero")
        self._nr_free = nr_free_store
        self._free = free_store
        self.free_pages(p0, 5)

        for page in self._free:
            count -= 1
            total -= page.property
        _ensure(count == 0, "free block count not restored")
        _ensure(total == 0, "free page total not restored")