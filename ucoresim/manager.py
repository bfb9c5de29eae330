"""The interface every physical page allocator implements."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .memlayout import FrameTable, Page


class PmmManager(ABC):
    """A physical memory manager allocating runs of pages from a frame table."""

    name = "pmm_manager"

    def __init__(self, frames: FrameTable) -> None:
        self.frames = frames

    @abstractmethod
    def init(self) -> None:
        """Reset the manager's bookkeeping."""

    @abstractmethod
    def init_memmap(self, base: Page, n: int) -> None:
        """Hand ``n`` free pages starting at ``base`` to the manager."""

    @abstractmethod
    def alloc_pages(self, n: int) -> Page | None:
        """Allocate ``n`` contiguous pages; return the first, or None."""

    @abstractmethod
    def free_pages(self, base: Page, n: int) -> None:
        """Return ``n`` pages starting at ``base`` to the manager."""

    @abstractmethod
    def nr_free_pages(self) -> int:
        """Number of free pages."""

    @abstractmethod
    def check(self) -> None:
        """Exercise the allocator and raise AssertionError on misbehaviour."""

    def alloc_page(self) -> Page | None:
        """Allocate a single page."""
        return self.alloc_pages(1)

    def free_page(self, page: Page) -> None:
        """Free a single page."""
        self.free_pages(page, 1)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"