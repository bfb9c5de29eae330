import pytest

from ucoresim.firstfit import FirstFitManager
from ucoresim.memlayout import FrameTable


def make_manager(count=10):
    frames = FrameTable(count)
    for page in frames:
        page.reserved = True
    manager = FirstFitManager(frames)
    manager.init()
    manager.init_memmap(frames[0], count)
    return manager, frames


def heads(frames):
    return [(page.index, page.property) for page in frames if page.free_head]


def test_init_memmap_creates_single_block():
    manager, frames = make_manager(10)
    assert manager.nr_free_pages() == 10
    assert heads(frames) == [(0, 10)]
    assert not frames[0].reserved


def test_init_memmap_rejects_unreserved_pages():
    frames = FrameTable(4)
    manager = FirstFitManager(frames)
    manager.init()
    with pytest.raises(ValueError):
        manager.init_memmap(frames[0], 4)


def test_init_memmap_rejects_zero_pages():
    manager, frames = make_manager(4)
    with pytest.raises(ValueError):
        manager.init_memmap(frames[0], 0)


def test_alloc_splits_block():
    manager, frames = make_manager(10)
    page = manager.alloc_pages(3)
    assert page is frames[0]
    assert not page.free_head
    assert heads(frames) == [(3, 7)]
    assert manager.nr_free_pages() == 7


def test_alloc_more_than_free_returns_none():
    manager, frames = make_manager(10)
    assert manager.alloc_pages(11) is None
    assert manager.nr_free_pages() == 10


def test_alloc_zero_raises():
    manager, _ = make_manager(4)
    with pytest.raises(ValueError):
        manager.alloc_pages(0)


def test_first_fit_picks_lowest_large_enough_block():
    manager, frames = make_manager(10)
    manager.alloc_pages(10)
    manager.free_pages(frames[0], 3)
    manager.free_pages(frames[5], 2)
    page = manager.alloc_pages(2)
    assert page is frames[0]
    assert heads(frames) == [(2, 1), (5, 2)]


def test_first_fit_skips_too_small_block():
    manager, frames = make_manager(10)
    manager.alloc_pages(10)
    manager.free_pages(frames[0], 1)
    manager.free_pages(frames[4], 3)
    assert manager.alloc_pages(2) is frames[4]
    assert manager.nr_free_pages() == 2


def test_free_merges_both_neighbours():
    manager, frames = make_manager(10)
    manager.alloc_pages(10)
    manager.free_pages(frames[0], 3)
    manager.free_pages(frames[6], 4)
    manager.free_pages(frames[3], 3)
    assert heads(frames) == [(0, 10)]
    assert manager.nr_free_pages() == 10


def test_free_keeps_separate_blocks_apart():
    manager, frames = make_manager(10)
    manager.alloc_pages(10)
    manager.free_pages(frames[0], 2)
    manager.free_pages(frames[5], 2)
    assert heads(frames) == [(0, 2), (5, 2)]


def test_double_free_raises():
    manager, frames = make_manager(6)
    page = manager.alloc_pages(2)
    manager.free_pages(page, 2)
    with pytest.raises(ValueError):
        manager.free_pages(page, 2)


def test_alloc_free_round_trip_restores_state():
    manager, frames = make_manager(16)
    allocated = [manager.alloc_pages(n) for n in (1, 2, 3, 4)]
    assert manager.nr_free_pages() == 6
    for page, n in zip(reversed(allocated), (4, 3, 2, 1)):
        manager.free_pages(page, n)
    assert heads(frames) == [(0, 16)]
    assert manager.nr_free_pages() == 16


def test_regions_are_kept_in_address_order():
    frames = FrameTable(20)
    for page in frames:
        page.reserved = True
    manager = FirstFitManager(frames)
    manager.init()
    manager.init_memmap(frames[10], 5)
    manager.init_memmap(frames[0], 5)
    assert manager.alloc_pages(5) is frames[0]
    assert manager.alloc_pages(5) is frames[10]
    assert manager.alloc_page() is None


def test_init_resets_free_list():
    manager, _ = make_manager(8)
    manager.init()
    assert manager.nr_free_pages() == 0
    assert manager.alloc_page() is None


def test_alloc_page_and_free_page():
    manager, frames = make_manager(4)
    page = manager.alloc_page()
    assert page is frames[0]
    assert manager.nr_free_pages() == 3
    manager.free_page(page)
    assert heads(frames) == [(0, 4)]


def test_free_counter_matches_block_sizes():
    manager, frames = make_manager(32)
    live = []
    for n in (3, 5, 1, 7, 2):
        live.append((manager.alloc_pages(n), n))
    for page, n in live[::2]:
        manager.free_pages(page, n)
    assert manager.nr_free_pages() == sum(size for _, size in heads(frames))


def test_check_passes_and_restores_state():
    manager, frames = make_manager(16)
    manager.check()
    assert manager.nr_free_pages() == 16
    assert heads(frames) == [(0, 16)]


def test_check_detects_corrupted_counter():
    manager, frames = make_manager(16)
    manager._nr_free += 1
    with pytest.raises(AssertionError):
        manager.check()
    assert manager.nr_free_pages() == 17
    assert heads(frames) == [(0, 16)]


def test_manager_name():
    manager, _ = make_manager(4)
    assert manager.name == "default_pmm_manager"
    assert "default_pmm_manager" in repr(manager)