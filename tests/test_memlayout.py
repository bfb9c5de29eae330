import pytest

from ucoresim.memlayout import (
    DRAM_BASE,
    KERNBASE,
    KERNEL_BEGIN_PADDR,
    KERNEL_BEGIN_VADDR,
    KERNTOP,
    NBASE,
    PGSIZE,
    PHYSICAL_MEMORY_END,
    PHYSICAL_MEMORY_OFFSET,
    PTE_V,
    FrameTable,
    Page,
    PageFlag,
    ppn,
    round_down,
    round_up,
    sv39_pgaddr,
    sv39_pte_addr,
    sv39_vpn,
)


def test_layout_addresses_map_to_matching_frames():
    assert ppn(KERNBASE - PHYSICAL_MEMORY_OFFSET) == ppn(KERNEL_BEGIN_PADDR)
    assert ppn(KERNEL_BEGIN_VADDR) == ppn(KERNBASE)
    assert round_down(KERNTOP - PHYSICAL_MEMORY_OFFSET, PGSIZE) == PHYSICAL_MEMORY_END
    assert ppn(DRAM_BASE) == NBASE
    frames = FrameTable(1, NBASE)
    assert frames.page2pa(frames[0]) == DRAM_BASE


@pytest.mark.parametrize("value", [0, 1, 4095, 4096, 4097, 123456789])
def test_rounding_invariants(value):
    down = round_down(value, PGSIZE)
    up = round_up(value, PGSIZE)
    assert down % PGSIZE == 0 and up % PGSIZE == 0
    assert down <= value <= up
    assert value - down < PGSIZE
    assert up - value < PGSIZE


def test_round_up_of_one_is_a_page():
    assert round_up(1, PGSIZE) == PGSIZE
    assert round_down(PGSIZE - 1, PGSIZE) == 0


def test_rounding_rejects_zero_unit():
    with pytest.raises(ValueError):
        round_down(10, 0)
    with pytest.raises(ValueError):
        round_up(10, 0)


def test_ppn_of_dram_base():
    assert ppn(DRAM_BASE) == NBASE
    assert ppn(DRAM_BASE + PGSIZE - 1) == NBASE


@pytest.mark.parametrize("v2,v1,v0,off", [(0, 0, 0, 0), (1, 2, 3, 4), (511, 511, 511, 4095)])
def test_sv39_pgaddr_round_trip(v2, v1, v0, off):
    la = sv39_pgaddr(v2, v1, v0, off)
    assert sv39_vpn(la, 2) == v2
    assert sv39_vpn(la, 1) == v1
    assert sv39_vpn(la, 0) == v0
    assert la % PGSIZE == off


def test_sv39_vpn_rejects_bad_level():
    with pytest.raises(ValueError):
        sv39_vpn(0, 3)


def test_sv39_pte_addr_drops_low_bits():
    assert sv39_pte_addr(0x1FF) == 0
    assert sv39_pte_addr(PTE_V) == 0
    assert sv39_pte_addr(0x200) == PGSIZE


def test_frame_table_indexing_and_length():
    frames = FrameTable(8)
    assert len(frames) == 8
    assert [page.index for page in frames] == list(range(8))
    assert frames[3] is frames[3]
    with pytest.raises(IndexError):
        frames[8]
    with pytest.raises(IndexError):
        frames[-1]


def test_page_to_address_round_trip():
    frames = FrameTable(16, NBASE)
    for page in frames:
        pa = frames.page2pa(page)
        assert frames.pa2page(pa) is page
        assert frames.pa2page(pa + PGSIZE - 1) is page
        assert frames.page2ppn(page) == ppn(pa)
    assert frames.page2pa(frames[0]) == DRAM_BASE
    assert frames.npage == NBASE + 16


def test_pa2page_rejects_out_of_range():
    frames = FrameTable(4, NBASE)
    with pytest.raises(ValueError):
        frames.pa2page(DRAM_BASE + 4 * PGSIZE)
    with pytest.raises(ValueError):
        frames.pa2page(DRAM_BASE - PGSIZE)


def test_page_from_other_table_rejected():
    a = FrameTable(4)
    b = FrameTable(4)
    with pytest.raises(ValueError):
        a.page2ppn(b[0])
    with pytest.raises(ValueError):
        a[1] - b[0]


def test_page_arithmetic_and_ordering():
    frames = FrameTable(10)
    p = frames[2]
    assert p + 3 is frames[5]
    assert (p + 3) - p == 3
    assert frames[5] - 3 is p
    assert p < frames[3]
    assert frames[3] > p
    assert p <= p and p >= p
    with pytest.raises(IndexError):
        frames[9] + 1


def test_page_flags():
    page = FrameTable(1)[0]
    assert page.flags == PageFlag(0)
    assert page.ref == 0 and page.property == 0
    page.reserved = True
    assert page.reserved and not page.free_head
    page.free_head = True
    assert page.flags == PageFlag.RESERVED | PageFlag.PROPERTY
    page.reserved = False
    assert page.flags == PageFlag.PROPERTY
    page.free_head = False
    assert not page.free_head and page.flags == PageFlag(0)


def test_negative_frame_count_rejected():
    with pytest.raises(ValueError):
        FrameTable(-1)


def test_page_belongs_to_its_table():
    frames = FrameTable(2)
    assert isinstance(frames[0], Page) and frames[0].frames is frames