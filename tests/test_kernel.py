import io
import struct

import pytest

from ucoresim.console import Console
from ucoresim.errors import KernelPanic
from ucoresim.firstfit import FirstFitManager
from ucoresim.kernel import kern_init, main, print_kerninfo
from ucoresim.memlayout import DRAM_BASE, KERNBASE, PGSIZE

MEM_SIZE = 0x400000


def _pad(data):
    return data + b"\0" * (-len(data) % 4)


def _dtb(base, size):
    strings = b"reg\0"
    body = (
        struct.pack(">I", 1) + _pad(b"\0")
        + struct.pack(">I", 1) + _pad(b"memory@80000000\0")
        + struct.pack(">III", 3, 16, 0) + struct.pack(">QQ", base, size)
        + struct.pack(">III", 2, 2, 9)
    )
    off_struct = 56
    off_strings = off_struct + len(body)
    header = struct.pack(">10I", 0xD00DFEED, off_strings + len(strings), off_struct,
                         off_strings, 40, 17, 16, 0, len(strings), len(body))
    return header + bytes(16) + body + strings


def test_print_kerninfo():
    out = io.StringIO()
    entry = KERNBASE
    print_kerninfo(Console(out), entry, entry + 0x100, entry + 0x200, entry + 5 * 1024)
    text = out.getvalue()
    assert text.startswith("Special kernel symbols:\n")
    assert f"  entry  0x{entry:016x} (virtual)\n" in text
    assert f"  end    0x{entry + 5 * 1024:016x} (virtual)\n" in text
    assert "Kernel executable memory footprint: 5KB\n" in text


def test_kern_init_boots_in_order():
    out = io.StringIO()
    pmm = kern_init(_dtb(DRAM_BASE, MEM_SIZE), Console(out), 0, FirstFitManager)
    text = out.getvalue()
    assert pmm.nr_free_pages() > 0
    assert len(pmm.frames) == MEM_SIZE // PGSIZE
    positions = [
        text.index("DTB init completed"),
        text.index("(THU.CST) os is loading ..."),
        text.index("Special kernel symbols:"),
        text.index("check_alloc_page() succeeded!"),
    ]
    assert positions == sorted(positions)


def test_kern_init_without_dtb_panics():
    out = io.StringIO()
    with pytest.raises(KernelPanic) as info:
        kern_init(None, Console(out), 0, FirstFitManager)
    assert info.value.message == "DTB memory info not available"
    assert "Error: DTB address is null" in out.getvalue()


def test_main_with_synthetic_memory(capsys):
    status = main(["--memory-size", "0x400000", "--manager", "first-fit"])
    out = capsys.readouterr().out
    assert status == 0
    assert "memory management: default_pmm_manager" in out
    assert "check_alloc_page() succeeded!" in out


def test_main_with_dtb_file(tmp_path, capsys):
    path = tmp_path / "board.dtb"
    path.write_bytes(_dtb(DRAM_BASE, MEM_SIZE))
    status = main(["--dtb", str(path), "--manager", "buddy"])
    out = capsys.readouterr().out
    assert status == 0
    assert f"  Base: 0x{DRAM_BASE:016x}" in out
    assert "memory management: buddy_pmm_manager" in out


def test_main_with_bad_dtb_reports_panic(tmp_path, capsys):
    path = tmp_path / "bad.dtb"
    path.write_bytes(bytes(40))
    status = main(["--dtb", str(path)])
    out = capsys.readouterr().out
    assert status == 1
    assert "Error: Invalid DTB magic number: 0x0" in out
    assert "kernel panic at" in out