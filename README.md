# ucoresim

A small, self-contained simulation of a teaching kernel's boot path and its
physical memory management. It models:

- a page frame table of `Page` descriptors (`ucoresim.memlayout`),
- a flattened device tree reader that finds the memory range (`ucoresim.dtb`),
- a kernel console with a minimal `printf`-style formatter
  (`ucoresim.console`, `ucoresim.printfmt`),
- C-style string and memory helpers (`ucoresim.cstring`),
- three interchangeable page allocators:
  - `FirstFitManager` (`ucoresim.firstfit`): address-ordered free list, the first block that fits.
  - `BestFitManager` (`ucoresim.bestfit`): address-ordered free list, the smallest block that fits.
  - `BuddyManager` (`ucoresim.buddy`): one free list per power-of-two order, with splitting and buddy merging.

All allocators implement the `PmmManager` interface from `ucoresim.manager`:
`init`, `init_memmap`, `alloc_pages`, `free_pages`, `nr_free_pages`, `check`,
`alloc_page` and `free_page`. `check` exercises the allocator and raises
`AssertionError` if it misbehaves.

The package has no dependencies beyond the standard library.

## Installation

```
pip install .
```

For running the tests:

```
pip install .[test]
pytest
```

## Command line

```
ucoresim
```

This boots the simulated kernel. Without `--dtb` it builds a device tree
holding one memory node for `--memory-base` (default `0x80000000`) and
`--memory-size` (default `0x8000000`), then:

1. reads the memory range from the device tree and prints it,
2. prints the banner and the kernel symbol addresses,
3. builds the frame table, reserves every frame and hands the memory after
   the descriptor array to the chosen allocator,
4. runs the allocator's self-check and prints `check_alloc_page() succeeded!`.

Options:

- `--dtb FILE`: boot from a device tree blob read from `FILE` instead.
- `--hartid N`: the boot hart id to report (default `0`).
- `--manager {buddy,first-fit,best-fit}`: the page allocator (default `buddy`).
- `--memory-base N`, `--memory-size N`: the memory range used when no blob is given.

Numbers may be written in any base Python's `int(s, 0)` accepts, for example
`0x80000000`. The command exits with status 1 if the kernel panics, for
instance when the device tree holds no memory node.

## Library use

Formatting output the way the kernel console does:

```python
from ucoresim.printfmt import format_string, snprintf

format_string("%08x|%-5s|%e", 0xBEEF, "ok", -4)
# '0000beef|ok   |out of memory'

snprintf(4, "%d", 12345)
# ('123', 5): the text that fits and the full length
```

Writing to a console backed by text streams:

```python
import io
from ucoresim.console import Console

out = io.StringIO()
console = Console(out, io.StringIO("hello\n"))
console.cprintf("%s=%d\n", "x", 42)
line = console.readline("> ")   # 'hello'; raises EOFError at end of input
```

`Console.panic` prints the message and raises `ucoresim.errors.KernelPanic`;
`Console.warn` only prints.

Reading memory information from a flattened device tree blob:

```python
from ucoresim.dtb import extract_memory_info

info = extract_memory_info(blob)   # blob: bytes of a DTB
if info is not None:
    print(hex(info.base), info.size, hex(info.end))
```

Driving an allocator over a frame table:

```python
from ucoresim.memlayout import FrameTable, PageFlag
from ucoresim.firstfit import FirstFitManager

frames = FrameTable(64, 0x80000)
for page in frames:
    page.flags |= PageFlag.RESERVED

manager = FirstFitManager(frames)
manager.init()
manager.init_memmap(frames[0], 64)

block = manager.alloc_pages(5)
manager.free_pages(block, 5)
assert manager.nr_free_pages() == 64
manager.check()
```

`BuddyManager(frames, console)` takes an optional `Console` and logs every
split, merge and allocation to it. It manages only the largest power-of-two
run of the pages given to `init_memmap`, and hands out blocks of
`2 ** get_order(n)` pages.

`ucoresim.pmm.PhysicalMemory` ties it together: `init(memory_base,
memory_size, kernel_end)` builds the frame table, gives the free memory to
the allocator (a `BuddyManager` unless another factory is passed) and runs
its check. `ucoresim.kernel.kern_init` runs the whole boot sequence from a
device tree blob and returns that `PhysicalMemory`.

`ucoresim.errors.error_string` turns an `ErrorCode` (positive or negated)
into its message.

## What it does not do

This is a simulation of memory bookkeeping only. It does not run on
hardware or in an emulator, does not build or switch page tables (the Sv39
helpers in `ucoresim.memlayout` only compute addresses and fields), and
stops after the allocator check: there are no processes, interrupts or
interactive kernel shell.