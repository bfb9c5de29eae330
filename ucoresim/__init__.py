"""Simulated teaching-kernel boot path, console and physical page allocators."""

__version__ = "0.1.0"
__all__ = [
    "bestfit",
    "buddy",
    "console",
    "cstring",
    "dtb",
    "errors",
    "firstfit",
    "kernel",
    "manager",
    "memlayout",
    "pmm",
    "printfmt",
]