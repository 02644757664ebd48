"""Models of a small x86 teaching kernel: paging, descriptors, ELF headers, locks,
allocation, page tables, traps, system call plumbing, a shell parser and utilities."""

__version__ = "0.1.0"