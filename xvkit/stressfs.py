"""Concurrent writers and readers of separate files, to stress a file system."""

from __future__ import annotations

import os
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import TextIO

BLOCK = 512
NBLOCKS = 20
MAX_WORKERS = 10


def stress(directory: str | os.PathLike = ".", workers: int = 5, out: TextIO | None = None) -> list[Path]:
    """Have each worker write then read back its own file; return the files' paths."""
    if not 1 <= workers <= MAX_WORKERS:
        raise ValueError(f"workers must be between 1 and {MAX_WORKERS}")
    out = sys.stdout if out is None else out
    directory = Path(directory)
    lock = threading.Lock()

    def say(text: str) -> None:
        with lock:
            print(text, file=out)

    say("stressfs starting")
    data = b"a" * BLOCK

    def work(i: int) -> Path:
        say(f"write {i}")
        path = directory / f"stressfs{i}"
        with open(path, "wb") as handle:
            for _ in range(NBLOCKS):
                handle.write(data)
        say("read")
        with open(path, "rb") as handle:
            for _ in range(NBLOCKS):
                handle.read(BLOCK)
        return path

    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(work, range(workers)))


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    stress(args[0] if args else ".")
    return 0


if __name__ == "__main__":
    sys.exit(main())