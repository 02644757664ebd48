"""Count lines, words and bytes."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import BinaryIO, Iterable

_WHITESPACE = frozenset(b" \r\t\n\v")
_CHUNK = 512


@dataclass(frozen=True)
class Counts:
    """Line, word and byte totals."""

    lines: int = 0
    words: int = 0
    chars: int = 0


def _tally(chunks: Iterable[bytes]) -> Counts:
    lines = words = chars = 0
    inword = False
    for chunk in chunks:
        chars += len(chunk)
        lines += chunk.count(b"\n")
        for byte in chunk:
            if byte in _WHITESPACE:
                inword = False
            elif not inword:
                words += 1
                inword = True
    return Counts(lines, words, chars)


def count(data: bytes) -> Counts:
    """Counts for a complete buffer."""
    return _tally([bytes(data)])


def wc(stream: BinaryIO, name: str) -> str:
    """Read a stream to its end and return its report line."""
    counts = _tally(iter(lambda: stream.read(_CHUNK), b""))
    return f"{counts.lines} {counts.words} {counts.chars} {name}"


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        if not args:
            print(wc(sys.stdin.buffer, ""))
            return 0
        for name in args:
            try:
                handle = open(name, "rb")
            except OSError:
                print(f"wc: cannot open {name}")
                return 1
            with handle:
                print(wc(handle, name))
    except OSError:
        print("wc: read error")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())