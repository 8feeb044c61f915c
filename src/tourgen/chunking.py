"""Split a prioritized file list into fixed-size chunks."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .snapshot import FileRecord

__all__ = ["Chunk", "partition"]


@dataclass(slots=True, frozen=True)
class Chunk:
    """Ordered group of files sent to the model in one request."""

    index: int
    files: tuple[FileRecord, ...]

    @property
    def number(self) -> int:
        """One-based position used in prompts and logs."""
        return self.index + 1

    @property
    def paths(self) -> list[str]:
        return [record.path for record in self.files]

    def __len__(self) -> int:
        return len(self.files)


def partition(files: Sequence[FileRecord], capacity: int) -> list[Chunk]:
    """Cut ``files`` into consecutive chunks of ``capacity``; the last may be short."""
    if not isinstance(capacity, int) or isinstance(capacity, bool) or capacity < 1:
        raise ValueError(f"Chunk capacity must be a positive integer, got {capacity!r}")
    return [
        Chunk(index=position, files=tuple(files[start : start + capacity]))
        for position, start in enumerate(range(0, len(files), capacity))
    ]
