"""Exception hierarchy for the tour generation pipeline."""

from __future__ import annotations

from collections.abc import Sequence

__all__ = [
    "ChunkDecodeError",
    "ConfigError",
    "EmptySnapshotError",
    "SnapshotFormatError",
    "TotalChunkFailure",
    "TourGenerationCancelled",
    "TourGenerationError",
]


class TourGenerationError(RuntimeError):
    """Base error for failures that end a tour generation request."""


class TotalChunkFailure(TourGenerationError):
    """Raised when every chunk of a run failed, so no body checkpoints exist."""

    def __init__(self, chunk_count: int, errors: Sequence[str] = ()) -> None:
        self.chunk_count = chunk_count
        self.errors = list(errors)
        super().__init__(
            f"Failed to generate any checkpoints. All {chunk_count} chunks failed."
        )


class EmptySnapshotError(TourGenerationError):
    """Raised when the snapshot holds no files to tour."""


class SnapshotFormatError(TourGenerationError):
    """Raised when a flattened repository payload cannot be read."""


class ConfigError(TourGenerationError):
    """Raised when configuration values are missing or out of range."""


class ChunkDecodeError(ValueError):
    """Raised when a chunk response is not a non-empty JSON array."""


class TourGenerationCancelled(Exception):
    """Raised when the host asked to stop at a phase boundary.

    Deliberately outside :class:`TourGenerationError` so callers can tell a
    cancellation from a failure.
    """

    def __init__(self, phase: str) -> None:
        self.phase = phase
        super().__init__(f"Tour generation cancelled before {phase}")
