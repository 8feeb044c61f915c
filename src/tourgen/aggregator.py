"""Merge chunk results into one ordered, size-bounded checkpoint list."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .config import TRIM_POLICIES
from .scheduler import ChunkResult
from .steps import RawStep

__all__ = ["merge"]

LOGGER = logging.getLogger(__name__)


def merge(
    results: Sequence[ChunkResult],
    target_steps: int,
    *,
    policy: str = "prefix",
) -> list[RawStep]:
    """Concatenate successful chunks in submission order and trim to ``target_steps``.

    ``prefix`` keeps the earliest generated steps. ``first-per-chunk`` first
    reserves the opening step of every successful chunk, then fills the rest
    of the budget in generation order; output stays in generation order.
    """
    if policy not in TRIM_POLICIES:
        raise ValueError(f"Unknown trim policy {policy!r}")

    merged: list[RawStep] = []
    chunk_starts: list[int] = []
    for result in results:
        if not result.ok:
            continue
        chunk_starts.append(len(merged))
        merged.extend(result.steps)

    if len(merged) <= target_steps:
        return merged

    LOGGER.info("Trimming %d checkpoints to %d (%s)", len(merged), target_steps, policy)
    if policy == "prefix":
        return merged[:target_steps]

    keep = set(chunk_starts[:target_steps])
    for position in range(len(merged)):
        if len(keep) >= target_steps:
            break
        keep.add(position)
    return [merged[position] for position in sorted(keep)]
