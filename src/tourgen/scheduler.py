"""Dispatch chunks to the completion service in paced, bounded windows."""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Optional

from .chunking import Chunk
from .config import PipelineSettings
from .errors import ChunkDecodeError, TotalChunkFailure
from .exchange import invoke_completion
from .models.llm_client import LLMClient, LLMClientError, LLMResponseFormatError, parse_json_payload
from .progress import ProgressSink, emit_progress
from .prompts import build_chunk_messages
from .steps import RawStep

__all__ = ["ChunkResult", "ChunkScheduler", "decode_chunk_response"]

LOGGER = logging.getLogger(__name__)

# Share of the overall progress bar that chunk dispatch accounts for.
CHUNK_PROGRESS_WEIGHT = 60.0


@dataclass(slots=True, frozen=True)
class ChunkResult:
    """Outcome of one chunk: steps on success, an error description otherwise."""

    index: int
    steps: tuple[RawStep, ...] = field(default_factory=tuple)
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.error is None) == (not self.steps):
            raise ValueError("ChunkResult needs either steps or an error, not both or neither")

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, index: int, steps: Sequence[RawStep]) -> "ChunkResult":
        return cls(index=index, steps=tuple(steps))

    @classmethod
    def failure(cls, index: int, error: str) -> "ChunkResult":
        return cls(index=index, error=error or "unknown error")


def decode_chunk_response(text: str) -> list[RawStep]:
    """Turn a chunk response into raw steps, or raise :class:`ChunkDecodeError`."""
    try:
        data = parse_json_payload(text)
    except LLMResponseFormatError as error:
        raise ChunkDecodeError(str(error)) from error
    if not isinstance(data, list):
        raise ChunkDecodeError(f"Invalid response format (expected array, got {type(data).__name__})")
    if not data:
        raise ChunkDecodeError("Response array is empty")
    return [RawStep.from_payload(item) for item in data]


class ChunkScheduler:
    """Run chunk requests window by window, keeping results in chunk order."""

    def __init__(
        self,
        client: LLMClient,
        *,
        settings: PipelineSettings,
        project_context: str,
        logs_root: Optional[Path] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._settings = settings
        self._project_context = project_context
        self._logs_root = logs_root
        self._sleep = sleep

    async def run(
        self,
        chunks: Sequence[Chunk],
        target_steps: int,
        *,
        progress: Optional[ProgressSink] = None,
    ) -> list[ChunkResult]:
        """Process every chunk; raise :class:`TotalChunkFailure` if none succeeded."""
        total = len(chunks)
        if total == 0:
            return []
        per_chunk = math.ceil(target_steps / total)
        window_size = self._settings.parallel_chunks
        slots: list[Optional[ChunkResult]] = [None] * total

        LOGGER.info(
            "Dispatching %d chunk(s), %d in parallel, %d checkpoint(s) each",
            total,
            window_size,
            per_chunk,
        )

        async def _fill(position: int, chunk: Chunk) -> None:
            slots[position] = await self._process(position, chunk, total, per_chunk, progress)

        for window_start in range(0, total, window_size):
            window_end = min(window_start + window_size, total)
            LOGGER.info("Processing chunks %d-%d of %d", window_start + 1, window_end, total)
            await asyncio.gather(
                *(_fill(position, chunks[position]) for position in range(window_start, window_end))
            )
            if window_end < total and self._settings.window_delay > 0:
                LOGGER.debug("Waiting %.1fs before next window", self._settings.window_delay)
                await self._sleep(self._settings.window_delay)

        results = [slot for slot in slots if slot is not None]
        succeeded = sum(1 for result in results if result.ok)
        LOGGER.info("%d of %d chunk(s) produced checkpoints", succeeded, total)
        if succeeded == 0:
            LOGGER.error("No checkpoints generated: all %d chunks failed", total)
            raise TotalChunkFailure(total, [result.error or "" for result in results])
        return results

    async def _process(
        self,
        position: int,
        chunk: Chunk,
        total: int,
        target_steps: int,
        progress: Optional[ProgressSink],
    ) -> ChunkResult:
        number = position + 1
        emit_progress(progress, f"Analyzing chunk {number}/{total}...", CHUNK_PROGRESS_WEIGHT / total)
        LOGGER.debug("Chunk %d/%d: starting (%d files)", number, total, len(chunk))

        messages = build_chunk_messages(
            chunk,
            total_chunks=total,
            project_context=self._project_context,
            target_steps=target_steps,
            lines_per_file=self._settings.lines_per_file,
        )
        metadata = {
            "phase": "chunk",
            "chunk": number,
            "total_chunks": total,
            "target_steps": target_steps,
            "files": chunk.paths,
        }
        try:
            completion = await invoke_completion(
                self._client,
                messages,
                label=f"chunk-{number}-of-{total}",
                metadata=metadata,
                logs_root=self._logs_root,
            )
            steps = decode_chunk_response(completion.content)
        except (LLMClientError, ChunkDecodeError) as error:
            LOGGER.warning("Chunk %d failed: %s: %s", number, type(error).__name__, error)
            return ChunkResult.failure(position, str(error))

        LOGGER.info("Chunk %d: generated %d checkpoint(s)", number, len(steps))
        return ChunkResult.success(position, steps)
