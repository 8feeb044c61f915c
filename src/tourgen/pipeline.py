"""End-to-end tour generation: overview, chunked body, validation, truncation."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional

from .aggregator import merge
from .chunking import partition
from .config import PipelineSettings
from .errors import EmptySnapshotError, TourGenerationCancelled
from .models.llm_client import LLMClient
from .overview import OverviewGenerator
from .prioritizer import prioritize
from .progress import CancellationToken, ProgressSink, emit_progress
from .prompts import build_project_context
from .scheduler import ChunkScheduler
from .snapshot import RepositorySnapshot
from .steps import ValidatedStep
from .tour import Tour, TourGenerationOptions, build_tour
from .validator import validate_steps

__all__ = ["TourPipeline", "generate_tour"]

LOGGER = logging.getLogger(__name__)


def _checkpoint(cancellation: Optional[CancellationToken], phase: str) -> None:
    if cancellation is not None and cancellation.is_cancelled():
        LOGGER.info("Cancellation observed before %s", phase)
        raise TourGenerationCancelled(phase)


class TourPipeline:
    """Turn a repository snapshot into an ordered list of validated steps.

    Every call is independent; nothing is cached between requests.
    """

    def __init__(
        self,
        client: LLMClient,
        settings: Optional[PipelineSettings] = None,
        *,
        logs_root: Optional[Path] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._settings = settings or PipelineSettings()
        self._logs_root = logs_root
        self._sleep = sleep

    @property
    def settings(self) -> PipelineSettings:
        return self._settings

    async def generate(
        self,
        snapshot: RepositorySnapshot,
        options: Optional[TourGenerationOptions] = None,
        *,
        progress: Optional[ProgressSink] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> list[ValidatedStep]:
        """Return the welcome step (when produced) followed by body steps."""
        options = options or TourGenerationOptions()
        settings = self._settings
        max_steps = options.max_steps or settings.max_steps
        LOGGER.info(
            "Starting tour generation: %d files, %d lines",
            snapshot.total_files,
            snapshot.total_lines,
        )
        if not snapshot.files:
            raise EmptySnapshotError("Snapshot contains no files; nothing to tour.")

        emit_progress(progress, "Building context for the model...", 5)
        project_context = build_project_context(
            snapshot,
            project_name=options.project_name,
            title=options.title,
            description=options.description,
            focus_areas=options.focus_areas,
        )

        _checkpoint(cancellation, "chunking")
        ordered = prioritize(snapshot.files)
        chunks = partition(ordered, settings.files_per_chunk)
        LOGGER.info(
            "Sorted files (entry points first): first %s, last %s; %d chunk(s) of up to %d files",
            ordered[0].path,
            ordered[-1].path,
            len(chunks),
            settings.files_per_chunk,
        )

        _checkpoint(cancellation, "model dispatch")
        emit_progress(progress, "Analyzing codebase for overview...", 10)
        overview = OverviewGenerator(self._client, settings=settings, logs_root=self._logs_root)
        welcome = await overview.generate(snapshot, project_context)
        if welcome is None:
            LOGGER.error("No welcome step generated")

        emit_progress(progress, "Generating checkpoints...", 5)
        scheduler = ChunkScheduler(
            self._client,
            settings=settings,
            project_context=project_context,
            logs_root=self._logs_root,
            sleep=self._sleep,
        )
        results = await scheduler.run(chunks, settings.target_steps, progress=progress)
        body = merge(results, settings.target_steps, policy=settings.trim_policy)

        _checkpoint(cancellation, "assembly")
        emit_progress(progress, "Validating checkpoints...", 10)
        candidates = [welcome.as_raw()] if welcome is not None else []
        candidates.extend(body)
        validated = validate_steps(candidates, snapshot)
        if len(validated) > max_steps:
            LOGGER.info("Truncating tour from %d to %d steps", len(validated), max_steps)
            validated = validated[:max_steps]

        emit_progress(progress, "Tour generation complete!", 10)
        LOGGER.info(
            "Tour generation complete: %d body checkpoint(s), %d step(s) in total",
            len(body),
            len(validated),
        )
        return validated

    async def build(
        self,
        snapshot: RepositorySnapshot,
        options: Optional[TourGenerationOptions] = None,
        *,
        progress: Optional[ProgressSink] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> Tour:
        """Generate steps and wrap them into a :class:`Tour`."""
        options = options or TourGenerationOptions()
        steps = await self.generate(snapshot, options, progress=progress, cancellation=cancellation)
        return build_tour(steps, options)


def generate_tour(
    client: LLMClient,
    snapshot: RepositorySnapshot,
    options: Optional[TourGenerationOptions] = None,
    *,
    settings: Optional[PipelineSettings] = None,
    logs_root: Optional[Path] = None,
    progress: Optional[ProgressSink] = None,
    cancellation: Optional[CancellationToken] = None,
) -> Tour:
    """Synchronous entry point for callers without an event loop."""
    pipeline = TourPipeline(client, settings, logs_root=logs_root)
    return asyncio.run(
        pipeline.build(snapshot, options, progress=progress, cancellation=cancellation)
    )
