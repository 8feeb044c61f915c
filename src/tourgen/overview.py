"""Welcome checkpoint: model-written overview with a deterministic fallback."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .config import PipelineSettings
from .exchange import invoke_completion
from .models.llm_client import LLMClient, LLMClientError, LLMResponseFormatError, parse_structured
from .prioritizer import prioritize
from .prompts import build_overview_messages
from .snapshot import FileRecord, RepositorySnapshot
from .steps import ValidatedStep

__all__ = [
    "MANIFEST_NAMES",
    "OverviewGenerator",
    "OverviewResponse",
    "README_TRUNCATION_MARKER",
    "build_digest",
    "build_static_overview",
    "clean_readme",
    "find_entry_point",
    "find_manifest",
    "find_readme",
    "select_key_files",
]

LOGGER = logging.getLogger(__name__)

MANIFEST_NAMES = (
    "package.json",
    "pyproject.toml",
    "setup.py",
    "cargo.toml",
    "go.mod",
    "pom.xml",
    "build.gradle",
    "gemfile",
)

README_TRUNCATION_MARKER = "...\n\n[See full README for more details]"

STATIC_TITLE = "Welcome to the Codebase"

# Candidates considered for the key-file digest, in priority order.
_KEY_FILE_WINDOW = 20

_BLANK_RUNS = re.compile(r"\n{3,}")


@dataclass(slots=True)
class OverviewResponse:
    """Shape the model is asked to return for the welcome checkpoint."""

    title: str
    file: str
    description: str
    line: Any = None


def _is_readme(record: FileRecord) -> bool:
    return "readme" in record.path.lower()


def find_readme(snapshot: RepositorySnapshot) -> Optional[FileRecord]:
    return next((record for record in snapshot.files if _is_readme(record)), None)


def find_entry_point(ordered: list[FileRecord]) -> FileRecord:
    """Highest-ranked file that is not a README; the README only when nothing else exists."""
    return next((record for record in ordered if not _is_readme(record)), ordered[0])


def find_manifest(snapshot: RepositorySnapshot) -> Optional[FileRecord]:
    """Return the first top-level manifest, preferring earlier names in ``MANIFEST_NAMES``."""
    by_path = {record.path.lower(): record for record in snapshot.files}
    for name in MANIFEST_NAMES:
        if name in by_path:
            return by_path[name]
    return None


def select_key_files(snapshot: RepositorySnapshot, limit: int = 10) -> list[FileRecord]:
    """Entry point, manifest, then top-ranked non-README files up to ``limit``."""
    ordered = prioritize(snapshot.files)
    if not ordered:
        return []
    entry_point = find_entry_point(ordered)
    manifest = find_manifest(snapshot)
    key_files = [entry_point]
    if manifest is not None and manifest.path != entry_point.path:
        key_files.append(manifest)
    for record in ordered[:_KEY_FILE_WINDOW]:
        if len(key_files) >= limit:
            break
        if record is entry_point or _is_readme(record):
            continue
        if manifest is not None and record.path == manifest.path:
            continue
        key_files.append(record)
    return key_files[:limit]


def clean_readme(text: str, limit: int = 500) -> str:
    """Collapse runs of blank lines and cap the length with a truncation marker."""
    cleaned = _BLANK_RUNS.sub("\n\n", text or "")
    if len(cleaned) > limit:
        cleaned = cleaned[:limit] + README_TRUNCATION_MARKER
    return cleaned


def _statistics_block(snapshot: RepositorySnapshot, entry_point: FileRecord) -> list[str]:
    return [
        f"- {snapshot.total_files} files",
        f"- {snapshot.total_lines} lines",
        f"- Languages: {', '.join(snapshot.languages) or 'unknown'}",
        f"- Entry Point: {entry_point.path}",
    ]


def build_digest(
    snapshot: RepositorySnapshot,
    key_files: list[FileRecord],
    *,
    preview_lines: int = 40,
    readme_chars: int = 2000,
) -> str:
    """Summarise statistics, README excerpt and key-file previews for the model."""
    readme = find_readme(snapshot)
    readme_excerpt = readme.content[:readme_chars] if readme is not None else "No README available"

    snippets = []
    for record in key_files:
        lines = record.content.split("\n")
        preview = "\n".join(lines[:preview_lines])
        marker = "\n... (truncated)" if len(lines) > preview_lines else ""
        snippets.append(
            f"### File: {record.path} ({record.language or 'unknown'}, {record.line_count} lines)\n"
            f"```{record.language}\n{preview}{marker}\n```"
        )

    sections = [
        "## Codebase Statistics\n" + "\n".join(_statistics_block(snapshot, key_files[0])),
        f"## README Context\n{readme_excerpt}",
        "## Key Files\n" + "\n\n".join(snippets),
    ]
    return "\n\n".join(sections)


def build_static_overview(
    snapshot: RepositorySnapshot,
    *,
    target_steps: int = 15,
    readme_limit: int = 500,
) -> Optional[ValidatedStep]:
    """Template welcome step built from repository statistics alone."""
    ordered = prioritize(snapshot.files)
    if not ordered:
        LOGGER.info("No files found for welcome page")
        return None
    entry_point = find_entry_point(ordered)
    readme = find_readme(snapshot)
    anchor = readme or entry_point

    parts = [
        "# Codebase Architecture Tour\n",
        "This tour walks through the system architecture, design patterns, and implementation details.\n",
        "## Codebase Overview",
        f"- **{snapshot.total_files} files** totaling {snapshot.total_lines} lines of code",
        f"- **Technology Stack**: {', '.join(snapshot.languages) or 'unknown'}",
        f"- **Entry Point**: {entry_point.path}",
        f"- **Tour Checkpoints**: {target_steps}+ key architectural components\n",
        "## What This Tour Covers",
        "- **System Architecture**: component structure and module organization",
        "- **Data Flow**: request handling, state management, and processing pipelines",
        "- **Design Patterns**: the patterns the code relies on",
        "- **Technical Decisions**: implementation rationale and trade-offs\n",
        "## How to Navigate",
        "- Read the checkpoints in order for the full picture",
        "- Each checkpoint names the components it hands off to\n",
        "---\n",
    ]
    if readme is not None:
        parts.append("## Project Information")
        parts.append(clean_readme(readme.content, readme_limit))
    else:
        parts.append("## Starting Point")
        parts.append(f"No README found. This tour starts at the entry point: **{entry_point.path}**\n")
        parts.append('Click "Next" to begin exploring the codebase from the application entry point.')

    LOGGER.info("Static welcome anchored on %s (%s)", anchor.path, "README" if readme else "entry point")
    return ValidatedStep(title=STATIC_TITLE, file=anchor.path, line=1, description="\n".join(parts))


class OverviewGenerator:
    """Ask the model for a project overview; fall back to the static template."""

    def __init__(
        self,
        client: LLMClient,
        *,
        settings: PipelineSettings,
        logs_root: Optional[Path] = None,
    ) -> None:
        self._client = client
        self._settings = settings
        self._logs_root = logs_root

    async def generate(self, snapshot: RepositorySnapshot, project_context: str) -> Optional[ValidatedStep]:
        """Return the welcome step; ``None`` only for an empty snapshot."""
        key_files = select_key_files(snapshot, self._settings.max_key_files)
        if not key_files:
            return None
        entry_point = key_files[0]
        readme = find_readme(snapshot)
        anchor = (readme or entry_point).path
        LOGGER.info("Identified entry point: %s; analyzing %d key files", entry_point.path, len(key_files))

        digest = build_digest(
            snapshot,
            key_files,
            preview_lines=self._settings.preview_lines,
            readme_chars=self._settings.readme_excerpt_chars,
        )
        messages = build_overview_messages(
            project_context=project_context,
            digest=digest,
            suggested_file=anchor,
            entry_point=entry_point.path,
        )
        try:
            completion = await invoke_completion(
                self._client,
                messages,
                label="overview",
                metadata={"phase": "overview", "suggested_file": anchor, "entry_point": entry_point.path},
                logs_root=self._logs_root,
            )
            response = parse_structured(completion.content, OverviewResponse)
            step = self._accept(response, snapshot, anchor)
        except LLMClientError as error:
            LOGGER.warning("Failed to generate overview from the model (%s); using static welcome", error)
            return self.fallback(snapshot)

        LOGGER.info("Welcome checkpoint generated: %r", step.title)
        return step

    def fallback(self, snapshot: RepositorySnapshot) -> Optional[ValidatedStep]:
        return build_static_overview(
            snapshot,
            target_steps=self._settings.target_steps,
            readme_limit=self._settings.readme_clean_limit,
        )

    @staticmethod
    def _accept(response: OverviewResponse, snapshot: RepositorySnapshot, anchor: str) -> ValidatedStep:
        title = response.title.strip()
        file = response.file.strip()
        description = response.description.strip()
        if not title or not file or not description:
            raise LLMResponseFormatError("Overview response missing required fields (title, file, description)")
        if file not in snapshot:
            LOGGER.warning("Overview names unknown file %r; anchoring it on %s", file, anchor)
            file = anchor
        line = response.line
        if not isinstance(line, int) or isinstance(line, bool) or line < 1:
            line = 1
        return ValidatedStep(title=title, file=file, line=line, description=description)
