"""Prompt templates and helpers for chunk and overview requests."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Optional

from .chunking import Chunk
from .models.llm_client import ChatMessage
from .snapshot import FileRecord, RepositorySnapshot

__all__ = [
    "CHECKPOINT_ARRAY_INSTRUCTION",
    "OVERVIEW_OBJECT_INSTRUCTION",
    "build_chunk_messages",
    "build_overview_messages",
    "build_project_context",
    "render_file_summary",
]

CHECKPOINT_ARRAY_INSTRUCTION = (
    "Return only a JSON array, without markdown fences or commentary. "
    "Each element is an object with the keys \"title\", \"file\", \"line\" and \"description\". "
    "\"file\" must be one of the paths shown above, copied exactly."
)

OVERVIEW_OBJECT_INSTRUCTION = (
    "Return only a JSON object, without markdown fences or commentary, with the keys "
    "\"title\", \"file\", \"line\" and \"description\"."
)

_FIRST_CHUNK_RULES = (
    "## You are first\n"
    "- Checkpoint 1 must be the entry point: find where the application actually starts "
    "(manifest \"main\" fields, bootstrap code, files imported by many but importing few).\n"
    "- Then follow where that entry point leads: imports, initialisation, first requests.\n"
    "- Build the mental model as \"start here, then this happens, then that happens\"."
)

_CONTINUATION_RULES = (
    "## Continue the narrative\n"
    "- These checkpoints continue the journey from earlier chunks.\n"
    "- Follow the logical flow: data flow, execution path, module dependencies.\n"
    "- Each checkpoint should read as the next natural step."
)

_OVERVIEW_POINTS = (
    "1. Project purpose: what problem it solves and who it is for.",
    "2. Architecture: components, layers and modules visible in the code.",
    "3. Key technical flows: main execution and data paths from the entry point.",
    "4. Use cases: what users can do with it.",
    "5. Technology stack: frameworks, libraries and tools that are imported or declared.",
    "6. Entry point: where the application starts and where to read next.",
)


def build_project_context(
    snapshot: RepositorySnapshot,
    *,
    project_name: Optional[str] = None,
    title: Optional[str] = None,
    description: Optional[str] = None,
    focus_areas: Sequence[str] = (),
) -> str:
    """Describe the project and request for every prompt in the run."""
    lines = [
        f"Project: {project_name or 'Unknown Project'}",
        "Goal: Create a narrative tour that helps developers understand how this codebase works.",
        "",
    ]
    if title:
        lines.append(f"Tour Title: {title}")
    if description:
        lines.append(f"Tour Description: {description}")
    focus = [area.strip() for area in focus_areas if area and area.strip()]
    if focus:
        lines.append(f"Focus Areas: {', '.join(focus)}")
    lines.extend(
        [
            "",
            "## Repository",
            f"Files analyzed: {snapshot.total_files}",
            f"Total lines: {snapshot.total_lines}",
            f"Languages: {', '.join(snapshot.languages) or 'unknown'}",
            "",
            "## Instructions",
            "1. File previews carry real line numbers in the form \"  12|code\".",
            "2. Read the code yourself: classes, functions and imports are all visible.",
            "3. Use those exact line numbers when you place a checkpoint.",
            "4. Show how the files connect into one system.",
        ]
    )
    return "\n".join(lines)


def render_file_summary(record: FileRecord, max_lines: int) -> str:
    """Render a file header plus its numbered leading lines."""
    preview = "\n".join(
        f"{number:>4}|{line}" for number, line in enumerate(record.preview(max_lines), start=1)
    )
    return (
        f"### {record.path}\n"
        f"Language: {record.language or 'unknown'} | Lines: {record.line_count}\n"
        f"```{record.language}\n{preview}\n```"
    )


def build_chunk_messages(
    chunk: Chunk,
    *,
    total_chunks: int,
    project_context: str,
    target_steps: int,
    lines_per_file: int,
) -> list[ChatMessage]:
    """Build the system/user pair asking for ``target_steps`` checkpoints."""
    first = chunk.index == 0
    rules = _FIRST_CHUNK_RULES if first else _CONTINUATION_RULES
    system_prompt = "\n\n".join(
        [
            "You are a senior software engineer writing a guided tour of a codebase. "
            "The tour is a sequential journey: every checkpoint leads to the next.",
            f"Create {target_steps} checkpoints for chunk {chunk.number}/{total_chunks}.",
            rules,
            "## Each checkpoint\n"
            "- title: technical and sequential, e.g. \"Entry Point - Application Bootstrap\".\n"
            "- file: the file path.\n"
            f"- line: where the checkpoint starts (1-{lines_per_file}).\n"
            "- description: 4-6 sentences on what the component does, why it exists in the "
            "flow, how it is implemented, and what it hands off to next.",
            CHECKPOINT_ARRAY_INSTRUCTION,
        ]
    )
    summaries = "\n\n".join(render_file_summary(record, lines_per_file) for record in chunk.files)
    opening = (
        "You are creating the first checkpoints. Start with the entry point, then follow "
        "the execution flow."
        if first
        else "Continue the journey from the previous chunks and build on what came before."
    )
    user_prompt = "\n\n".join(
        [
            project_context,
            f"## Chunk {chunk.number} of {total_chunks}\n{opening}",
            f"## Files in this chunk\n{summaries}",
            f"Create {target_steps} checkpoints that describe how this code works, in execution "
            "order rather than alphabetical order.",
        ]
    )
    return [
        ChatMessage(role="system", content=system_prompt),
        ChatMessage(role="user", content=user_prompt),
    ]


def build_overview_messages(
    *,
    project_context: str,
    digest: str,
    suggested_file: str,
    entry_point: str,
) -> list[ChatMessage]:
    """Build the request for the single welcome checkpoint."""
    points = "\n".join(_OVERVIEW_POINTS)
    system_prompt = "\n\n".join(
        [
            "You are a senior software architect reading a codebase for the first time. "
            "Write the welcome checkpoint of a guided tour: a high-level overview grounded "
            "in the code excerpts, not only the README.",
            f"## Cover\n{points}",
            "Tone: technical but accessible, as if briefing a senior engineer joining the team.",
            OVERVIEW_OBJECT_INSTRUCTION,
            f"Use \"file\": \"{suggested_file}\" and \"line\": 1. The description is several "
            "markdown paragraphs with ## headers and bullet points naming real files and modules.",
        ]
    )
    user_prompt = "\n\n".join(
        [
            project_context,
            digest,
            f"Explain what the project is, how it is built, and trace its main flows starting "
            f"from {entry_point}.",
        ]
    )
    return [
        ChatMessage(role="system", content=system_prompt),
        ChatMessage(role="user", content=user_prompt),
    ]
