"""Read-only view of a flattened repository."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import SnapshotFormatError

__all__ = ["FileRecord", "RepositorySnapshot", "load_snapshot"]


@dataclass(slots=True, frozen=True)
class FileRecord:
    """One flattened file; identity is ``path``."""

    path: str
    content: str
    language: str = ""
    line_count: int = 0

    def preview(self, max_lines: int) -> list[str]:
        """Return at most ``max_lines`` leading lines of the file."""
        return self.content.split("\n")[:max_lines]

    @classmethod
    def from_payload(cls, payload: Any) -> "FileRecord":
        if not isinstance(payload, Mapping):
            raise SnapshotFormatError(f"File entry must be a mapping, got {type(payload).__name__}")
        path = payload.get("path")
        if not isinstance(path, str) or not path.strip():
            raise SnapshotFormatError("File entry is missing a 'path'.")
        content = payload.get("content")
        if content is None:
            content = ""
        if not isinstance(content, str):
            raise SnapshotFormatError(f"File '{path}' has non-text content.")
        language = payload.get("language") or ""
        line_count = payload.get("lineCount", payload.get("line_count", payload.get("lines")))
        if not isinstance(line_count, int) or isinstance(line_count, bool) or line_count < 0:
            line_count = content.count("\n") + 1 if content else 0
        return cls(path=path, content=content, language=str(language), line_count=line_count)


@dataclass(slots=True, frozen=True)
class RepositorySnapshot:
    """Immutable input of one tour generation request."""

    files: tuple[FileRecord, ...]
    total_files: int = 0
    total_lines: int = 0
    _paths: frozenset[str] = field(default=frozenset(), init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        files = tuple(self.files)
        object.__setattr__(self, "files", files)
        object.__setattr__(self, "_paths", frozenset(record.path for record in files))
        if not self.total_files:
            object.__setattr__(self, "total_files", len(files))
        if not self.total_lines:
            object.__setattr__(self, "total_lines", sum(record.line_count for record in files))

    @classmethod
    def from_files(cls, files: Sequence[FileRecord]) -> "RepositorySnapshot":
        return cls(files=tuple(files))

    @classmethod
    def from_payload(cls, payload: Any) -> "RepositorySnapshot":
        """Build a snapshot from the flattening service's JSON shape."""
        if not isinstance(payload, Mapping):
            raise SnapshotFormatError("Snapshot payload must be a mapping.")
        body = payload.get("output") if isinstance(payload.get("output"), Mapping) else payload
        entries = body.get("files")
        if not isinstance(entries, list):
            raise SnapshotFormatError("Snapshot payload must contain a 'files' list.")
        files = tuple(FileRecord.from_payload(entry) for entry in entries)
        seen: set[str] = set()
        for record in files:
            if record.path in seen:
                raise SnapshotFormatError(f"Duplicate file path in snapshot: {record.path}")
            seen.add(record.path)
        total_files = body.get("totalFiles", body.get("total_files"))
        total_lines = body.get("totalLines", body.get("total_lines"))
        return cls(
            files=files,
            total_files=total_files if isinstance(total_files, int) and total_files > 0 else 0,
            total_lines=total_lines if isinstance(total_lines, int) and total_lines > 0 else 0,
        )

    @property
    def paths(self) -> frozenset[str]:
        return self._paths

    @property
    def languages(self) -> list[str]:
        """Distinct language tags in first-seen order."""
        seen: dict[str, None] = {}
        for record in self.files:
            if record.language:
                seen.setdefault(record.language, None)
        return list(seen)

    def __contains__(self, path: object) -> bool:
        return path in self._paths

    def __len__(self) -> int:
        return len(self.files)


def load_snapshot(path: Path) -> RepositorySnapshot:
    """Read a flattened repository JSON document from disk."""
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except OSError as error:
        raise SnapshotFormatError(f"Cannot read snapshot {path}: {error}") from error
    except json.JSONDecodeError as error:
        raise SnapshotFormatError(f"Snapshot {path} is not valid JSON: {error}") from error
    return RepositorySnapshot.from_payload(payload)
