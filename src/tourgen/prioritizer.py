"""Rank repository files so likely entry points come first."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal, Pattern

from .snapshot import FileRecord

__all__ = ["DEFAULT_RANK", "PRIORITY_RULES", "PriorityRule", "prioritize", "rank"]

DEFAULT_RANK = 4


@dataclass(slots=True, frozen=True)
class PriorityRule:
    """Pattern matched against a lower-cased base name or full path."""

    pattern: Pattern[str]
    target: Literal["name", "path"]
    rank: int
    label: str

    def matches(self, path: str) -> bool:
        lowered = path.lower()
        subject = lowered.rsplit("/", 1)[-1] if self.target == "name" else lowered
        return self.pattern.search(subject) is not None


PRIORITY_RULES: tuple[PriorityRule, ...] = (
    PriorityRule(
        re.compile(r"^(main|index|app|server|extension)\.(ts|js|tsx|jsx|py|go|java|rb)$"),
        "name",
        1,
        "entry-point name",
    ),
    PriorityRule(re.compile(r"^src/(main|index|app|extension)\."), "path", 2, "source-root entry point"),
    PriorityRule(re.compile(r"^src/[^/]+\.(ts|js|tsx|jsx)$"), "path", 3, "top-level source file"),
)


def rank(path: str, rules: Iterable[PriorityRule] = PRIORITY_RULES) -> int:
    """Return the rank of the first matching rule, lower meaning more important."""
    for rule in rules:
        if rule.matches(path):
            return rule.rank
    return DEFAULT_RANK


def prioritize(
    files: Iterable[FileRecord],
    rules: Iterable[PriorityRule] = PRIORITY_RULES,
) -> list[FileRecord]:
    """Sort files by rank, breaking ties by path so chunking is reproducible."""
    rule_table = tuple(rules)
    return sorted(files, key=lambda record: (rank(record.path, rule_table), record.path))
