"""Single boundary that turns untrusted raw steps into validated ones."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from .snapshot import RepositorySnapshot
from .steps import RawStep, ValidatedStep

__all__ = ["validate_step", "validate_steps"]

LOGGER = logging.getLogger(__name__)


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def validate_step(step: RawStep, snapshot: RepositorySnapshot) -> Optional[ValidatedStep]:
    """Return the validated form of ``step``, or ``None`` when it must be dropped."""
    if not isinstance(step.file, str) or step.file not in snapshot:
        LOGGER.warning("File not in snapshot: %r, skipping step", step.file)
        return None

    title = _text(step.title)
    description = _text(step.description)
    if title is None or description is None:
        LOGGER.warning("Invalid step for %s (missing title/description), skipping", step.file)
        return None

    line = step.line if isinstance(step.line, int) and not isinstance(step.line, bool) else None
    if line is not None and line < 1:
        line = None

    selection = dict(step.selection) if isinstance(step.selection, Mapping) else None
    return ValidatedStep(
        title=title,
        file=step.file,
        description=description,
        line=line,
        selection=selection,
    )


def validate_steps(steps: Iterable[RawStep], snapshot: RepositorySnapshot) -> list[ValidatedStep]:
    """Filter ``steps`` in order, dropping any that fail validation."""
    validated: list[ValidatedStep] = []
    total = 0
    for step in steps:
        total += 1
        result = validate_step(step, snapshot)
        if result is not None:
            validated.append(result)
    LOGGER.info("Validated %d steps (from %d generated)", len(validated), total)
    return validated
