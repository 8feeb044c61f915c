"""Wrap validated steps into a tour document and write it to disk."""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from .steps import ValidatedStep

__all__ = ["TOUR_SCHEMA_URL", "Tour", "TourGenerationOptions", "build_tour", "save_tour", "tour_slug"]

TOUR_SCHEMA_URL = "https://aka.ms/codetour-schema"

DEFAULT_DESCRIPTION = "This tour was automatically generated from the repository contents with an LLM."


@dataclass(slots=True, frozen=True)
class TourGenerationOptions:
    """Caller-supplied knobs for one tour request."""

    title: Optional[str] = None
    description: Optional[str] = None
    focus_areas: tuple[str, ...] = ()
    max_steps: Optional[int] = None
    project_name: Optional[str] = None


@dataclass(slots=True)
class Tour:
    id: str
    title: str
    description: str
    steps: list[ValidatedStep] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "$schema": TOUR_SCHEMA_URL,
            "title": self.title,
            "description": self.description,
            "steps": [step.to_dict() for step in self.steps],
        }


def tour_slug(title: str) -> str:
    """File-name slug: lower case, whitespace to hyphens, other symbols dropped."""
    slug = re.sub(r"\s+", "-", title.strip().lower())
    slug = re.sub(r"[^\w\-]", "", slug)
    return slug or "tour"


def build_tour(
    steps: Sequence[ValidatedStep],
    options: TourGenerationOptions,
    *,
    now: Optional[datetime] = None,
) -> Tour:
    timestamp = (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    title = options.title or f"AI Generated Tour - {timestamp}"
    description = options.description or DEFAULT_DESCRIPTION
    return Tour(id=f"{tour_slug(title)}.tour", title=title, description=description, steps=list(steps))


def save_tour(tour: Tour, directory: Path) -> Path:
    """Write ``tour`` as JSON into ``directory`` and return the file path."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / tour.id
    with path.open("w", encoding="utf-8") as handle:
        json.dump(tour.to_dict(), handle, indent=2, ensure_ascii=False)
        handle.write("\n")
    return path
