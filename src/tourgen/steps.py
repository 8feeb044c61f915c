"""Untrusted and validated tour step records."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

__all__ = ["RawStep", "ValidatedStep"]


@dataclass(slots=True, frozen=True)
class RawStep:
    """Step exactly as the model produced it.

    Every field is untyped; nothing here is trusted until it has passed
    :func:`tourgen.validator.validate_steps`.
    """

    title: Any = None
    file: Any = None
    line: Any = None
    description: Any = None
    selection: Any = None

    @classmethod
    def from_payload(cls, payload: Any) -> "RawStep":
        if not isinstance(payload, Mapping):
            return cls()
        return cls(
            title=payload.get("title"),
            file=payload.get("file"),
            line=payload.get("line"),
            description=payload.get("description"),
            selection=payload.get("selection"),
        )


@dataclass(slots=True, frozen=True)
class ValidatedStep:
    """Step whose file exists in the snapshot and whose text fields are present."""

    title: str
    file: str
    description: str
    line: Optional[int] = None
    selection: Optional[Mapping[str, Any]] = None

    def as_raw(self) -> RawStep:
        """Re-enter the validation boundary alongside freshly generated steps."""
        return RawStep(
            title=self.title,
            file=self.file,
            line=self.line,
            description=self.description,
            selection=self.selection,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise in the tour file layout, omitting absent optional fields."""
        data: dict[str, Any] = {
            "title": self.title,
            "file": self.file,
            "description": self.description,
        }
        if self.line is not None:
            data["line"] = self.line
        if self.selection is not None:
            data["selection"] = dict(self.selection)
        return data
