"""Local stub that synthesizes deterministic completions for demos and tests."""

from __future__ import annotations

import json
from typing import Any, Dict

from .llm_client import LLMClient, LLMResponseFormatError

__all__ = ["OfflineClient"]


class OfflineClient(LLMClient):
    """Answer chunk and overview requests from request metadata alone.

    Chunk requests get one checkpoint per listed file (up to the requested
    count); overview requests get a short welcome object anchored on the
    suggested file.
    """

    def __init__(self) -> None:
        super().__init__("offline", max_attempts=1)

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        metadata = payload.get("metadata") or {}
        phase = metadata.get("phase", "unknown")
        if phase == "chunk":
            return json.dumps(self._chunk_response(metadata))
        if phase == "overview":
            return json.dumps(self._overview_response(metadata))
        raise LLMResponseFormatError(f"Offline client cannot answer phase '{phase}'.")

    @staticmethod
    def _decode(value: Any, default: Any) -> Any:
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return default
        return default if value is None else value

    def _chunk_response(self, metadata: Dict[str, Any]) -> list[Dict[str, Any]]:
        files = self._decode(metadata.get("files"), [])
        target = int(self._decode(metadata.get("target_steps"), 1) or 1)
        chunk_number = int(self._decode(metadata.get("chunk"), 1) or 1)
        steps = []
        for position, path in enumerate(files[: max(target, 1)], start=1):
            lead = "Start here" if chunk_number == 1 and position == 1 else "Continue"
            steps.append(
                {
                    "title": f"{lead}: {path}",
                    "file": path,
                    "line": 1,
                    "description": (
                        f"{lead} with `{path}`. This checkpoint was produced offline "
                        "from the file listing, without a language model."
                    ),
                }
            )
        return steps

    def _overview_response(self, metadata: Dict[str, Any]) -> Dict[str, Any]:
        anchor = str(metadata.get("suggested_file") or "")
        entry_point = str(metadata.get("entry_point") or anchor)
        return {
            "title": "Welcome - Project Overview",
            "file": anchor,
            "line": 1,
            "description": (
                "## Overview\n"
                f"Offline overview. Start reading at `{entry_point}` and follow the checkpoints."
            ),
        }
