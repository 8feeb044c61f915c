from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Callable, Optional, Union

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from tourgen.models.llm_client import ChatMessage, Completion, LLMClient  # noqa: E402
from tourgen.snapshot import FileRecord, RepositorySnapshot  # noqa: E402

Reply = Union[str, Exception]
Responder = Callable[[Sequence[ChatMessage], Mapping[str, Any]], Reply]


def make_file(path: str, content: Optional[str] = None, language: str = "typescript") -> FileRecord:
    """Build a file record; default content is thirty numbered comment lines."""
    text = content if content is not None else "\n".join(f"// {path} line {n}" for n in range(1, 31))
    return FileRecord(path=path, content=text, language=language, line_count=text.count("\n") + 1)


def steps_json(paths: Sequence[str], *, prefix: str = "Step") -> str:
    return json.dumps(
        [
            {"title": f"{prefix} {path}", "file": path, "line": 1, "description": f"About {path}."}
            for path in paths
        ]
    )


def overview_json(file: str, *, title: str = "Welcome - Project Overview") -> str:
    return json.dumps({"title": title, "file": file, "description": "## Purpose\nA sample project."})


def echo_responder(messages: Sequence[ChatMessage], metadata: Mapping[str, Any]) -> Reply:
    """Answer every chunk with one step per file and the overview with a README welcome."""
    if metadata.get("phase") == "overview":
        return overview_json(str(metadata["suggested_file"]))
    return steps_json(list(metadata["files"]))


class ScriptedClient(LLMClient):
    """Async client whose replies and latencies are scripted by the test."""

    def __init__(
        self,
        responder: Responder = echo_responder,
        *,
        delays: Optional[Mapping[int, float]] = None,
    ) -> None:
        super().__init__("scripted", max_attempts=1)
        self._responder = responder
        self._delays = dict(delays or {})
        self.calls: list[tuple[list[ChatMessage], dict[str, Any]]] = []
        self.completed: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Completion:
        meta = dict(metadata or {})
        self.calls.append((list(messages), meta))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self._delays.get(int(meta.get("chunk", 0)), 0))
            reply = self._responder(messages, meta)
        finally:
            self.in_flight -= 1
        self.completed.append(f"{meta.get('phase')}-{meta.get('chunk', 0)}")
        if isinstance(reply, Exception):
            raise reply
        return Completion(content=reply, model="scripted")

    def chunk_calls(self) -> list[dict[str, Any]]:
        return [meta for _, meta in self.calls if meta.get("phase") == "chunk"]


@pytest.fixture()
def sample_snapshot() -> RepositorySnapshot:
    files = [
        make_file("README.md", "# Sample\n\nA sample project.\n", language="markdown"),
        make_file("package.json", '{\n  "name": "sample",\n  "main": "src/extension.ts"\n}', language="json"),
        make_file("src/extension.ts"),
        make_file("src/config.ts"),
        make_file("src/generator/batch.ts"),
        make_file("src/generator/tour.ts"),
        make_file("src/store/index.ts"),
        make_file("src/store/storage.ts"),
        make_file("test/runner.ts"),
        make_file("webpack.config.js", language="javascript"),
    ]
    return RepositorySnapshot.from_files(files)


@pytest.fixture()
def scripted_client() -> ScriptedClient:
    return ScriptedClient()


class StallingClient(LLMClient):
    """Blocking client that times out for the given chunk numbers and, optionally, the overview."""

    def __init__(self, *, stalled_chunks: Sequence[int] = (), stall_overview: bool = False) -> None:
        super().__init__("stalling", max_attempts=2, retry_delay=0.0)
        self._stalled_chunks = set(stalled_chunks)
        self._stall_overview = stall_overview
        self.invocations = 0

    def _raw_invoke(self, payload: dict[str, Any]) -> str:
        self.invocations += 1
        metadata = payload.get("metadata") or {}
        if metadata.get("phase") == "overview" and self._stall_overview:
            raise TimeoutError("read timed out")
        if metadata.get("chunk") in self._stalled_chunks:
            raise TimeoutError("read timed out")
        reply = echo_responder([], metadata)
        assert isinstance(reply, str)
        return reply
