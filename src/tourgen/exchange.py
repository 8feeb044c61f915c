"""Invoke the completion client and keep a JSON trail of every exchange."""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import re
import uuid
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from .models.llm_client import ChatMessage, Completion, LLMClient, LLMClientError

__all__ = ["invoke_completion", "write_exchange_log"]

LOGGER = logging.getLogger(__name__)

_SLUG_PATTERN = re.compile(r"[^a-z0-9_.-]+")


def _slug(value: str, *, fallback: str = "exchange", max_length: int = 80) -> str:
    slug = _SLUG_PATTERN.sub("-", (value or "").strip().lower()).strip("-")
    slug = re.sub(r"-{2,}", "-", slug) or fallback
    if len(slug) <= max_length:
        return slug
    digest = hashlib.sha256(slug.encode("utf-8")).hexdigest()[:8]
    return f"{slug[: max_length - len(digest) - 1].rstrip('-')}-{digest}"


async def invoke_completion(
    client: LLMClient,
    messages: Sequence[ChatMessage],
    *,
    label: str,
    metadata: Optional[Mapping[str, Any]] = None,
    logs_root: Optional[Path] = None,
) -> Completion:
    """Call ``client`` and record the exchange under ``logs_root`` when set."""
    prompt_size = sum(len(message.content) for message in messages) / 1024
    LOGGER.debug("%s prompt size: %.2f KB", label, prompt_size)
    try:
        completion = await client.complete(messages, metadata=metadata)
    except LLMClientError as error:
        await _record(logs_root, label, messages, metadata=metadata, error=error)
        raise
    LOGGER.debug(
        "%s response received (%d chars): %s",
        label,
        len(completion.content),
        completion.content[:100],
    )
    await _record(logs_root, label, messages, metadata=metadata, raw=completion.content)
    return completion


def write_exchange_log(
    logs_root: Optional[Path],
    label: str,
    messages: Sequence[ChatMessage],
    *,
    metadata: Optional[Mapping[str, Any]] = None,
    raw: Optional[str] = None,
    error: Optional[Exception] = None,
) -> Optional[Path]:
    """Persist one request/response pair for later debugging."""
    if logs_root is None:
        return None
    exchanges_root = Path(logs_root) / "exchanges"
    try:
        exchanges_root.mkdir(parents=True, exist_ok=True)
    except OSError:
        return None

    timestamp = datetime.now(timezone.utc)
    entry: dict[str, Any] = {
        "timestamp": timestamp.isoformat(),
        "label": label,
        "metadata": dict(metadata or {}),
        "messages": [message.to_dict() for message in messages],
        "raw": raw,
        "error": str(error) if error else None,
    }
    file_name = "__".join(
        [
            "exchange",
            _slug(label),
            timestamp.strftime("%Y%m%dT%H%M%S%fZ"),
            uuid.uuid4().hex[:8],
        ]
    )
    log_path = exchanges_root / f"{file_name}.json"
    try:
        with log_path.open("w", encoding="utf-8") as handle:
            json.dump(entry, handle, indent=2, sort_keys=True, ensure_ascii=False, default=str)
    except OSError:
        return None
    return log_path


async def _record(logs_root: Optional[Path], label: str, messages: Sequence[ChatMessage], **kwargs: Any) -> None:
    if logs_root is None:
        return
    await asyncio.to_thread(write_exchange_log, logs_root, label, messages, **kwargs)
