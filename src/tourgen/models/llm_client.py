"""Async completion client base class shared by all language-model integrations."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import ValidationError
from pydantic.type_adapter import TypeAdapter

__all__ = [
    "ChatMessage",
    "Completion",
    "LLMClient",
    "LLMClientError",
    "LLMResponseFormatError",
    "LLMRetryError",
    "LLMTransportError",
    "parse_json_payload",
    "parse_structured",
]

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class LLMClientError(RuntimeError):
    """Base error raised for completion client failures."""


class LLMTransportError(LLMClientError):
    """Raised when the underlying transport fails to return a response."""


class LLMResponseFormatError(LLMClientError):
    """Raised when a payload cannot be decoded into the expected shape."""


class LLMRetryError(LLMClientError):
    """Raised after exhausting retries due to repeated transport failures."""


@dataclass(slots=True, frozen=True)
class ChatMessage:
    """Role-tagged text message sent to the completion service."""

    role: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(slots=True, frozen=True)
class Completion:
    """Text returned by the completion service."""

    content: str
    model: Optional[str] = None
    attempts: int = 1


@dataclass(slots=True)
class CompletionRequest:
    """Transport-ready request assembled from chat messages."""

    messages: Sequence[ChatMessage]
    model: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    temperature: float = 0.0

    def to_payload(self) -> Dict[str, Any]:
        """Render a payload for an OpenAI-compatible chat completions endpoint."""
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [message.to_dict() for message in self.messages],
        }
        if self.temperature not in (None, 0.0):
            payload["temperature"] = self.temperature
        if self.metadata:
            # Local bookkeeping only; HTTP transports drop it before sending.
            payload["metadata"] = dict(self.metadata)
        return payload


class LLMClient:
    """Async completion helper that retries transport failures.

    Subclasses implement the blocking :meth:`_raw_invoke`; :meth:`complete`
    runs it in a worker thread so several requests can be in flight at once.
    Content that arrives but is not what the caller wanted is returned as-is:
    decoding is the caller's business.
    """

    def __init__(
        self,
        model: str,
        *,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
        temperature: float = 0.0,
    ) -> None:
        self._model = model
        self._max_attempts = max(1, max_attempts)
        self._retry_delay = retry_delay
        self._temperature = temperature

    @property
    def model(self) -> str:
        """Return the default model name configured for this client."""
        return self._model

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Completion:
        """Send ``messages`` and return the completion text."""
        request = CompletionRequest(
            messages=list(messages),
            model=self._model,
            metadata=dict(metadata or {}),
            temperature=self._temperature,
        )
        payload = request.to_payload()
        last_error: Optional[Exception] = None

        for attempt in range(1, self._max_attempts + 1):
            try:
                content = await self._invoke_once(payload)
            except LLMTransportError as error:
                last_error = error
                LOGGER.debug("Transport attempt %d/%d failed: %s", attempt, self._max_attempts, error)
                if attempt >= self._max_attempts:
                    break
                await asyncio.sleep(self._retry_delay)
                continue
            return Completion(content=content, model=self._model, attempts=attempt)

        if self._max_attempts == 1 and last_error is not None:
            raise last_error
        raise LLMRetryError(
            f"No response after {self._max_attempts} attempt(s) for model {self._model}: {last_error}"
        ) from last_error

    async def _invoke_once(self, payload: Dict[str, Any]) -> str:
        """Run :meth:`_raw_invoke` off the event loop; foreign errors become transport errors."""
        try:
            return await asyncio.to_thread(self._raw_invoke, payload)
        except LLMClientError:
            raise
        except Exception as error:
            raise LLMTransportError(f"{type(error).__name__}: {error}") from error

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        """Perform the transport call. Subclasses must implement."""
        raise NotImplementedError("Subclasses must implement _raw_invoke().")


def parse_json_payload(raw_response: str) -> Any:
    """Parse model output into JSON, tolerating fences and common noise."""
    text = _normalise_json_string((raw_response or "").strip())
    if not text:
        raise LLMResponseFormatError("Model returned an empty response.")

    candidates = [text, _strip_code_fence(text), _extract_balanced(text)]
    seen: set[str] = set()
    for candidate in candidates:
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        for attempt in (candidate, _strip_trailing_commas(candidate)):
            try:
                return json.loads(attempt)
            except json.JSONDecodeError:
                continue

    raise LLMResponseFormatError(f"Model returned invalid JSON: {text[:200]}")


def parse_structured(raw_response: str, model: Type[T]) -> T:
    """Decode ``raw_response`` and validate it against ``model``."""
    data = parse_json_payload(raw_response)
    try:
        return TypeAdapter(model).validate_python(data)
    except ValidationError as error:
        name = getattr(model, "__name__", "response")
        raise LLMResponseFormatError(f"Response does not match {name}: {error}") from error


_FENCE = re.compile(r"^```[\w-]*[ \t]*\n(?P<body>.*?)(?:\n?```\s*)?$", re.DOTALL)

_TRAILING_COMMA = re.compile(r",(\s*[}\]])")

_SMART_QUOTES = str.maketrans({0x201C: '"', 0x201D: '"', 0x00A0: " ", 0xFEFF: ""})


def _strip_code_fence(payload: str) -> str:
    """Return the body of a leading Markdown fence, or ``payload`` unchanged."""
    match = _FENCE.match(payload)
    return match.group("body").strip() if match else payload


def _normalise_json_string(payload: str) -> str:
    return payload.translate(_SMART_QUOTES)


def _strip_trailing_commas(payload: str) -> str:
    return _TRAILING_COMMA.sub(r"\1", payload)


def _extract_balanced(text: str) -> Optional[str]:
    """First top-level ``[...]`` or ``{...}`` span in ``text``, skipping string contents."""
    start: Optional[int] = None
    closers: list[str] = []
    in_string = escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif start is None:
            if char in "[{":
                start = index
                closers.append("]" if char == "[" else "}")
        elif char == '"':
            in_string = True
        elif char in "[{":
            closers.append("]" if char == "[" else "}")
        elif char == closers[-1]:
            closers.pop()
            if not closers:
                return text[start : index + 1]
    return None
