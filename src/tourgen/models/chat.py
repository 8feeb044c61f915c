"""Production client for OpenAI-compatible chat completion endpoints."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Callable, Dict, Optional

from .llm_client import LLMClient, LLMResponseFormatError, LLMTransportError

__all__ = ["ChatCompletionsClient"]

LOGGER = logging.getLogger(__name__)

Transport = Callable[[Dict[str, Any]], str]


class ChatCompletionsClient(LLMClient):
    """Thin adapter around a ``/v1/chat/completions`` style API."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: str = "https://api.openai.com/v1/chat/completions",
        model: str = "gpt-4o-mini",
        transport: Optional[Transport] = None,
        timeout: float = 60.0,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
    ) -> None:
        super().__init__(model=model, max_attempts=max_attempts, retry_delay=retry_delay)
        self._api_key = api_key or os.getenv("TOURGEN_API_KEY") or os.getenv("OPENAI_API_KEY")
        self._base_url = base_url
        timeout_override = os.getenv("TOURGEN_TIMEOUT")
        if timeout_override:
            try:
                parsed = float(timeout_override)
                if parsed > 0:
                    timeout = parsed
            except ValueError:
                LOGGER.warning("Ignoring invalid TOURGEN_TIMEOUT value %r", timeout_override)
        self._timeout = timeout
        self._transport = transport or self._http_transport

        if transport is None and not self._api_key:
            raise ValueError("An API key is required when using the default transport.")

    @property
    def timeout(self) -> float:
        return self._timeout

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        text = self._extract_message_text(self._transport(payload))
        if text is None:
            raise LLMResponseFormatError("Completion response did not contain message text.")
        return text

    def _http_transport(self, payload: Dict[str, Any]) -> str:
        """Default HTTP transport that targets the configured endpoint."""
        import urllib.error
        import urllib.request

        body = {key: value for key, value in payload.items() if key != "metadata"}
        if os.getenv("TOURGEN_DEBUG_PAYLOAD"):
            LOGGER.debug("Request payload:\n%s", json.dumps(body, indent=2, sort_keys=True))

        data = json.dumps(body).encode("utf-8")
        request = urllib.request.Request(
            self._base_url,
            data=data,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._api_key}",
                "User-Agent": "tourgen/0.1",
            },
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                return response.read().decode("utf-8")
        except urllib.error.HTTPError as error:
            detail = error.read().decode("utf-8", errors="ignore")
            raise LLMTransportError(f"HTTP {error.code}: {detail}") from error
        except urllib.error.URLError as error:
            raise LLMTransportError(f"Failed to reach completion endpoint: {error.reason}") from error

    def _extract_message_text(self, raw_response: str) -> Optional[str]:
        """Pull the assistant text out of a chat completions envelope."""
        if not raw_response:
            return None

        try:
            data = json.loads(raw_response)
        except json.JSONDecodeError:
            return raw_response

        if not isinstance(data, dict):
            return raw_response

        error = data.get("error")
        if isinstance(error, dict):
            message = error.get("message") or json.dumps(error, sort_keys=True)
            raise LLMTransportError(f"Service reported an error: {message}")

        text = self._first_text_content(data.get("choices"))
        if text is not None:
            return text

        # Responses-API style envelopes.
        text = self._first_text_content(data.get("output") or data.get("outputs"))
        if text is not None:
            return text

        # Envelope without any recognised container: the body is the content.
        if "choices" in data or "output" in data:
            return None
        return raw_response

    @staticmethod
    def _first_text_content(container: Any) -> Optional[str]:
        """First non-blank text in a ``choices`` or ``output`` list."""
        items = [container] if isinstance(container, dict) else container
        if not isinstance(items, list):
            return None
        for item in items:
            if not isinstance(item, dict):
                continue
            message = item.get("message")
            parts = item.get("content")
            candidates = [message.get("content") if isinstance(message, dict) else None]
            if isinstance(parts, list):
                candidates.extend(part.get("text") for part in parts if isinstance(part, dict))
            candidates.append(item.get("text"))
            for text in candidates:
                if isinstance(text, str) and text.strip():
                    return text
        return None
