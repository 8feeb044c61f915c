from __future__ import annotations

import asyncio
import json

import pytest

from tourgen.models.chat import ChatCompletionsClient
from tourgen.models.llm_client import (
    ChatMessage,
    LLMClient,
    LLMResponseFormatError,
    LLMRetryError,
    LLMTransportError,
    parse_json_payload,
)

MESSAGES = [ChatMessage("system", "Be terse."), ChatMessage("user", "List checkpoints.")]


def _envelope(text: str) -> str:
    return json.dumps(
        {
            "id": "chatcmpl-mock",
            "object": "chat.completion",
            "choices": [{"index": 0, "message": {"role": "assistant", "content": text}}],
        }
    )


def test_chat_client_extracts_message_content() -> None:
    seen: list[dict] = []

    def transport(payload: dict) -> str:
        seen.append(payload)
        return _envelope('[{"title": "t"}]')

    client = ChatCompletionsClient(model="gpt-test", transport=transport)
    completion = asyncio.run(client.complete(MESSAGES, metadata={"phase": "chunk"}))

    assert completion.content == '[{"title": "t"}]'
    assert completion.attempts == 1
    assert seen[0]["model"] == "gpt-test"
    assert seen[0]["messages"] == [
        {"role": "system", "content": "Be terse."},
        {"role": "user", "content": "List checkpoints."},
    ]
    assert seen[0]["metadata"] == {"phase": "chunk"}


def test_chat_client_extracts_responses_api_output() -> None:
    def transport(_: dict) -> str:
        return json.dumps(
            {"output": [{"type": "message", "content": [{"type": "output_text", "text": "{}"}]}]}
        )

    client = ChatCompletionsClient(transport=transport)

    assert asyncio.run(client.complete(MESSAGES)).content == "{}"


def test_chat_client_passes_plain_text_through() -> None:
    client = ChatCompletionsClient(transport=lambda _: "not an envelope")

    assert asyncio.run(client.complete(MESSAGES)).content == "not an envelope"


def test_chat_client_retries_transport_errors() -> None:
    attempts = {"count": 0}

    def transport(_: dict) -> str:
        attempts["count"] += 1
        if attempts["count"] == 1:
            raise LLMTransportError("connection reset")
        return _envelope("[]")

    client = ChatCompletionsClient(transport=transport, max_attempts=3, retry_delay=0.0)
    completion = asyncio.run(client.complete(MESSAGES))

    assert completion.content == "[]"
    assert completion.attempts == 2


def test_chat_client_gives_up_after_max_attempts() -> None:
    def transport(_: dict) -> str:
        return json.dumps({"error": {"message": "quota exceeded"}})

    client = ChatCompletionsClient(transport=transport, max_attempts=2, retry_delay=0.0)

    with pytest.raises(LLMRetryError) as excinfo:
        asyncio.run(client.complete(MESSAGES))
    assert isinstance(excinfo.value.__cause__, LLMTransportError)


def test_single_attempt_surfaces_transport_error() -> None:
    def transport(_: dict) -> str:
        raise LLMTransportError("HTTP 503")

    client = ChatCompletionsClient(transport=transport, max_attempts=1)

    with pytest.raises(LLMTransportError, match="HTTP 503"):
        asyncio.run(client.complete(MESSAGES))


def test_envelope_without_text_is_a_format_error() -> None:
    client = ChatCompletionsClient(transport=lambda _: json.dumps({"choices": []}), max_attempts=1)

    with pytest.raises(LLMResponseFormatError):
        asyncio.run(client.complete(MESSAGES))


def test_default_transport_requires_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TOURGEN_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(ValueError, match="API key"):
        ChatCompletionsClient()


def test_timeout_environment_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TOURGEN_TIMEOUT", "5")

    client = ChatCompletionsClient(transport=lambda _: "", timeout=60)

    assert client.timeout == 5.0


@pytest.mark.parametrize(
    "raw, expected",
    [
        ('```json\n[{"a": 1}]\n```', [{"a": 1}]),
        ('```\n{"a": 1}\n```', {"a": 1}),
        ('Sure! [{"a": "x]y"},]', [{"a": "x]y"}]),
        ("“a”", "a"),
    ],
)
def test_parse_json_payload_repairs_common_noise(raw: str, expected: object) -> None:
    assert parse_json_payload(raw) == expected


def test_parse_json_payload_rejects_prose() -> None:
    with pytest.raises(LLMResponseFormatError):
        parse_json_payload("   ")
    with pytest.raises(LLMResponseFormatError):
        parse_json_payload("The repository is a web server.")


class _FlakyClient(LLMClient):
    def __init__(self, failures: int, *, max_attempts: int) -> None:
        super().__init__("flaky", max_attempts=max_attempts, retry_delay=0.0)
        self._failures = failures
        self.calls = 0

    def _raw_invoke(self, payload: dict) -> str:
        self.calls += 1
        if self.calls <= self._failures:
            raise TimeoutError("read timed out")
        return "[]"


def test_foreign_transport_errors_are_retried() -> None:
    client = _FlakyClient(1, max_attempts=2)

    completion = asyncio.run(client.complete(MESSAGES))

    assert (completion.content, completion.attempts) == ("[]", 2)


def test_foreign_transport_errors_surface_as_transport_errors() -> None:
    client = _FlakyClient(5, max_attempts=1)

    with pytest.raises(LLMTransportError) as excinfo:
        asyncio.run(client.complete(MESSAGES))

    assert isinstance(excinfo.value.__cause__, TimeoutError)
    assert client.calls == 1
