"""Convenience exports for tourgen completion client implementations."""

from .chat import ChatCompletionsClient
from .llm_client import (
    ChatMessage,
    Completion,
    LLMClient,
    LLMClientError,
    LLMResponseFormatError,
    LLMRetryError,
    LLMTransportError,
)
from .offline import OfflineClient

__all__ = [
    "ChatCompletionsClient",
    "ChatMessage",
    "Completion",
    "LLMClient",
    "LLMClientError",
    "LLMResponseFormatError",
    "LLMRetryError",
    "LLMTransportError",
    "OfflineClient",
]
