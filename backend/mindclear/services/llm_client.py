"""OpenAI-compatible chat completion client with categorized failures."""
from __future__ import annotations

from dataclasses import dataclass
import logging
from threading import Lock
from typing import Dict, Optional, Protocol, Sequence

import openai

from mindclear.core.config import AIProviderConfig, settings
from mindclear.core.errors import (
    PROVIDER_AUTH_FAILED,
    PROVIDER_ERROR,
    PROVIDER_NOT_CONFIGURED,
    PROVIDER_QUOTA_EXCEEDED,
    PROVIDER_RATE_LIMITED,
    PROVIDER_TIMEOUT,
    ProviderError,
)
from mindclear.observability.metrics import timed_metric
from mindclear.observability.tracing import annotate, trace

logger = logging.getLogger(__name__)

ChatMessage = Dict[str, str]


@dataclass(frozen=True)
class SamplingConfig:
    temperature: float
    max_tokens: int
    top_p: Optional[float] = None


class LLMClient(Protocol):
    """Anything that can turn a message list into reply text."""

    model: Optional[str]

    def complete(
        self,
        messages: Sequence[ChatMessage],
        sampling: SamplingConfig,
        *,
        json_mode: bool = False,
        timeout: Optional[float] = None,
    ) -> str:
        ...


class OpenAIChatClient:
    """Chat completions against OpenAI or any OpenAI-compatible endpoint (Groq)."""

    def __init__(self, provider: AIProviderConfig, *, default_timeout: Optional[float] = None):
        self.provider = provider
        self.model = provider.model
        self.default_timeout = default_timeout
        self._client: Optional[openai.OpenAI] = None
        self._client_lock = Lock()

    def _get_client(self) -> openai.OpenAI:
        if not self.provider.configured:
            raise ProviderError(
                PROVIDER_NOT_CONFIGURED,
                "AI API key is not configured. Set GROQ_API_KEY or OPENAI_API_KEY.",
            )
        with self._client_lock:
            if self._client is None:
                self._client = openai.OpenAI(api_key=self.provider.api_key, base_url=self.provider.base_url)
            return self._client

    def complete(
        self,
        messages: Sequence[ChatMessage],
        sampling: SamplingConfig,
        *,
        json_mode: bool = False,
        timeout: Optional[float] = None,
    ) -> str:
        client = self._get_client()
        params = {
            "model": self.model,
            "messages": list(messages),
            "temperature": sampling.temperature,
            "max_tokens": sampling.max_tokens,
        }
        effective_timeout = timeout if timeout is not None else self.default_timeout
        if effective_timeout is not None:
            params["timeout"] = effective_timeout
        if sampling.top_p is not None:
            params["top_p"] = sampling.top_p
        if json_mode:
            params["response_format"] = {"type": "json_object"}

        metadata = {"provider": self.provider.provider, "model": self.model, "json_mode": json_mode}
        with trace("llm.complete", metadata=metadata) as span, timed_metric("llm.latency_ms", metadata=metadata):
            try:
                completion = client.chat.completions.create(**params)
            except openai.OpenAIError as exc:
                raise translate_provider_error(exc) from exc
            content = completion.choices[0].message.content if completion.choices else None
            annotate(span, **metadata, reply_length=len(content or ""))
        return (content or "").strip()


def translate_provider_error(exc: Exception) -> ProviderError:
    """Collapse SDK exceptions into the stable provider categories."""
    code = getattr(exc, "code", None)
    if isinstance(exc, openai.APITimeoutError):
        error = ProviderError(PROVIDER_TIMEOUT, "AI service timed out. Please try again.")
    elif code == "insufficient_quota":
        error = ProviderError(PROVIDER_QUOTA_EXCEEDED, "AI API quota exceeded. Please check your billing.")
    elif isinstance(exc, openai.AuthenticationError) or code == "invalid_api_key":
        error = ProviderError(PROVIDER_AUTH_FAILED, "Invalid AI API key. Please check your configuration.")
    elif isinstance(exc, openai.RateLimitError) or code == "rate_limit_exceeded":
        error = ProviderError(PROVIDER_RATE_LIMITED, "Rate limit exceeded. Please try again in a moment.")
    else:
        error = ProviderError(PROVIDER_ERROR, f"AI service error: {exc}")
    logger.error("LLM call failed (%s): %s", error.code, exc)
    return error


_default_client: Optional[OpenAIChatClient] = None
_default_client_lock = Lock()


def get_llm_client() -> LLMClient:
    """Process-wide client built from settings; FastAPI dependency default."""
    global _default_client

    with _default_client_lock:
        if _default_client is None:
            _default_client = OpenAIChatClient(
                settings.ai_provider(),
                default_timeout=settings.llm_timeout_seconds,
            )
        return _default_client
