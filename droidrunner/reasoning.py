"""reasoning.py - Reasoning-service transports (Anthropic, OpenAI-compatible/Groq).

Each service exposes `async complete(system_prompt, messages) -> str` and
raises ReasoningError on failure. Transient failures are retried here, in
the transport, with bounded exponential backoff.
"""

import asyncio
import sys
from enum import Enum
from typing import Protocol

import anthropic
import openai


DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_GROQ_MODEL = "llama-3.3-70b-versatile"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
GROQ_BASE_URL = "https://api.groq.com/openai/v1"

MAX_TOKENS = 2048
TEMPERATURE = 0.1


def _log(msg: str) -> None:
    print(f"[reasoning] {msg}", file=sys.stderr)


class ReasoningErrorKind(Enum):
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    TIMEOUT = "timeout"
    SERVER = "server"
    EMPTY = "empty"
    UNKNOWN = "unknown"


RETRYABLE = frozenset(
    {
        ReasoningErrorKind.RATE_LIMITED,
        ReasoningErrorKind.NETWORK,
        ReasoningErrorKind.TIMEOUT,
        ReasoningErrorKind.SERVER,
    }
)

_USER_MESSAGES = {
    ReasoningErrorKind.UNAUTHORIZED: "Invalid API key. Check the key in your settings.",
    ReasoningErrorKind.RATE_LIMITED: "Rate limit exceeded. Wait a moment and try again.",
    ReasoningErrorKind.NETWORK: "Network error. Check your internet connection.",
    ReasoningErrorKind.TIMEOUT: "The AI service timed out. Try again.",
    ReasoningErrorKind.SERVER: "The AI service is unavailable right now. Try again later.",
    ReasoningErrorKind.EMPTY: "The AI service returned an empty response.",
    ReasoningErrorKind.UNKNOWN: "AI request failed.",
}


def user_message(kind: ReasoningErrorKind, detail: str | None = None) -> str:
    message = _USER_MESSAGES[kind]
    if kind is ReasoningErrorKind.UNKNOWN and detail:
        return f"{message} {detail}"
    return message


class ReasoningError(Exception):
    def __init__(self, kind: ReasoningErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE


_UNAUTHORIZED = (
    anthropic.AuthenticationError,
    anthropic.PermissionDeniedError,
    openai.AuthenticationError,
    openai.PermissionDeniedError,
)
_RATE_LIMITED = (anthropic.RateLimitError, openai.RateLimitError)
_TIMEOUT = (anthropic.APITimeoutError, openai.APITimeoutError, asyncio.TimeoutError)
_NETWORK = (anthropic.APIConnectionError, openai.APIConnectionError, ConnectionError)
_STATUS = (anthropic.APIStatusError, openai.APIStatusError)


def classify(exc: Exception) -> ReasoningError:
    """Map an SDK or transport exception to a ReasoningError."""
    if isinstance(exc, ReasoningError):
        return exc
    if isinstance(exc, _UNAUTHORIZED):
        return ReasoningError(ReasoningErrorKind.UNAUTHORIZED, str(exc))
    if isinstance(exc, _RATE_LIMITED):
        return ReasoningError(ReasoningErrorKind.RATE_LIMITED, str(exc))
    # Timeout errors subclass the connection errors in both SDKs.
    if isinstance(exc, _TIMEOUT):
        return ReasoningError(ReasoningErrorKind.TIMEOUT, str(exc) or "request timed out")
    if isinstance(exc, _NETWORK):
        return ReasoningError(ReasoningErrorKind.NETWORK, str(exc))
    if isinstance(exc, _STATUS):
        status = getattr(exc, "status_code", 0) or 0
        if status == 401:
            return ReasoningError(ReasoningErrorKind.UNAUTHORIZED, str(exc))
        if status == 429:
            return ReasoningError(ReasoningErrorKind.RATE_LIMITED, str(exc))
        if status >= 500:
            return ReasoningError(ReasoningErrorKind.SERVER, str(exc))
    return ReasoningError(ReasoningErrorKind.UNKNOWN, str(exc))


class ReasoningService(Protocol):
    async def complete(self, system_prompt: str, messages: list[dict]) -> str: ...


class _RetryingService:
    """Shared retry loop; subclasses implement _request()."""

    def __init__(self, retries: int = 3, sleep=asyncio.sleep):
        self.retries = max(1, retries)
        self.sleep = sleep

    async def _request(self, system_prompt: str, messages: list[dict]) -> str:
        raise NotImplementedError

    async def complete(self, system_prompt: str, messages: list[dict]) -> str:
        last_error: ReasoningError | None = None
        for attempt in range(1, self.retries + 1):
            try:
                text = await self._request(system_prompt, messages)
            except Exception as exc:
                last_error = classify(exc)
                _log(f"Model call failed ({attempt}/{self.retries}): {last_error.kind.value}: {exc}")
                if not last_error.retryable or attempt == self.retries:
                    raise last_error from exc
                wait_seconds = min(2 ** (attempt - 1), 8)
                _log(f"Retrying model call in {wait_seconds}s")
                await self.sleep(wait_seconds)
                continue
            if not text or not text.strip():
                raise ReasoningError(ReasoningErrorKind.EMPTY, "empty completion")
            return text
        raise last_error or ReasoningError(ReasoningErrorKind.UNKNOWN, "no attempts made")


class AnthropicReasoning(_RetryingService):
    def __init__(self, api_key: str, model: str = DEFAULT_ANTHROPIC_MODEL, timeout_s: float = 60,
                 client=None, retries: int = 3, sleep=asyncio.sleep):
        super().__init__(retries=retries, sleep=sleep)
        self.model = model
        self.client = client or anthropic.AsyncAnthropic(
            api_key=api_key, timeout=timeout_s, max_retries=0
        )

    async def _request(self, system_prompt: str, messages: list[dict]) -> str:
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
            system=system_prompt,
            messages=messages,
        )
        parts = [block.text for block in response.content if getattr(block, "type", "") == "text"]
        return "".join(parts)


class OpenAICompatibleReasoning(_RetryingService):
    """Chat-completions transport; defaults to Groq's OpenAI-compatible endpoint."""

    def __init__(self, api_key: str, model: str = DEFAULT_GROQ_MODEL, base_url: str | None = GROQ_BASE_URL,
                 timeout_s: float = 60, client=None, retries: int = 3, sleep=asyncio.sleep):
        super().__init__(retries=retries, sleep=sleep)
        self.model = model
        self.client = client or openai.AsyncOpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout_s, max_retries=0
        )

    async def _request(self, system_prompt: str, messages: list[dict]) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "system", "content": system_prompt}, *messages],
            temperature=TEMPERATURE,
            max_tokens=MAX_TOKENS,
            response_format={"type": "json_object"},
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


def default_model(provider: str) -> str:
    if provider == "groq":
        return DEFAULT_GROQ_MODEL
    if provider == "openai":
        return DEFAULT_OPENAI_MODEL
    return DEFAULT_ANTHROPIC_MODEL


def build_service(settings) -> ReasoningService:
    """Construct the transport selected by settings.provider."""
    if settings.provider == "anthropic":
        return AnthropicReasoning(
            api_key=settings.api_key,
            model=settings.model,
            timeout_s=settings.request_timeout_s,
        )
    if settings.provider == "groq":
        base_url = settings.base_url or GROQ_BASE_URL
    else:
        base_url = settings.base_url
    return OpenAICompatibleReasoning(
        api_key=settings.api_key,
        model=settings.model,
        base_url=base_url,
        timeout_s=settings.request_timeout_s,
    )
