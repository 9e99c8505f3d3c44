"""Streaming LLM client for the Groq API."""
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence
from groq import AsyncGroq
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError
import logging

from config import GROQ_API_KEY, CHAT_MODEL, CHAT_TEMPERATURE, REQUEST_TIMEOUT_SECONDS
from models.chat import UIMessage
from models.usage import TokenUsage

logger = logging.getLogger(__name__)


@dataclass
class LLMError:
    """Structured error response from LLM operations."""
    code: str
    message: str
    details: Dict[str, Any]


class LLMClientError(Exception):
    """Custom exception for LLM client errors with structured error information."""

    def __init__(self, error: LLMError):
        self.error = error
        super().__init__(error.message)


def _read(source: Any, name: str) -> Any:
    """Read a field from a dict or an SDK object, None if absent."""
    if source is None:
        return None
    if isinstance(source, dict):
        return source.get(name)
    return getattr(source, name, None)


def _first_present(source: Any, *names: str) -> Optional[int]:
    for name in names:
        value = _read(source, name)
        if value is not None:
            return value
    return None


def normalize_usage(raw: Any) -> TokenUsage:
    """
    Normalise provider token usage into a TokenUsage.

    Providers disagree on field names (input_tokens vs prompt_tokens,
    output_tokens vs completion_tokens) and may omit any of them. This is the
    only place those variants are reconciled.

    Args:
        raw: Usage dict or SDK usage object, or None

    Returns:
        TokenUsage with missing counts left as None
    """
    if raw is None:
        return TokenUsage()

    input_tokens = _first_present(raw, "input_tokens", "inputTokens", "prompt_tokens", "promptTokens")
    output_tokens = _first_present(raw, "output_tokens", "outputTokens", "completion_tokens", "completionTokens")
    total_tokens = _first_present(raw, "total_tokens", "totalTokens")
    if total_tokens is None and input_tokens is not None and output_tokens is not None:
        total_tokens = input_tokens + output_tokens

    reasoning_tokens = _first_present(raw, "reasoning_tokens", "reasoningTokens")
    if reasoning_tokens is None:
        reasoning_tokens = _read(_read(raw, "completion_tokens_details"), "reasoning_tokens")

    cached_input_tokens = _first_present(raw, "cached_input_tokens", "cachedInputTokens")
    if cached_input_tokens is None:
        cached_input_tokens = _read(_read(raw, "prompt_tokens_details"), "cached_tokens")

    return TokenUsage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=total_tokens,
        reasoning_tokens=reasoning_tokens,
        cached_input_tokens=cached_input_tokens,
    )


def to_model_messages(messages: Sequence[UIMessage]) -> List[Dict[str, str]]:
    """
    Convert client UI messages into provider chat messages.

    Text parts are joined with newlines; messages without any text (e.g. only
    tool or file parts) are dropped.
    """
    model_messages = []
    for message in messages:
        content = message.text(separator="\n")
        if not content:
            continue
        model_messages.append({"role": message.role.value, "content": content})
    return model_messages


class CompletionStream:
    """
    Async iterator over the text deltas of one streamed completion.

    Once exhausted, `text`, `finish_reason` and `usage` describe the whole
    completion.
    """

    def __init__(self, raw_stream: Any, model: str, start_time: float):
        self._raw_stream = raw_stream
        self.model = model
        self.start_time = start_time
        self.text = ""
        self.finish_reason: Optional[str] = None
        self.usage = TokenUsage()
        self.completed = False
        self.closed = False

    def __aiter__(self) -> AsyncIterator[str]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[str]:
        try:
            async for chunk in self._raw_stream:
                self._capture_usage(chunk)
                choices = getattr(chunk, "choices", None) or []
                if not choices:
                    continue
                choice = choices[0]
                if getattr(choice, "finish_reason", None):
                    self.finish_reason = choice.finish_reason
                delta = getattr(getattr(choice, "delta", None), "content", None)
                if delta:
                    self.text += delta
                    yield delta
        except LLMClientError:
            raise
        except Exception as e:
            raise _to_client_error(e, self.model, self.start_time) from e

        self.completed = True
        latency_ms = int((time.time() - self.start_time) * 1000)
        logger.info(
            f"Completed stream: model={self.model}, "
            f"input_tokens={self.usage.input_tokens}, output_tokens={self.usage.output_tokens}, "
            f"finish_reason={self.finish_reason}, latency={latency_ms}ms"
        )

    async def close(self) -> None:
        """Release the upstream HTTP response. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        close = getattr(self._raw_stream, "close", None)
        if close is None:
            return
        try:
            await close()
        except Exception as e:
            logger.warning(f"Failed to close upstream stream for model {self.model}: {e}")

    def _capture_usage(self, chunk: Any) -> None:
        # Groq reports usage on the final chunk under x_groq; OpenAI-style APIs use chunk.usage
        raw = getattr(chunk, "usage", None)
        if raw is None:
            raw = _read(getattr(chunk, "x_groq", None), "usage")
        if raw is not None:
            self.usage = normalize_usage(raw)


class LLMClient:
    """Client for streaming chat completions from the Groq API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = CHAT_MODEL,
        timeout: float = REQUEST_TIMEOUT_SECONDS
    ):
        """
        Initialize LLM client with Groq API key.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
            model: Model identifier used for every request
            timeout: Request timeout in seconds
        """
        self.api_key = api_key or GROQ_API_KEY
        if not self.api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        self.model = model
        # Failed calls are reported once, never retried
        self.client = AsyncGroq(api_key=self.api_key, timeout=timeout, max_retries=0)
        logger.info(f"LLMClient initialized successfully (model={model})")

    async def open_stream(
        self,
        system: str,
        messages: List[Dict[str, str]],
        temperature: float = CHAT_TEMPERATURE
    ) -> CompletionStream:
        """
        Start a streamed completion.

        The upstream request is made here, so provider errors surface before
        anything is sent to the client.

        Args:
            system: System instruction
            messages: Provider chat messages (see to_model_messages)
            temperature: Sampling temperature

        Returns:
            CompletionStream yielding text deltas

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        start_time = time.time()

        try:
            logger.debug(f"Opening stream with model: {self.model}")
            raw_stream = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "system", "content": system}, *messages],
                temperature=temperature,
                stream=True
            )
        except Exception as e:
            raise _to_client_error(e, self.model, start_time) from e

        return CompletionStream(raw_stream, model=self.model, start_time=start_time)

    async def close(self) -> None:
        await self.client.close()


def _to_client_error(exc: Exception, model: str, start_time: float) -> LLMClientError:
    """Map a provider exception onto a structured LLMClientError and log it."""
    latency_ms = int((time.time() - start_time) * 1000)
    details: Dict[str, Any] = {
        "model": model,
        "latency_ms": latency_ms,
        "original_error": str(exc)
    }

    if isinstance(exc, RateLimitError):
        code = "RATE_LIMIT_ERROR"
        message = "Rate limit exceeded. Please try again in a few moments."
        details["retry_after"] = 60
    elif isinstance(exc, AuthenticationError):
        code = "AUTHENTICATION_ERROR"
        message = "Authentication failed. Please check your API key."
    elif isinstance(exc, APITimeoutError):
        code = "TIMEOUT_ERROR"
        message = "Request timed out. Please try again."
    elif isinstance(exc, APIError):
        code = "API_ERROR"
        message = f"Groq API error: {str(exc)}"
    else:
        code = "UNKNOWN_ERROR"
        message = f"Unexpected error during generation: {str(exc)}"
        details["error_type"] = type(exc).__name__

    error = LLMError(code=code, message=message, details=details)
    logger.error(
        f"{code}: model={model}, latency={latency_ms}ms, error={exc}",
        exc_info=True,
        extra={"error_code": error.code, "error_details": error.details}
    )
    return LLMClientError(error)
