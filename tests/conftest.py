"""Shared fixtures and fakes for the MedChat proxy tests."""
import os
import sys
import time
from types import SimpleNamespace

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import pytest

from config import CHAT_TEMPERATURE
from services.chat_store import ChatStore
from services.llm_client import CompletionStream
from services.usage_logger import UsageLogger


def make_chunk(content=None, finish_reason=None, usage=None):
    """Build a Groq-style streaming chunk."""
    return SimpleNamespace(
        choices=[SimpleNamespace(
            delta=SimpleNamespace(content=content),
            finish_reason=finish_reason
        )],
        x_groq=SimpleNamespace(usage=usage) if usage is not None else None
    )


def make_reply_chunks(*deltas, prompt_tokens=120, completion_tokens=30):
    """Chunks for a complete reply, usage attached to the final chunk."""
    chunks = [make_chunk(content=delta) for delta in deltas]
    chunks.append(make_chunk(
        finish_reason="stop",
        usage=SimpleNamespace(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens
        )
    ))
    return chunks


class FakeRawStream:
    """Async iterable standing in for the SDK's streaming response."""

    def __init__(self, chunks, error=None):
        self.chunks = chunks
        self.error = error
        self.close_calls = 0

    async def close(self):
        self.close_calls += 1

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error


class FakeLLMClient:
    """LLMClient replacement that replays canned chunks."""

    def __init__(self, chunks=None, open_error=None, stream_error=None,
                 model="llama-3.3-70b-versatile"):
        self.chunks = chunks if chunks is not None else make_reply_chunks("Amoxicillin ", "500 mg every 8 hours.")
        self.open_error = open_error
        self.stream_error = stream_error
        self.model = model
        self.calls = []
        self.raw_streams = []

    async def open_stream(self, system, messages, temperature=CHAT_TEMPERATURE):
        self.calls.append({"system": system, "messages": messages, "temperature": temperature})
        if self.open_error is not None:
            raise self.open_error
        raw_stream = FakeRawStream(self.chunks, self.stream_error)
        self.raw_streams.append(raw_stream)
        return CompletionStream(
            raw_stream,
            model=self.model,
            start_time=time.time()
        )


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms=1000):
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path, clock):
    chat_store = ChatStore(str(tmp_path / "chats.db"), clock=clock)
    yield chat_store
    chat_store.close()


@pytest.fixture
def log_file(tmp_path):
    return tmp_path / "logs" / "usage.jsonl"


@pytest.fixture
def usage_logger(log_file):
    sink = UsageLogger(log_file_path=str(log_file))
    yield sink
    sink.close()


def user_message(*texts, message_id=None):
    message = {"role": "user", "parts": [{"type": "text", "text": t} for t in texts]}
    if message_id:
        message["id"] = message_id
    return message


def assistant_message(text, message_id=None):
    message = {"role": "assistant", "parts": [{"type": "text", "text": text}]}
    if message_id:
        message["id"] = message_id
    return message
