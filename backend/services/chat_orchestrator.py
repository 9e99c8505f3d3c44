"""
Chat orchestration: role prompt -> streamed completion -> bookkeeping.

The client-facing stream and the post-completion bookkeeping are separate:
`stream_events` only relays provider output, `finalize` runs afterwards (as a
response background task) and writes the usage log and the conversation
record as two independent tasks.
"""
import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from models.chat import ChatRequest, MessageRole, Role, UIMessage
from models.usage import UsageRecord
from services.chat_store import ChatStore
from services.cost_calculator import calculate_cost
from services.llm_client import CompletionStream, LLMClient, LLMClientError, to_model_messages
from services.role_prompts import build_system_prompt, resolve_role
from services.usage_logger import UsageLogger

logger = logging.getLogger(__name__)


def get_last_user_text(messages: Sequence[UIMessage]) -> Optional[str]:
    """Text of the last user message, parts joined with a single space."""
    for message in reversed(messages):
        if message.role == MessageRole.USER:
            return message.text(separator=" ")
    return None


def format_event(payload: Dict[str, Any]) -> bytes:
    """Encode one Server-Sent Event."""
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


@dataclass
class ChatExchange:
    """In-flight state of one POST /chat request."""
    chat_id: str
    role: Role
    patient_id: str
    messages: List[UIMessage]
    stream: CompletionStream
    message_id: str = field(default_factory=lambda: f"msg_{uuid.uuid4().hex[:16]}")
    cost_usd: Optional[float] = None
    completed: bool = False

    def assistant_message(self) -> Dict[str, Any]:
        return {
            "id": self.message_id,
            "role": MessageRole.ASSISTANT.value,
            "parts": [{"type": "text", "text": self.stream.text}],
        }

    def updated_messages(self) -> List[Dict[str, Any]]:
        """Original thread plus the new assistant turn."""
        return [m.to_dict() for m in self.messages] + [self.assistant_message()]


class ChatOrchestrator:
    """Turns a chat request into a streamed, logged and persisted exchange."""

    def __init__(
        self,
        llm_client: LLMClient,
        store: ChatStore,
        usage_logger: UsageLogger
    ):
        self.llm_client = llm_client
        self.store = store
        self.usage_logger = usage_logger

    async def start(self, request: ChatRequest) -> ChatExchange:
        """
        Compose the model request and open the upstream stream.

        Raises:
            LLMClientError: If the provider rejects the request
        """
        role = resolve_role(request.role)
        system = build_system_prompt(role, request.patientId)

        logger.info(
            f"Processing chat {request.chatId}: role={role.value}, "
            f"messages={len(request.messages)}"
        )

        stream = await self.llm_client.open_stream(
            system=system,
            messages=to_model_messages(request.messages),
        )
        return ChatExchange(
            chat_id=request.chatId,
            role=role,
            patient_id=request.patientId,
            messages=list(request.messages),
            stream=stream,
        )

    async def stream_events(self, exchange: ChatExchange) -> AsyncIterator[bytes]:
        """Relay provider deltas to the client as SSE events."""
        yield format_event({"type": "start", "messageId": exchange.message_id})

        try:
            async for delta in exchange.stream:
                yield format_event({"type": "token", "content": delta})
        except LLMClientError as e:
            logger.error(f"LLM client error during streaming of chat {exchange.chat_id}: {e.error.message}")
            yield format_event({
                "type": "error",
                "error": {"code": e.error.code, "message": e.error.message}
            })
            return
        finally:
            # Client disconnects surface here as GeneratorExit or cancellation
            if not exchange.stream.completed:
                await exchange.stream.close()

        exchange.cost_usd = calculate_cost(
            exchange.stream.model,
            exchange.stream.usage.input_tokens,
            exchange.stream.usage.output_tokens
        )
        exchange.completed = True

        yield format_event({
            "type": "finish",
            "finishReason": exchange.stream.finish_reason,
            "usage": exchange.stream.usage.to_dict(),
            "costUSD": exchange.cost_usd,
        })

    async def finalize(self, exchange: ChatExchange) -> None:
        """
        Write the usage record and persist the thread once the stream is done.

        Both run as separate tasks; a failure in one never affects the other.
        Incomplete exchanges (provider error, client gone) are not recorded and
        their upstream stream is closed.
        """
        if not exchange.completed:
            logger.warning(f"Chat {exchange.chat_id} did not complete, skipping bookkeeping")
            await exchange.stream.close()
            return

        await asyncio.gather(
            asyncio.create_task(self._record_usage(exchange)),
            asyncio.create_task(self._persist(exchange)),
        )

    def build_usage_record(self, exchange: ChatExchange) -> UsageRecord:
        return UsageRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            model=exchange.stream.model,
            finish_reason=exchange.stream.finish_reason,
            role=exchange.role.value,
            patient_id=exchange.patient_id,
            conversation_id=exchange.chat_id,
            last_user_text=get_last_user_text(exchange.messages),
            assistant_text=exchange.stream.text,
            usage=exchange.stream.usage,
            cost_usd=exchange.cost_usd,
        )

    async def _record_usage(self, exchange: ChatExchange) -> None:
        try:
            if not self.usage_logger.write(self.build_usage_record(exchange)):
                logger.warning(f"Usage record for chat {exchange.chat_id} was not written")
        except Exception as e:
            logger.error(f"Failed to log usage for chat {exchange.chat_id}: {e}", exc_info=True)

    async def _persist(self, exchange: ChatExchange) -> None:
        try:
            self.store.upsert(
                chat_id=exchange.chat_id,
                role=exchange.role.value,
                patient_id=exchange.patient_id,
                messages=exchange.updated_messages(),
            )
        except Exception as e:
            logger.error(f"Failed to save chat {exchange.chat_id}: {e}", exc_info=True)
