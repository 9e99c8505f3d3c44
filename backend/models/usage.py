"""Token usage and usage log data models."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class TokenUsage:
    """Token counts reported by the provider. Any count may be missing."""
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    reasoning_tokens: Optional[int] = None
    cached_input_tokens: Optional[int] = None

    def to_dict(self) -> Dict[str, Optional[int]]:
        return {
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "totalTokens": self.total_tokens,
            "reasoningTokens": self.reasoning_tokens,
            "cachedInputTokens": self.cached_input_tokens,
        }


@dataclass
class UsageRecord:
    """One finished exchange: tokens, cost and a content excerpt."""
    timestamp: str
    model: str
    finish_reason: Optional[str]
    role: str
    patient_id: str
    conversation_id: str
    last_user_text: Optional[str]
    assistant_text: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    cost_usd: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "model": self.model,
            "finishReason": self.finish_reason,
            "role": self.role,
            "patientId": self.patient_id,
            "conversationId": self.conversation_id,
            "lastUserText": self.last_user_text,
            "assistantText": self.assistant_text,
            "usage": self.usage.to_dict(),
            "costUSD": self.cost_usd,
        }
