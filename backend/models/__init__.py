"""Data models for the MedChat proxy."""
from .chat import Role, MessageRole, MessagePart, UIMessage, ChatRequest
from .conversation import ConversationSummary, ConversationRecord
from .usage import TokenUsage, UsageRecord

__all__ = [
    "Role",
    "MessageRole",
    "MessagePart",
    "UIMessage",
    "ChatRequest",
    "ConversationSummary",
    "ConversationRecord",
    "TokenUsage",
    "UsageRecord",
]
