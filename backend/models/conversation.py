"""Conversation data models."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ConversationSummary:
    """Conversation metadata without the message thread."""
    id: str
    role: str
    patient_id: str
    title: Optional[str]
    created_at: int  # epoch milliseconds
    updated_at: int  # epoch milliseconds
    last_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "patientId": self.patient_id,
            "title": self.title,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "lastMessage": self.last_message,
        }


@dataclass
class ConversationRecord(ConversationSummary):
    """Durable representation of one chat thread."""
    messages: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["messages"] = self.messages
        return data
