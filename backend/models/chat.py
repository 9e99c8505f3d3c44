"""Chat request models exchanged with the browser client."""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Staff role of the person chatting; selects the system instruction."""
    DOCTOR = "doctor"
    NURSE = "nurse"
    RECEPTIONIST = "receptionist"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessagePart(BaseModel):
    """A typed content segment of a message. Only "text" parts carry `text`."""
    model_config = ConfigDict(extra="allow")

    type: str
    text: Optional[str] = None


class UIMessage(BaseModel):
    """A single chat message as rendered by the client."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    role: MessageRole
    parts: List[MessagePart] = Field(default_factory=list)

    def text(self, separator: str = " ") -> str:
        """Join the text parts of this message."""
        return separator.join(
            part.text for part in self.parts
            if part.type == "text" and part.text is not None
        ).strip()

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ChatRequest(BaseModel):
    """Body of POST /chat."""
    messages: List[UIMessage] = Field(..., min_length=1)
    chatId: str = Field(..., min_length=1, description="Caller-supplied conversation id")
    # Kept as a plain string: unknown roles fall back to the receptionist instruction
    role: str = Field(..., description="'doctor', 'nurse' or 'receptionist'")
    patientId: str = Field(..., description="Opaque patient context, not an access control")
