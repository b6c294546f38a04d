"""Chat transcript records."""

import uuid
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant", "system"]


class ChatMessage(BaseModel):
    """Immutable chat message. Insertion order in the transcript is conversation order."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def create(cls, role: Role, content: str, metadata: dict[str, Any] | None = None) -> "ChatMessage":
        return cls(
            id=f"msg-{uuid.uuid4().hex[:12]}",
            role=role,
            content=content,
            metadata=metadata or {},
        )


class ChatTranscript:
    """Append-only ordered transcript. Cleared as a whole, never per message."""

    def __init__(self, messages: list[ChatMessage] | None = None) -> None:
        self._messages: list[ChatMessage] = list(messages or [])

    def append(self, message: ChatMessage) -> ChatMessage:
        self._messages.append(message)
        return message

    def clear(self) -> None:
        self._messages.clear()

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)
