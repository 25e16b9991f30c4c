from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageState(str, Enum):
    STREAMING = "streaming"
    COMPLETED = "completed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    """
    A single entry in the conversation history.

    Messages are immutable values. A message that is still streaming is
    "mutated" by replacing it with an updated copy that keeps the same `id`,
    so a UI can diff the history by identity.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    role: MessageRole
    content: str = ""
    reasoning: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)
    state: MessageState = MessageState.COMPLETED

    @property
    def is_streaming(self) -> bool:
        return self.state == MessageState.STREAMING


class MessageFactory:
    """Constructors for the message shapes the conversation core produces."""

    @staticmethod
    def assistant(
        content: str,
        reasoning: Optional[str] = None,
        state: MessageState = MessageState.COMPLETED,
    ) -> Message:
        return Message(role=MessageRole.ASSISTANT, content=content, reasoning=reasoning, state=state)

    @staticmethod
    def assistant_streaming(content: str, reasoning: Optional[str] = None) -> Message:
        return Message(
            role=MessageRole.ASSISTANT,
            content=content,
            reasoning=reasoning,
            state=MessageState.STREAMING,
        )

    @staticmethod
    def system(content: str) -> Message:
        return Message(role=MessageRole.SYSTEM, content=content)

    @staticmethod
    def user(content: str) -> Message:
        return Message(role=MessageRole.USER, content=content)

    @staticmethod
    def updated(
        message: Message,
        content: str,
        reasoning: Optional[str] = None,
        state: MessageState = MessageState.COMPLETED,
    ) -> Message:
        """
        Returns a copy of `message` with new content, keeping its id and timestamp.

        Reasoning already present on the message is kept when none is supplied.
        """
        return message.model_copy(
            update={
                "content": content,
                "reasoning": reasoning if reasoning is not None else message.reasoning,
                "state": state,
            }
        )
