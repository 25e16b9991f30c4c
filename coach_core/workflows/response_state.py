from typing import Optional
from uuid import UUID

from coach_core.models.messages import Message, MessageFactory, MessageState


class AssistantResponseState:
    """
    Accumulates everything known about one assistant response.

    A fresh instance is created for every turn and never shared across turns.
    It performs no validation; the orchestrator decides what to do with it.
    """

    def __init__(self):
        self._content: str = ""
        self._reasoning: Optional[str] = None
        self._message_index: Optional[int] = None
        self._is_complete: bool = False

    @property
    def content(self) -> str:
        return self._content

    @property
    def reasoning(self) -> Optional[str]:
        return self._reasoning

    @property
    def message_index(self) -> Optional[int]:
        return self._message_index

    @property
    def is_complete(self) -> bool:
        return self._is_complete

    @property
    def has_content(self) -> bool:
        return bool(self._content)

    @property
    def has_reasoning(self) -> bool:
        return bool(self._reasoning)

    def append_content(self, chunk: str) -> None:
        self._content += chunk

    def append_reasoning(self, chunk: str) -> None:
        if self._reasoning is None:
            self._reasoning = chunk
        else:
            self._reasoning += chunk

    def set_content(self, content: str) -> None:
        self._content = content

    def set_reasoning(self, reasoning: Optional[str]) -> None:
        self._reasoning = reasoning

    def set_message_index(self, index: int) -> None:
        self._message_index = index

    def mark_complete(self) -> None:
        self._is_complete = True

    def to_message(self, state: MessageState = MessageState.COMPLETED) -> Message:
        return MessageFactory.assistant(content=self._content, reasoning=self._reasoning, state=state)

    def to_streaming_message(self, existing_id: Optional[UUID] = None) -> Message:
        """Builds a streaming message, reusing `existing_id` to keep identity stable."""
        message = MessageFactory.assistant_streaming(content=self._content, reasoning=self._reasoning)
        if existing_id is not None:
            message = message.model_copy(update={"id": existing_id})
        return message

    def __repr__(self) -> str:
        return (
            f"AssistantResponseState(content={self._content!r}, reasoning={self._reasoning!r}, "
            f"message_index={self._message_index!r}, is_complete={self._is_complete!r})"
        )
