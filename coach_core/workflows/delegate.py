import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

from coach_core.models.conversation_state import ConversationState
from coach_core.models.messages import Message
from coach_core.models.tool_models import ToolCallResult


class ConversationDelegate(ABC):
    """
    The UI/state sink the conversation core reports to.

    The delegate owns the conversation history. Any method may be implemented
    as a plain function or as a coroutine; the core always calls it through a
    DelegateGateway.
    """

    @abstractmethod
    def create_message(self, message: Message) -> int:
        """Appends a message and returns its index."""

    @abstractmethod
    def update_message(self, index: int, message: Message) -> None:
        """Replaces the message at `index`."""

    @abstractmethod
    def message_at(self, index: int) -> Optional[Message]:
        """Returns the message at `index`, or None if there is none."""

    @abstractmethod
    def message_count(self) -> int:
        """Returns the number of messages in the history."""

    @abstractmethod
    def api_history(self) -> List[Message]:
        """Returns the history to send to the model for the next call."""

    def notify_tool_detected(self, name: str, description: str) -> Any:
        return self.notify_conversation_state(ConversationState.PROCESSING_TOOL, description)

    def notify_tool_started(self, name: str, description: str) -> Any:
        pass

    def notify_tool_completed(self, result: ToolCallResult) -> Any:
        pass

    def notify_reasoning_state(self, is_streaming: bool, latest_chunk: Optional[str]) -> Any:
        pass

    def notify_conversation_state(self, state: ConversationState, detail: Optional[str] = None) -> Any:
        pass


class DelegateGateway:
    """
    Serializes every call into a ConversationDelegate.

    The streaming loop, the batched flush task and the coordinators all share
    one gateway per conversation, so the message list has exactly one writer
    at a time.
    """

    def __init__(self, delegate: ConversationDelegate):
        self.delegate = delegate
        self._lock = asyncio.Lock()

    async def _call(self, method: Callable[..., Any], *args: Any) -> Any:
        async with self._lock:
            result = method(*args)
            if inspect.isawaitable(result):
                result = await result
            return result

    async def create_message(self, message: Message) -> int:
        return await self._call(self.delegate.create_message, message)

    async def update_message(self, index: int, message: Message) -> None:
        await self._call(self.delegate.update_message, index, message)

    async def message_at(self, index: int) -> Optional[Message]:
        return await self._call(self.delegate.message_at, index)

    async def message_count(self) -> int:
        return await self._call(self.delegate.message_count)

    async def api_history(self) -> List[Message]:
        return await self._call(self.delegate.api_history)

    async def notify_tool_detected(self, name: str, description: str) -> None:
        await self._call(self.delegate.notify_tool_detected, name, description)

    async def notify_tool_started(self, name: str, description: str) -> None:
        await self._call(self.delegate.notify_tool_started, name, description)

    async def notify_tool_completed(self, result: ToolCallResult) -> None:
        await self._call(self.delegate.notify_tool_completed, result)

    async def notify_reasoning_state(self, is_streaming: bool, latest_chunk: Optional[str] = None) -> None:
        await self._call(self.delegate.notify_reasoning_state, is_streaming, latest_chunk)

    async def notify_conversation_state(self, state: ConversationState, detail: Optional[str] = None) -> None:
        await self._call(self.delegate.notify_conversation_state, state, detail)
