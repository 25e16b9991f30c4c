import logging
from typing import List, Optional, Tuple

from coach_core.models.conversation_state import ConversationState
from coach_core.models.messages import Message, MessageFactory, MessageRole
from coach_core.models.tool_models import ToolCallResult
from coach_core.workflows.delegate import ConversationDelegate

logger = logging.getLogger(__name__)


class InMemoryConversation(ConversationDelegate):
    """
    A conversation delegate that keeps the whole history in memory.

    It is the canonical state of a single conversation: the message list, the
    current conversation state, the reasoning indicator and a log of tool
    events. The history sent to the model is a sliding window over the
    messages.
    """

    def __init__(self, max_history_messages: int = 40):
        """
        Initializes the conversation.

        Args:
            max_history_messages: The number of most recent messages sent to the model.
        """
        self.messages: List[Message] = []
        self.state = ConversationState.IDLE
        self.state_detail: Optional[str] = None
        self.state_history: List[ConversationState] = []
        self.is_streaming_reasoning = False
        self.latest_reasoning_chunk: Optional[str] = None
        self.tool_events: List[Tuple[str, str]] = []
        self.tool_results: List[ToolCallResult] = []
        self.max_history_messages = max_history_messages

    def add_user_message(self, content: str) -> int:
        return self.create_message(MessageFactory.user(content))

    def create_message(self, message: Message) -> int:
        self.messages.append(message)
        return len(self.messages) - 1

    def update_message(self, index: int, message: Message) -> None:
        if not 0 <= index < len(self.messages):
            logger.warning(f"Ignoring update for missing message index {index}.")
            return
        self.messages[index] = message

    def message_at(self, index: int) -> Optional[Message]:
        if 0 <= index < len(self.messages):
            return self.messages[index]
        return None

    def message_count(self) -> int:
        return len(self.messages)

    def api_history(self) -> List[Message]:
        """
        Returns the window of messages to send to the model.

        Assistant messages that are still streaming or have no content are
        left out.
        """
        history = [
            message
            for message in self.messages
            if not (message.role == MessageRole.ASSISTANT and (message.is_streaming or not message.content.strip()))
        ]
        return history[-self.max_history_messages :]

    def assistant_messages(self) -> List[Message]:
        return [message for message in self.messages if message.role == MessageRole.ASSISTANT]

    def notify_tool_detected(self, name: str, description: str) -> None:
        self.tool_events.append(("detected", name))
        self.notify_conversation_state(ConversationState.PROCESSING_TOOL, description)

    def notify_tool_started(self, name: str, description: str) -> None:
        self.tool_events.append(("started", name))

    def notify_tool_completed(self, result: ToolCallResult) -> None:
        self.tool_events.append(("completed", result.tool_name))
        self.tool_results.append(result)

    def notify_reasoning_state(self, is_streaming: bool, latest_chunk: Optional[str]) -> None:
        self.is_streaming_reasoning = is_streaming
        self.latest_reasoning_chunk = latest_chunk if is_streaming else None

    def notify_conversation_state(self, state: ConversationState, detail: Optional[str] = None) -> None:
        if state != self.state:
            logger.debug(f"Conversation state: {self.state.value} -> {state.value}")
        self.state = state
        self.state_detail = detail
        self.state_history.append(state)
