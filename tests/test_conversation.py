"""Tests for the InMemoryConversation reference delegate."""

from coach_core.memory import InMemoryConversation
from coach_core.models.conversation_state import ConversationState
from coach_core.models.messages import MessageFactory
from coach_core.models.tool_models import ToolCallResult


class TestHistory:
    def test_create_update_and_lookup(self):
        conversation = InMemoryConversation()
        index = conversation.add_user_message("hi")
        conversation.update_message(index, MessageFactory.user("hello"))

        assert index == 0
        assert conversation.message_at(0).content == "hello"
        assert conversation.message_at(5) is None
        assert conversation.message_at(-1) is None
        assert conversation.message_count() == 1

    def test_update_out_of_range_is_ignored(self):
        conversation = InMemoryConversation()

        conversation.update_message(3, MessageFactory.user("x"))

        assert conversation.messages == []

    def test_api_history_skips_streaming_and_empty_assistant_messages(self):
        conversation = InMemoryConversation()
        conversation.add_user_message("hi")
        conversation.create_message(MessageFactory.assistant(""))
        conversation.create_message(MessageFactory.system("Tool 'x' executed successfully:\nok"))
        conversation.create_message(MessageFactory.assistant_streaming("typing"))

        history = conversation.api_history()

        assert [m.content for m in history] == ["hi", "Tool 'x' executed successfully:\nok"]

    def test_api_history_window(self):
        conversation = InMemoryConversation(max_history_messages=2)
        for text in ["one", "two", "three"]:
            conversation.add_user_message(text)

        assert [m.content for m in conversation.api_history()] == ["two", "three"]


class TestNotifications:
    def test_tool_events_and_state(self):
        conversation = InMemoryConversation()

        conversation.notify_tool_detected("get_workout", "Looking up your workout")
        conversation.notify_tool_started("get_workout", "Looking up your workout")
        conversation.notify_tool_completed(ToolCallResult(tool_name="get_workout", result="ok"))

        assert conversation.state == ConversationState.PROCESSING_TOOL
        assert conversation.state_detail == "Looking up your workout"
        assert conversation.tool_events == [
            ("detected", "get_workout"),
            ("started", "get_workout"),
            ("completed", "get_workout"),
        ]
        assert conversation.tool_results[0].result == "ok"

    def test_reasoning_indicator(self):
        conversation = InMemoryConversation()

        conversation.notify_reasoning_state(True, "step one")
        assert conversation.is_streaming_reasoning
        assert conversation.latest_reasoning_chunk == "step one"

        conversation.notify_reasoning_state(False, None)
        assert not conversation.is_streaming_reasoning
        assert conversation.latest_reasoning_chunk is None
