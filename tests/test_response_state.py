"""Tests for AssistantResponseState and the message factory."""

import pytest
from pydantic import ValidationError

from coach_core.models.messages import MessageFactory, MessageRole, MessageState
from coach_core.models.tool_models import ToolCallResult, ToolExecutionResult
from coach_core.workflows.response_state import AssistantResponseState


class TestAssistantResponseState:
    def test_starts_empty(self):
        state = AssistantResponseState()

        assert state.content == ""
        assert state.reasoning is None
        assert state.message_index is None
        assert not state.is_complete
        assert not state.has_content
        assert not state.has_reasoning

    def test_accumulates_content_and_reasoning(self):
        state = AssistantResponseState()
        state.append_content("Hel")
        state.append_content("lo")
        state.append_reasoning("think")
        state.append_reasoning("ing")
        state.set_message_index(3)
        state.mark_complete()

        assert state.content == "Hello"
        assert state.reasoning == "thinking"
        assert state.message_index == 3
        assert state.is_complete

    def test_to_streaming_message_keeps_identity(self):
        state = AssistantResponseState()
        state.set_content("partial")
        first = state.to_streaming_message()
        state.append_content(" more")

        second = state.to_streaming_message(existing_id=first.id)

        assert second.id == first.id
        assert second.content == "partial more"
        assert second.state == MessageState.STREAMING

    def test_to_message_is_completed_assistant(self):
        state = AssistantResponseState()
        state.set_content("Done")
        state.set_reasoning("why")

        message = state.to_message()

        assert message.role == MessageRole.ASSISTANT
        assert message.state == MessageState.COMPLETED
        assert message.reasoning == "why"


class TestMessageFactory:
    def test_updated_keeps_id_timestamp_and_reasoning(self):
        original = MessageFactory.assistant_streaming("draft", reasoning="plan")

        updated = MessageFactory.updated(original, "final")

        assert updated.id == original.id
        assert updated.timestamp == original.timestamp
        assert updated.reasoning == "plan"
        assert updated.content == "final"
        assert updated.state == MessageState.COMPLETED
        assert original.content == "draft"

    def test_messages_are_immutable(self):
        message = MessageFactory.user("hi")

        with pytest.raises(ValidationError):
            message.content = "changed"


class TestToolExecutionResult:
    def test_tools_require_system_message(self):
        with pytest.raises(ValidationError):
            ToolExecutionResult(has_tools=True, tool_results=[ToolCallResult(tool_name="x")])

    def test_no_tools_forbids_results(self):
        with pytest.raises(ValidationError):
            ToolExecutionResult(has_tools=False, system_message=MessageFactory.system("x"))
