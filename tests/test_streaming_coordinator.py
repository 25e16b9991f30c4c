"""Tests for StreamingCoordinator."""

from typing import List

import pytest

from coach_core.llm.llm_service import ChatRequest
from coach_core.memory import InMemoryConversation
from coach_core.models.messages import Message, MessageRole, MessageState
from coach_core.tools.detector import ToolCallDetector
from coach_core.workflows.delegate import DelegateGateway
from coach_core.workflows.streaming_coordinator import StreamingCoordinator, _StreamSession, pending_directive_start

from conftest import PLAN_CALL, ScriptedBackend, char_stream, content, reasoning


class WatchingConversation(InMemoryConversation):
    """Keeps every content value the user could have seen."""

    def __init__(self):
        super().__init__()
        self.seen: List[str] = []

    def create_message(self, message: Message) -> int:
        self.seen.append(message.content)
        return super().create_message(message)

    def update_message(self, index: int, message: Message) -> None:
        self.seen.append(message.content)
        super().update_message(index, message)


@pytest.fixture
def watcher():
    conversation = WatchingConversation()
    conversation.add_user_message("Plan my workout.")
    conversation.seen.clear()
    return conversation


def make_coordinator(backend, conversation, registry=None, token_buffer_limit=2000):
    return StreamingCoordinator(
        backend=backend,
        gateway=DelegateGateway(conversation),
        registry=registry,
        token_buffer_limit=token_buffer_limit,
        flush_interval=0.001,
    )


def detections(conversation: InMemoryConversation) -> List[str]:
    return [name for kind, name in conversation.tool_events if kind == "detected"]


class TestVisibleContent:
    @pytest.mark.asyncio
    async def test_char_by_char_tool_call_never_leaks(self, watcher, registry):
        raw = "Sure, let's plan. " + PLAN_CALL + " Enjoy the session!"
        coordinator = make_coordinator(ScriptedBackend(char_stream(raw)), watcher, registry)

        result = await coordinator.stream_response(ChatRequest())

        assert result.visible_content == "Sure, let's plan. "
        assert result.detected_tool_name == "plan_workout"
        assert result.state.content == raw
        assert result.state.is_complete
        assert detections(watcher) == ["plan_workout"]
        assert watcher.state_detail == "Planning your workout"

        message = watcher.messages[result.state.message_index]
        assert message.content == "Sure, let's plan. "
        assert message.state == MessageState.STREAMING
        assert all("[" not in seen and "Enjoy" not in seen for seen in watcher.seen)

    @pytest.mark.asyncio
    async def test_latch_reports_only_first_tool_call(self, watcher):
        raw = "A [TOOL_CALL: get_workout] B [TOOL_CALL: plan_workout] C"
        coordinator = make_coordinator(ScriptedBackend([content(raw[:10]), content(raw[10:])]), watcher)

        result = await coordinator.stream_response(ChatRequest())

        assert detections(watcher) == ["get_workout"]
        assert result.visible_content == "A "
        assert watcher.messages[-1].content == "A "

    @pytest.mark.asyncio
    async def test_plain_brackets_are_released(self, watcher):
        raw = "Use [brackets] and [T-bars] freely"
        coordinator = make_coordinator(ScriptedBackend(char_stream(raw)), watcher)

        result = await coordinator.stream_response(ChatRequest())

        assert not result.detected_tool_call
        assert watcher.messages[-1].content == raw
        assert detections(watcher) == []

    @pytest.mark.asyncio
    async def test_marker_that_cannot_match_is_released(self, watcher):
        raw = "Type [TOOL_CALL: with a space] literally. " + "Then keep rowing steadily. " * 10
        coordinator = make_coordinator(ScriptedBackend(char_stream(raw)), watcher)

        result = await coordinator.stream_response(ChatRequest())

        assert not result.detected_tool_call
        assert watcher.messages[-1].content == raw
        assert detections(watcher) == []

    @pytest.mark.asyncio
    async def test_response_that_is_only_a_tool_call_creates_no_message(self, watcher):
        coordinator = make_coordinator(ScriptedBackend(char_stream("[TOOL_CALL: get_workout]")), watcher)

        result = await coordinator.stream_response(ChatRequest())

        assert result.state.message_index is None
        assert [m.role for m in watcher.messages] == [MessageRole.USER]
        assert detections(watcher) == ["get_workout"]

    @pytest.mark.asyncio
    async def test_one_message_is_created_and_updated_in_place(self, watcher):
        coordinator = make_coordinator(ScriptedBackend(char_stream("Keep your back straight.")), watcher)

        result = await coordinator.stream_response(ChatRequest())

        assistant = [m for m in watcher.messages if m.role == MessageRole.ASSISTANT]
        assert len(assistant) == 1
        assert result.state.message_index == 1
        assert assistant[0].content == "Keep your back straight."


class TestReasoning:
    @pytest.mark.asyncio
    async def test_reasoning_creates_message_and_toggles_indicator(self, watcher):
        events = [reasoning("Thinking "), reasoning("hard"), content("Rest "), content("today.")]
        coordinator = make_coordinator(ScriptedBackend(events), watcher)

        result = await coordinator.stream_response(ChatRequest())

        assert watcher.seen[0] == ""
        assert result.state.reasoning == "Thinking hard"
        assert watcher.messages[-1].reasoning == "Thinking hard"
        assert watcher.messages[-1].content == "Rest today."
        assert watcher.is_streaming_reasoning is False
        assert watcher.latest_reasoning_chunk is None


class TestFailure:
    @pytest.mark.asyncio
    async def test_failure_flushes_partial_content_and_propagates(self, watcher):
        backend = ScriptedBackend([content("Par"), content("tial")], stream_error=ConnectionError("reset"))
        coordinator = make_coordinator(backend, watcher)

        with pytest.raises(ConnectionError):
            await coordinator.stream_response(ChatRequest())

        assert watcher.messages[-1].content == "Partial"
        assert watcher.messages[-1].state == MessageState.STREAMING


class TestPendingDirectiveStart:
    def test_marker_prefix(self):
        assert pending_directive_start("Hello [TOOL") == 6

    def test_unclosed_directive(self):
        assert pending_directive_start('Hi [TOOL_CALL: x(a: "[1]"') == 3

    def test_ordinary_brackets(self):
        assert pending_directive_start("see [1] and [note]") is None

    def test_marker_followed_by_non_name_text(self):
        assert pending_directive_start("Type [TOOL_CALL: with a space") is None

    def test_marker_without_name_closed(self):
        assert pending_directive_start("[TOOL_CALL: ] done") is None

    def test_earliest_open_directive_wins(self):
        assert pending_directive_start('Go [TOOL_CALL: plan_workout(note: "[TOOL') == 3


PROSE = "Warm up with five minutes of easy cycling, then open up your hips. " * 2


def feed(session: _StreamSession, text: str) -> List[bool]:
    detector = ToolCallDetector()
    completed = []
    for char in text:
        completed.append(session.push_content(char, detector))
        assert len(session.token_buffer) <= session.token_buffer_limit
        assert "[" not in session.publishable_content()
    return completed


class TestSlidingWindow:
    def test_call_inside_window_truncates_visible_content(self):
        session = _StreamSession(token_buffer_limit=64)

        completed = feed(session, PROSE + "[TOOL_CALL: get_workout] See you there.")

        assert completed.count(True) == 1
        assert session.detected_tool_name == "get_workout"
        assert session.visible_content == PROSE
        assert session.publishable_content() == PROSE

    def test_directive_longer_than_window_is_held_and_detected(self):
        assert len(PLAN_CALL) > 64
        session = _StreamSession(token_buffer_limit=64)

        completed = feed(session, PROSE + PLAN_CALL + " Enjoy the session!")

        assert completed.count(True) == 1
        assert session.detected_tool_name == "plan_workout"
        assert session.visible_content == PROSE
        assert session.raw_content.endswith("Enjoy the session!")

    @pytest.mark.asyncio
    async def test_small_window_never_leaks_tool_syntax(self, watcher, registry):
        raw = PROSE + PLAN_CALL + " Enjoy the session!"
        coordinator = make_coordinator(ScriptedBackend(char_stream(raw)), watcher, registry, token_buffer_limit=64)

        result = await coordinator.stream_response(ChatRequest())

        assert result.visible_content == PROSE
        assert detections(watcher) == ["plan_workout"]
        assert watcher.messages[result.state.message_index].content == PROSE
        assert all("[" not in seen for seen in watcher.seen)
