import asyncio
from datetime import date
from typing import AsyncIterator, List, Optional, Sequence, Union

import pytest

from coach_core.llm.llm_service import ChatBackend, ChatRequest, Completion, StreamEvent, StreamEventKind
from coach_core.memory import InMemoryConversation
from coach_core.settings import OrchestrationSettings
from coach_core.tools.executor import ToolExecutorRegistry
from coach_core.tools.executors import WorkoutToolExecutor
from coach_core.workflows.delegate import DelegateGateway

WORKOUT_JSON = '{"title": "Upper Body", "exercises": [{"name": "Bench"}, {"name": "Row"}], "duration": "45 min"}'
PLAN_CALL = f'[TOOL_CALL: plan_workout(date: "2024-05-01", workout_json: "{WORKOUT_JSON}")]'


def content(text: str) -> StreamEvent:
    return StreamEvent(kind=StreamEventKind.CONTENT, text=text)


def reasoning(text: str) -> StreamEvent:
    return StreamEvent(kind=StreamEventKind.REASONING, text=text)


def char_stream(text: str) -> List[StreamEvent]:
    """One content event per character."""
    return [content(char) for char in text]


class ScriptedBackend(ChatBackend):
    """A ChatBackend replaying canned stream events and completions."""

    def __init__(
        self,
        stream_events: Sequence[StreamEvent] = (),
        stream_error: Optional[Exception] = None,
        completions: Sequence[Union[str, Completion, Exception]] = (),
    ):
        self.stream_events = list(stream_events)
        self.stream_error = stream_error
        self.completions = list(completions)
        self.stream_requests: List[ChatRequest] = []
        self.complete_requests: List[ChatRequest] = []

    async def complete(self, request: ChatRequest) -> Completion:
        self.complete_requests.append(request)
        item = self.completions.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, str):
            return Completion(content=item)
        return item

    async def stream(self, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        self.stream_requests.append(request)
        for event in self.stream_events:
            await asyncio.sleep(0)
            yield event
        if self.stream_error is not None:
            raise self.stream_error


@pytest.fixture
def conversation() -> InMemoryConversation:
    """A conversation holding one user message."""
    conversation = InMemoryConversation()
    conversation.add_user_message("Plan my workout for tomorrow.")
    return conversation


@pytest.fixture
def gateway(conversation) -> DelegateGateway:
    return DelegateGateway(conversation)


@pytest.fixture
def workout_executor() -> WorkoutToolExecutor:
    return WorkoutToolExecutor(today_provider=lambda: date(2024, 5, 1))


@pytest.fixture
def registry(workout_executor) -> ToolExecutorRegistry:
    registry = ToolExecutorRegistry()
    registry.register(workout_executor)
    return registry


@pytest.fixture
def settings() -> OrchestrationSettings:
    return OrchestrationSettings(idle_delay_ms=0, flush_interval_ms=5)
