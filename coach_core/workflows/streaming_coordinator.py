import logging
import re
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from coach_core.llm.llm_service import ChatBackend, ChatRequest, StreamEventKind
from coach_core.models.messages import MessageFactory
from coach_core.tools.detector import TOOL_CALL_MARKER, ToolCallDetector
from coach_core.tools.executor import ToolExecutorRegistry
from coach_core.workflows.delegate import DelegateGateway
from coach_core.workflows.response_state import AssistantResponseState
from coach_core.workflows.update_batcher import UpdateBatcher

logger = logging.getLogger(__name__)


class StreamingResult(BaseModel):
    """Outcome of one streamed turn."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    state: AssistantResponseState
    visible_content: str = ""
    detected_tool_name: Optional[str] = None

    @property
    def detected_tool_call(self) -> bool:
        return self.detected_tool_name is not None


# Everything a tool call can look like before it closes: the marker, then an
# optional name, then an optional parameter list that has not hit ")]" yet.
_OPEN_DIRECTIVE = re.compile(r"\[TOOL_CALL:\s*(?:\w+(?:\(.*)?)?", re.DOTALL)


def could_become_tool_call(tail: str) -> bool:
    """True when `tail` (starting at a `[`) can still grow into a tool call."""
    return TOOL_CALL_MARKER.startswith(tail) or _OPEN_DIRECTIVE.fullmatch(tail) is not None


def pending_directive_start(text: str, start: int = 0) -> Optional[int]:
    """
    Returns where a possibly unfinished tool call begins at the end of `text`.

    That is the offset of the first `[` at or after `start` whose tail is a
    prefix of the marker (`[TOOL_`) or an open directive such as
    `[TOOL_CALL: plan_workout(date: "to`. A tail that can no longer match,
    like `[TOOL_CALL: with a space`, does not count.
    """
    index = text.find("[", start)
    while index != -1:
        if could_become_tool_call(text[index:]):
            return index
        index = text.find("[", index + 1)
    return None


class _StreamSession:
    """Mutable bookkeeping for a single stream."""

    def __init__(self, token_buffer_limit: int):
        self.token_buffer_limit = token_buffer_limit
        self.raw_content = ""
        self.visible_content = ""
        self.reasoning = ""
        self.token_buffer = ""
        self.buffering_tool = False
        self.detected_tool_name: Optional[str] = None
        self.hold_start: Optional[int] = None
        self.message_index: Optional[int] = None
        self.message_id: Optional[UUID] = None
        self.published = ("", "")

    def push_content(self, chunk: str, detector: ToolCallDetector) -> bool:
        """Feeds a content token; returns True when it completed the first tool call."""
        self.raw_content += chunk
        self.token_buffer = (self.token_buffer + chunk)[-self.token_buffer_limit :]
        if self.buffering_tool:
            return False

        self.visible_content += chunk
        offset = len(self.raw_content) - len(self.token_buffer)
        tool_call = detector.first_match(self.token_buffer)
        if tool_call is None and self.hold_start is not None and self.hold_start < offset and "]" in chunk:
            # The held directive began before the window, so match it from its own start.
            offset = self.hold_start
            tool_call = detector.first_match(self.raw_content[offset:])
        if tool_call is None:
            self._track_hold(len(chunk))
            return False

        self.visible_content = self.raw_content[: offset + tool_call.span[0]]
        self.buffering_tool = True
        self.detected_tool_name = tool_call.name
        self.hold_start = None
        return True

    def _track_hold(self, chunk_length: int) -> None:
        if self.hold_start is not None:
            if could_become_tool_call(self.visible_content[self.hold_start :]):
                return
            scan_from = self.hold_start + 1
        else:
            scan_from = len(self.visible_content) - chunk_length
        self.hold_start = pending_directive_start(self.visible_content, scan_from)

    def publishable_content(self) -> str:
        if self.buffering_tool or self.hold_start is None:
            return self.visible_content
        return self.visible_content[: self.hold_start]


class StreamingCoordinator:
    """
    Streams one model response into the conversation.

    Visible text is published while the stream is in the normal state. The
    first complete tool call latches the session into tool buffering for the
    rest of the stream: later text is still collected for the final response
    but never shown, and no second detection is reported. Trailing text that
    could still grow into a tool call is held back until it either completes
    or turns out to be ordinary text. Detection searches a sliding window of
    the last `token_buffer_limit` characters; a held directive that outgrows
    the window is matched from its own start instead.

    Message updates after creation go through an UpdateBatcher and are
    flushed one final time when the stream ends, whether it succeeded or not.
    """

    def __init__(
        self,
        backend: ChatBackend,
        gateway: DelegateGateway,
        registry: Optional[ToolExecutorRegistry] = None,
        detector: Optional[ToolCallDetector] = None,
        token_buffer_limit: int = 2000,
        flush_interval: float = 0.05,
    ):
        self.backend = backend
        self.gateway = gateway
        self.registry = registry
        self.detector = detector or ToolCallDetector()
        self.token_buffer_limit = token_buffer_limit
        self.flush_interval = flush_interval

    def _describe(self, tool_name: str) -> str:
        if self.registry is not None:
            return self.registry.describe(tool_name)
        return f"Processing {tool_name}..."

    async def _publish(self, session: _StreamSession, batcher: UpdateBatcher) -> None:
        content = session.publishable_content()
        snapshot = (content, session.reasoning)
        if snapshot == session.published:
            return
        session.published = snapshot
        reasoning = session.reasoning or None

        if session.message_index is None:
            message = MessageFactory.assistant_streaming(content, reasoning)
            session.message_index = await self.gateway.create_message(message)
            session.message_id = message.id
            logger.debug(f"Created streaming message at index {session.message_index}.")
            return

        message = MessageFactory.assistant_streaming(content, reasoning).model_copy(
            update={"id": session.message_id}
        )
        batcher.schedule(session.message_index, message)

    async def stream_response(self, request: ChatRequest) -> StreamingResult:
        """
        Consumes the backend stream for `request`.

        Returns:
            A StreamingResult whose state holds the full raw content, the
            accumulated reasoning and the index of the streamed message.

        Raises:
            Whatever the backend stream raises, after the pending update has
            been flushed.
        """
        session = _StreamSession(self.token_buffer_limit)
        batcher = UpdateBatcher(self.gateway, self.flush_interval)
        token_count = 0

        async with batcher:
            async for event in self.backend.stream(request):
                if not event.text:
                    continue
                token_count += 1
                if event.kind == StreamEventKind.REASONING:
                    session.reasoning += event.text
                    await self.gateway.notify_reasoning_state(True, event.text)
                else:
                    if session.push_content(event.text, self.detector):
                        name = session.detected_tool_name
                        logger.info(f"Tool call '{name}' detected after {token_count} tokens.")
                        await self.gateway.notify_tool_detected(name, self._describe(name))
                await self._publish(session, batcher)

        if session.reasoning:
            await self.gateway.notify_reasoning_state(False, None)

        state = AssistantResponseState()
        state.set_content(session.raw_content)
        state.set_reasoning(session.reasoning or None)
        if session.message_index is not None:
            state.set_message_index(session.message_index)
        state.mark_complete()

        logger.info(
            f"Stream finished: {token_count} tokens, {len(session.raw_content)} content chars, "
            f"{len(session.reasoning)} reasoning chars."
        )
        return StreamingResult(
            state=state,
            visible_content=session.visible_content,
            detected_tool_name=session.detected_tool_name,
        )
