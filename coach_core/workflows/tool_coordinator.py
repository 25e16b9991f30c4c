import logging
from typing import List, Optional

from coach_core.errors import MessageIndexError
from coach_core.models.conversation_state import ConversationState
from coach_core.models.messages import MessageFactory, MessageState
from coach_core.models.tool_models import ToolCallResult, ToolExecutionResult
from coach_core.tools.detector import ToolCallDetector, clean_response
from coach_core.tools.executor import ToolCallRouter
from coach_core.tools.formatting import format_tool_results
from coach_core.workflows.delegate import DelegateGateway
from coach_core.workflows.response_state import AssistantResponseState

logger = logging.getLogger(__name__)


class ToolExecutionCoordinator:
    """
    Runs the tool calls found in a finished response and cleans the response.

    Every call in the full content is executed, one after another, in order
    of appearance. The streamed message is then refreshed with the cleaned
    text so no tool syntax remains visible.
    """

    def __init__(
        self,
        router: ToolCallRouter,
        gateway: DelegateGateway,
        detector: Optional[ToolCallDetector] = None,
    ):
        self.router = router
        self.gateway = gateway
        self.detector = detector or ToolCallDetector()

    async def _refresh_message(self, index: int, content: str, reasoning: Optional[str]) -> None:
        existing = await self.gateway.message_at(index)
        if existing is None:
            raise MessageIndexError(index)
        updated = MessageFactory.updated(existing, content, reasoning, MessageState.COMPLETED)
        await self.gateway.update_message(index, updated)

    async def process_tool_calls(
        self,
        response_state: AssistantResponseState,
        message_index: Optional[int] = None,
    ) -> ToolExecutionResult:
        """
        Detects and executes tool calls in `response_state.content`.

        Args:
            response_state: The finished response of the current turn.
            message_index: Index of the assistant message to refresh with the
                cleaned content, if one was created.

        Returns:
            A ToolExecutionResult. When tools ran, its system message carries
            the formatted results for the next model turn.

        Raises:
            MessageIndexError: If `message_index` points at no message.
        """
        content = response_state.content
        tool_calls = self.detector.detect_tool_calls(content)
        cleaned = clean_response(content)

        results: List[ToolCallResult] = []
        for tool_call in tool_calls:
            description = self.router.registry.describe(tool_call.name)
            await self.gateway.notify_conversation_state(ConversationState.PROCESSING_TOOL, description)
            await self.gateway.notify_tool_started(tool_call.name, description)
            result = await self.router.execute(tool_call)
            results.append(result)
            await self.gateway.notify_tool_completed(result)

        if message_index is not None:
            await self._refresh_message(message_index, cleaned, response_state.reasoning)

        if not results:
            return ToolExecutionResult(has_tools=False, cleaned_response=cleaned)

        logger.info(
            f"Executed {len(results)} tool calls, {sum(r.success for r in results)} succeeded."
        )
        return ToolExecutionResult(
            has_tools=True,
            tool_results=results,
            cleaned_response=cleaned,
            system_message=MessageFactory.system(format_tool_results(results)),
        )
