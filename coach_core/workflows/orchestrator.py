import asyncio
import logging
from typing import Any, Dict, Iterable, Optional

from langgraph.graph import END, StateGraph
from omegaconf import DictConfig
from pydantic import BaseModel, ConfigDict

from coach_core.errors import MessageIndexError, MissingContentError
from coach_core.llm.llm_service import ChatBackend, ChatRequest, Completion, LLMService
from coach_core.models.conversation_state import ConversationState
from coach_core.models.messages import MessageFactory, MessageRole, MessageState
from coach_core.settings import OrchestrationSettings
from coach_core.tools.detector import ToolCallDetector, clean_response
from coach_core.tools.executor import ToolCallRouter, ToolExecutor, ToolExecutorRegistry
from coach_core.workflows.delegate import ConversationDelegate, DelegateGateway
from coach_core.workflows.fallbacks import synthesize_from_tool_history
from coach_core.workflows.response_state import AssistantResponseState
from coach_core.workflows.state import TurnLoopState
from coach_core.workflows.streaming_coordinator import StreamingCoordinator
from coach_core.workflows.tool_coordinator import ToolExecutionCoordinator

logger = logging.getLogger(__name__)


class OrchestrationResult(BaseModel):
    """What a finished request hands back to the caller."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    final_state: AssistantResponseState
    turns: int
    had_tools: bool


class ResponseOrchestrator:
    """
    Runs the multi-turn loop that turns one user request into a final answer,
    built using LangGraph.

    The first turn is streamed; if streaming fails, one non-streaming call is
    made within the same turn. Follow-up turns, which react to tool results,
    are non-streaming. Each turn's tool calls are executed and their results
    appended to the history as a system message before the next turn. The
    loop stops when a turn has no tool calls or after `max_turns` turns, and
    the final answer is never blank.
    """

    def __init__(
        self,
        backend: ChatBackend,
        delegate: ConversationDelegate,
        registry: Optional[ToolExecutorRegistry] = None,
        settings: Optional[OrchestrationSettings] = None,
    ):
        self.backend = backend
        self.settings = settings or OrchestrationSettings()
        self.registry = registry or ToolExecutorRegistry()
        self.gateway = DelegateGateway(delegate)

        detector = ToolCallDetector()
        self.streaming_coordinator = StreamingCoordinator(
            backend=backend,
            gateway=self.gateway,
            registry=self.registry,
            detector=detector,
            token_buffer_limit=self.settings.token_buffer_limit,
            flush_interval=self.settings.flush_interval,
        )
        self.tool_coordinator = ToolExecutionCoordinator(
            router=ToolCallRouter(self.registry),
            gateway=self.gateway,
            detector=detector,
        )

        self.workflow = self._build_graph()
        self.app = self.workflow.compile()

    @classmethod
    def from_config(
        cls,
        app_config: DictConfig,
        delegate: ConversationDelegate,
        executors: Iterable[ToolExecutor] = (),
        backend: Optional[ChatBackend] = None,
    ) -> "ResponseOrchestrator":
        """
        Factory method to create an orchestrator from the application config.

        Args:
            app_config: The config returned by `load_app_config`.
            delegate: The conversation sink that owns the message history.
            executors: Tool executors to register.
            backend: Overrides the LLM service built from `llms.yaml`.
        """
        settings = OrchestrationSettings.from_config(app_config.get("orchestration"))
        if backend is None:
            if not settings.default_provider:
                raise ValueError("orchestration.default_provider must be set when no backend is given.")
            backend = LLMService.from_config(app_config.llms, settings.default_provider)

        registry = ToolExecutorRegistry()
        for executor in executors:
            registry.register(executor)
        return cls(backend=backend, delegate=delegate, registry=registry, settings=settings)

    def _build_graph(self) -> StateGraph:
        """Builds the LangGraph workflow."""
        graph = StateGraph(TurnLoopState)

        graph.add_node("generate", self.generate_node)
        graph.add_node("execute_tools", self.execute_tools_node)
        graph.add_node("finalize", self.finalize_node)

        graph.set_entry_point("generate")
        graph.add_edge("generate", "execute_tools")
        graph.add_conditional_edges(
            "execute_tools",
            self.decide_after_tools,
            {
                "continue": "generate",
                "finalize": "finalize",
            },
        )
        graph.add_edge("finalize", END)

        return graph

    async def _request_with_history(self, template: ChatRequest) -> ChatRequest:
        history = await self.gateway.api_history()
        return template.model_copy(update={"history": list(history)})

    async def _publish_completion(self, completion: Completion, reuse_dangling: bool) -> AssistantResponseState:
        """
        Records a non-streamed completion as the turn's response.

        A message is only created when there is visible text. With
        `reuse_dangling`, an assistant message left in the streaming state by
        a failed stream is completed in place instead.
        """
        response = AssistantResponseState()
        response.set_content(completion.content)
        response.set_reasoning(completion.reasoning)
        visible = clean_response(completion.content)

        if reuse_dangling:
            count = await self.gateway.message_count()
            dangling = await self.gateway.message_at(count - 1) if count else None
            if dangling is not None and dangling.role == MessageRole.ASSISTANT and dangling.is_streaming:
                updated = MessageFactory.updated(dangling, visible, completion.reasoning, MessageState.COMPLETED)
                await self.gateway.update_message(count - 1, updated)
                response.set_message_index(count - 1)
                logger.info(f"Completed dangling streaming message at index {count - 1}.")
                response.mark_complete()
                return response

        if visible:
            index = await self.gateway.create_message(MessageFactory.assistant(visible, completion.reasoning))
            response.set_message_index(index)
        response.mark_complete()
        return response

    async def _complete(self, request: ChatRequest) -> Completion:
        try:
            return await self.backend.complete(request)
        except MissingContentError as e:
            logger.warning(f"Model returned no content: {e}")
            return Completion(content="")

    async def _initial_response(self, template: ChatRequest) -> AssistantResponseState:
        await self.gateway.notify_conversation_state(ConversationState.STREAMING)
        request = await self._request_with_history(template)
        try:
            result = await self.streaming_coordinator.stream_response(request)
            return result.state
        except Exception as e:
            logger.warning(f"Streaming failed, falling back to a non-streaming call: {e}")

        await self.gateway.notify_reasoning_state(False, None)
        await self.gateway.notify_conversation_state(ConversationState.PREPARING_RESPONSE)
        completion = await self._complete(request)
        return await self._publish_completion(completion, reuse_dangling=True)

    async def _follow_up_response(self, template: ChatRequest) -> AssistantResponseState:
        await self.gateway.notify_conversation_state(ConversationState.PREPARING_RESPONSE)
        request = await self._request_with_history(template)
        completion = await self._complete(request)
        return await self._publish_completion(completion, reuse_dangling=False)

    async def _apply_synthesis(self, response: AssistantResponseState) -> None:
        history = await self.gateway.api_history()
        synthesized = synthesize_from_tool_history(history)
        if synthesized is None:
            return

        logger.info("Empty model output replaced with a reply built from tool results.")
        response.set_content(synthesized)
        if response.message_index is None:
            index = await self.gateway.create_message(MessageFactory.assistant(synthesized, response.reasoning))
            response.set_message_index(index)
            return

        existing = await self.gateway.message_at(response.message_index)
        if existing is None:
            raise MessageIndexError(response.message_index)
        await self.gateway.update_message(
            response.message_index,
            MessageFactory.updated(existing, synthesized, response.reasoning, MessageState.COMPLETED),
        )

    async def generate_node(self, state: TurnLoopState) -> Dict[str, Any]:
        """Produces the assistant response for the next turn."""
        turn = state["turn"] + 1
        logger.info(f"--- TURN {turn}/{state['max_turns']} ---")

        if turn == 1:
            response = await self._initial_response(state["request"])
        else:
            response = await self._follow_up_response(state["request"])

        if not response.content.strip():
            await self._apply_synthesis(response)

        return {"turn": turn, "response": response, "tool_result": None}

    async def execute_tools_node(self, state: TurnLoopState) -> Dict[str, Any]:
        """Executes the turn's tool calls and records their results in the history."""
        response = state["response"]
        tool_result = await self.tool_coordinator.process_tool_calls(response, response.message_index)
        if tool_result.has_tools:
            await self.gateway.create_message(tool_result.system_message)
        return {
            "tool_result": tool_result,
            "had_tools": state["had_tools"] or tool_result.has_tools,
        }

    def decide_after_tools(self, state: TurnLoopState) -> str:
        """Determines whether another model turn is needed."""
        if not state["tool_result"].has_tools:
            return "finalize"
        if state["turn"] >= state["max_turns"]:
            logger.warning(f"Reached the limit of {state['max_turns']} turns with tool calls still pending.")
            return "finalize"
        return "continue"

    async def finalize_node(self, state: TurnLoopState) -> Dict[str, Any]:
        """Writes the final, never blank, answer into the conversation."""
        response = state["response"]
        tool_result = state["tool_result"]
        await self.gateway.notify_conversation_state(ConversationState.FINALIZING)

        content = tool_result.cleaned_response
        if not content and tool_result.has_tools:
            history = await self.gateway.api_history()
            content = synthesize_from_tool_history(history) or ""

        final = content.strip() or self.settings.fallback_message
        response.set_content(final)
        response.mark_complete()

        if response.message_index is None:
            index = await self.gateway.create_message(MessageFactory.assistant(final, response.reasoning))
            response.set_message_index(index)
        else:
            existing = await self.gateway.message_at(response.message_index)
            if existing is None:
                raise MessageIndexError(response.message_index)
            await self.gateway.update_message(
                response.message_index,
                MessageFactory.updated(existing, final, response.reasoning, MessageState.COMPLETED),
            )
        return {"response": response}

    async def run(self, request: ChatRequest) -> OrchestrationResult:
        """
        Answers the latest user message in the delegate's history.

        Args:
            request: System prompt, credentials and model; its history is
                ignored and read from the delegate on every turn.

        Returns:
            The final response state, the number of turns taken and whether
            any tools ran.
        """
        initial_state: TurnLoopState = {
            "request": request,
            "max_turns": self.settings.max_turns,
            "turn": 0,
            "response": None,
            "tool_result": None,
            "had_tools": False,
        }
        try:
            final_state = await self.app.ainvoke(
                initial_state,
                config={"recursion_limit": self.settings.max_turns * 2 + 5},
            )
        except Exception as e:
            logger.error(f"Turn loop failed: {e}", exc_info=True)
            await self.gateway.notify_conversation_state(ConversationState.ERROR, str(e))
            raise

        await asyncio.sleep(self.settings.idle_delay)
        await self.gateway.notify_conversation_state(ConversationState.IDLE)

        return OrchestrationResult(
            final_state=final_state["response"],
            turns=final_state["turn"],
            had_tools=final_state["had_tools"],
        )

    async def send_message(self, text: str, request: ChatRequest) -> OrchestrationResult:
        """Appends a user message to the conversation and answers it."""
        await self.gateway.create_message(MessageFactory.user(text))
        return await self.run(request)
