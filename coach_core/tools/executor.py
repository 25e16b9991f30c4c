import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Mapping, Optional

from coach_core.errors import ToolExecutionError
from coach_core.models.tool_models import ToolCall, ToolCallResult

logger = logging.getLogger(__name__)


class ToolExecutor(ABC):
    """
    Base class for everything that can carry out tool calls.

    One executor usually serves a whole tool domain (workouts, health data, ...)
    and lists the tool names it handles in `supported_tool_names`.
    """

    #: Human-readable progress text per tool name, shown while a tool runs.
    descriptions: Mapping[str, str] = {}

    @property
    @abstractmethod
    def supported_tool_names(self) -> List[str]:
        """The tool names this executor handles."""

    @abstractmethod
    async def execute(self, tool_call: ToolCall) -> ToolCallResult:
        """
        Executes a tool call.

        Implementations return a failure result for calls they cannot satisfy
        (missing or invalid parameters, unknown names). They may also raise
        ToolExecutionError, which the router turns into a failure result.
        """


class ToolExecutorRegistry:
    """Maps tool names to the executor responsible for them."""

    def __init__(self):
        self._executors_by_tool: Dict[str, ToolExecutor] = {}

    def register(self, executor: ToolExecutor) -> None:
        names = executor.supported_tool_names
        if not names:
            logger.warning(f"Ignoring executor {type(executor).__name__} with no supported tools.")
            return
        for tool_name in names:
            if tool_name in self._executors_by_tool:
                logger.warning(f"Tool '{tool_name}' re-registered by {type(executor).__name__}.")
            self._executors_by_tool[tool_name] = executor
        logger.info(f"Registered tools: {names}")

    def executor_for(self, tool_name: str) -> Optional[ToolExecutor]:
        return self._executors_by_tool.get(tool_name)

    def describe(self, tool_name: str) -> str:
        """Returns the display text for a tool, with a generic default."""
        executor = self.executor_for(tool_name)
        if executor is not None and tool_name in executor.descriptions:
            return executor.descriptions[tool_name]
        return f"Processing {tool_name}..."

    @property
    def all_supported_tools(self) -> List[str]:
        return sorted(self._executors_by_tool)


class ToolCallRouter:
    """
    Routes tool calls to their executors.

    The router never raises for a tool problem: unknown names and executor
    failures come back as unsuccessful ToolCallResults so they can be reported
    to the model for self-correction.
    """

    def __init__(self, registry: ToolExecutorRegistry):
        self.registry = registry

    async def execute(self, tool_call: ToolCall) -> ToolCallResult:
        executor = self.registry.executor_for(tool_call.name)
        if executor is None:
            logger.warning(f"No executor found for tool '{tool_call.name}'.")
            available = ", ".join(self.registry.all_supported_tools) or "none"
            return ToolCallResult.failure(
                tool_call.name,
                f"Unknown tool '{tool_call.name}'. Available tools: {available}.",
            )

        logger.info(f"Routing tool '{tool_call.name}' to {type(executor).__name__}.")
        try:
            result = await executor.execute(tool_call)
        except ToolExecutionError as e:
            logger.warning(f"Tool '{tool_call.name}' rejected the call: {e}")
            return ToolCallResult.failure(tool_call.name, str(e))
        except Exception as e:
            logger.error(f"Tool '{tool_call.name}' failed: {e}", exc_info=True)
            return ToolCallResult.failure(tool_call.name, str(e) or type(e).__name__)

        logger.info(f"Tool '{tool_call.name}' finished (success={result.success}).")
        return result
