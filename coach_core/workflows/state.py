from typing import Optional, TypedDict

from coach_core.llm.llm_service import ChatRequest
from coach_core.models.tool_models import ToolExecutionResult
from coach_core.workflows.response_state import AssistantResponseState


class TurnLoopState(TypedDict):
    """
    Represents the state of one user request as it moves through the turn loop.
    This is the single source of truth that is passed between nodes in the graph.
    """

    # -- Inputs --
    # Template for every model call; its history is refreshed from the delegate per turn.
    request: ChatRequest
    max_turns: int

    # -- Per-turn artifacts --
    turn: int
    response: Optional[AssistantResponseState]
    tool_result: Optional[ToolExecutionResult]

    # -- Control Flow --
    had_tools: bool
