from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from coach_core.models.messages import Message


class ToolCall(BaseModel):
    """A `[TOOL_CALL: name(params)]` directive found in model output."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="The tool name captured by the detector.")
    parameters: Dict[str, str] = Field(default_factory=dict)
    raw_parameters: Optional[str] = Field(
        None, description="The unparsed text between the parentheses, if any."
    )
    full_match: str = Field(..., description="The complete matched directive text.")
    span: Tuple[int, int] = Field(..., description="Start and end offsets of the match.")


class ToolCallResult(BaseModel):
    """The outcome of executing one tool call."""

    model_config = ConfigDict(frozen=True)

    tool_name: str
    result: str = ""
    success: bool = True
    error: Optional[str] = None

    @classmethod
    def failure(cls, tool_name: str, error: str) -> "ToolCallResult":
        return cls(tool_name=tool_name, result="", success=False, error=error)


class ToolExecutionResult(BaseModel):
    """What the tool execution coordinator hands back to the turn loop."""

    has_tools: bool = Field(
        ..., description="True when at least one tool call was detected and executed."
    )
    tool_results: List[ToolCallResult] = Field(default_factory=list)
    cleaned_response: str = ""
    system_message: Optional[Message] = Field(
        None,
        description="The tool results packaged as a system message. This MUST be populated if has_tools is True.",
    )

    @model_validator(mode="after")
    def check_fields(self):
        """Ensures the system message is present exactly when tools ran."""
        if self.has_tools:
            if self.system_message is None or not self.tool_results:
                raise ValueError(
                    "Fields 'tool_results' and 'system_message' are required when has_tools is True."
                )
        elif self.system_message is not None or self.tool_results:
            raise ValueError("A result without tools cannot carry tool results or a system message.")
        return self
