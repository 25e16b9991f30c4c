from .detector import (
    TOOL_CALL_MARKER,
    TOOL_CALL_PATTERN,
    ToolCallDetector,
    clean_response,
    strip_tool_calls,
)
from .executor import ToolCallRouter, ToolExecutor, ToolExecutorRegistry
from .formatting import format_tool_results
from .parameter_parser import ToolParameterParser

__all__ = [
    "TOOL_CALL_MARKER",
    "TOOL_CALL_PATTERN",
    "ToolCallDetector",
    "ToolCallRouter",
    "ToolExecutor",
    "ToolExecutorRegistry",
    "ToolParameterParser",
    "clean_response",
    "format_tool_results",
    "strip_tool_calls",
]
