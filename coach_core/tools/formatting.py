from typing import List

from coach_core.models.tool_models import ToolCallResult

SUCCESS_HEADER = "Tool '{name}' executed successfully:"
FAILURE_HEADER = "Tool '{name}' failed:"


def format_tool_results(results: List[ToolCallResult]) -> str:
    """Formats tool results as the text of a system message for the next turn."""
    formatted = []
    for result in results:
        if result.success:
            formatted.append(f"{SUCCESS_HEADER.format(name=result.tool_name)}\n{result.result}")
        else:
            formatted.append(f"{FAILURE_HEADER.format(name=result.tool_name)} {result.error or 'Unknown error'}")
    return "\n\n".join(formatted)
