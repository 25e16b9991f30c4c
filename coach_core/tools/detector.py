import logging
import re
from typing import List, Optional

from coach_core.models.tool_models import ToolCall
from coach_core.tools.parameter_parser import ToolParameterParser

logger = logging.getLogger(__name__)

TOOL_CALL_MARKER = "[TOOL_CALL:"

# Name is mandatory, the parenthesised parameter string is optional and
# non-greedy so a match stops at the first ")]".
TOOL_CALL_PATTERN = re.compile(r"\[TOOL_CALL:\s*(\w+)(?:\((.*?)\))?\]", re.DOTALL)


class ToolCallDetector:
    """
    Finds complete `[TOOL_CALL: name(params)]` directives in text.

    Only whole matches are reported: an unterminated prefix such as
    `[TOOL_CALL: plan_workout(date: "today"` yields nothing.
    """

    def __init__(self, parameter_parser: Optional[ToolParameterParser] = None):
        self.parameter_parser = parameter_parser or ToolParameterParser()

    def _to_tool_call(self, match: "re.Match[str]") -> ToolCall:
        raw_parameters = match.group(2)
        parameters = self.parameter_parser.parse(raw_parameters) if raw_parameters else {}
        return ToolCall(
            name=match.group(1),
            parameters=parameters,
            raw_parameters=raw_parameters,
            full_match=match.group(0),
            span=match.span(),
        )

    def detect_tool_calls(self, text: str) -> List[ToolCall]:
        """
        Returns every tool call in `text`, in order of appearance.

        Args:
            text: The raw model output, possibly containing tool-call syntax.

        Returns:
            A list of parsed ToolCall instances, left to right.
        """
        markers = text.count(TOOL_CALL_MARKER)
        tool_calls = [self._to_tool_call(match) for match in TOOL_CALL_PATTERN.finditer(text)]
        if markers:
            logger.debug(f"Found {markers} '{TOOL_CALL_MARKER}' markers and {len(tool_calls)} complete tool calls.")
        return tool_calls

    def first_match(self, text: str) -> Optional[ToolCall]:
        """Returns the first complete tool call in `text`, or None."""
        match = TOOL_CALL_PATTERN.search(text)
        return self._to_tool_call(match) if match else None

    @staticmethod
    def contains_tool_call(text: str) -> bool:
        return TOOL_CALL_PATTERN.search(text) is not None


def strip_tool_calls(text: str) -> str:
    """
    Removes every complete tool call from `text`.

    Removal repeats until nothing matches, since deleting one directive can
    join surrounding text into a new one. Spans are cut right to left so
    earlier offsets stay valid.
    """
    while True:
        spans = [match.span() for match in TOOL_CALL_PATTERN.finditer(text)]
        if not spans:
            return text
        for start, end in reversed(spans):
            text = text[:start] + text[end:]


def clean_response(text: str) -> str:
    """Strips tool calls, collapses runs of spaces and trims the result."""
    return re.sub(r" {2,}", " ", strip_tool_calls(text)).strip()
