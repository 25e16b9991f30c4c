import re
from typing import List, Optional, Sequence

from coach_core.models.messages import Message, MessageRole

HISTORY_LOOKBACK = 3

COMPLETED_SETUP_INTRO = "Perfect! I've completed the setup:\n\n"
GENERIC_COMPLETION = "Great! I've completed the requested actions and everything is set up for you."

_RESULT_BLOCK = re.compile(
    r"^Tool '(?P<name>\w+)' (?P<outcome>executed successfully:|failed:)(?P<body>.*?)"
    r"(?=^Tool '\w+' (?:executed successfully:|failed:)|\Z)",
    re.MULTILINE | re.DOTALL,
)


def _summarize_success(tool_name: str, body: str) -> List[str]:
    lines = [line.strip() for line in body.splitlines() if line.strip()]
    bullets = [line for line in lines if line.startswith("•")]
    if bullets:
        return bullets
    if lines:
        return [f"• {tool_name}: {lines[0]}"]
    return [f"• {tool_name} completed"]


def synthesize_from_tool_history(history: Sequence[Message], lookback: int = HISTORY_LOOKBACK) -> Optional[str]:
    """
    Builds a reply from recent tool results when the model returned nothing.

    Only the last `lookback` history entries are inspected, and only the
    system messages among them that carry formatted tool results.

    Returns:
        The synthesized reply, or None when no tool results are present.
    """
    blocks = []
    for message in list(history)[-lookback:]:
        if message.role != MessageRole.SYSTEM:
            continue
        blocks.extend(_RESULT_BLOCK.finditer(message.content))

    if not blocks:
        return None

    components: List[str] = []
    for block in blocks:
        if block.group("outcome").startswith("executed"):
            components.extend(_summarize_success(block.group("name"), block.group("body")))

    if not components:
        return GENERIC_COMPLETION
    return COMPLETED_SETUP_INTRO + "\n".join(components)
