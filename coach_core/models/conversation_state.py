from enum import Enum


class ConversationState(str, Enum):
    """The coarse activity state a UI shows for the conversation."""

    IDLE = "idle"
    PREPARING_RESPONSE = "preparing_response"
    STREAMING = "streaming"
    PROCESSING_TOOL = "processing_tool"
    FINALIZING = "finalizing"
    ERROR = "error"
