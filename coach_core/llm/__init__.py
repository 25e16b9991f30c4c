from .llm_factory import LLMFactory
from .prompt_manager import PromptManager
from .llm_service import (
    ChatBackend,
    ChatRequest,
    Completion,
    LLMService,
    StreamEvent,
    StreamEventKind,
)

__all__ = [
    "LLMFactory",
    "PromptManager",
    "ChatBackend",
    "ChatRequest",
    "Completion",
    "LLMService",
    "StreamEvent",
    "StreamEventKind",
]
