from .settings import OrchestrationSettings
from .workflows.delegate import ConversationDelegate
from .workflows.orchestrator import OrchestrationResult, ResponseOrchestrator

__all__ = ["ConversationDelegate", "OrchestrationResult", "OrchestrationSettings", "ResponseOrchestrator"]
