from typing import Optional

from omegaconf import DictConfig, OmegaConf
from pydantic import BaseModel, Field

DEFAULT_FALLBACK_MESSAGE = (
    "I've processed your request, but encountered an issue generating a response. Please try again."
)


class OrchestrationSettings(BaseModel):
    """Tunables of the conversation turn loop, loaded from orchestration.yaml."""

    default_provider: Optional[str] = None
    prompts_dir: str = "coach"
    max_turns: int = Field(5, ge=1, description="Hard cap on model turns per user request.")
    token_buffer_limit: int = Field(
        2000, ge=64, description="Size in characters of the sliding window used for tool detection."
    )
    flush_interval_ms: int = Field(50, ge=1, description="Cadence of batched UI updates while streaming.")
    idle_delay_ms: int = Field(200, ge=0, description="Pause before signalling the idle state.")
    max_history_messages: int = Field(40, ge=1)
    fallback_message: str = DEFAULT_FALLBACK_MESSAGE

    @property
    def flush_interval(self) -> float:
        return self.flush_interval_ms / 1000

    @property
    def idle_delay(self) -> float:
        return self.idle_delay_ms / 1000

    @classmethod
    def from_config(cls, orchestration_config: Optional[DictConfig]) -> "OrchestrationSettings":
        if orchestration_config is None:
            return cls()
        return cls(**OmegaConf.to_container(orchestration_config, resolve=True))
