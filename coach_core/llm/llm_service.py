import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from omegaconf import DictConfig
from pydantic import BaseModel, ConfigDict, Field, SecretStr

from coach_core.errors import MissingContentError
from coach_core.llm.llm_factory import LLMFactory
from coach_core.models.messages import Message, MessageRole

logger = logging.getLogger(__name__)

# Keys under which providers report reasoning tokens in `additional_kwargs`.
REASONING_KWARGS = ("reasoning_content", "reasoning")


class ChatRequest(BaseModel):
    """Everything needed to ask the model for the next assistant message."""

    system_prompt: str = ""
    history: List[Message] = Field(default_factory=list)
    api_key: Optional[SecretStr] = None
    model: Optional[str] = None


class Completion(BaseModel):
    """A complete model response."""

    content: str
    reasoning: Optional[str] = None


class StreamEventKind(str, Enum):
    CONTENT = "content"
    REASONING = "reasoning"


class StreamEvent(BaseModel):
    """One incremental token delivered by a streaming completion."""

    model_config = ConfigDict(frozen=True)

    kind: StreamEventKind
    text: str


class ChatBackend(ABC):
    """The model transport the conversation core talks to."""

    @abstractmethod
    async def complete(self, request: ChatRequest) -> Completion:
        """
        Returns the full response in one call.

        Raises:
            MissingContentError: If the model produced no content.
        """

    @abstractmethod
    def stream(self, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        """
        Yields content and reasoning tokens as they arrive.

        The two kinds are each ordered but may interleave arbitrarily.

        Raises:
            MissingContentError: After the last event, if no content was streamed.
        """


def split_message_content(content: Any) -> Tuple[str, str]:
    """
    Splits LangChain message content into (text, reasoning).

    Content is either a plain string or a list of content blocks; blocks of type
    'thinking' or 'reasoning' are treated as reasoning.
    """
    if isinstance(content, str):
        return content, ""
    text_parts: List[str] = []
    reasoning_parts: List[str] = []
    for block in content or []:
        if isinstance(block, str):
            text_parts.append(block)
        elif isinstance(block, dict):
            block_type = block.get("type")
            if block_type == "text":
                text_parts.append(block.get("text") or "")
            elif block_type in ("thinking", "reasoning"):
                reasoning_parts.append(block.get(block_type) or block.get("text") or "")
    return "".join(text_parts), "".join(reasoning_parts)


def extract_reasoning_kwargs(additional_kwargs: Dict[str, Any]) -> str:
    for key in REASONING_KWARGS:
        value = additional_kwargs.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


class LLMService(ChatBackend):
    """
    A ChatBackend over any LangChain chat model.

    Requests that carry their own `api_key` or `model` get a dedicated client
    from the factory; otherwise the default client is used.
    """

    def __init__(
        self,
        llm_client: Optional[BaseChatModel] = None,
        llm_factory: Optional[LLMFactory] = None,
        provider_key: Optional[str] = None,
    ):
        if llm_client is None and (llm_factory is None or provider_key is None):
            raise ValueError("Provide either an llm_client or an llm_factory with a provider_key.")
        self._factory = llm_factory
        self._provider_key = provider_key
        self._default_client = llm_client
        self._clients: Dict[Tuple[Optional[str], Optional[str]], BaseChatModel] = {}

    @classmethod
    def from_config(cls, llm_config: DictConfig, provider_key: str) -> "LLMService":
        """Builds the service for one provider of the `llms` configuration."""
        factory = LLMFactory(llm_config=llm_config)
        return cls(llm_client=factory.create_llm_client(provider_key), llm_factory=factory, provider_key=provider_key)

    def _client_for(self, request: ChatRequest) -> BaseChatModel:
        api_key = request.api_key.get_secret_value() if request.api_key else None
        if self._factory is None or (api_key is None and request.model is None):
            return self._default_client

        cache_key = (api_key, request.model)
        if cache_key not in self._clients:
            logger.info(f"Creating client for provider '{self._provider_key}' (model={request.model}).")
            self._clients[cache_key] = self._factory.create_llm_client(
                self._provider_key, api_key=api_key, model=request.model
            )
        return self._clients[cache_key]

    @staticmethod
    def _build_messages(request: ChatRequest) -> List[BaseMessage]:
        """Converts the system prompt and history to LangChain messages."""
        messages: List[BaseMessage] = []
        if request.system_prompt.strip():
            messages.append(SystemMessage(content=request.system_prompt))

        for message in request.history:
            if message.role == MessageRole.USER:
                messages.append(HumanMessage(content=message.content))
            elif message.role == MessageRole.ASSISTANT:
                messages.append(AIMessage(content=message.content))
            else:
                messages.append(SystemMessage(content=message.content))
        return messages

    async def complete(self, request: ChatRequest) -> Completion:
        client = self._client_for(request)
        response = await client.ainvoke(self._build_messages(request))

        if not hasattr(response, 'content'):
            response_type = type(response).__name__
            raise TypeError(
                f"The response from the LLM client (type: {response_type}) does not have a 'content' attribute. "
                "Ensure the LLM client returns a standard LangChain message object."
            )

        content, block_reasoning = split_message_content(response.content)
        reasoning = block_reasoning or extract_reasoning_kwargs(getattr(response, "additional_kwargs", {}))
        if not content:
            raise MissingContentError()
        if reasoning:
            logger.debug(f"Captured reasoning content ({len(reasoning)} chars).")
        return Completion(content=content, reasoning=reasoning or None)

    async def stream(self, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        client = self._client_for(request)
        content_length = 0
        reasoning_length = 0

        async for chunk in client.astream(self._build_messages(request)):
            text, block_reasoning = split_message_content(chunk.content)
            reasoning = block_reasoning or extract_reasoning_kwargs(getattr(chunk, "additional_kwargs", {}))
            if reasoning:
                reasoning_length += len(reasoning)
                yield StreamEvent(kind=StreamEventKind.REASONING, text=reasoning)
            if text:
                content_length += len(text)
                yield StreamEvent(kind=StreamEventKind.CONTENT, text=text)

        if reasoning_length:
            logger.debug(f"Captured streaming reasoning content ({reasoning_length} chars).")
        if not content_length:
            raise MissingContentError()
