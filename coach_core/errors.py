class CoachError(Exception):
    """Base class for errors raised by the conversation core."""


class LLMError(CoachError):
    """The language model backend returned an unusable response."""


class MissingContentError(LLMError):
    """The model completed without producing any content."""

    def __init__(self, message: str = "No content returned by the model."):
        super().__init__(message)


class MessageIndexError(CoachError):
    """A message expected at a given index in the conversation does not exist."""

    def __init__(self, index: int):
        super().__init__(f"No message found at index {index}.")
        self.index = index


class ToolExecutionError(CoachError):
    """Raised by a tool executor when a call cannot be carried out."""
