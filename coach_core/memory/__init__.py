from .conversation import InMemoryConversation

__all__ = ["InMemoryConversation"]
