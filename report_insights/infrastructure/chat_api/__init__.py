from .chat_completion_client import ChatCompletionClient

__all__ = ["ChatCompletionClient"]
