"""
SDK for Dad Joke.

Provides the chat-completion client used to generate jokes.
"""

from .completion_client import CompletionClient, CompletionError, CompletionFailed

__all__ = ["CompletionClient", "CompletionError", "CompletionFailed"]
