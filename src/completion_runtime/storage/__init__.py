"""Storage backends for completion-runtime."""

from .memory_store import InMemoryMessageStore

__all__ = ["InMemoryMessageStore"]
