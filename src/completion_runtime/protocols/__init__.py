"""Protocol definitions for completion-runtime's external collaborators."""

from .capabilities import ModelCapabilityLookup
from .storage import MessageStore
from .tokenizer import Tokenizer

__all__ = [
    "MessageStore",
    "ModelCapabilityLookup",
    "Tokenizer",
]
