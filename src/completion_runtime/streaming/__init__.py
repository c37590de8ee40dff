"""Stream decoding and chunk buffering."""

from .buffer import (
    DEFAULT_BUFFER_SIZE,
    DEFAULT_BUFFER_TIME_MS,
    ChunkBuffer,
    ChunkNotifier,
    MessageBuffer,
)
from .decoder import DATA_PREFIX, DONE_SENTINEL, SSEDecoder, decode_stream

__all__ = [
    "DATA_PREFIX",
    "DEFAULT_BUFFER_SIZE",
    "DEFAULT_BUFFER_TIME_MS",
    "DONE_SENTINEL",
    "ChunkBuffer",
    "ChunkNotifier",
    "MessageBuffer",
    "SSEDecoder",
    "decode_stream",
]
