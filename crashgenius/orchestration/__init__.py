"""Orchestration layer: prompts, chat transcripts and reply streaming."""

from .conversation import ConversationHistory
from .streaming import END_OF_STREAM, ChatStream, StreamFrame

__all__ = [
    "ChatStream",
    "ConversationHistory",
    "END_OF_STREAM",
    "StreamFrame"
]
