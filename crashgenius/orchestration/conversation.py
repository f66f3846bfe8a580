"""Provider-agnostic chat transcript."""

import logging
from typing import List, Optional

from ..models.chat import ChatMessage, ChatRole

logger = logging.getLogger(__name__)


class ConversationHistory:
    """
    Transcript of a chat session as the user sees it.

    Providers keep their own wire-format history; this list mirrors it in
    ChatMessage form so the caller can render bubbles, including the model
    reply that is still streaming in.

    Attributes:
        messages: Chat messages in display order
        session_id: Identifier of the owning session, for logging
    """

    def __init__(self, session_id: Optional[str] = None):
        self.messages: List[ChatMessage] = []
        self.session_id = session_id
        logger.debug(f"Initialized ConversationHistory for session: {session_id or 'unknown'}")

    def add_user_message(self, text: str) -> ChatMessage:
        message = ChatMessage(role=ChatRole.USER, text=text)
        self.messages.append(message)
        return message

    def add_model_message(self, text: str) -> ChatMessage:
        message = ChatMessage(role=ChatRole.MODEL, text=text)
        self.messages.append(message)
        return message

    def begin_model_reply(self) -> ChatMessage:
        """Append an empty model message that will be filled while streaming."""
        return self.add_model_message("")

    def discard(self, message: ChatMessage) -> None:
        """Drop a message, used when a reply is abandoned mid-stream."""
        self.messages = [existing for existing in self.messages if existing is not message]

    def get_latest(self, role: Optional[ChatRole] = None) -> Optional[ChatMessage]:
        for message in reversed(self.messages):
            if role is None or message.role == role:
                return message
        return None

    def __len__(self) -> int:
        return len(self.messages)

    def __str__(self) -> str:
        return f"ConversationHistory(session_id={self.session_id}, messages={len(self.messages)})"
