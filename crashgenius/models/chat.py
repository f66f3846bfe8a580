"""Chat message data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ChatRole(Enum):
    USER = "user"
    MODEL = "model"


@dataclass
class ChatMessage:
    """
    One chat bubble.

    Only the in-flight model message is mutated (via append) while its
    reply streams in; every other message is left as created.
    """
    role: ChatRole
    text: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    def append(self, fragment: str) -> None:
        self.text += fragment

    def to_dict(self):
        return {"role": self.role.value, "text": self.text}
