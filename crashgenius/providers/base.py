"""Base classes shared by every LLM provider adapter."""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import AsyncIterator, Dict, List, Optional

from ..models.chat import ChatMessage
from ..models.evidence import AnalysisRequest, Evidence, Language, ProviderKind
from ..models.report import CrashAnalysisResult
from ..orchestration.conversation import ConversationHistory
from ..orchestration.streaming import ChatStream, StreamFrame
from ..utils.http_client import ProviderHttpClient
from ..utils.logging import log_context, mask_secret

logger = logging.getLogger(__name__)


class ProviderAdapter(ABC):
    """
    Base class for LLM backends producing crash reports and chat sessions.

    Attributes:
        kind: Provider variant served by the adapter
        http: Shared transport injected by the orchestrator
        base_url: API root for the provider
        model_id: Model identifier sent with every request
    """

    kind: ProviderKind

    def __init__(
        self,
        http: ProviderHttpClient,
        base_url: str,
        model_id: str,
        api_key: str
    ):
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.model_id = model_id
        self._api_key = api_key

        logger.info(
            f"Initialized {self.__class__.__name__}: model={model_id}, key={mask_secret(api_key)}"
        )

    @abstractmethod
    async def generate_report(
        self,
        request: AnalysisRequest,
        instruction: Optional[str] = None
    ) -> CrashAnalysisResult:
        """
        Run one analysis and return a sanitized report.

        Args:
            request: Evidence, context, language and provider selection
            instruction: Prebuilt analysis instruction; built from the request when omitted

        Raises:
            ProviderError: Any failure talking to the backend
        """

    @abstractmethod
    def create_chat_session(
        self,
        report: CrashAnalysisResult,
        evidence: List[Evidence],
        language: Language
    ) -> "ChatSession":
        """Open a chat session seeded with the evidence and the report digest."""

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model_id})"


class ChatSession(ABC):
    """
    One conversational thread about a report.

    Subclasses keep the provider wire-format history and supply the stream
    of frames for a turn; this class handles the busy guard, the visible
    transcript and committing (or discarding) a turn when its stream ends.
    At most one reply is in flight per session.

    Attributes:
        report: Report the conversation is about
        language: Reply language
        transcript: ChatMessage mirror of the conversation
    """

    provider_name = "provider"

    def __init__(self, report: CrashAnalysisResult, language: Language):
        self.report = report
        self.language = language
        self.session_id = uuid.uuid4().hex[:12]
        self.transcript = ConversationHistory(session_id=self.session_id)
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def send_message_stream(self, text: str) -> ChatStream:
        """
        Send a user message and return the reply as a pull-based stream.

        Nothing touches the network until the returned stream is iterated.

        Raises:
            RuntimeError: If a reply is already streaming in this session
        """
        if self._busy:
            raise RuntimeError("A reply is already streaming in this chat session")
        self._busy = True

        user_message = self.transcript.add_user_message(text)
        reply = self.transcript.begin_model_reply()

        def on_finish(reply_text: str, completed: bool) -> None:
            self._busy = False
            with log_context(**self._log_fields):
                if not reply_text:
                    logger.warning("Empty reply not committed")
                    self.transcript.discard(reply)
                    self.transcript.discard(user_message)
                    return
                self._commit_turn(text, reply_text)
                logger.info(f"Committed reply ({len(reply_text)} chars, completed={completed})")

        def on_abort() -> None:
            self._busy = False
            self.transcript.discard(reply)
            self.transcript.discard(user_message)
            with log_context(**self._log_fields):
                logger.info("Turn abandoned")

        return ChatStream(
            self._track(self._stream_reply(text), reply),
            on_finish=on_finish,
            on_abort=on_abort,
            label=f"{self.provider_name} chat",
        )

    @property
    def _log_fields(self) -> Dict[str, str]:
        return {"provider": self.provider_name, "session": self.session_id}

    async def _track(self, frames: AsyncIterator[StreamFrame], reply: ChatMessage) -> AsyncIterator[StreamFrame]:
        """Mirror streamed text into the in-flight transcript message."""
        try:
            while True:
                # Context is scoped to each pull so it never leaks past a yield
                with log_context(**self._log_fields):
                    try:
                        frame = await frames.__anext__()
                    except StopAsyncIteration:
                        return
                if frame.text:
                    reply.append(frame.text)
                yield frame
        finally:
            await frames.aclose()

    @abstractmethod
    def _stream_reply(self, text: str) -> AsyncIterator[StreamFrame]:
        """Frames of the model reply to text, given the committed history."""

    @abstractmethod
    def _commit_turn(self, user_text: str, reply_text: str) -> None:
        """Append the finished user/model exchange to the provider history."""
