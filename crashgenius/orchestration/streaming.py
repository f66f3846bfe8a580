"""Pull-based text streaming shared by every chat session."""

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamFrame:
    """
    One unit pulled from a provider stream.

    A frame either carries a text delta or, with done=True, marks the
    explicit end of the reply. Transport closure without a done frame is
    an abrupt disconnect, not a graceful completion.
    """
    text: str = ""
    done: bool = False


END_OF_STREAM = StreamFrame(done=True)

CommitCallback = Callable[[str, bool], None]
AbortCallback = Callable[[], None]


class ChatStream:
    """
    Async iterator of text fragments for a single chat turn.

    Fragments are yielded in arrival order; nothing is read from the network
    until the consumer pulls. When the provider stream finishes, on_finish is
    called once with the accumulated text and whether an end-of-stream frame
    was seen. A stream that is abandoned or broken by an error calls
    on_abort instead and is never committed. Dropping an undrained stream
    counts as abandoning it.

    Attributes:
        text: Everything yielded so far
        completed: True once the provider signaled end-of-stream
        finished: True once the underlying frames are exhausted
    """

    def __init__(
        self,
        frames: AsyncIterator[StreamFrame],
        on_finish: Optional[CommitCallback] = None,
        on_abort: Optional[AbortCallback] = None,
        label: str = "chat"
    ):
        self._frames = frames
        self._on_finish = on_finish
        self._on_abort = on_abort
        self._label = label
        self._parts = []
        self.completed = False
        self.finished = False
        self.cancelled = False

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def __aiter__(self) -> "ChatStream":
        return self

    async def __anext__(self) -> str:
        if self.finished or self.cancelled:
            raise StopAsyncIteration

        while True:
            try:
                frame = await self._frames.__anext__()
            except StopAsyncIteration:
                if not self.completed:
                    logger.warning(
                        f"{self._label} stream closed without an end-of-stream signal "
                        f"after {len(self.text)} characters"
                    )
                self._finish()
                raise
            except BaseException:
                self._abort()
                raise

            if frame.done:
                self.completed = True
                if frame.text:
                    self._parts.append(frame.text)
                    return frame.text
                continue

            if frame.text:
                self._parts.append(frame.text)
                return frame.text

    async def aclose(self) -> None:
        """Abandon the stream and release the in-flight network read."""
        if self.finished or self.cancelled:
            return
        self.cancelled = True
        try:
            close = getattr(self._frames, "aclose", None)
            if close is not None:
                await close()
        finally:
            self._abort()
        logger.info(f"{self._label} stream cancelled by consumer")

    def __del__(self) -> None:
        # A stream dropped without aclose() releases its turn; the frame
        # generator is closed by the event loop's async-generator finalizer.
        if not getattr(self, "finished", True):
            self._abort()

    async def collect(self) -> str:
        """Drain the remaining fragments and return the full reply."""
        async for _ in self:
            pass
        return self.text

    def _finish(self) -> None:
        if self.finished:
            return
        self.finished = True
        if self._on_finish is not None:
            self._on_finish(self.text, self.completed)

    def _abort(self) -> None:
        if self.finished:
            return
        self.finished = True
        if self._on_abort is not None:
            self._on_abort()
