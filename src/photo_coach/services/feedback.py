"""Streaming feedback session for a single photo."""

import asyncio
import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from uuid import UUID

from photo_coach.domain.feedback import (
    Complete,
    Error,
    FeedbackState,
    Idle,
    Loading,
    Streaming,
)
from photo_coach.domain.photos import PhotoRecord
from photo_coach.services.photos import MediaStore, RecordStore
from photo_coach.services.transport import (
    FeedbackError,
    FeedbackStream,
    FeedbackTransport,
    InvalidResponseError,
    NoSessionContextError,
    StorageUnavailableError,
)

logger = logging.getLogger(__name__)

FOLLOWUP_DELIMITER = "\n\n---\n\n**You:** {question}\n\n"

StateListener = Callable[[FeedbackState], None]


@dataclass
class FeedbackSession:
    """State machine that streams, accumulates and persists feedback turns.

    One session drives one photo. Calls that start a turn must not overlap;
    callers claim the session with ``reserve`` (or check ``is_busy``) first.
    """

    record_store: RecordStore
    media_store: MediaStore
    transport: FeedbackTransport
    max_dimension: int = 1024
    update_interval: float = 0.1
    clock: Callable[[], float] = time.monotonic
    turn_id: str | None = field(default=None, init=False)
    _state: FeedbackState = field(default_factory=Idle, init=False)
    _listeners: list[StateListener] = field(default_factory=list, init=False)
    _in_flight: bool = field(default=False, init=False)

    @property
    def state(self) -> FeedbackState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._in_flight

    def reserve(self) -> bool:
        """Mark a turn as in flight; return false if one already is."""
        if self._in_flight:
            return False
        self._in_flight = True
        return True

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener and return a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def load_existing(self, photo: PhotoRecord) -> bool:
        """Adopt stored complete feedback; return true if there was any."""
        feedback = self.record_store.fetch_feedback(photo.id)
        if feedback is None or not feedback.is_complete or not feedback.content:
            return False
        self.turn_id = feedback.turn_id
        self._set_state(Complete(feedback.content))
        return True

    async def fetch_feedback(self, photo: PhotoRecord) -> None:
        """Analyse a photo unless complete feedback is already stored."""
        with self._turn():
            if self.load_existing(photo):
                return
            try:
                image_bytes = await asyncio.to_thread(
                    self.media_store.load_bytes_for_transport,
                    photo.image_path,
                    self.max_dimension,
                )
            except OSError:
                logger.exception(
                    "Failed to load photo bytes", extra={"photo_id": str(photo.id)}
                )
                image_bytes = None
            if image_bytes is None:
                self._fail(photo.id, StorageUnavailableError())
                return

            self._set_state(Loading())
            stream = self.transport.stream_initial(image_bytes)
            await self._run_turn(photo, stream, prefix="")

    async def retry(self, photo: PhotoRecord) -> None:
        """Forget the turn id and fetch again.

        Stored complete feedback still short-circuits; retry re-runs the
        analysis only when nothing complete was saved.
        """
        self.reset_state()
        await self.fetch_feedback(photo)

    async def send_followup(self, question: str, photo: PhotoRecord) -> None:
        """Ask a question chained to the most recent completed turn."""
        with self._turn():
            question = question.strip()
            if not question:
                return
            if self.turn_id is None:
                self._fail(photo.id, NoSessionContextError())
                return

            prefix = self._current_text(photo) + FOLLOWUP_DELIMITER.format(
                question=question
            )
            self._set_state(Loading())
            stream = self.transport.stream_followup(question, self.turn_id)
            await self._run_turn(photo, stream, prefix=prefix)

    def reset_state(self) -> None:
        """Return to idle and forget the turn id; storage is untouched."""
        self.turn_id = None
        self._set_state(Idle())

    @contextmanager
    def _turn(self) -> Iterator[None]:
        self._in_flight = True
        try:
            yield
        finally:
            self._in_flight = False

    async def _run_turn(
        self, photo: PhotoRecord, stream: FeedbackStream, prefix: str
    ) -> None:
        accumulated = ""
        last_update: float | None = None
        try:
            async for fragment in stream:
                accumulated += fragment
                now = self.clock()
                if last_update is None or now - last_update >= self.update_interval:
                    self._set_state(Streaming(prefix + accumulated))
                    last_update = now
            if not accumulated.strip():
                raise InvalidResponseError()
            turn_id = await stream.turn_id()
            transcript = prefix + accumulated
            feedback = self.record_store.fetch_feedback(
                photo.id
            ) or self.record_store.create_feedback(photo.id)
            self.record_store.update_feedback(
                feedback.id, content=transcript, is_complete=True, turn_id=turn_id
            )
        except Exception as exc:
            self._fail(photo.id, exc)
            return

        self.turn_id = turn_id
        self._set_state(Complete(transcript))
        logger.info(
            "Feedback turn complete",
            extra={"photo_id": str(photo.id), "turn_id": turn_id},
        )

    def _current_text(self, photo: PhotoRecord) -> str:
        if isinstance(self._state, Complete):
            return self._state.text
        feedback = self.record_store.fetch_feedback(photo.id)
        if feedback is not None and feedback.is_complete:
            return feedback.content
        return ""

    def _fail(self, photo_id: UUID, exc: Exception) -> None:
        message = _error_message(exc)
        logger.warning(
            "Feedback turn failed",
            extra={"photo_id": str(photo_id), "error": type(exc).__name__},
        )
        self._set_state(Error(message))

    def _set_state(self, state: FeedbackState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)


@dataclass
class FeedbackSessionRegistry:
    """Keeps one feedback session per photo."""

    factory: Callable[[], FeedbackSession]
    _sessions: dict[UUID, FeedbackSession] = field(default_factory=dict, init=False)

    def get(self, photo_id: UUID) -> FeedbackSession:
        session = self._sessions.get(photo_id)
        if session is None:
            session = self.factory()
            self._sessions[photo_id] = session
        return session

    def discard(self, photo_id: UUID) -> None:
        self._sessions.pop(photo_id, None)


def _error_message(exc: Exception) -> str:
    """Return the user-facing text for a failed turn."""
    if isinstance(exc, FeedbackError):
        return exc.user_message
    return str(exc) or type(exc).__name__
