"""Feedback transport contract, stream type and error taxonomy."""

import asyncio
from collections.abc import AsyncIterator
from typing import Protocol


class FeedbackError(Exception):
    """Base class for failures surfaced to the user during a turn."""

    default_message = "Something went wrong."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def user_message(self) -> str:
        return str(self)


class NoCredentialError(FeedbackError):
    default_message = (
        "No API key configured. Please add your OpenAI API key in Settings."
    )


class InvalidResponseError(FeedbackError):
    default_message = "Invalid response from API."


class RemoteError(FeedbackError):
    """Non-success HTTP status; the message carries the server's body."""


class NoSessionContextError(FeedbackError):
    default_message = (
        "No conversation context yet. Wait for the photo analysis to finish first."
    )


class StorageUnavailableError(FeedbackError):
    default_message = "Could not load photo."


class DeferredTurnId:
    """A turn id that is resolved exactly once."""

    def __init__(self) -> None:
        self._value: str | None = None
        self._ready = asyncio.Event()

    @property
    def resolved(self) -> bool:
        return self._ready.is_set()

    def resolve(self, value: str | None) -> None:
        if self._ready.is_set():
            return
        self._value = value
        self._ready.set()

    async def wait(self) -> str | None:
        await self._ready.wait()
        return self._value


class FeedbackStream:
    """Text fragments of one turn plus the server turn id.

    Iterate the stream to receive fragments in wire order. ``turn_id()``
    returns only after the fragments have been fully drained.
    """

    def __init__(self, fragments: AsyncIterator[str], turn_id: DeferredTurnId) -> None:
        self._fragments = fragments
        self._turn_id = turn_id

    def __aiter__(self) -> AsyncIterator[str]:
        return self._fragments

    async def turn_id(self) -> str | None:
        return await self._turn_id.wait()


class FeedbackTransport(Protocol):
    """Interface for one streaming model turn per call."""

    def stream_initial(
        self, image_bytes: bytes, previous_turn_id: str | None = None
    ) -> FeedbackStream:
        """Stream coaching feedback for an encoded image."""

    def stream_followup(self, question: str, previous_turn_id: str) -> FeedbackStream:
        """Stream the answer to a question chained to a previous turn."""
