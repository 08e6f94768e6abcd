"""Feedback session states."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Idle:
    """No turn has started."""


@dataclass(frozen=True)
class Loading:
    """A turn was requested and no text has arrived yet."""


@dataclass(frozen=True)
class Streaming:
    """Text is arriving; holds everything received so far."""

    text: str


@dataclass(frozen=True)
class Complete:
    """The turn finished; holds the final text."""

    text: str


@dataclass(frozen=True)
class Error:
    """The turn failed with a user-facing message."""

    message: str


FeedbackState = Idle | Loading | Streaming | Complete | Error


def state_name(state: FeedbackState) -> str:
    """Return the lower-case name used when reporting a state."""
    return type(state).__name__.lower()


def display_text(state: FeedbackState) -> str:
    """Return the text a viewer should show for a state."""
    if isinstance(state, Streaming | Complete):
        return state.text
    if isinstance(state, Error):
        return state.message
    return ""
