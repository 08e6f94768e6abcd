"""Domain models for captured photos and their feedback."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class MediaPaths:
    """Relative locations of a stored image and its thumbnail."""

    image_path: str
    thumbnail_path: str


@dataclass(frozen=True)
class PhotoRecord:
    """Represents a persisted photo."""

    id: UUID
    captured_at: datetime
    image_path: str
    thumbnail_path: str


@dataclass(frozen=True)
class FeedbackRecord:
    """Represents the persisted coaching feedback for one photo."""

    id: UUID
    photo_id: UUID
    content: str
    is_complete: bool
    created_at: datetime
    turn_id: str | None = None
