"""Request and response models for the HTTP API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from photo_coach.domain.feedback import FeedbackState, display_text, state_name
from photo_coach.domain.photos import PhotoRecord


class PhotoResponse(BaseModel):
    """Photo metadata returned to clients."""

    id: UUID
    captured_at: datetime

    @classmethod
    def from_record(cls, photo: PhotoRecord) -> "PhotoResponse":
        return cls(id=photo.id, captured_at=photo.captured_at)


class FeedbackStateResponse(BaseModel):
    """Snapshot of a feedback session."""

    status: str
    text: str

    @classmethod
    def from_state(cls, state: FeedbackState) -> "FeedbackStateResponse":
        return cls(status=state_name(state), text=display_text(state))


class FollowupRequest(BaseModel):
    question: str


class ApiKeyRequest(BaseModel):
    api_key: str = Field(min_length=1)


class ApiKeyStatus(BaseModel):
    configured: bool
    masked_key: str | None = None
