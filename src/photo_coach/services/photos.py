"""Photo capture, listing and deletion."""

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID, uuid4

from photo_coach.domain.photos import FeedbackRecord, MediaPaths, PhotoRecord
from photo_coach.services.transport import StorageUnavailableError

logger = logging.getLogger(__name__)


class MediaStore(Protocol):
    """Persistence interface for image artifacts."""

    def save_photo(self, image_bytes: bytes, photo_id: UUID) -> MediaPaths | None:
        """Store an image and its thumbnail, returning their paths."""

    def load_image(self, image_path: str) -> bytes | None:
        """Return the full-resolution image bytes, if present."""

    def load_thumbnail(self, thumbnail_path: str) -> bytes | None:
        """Return the thumbnail bytes, if present."""

    def delete_photo(self, image_path: str, thumbnail_path: str) -> None:
        """Delete an image and its thumbnail."""

    def load_bytes_for_transport(
        self, image_path: str, max_dimension: int
    ) -> bytes | None:
        """Return JPEG bytes no larger than max_dimension on either side."""


class RecordStore(Protocol):
    """Persistence interface for photo and feedback records."""

    def create_photo(
        self, photo_id: UUID, image_path: str, thumbnail_path: str
    ) -> PhotoRecord:
        """Create a photo row and return it."""

    def get_photo(self, photo_id: UUID) -> PhotoRecord | None:
        """Return a photo by id, if present."""

    def list_photos(self) -> list[PhotoRecord]:
        """Return all photos, most recently captured first."""

    def delete_photo(self, photo_id: UUID) -> None:
        """Delete a photo row and its feedback."""

    def create_feedback(self, photo_id: UUID) -> FeedbackRecord:
        """Return the photo's feedback row, creating an empty one if missing."""

    def fetch_feedback(self, photo_id: UUID) -> FeedbackRecord | None:
        """Return the feedback row for a photo, if present."""

    def update_feedback(
        self,
        feedback_id: UUID,
        content: str,
        is_complete: bool,
        turn_id: str | None,
    ) -> None:
        """Replace feedback content, completion flag and turn id."""


@dataclass
class PhotoService:
    """Coordinates media and record storage for captured photos."""

    media_store: MediaStore
    record_store: RecordStore

    def capture_photo(self, image_bytes: bytes) -> PhotoRecord:
        """Store a captured image and create its records."""
        photo_id = uuid4()
        paths = self.media_store.save_photo(image_bytes, photo_id)
        if paths is None:
            raise StorageUnavailableError("Could not save photo.")
        try:
            photo = self.record_store.create_photo(
                photo_id, paths.image_path, paths.thumbnail_path
            )
            self.record_store.create_feedback(photo.id)
        except Exception:
            self.media_store.delete_photo(paths.image_path, paths.thumbnail_path)
            raise
        logger.info("Captured photo", extra={"photo_id": str(photo.id)})
        return photo

    def list_photos(self) -> list[PhotoRecord]:
        return self.record_store.list_photos()

    def get_photo(self, photo_id: UUID) -> PhotoRecord | None:
        return self.record_store.get_photo(photo_id)

    def load_image(self, photo: PhotoRecord) -> bytes | None:
        return self.media_store.load_image(photo.image_path)

    def load_thumbnail(self, photo: PhotoRecord) -> bytes | None:
        return self.media_store.load_thumbnail(photo.thumbnail_path)

    def delete_photo(self, photo_id: UUID) -> bool:
        """Delete a photo's media and records; return false if it is unknown."""
        photo = self.record_store.get_photo(photo_id)
        if photo is None:
            return False
        self.media_store.delete_photo(photo.image_path, photo.thumbnail_path)
        self.record_store.delete_photo(photo.id)
        logger.info("Deleted photo", extra={"photo_id": str(photo.id)})
        return True
