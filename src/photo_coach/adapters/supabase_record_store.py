"""Supabase-backed photo and feedback records."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client

from photo_coach.domain.photos import FeedbackRecord, PhotoRecord
from photo_coach.services.photos import RecordStore

_PHOTO_COLUMNS = "id, captured_at, image_path, thumbnail_path"
_FEEDBACK_COLUMNS = "id, photo_id, content, is_complete, created_at, turn_id"


@dataclass
class SupabaseRecordStore(RecordStore):
    """Supabase implementation for photo and feedback persistence."""

    client: Client

    def create_photo(
        self, photo_id: UUID, image_path: str, thumbnail_path: str
    ) -> PhotoRecord:
        """Create a photo row and return it."""
        response = (
            self.client.table("photos")
            .insert(
                {
                    "id": str(photo_id),
                    "captured_at": datetime.now(tz=UTC).isoformat(),
                    "image_path": image_path,
                    "thumbnail_path": thumbnail_path,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create photo")
        return _photo_from_row(response.data[0])

    def get_photo(self, photo_id: UUID) -> PhotoRecord | None:
        """Return a photo by id, if present."""
        response = (
            self.client.table("photos")
            .select(_PHOTO_COLUMNS)
            .eq("id", str(photo_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _photo_from_row(response.data[0])

    def list_photos(self) -> list[PhotoRecord]:
        """Return photos ordered by capture time, newest first."""
        response = (
            self.client.table("photos")
            .select(_PHOTO_COLUMNS)
            .order("captured_at", desc=True)
            .execute()
        )
        return [_photo_from_row(row) for row in response.data or []]

    def delete_photo(self, photo_id: UUID) -> None:
        """Delete a photo row together with its feedback."""
        self.client.table("feedback").delete().eq("photo_id", str(photo_id)).execute()
        self.client.table("photos").delete().eq("id", str(photo_id)).execute()

    def create_feedback(self, photo_id: UUID) -> FeedbackRecord:
        """Return the existing feedback row or insert an empty one."""
        existing = self.fetch_feedback(photo_id)
        if existing is not None:
            return existing
        response = (
            self.client.table("feedback")
            .insert(
                {
                    "photo_id": str(photo_id),
                    "content": "",
                    "is_complete": False,
                    "created_at": datetime.now(tz=UTC).isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create feedback")
        return _feedback_from_row(response.data[0])

    def fetch_feedback(self, photo_id: UUID) -> FeedbackRecord | None:
        """Return the feedback row for a photo, if present."""
        response = (
            self.client.table("feedback")
            .select(_FEEDBACK_COLUMNS)
            .eq("photo_id", str(photo_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _feedback_from_row(response.data[0])

    def update_feedback(
        self,
        feedback_id: UUID,
        content: str,
        is_complete: bool,
        turn_id: str | None,
    ) -> None:
        """Replace feedback content, completion flag and turn id."""
        self.client.table("feedback").update(
            {
                "content": content,
                "is_complete": is_complete,
                "turn_id": turn_id,
            }
        ).eq("id", str(feedback_id)).execute()


def _photo_from_row(row: dict[str, object]) -> PhotoRecord:
    return PhotoRecord(
        id=UUID(str(row["id"])),
        captured_at=_parse_timestamp(row["captured_at"]),
        image_path=str(row["image_path"]),
        thumbnail_path=str(row["thumbnail_path"]),
    )


def _feedback_from_row(row: dict[str, object]) -> FeedbackRecord:
    turn_id = row.get("turn_id")
    return FeedbackRecord(
        id=UUID(str(row["id"])),
        photo_id=UUID(str(row["photo_id"])),
        content=str(row.get("content") or ""),
        is_complete=bool(row.get("is_complete")),
        created_at=_parse_timestamp(row["created_at"]),
        turn_id=str(turn_id) if turn_id else None,
    )


def _parse_timestamp(value: object) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))
