"""Shared test fixtures."""

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from uuid import UUID, uuid4

import pytest

from photo_coach.config import Settings
from photo_coach.containers import AppContainer
from photo_coach.domain.photos import FeedbackRecord, MediaPaths, PhotoRecord
from photo_coach.services.credentials import CredentialService, SecretStore
from photo_coach.services.feedback import FeedbackSession, FeedbackSessionRegistry
from photo_coach.services.photos import MediaStore, PhotoService, RecordStore
from photo_coach.services.transport import (
    DeferredTurnId,
    FeedbackStream,
    FeedbackTransport,
)


@dataclass
class InMemorySecretStore(SecretStore):
    """In-memory secret store for tests."""

    value: str | None = "sk-test-key"

    def get(self) -> str | None:
        return self.value

    def set(self, value: str) -> None:
        self.value = value

    def delete(self) -> bool:
        existed = self.value is not None
        self.value = None
        return existed

    def has(self) -> bool:
        return self.value is not None


@dataclass
class InMemoryMediaStore(MediaStore):
    """In-memory media store for tests."""

    images: dict[str, bytes] = field(default_factory=dict)
    thumbnails: dict[str, bytes] = field(default_factory=dict)
    fail_saves: bool = False
    transport_requests: list[tuple[str, int]] = field(default_factory=list)

    def save_photo(self, image_bytes: bytes, photo_id: UUID) -> MediaPaths | None:
        if self.fail_saves:
            return None
        paths = MediaPaths(
            image_path=f"{photo_id}.jpg", thumbnail_path=f"{photo_id}_thumb.jpg"
        )
        self.images[paths.image_path] = image_bytes
        self.thumbnails[paths.thumbnail_path] = b"thumb:" + image_bytes[:8]
        return paths

    def load_image(self, image_path: str) -> bytes | None:
        return self.images.get(image_path)

    def load_thumbnail(self, thumbnail_path: str) -> bytes | None:
        return self.thumbnails.get(thumbnail_path)

    def delete_photo(self, image_path: str, thumbnail_path: str) -> None:
        self.images.pop(image_path, None)
        self.thumbnails.pop(thumbnail_path, None)

    def load_bytes_for_transport(
        self, image_path: str, max_dimension: int
    ) -> bytes | None:
        self.transport_requests.append((image_path, max_dimension))
        return self.images.get(image_path)


@dataclass
class InMemoryRecordStore(RecordStore):
    """In-memory photo and feedback records for tests."""

    photos: dict[UUID, PhotoRecord] = field(default_factory=dict)
    feedback: dict[UUID, FeedbackRecord] = field(default_factory=dict)
    updates: list[UUID] = field(default_factory=list)

    def create_photo(
        self, photo_id: UUID, image_path: str, thumbnail_path: str
    ) -> PhotoRecord:
        # strictly increasing capture times keep ordering deterministic
        captured_at = datetime(2026, 1, 1, tzinfo=UTC) + timedelta(
            seconds=len(self.photos)
        )
        photo = PhotoRecord(
            id=photo_id,
            captured_at=captured_at,
            image_path=image_path,
            thumbnail_path=thumbnail_path,
        )
        self.photos[photo_id] = photo
        return photo

    def get_photo(self, photo_id: UUID) -> PhotoRecord | None:
        return self.photos.get(photo_id)

    def list_photos(self) -> list[PhotoRecord]:
        return sorted(
            self.photos.values(), key=lambda photo: photo.captured_at, reverse=True
        )

    def delete_photo(self, photo_id: UUID) -> None:
        self.photos.pop(photo_id, None)
        for feedback_id, record in list(self.feedback.items()):
            if record.photo_id == photo_id:
                self.feedback.pop(feedback_id)

    def create_feedback(self, photo_id: UUID) -> FeedbackRecord:
        existing = self.fetch_feedback(photo_id)
        if existing is not None:
            return existing
        record = FeedbackRecord(
            id=uuid4(),
            photo_id=photo_id,
            content="",
            is_complete=False,
            created_at=datetime.now(tz=UTC),
        )
        self.feedback[record.id] = record
        return record

    def fetch_feedback(self, photo_id: UUID) -> FeedbackRecord | None:
        for record in self.feedback.values():
            if record.photo_id == photo_id:
                return record
        return None

    def update_feedback(
        self,
        feedback_id: UUID,
        content: str,
        is_complete: bool,
        turn_id: str | None,
    ) -> None:
        current = self.feedback[feedback_id]
        self.feedback[feedback_id] = FeedbackRecord(
            id=current.id,
            photo_id=current.photo_id,
            content=content,
            is_complete=is_complete,
            created_at=current.created_at,
            turn_id=turn_id,
        )
        self.updates.append(feedback_id)


@dataclass
class ScriptedTurn:
    """Fragments a fake turn yields, then an optional failure."""

    fragments: list[str] = field(default_factory=lambda: ["Nice ", "shot."])
    turn_id: str | None = "resp_1"
    error: Exception | None = None


@dataclass
class FakeFeedbackTransport(FeedbackTransport):
    """Fake transport that replays scripted turns and records calls."""

    turns: list[ScriptedTurn] = field(default_factory=list)
    initial_calls: list[tuple[bytes, str | None]] = field(default_factory=list)
    followup_calls: list[tuple[str, str]] = field(default_factory=list)

    @property
    def call_count(self) -> int:
        return len(self.initial_calls) + len(self.followup_calls)

    def stream_initial(
        self, image_bytes: bytes, previous_turn_id: str | None = None
    ) -> FeedbackStream:
        self.initial_calls.append((image_bytes, previous_turn_id))
        return self._next_stream()

    def stream_followup(self, question: str, previous_turn_id: str) -> FeedbackStream:
        self.followup_calls.append((question, previous_turn_id))
        return self._next_stream()

    def _next_stream(self) -> FeedbackStream:
        turn = self.turns.pop(0) if self.turns else ScriptedTurn()
        turn_id = DeferredTurnId()
        return FeedbackStream(_play(turn, turn_id), turn_id)


async def _play(turn: ScriptedTurn, turn_id: DeferredTurnId) -> AsyncIterator[str]:
    try:
        for fragment in turn.fragments:
            yield fragment
        if turn.error is not None:
            raise turn.error
    except BaseException:
        turn_id.resolve(None)
        raise
    turn_id.resolve(turn.turn_id)


@dataclass
class FakeClock:
    """Monotonic clock advanced by a fixed step on every read."""

    now: float = 0.0
    step: float = 0.0

    def __call__(self) -> float:
        current = self.now
        self.now += self.step
        return current


def add_photo(
    record_store: InMemoryRecordStore,
    media_store: InMemoryMediaStore,
    image_bytes: bytes | None = b"jpeg-bytes",
) -> PhotoRecord:
    """Create a photo with an empty feedback row, like a capture does."""
    photo_id = uuid4()
    photo = record_store.create_photo(
        photo_id, f"{photo_id}.jpg", f"{photo_id}_thumb.jpg"
    )
    record_store.create_feedback(photo.id)
    if image_bytes is not None:
        media_store.images[photo.image_path] = image_bytes
    return photo


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key=(
            "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9."
            "eyJyb2xlIjoic2VydmljZV9yb2xlIn0."
            "c2lnbmF0dXJl"
        ),
        openai_api_key="sk-from-env",
        data_dir=tmp_path / "data",
    )


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def media_store() -> InMemoryMediaStore:
    return InMemoryMediaStore()


@pytest.fixture
def transport() -> FakeFeedbackTransport:
    return FakeFeedbackTransport()


@pytest.fixture
def secret_store() -> InMemorySecretStore:
    return InMemorySecretStore()


@pytest.fixture
def container(
    settings: Settings,
    record_store: InMemoryRecordStore,
    media_store: InMemoryMediaStore,
    transport: FakeFeedbackTransport,
    secret_store: InMemorySecretStore,
) -> AppContainer:
    def new_session() -> FeedbackSession:
        return FeedbackSession(
            record_store=record_store,
            media_store=media_store,
            transport=transport,
            update_interval=0.0,
        )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        credential_service=CredentialService(secret_store),
        photo_service=PhotoService(media_store=media_store, record_store=record_store),
        feedback_sessions=FeedbackSessionRegistry(new_session),
        close_resources=close_resources,
    )
