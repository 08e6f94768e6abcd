"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.responses import StreamingResponse

from photo_coach.api.models import (
    FeedbackStateResponse,
    FollowupRequest,
    PhotoResponse,
)
from photo_coach.api.settings import router as settings_router
from photo_coach.app_logging import configure_logging
from photo_coach.containers import AppContainer
from photo_coach.domain.feedback import FeedbackState
from photo_coach.domain.photos import PhotoRecord
from photo_coach.services.feedback import FeedbackSession
from photo_coach.services.transport import StorageUnavailableError

logger = logging.getLogger(__name__)


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(settings_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/photos", status_code=status.HTTP_201_CREATED)
    async def capture_photo(request: Request) -> PhotoResponse:
        """Store an uploaded image as a new photo."""
        state_container: AppContainer = request.app.state.container
        image_bytes = await request.body()
        if not image_bytes:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Empty image body."
            )
        try:
            photo = await asyncio.to_thread(
                state_container.photo_service.capture_photo, image_bytes
            )
        except StorageUnavailableError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=exc.user_message,
            ) from exc
        return PhotoResponse.from_record(photo)

    @app.get("/photos")
    async def list_photos(request: Request) -> dict[str, list[PhotoResponse]]:
        """Return photos, newest first."""
        state_container: AppContainer = request.app.state.container
        photos = state_container.photo_service.list_photos()
        return {"photos": [PhotoResponse.from_record(photo) for photo in photos]}

    @app.get("/photos/{photo_id}")
    async def get_photo(photo_id: UUID, request: Request) -> PhotoResponse:
        photo = _require_photo(request, photo_id)
        return PhotoResponse.from_record(photo)

    @app.get("/photos/{photo_id}/image")
    async def photo_image(photo_id: UUID, request: Request) -> Response:
        state_container: AppContainer = request.app.state.container
        photo = _require_photo(request, photo_id)
        data = state_container.photo_service.load_image(photo)
        if data is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return Response(content=data, media_type="image/jpeg")

    @app.get("/photos/{photo_id}/thumbnail")
    async def photo_thumbnail(photo_id: UUID, request: Request) -> Response:
        state_container: AppContainer = request.app.state.container
        photo = _require_photo(request, photo_id)
        data = state_container.photo_service.load_thumbnail(photo)
        if data is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return Response(content=data, media_type="image/jpeg")

    @app.delete("/photos/{photo_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_photo(photo_id: UUID, request: Request) -> Response:
        """Delete a photo, its media and its feedback."""
        state_container: AppContainer = request.app.state.container
        if not state_container.photo_service.delete_photo(photo_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        state_container.feedback_sessions.discard(photo_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/photos/{photo_id}/feedback")
    async def current_feedback(
        photo_id: UUID, request: Request
    ) -> FeedbackStateResponse:
        """Return session state, resuming stored feedback when idle."""
        photo = _require_photo(request, photo_id)
        session = _session_for(request, photo_id)
        if not session.is_busy:
            session.load_existing(photo)
        return FeedbackStateResponse.from_state(session.state)

    @app.post("/photos/{photo_id}/feedback", response_model=None)
    async def fetch_feedback(
        photo_id: UUID, request: Request, stream: bool = False
    ) -> FeedbackStateResponse | StreamingResponse:
        """Analyse a photo unless it already has complete feedback."""
        photo, session = _claim_session(request, photo_id)
        return await _run(session, lambda: session.fetch_feedback(photo), stream)

    @app.post("/photos/{photo_id}/feedback/retry", response_model=None)
    async def retry_feedback(
        photo_id: UUID, request: Request, stream: bool = False
    ) -> FeedbackStateResponse | StreamingResponse:
        """Reset the session and fetch again; stored complete feedback is kept."""
        photo, session = _claim_session(request, photo_id)
        return await _run(session, lambda: session.retry(photo), stream)

    @app.post("/photos/{photo_id}/feedback/followup", response_model=None)
    async def followup(
        photo_id: UUID,
        body: FollowupRequest,
        request: Request,
        stream: bool = False,
    ) -> FeedbackStateResponse | StreamingResponse:
        """Ask a follow-up question about the photo."""
        photo, session = _claim_session(request, photo_id)
        return await _run(
            session, lambda: session.send_followup(body.question, photo), stream
        )

    @app.delete("/photos/{photo_id}/feedback/session")
    async def reset_session(photo_id: UUID, request: Request) -> FeedbackStateResponse:
        """Forget in-memory session state without touching stored feedback."""
        _, session = _idle_session(request, photo_id)
        session.reset_state()
        return FeedbackStateResponse.from_state(session.state)

    return app


def _require_photo(request: Request, photo_id: UUID) -> PhotoRecord:
    container: AppContainer = request.app.state.container
    photo = container.photo_service.get_photo(photo_id)
    if photo is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return photo


def _session_for(request: Request, photo_id: UUID) -> FeedbackSession:
    container: AppContainer = request.app.state.container
    return container.feedback_sessions.get(photo_id)


def _idle_session(
    request: Request, photo_id: UUID
) -> tuple[PhotoRecord, FeedbackSession]:
    """Return the photo and its session, rejecting a session mid-turn."""
    photo = _require_photo(request, photo_id)
    session = _session_for(request, photo_id)
    if session.is_busy:
        raise _busy()
    return photo, session


def _claim_session(
    request: Request, photo_id: UUID
) -> tuple[PhotoRecord, FeedbackSession]:
    """Return the photo and its session, reserved for a new turn."""
    photo = _require_photo(request, photo_id)
    session = _session_for(request, photo_id)
    if not session.reserve():
        raise _busy()
    return photo, session


def _busy() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="Feedback is already in progress for this photo.",
    )


async def _run(
    session: FeedbackSession,
    turn: Callable[[], Awaitable[None]],
    stream: bool,
) -> FeedbackStateResponse | StreamingResponse:
    if stream:
        return StreamingResponse(
            _state_events(session, turn), media_type="text/event-stream"
        )
    await turn()
    return FeedbackStateResponse.from_state(session.state)


def _state_events(
    session: FeedbackSession, turn: Callable[[], Awaitable[None]]
) -> AsyncIterator[str]:
    """Start the turn now and emit each of its state changes as SSE data."""
    queue: asyncio.Queue[FeedbackState | None] = asyncio.Queue()
    unsubscribe = session.subscribe(queue.put_nowait)
    task = asyncio.ensure_future(turn())

    def finished(_: asyncio.Future[None]) -> None:
        unsubscribe()
        queue.put_nowait(None)

    task.add_done_callback(finished)
    return _drain_states(queue, task)


async def _drain_states(
    queue: asyncio.Queue[FeedbackState | None], task: asyncio.Future[None]
) -> AsyncIterator[str]:
    while True:
        state = await queue.get()
        if state is None:
            break
        snapshot = FeedbackStateResponse.from_state(state)
        yield f"data: {snapshot.model_dump_json()}\n\n"
    try:
        await task
    except Exception:
        logger.exception("Feedback turn raised while streaming")
    yield "data: [DONE]\n\n"
