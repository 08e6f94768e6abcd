"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from photo_coach.adapters.file_secret_store import FileSecretStore
from photo_coach.adapters.openai_feedback_transport import (
    OpenAIFeedbackTransport,
    ModelOptions,
)
from photo_coach.adapters.local_media_store import LocalMediaStore
from photo_coach.adapters.supabase_record_store import SupabaseRecordStore
from photo_coach.config import Settings
from photo_coach.services.credentials import CredentialService
from photo_coach.services.feedback import FeedbackSession, FeedbackSessionRegistry
from photo_coach.services.photos import PhotoService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    credential_service: CredentialService
    photo_service: PhotoService
    feedback_sessions: FeedbackSessionRegistry
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    record_store = SupabaseRecordStore(supabase_client)
    media_store = LocalMediaStore(resolved_settings.data_dir / "media")
    secret_store = FileSecretStore(resolved_settings.data_dir / "api_key")
    credential_service = CredentialService(secret_store)
    if resolved_settings.openai_api_key and not credential_service.has_api_key():
        credential_service.save_api_key(resolved_settings.openai_api_key)

    transport = OpenAIFeedbackTransport.create(
        secret_store=secret_store,
        options=ModelOptions(
            model=resolved_settings.openai_model,
            instructions=resolved_settings.openai_instructions,
            max_output_tokens=resolved_settings.openai_max_output_tokens,
            store=resolved_settings.openai_store,
        ),
        base_url=resolved_settings.openai_base_url,
        timeout=resolved_settings.openai_timeout_seconds,
    )

    def new_session() -> FeedbackSession:
        return FeedbackSession(
            record_store=record_store,
            media_store=media_store,
            transport=transport,
            max_dimension=resolved_settings.transport_max_dimension,
            update_interval=resolved_settings.stream_update_interval_seconds,
        )

    async def close_resources() -> None:
        await transport.close()

    return AppContainer(
        settings=resolved_settings,
        credential_service=credential_service,
        photo_service=PhotoService(media_store=media_store, record_store=record_store),
        feedback_sessions=FeedbackSessionRegistry(new_session),
        close_resources=close_resources,
    )
