"""Application configuration."""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

DEFAULT_INSTRUCTIONS = """\
You are a photography teacher coaching a beginning photographer to improve \
their skills. Use a direct, technical tone to give feedback. Analyze the \
photo and provide actionable feedback.

The student is taking photos on their phone, so focus on things they can \
control, like composition, lighting, and subject. Note phones control focus, \
exposure and white balance automatically.

Be concise and specific in your feedback. Start with what works well, then \
give 2-3 specific improvements. Use plain language, not jargon. Keep response \
under 250 words.
If themes show up across multiple photos in a session, feel free to call them \
out."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o"
    openai_max_output_tokens: int = 500
    openai_store: bool = True
    openai_instructions: str = DEFAULT_INSTRUCTIONS
    openai_timeout_seconds: float = 60.0
    data_dir: Path = Path("data")
    transport_max_dimension: int = 1024
    stream_update_interval_seconds: float = 0.1
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
