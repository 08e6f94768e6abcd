"""Streaming feedback transport for the OpenAI Responses API."""

import base64
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

import httpx
from openai import APIStatusError, AsyncOpenAI

from photo_coach.services.credentials import SecretStore
from photo_coach.services.stream_events import (
    event_turn_id,
    iter_stream_events,
    text_fragments,
)
from photo_coach.services.transport import (
    DeferredTurnId,
    FeedbackStream,
    FeedbackTransport,
    InvalidResponseError,
    NoCredentialError,
    RemoteError,
)

logger = logging.getLogger(__name__)

INITIAL_PROMPT = "Please analyze this photo and provide coaching feedback."


@dataclass(frozen=True)
class ModelOptions:
    """Request parameters shared by every turn."""

    model: str
    instructions: str
    max_output_tokens: int
    store: bool


@dataclass
class OpenAIFeedbackTransport(FeedbackTransport):
    """Feedback transport over the OpenAI Responses API.

    Each turn reads the raw SSE body line by line so malformed events can be
    skipped and the first response id captured.
    """

    secret_store: SecretStore
    options: ModelOptions
    http_client: httpx.AsyncClient
    base_url: str = "https://api.openai.com/v1"
    timeout: float = 60.0

    @classmethod
    def create(
        cls,
        secret_store: SecretStore,
        options: ModelOptions,
        base_url: str,
        timeout: float,
    ) -> "OpenAIFeedbackTransport":
        """Create a transport with a managed httpx session."""
        return cls(
            secret_store=secret_store,
            options=options,
            http_client=httpx.AsyncClient(),
            base_url=base_url,
            timeout=timeout,
        )

    def stream_initial(
        self, image_bytes: bytes, previous_turn_id: str | None = None
    ) -> FeedbackStream:
        """Stream feedback for an image, optionally chained to a prior turn."""
        content = [
            {"type": "input_text", "text": INITIAL_PROMPT},
            {"type": "input_image", "image_url": _to_data_url(image_bytes)},
        ]
        return self._open(content, previous_turn_id)

    def stream_followup(self, question: str, previous_turn_id: str) -> FeedbackStream:
        """Stream the answer to a follow-up question."""
        content = [{"type": "input_text", "text": question}]
        return self._open(content, previous_turn_id)

    def build_payload(
        self, content: list[dict[str, str]], previous_turn_id: str | None
    ) -> dict[str, object]:
        """Build the Responses API request body for one turn."""
        payload: dict[str, object] = {
            "model": self.options.model,
            "instructions": self.options.instructions,
            "input": [{"role": "user", "content": content}],
            "max_output_tokens": self.options.max_output_tokens,
            "store": self.options.store,
            "stream": True,
        }
        if previous_turn_id:
            payload["previous_response_id"] = previous_turn_id
        return payload

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    def _open(
        self, content: list[dict[str, str]], previous_turn_id: str | None
    ) -> FeedbackStream:
        turn_id = DeferredTurnId()
        payload = self.build_payload(content, previous_turn_id)
        return FeedbackStream(self._fragments(payload, turn_id), turn_id)

    def _client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=api_key,
            base_url=self.base_url,
            timeout=self.timeout,
            max_retries=0,
            http_client=self.http_client,
        )

    async def _fragments(
        self, payload: dict[str, object], turn_id: DeferredTurnId
    ) -> AsyncIterator[str]:
        captured: str | None = None
        try:
            api_key = self.secret_store.get()
            if not api_key:
                raise NoCredentialError()
            responses = self._client(api_key).responses
            try:
                async with responses.with_streaming_response.create(
                    **payload
                ) as response:
                    content_type = response.headers.get("content-type", "")
                    if "text/event-stream" not in content_type:
                        raise InvalidResponseError()
                    async for event in iter_stream_events(response.iter_lines()):
                        if captured is None:
                            captured = event_turn_id(event)
                        for fragment in text_fragments(event):
                            yield fragment
            except APIStatusError as exc:
                logger.warning(
                    "Feedback API returned an error",
                    extra={"status_code": exc.status_code},
                )
                raise RemoteError(
                    f"API error ({exc.status_code}): {exc.response.text}"
                ) from exc
        except BaseException:
            turn_id.resolve(None)
            raise
        turn_id.resolve(captured)


def _to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = _detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
