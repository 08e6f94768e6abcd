"""ASGI entrypoint for the photo coach API."""

from photo_coach.api.app import create_app
from photo_coach.containers import build_container

app = create_app(build_container())
