"""Filesystem media store using Pillow for re-encoding."""

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from uuid import UUID

from PIL import Image, UnidentifiedImageError

from photo_coach.domain.photos import MediaPaths
from photo_coach.services.photos import MediaStore

logger = logging.getLogger(__name__)

THUMBNAIL_MAX_SIZE = 200
IMAGE_QUALITY = 80
THUMBNAIL_QUALITY = 70


@dataclass
class LocalMediaStore(MediaStore):
    """Stores JPEG images under ``photos/`` and thumbnails under ``thumbnails/``."""

    root: Path

    @property
    def photos_dir(self) -> Path:
        return self.root / "photos"

    @property
    def thumbnails_dir(self) -> Path:
        return self.root / "thumbnails"

    def save_photo(self, image_bytes: bytes, photo_id: UUID) -> MediaPaths | None:
        """Write the image and a thumbnail; return None if either fails."""
        image_path = f"{photo_id}.jpg"
        thumbnail_path = f"{photo_id}_thumb.jpg"
        try:
            image = _open_rgb(image_bytes)
            self.photos_dir.mkdir(parents=True, exist_ok=True)
            self.thumbnails_dir.mkdir(parents=True, exist_ok=True)
            (self.photos_dir / image_path).write_bytes(
                _encode_jpeg(image, IMAGE_QUALITY)
            )
            thumbnail = image.copy()
            thumbnail.thumbnail((THUMBNAIL_MAX_SIZE, THUMBNAIL_MAX_SIZE))
            (self.thumbnails_dir / thumbnail_path).write_bytes(
                _encode_jpeg(thumbnail, THUMBNAIL_QUALITY)
            )
        except (OSError, UnidentifiedImageError):
            logger.exception("Failed to save photo", extra={"photo_id": str(photo_id)})
            self.delete_photo(image_path, thumbnail_path)
            return None
        return MediaPaths(image_path=image_path, thumbnail_path=thumbnail_path)

    def load_image(self, image_path: str) -> bytes | None:
        return _read_bytes(self.photos_dir / image_path)

    def load_thumbnail(self, thumbnail_path: str) -> bytes | None:
        return _read_bytes(self.thumbnails_dir / thumbnail_path)

    def delete_photo(self, image_path: str, thumbnail_path: str) -> None:
        (self.photos_dir / image_path).unlink(missing_ok=True)
        (self.thumbnails_dir / thumbnail_path).unlink(missing_ok=True)

    def load_bytes_for_transport(
        self, image_path: str, max_dimension: int
    ) -> bytes | None:
        """Return JPEG bytes downscaled to fit within max_dimension."""
        data = self.load_image(image_path)
        if data is None:
            return None
        try:
            image = _open_rgb(data)
        except (OSError, UnidentifiedImageError):
            logger.warning("Stored photo is unreadable", extra={"path": image_path})
            return None
        if image.width > max_dimension or image.height > max_dimension:
            image.thumbnail((max_dimension, max_dimension))
        return _encode_jpeg(image, IMAGE_QUALITY)


def _open_rgb(data: bytes) -> Image.Image:
    with Image.open(io.BytesIO(data)) as image:
        return image.convert("RGB")


def _encode_jpeg(image: Image.Image, quality: int) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def _read_bytes(path: Path) -> bytes | None:
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None
