"""File-backed secret store for the API credential."""

import os
from dataclasses import dataclass
from pathlib import Path

from photo_coach.services.credentials import SecretStore


@dataclass
class FileSecretStore(SecretStore):
    """Keeps the credential in a single owner-readable file."""

    path: Path

    def get(self) -> str | None:
        try:
            value = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        return value or None

    def set(self, value: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(value)

    def delete(self) -> bool:
        existed = self.path.exists()
        self.path.unlink(missing_ok=True)
        return existed

    def has(self) -> bool:
        return self.get() is not None
