"""API credential management."""

from dataclasses import dataclass
from typing import Protocol


class SecretStore(Protocol):
    """Storage interface for the single API credential."""

    def get(self) -> str | None:
        """Return the stored credential, if any."""

    def set(self, value: str) -> None:
        """Store a credential, replacing any previous one."""

    def delete(self) -> bool:
        """Remove the credential and report whether one existed."""

    def has(self) -> bool:
        """Return true when a credential is stored."""


@dataclass
class CredentialService:
    """Validates API keys before they reach the secret store."""

    store: SecretStore

    def save_api_key(self, api_key: str) -> None:
        """Store a trimmed, non-empty API key."""
        cleaned = api_key.strip()
        if not cleaned:
            raise ValueError("API key must not be empty")
        self.store.set(cleaned)

    def delete_api_key(self) -> bool:
        return self.store.delete()

    def has_api_key(self) -> bool:
        return self.store.has()

    def masked_api_key(self) -> str | None:
        """Return the key with all but its last four characters hidden."""
        key = self.store.get()
        if not key:
            return None
        if len(key) <= 4:
            return "*" * len(key)
        return f"{'*' * 8}{key[-4:]}"
